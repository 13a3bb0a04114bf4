from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from blogweb.domain.entities.post import PostEntity


@dataclass(frozen=True)
class FeedFilter:
    """Client-side narrowing of an already fetched feed.

    Both criteria combine conjunctively; neither touches the backend, so the
    filter can be recomputed on every keystroke.
    """

    search: str = ""
    images_only: bool = False

    @property
    def is_active(self) -> bool:
        return bool(self.search.strip()) or self.images_only

    def matches(self, post: PostEntity) -> bool:
        if self.images_only and not post.has_image:
            return False
        term = self.search.strip().casefold()
        if not term:
            return True
        return term in (post.title or "").casefold() or term in (post.content or "").casefold()

    def apply(self, posts: Iterable[PostEntity]) -> list[PostEntity]:
        return [p for p in posts if self.matches(p)]
