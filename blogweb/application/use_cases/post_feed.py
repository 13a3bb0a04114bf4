from __future__ import annotations

import asyncio
import logging
from enum import Enum

from blogweb.domain.entities.post import PostEntity
from blogweb.domain.services.feed_filter import FeedFilter
from blogweb.infrastructure.database.repositories.post_repository import PostRepository

logger = logging.getLogger(__name__)

EMPTY_FEED_MESSAGE = "No posts yet."


class FeedScope(str, Enum):
    MINE = "mine"
    ALL = "all"


class PostFeed:
    """Posts for a scope and sort direction, re-queried whenever either changes.

    Each query is tagged with a generation number; a response that arrives
    after a newer query was issued is dropped instead of overwriting the
    newer state. Search and image filtering happen locally on ``posts``.
    """

    def __init__(
        self,
        posts: PostRepository,
        user_id: str | None,
        scope: FeedScope = FeedScope.MINE,
        newest_first: bool = True,
    ) -> None:
        self.repo = posts
        self.user_id = user_id
        self.scope = scope
        self.newest_first = newest_first
        self.refresh_token = 0
        self.posts: list[PostEntity] = []
        self.loading = False
        self._generation = 0

    async def set_scope(self, scope: FeedScope) -> bool:
        if scope == self.scope:
            return False
        self.scope = scope
        return await self.reload()

    async def set_newest_first(self, newest_first: bool) -> bool:
        if newest_first == self.newest_first:
            return False
        self.newest_first = newest_first
        return await self.reload()

    async def refresh(self) -> bool:
        """Force a re-query, e.g. after a new post was created."""
        self.refresh_token += 1
        return await self.reload()

    async def reload(self) -> bool:
        """Query the backend; returns False when the response was stale and dropped."""
        self._generation += 1
        generation = self._generation
        if self.scope is FeedScope.MINE and self.user_id is None:
            self.posts = []
            self.loading = False
            return True

        owner_id = self.user_id if self.scope is FeedScope.MINE else None
        self.loading = True
        try:
            rows = await asyncio.to_thread(self.repo.list, owner_id=owner_id, newest_first=self.newest_first)
        except Exception:
            logger.exception("Error fetching posts")
            if generation == self._generation:
                self.loading = False
            raise

        if generation != self._generation:
            logger.debug("Dropping stale feed response %s (current %s)", generation, self._generation)
            return False
        self.posts = rows
        self.loading = False
        return True

    def visible(self, feed_filter: FeedFilter | None = None) -> list[PostEntity]:
        if feed_filter is None or not feed_filter.is_active:
            return list(self.posts)
        return feed_filter.apply(self.posts)

    def empty_message(self, feed_filter: FeedFilter | None = None) -> str | None:
        if self.loading:
            return None
        return EMPTY_FEED_MESSAGE if not self.visible(feed_filter) else None
