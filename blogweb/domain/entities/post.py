from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from blogweb.domain.entities.profile import ProfileEntity


@dataclass(frozen=True)
class PostEntity:
    id: str
    user_id: str
    title: str
    content: str
    created_at: datetime
    image_url: str | None = None
    author: ProfileEntity | None = None  # joined from profiles, absent until the author saves one

    @property
    def has_image(self) -> bool:
        return bool(self.image_url)
