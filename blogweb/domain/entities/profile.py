from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ProfileEntity:
    id: str  # user id from Supabase auth
    username: str | None = None
    avatar_url: str | None = None
    setup_complete: bool = False  # stored as "isModal"

    @property
    def display_name(self) -> str:
        return self.username or self.id
