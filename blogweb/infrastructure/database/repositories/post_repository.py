from __future__ import annotations

from datetime import datetime

from blogweb.domain.entities.post import PostEntity
from blogweb.domain.entities.profile import ProfileEntity
from blogweb.domain.errors import BackendError
from blogweb.infrastructure.database.supabase_client import Backend, error_message

POST_COLUMNS = "id, title, content, created_at, image_url, user_id, profiles(username, avatar_url)"


class PostRepository:
    table = "posts"

    def __init__(self, backend: Backend) -> None:
        self.client = backend.client
        self.memory = backend.memory

    @staticmethod
    def _row_to_entity(row: dict) -> PostEntity:
        """Convert a posts row (optionally carrying the profiles join) to PostEntity."""
        created_at = row["created_at"]
        if isinstance(created_at, str):
            created_at = datetime.fromisoformat(created_at)

        joined = row.get("profiles")
        # PostgREST embeds a to-one relation as an object, but tolerate a list
        if isinstance(joined, list):
            joined = joined[0] if joined else None
        author = None
        if joined:
            author = ProfileEntity(
                id=row["user_id"],
                username=joined.get("username"),
                avatar_url=joined.get("avatar_url"),
                setup_complete=True,
            )

        return PostEntity(
            id=str(row["id"]),
            user_id=row["user_id"],
            title=row.get("title") or "",
            content=row.get("content") or "",
            created_at=created_at,
            image_url=row.get("image_url"),
            author=author,
        )

    def create(self, user_id: str, title: str, content: str, image_url: str | None = None) -> PostEntity:
        row = {"title": title, "content": content, "image_url": image_url, "user_id": user_id}
        # In-memory mode
        if self.client is None:
            stored = self.memory.insert(self.table, row)
            return self._row_to_entity(self._join_profile(stored))

        # Supabase mode
        try:  # pragma: no cover - network
            res = self.client.table(self.table).insert(row).execute()
            return self._row_to_entity(res.data[0])
        except Exception as exc:
            raise BackendError(error_message(exc)) from exc

    def list(self, owner_id: str | None = None, newest_first: bool = True) -> list[PostEntity]:
        """Posts ordered by created_at; restricted to one owner when owner_id is given."""
        # In-memory mode
        if self.client is None:
            rows = self.memory.select(
                self.table, None if owner_id is None else (lambda r: r["user_id"] == owner_id)
            )
            rows.sort(key=lambda r: datetime.fromisoformat(r["created_at"]), reverse=newest_first)
            return [self._row_to_entity(self._join_profile(r)) for r in rows]

        # Supabase mode
        try:  # pragma: no cover - network
            query = (
                self.client.table(self.table)
                .select(POST_COLUMNS)
                .order("created_at", desc=newest_first)
            )
            if owner_id is not None:
                query = query.eq("user_id", owner_id)
            res = query.execute()
            return [self._row_to_entity(r) for r in res.data or []]
        except Exception as exc:
            raise BackendError(error_message(exc)) from exc

    def _join_profile(self, row: dict) -> dict:
        profiles = self.memory.select("profiles", lambda p: p["id"] == row["user_id"])
        joined = None
        if profiles:
            joined = {"username": profiles[0].get("username"), "avatar_url": profiles[0].get("avatar_url")}
        return {**row, "profiles": joined}
