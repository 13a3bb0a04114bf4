from __future__ import annotations

from blogweb.domain.entities.profile import ProfileEntity
from blogweb.domain.errors import BackendError
from blogweb.infrastructure.database.supabase_client import Backend, error_message

PROFILE_COLUMNS = "id, username, avatar_url, isModal"

# PostgREST's answer to .single() on an empty result
NO_ROWS_MESSAGE = "JSON object requested, multiple (or no) rows returned"


class ProfileRepository:
    table = "profiles"

    def __init__(self, backend: Backend) -> None:
        self.client = backend.client
        self.memory = backend.memory

    @staticmethod
    def _row_to_entity(row: dict) -> ProfileEntity:
        return ProfileEntity(
            id=row["id"],
            username=row.get("username"),
            avatar_url=row.get("avatar_url"),
            setup_complete=bool(row.get("isModal")),
        )

    def get(self, user_id: str) -> ProfileEntity:
        # In-memory mode
        if self.client is None:
            rows = self.memory.select(self.table, lambda r: r["id"] == user_id)
            if len(rows) != 1:
                raise BackendError(NO_ROWS_MESSAGE)
            return self._row_to_entity(rows[0])

        # Supabase mode
        try:  # pragma: no cover - network
            res = (
                self.client.table(self.table)
                .select(PROFILE_COLUMNS)
                .eq("id", user_id)
                .single()
                .execute()
            )
            return self._row_to_entity(res.data)
        except Exception as exc:
            raise BackendError(error_message(exc)) from exc

    def upsert(
        self,
        user_id: str,
        username: str | None,
        avatar_url: str | None,
        setup_complete: bool = True,
    ) -> ProfileEntity:
        """Insert or replace the profile keyed by user id; last write wins."""
        row = {
            "id": user_id,
            "username": username,
            "avatar_url": avatar_url,
            "isModal": setup_complete,
        }
        # In-memory mode
        if self.client is None:
            return self._row_to_entity(self.memory.upsert(self.table, row, on_conflict="id"))

        # Supabase mode
        try:  # pragma: no cover - network
            res = self.client.table(self.table).upsert(row, on_conflict="id").execute()
            return self._row_to_entity(res.data[0] if res.data else row)
        except Exception as exc:
            raise BackendError(error_message(exc)) from exc

    def list_except(self, user_id: str) -> list[ProfileEntity]:
        # In-memory mode
        if self.client is None:
            rows = self.memory.select(self.table, lambda r: r["id"] != user_id)
            return [self._row_to_entity(r) for r in rows]

        # Supabase mode
        try:  # pragma: no cover - network
            res = (
                self.client.table(self.table)
                .select(PROFILE_COLUMNS)
                .neq("id", user_id)
                .execute()
            )
            return [self._row_to_entity(r) for r in res.data or []]
        except Exception as exc:
            raise BackendError(error_message(exc)) from exc
