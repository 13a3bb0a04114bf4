from __future__ import annotations

import uuid
from datetime import datetime

from blogweb.domain.entities.message import MessageEntity
from blogweb.domain.errors import BackendError, ValidationError
from blogweb.infrastructure.database.supabase_client import Backend, error_message


def canonical_user_id(value: str) -> str:
    """Ids end up inside a PostgREST filter expression; only a UUID may get there."""
    try:
        return str(uuid.UUID(str(value)))
    except ValueError as exc:
        raise ValidationError(f"Invalid user id: {value!r}") from exc


class MessageRepository:
    table = "messages"

    def __init__(self, backend: Backend) -> None:
        self.client = backend.client
        self.memory = backend.memory

    @staticmethod
    def row_to_entity(row: dict) -> MessageEntity:
        """Convert a messages row, from a query or a realtime payload, to MessageEntity."""
        created_at = row["created_at"]
        if isinstance(created_at, str):
            created_at = datetime.fromisoformat(created_at)
        return MessageEntity(
            id=str(row["id"]),
            sender_id=row["sender_id"],
            receiver_id=row["receiver_id"],
            content=row.get("content") or "",
            created_at=created_at,
        )

    def create(self, sender_id: str, receiver_id: str, content: str) -> MessageEntity:
        row = {"sender_id": sender_id, "receiver_id": receiver_id, "content": content}
        # In-memory mode
        if self.client is None:
            return self.row_to_entity(self.memory.insert(self.table, row))

        # Supabase mode
        try:  # pragma: no cover - network
            res = self.client.table(self.table).insert(row).execute()
            return self.row_to_entity(res.data[0])
        except Exception as exc:
            raise BackendError(error_message(exc)) from exc

    def conversation(self, user_id: str, peer_id: str) -> list[MessageEntity]:
        """Every message between the two users, oldest first."""
        # In-memory mode
        if self.client is None:
            rows = self.memory.select(
                self.table,
                lambda r: (r["sender_id"], r["receiver_id"]) in {(user_id, peer_id), (peer_id, user_id)},
            )
            rows.sort(key=lambda r: datetime.fromisoformat(r["created_at"]))
            return [self.row_to_entity(r) for r in rows]

        # Supabase mode
        user_id = canonical_user_id(user_id)
        peer_id = canonical_user_id(peer_id)
        try:
            res = (
                self.client.table(self.table)
                .select("*")
                .or_(
                    f"and(sender_id.eq.{user_id},receiver_id.eq.{peer_id}),"
                    f"and(sender_id.eq.{peer_id},receiver_id.eq.{user_id})"
                )
                .order("created_at", desc=False)
                .execute()
            )
            return [self.row_to_entity(r) for r in res.data or []]
        except Exception as exc:
            raise BackendError(error_message(exc)) from exc
