"""Process-local stand-in for a Supabase project.

Used when SUPABASE_DISABLED=1 or no credentials are configured. One store is
created per application and injected into every adapter, so auth users,
table rows and realtime listeners stay consistent across requests.
"""
from __future__ import annotations

import copy
import threading
import uuid
from collections import defaultdict
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any

InsertListener = Callable[[dict[str, Any]], None]

# tables whose rows get a server-side created_at default
_TIMESTAMPED_TABLES = frozenset({"posts", "messages"})


class MemoryStore:
    def __init__(self) -> None:
        # auth
        self.users: dict[str, dict[str, str]] = {}  # lower-cased email -> {id, email, password}
        self.access_tokens: dict[str, str] = {}  # token -> user id
        self.refresh_tokens: dict[str, str] = {}  # token -> user id
        self.revoked_tokens: set[str] = set()
        # storage: (bucket, path) -> bytes
        self.objects: dict[tuple[str, str], bytes] = {}
        # relational
        self.tables: dict[str, list[dict[str, Any]]] = defaultdict(list)
        self._insert_listeners: dict[str, list[InsertListener]] = defaultdict(list)
        self._lock = threading.RLock()
        self._last_timestamp: datetime | None = None

    def now(self) -> datetime:
        """Strictly increasing UTC timestamps, so ordering by created_at is total."""
        with self._lock:
            ts = datetime.now(UTC)
            if self._last_timestamp is not None and ts <= self._last_timestamp:
                ts = self._last_timestamp + timedelta(microseconds=1)
            self._last_timestamp = ts
            return ts

    def insert(self, table: str, row: dict[str, Any]) -> dict[str, Any]:
        with self._lock:
            stored = dict(row)
            stored.setdefault("id", str(uuid.uuid4()))
            if table in _TIMESTAMPED_TABLES:
                stored.setdefault("created_at", self.now().isoformat())
            self.tables[table].append(stored)
            listeners = list(self._insert_listeners.get(table, ()))
        # notify outside the lock; listeners may re-enter the store
        for listener in listeners:
            listener(copy.deepcopy(stored))
        return copy.deepcopy(stored)

    def upsert(self, table: str, row: dict[str, Any], on_conflict: str = "id") -> dict[str, Any]:
        with self._lock:
            rows = self.tables[table]
            for index, existing in enumerate(rows):
                if existing.get(on_conflict) == row.get(on_conflict):
                    merged = {**existing, **row}
                    rows[index] = merged
                    return copy.deepcopy(merged)
        return self.insert(table, row)

    def select(
        self, table: str, where: Callable[[dict[str, Any]], bool] | None = None
    ) -> list[dict[str, Any]]:
        with self._lock:
            rows = self.tables.get(table, [])
            return [copy.deepcopy(r) for r in rows if where is None or where(r)]

    def add_insert_listener(self, table: str, listener: InsertListener) -> Callable[[], None]:
        """Register a row-insertion callback; returns the function that removes it."""
        with self._lock:
            self._insert_listeners[table].append(listener)

        def remove() -> None:
            with self._lock:
                listeners = self._insert_listeners.get(table, [])
                if listener in listeners:
                    listeners.remove(listener)

        return remove

    def listener_count(self, table: str) -> int:
        with self._lock:
            return len(self._insert_listeners.get(table, ()))
