"""Row-insertion feeds backed by Supabase Realtime or the in-memory store."""
from __future__ import annotations

import asyncio
import inspect
import logging
import uuid
from collections.abc import Awaitable, Callable
from typing import Any

from supabase import AsyncClient, acreate_client

from blogweb.infrastructure.database.memory_store import MemoryStore

logger = logging.getLogger(__name__)

RowPredicate = Callable[[dict[str, Any]], bool]

_CLOSED = object()


class Subscription:
    """Inserted rows of one table, queued for a single consumer.

    Returned by a feed's ``subscribe``; release it with ``close()`` or by
    using it as an async context manager. Iteration ends once it is closed.
    Rows may be delivered from any thread.
    """

    def __init__(self, table: str, predicate: RowPredicate | None = None) -> None:
        self.table = table
        self._predicate = predicate
        self._loop = asyncio.get_running_loop()
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._releasers: list[Callable[[], Awaitable[None] | None]] = []
        self.closed = False

    def add_releaser(self, releaser: Callable[[], Awaitable[None] | None]) -> None:
        self._releasers.append(releaser)

    def deliver(self, row: dict[str, Any] | None) -> None:
        if self.closed or not row:
            return
        if self._predicate is not None and not self._predicate(row):
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is self._loop:
            self._queue.put_nowait(row)
        elif not self._loop.is_closed():
            self._loop.call_soon_threadsafe(self._queue.put_nowait, row)

    async def get(self) -> dict[str, Any] | None:
        """Next matching row, or None once the subscription is closed."""
        if self.closed and self._queue.empty():
            return None
        item = await self._queue.get()
        return None if item is _CLOSED else item

    def __aiter__(self) -> Subscription:
        return self

    async def __anext__(self) -> dict[str, Any]:
        row = await self.get()
        if row is None:
            raise StopAsyncIteration
        return row

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._queue.put_nowait(_CLOSED)
        for releaser in reversed(self._releasers):
            result = releaser()
            if inspect.isawaitable(result):
                await result
        self._releasers.clear()

    async def __aenter__(self) -> Subscription:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()


class InMemoryChangeFeed:
    def __init__(self, memory: MemoryStore) -> None:
        self.memory = memory

    async def subscribe(
        self, table: str, predicate: RowPredicate | None = None, access_token: str | None = None
    ) -> Subscription:
        subscription = Subscription(table, predicate)
        subscription.add_releaser(self.memory.add_insert_listener(table, subscription.deliver))
        return subscription

    async def close(self) -> None:
        return None


def inserted_record(payload: dict[str, Any]) -> dict[str, Any] | None:
    """Pull the new row out of a postgres_changes payload."""
    data = payload.get("data") if isinstance(payload.get("data"), dict) else payload
    record = data.get("record") or data.get("new")
    return record if isinstance(record, dict) else None


class SupabaseChangeFeed:
    """Supabase Realtime postgres_changes, one channel per subscription.

    Realtime needs the async client. Anonymous subscriptions share one,
    created on first use. A subscription made with an access token gets a
    client of its own authorized with that token, so row-level security
    filters what it receives; that client is closed with the subscription.
    """

    def __init__(self, url: str, key: str, schema: str = "public") -> None:
        self.url = url
        self.key = key
        self.schema = schema
        self._client: AsyncClient | None = None
        self._client_lock = asyncio.Lock()

    async def _get_client(self) -> AsyncClient:
        async with self._client_lock:
            if self._client is None:
                self._client = await acreate_client(self.url, self.key)
            return self._client

    async def _user_client(self, access_token: str) -> AsyncClient:
        client = await acreate_client(self.url, self.key)
        result = client.realtime.set_auth(access_token)
        if inspect.isawaitable(result):
            await result
        return client

    async def subscribe(
        self, table: str, predicate: RowPredicate | None = None, access_token: str | None = None
    ) -> Subscription:
        client = await self._user_client(access_token) if access_token else await self._get_client()
        subscription = Subscription(table, predicate)
        channel = client.channel(f"{table}-{uuid.uuid4().hex[:12]}")

        def on_insert(payload: dict[str, Any]) -> None:
            subscription.deliver(inserted_record(payload))

        channel.on_postgres_changes("INSERT", schema=self.schema, table=table, callback=on_insert)
        await channel.subscribe()
        logger.debug("Subscribed to %s inserts on %s", table, channel.topic)

        async def release() -> None:
            if access_token:
                await client.remove_all_channels()
            else:
                await client.remove_channel(channel)
            logger.debug("Released realtime channel %s", channel.topic)

        subscription.add_releaser(release)
        return subscription

    async def close(self) -> None:
        if self._client is not None:
            await self._client.remove_all_channels()
            self._client = None
