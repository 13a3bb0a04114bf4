from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator

from blogweb.domain.entities.message import MessageEntity
from blogweb.domain.entities.profile import ProfileEntity
from blogweb.domain.errors import ValidationError
from blogweb.infrastructure.database.repositories.message_repository import MessageRepository
from blogweb.infrastructure.database.repositories.profile_repository import ProfileRepository
from blogweb.infrastructure.realtime.change_feed import InMemoryChangeFeed, Subscription, SupabaseChangeFeed

logger = logging.getLogger(__name__)


class DirectMessagePanel:
    """One user's chat view: peer list, the open conversation and its live feed.

    The panel owns at most one realtime subscription, scoped to the selected
    peer. It is released before another peer is selected and on ``close()``.
    Sent messages are not appended locally; they show up when the insert
    comes back through the subscription.
    """

    def __init__(
        self,
        user_id: str,
        profiles: ProfileRepository,
        messages: MessageRepository,
        feed: InMemoryChangeFeed | SupabaseChangeFeed,
        access_token: str | None = None,
    ) -> None:
        self.user_id = user_id
        self.profiles = profiles
        self.message_repo = messages
        self.feed = feed
        self.access_token = access_token
        self.peers: list[ProfileEntity] = []
        self.peer: ProfileEntity | None = None
        self.messages: list[MessageEntity] = []
        self.loading = False
        self._seen: set[str] = set()
        self._subscription: Subscription | None = None
        self._generation = 0

    async def open(self) -> list[ProfileEntity]:
        self.peers = await asyncio.to_thread(self.profiles.list_except, self.user_id)
        return self.peers

    def _peer_profile(self, peer_id: str) -> ProfileEntity:
        for peer in self.peers:
            if peer.id == peer_id:
                return peer
        return ProfileEntity(id=peer_id)

    def _in_conversation(self, peer_id: str):
        user_id = self.user_id

        def matches(row: dict) -> bool:
            return (row.get("sender_id"), row.get("receiver_id")) in {
                (user_id, peer_id),
                (peer_id, user_id),
            }

        return matches

    def _append(self, message: MessageEntity) -> bool:
        if message.id in self._seen:
            return False
        self._seen.add(message.id)
        self.messages.append(message)
        return True

    async def select_peer(self, peer_id: str | None, *, live: bool = True) -> list[MessageEntity]:
        """Replace the visible conversation with the one held with ``peer_id``.

        With ``live`` the insert feed is subscribed before the history is
        loaded, so nothing inserted in between is missed; ids already shown
        are skipped.
        """
        await self._release()
        self._generation += 1
        generation = self._generation
        self.messages = []
        self._seen = set()
        self.peer = self._peer_profile(peer_id) if peer_id else None
        if peer_id is None:
            return self.messages

        self.loading = True
        if live:
            subscription = await self.feed.subscribe(
                "messages", self._in_conversation(peer_id), access_token=self.access_token
            )
            if generation != self._generation:
                await subscription.close()
                return self.messages
            self._subscription = subscription

        try:
            history = await asyncio.to_thread(self.message_repo.conversation, self.user_id, peer_id)
        finally:
            if generation == self._generation:
                self.loading = False
        if generation != self._generation:
            logger.debug("Dropping stale history for peer %s", peer_id)
            return self.messages
        for message in history:
            self._append(message)
        return self.messages

    async def incoming(self) -> AsyncIterator[MessageEntity]:
        """New messages of the open conversation, until it is closed or replaced."""
        subscription = self._subscription
        if subscription is None:
            return
        async for row in subscription:
            if subscription is not self._subscription:
                break
            message = self.message_repo.row_to_entity(row)
            if self._append(message):
                yield message

    async def send(self, content: str, peer_id: str | None = None) -> MessageEntity:
        """Insert a message to ``peer_id``, or to the selected peer when omitted."""
        receiver_id = peer_id or (self.peer.id if self.peer else None)
        if receiver_id is None:
            raise ValidationError("Select a user to chat with")
        if not content or not content.strip():
            raise ValidationError("Message cannot be empty")
        return await asyncio.to_thread(self.message_repo.create, self.user_id, receiver_id, content)

    async def _release(self) -> None:
        subscription, self._subscription = self._subscription, None
        if subscription is not None:
            await subscription.close()

    async def close(self) -> None:
        self._generation += 1
        await self._release()
        self.peer = None

    async def __aenter__(self) -> DirectMessagePanel:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()
