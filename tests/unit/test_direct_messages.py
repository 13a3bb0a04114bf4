import asyncio

import pytest

from blogweb.application.use_cases.direct_messages import DirectMessagePanel
from blogweb.domain.errors import ValidationError
from blogweb.infrastructure.database.repositories.message_repository import MessageRepository
from blogweb.infrastructure.database.repositories.profile_repository import ProfileRepository


@pytest.fixture()
def profiles(backend):
    repo = ProfileRepository(backend)
    repo.upsert("alice", "alice", None)
    repo.upsert("bob", "bob", None)
    repo.upsert("carol", None, None)
    return repo


@pytest.fixture()
def messages(backend):
    return MessageRepository(backend)


def make_panel(backend, profiles, messages, user_id="alice"):
    return DirectMessagePanel(user_id, profiles, messages, backend.realtime)


async def next_message(panel, timeout=1):
    return await asyncio.wait_for(anext(panel.incoming()), timeout)


def test_peers_exclude_self(backend, profiles, messages):
    async def scenario():
        async with make_panel(backend, profiles, messages) as panel:
            return await panel.open()

    peers = asyncio.run(scenario())
    assert sorted(p.id for p in peers) == ["bob", "carol"]
    assert {p.id: p.display_name for p in peers}["carol"] == "carol"


def test_history_is_both_directions_oldest_first(backend, profiles, messages):
    messages.create("alice", "bob", "one")
    messages.create("bob", "alice", "two")
    messages.create("alice", "carol", "elsewhere")
    messages.create("alice", "bob", "three")

    async def scenario():
        async with make_panel(backend, profiles, messages) as panel:
            await panel.open()
            history = await panel.select_peer("bob", live=False)
            return [m.content for m in history], panel.peer

    contents, peer = asyncio.run(scenario())
    assert contents == ["one", "two", "three"]
    assert peer.username == "bob"


def test_send_validation(backend, profiles, messages):
    async def scenario():
        async with make_panel(backend, profiles, messages) as panel:
            with pytest.raises(ValidationError, match="Select a user to chat with"):
                await panel.send("hello")
            await panel.select_peer("bob", live=False)
            with pytest.raises(ValidationError, match="Message cannot be empty"):
                await panel.send("   ")

    asyncio.run(scenario())
    assert backend.memory.select("messages") == []


def test_live_messages_in_both_directions(backend, profiles, messages):
    async def scenario():
        async with make_panel(backend, profiles, messages) as panel:
            await panel.open()
            await panel.select_peer("bob")
            sent = await panel.send("hi bob")
            # the sender sees the message only through the feed
            assert [m.id for m in panel.messages] == []
            first = await next_message(panel)
            await asyncio.to_thread(messages.create, "carol", "alice", "not this conversation")
            await asyncio.to_thread(messages.create, "bob", "alice", "hi alice")
            second = await next_message(panel)
            return sent, first, second, [m.content for m in panel.messages]

    sent, first, second, contents = asyncio.run(scenario())
    assert first.id == sent.id
    assert second.content == "hi alice"
    assert contents == ["hi bob", "hi alice"]


def test_subscription_follows_selected_peer(backend, profiles, messages):
    memory = backend.memory

    async def scenario():
        panel = make_panel(backend, profiles, messages)
        await panel.open()
        await panel.select_peer("bob")
        counts = [memory.listener_count("messages")]
        await panel.select_peer("carol")
        counts.append(memory.listener_count("messages"))
        await asyncio.to_thread(messages.create, "bob", "alice", "for the old conversation")
        await asyncio.to_thread(messages.create, "carol", "alice", "for the new one")
        received = await next_message(panel)
        await panel.select_peer(None)
        counts.append(memory.listener_count("messages"))
        await panel.select_peer("bob")
        await panel.close()
        counts.append(memory.listener_count("messages"))
        return counts, received

    counts, received = asyncio.run(scenario())
    assert counts == [1, 1, 0, 0]
    assert received.content == "for the new one"


class RacingMessageRepository(MessageRepository):
    """Inserts a message while the history query is in flight."""

    def conversation(self, user_id, peer_id):
        self.create(peer_id, user_id, "arrived during load")
        return super().conversation(user_id, peer_id)


def test_message_inserted_during_history_load_is_shown_once(backend, profiles):
    messages = RacingMessageRepository(backend)

    async def scenario():
        async with make_panel(backend, profiles, messages) as panel:
            await panel.open()
            history = [m.content for m in await panel.select_peer("bob")]
            await asyncio.to_thread(messages.create, "bob", "alice", "after load")
            received = await next_message(panel)
            return history, received, [m.content for m in panel.messages]

    history, received, contents = asyncio.run(scenario())
    assert history == ["arrived during load"]
    assert received.content == "after load"
    assert contents == ["arrived during load", "after load"]


def test_both_participants_see_each_message_once_in_order(backend, profiles, messages):
    async def collect(panel, count):
        return [await next_message(panel) for _ in range(count)]

    async def scenario():
        async with make_panel(backend, profiles, messages, "alice") as alice, make_panel(
            backend, profiles, messages, "bob"
        ) as bob:
            await alice.select_peer("bob")
            await bob.select_peer("alice")
            sent = [
                await alice.send("one"),
                await bob.send("two"),
                await alice.send("three"),
            ]
            alice_seen = await collect(alice, 3)
            bob_seen = await collect(bob, 3)
            sent.append(await asyncio.to_thread(messages.create, "alice", "bob", "four"))
            alice_seen += await collect(alice, 1)
            bob_seen += await collect(bob, 1)
            for panel in (alice, bob):
                with pytest.raises(asyncio.TimeoutError):
                    await next_message(panel, timeout=0.1)
            return sent, alice_seen, bob_seen, alice.messages, bob.messages

    sent, alice_seen, bob_seen, alice_view, bob_view = asyncio.run(scenario())
    expected = [m.id for m in sent]
    assert [m.id for m in alice_seen] == expected
    assert [m.id for m in bob_seen] == expected
    assert [m.id for m in alice_view] == expected
    assert [m.id for m in bob_view] == expected
    assert [m.content for m in alice_view] == ["one", "two", "three", "four"]
    assert [m.created_at for m in bob_view] == sorted(m.created_at for m in bob_view)
