import asyncio

from blogweb.infrastructure.database.memory_store import MemoryStore
from blogweb.infrastructure.realtime.change_feed import InMemoryChangeFeed, inserted_record


def test_subscription_receives_matching_inserts():
    memory = MemoryStore()
    feed = InMemoryChangeFeed(memory)

    async def scenario():
        async with await feed.subscribe("messages", lambda r: r["receiver_id"] == "bob") as sub:
            memory.insert("messages", {"sender_id": "a", "receiver_id": "carol", "content": "skip"})
            memory.insert("messages", {"sender_id": "a", "receiver_id": "bob", "content": "hi"})
            return await asyncio.wait_for(sub.get(), 1)

    row = asyncio.run(scenario())
    assert row["content"] == "hi"
    assert row["id"]
    assert row["created_at"]


def test_delivery_from_worker_thread():
    memory = MemoryStore()
    feed = InMemoryChangeFeed(memory)

    async def scenario():
        async with await feed.subscribe("posts") as sub:
            await asyncio.to_thread(memory.insert, "posts", {"user_id": "u1", "title": "t"})
            return await asyncio.wait_for(sub.get(), 1)

    assert asyncio.run(scenario())["title"] == "t"


def test_close_releases_listener_and_ends_iteration():
    memory = MemoryStore()
    feed = InMemoryChangeFeed(memory)

    async def scenario():
        sub = await feed.subscribe("messages")
        assert memory.listener_count("messages") == 1
        await sub.close()
        await sub.close()
        memory.insert("messages", {"sender_id": "a", "receiver_id": "b", "content": "late"})
        return [row async for row in sub]

    assert asyncio.run(scenario()) == []
    assert memory.listener_count("messages") == 0


def test_inserted_record_payload_shapes():
    row = {"id": "1"}
    assert inserted_record({"data": {"record": row}}) == row
    assert inserted_record({"new": row}) == row
    assert inserted_record({"data": {"type": "DELETE"}}) is None
