import asyncio
import threading
from datetime import UTC, datetime

import pytest

from blogweb.application.use_cases.post_feed import EMPTY_FEED_MESSAGE, FeedScope, PostFeed
from blogweb.domain.entities.post import PostEntity
from blogweb.domain.errors import BackendError
from blogweb.domain.services.feed_filter import FeedFilter
from blogweb.infrastructure.database.repositories.post_repository import PostRepository


@pytest.fixture()
def repo(backend):
    repo = PostRepository(backend)
    repo.create("alice", "First", "alice one")
    repo.create("bob", "Second", "bob one", image_url="/local-storage/post-images/x.png")
    repo.create("alice", "Third", "alice two")
    return repo


def titles(feed):
    return [p.title for p in feed.posts]


def test_mine_newest_first(repo):
    feed = PostFeed(repo, "alice")
    assert asyncio.run(feed.reload()) is True
    assert titles(feed) == ["Third", "First"]


def test_scope_all_and_sort_reversal(repo):
    feed = PostFeed(repo, "alice")

    async def scenario():
        await feed.reload()
        await feed.set_scope(FeedScope.ALL)
        newest = titles(feed)
        await feed.set_newest_first(False)
        return newest, titles(feed)

    newest, oldest = asyncio.run(scenario())
    assert newest == ["Third", "Second", "First"]
    assert oldest == list(reversed(newest))


def test_unchanged_setting_does_not_requery(repo):
    feed = PostFeed(repo, "alice")
    assert asyncio.run(feed.set_scope(FeedScope.MINE)) is False
    assert feed.posts == []


def test_refresh_picks_up_new_posts(repo):
    feed = PostFeed(repo, "alice")
    asyncio.run(feed.reload())
    repo.create("alice", "Fourth", "alice three")
    asyncio.run(feed.refresh())
    assert feed.refresh_token == 1
    assert titles(feed)[0] == "Fourth"


def test_filters_and_empty_message(repo):
    feed = PostFeed(repo, "bob", scope=FeedScope.ALL)
    asyncio.run(feed.reload())
    assert [p.title for p in feed.visible(FeedFilter(images_only=True))] == ["Second"]
    assert feed.empty_message(FeedFilter(search="alice")) is None
    assert feed.empty_message(FeedFilter(search="zzz")) == EMPTY_FEED_MESSAGE


def test_inactive_filter_shows_everything(repo):
    feed = PostFeed(repo, "bob", scope=FeedScope.ALL)
    asyncio.run(feed.reload())
    inactive = FeedFilter(search="   ")
    assert not inactive.is_active
    assert feed.visible(inactive) == feed.posts
    assert feed.visible(inactive) is not feed.posts


def test_mine_without_user_is_empty(repo):
    feed = PostFeed(repo, None)
    asyncio.run(feed.reload())
    assert feed.posts == []
    assert feed.empty_message() == EMPTY_FEED_MESSAGE


class SlowRepo:
    """Blocks the newest-first query until released."""

    def __init__(self):
        self.release = threading.Event()

    def list(self, owner_id=None, newest_first=True):
        if newest_first:
            self.release.wait(5)
            return [make_post("stale")]
        return [make_post("fresh")]


def make_post(title):
    return PostEntity(id=title, user_id="u1", title=title, content="", created_at=datetime.now(UTC))


def test_stale_response_is_dropped():
    repo = SlowRepo()
    feed = PostFeed(repo, "u1")

    async def scenario():
        first = asyncio.create_task(feed.reload())
        await asyncio.sleep(0)
        second = await feed.set_newest_first(False)
        repo.release.set()
        return await first, second

    first, second = asyncio.run(scenario())
    assert first is False
    assert second is True
    assert titles(feed) == ["fresh"]
    assert feed.loading is False


def test_backend_error_propagates():
    class FailingRepo:
        def list(self, owner_id=None, newest_first=True):
            raise BackendError("permission denied for table posts")

    feed = PostFeed(FailingRepo(), "u1")
    with pytest.raises(BackendError):
        asyncio.run(feed.reload())
    assert feed.loading is False
