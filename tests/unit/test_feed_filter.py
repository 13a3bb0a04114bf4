from datetime import UTC, datetime

from blogweb.domain.entities.post import PostEntity
from blogweb.domain.services.feed_filter import FeedFilter


def make_post(title, content="", image_url=None, pid="p"):
    return PostEntity(
        id=pid,
        user_id="u1",
        title=title,
        content=content,
        created_at=datetime(2024, 1, 1, tzinfo=UTC),
        image_url=image_url,
    )


POSTS = [
    make_post("Hello World", "first post", pid="1"),
    make_post("Cooking", "How to bake bread", image_url="https://x/bread.png", pid="2"),
    make_post("Travel", "Notes from Lisbon", pid="3"),
]


def test_empty_filter_keeps_everything():
    f = FeedFilter()
    assert not f.is_active
    assert [p.id for p in f.apply(POSTS)] == ["1", "2", "3"]


def test_search_is_case_insensitive_on_title_and_content():
    assert [p.id for p in FeedFilter(search="hello").apply(POSTS)] == ["1"]
    assert [p.id for p in FeedFilter(search="BREAD").apply(POSTS)] == ["2"]
    assert FeedFilter(search="nothing like this").apply(POSTS) == []


def test_whitespace_only_search_is_ignored():
    f = FeedFilter(search="   ")
    assert not f.is_active
    assert len(f.apply(POSTS)) == 3


def test_images_only():
    assert [p.id for p in FeedFilter(images_only=True).apply(POSTS)] == ["2"]


def test_criteria_combine():
    assert FeedFilter(search="lisbon", images_only=True).apply(POSTS) == []
    assert [p.id for p in FeedFilter(search="bake", images_only=True).apply(POSTS)] == ["2"]
