import pytest

from config import POSTS_COLLECTION
from document_client import PageCursor
from feed import FeedPaginator, decode_cursor, encode_cursor
from result import ErrorKind


def _seed(client, count, timestamp=None):
    for i in range(count):
        pid = f"post-{i:03d}"
        client.collections[POSTS_COLLECTION][pid] = {
            "id": pid,
            "userId": "u",
            "content": str(i),
            "timestamp": timestamp if timestamp is not None else 1000 + i,
        }


async def _walk(paginator, page_size):
    pages, cursor = [], None
    while True:
        result = await paginator.list_page(page_size, cursor)
        assert result.is_success
        pages.append(result.data)
        if not result.data.maybe_more:
            return pages
        cursor = result.data.next_cursor


@pytest.mark.asyncio
async def test_pages_are_newest_first_without_overlap(client):
    _seed(client, 7)

    pages = await _walk(FeedPaginator(client), 3)

    ids = [p.id for page in pages for p in page.posts]
    assert [len(page.posts) for page in pages] == [3, 3, 1]
    assert len(set(ids)) == 7
    timestamps = [p.timestamp for page in pages for p in page.posts]
    assert timestamps == sorted(timestamps, reverse=True)


@pytest.mark.asyncio
async def test_equal_timestamps_do_not_skip_posts(client):
    _seed(client, 5, timestamp=42)

    pages = await _walk(FeedPaginator(client), 2)

    assert sorted(p.id for page in pages for p in page.posts) == [f"post-{i:03d}" for i in range(5)]


@pytest.mark.asyncio
async def test_short_page_means_no_more(client):
    _seed(client, 2)

    page = (await FeedPaginator(client).list_page(5)).data

    assert len(page.posts) == 2
    assert page.maybe_more is False


@pytest.mark.asyncio
async def test_full_last_page_may_be_followed_by_empty_page(client):
    _seed(client, 4)
    paginator = FeedPaginator(client)

    first = (await paginator.list_page(4)).data
    assert first.maybe_more is True

    last = (await paginator.list_page(4, first.next_cursor)).data
    assert last.posts == []
    assert last.maybe_more is False


@pytest.mark.asyncio
async def test_page_size_must_be_positive(client):
    result = await FeedPaginator(client).list_page(0)
    assert result.kind == ErrorKind.INVALID


@pytest.mark.asyncio
async def test_remote_failure_is_reported(client):
    client.offline = True
    result = await FeedPaginator(client).list_page(10)
    assert result.kind == ErrorKind.REMOTE_UNAVAILABLE


def test_cursor_token():
    cursor = PageCursor(value=1700000000000, id="post-001")
    assert decode_cursor(encode_cursor(cursor)) == cursor


@pytest.mark.parametrize("token", ["not base64!!", "bm90IGpzb24=", "WzFd"])
def test_bad_cursor_token_is_rejected(token):
    with pytest.raises(ValueError, match="Invalid cursor"):
        decode_cursor(token)
