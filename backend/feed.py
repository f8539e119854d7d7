"""Chronological post feed, one page at a time."""

import abc
import base64
import binascii
import json
from dataclasses import dataclass
from typing import Collection, List, Optional

import structlog
from pydantic import ValidationError

from config import FOLLOWING_FEED_SCAN_LIMIT, POSTS_COLLECTION, POSTS_PAGE_SIZE
from document_client import DocumentClient, PageCursor
from exceptions import RemoteUnavailable
from models import Post
from result import Error, Result, Success, invalid

logger = structlog.get_logger(__name__)


@dataclass
class FeedPage:
    posts: List[Post]
    next_cursor: Optional[PageCursor]
    page_size: int

    @property
    def maybe_more(self) -> bool:
        # A short page is taken to mean the end; a full one may or may not be.
        return self.next_cursor is not None and len(self.posts) >= self.page_size


class FeedPaginator:
    def __init__(self, client: DocumentClient):
        self.client = client

    async def list_page(self, page_size: int = POSTS_PAGE_SIZE, cursor: Optional[PageCursor] = None) -> Result:
        """Posts newest first. Returns ``Success(FeedPage)``."""
        if page_size <= 0:
            return invalid("Page size must be positive")
        try:
            docs, next_cursor = await self.client.query_page(
                POSTS_COLLECTION, "timestamp", "desc", page_size, after=cursor
            )
        except RemoteUnavailable as e:
            logger.warning("feed_page_failed", error=e.message)
            return Error(e.message)
        try:
            posts = [Post.model_validate(d) for d in docs]
        except ValidationError:
            return invalid("Failed to parse posts")
        return Success(FeedPage(posts=posts, next_cursor=next_cursor, page_size=page_size))


class FollowingFeedSource(abc.ABC):
    """Posts written by a given set of authors, newest first."""

    @abc.abstractmethod
    async def posts_by(self, author_ids: Collection[str]) -> Result: ...


class ClientFilteredFollowingFeed(FollowingFeedSource):
    """Scans one bounded page of the global feed and filters it in memory.

    Posts older than the scanned window are silently missing. Swap this class for
    an indexed query or a fan-out-on-write source when that matters.
    """

    def __init__(self, paginator: FeedPaginator, scan_limit: int = FOLLOWING_FEED_SCAN_LIMIT):
        self.paginator = paginator
        self.scan_limit = scan_limit

    async def posts_by(self, author_ids):
        authors = set(author_ids)
        if not authors:
            return Success([])
        page = await self.paginator.list_page(self.scan_limit)
        if not page.is_success:
            return page
        return Success([p for p in page.data.posts if p.userId in authors])


def encode_cursor(cursor: PageCursor) -> str:
    raw = json.dumps([cursor.value, cursor.id]).encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("ascii")


def decode_cursor(token: str) -> PageCursor:
    try:
        value, doc_id = json.loads(base64.urlsafe_b64decode(token.encode("ascii")))
    except (binascii.Error, UnicodeError, ValueError, TypeError) as e:
        raise ValueError("Invalid cursor") from e
    return PageCursor(value=value, id=str(doc_id))
