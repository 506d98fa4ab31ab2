"""Cursor-based pagination over the posts collection.

Pages are ordered newest first by ``updated_at``.  The cursor for the next
page is the id of the last post of the current page; ids are stable
primary keys, while timestamps can collide.  Strict "after the cursor"
ordering is delegated to the store, so every call sends the same order
and page size.

``fetch_page`` never raises: a store failure comes back as ``PageErr``
so callers can tell "no more posts" apart from "fetch failed".  Use
``PageResult.page_or_empty()`` at the display boundary.
"""

import logging
from typing import AsyncIterator

from ..models import Page, PageErr, PageOk, PageResult
from .cache import QueryCache, QueryKeys
from .errors import PageFetchError
from .projection import PostProjector
from .store import DocumentStore, Query

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 10
POSTS_COLLECTION = "posts"


class PaginationEngine:
    """Forward-only, restartable traversal of the post feed."""

    def __init__(
        self,
        store: DocumentStore,
        projector: PostProjector,
        page_size: int = DEFAULT_PAGE_SIZE,
        collection: str = POSTS_COLLECTION,
        order_field: str = "updated_at",
    ):
        if page_size < 1:
            raise ValueError("page_size must be positive")
        self._store = store
        self._projector = projector
        self.page_size = page_size
        self.collection = collection
        self.order_field = order_field

    def _filters(self, cursor: str | None) -> list:
        filters = [Query.order_desc(self.order_field), Query.limit(self.page_size)]
        if cursor:
            filters.append(Query.cursor_after(cursor))
        return filters

    async def fetch_page(self, cursor: str | None = None) -> PageResult:
        """Fetch the page after *cursor*, or the newest page when it is ``None``."""
        try:
            result = await self._store.list_documents(self.collection, self._filters(cursor))
            documents = await self._projector.project_many(result.documents)
        except Exception as exc:
            logger.exception("Fetching page after cursor %r failed", cursor)
            return PageErr(cursor=cursor, reason=str(exc) or type(exc).__name__)

        return PageOk(page=Page(documents=documents, total=result.total, cursor=cursor))

    @staticmethod
    def next_cursor(page: Page) -> str | None:
        """Cursor for the page following *page*, or ``None`` at the end of the feed."""
        if not page.documents:
            return None
        return page.documents[-1].id

    async def iter_pages(self, start: str | None = None) -> AsyncIterator[Page]:
        """Yield non-empty pages until the feed is exhausted.

        Raises ``PageFetchError`` if a page fails, rather than ending early.
        """
        cursor = start
        while True:
            result = await self.fetch_page(cursor)
            if isinstance(result, PageErr):
                raise PageFetchError(cursor, result.reason)
            page = result.page
            cursor = self.next_cursor(page)
            if cursor is None:
                return
            yield page

    async def cached_page(self, cache: QueryCache, cursor: str | None = None) -> PageResult:
        """Fetch a page through *cache*; failures are never cached."""
        return await cache.get_or_fetch(
            QueryKeys.infinite_posts(cursor or ""),
            lambda: self.fetch_page(cursor),
            should_cache=lambda result: isinstance(result, PageOk),
        )
