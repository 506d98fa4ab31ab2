"""Query cache shared by the feed readers and the mutators.

Entries are keyed by a tuple ``(query_name, *params)``.  Readers go through
:meth:`QueryCache.get_or_fetch`, which returns a fresh cached value or runs
the loader; concurrent readers of the same key share one in-flight load.
Writers never patch cached values: they call :meth:`QueryCache.invalidate`
and the next read re-fetches from the store.

Invalidation matches by prefix, so ``invalidate(QueryKeys.POST_BY_ID)``
drops every ``("postById", <id>)`` entry.  The number of entries is capped;
the oldest entries are evicted first.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

logger = logging.getLogger(__name__)

QueryKey = tuple

DEFAULT_MAX_ENTRIES = 1024


class QueryKeys:
    """Key space used by the feed layer."""

    RECENT_POSTS = "recentPosts"
    CURRENT_USER = "currentUser"
    POST_BY_ID = "postById"
    INFINITE_POSTS = "infinitePosts"
    SEARCH_POSTS = "searchPosts"

    @staticmethod
    def recent_posts() -> QueryKey:
        return (QueryKeys.RECENT_POSTS,)

    @staticmethod
    def current_user(account_id: str | None = None) -> QueryKey:
        return (QueryKeys.CURRENT_USER,) if account_id is None else (QueryKeys.CURRENT_USER, account_id)

    @staticmethod
    def post_by_id(post_id: str | None = None) -> QueryKey:
        return (QueryKeys.POST_BY_ID,) if post_id is None else (QueryKeys.POST_BY_ID, post_id)

    @staticmethod
    def infinite_posts(cursor: str | None = None) -> QueryKey:
        return (QueryKeys.INFINITE_POSTS,) if cursor is None else (QueryKeys.INFINITE_POSTS, cursor)

    @staticmethod
    def search_posts(term: str) -> QueryKey:
        return (QueryKeys.SEARCH_POSTS, term)


def _as_key(key) -> QueryKey:
    return key if isinstance(key, tuple) else (key,)


@dataclass
class _Entry:
    value: Any
    stored_at: float


class QueryCache:
    """In-process keyed cache with prefix invalidation and request de-duplication.

    ``default_ttl`` is in seconds; ``None`` keeps entries until invalidated
    or evicted.
    """

    def __init__(self, default_ttl: float | None = None, max_entries: int = DEFAULT_MAX_ENTRIES):
        if max_entries < 1:
            raise ValueError("max_entries must be positive")
        self.default_ttl = default_ttl
        self.max_entries = max_entries
        self._entries: dict[QueryKey, _Entry] = {}
        self._inflight: dict[QueryKey, asyncio.Future] = {}
        # Bumped per key on invalidation so a load that started before the
        # invalidation is not stored.
        self._generations: dict[QueryKey, int] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def _fresh(self, entry: _Entry) -> bool:
        if self.default_ttl is None:
            return True
        return time.monotonic() - entry.stored_at < self.default_ttl

    def peek(self, key) -> Any | None:
        """Return the cached value for *key* if fresh, without loading."""
        entry = self._entries.get(_as_key(key))
        if entry is None or not self._fresh(entry):
            return None
        return entry.value

    def is_stale(self, key) -> bool:
        entry = self._entries.get(_as_key(key))
        return entry is None or not self._fresh(entry)

    def _store(self, key: QueryKey, value: Any) -> None:
        self._entries.pop(key, None)
        self._entries[key] = _Entry(value, time.monotonic())
        while len(self._entries) > self.max_entries:
            del self._entries[next(iter(self._entries))]

    def set(self, key, value: Any) -> None:
        self._store(_as_key(key), value)

    async def get_or_fetch(
        self,
        key,
        loader: Callable[[], Awaitable[Any]],
        should_cache: Callable[[Any], bool] | None = None,
    ) -> Any:
        """Return the fresh value for *key*, loading it at most once concurrently.

        *should_cache* can veto storing a result (e.g. failed page results).
        Loader exceptions propagate to every waiter and nothing is stored.
        """
        key = _as_key(key)
        entry = self._entries.get(key)
        if entry is not None and self._fresh(entry):
            return entry.value

        pending = self._inflight.get(key)
        if pending is not None:
            logger.debug("Joining in-flight load for %s", key)
            return await asyncio.shield(pending)

        generation = self._generations.get(key, 0)
        task = asyncio.ensure_future(loader())
        self._inflight[key] = task
        try:
            value = await task
        finally:
            if self._inflight.get(key) is task:
                del self._inflight[key]
            invalidated = self._generations.get(key, 0) != generation
            if key not in self._inflight:
                self._generations.pop(key, None)

        if invalidated:
            logger.debug("Discarding load for %s invalidated while in flight", key)
        elif should_cache is None or should_cache(value):
            self._store(key, value)
        return value

    def invalidate(self, key) -> int:
        """Drop every entry whose key starts with *key*.

        Returns the number of entries dropped.
        """
        prefix = _as_key(key)
        n = len(prefix)
        matched = [k for k in self._entries if k[:n] == prefix]
        for k in matched:
            del self._entries[k]
        count = len(matched)
        for k in self._inflight:
            if k[:n] == prefix:
                self._generations[k] = self._generations.get(k, 0) + 1
        logger.debug("Invalidated %d cache entries for %s", count, prefix)
        return count

    def clear(self) -> None:
        self._entries.clear()
