"""In-memory document store.

Implements the same ordering, cursor and total semantics as the
Elasticsearch store.  Used as the store double in tests and for running
the API locally without a cluster.

Every call is recorded in :attr:`InMemoryDocumentStore.calls`, and
:meth:`InMemoryDocumentStore.fail` makes an operation raise
``StoreUnavailable`` so failure paths can be exercised.
"""

import asyncio
import copy
import itertools
from datetime import datetime, timedelta, timezone

from ..errors import DocumentNotFound, StoreUnavailable
from .base import (
    CursorAfter,
    Document,
    DocumentList,
    DocumentStore,
    Equal,
    Filter,
    Limit,
    OrderBy,
    Search,
)

DEFAULT_LIST_LIMIT = 25

_EPOCH = datetime(2024, 1, 1, tzinfo=timezone.utc)


class InMemoryDocumentStore(DocumentStore):

    def __init__(self, latency: float = 0.0):
        self.collections: dict[str, dict[str, Document]] = {}
        self.calls: list[tuple] = []
        self._latency = latency
        self._failures: dict[tuple[str, str | None], BaseException] = {}
        self._ids = itertools.count(1)
        # Monotonic fake clock so timestamps are strictly increasing.
        self._ticks = itertools.count(1)

    # -- test hooks ----------------------------------------------------------

    def fail(self, operation: str, collection: str | None = None, exc: BaseException | None = None) -> None:
        """Make *operation* (e.g. ``"update"``) raise until :meth:`recover`."""
        self._failures[(operation, collection)] = exc or StoreUnavailable(f"{operation} unavailable")

    def recover(self) -> None:
        self._failures.clear()

    def calls_for(self, operation: str, collection: str | None = None) -> list[tuple]:
        return [c for c in self.calls if c[0] == operation and (collection is None or c[1] == collection)]

    def seed(self, collection: str, document: Document) -> Document:
        """Insert a document verbatim, without recording a call."""
        doc = copy.deepcopy(document)
        self.collections.setdefault(collection, {})[doc["id"]] = doc
        return doc

    async def _enter(self, operation: str, collection: str, *args) -> None:
        self.calls.append((operation, collection, *args))
        if self._latency:
            await asyncio.sleep(self._latency)
        for key in ((operation, collection), (operation, None)):
            if key in self._failures:
                raise self._failures[key]

    def _now(self) -> str:
        return (_EPOCH + timedelta(seconds=next(self._ticks))).isoformat()

    # -- reads ---------------------------------------------------------------

    async def get_document(self, collection: str, document_id: str) -> Document:
        await self._enter("get", collection, document_id)
        try:
            return copy.deepcopy(self.collections[collection][document_id])
        except KeyError:
            raise DocumentNotFound(collection, document_id) from None

    async def list_documents(self, collection: str, filters: list[Filter] | None = None) -> DocumentList:
        filters = list(filters or [])
        await self._enter("list", collection, tuple(filters))

        docs = list(self.collections.get(collection, {}).values())
        sort: list[OrderBy] = []
        size = DEFAULT_LIST_LIMIT
        cursor = None
        for f in filters:
            if isinstance(f, Equal):
                docs = [d for d in docs if _matches(d.get(f.field), f.value)]
            elif isinstance(f, Search):
                needle = f.term.lower()
                docs = [d for d in docs if needle in str(d.get(f.field) or "").lower()]
            elif isinstance(f, OrderBy):
                sort.append(f)
            elif isinstance(f, Limit):
                size = f.count
            elif isinstance(f, CursorAfter):
                cursor = f.document_id
            else:
                raise TypeError(f"Unsupported filter: {f!r}")

        if not any(o.field == "id" for o in sort):
            sort.append(OrderBy("id", sort[0].direction if sort else "asc"))
        # Stable multi-key sort: apply keys from least to most significant.
        # Missing values go last in both directions, as in Elasticsearch.
        for order in reversed(sort):
            present = [d for d in docs if d.get(order.field) is not None]
            missing = [d for d in docs if d.get(order.field) is None]
            present.sort(key=lambda d: d[order.field], reverse=order.direction == "desc")
            docs = present + missing

        if cursor is not None:
            ids = [d["id"] for d in docs]
            if cursor not in self.collections.get(collection, {}):
                raise DocumentNotFound(collection, cursor)
            docs = docs[ids.index(cursor) + 1:] if cursor in ids else []

        return DocumentList(documents=copy.deepcopy(docs[:size]), total=len(docs))

    # -- writes --------------------------------------------------------------

    async def create_document(self, collection: str, document_id: str | None, fields: Document) -> Document:
        await self._enter("create", collection, document_id, copy.deepcopy(fields))
        document_id = document_id or f"{collection}-{next(self._ids)}"
        now = self._now()
        doc = {**copy.deepcopy(fields), "id": document_id, "created_at": now, "updated_at": now}
        self.collections.setdefault(collection, {})[document_id] = doc
        return copy.deepcopy(doc)

    async def update_document(self, collection: str, document_id: str, fields: Document) -> Document:
        await self._enter("update", collection, document_id, copy.deepcopy(fields))
        try:
            doc = self.collections[collection][document_id]
        except KeyError:
            raise DocumentNotFound(collection, document_id) from None
        doc.update({k: copy.deepcopy(v) for k, v in fields.items() if k not in ("id", "created_at")})
        doc["updated_at"] = self._now()
        return copy.deepcopy(doc)

    async def delete_document(self, collection: str, document_id: str) -> None:
        await self._enter("delete", collection, document_id)
        try:
            del self.collections[collection][document_id]
        except KeyError:
            raise DocumentNotFound(collection, document_id) from None


def _matches(actual, expected) -> bool:
    if isinstance(actual, list):
        return expected in actual
    # Embedded relation: compare by the related document's id.
    if isinstance(actual, dict):
        return actual.get("id") == expected
    return actual == expected
