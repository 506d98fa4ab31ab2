"""Elasticsearch-backed document store.

Each collection maps to an index (optionally prefixed).  The document id
is the Elasticsearch ``_id`` and is also stored in ``_source`` as ``id`` so
it can serve as a sort tie-breaker.

Indices are created with explicit mappings by
:meth:`ElasticsearchDocumentStore.ensure_indices`: identifiers are
``keyword`` so they can be sorted on and matched with ``term``, and
timestamps are ``date``.

Cursor-after is implemented as a keyset filter: the cursor document is
loaded, and only documents strictly after it in the requested sort order
are matched.  Because the cursor is a filter rather than ``search_after``,
``hits.total`` counts exactly the documents remaining after the cursor.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any

from elastic_transport import TransportError
from elasticsearch import ApiError

from ..elasticsearch import unwrap_es_response
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

logger = logging.getLogger(__name__)

# Matches the default page size of hosted document databases.
DEFAULT_LIST_LIMIT = 25

ID_FIELD = "id"

_KEYWORD = {"type": "keyword"}
_DATE = {"type": "date"}
_TIMESTAMPS = {"created_at": _DATE, "updated_at": _DATE}

INDEX_MAPPINGS: dict[str, dict] = {
    "posts": {
        "properties": {
            ID_FIELD: _KEYWORD,
            "creator": _KEYWORD,
            "caption": {"type": "text"},
            "image_id": _KEYWORD,
            "image_url": {"type": "keyword", "index": False},
            "location": {"type": "text"},
            "tags": _KEYWORD,
            "likes": _KEYWORD,
            **_TIMESTAMPS,
        }
    },
    "users": {
        "properties": {
            ID_FIELD: _KEYWORD,
            "account_id": _KEYWORD,
            "name": {"type": "text"},
            "username": _KEYWORD,
            "email": _KEYWORD,
            "image_url": {"type": "keyword", "index": False},
            "bio": {"type": "text"},
            **_TIMESTAMPS,
        }
    },
    "saves": {
        "properties": {
            ID_FIELD: _KEYWORD,
            "user": _KEYWORD,
            "post": _KEYWORD,
            **_TIMESTAMPS,
        }
    },
}


def _now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds")


def _keyset_after(sort: list[tuple[str, str]], values: list[Any]) -> dict:
    """Build a query matching documents strictly after *values* in *sort* order.

    For sort keys (k1, k2, ...) this is::

        k1 > v1  OR  (k1 == v1 AND k2 > v2)  OR  ...

    with ``>`` flipped to ``<`` for descending keys.
    """
    clauses = []
    for i, (field, direction) in enumerate(sort):
        op = "lt" if direction == "desc" else "gt"
        must: list[dict] = [{"term": {f: v}} for (f, _), v in zip(sort[:i], values[:i])]
        must.append({"range": {field: {op: values[i]}}})
        clauses.append({"bool": {"filter": must}})
    return {"bool": {"should": clauses, "minimum_should_match": 1}}


def _hit_to_document(hit: dict) -> Document:
    src = dict(hit.get("_source") or {})
    src[ID_FIELD] = hit.get("_id", src.get(ID_FIELD))
    return src


class ElasticsearchDocumentStore(DocumentStore):
    """:class:`DocumentStore` on top of an ``AsyncElasticsearch`` client."""

    def __init__(self, es, index_prefix: str = "", refresh: str = "wait_for"):
        self._es = es
        self._index_prefix = index_prefix
        self._refresh = refresh

    def _index(self, collection: str) -> str:
        return f"{self._index_prefix}{collection}"

    async def ensure_indices(self, mappings: dict[str, dict] | None = None) -> list[str]:
        """Create any missing index with its mapping; returns the indices created.

        Existing indices are left untouched.
        """
        created = []
        for collection, mapping in (mappings or INDEX_MAPPINGS).items():
            index = self._index(collection)
            try:
                resp = await self._es.options(ignore_status=400).indices.create(index=index, mappings=mapping)
            except (ApiError, TransportError) as exc:
                logger.warning("Creating index %s failed: %s", index, exc)
                raise StoreUnavailable(f"create index {index} failed") from exc

            error = unwrap_es_response(resp).get("error")
            if not error:
                logger.info("Created index %s", index)
                created.append(index)
                continue
            error_type = error.get("type") if isinstance(error, dict) else str(error)
            if error_type != "resource_already_exists_exception":
                logger.error("Creating index %s was rejected: %s", index, error)
                raise StoreUnavailable(f"create index {index} rejected: {error_type}")
            logger.debug("Index %s already exists", index)
        return created

    # -- reads ---------------------------------------------------------------

    async def get_document(self, collection: str, document_id: str) -> Document:
        try:
            resp = await self._es.options(ignore_status=404).get(
                index=self._index(collection), id=document_id
            )
        except (ApiError, TransportError) as exc:
            logger.warning("Elasticsearch get %s/%s failed: %s", collection, document_id, exc)
            raise StoreUnavailable(f"get {collection}/{document_id} failed") from exc

        data = unwrap_es_response(resp)
        if not data.get("found"):
            raise DocumentNotFound(collection, document_id)
        return _hit_to_document(data)

    async def list_documents(self, collection: str, filters: list[Filter] | None = None) -> DocumentList:
        filters = filters or []
        must: list[dict] = []
        query_filter: list[dict] = []
        sort: list[tuple[str, str]] = []
        size = DEFAULT_LIST_LIMIT
        cursor: str | None = None

        for f in filters:
            if isinstance(f, Equal):
                query_filter.append({"term": {f.field: f.value}})
            elif isinstance(f, Search):
                must.append({"match": {f.field: f.term}})
            elif isinstance(f, OrderBy):
                sort.append((f.field, f.direction))
            elif isinstance(f, Limit):
                size = f.count
            elif isinstance(f, CursorAfter):
                cursor = f.document_id
            else:
                raise TypeError(f"Unsupported filter: {f!r}")

        # The id tie-breaker makes the order total, so a cursor never skips
        # or repeats documents that share a timestamp.
        if not any(field == ID_FIELD for field, _ in sort):
            sort.append((ID_FIELD, sort[0][1] if sort else "asc"))

        if cursor is not None:
            anchor = await self.get_document(collection, cursor)
            query_filter.append(_keyset_after(sort, [anchor.get(field) for field, _ in sort]))

        query = {"bool": {"must": must or [{"match_all": {}}], "filter": query_filter}}

        try:
            resp = await self._es.search(
                index=self._index(collection),
                query=query,
                sort=[{field: {"order": direction}} for field, direction in sort],
                size=size,
                track_total_hits=True,
            )
        except (ApiError, TransportError) as exc:
            logger.warning("Elasticsearch search on %s failed: %s", collection, exc)
            raise StoreUnavailable(f"list {collection} failed") from exc

        data = unwrap_es_response(resp)
        hits = data.get("hits", {})
        total = hits.get("total", {})
        return DocumentList(
            documents=[_hit_to_document(hit) for hit in hits.get("hits", [])],
            total=total.get("value", 0) if isinstance(total, dict) else int(total or 0),
        )

    # -- writes --------------------------------------------------------------

    async def create_document(self, collection: str, document_id: str | None, fields: Document) -> Document:
        document_id = document_id or uuid.uuid4().hex
        now = _now()
        doc = {**fields, ID_FIELD: document_id, "created_at": now, "updated_at": now}
        try:
            await self._es.index(
                index=self._index(collection), id=document_id, document=doc, refresh=self._refresh
            )
        except (ApiError, TransportError) as exc:
            logger.warning("Elasticsearch index into %s failed: %s", collection, exc)
            raise StoreUnavailable(f"create {collection} failed") from exc
        return doc

    async def update_document(self, collection: str, document_id: str, fields: Document) -> Document:
        partial = {k: v for k, v in fields.items() if k not in (ID_FIELD, "created_at")}
        partial["updated_at"] = _now()
        try:
            resp = await self._es.options(ignore_status=404).update(
                index=self._index(collection),
                id=document_id,
                doc=partial,
                refresh=self._refresh,
                source=True,
            )
        except (ApiError, TransportError) as exc:
            logger.warning("Elasticsearch update %s/%s failed: %s", collection, document_id, exc)
            raise StoreUnavailable(f"update {collection}/{document_id} failed") from exc

        data = unwrap_es_response(resp)
        if data.get("result") == "not_found" or data.get("status") == 404:
            raise DocumentNotFound(collection, document_id)
        source = (data.get("get") or {}).get("_source")
        if source is None:
            return await self.get_document(collection, document_id)
        return {**source, ID_FIELD: document_id}

    async def delete_document(self, collection: str, document_id: str) -> None:
        try:
            resp = await self._es.options(ignore_status=404).delete(
                index=self._index(collection), id=document_id, refresh=self._refresh
            )
        except (ApiError, TransportError) as exc:
            logger.warning("Elasticsearch delete %s/%s failed: %s", collection, document_id, exc)
            raise StoreUnavailable(f"delete {collection}/{document_id} failed") from exc

        if unwrap_es_response(resp).get("result") == "not_found":
            raise DocumentNotFound(collection, document_id)
