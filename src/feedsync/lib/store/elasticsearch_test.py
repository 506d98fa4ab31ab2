"""Tests for the Elasticsearch document store."""

import pytest
from elastic_transport import ConnectionError as TransportConnectionError

from ..errors import DocumentNotFound, StoreUnavailable
from .base import Query
from .elasticsearch import INDEX_MAPPINGS, ElasticsearchDocumentStore, _keyset_after


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

class FakeEs:
    """Configurable fake AsyncElasticsearch client for unit tests."""

    def __init__(self, docs: dict | None = None, search_response: dict | None = None):
        # Map of (index, id) -> _source
        self.docs = docs or {}
        self.search_response = search_response or {"hits": {"total": {"value": 0}, "hits": []}}
        self.calls: list[dict] = []
        self.raise_on: set[str] = set()
        self.options_calls: list[dict] = []
        self.existing_indices: set[str] = set()
        self.indices = FakeIndices(self)

    def options(self, **kwargs):
        self.options_calls.append(kwargs)
        return self

    def _check(self, op):
        if op in self.raise_on:
            raise TransportConnectionError("connection refused")

    async def get(self, *, index, id):
        self.calls.append({"op": "get", "index": index, "id": id})
        self._check("get")
        if (index, id) not in self.docs:
            return {"_index": index, "_id": id, "found": False}
        return {"_index": index, "_id": id, "found": True, "_source": self.docs[(index, id)]}

    async def search(self, *, index=None, query=None, sort=None, size=None, **kwargs):
        self.calls.append({"op": "search", "index": index, "query": query, "sort": sort, "size": size, **kwargs})
        self._check("search")
        return self.search_response

    async def index(self, *, index, id, document, refresh=None):
        self.calls.append({"op": "index", "index": index, "id": id, "document": document, "refresh": refresh})
        self._check("index")
        self.docs[(index, id)] = document
        return {"result": "created", "_id": id}

    async def update(self, *, index, id, doc, refresh=None, source=None):
        self.calls.append({"op": "update", "index": index, "id": id, "doc": doc})
        self._check("update")
        if (index, id) not in self.docs:
            return {"error": {"type": "document_missing_exception"}, "status": 404}
        self.docs[(index, id)] = {**self.docs[(index, id)], **doc}
        return {"result": "updated", "get": {"_source": self.docs[(index, id)]}}

    async def delete(self, *, index, id, refresh=None):
        self.calls.append({"op": "delete", "index": index, "id": id})
        self._check("delete")
        if self.docs.pop((index, id), None) is None:
            return {"result": "not_found"}
        return {"result": "deleted"}


class FakeIndices:
    """Stand-in for ``AsyncElasticsearch.indices``."""

    def __init__(self, es: FakeEs):
        self._es = es
        self.rejection: dict | None = None

    async def create(self, *, index, mappings=None):
        self._es.calls.append({"op": "indices.create", "index": index, "mappings": mappings})
        self._es._check("indices.create")
        if self.rejection is not None:
            return {"error": self.rejection, "status": 400}
        if index in self._es.existing_indices:
            return {"error": {"type": "resource_already_exists_exception"}, "status": 400}
        self._es.existing_indices.add(index)
        return {"acknowledged": True, "index": index}


def hits(*docs, total=None):
    return {
        "hits": {
            "total": {"value": len(docs) if total is None else total, "relation": "eq"},
            "hits": [{"_id": d["id"], "_source": d} for d in docs],
        }
    }


# ---------------------------------------------------------------------------
# Keyset helper
# ---------------------------------------------------------------------------

class TestKeysetAfter:
    def test_descending_two_keys(self):
        query = _keyset_after([("updated_at", "desc"), ("id", "desc")], ["2024-01-01", "p5"])
        should = query["bool"]["should"]

        assert query["bool"]["minimum_should_match"] == 1
        assert should[0] == {"bool": {"filter": [{"range": {"updated_at": {"lt": "2024-01-01"}}}]}}
        assert should[1] == {
            "bool": {
                "filter": [
                    {"term": {"updated_at": "2024-01-01"}},
                    {"range": {"id": {"lt": "p5"}}},
                ]
            }
        }

    def test_ascending_uses_gt(self):
        query = _keyset_after([("id", "asc")], ["p5"])
        assert query["bool"]["should"][0]["bool"]["filter"] == [{"range": {"id": {"gt": "p5"}}}]


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

class TestGetDocument:
    @pytest.mark.asyncio
    async def test_returns_source_with_id(self):
        es = FakeEs(docs={("posts", "p1"): {"caption": "hi"}})
        doc = await ElasticsearchDocumentStore(es).get_document("posts", "p1")
        assert doc == {"caption": "hi", "id": "p1"}

    @pytest.mark.asyncio
    async def test_missing_raises_not_found(self):
        with pytest.raises(DocumentNotFound):
            await ElasticsearchDocumentStore(FakeEs()).get_document("users", "nobody")

    @pytest.mark.asyncio
    async def test_transport_error_raises_store_unavailable(self):
        es = FakeEs()
        es.raise_on.add("get")
        with pytest.raises(StoreUnavailable):
            await ElasticsearchDocumentStore(es).get_document("users", "u1")

    @pytest.mark.asyncio
    async def test_index_prefix(self):
        es = FakeEs(docs={("feed-posts", "p1"): {}})
        await ElasticsearchDocumentStore(es, index_prefix="feed-").get_document("posts", "p1")
        assert es.calls[0]["index"] == "feed-posts"


class TestListDocuments:
    @pytest.mark.asyncio
    async def test_first_page_query(self):
        es = FakeEs(search_response=hits({"id": "p2", "caption": "b"}, {"id": "p1", "caption": "a"}, total=25))
        store = ElasticsearchDocumentStore(es)

        result = await store.list_documents("posts", [Query.order_desc("updated_at"), Query.limit(10)])

        assert [d["id"] for d in result.documents] == ["p2", "p1"]
        assert result.total == 25
        call = es.calls[0]
        assert call["index"] == "posts"
        assert call["size"] == 10
        assert call["sort"] == [{"updated_at": {"order": "desc"}}, {"id": {"order": "desc"}}]
        assert call["track_total_hits"] is True
        assert call["query"]["bool"]["filter"] == []

    @pytest.mark.asyncio
    async def test_cursor_after_adds_keyset_filter(self):
        es = FakeEs(docs={("posts", "p5"): {"id": "p5", "updated_at": "2024-01-05"}})
        store = ElasticsearchDocumentStore(es)

        await store.list_documents(
            "posts", [Query.order_desc("updated_at"), Query.limit(10), Query.cursor_after("p5")]
        )

        assert es.calls[0] == {"op": "get", "index": "posts", "id": "p5"}
        search = es.calls[1]
        keyset = search["query"]["bool"]["filter"][0]
        assert keyset == _keyset_after([("updated_at", "desc"), ("id", "desc")], ["2024-01-05", "p5"])

    @pytest.mark.asyncio
    async def test_unknown_cursor_raises_not_found(self):
        store = ElasticsearchDocumentStore(FakeEs())
        with pytest.raises(DocumentNotFound):
            await store.list_documents("posts", [Query.cursor_after("gone")])

    @pytest.mark.asyncio
    async def test_equal_and_search_filters(self):
        es = FakeEs()
        await ElasticsearchDocumentStore(es).list_documents(
            "saves", [Query.equal("user", "u1"), Query.search("caption", "sun")]
        )
        query = es.calls[0]["query"]
        assert query["bool"]["filter"] == [{"term": {"user": "u1"}}]
        assert query["bool"]["must"] == [{"match": {"caption": "sun"}}]
        assert es.calls[0]["sort"] == [{"id": {"order": "asc"}}]
        assert es.calls[0]["size"] == 25

    @pytest.mark.asyncio
    async def test_search_failure_raises_store_unavailable(self):
        es = FakeEs()
        es.raise_on.add("search")
        with pytest.raises(StoreUnavailable):
            await ElasticsearchDocumentStore(es).list_documents("posts")

    def test_limit_must_be_positive(self):
        with pytest.raises(ValueError):
            Query.limit(0)


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------

class TestWrites:
    @pytest.mark.asyncio
    async def test_create_assigns_id_and_timestamps(self):
        es = FakeEs()
        doc = await ElasticsearchDocumentStore(es).create_document("saves", None, {"user": "u1", "post": "p1"})

        assert doc["id"]
        assert doc["created_at"] == doc["updated_at"]
        call = es.calls[0]
        assert call["op"] == "index"
        assert call["id"] == doc["id"]
        assert call["refresh"] == "wait_for"

    @pytest.mark.asyncio
    async def test_update_replaces_whole_array(self):
        es = FakeEs(docs={("posts", "p1"): {"id": "p1", "likes": ["u2", "u3"], "created_at": "c"}})
        doc = await ElasticsearchDocumentStore(es).update_document("posts", "p1", {"likes": ["u2", "u3", "u1"]})

        assert doc["likes"] == ["u2", "u3", "u1"]
        sent = es.calls[0]["doc"]
        assert sent["likes"] == ["u2", "u3", "u1"]
        assert "updated_at" in sent
        assert "created_at" not in sent

    @pytest.mark.asyncio
    async def test_update_missing_raises_not_found(self):
        with pytest.raises(DocumentNotFound):
            await ElasticsearchDocumentStore(FakeEs()).update_document("posts", "nope", {"likes": []})

    @pytest.mark.asyncio
    async def test_update_transport_failure(self):
        es = FakeEs(docs={("posts", "p1"): {}})
        es.raise_on.add("update")
        with pytest.raises(StoreUnavailable):
            await ElasticsearchDocumentStore(es).update_document("posts", "p1", {"likes": []})

    @pytest.mark.asyncio
    async def test_delete(self):
        es = FakeEs(docs={("saves", "s1"): {}})
        store = ElasticsearchDocumentStore(es)
        await store.delete_document("saves", "s1")
        with pytest.raises(DocumentNotFound):
            await store.delete_document("saves", "s1")


# ---------------------------------------------------------------------------
# Index mappings
# ---------------------------------------------------------------------------

class TestEnsureIndices:
    @pytest.mark.asyncio
    async def test_creates_every_index_with_its_mapping(self):
        es = FakeEs()
        store = ElasticsearchDocumentStore(es, index_prefix="test-")

        created = await store.ensure_indices()

        assert created == ["test-posts", "test-users", "test-saves"]
        sent = {c["index"]: c["mappings"] for c in es.calls if c["op"] == "indices.create"}
        assert sent["test-posts"] == INDEX_MAPPINGS["posts"]
        assert {"ignore_status": 400} in es.options_calls

    def test_sort_and_term_fields_are_keywords(self):
        keyword_fields = {
            "posts": ["id", "creator", "tags"],
            "users": ["id", "account_id"],
            "saves": ["id", "user", "post"],
        }
        for collection, fields in keyword_fields.items():
            props = INDEX_MAPPINGS[collection]["properties"]
            for field in fields:
                assert props[field] == {"type": "keyword"}, (collection, field)
            assert props["created_at"] == {"type": "date"}
            assert props["updated_at"] == {"type": "date"}

    @pytest.mark.asyncio
    async def test_existing_indices_are_left_alone(self):
        es = FakeEs()
        es.existing_indices = {"posts", "users"}

        created = await ElasticsearchDocumentStore(es).ensure_indices()

        assert created == ["saves"]

    @pytest.mark.asyncio
    async def test_rejected_mapping_raises_store_unavailable(self):
        es = FakeEs()
        es.indices.rejection = {"type": "mapper_parsing_exception", "reason": "bad"}

        with pytest.raises(StoreUnavailable):
            await ElasticsearchDocumentStore(es).ensure_indices()

    @pytest.mark.asyncio
    async def test_unreachable_cluster_raises_store_unavailable(self):
        es = FakeEs()
        es.raise_on.add("indices.create")

        with pytest.raises(StoreUnavailable):
            await ElasticsearchDocumentStore(es).ensure_indices()
