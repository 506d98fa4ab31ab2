"""Document store interface and implementations."""

from .base import (
    CursorAfter,
    Document,
    DocumentList,
    DocumentStore,
    Equal,
    Filter,
    Limit,
    OrderBy,
    Query,
    Search,
)
from .elasticsearch import ElasticsearchDocumentStore
from .memory import InMemoryDocumentStore

__all__ = [
    "CursorAfter",
    "Document",
    "DocumentList",
    "DocumentStore",
    "ElasticsearchDocumentStore",
    "Equal",
    "Filter",
    "InMemoryDocumentStore",
    "Limit",
    "OrderBy",
    "Query",
    "Search",
]
