"""Document store abstraction.

The feed layer talks to its remote document database only through the
:class:`DocumentStore` interface below.  Filters are small value objects
built with the :class:`Query` helpers, mirroring the query builders that
document databases ship with::

    await store.list_documents("posts", [
        Query.order_desc("updated_at"),
        Query.limit(10),
        Query.cursor_after("post-42"),
    ])

Implementations raise :class:`~feedsync.lib.errors.DocumentNotFound` for
missing documents and :class:`~feedsync.lib.errors.StoreUnavailable` for
anything transport related.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Literal

from pydantic import BaseModel, Field

Document = dict[str, Any]


# ---------------------------------------------------------------------------
# Filters
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Equal:
    field: str
    value: Any


@dataclass(frozen=True)
class OrderBy:
    field: str
    direction: Literal["asc", "desc"] = "desc"


@dataclass(frozen=True)
class Limit:
    count: int


@dataclass(frozen=True)
class CursorAfter:
    document_id: str


@dataclass(frozen=True)
class Search:
    field: str
    term: str


Filter = Equal | OrderBy | Limit | CursorAfter | Search


class Query:
    """Constructors for store filters."""

    @staticmethod
    def equal(field: str, value: Any) -> Equal:
        return Equal(field, value)

    @staticmethod
    def order_desc(field: str) -> OrderBy:
        return OrderBy(field, "desc")

    @staticmethod
    def order_asc(field: str) -> OrderBy:
        return OrderBy(field, "asc")

    @staticmethod
    def limit(count: int) -> Limit:
        if count < 1:
            raise ValueError("limit must be positive")
        return Limit(count)

    @staticmethod
    def cursor_after(document_id: str) -> CursorAfter:
        return CursorAfter(document_id)

    @staticmethod
    def search(field: str, term: str) -> Search:
        return Search(field, term)


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

class DocumentList(BaseModel):
    """Result of a list query."""

    documents: list[Document] = Field(default_factory=list)
    total: int = Field(0, description="Number of documents matching the non-positional filters")


# ---------------------------------------------------------------------------
# Interface
# ---------------------------------------------------------------------------

class DocumentStore(ABC):
    """Query/command interface to the remote document database."""

    @abstractmethod
    async def list_documents(self, collection: str, filters: list[Filter] | None = None) -> DocumentList:
        """Return documents of *collection* matching *filters*, in filter order."""
        ...

    @abstractmethod
    async def get_document(self, collection: str, document_id: str) -> Document:
        """Return one document.  Raises ``DocumentNotFound`` when absent."""
        ...

    @abstractmethod
    async def create_document(self, collection: str, document_id: str | None, fields: Document) -> Document:
        """Create a document.  A ``None`` id asks the store to assign one."""
        ...

    @abstractmethod
    async def update_document(self, collection: str, document_id: str, fields: Document) -> Document:
        """Replace the given top-level fields of a document.

        Array fields are replaced whole; there is no append/remove primitive.
        """
        ...

    @abstractmethod
    async def delete_document(self, collection: str, document_id: str) -> None:
        ...
