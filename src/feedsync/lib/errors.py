"""Exception hierarchy for the feed synchronization layer.

Read paths absorb most of these (creator and image resolution degrade to
placeholders, page fetches become ``PageErr`` results).  Write paths let
``MutationFailed`` reach the caller so the UI can tell the user.
"""


class FeedSyncError(Exception):
    """Base exception for all feedsync errors."""


# ---------------------------------------------------------------------------
# Store errors
# ---------------------------------------------------------------------------

class DocumentNotFound(FeedSyncError):
    """Raised when a referenced document does not exist."""

    def __init__(self, collection: str, document_id: str):
        super().__init__(f"{collection}/{document_id} not found")
        self.collection = collection
        self.document_id = document_id


class StoreUnavailable(FeedSyncError):
    """Raised when the document or blob store cannot be reached or rejects a request."""


# ---------------------------------------------------------------------------
# Caller errors
# ---------------------------------------------------------------------------

class ValidationFailure(FeedSyncError):
    """Raised before any I/O when a required input is missing."""


# ---------------------------------------------------------------------------
# Feed and mutation errors
# ---------------------------------------------------------------------------

class PageFetchError(FeedSyncError):
    """Raised by page iteration when a page could not be fetched."""

    def __init__(self, cursor: str | None, reason: str):
        super().__init__(f"page after cursor {cursor!r} failed: {reason}")
        self.cursor = cursor
        self.reason = reason


class MutationFailed(FeedSyncError):
    """Raised when a like/save write is rejected by the store.

    Optimistic local state is left as-is; the query cache has already been
    invalidated so the next read reconciles with the server.
    """

    def __init__(self, operation: str, post_id: str, cause: Exception | None = None):
        super().__init__(f"{operation} failed for post {post_id}")
        self.operation = operation
        self.post_id = post_id
        self.cause = cause
