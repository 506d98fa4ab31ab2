"""Blob store client for post images.

Only three operations are needed by the feed layer: upload an image,
derive a view URL for it, and delete it.  :class:`HttpBlobStore` talks to
an HTTP storage service laid out as ``/buckets/{bucket}/files``.
"""

import itertools
import logging
import uuid
from abc import ABC, abstractmethod

import httpx

from .errors import StoreUnavailable, ValidationFailure

logger = logging.getLogger(__name__)


class BlobStore(ABC):

    @abstractmethod
    async def upload_file(self, data: bytes, filename: str) -> str:
        """Upload *data* and return the new file id."""
        ...

    @abstractmethod
    async def get_file_view(self, file_id: str) -> str:
        """Return a URL the UI can use to display the file."""
        ...

    @abstractmethod
    async def delete_file(self, file_id: str) -> bool:
        """Delete a file.  Returns ``False`` instead of raising on failure."""
        ...


class HttpBlobStore(BlobStore):
    """Blob store backed by an HTTP storage service."""

    def __init__(
        self,
        base_url: str,
        bucket: str,
        api_key: str | None = None,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._bucket = bucket
        self._api_key = api_key
        self._timeout = timeout
        self._transport = transport
        self._http: httpx.AsyncClient | None = None

    async def start(self) -> None:
        headers = {"X-API-Key": self._api_key} if self._api_key else {}
        self._http = httpx.AsyncClient(
            base_url=self._base_url, headers=headers, timeout=self._timeout, transport=self._transport
        )

    async def stop(self) -> None:
        if self._http:
            await self._http.aclose()
            self._http = None

    def _client(self) -> httpx.AsyncClient:
        if self._http is None:
            raise RuntimeError("HttpBlobStore not started - call start() first")
        return self._http

    def _files_path(self) -> str:
        return f"/buckets/{self._bucket}/files"

    async def upload_file(self, data: bytes, filename: str) -> str:
        file_id = uuid.uuid4().hex
        try:
            resp = await self._client().post(
                self._files_path(),
                data={"fileId": file_id},
                files={"file": (filename, data)},
            )
            resp.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("Blob upload of %s failed: %s", filename, exc)
            raise StoreUnavailable("file upload failed") from exc
        return resp.json().get("id", file_id)

    async def get_file_view(self, file_id: str) -> str:
        if not file_id:
            raise ValidationFailure("file id is required")
        return f"{self._base_url}{self._files_path()}/{file_id}/view"

    async def delete_file(self, file_id: str) -> bool:
        try:
            resp = await self._client().delete(f"{self._files_path()}/{file_id}")
            resp.raise_for_status()
        except httpx.HTTPError as exc:
            logger.error("Blob delete of %s failed: %s", file_id, exc)
            return False
        return True


class InMemoryBlobStore(BlobStore):
    """Blob store double keeping files in a dict."""

    def __init__(self, view_prefix: str = "https://blobs.test/view/"):
        self.files: dict[str, bytes] = {}
        self.view_calls: list[str] = []
        self.fail_views = False
        self.fail_deletes = False
        self._view_prefix = view_prefix
        self._ids = itertools.count(1)

    async def upload_file(self, data: bytes, filename: str) -> str:
        file_id = f"file-{next(self._ids)}"
        self.files[file_id] = data
        return file_id

    async def get_file_view(self, file_id: str) -> str:
        self.view_calls.append(file_id)
        if self.fail_views or file_id not in self.files:
            raise StoreUnavailable(f"no view for {file_id}")
        return f"{self._view_prefix}{file_id}"

    async def delete_file(self, file_id: str) -> bool:
        if self.fail_deletes:
            return False
        return self.files.pop(file_id, None) is not None
