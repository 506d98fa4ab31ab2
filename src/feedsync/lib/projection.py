"""Projection of raw post documents into :class:`~feedsync.models.Post`.

The store is schema-flexible, so any optional field may be missing or of
the wrong type.  Projection fills defaults, de-duplicates ``likes``,
derives a missing image URL from ``image_id`` and resolves the creator.
Only ``id`` is required; ``created_at``/``updated_at`` pass through as-is.
"""

import asyncio
import logging
from typing import Any

from ..models import PROFILE_PLACEHOLDER, CreatorTriple, Post
from .blobs import BlobStore
from .creators import CreatorResolver, creator_ref_from_raw
from .store import Document

logger = logging.getLogger(__name__)

IMAGE_PLACEHOLDER = PROFILE_PLACEHOLDER


def _string_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, str)]


def _unique(items: list[str]) -> list[str]:
    return list(dict.fromkeys(items))


def _optional_str(value: Any) -> str | None:
    return value if isinstance(value, str) else None


class PostProjector:
    """Maps raw post documents to :class:`Post` objects."""

    def __init__(self, resolver: CreatorResolver, blobs: BlobStore | None = None):
        self._resolver = resolver
        self._blobs = blobs

    async def _image_url(self, raw: Document) -> str | None:
        image_url = raw.get("image_url")
        if isinstance(image_url, str) and image_url:
            return image_url
        image_id = raw.get("image_id")
        if not isinstance(image_id, str) or not image_id:
            return None
        if self._blobs is None:
            return IMAGE_PLACEHOLDER
        try:
            return await self._blobs.get_file_view(image_id)
        except Exception as exc:
            logger.warning("Could not derive image URL for %s from %s: %s", raw.get("id"), image_id, exc)
            return IMAGE_PLACEHOLDER

    def _build(self, raw: Document, creator: CreatorTriple, image_url: str | None) -> Post:
        caption = raw.get("caption")
        return Post(
            id=raw["id"],
            caption=caption if isinstance(caption, str) else "",
            image_url=image_url,
            image_id=_optional_str(raw.get("image_id")),
            location=_optional_str(raw.get("location")),
            tags=_string_list(raw.get("tags")),
            likes=_unique(_string_list(raw.get("likes"))),
            creator=creator,
            created_at=raw.get("created_at"),
            updated_at=raw.get("updated_at"),
        )

    async def project(self, raw: Document) -> Post:
        creator, image_url = await asyncio.gather(
            self._resolver.resolve(creator_ref_from_raw(raw.get("creator"))),
            self._image_url(raw),
        )
        return self._build(raw, creator, image_url)

    async def project_many(self, raws: list[Document]) -> list[Post]:
        """Project a batch; each distinct creator id is fetched once."""
        creators, image_urls = await asyncio.gather(
            self._resolver.resolve_many([creator_ref_from_raw(raw.get("creator")) for raw in raws]),
            asyncio.gather(*(self._image_url(raw) for raw in raws)),
        )
        return [self._build(raw, c, u) for raw, c, u in zip(raws, creators, image_urls)]


def as_raw(post: Post) -> Document:
    """Turn a projected post back into a raw document with an embedded creator."""
    raw = post.model_dump()
    raw["creator"] = post.creator.model_dump()
    return raw
