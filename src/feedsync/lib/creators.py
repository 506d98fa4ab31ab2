"""Creator resolution.

A post's ``creator`` field arrives either as an embedded snapshot
(``{"id", "name", "image_url"}``) or as a bare user id.  The resolver maps
both to a :class:`~feedsync.models.CreatorTriple`.  Resolution never
raises: a missing or unreachable user degrades to the ``"Unknown"`` name
and the placeholder avatar.
"""

import asyncio
import logging
from typing import Any

from ..models import (
    PROFILE_PLACEHOLDER,
    UNKNOWN_NAME,
    CreatorRef,
    CreatorReference,
    CreatorTriple,
    EmbeddedCreator,
)
from .store import DocumentStore

logger = logging.getLogger(__name__)

USERS_COLLECTION = "users"


def creator_ref_from_raw(value: Any) -> CreatorRef:
    """Classify a raw ``creator`` field."""
    if isinstance(value, str):
        return CreatorReference(id=value)
    if isinstance(value, dict):
        return EmbeddedCreator(
            id=str(value.get("id") or ""),
            name=value.get("name") if isinstance(value.get("name"), str) else None,
            image_url=value.get("image_url") if isinstance(value.get("image_url"), str) else None,
        )
    return EmbeddedCreator(id="")


def _triple(creator_id: str, name: Any, image_url: Any) -> CreatorTriple:
    return CreatorTriple(
        id=creator_id,
        name=name if isinstance(name, str) and name.strip() else UNKNOWN_NAME,
        image_url=image_url if isinstance(image_url, str) and image_url.strip() else PROFILE_PLACEHOLDER,
    )


def placeholder_creator(creator_id: str) -> CreatorTriple:
    return CreatorTriple(id=creator_id, name=UNKNOWN_NAME, image_url=PROFILE_PLACEHOLDER)


class CreatorResolver:
    """Resolves creator references against the users collection.

    With ``memoize=True`` successful lookups are remembered for the
    lifetime of the resolver; failures are always retried.
    """

    def __init__(self, store: DocumentStore, memoize: bool = False):
        self._store = store
        self._memo: dict[str, CreatorTriple] | None = {} if memoize else None

    async def _fetch(self, user_id: str) -> CreatorTriple:
        if self._memo is not None and user_id in self._memo:
            return self._memo[user_id]
        try:
            doc = await self._store.get_document(USERS_COLLECTION, user_id)
        except Exception as exc:
            logger.warning("Could not resolve creator %s: %s", user_id, exc)
            return placeholder_creator(user_id)
        if not isinstance(doc, dict):
            logger.warning("Malformed user document for creator %s", user_id)
            return placeholder_creator(user_id)

        triple = _triple(user_id, doc.get("name"), doc.get("image_url"))
        if self._memo is not None:
            self._memo[user_id] = triple
        return triple

    async def resolve(self, ref: CreatorRef) -> CreatorTriple:
        """Resolve a single creator reference."""
        if isinstance(ref, EmbeddedCreator):
            return _triple(ref.id, ref.name, ref.image_url)
        return await self._fetch(ref.id)

    async def resolve_many(self, refs: list[CreatorRef]) -> list[CreatorTriple]:
        """Resolve a batch, fetching each distinct user id once.

        Results are returned in the order of *refs*.
        """
        distinct: list[str] = []
        for ref in refs:
            if isinstance(ref, CreatorReference) and ref.id not in distinct:
                distinct.append(ref.id)

        fetched = await asyncio.gather(*(self._fetch(user_id) for user_id in distinct))
        by_id = dict(zip(distinct, fetched))

        return [
            by_id[ref.id] if isinstance(ref, CreatorReference) else _triple(ref.id, ref.name, ref.image_url)
            for ref in refs
        ]
