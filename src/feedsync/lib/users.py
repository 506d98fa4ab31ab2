"""User lookups, including the acting user's save records."""

import logging
from typing import Any

from ..models import UNKNOWN_NAME, SaveRecord, User
from .cache import QueryCache, QueryKeys
from .errors import DocumentNotFound, StoreUnavailable
from .store import Document, DocumentStore, Query

logger = logging.getLogger(__name__)

USERS_COLLECTION = "users"
SAVES_COLLECTION = "saves"
MAX_SAVES = 100


def _ref_id(value: Any) -> str | None:
    """Reduce a possibly-embedded reference to its id; nothing else is trusted."""
    if isinstance(value, str):
        return value or None
    if isinstance(value, dict) and value.get("id"):
        return str(value["id"])
    return None


def _str_or(value: Any, default: str) -> str:
    return value if isinstance(value, str) and value else default


def user_from_document(doc: Document, saves: list[SaveRecord] | None = None) -> User:
    return User(
        id=doc["id"],
        account_id=doc.get("account_id"),
        name=_str_or(doc.get("name"), UNKNOWN_NAME),
        username=_str_or(doc.get("username"), ""),
        email=_str_or(doc.get("email"), ""),
        image_url=_str_or(doc.get("image_url"), ""),
        bio=_str_or(doc.get("bio"), ""),
        saves=saves or [],
    )


def save_record_from_document(doc: Document) -> SaveRecord | None:
    user_id = _ref_id(doc.get("user"))
    post_id = _ref_id(doc.get("post"))
    if not doc.get("id") or user_id is None or post_id is None:
        return None
    return SaveRecord(id=doc["id"], user=user_id, post=post_id)


class UserService:

    def __init__(self, store: DocumentStore, cache: QueryCache):
        self._store = store
        self._cache = cache

    async def get_user(self, user_id: str, with_saves: bool = False) -> User | None:
        try:
            doc = await self._store.get_document(USERS_COLLECTION, user_id)
        except DocumentNotFound:
            return None
        saves = await self._saves_for(user_id) if with_saves else None
        return user_from_document(doc, saves)

    async def _saves_for(self, user_id: str) -> list[SaveRecord]:
        result = await self._store.list_documents(
            SAVES_COLLECTION, [Query.equal("user", user_id), Query.limit(MAX_SAVES)]
        )
        records = (save_record_from_document(doc) for doc in result.documents)
        return [r for r in records if r is not None]

    async def _load_current_user(self, account_id: str) -> User | None:
        try:
            result = await self._store.list_documents(
                USERS_COLLECTION, [Query.equal("account_id", account_id), Query.limit(1)]
            )
            if not result.documents:
                return None
            doc = result.documents[0]
            return user_from_document(doc, await self._saves_for(doc["id"]))
        except StoreUnavailable:
            logger.exception("Loading current user for account %s failed", account_id)
            return None

    async def get_current_user(self, account_id: str) -> User | None:
        """Return the user document of *account_id* with its save records."""
        return await self._cache.get_or_fetch(
            QueryKeys.current_user(account_id),
            lambda: self._load_current_user(account_id),
            should_cache=lambda user: user is not None,
        )
