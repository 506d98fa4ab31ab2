"""Like and save mutations with optimistic local state.

The caller holds a :class:`PostSocialState` per displayed post.  Each
mutation updates that state synchronously, before its first ``await``,
then writes to the store.  A failed write is reported as
``MutationFailed`` but the local state is not rolled back; instead the
affected query-cache entries are invalidated whether or not the write
succeeded, so the next read reconciles with the server.

Known race: ``likes`` is written as a whole array (the store has no
atomic add/remove), so two toggles in flight at once are last-write-wins
on the server and may not match what any client displays.
"""

import asyncio
import logging
from dataclasses import dataclass, field

from ..models import Post, SaveRecord, User
from .cache import QueryCache, QueryKeys
from .errors import DocumentNotFound, MutationFailed, StoreUnavailable
from .store import DocumentStore

logger = logging.getLogger(__name__)

POSTS_COLLECTION = "posts"
SAVES_COLLECTION = "saves"


@dataclass
class PostSocialState:
    """Optimistic per-post view of the acting user's likes and saves."""

    post_id: str
    likes: list[str] = field(default_factory=list)
    saved: bool = False
    saved_record_id: str | None = None
    # Store write of a save whose record id is not known yet.
    pending_save: asyncio.Future | None = field(default=None, repr=False, compare=False)

    def is_liked_by(self, user_id: str) -> bool:
        return user_id in self.likes

    @classmethod
    def for_post(cls, post: Post, user: User | None = None) -> "PostSocialState":
        record = user.save_record_for(post.id) if user is not None else None
        return cls(
            post_id=post.id,
            likes=list(post.likes),
            saved=record is not None,
            saved_record_id=record.id if record is not None else None,
        )


def toggled_likes(likes: list[str], user_id: str) -> list[str]:
    """Return *likes* with *user_id* removed if present, appended otherwise."""
    if user_id in likes:
        return [uid for uid in likes if uid != user_id]
    return [*likes, user_id]


class SocialStateMutator:

    def __init__(self, store: DocumentStore, cache: QueryCache):
        self._store = store
        self._cache = cache

    def _invalidate(self, post_id: str) -> None:
        self._cache.invalidate(QueryKeys.recent_posts())
        self._cache.invalidate(QueryKeys.current_user())
        self._cache.invalidate(QueryKeys.post_by_id(post_id))
        self._cache.invalidate(QueryKeys.infinite_posts())
        self._cache.invalidate(QueryKeys.SEARCH_POSTS)

    async def toggle_like(self, state: PostSocialState, user_id: str) -> list[str]:
        """Like or unlike the post for *user_id*; returns the new likes list."""
        new_likes = toggled_likes(state.likes, user_id)
        state.likes = new_likes

        try:
            await self._store.update_document(POSTS_COLLECTION, state.post_id, {"likes": list(new_likes)})
        except (StoreUnavailable, DocumentNotFound) as exc:
            logger.warning("Like update for post %s failed: %s", state.post_id, exc)
            raise MutationFailed("like", state.post_id, exc) from exc
        finally:
            self._invalidate(state.post_id)
        return new_likes

    async def save(self, state: PostSocialState, user: User | str) -> SaveRecord:
        """Create a save record linking *user* to the post.

        When *user* is a resolved :class:`User` that already has a record for
        the post, that record is returned and nothing is written.
        """
        state.saved = True
        if isinstance(user, User):
            existing = user.save_record_for(state.post_id)
            if existing is not None:
                state.saved_record_id = existing.id
                return existing
            user_id = user.id
        else:
            user_id = user
        state.saved_record_id = None

        create = asyncio.ensure_future(
            self._store.create_document(SAVES_COLLECTION, None, {"user": user_id, "post": state.post_id})
        )
        state.pending_save = create
        try:
            doc = await create
        except (StoreUnavailable, DocumentNotFound) as exc:
            logger.warning("Save of post %s for user %s failed: %s", state.post_id, user_id, exc)
            raise MutationFailed("save", state.post_id, exc) from exc
        finally:
            if state.pending_save is create:
                state.pending_save = None
            self._invalidate(state.post_id)

        if state.saved:
            state.saved_record_id = doc["id"]
        return SaveRecord(id=doc["id"], user=user_id, post=state.post_id)

    async def unsave(self, state: PostSocialState, user: User | None = None) -> bool:
        """Delete the save record for the post.

        The record id comes from *state* or, failing that, from the user's
        resolved save records.  Returns ``False`` without touching the store
        when there is no record to delete.
        """
        record_id = state.saved_record_id
        if record_id is None and user is not None:
            record = user.save_record_for(state.post_id)
            record_id = record.id if record is not None else None
        if record_id is None:
            return False

        state.saved = False
        state.saved_record_id = None

        try:
            await self._store.delete_document(SAVES_COLLECTION, record_id)
        except (StoreUnavailable, DocumentNotFound) as exc:
            logger.warning("Unsave of post %s (record %s) failed: %s", state.post_id, record_id, exc)
            raise MutationFailed("unsave", state.post_id, exc) from exc
        finally:
            self._invalidate(state.post_id)
        return True

    async def toggle_save(self, state: PostSocialState, user: User) -> bool:
        """Save or unsave depending on ``state.saved``; returns the new saved flag.

        Unsaving while a save is still being written waits for that write and
        then deletes the record it created.
        """
        if not state.saved:
            await self.save(state, user)
            return True

        state.saved = False
        pending = state.pending_save
        if state.saved_record_id is None and pending is not None:
            try:
                doc = await asyncio.shield(pending)
            except (StoreUnavailable, DocumentNotFound):
                # The save failed and was reported to its caller; nothing to delete.
                return False
            state.saved_record_id = doc["id"]
        await self.unsave(state, user)
        return False
