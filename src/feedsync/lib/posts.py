"""Post publishing, editing, deletion and the non-paginated post queries.

Every write invalidates the post queries it may affect; reads go through
the query cache.
"""

import logging

from ..models import Post
from .blobs import BlobStore
from .cache import QueryCache, QueryKeys
from .errors import DocumentNotFound, StoreUnavailable, ValidationFailure
from .projection import PostProjector
from .store import DocumentStore, Query

logger = logging.getLogger(__name__)

POSTS_COLLECTION = "posts"
DEFAULT_RECENT_LIMIT = 20


def parse_tags(tags: str | list[str] | None) -> list[str]:
    """Parse ``"art, travel,food"`` style input into ``["art", "travel", "food"]``."""
    if tags is None:
        return []
    if isinstance(tags, str):
        return [t for t in "".join(tags.split()).split(",") if t]
    return [t for t in tags if t]


class PostService:

    def __init__(
        self,
        store: DocumentStore,
        blobs: BlobStore,
        projector: PostProjector,
        cache: QueryCache,
        recent_limit: int = DEFAULT_RECENT_LIMIT,
    ):
        self._store = store
        self._blobs = blobs
        self._projector = projector
        self._cache = cache
        self._recent_limit = recent_limit

    def _invalidate_lists(self) -> None:
        self._cache.invalidate(QueryKeys.recent_posts())
        self._cache.invalidate(QueryKeys.infinite_posts())
        self._cache.invalidate(QueryKeys.SEARCH_POSTS)

    async def _upload(self, file: bytes, filename: str) -> tuple[str, str]:
        file_id = await self._blobs.upload_file(file, filename)
        return file_id, await self._blobs.get_file_view(file_id)

    # -- writes --------------------------------------------------------------

    async def create_post(
        self,
        user_id: str,
        caption: str,
        file: bytes | None,
        filename: str = "upload",
        location: str | None = None,
        tags: str | list[str] | None = None,
    ) -> Post:
        if not file:
            raise ValidationFailure("No file provided")
        if not user_id:
            raise ValidationFailure("A creator is required")

        image_id, image_url = await self._upload(file, filename)
        doc = await self._store.create_document(
            POSTS_COLLECTION,
            None,
            {
                "creator": user_id,
                "caption": caption,
                "image_url": image_url,
                "image_id": image_id,
                "location": location,
                "tags": parse_tags(tags),
                "likes": [],
            },
        )
        self._invalidate_lists()
        logger.info("Created post %s for user %s", doc["id"], user_id)
        return await self._projector.project(doc)

    async def update_post(
        self,
        post_id: str,
        caption: str,
        image_id: str | None = None,
        image_url: str | None = None,
        file: bytes | None = None,
        filename: str = "upload",
        location: str | None = None,
        tags: str | list[str] | None = None,
    ) -> Post:
        if file:
            image_id, image_url = await self._upload(file, filename)

        # Unset image and tag arguments leave the stored values alone.
        fields = {"caption": caption, "location": location or ""}
        if image_id is not None:
            fields["image_id"] = image_id
        if image_url is not None:
            fields["image_url"] = image_url
        if tags is not None:
            fields["tags"] = parse_tags(tags)

        try:
            doc = await self._store.update_document(POSTS_COLLECTION, post_id, fields)
        finally:
            self._invalidate_lists()
            self._cache.invalidate(QueryKeys.post_by_id())
        return await self._projector.project(doc)

    async def delete_post(self, post_id: str | None, image_id: str | None) -> bool:
        """Delete a post and its image.

        A failed image cleanup is logged but does not fail the deletion.
        """
        if not post_id or not image_id:
            raise ValidationFailure("post id and image id are required")

        try:
            await self._store.delete_document(POSTS_COLLECTION, post_id)
        finally:
            self._invalidate_lists()
            self._cache.invalidate(QueryKeys.post_by_id(post_id))

        if not await self._blobs.delete_file(image_id):
            logger.error("Post %s deleted but image %s could not be removed", post_id, image_id)
        return True

    # -- reads ---------------------------------------------------------------

    async def _load_post(self, post_id: str) -> Post | None:
        try:
            doc = await self._store.get_document(POSTS_COLLECTION, post_id)
        except DocumentNotFound:
            return None
        return await self._projector.project(doc)

    async def get_post(self, post_id: str) -> Post | None:
        """Return a projected post, or ``None`` if it does not exist."""
        return await self._cache.get_or_fetch(
            QueryKeys.post_by_id(post_id),
            lambda: self._load_post(post_id),
            should_cache=lambda post: post is not None,
        )

    async def _load_recent(self) -> list[Post] | None:
        try:
            result = await self._store.list_documents(
                POSTS_COLLECTION, [Query.order_desc("created_at"), Query.limit(self._recent_limit)]
            )
        except StoreUnavailable:
            logger.exception("Loading recent posts failed")
            return None
        return await self._projector.project_many(result.documents)

    async def recent_posts(self) -> list[Post]:
        """Newest posts by creation time; an empty list if the store is down."""
        posts = await self._cache.get_or_fetch(
            QueryKeys.recent_posts(),
            self._load_recent,
            should_cache=lambda value: value is not None,
        )
        return posts or []

    async def _load_search(self, term: str) -> list[Post]:
        result = await self._store.list_documents(POSTS_COLLECTION, [Query.search("caption", term)])
        return await self._projector.project_many(result.documents)

    async def search_posts(self, term: str) -> list[Post]:
        if not term:
            raise ValidationFailure("search term is required")
        return await self._cache.get_or_fetch(
            QueryKeys.search_posts(term), lambda: self._load_search(term)
        )
