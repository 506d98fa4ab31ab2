"""Posts router – the infinite feed and post reads.

GET /posts/infinite
    One page of the feed, newest first, after an optional cursor.

GET /posts/recent, GET /posts/search, GET /posts/{post_id}
    Cached post queries.

DELETE /posts/{post_id}
    Delete a post and its image.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from ..dependencies import get_cache, get_pagination, get_post_service
from ..lib.cache import QueryCache
from ..lib.errors import DocumentNotFound, StoreUnavailable, ValidationFailure
from ..lib.pagination import PaginationEngine
from ..lib.posts import PostService
from ..models import PageErr, Post
from ..security import verify_api_key

router = APIRouter(tags=["posts"], dependencies=[Depends(verify_api_key)])

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------

class FeedPageResponse(BaseModel):
    documents: list[Post]
    total: int
    next_cursor: str | None = Field(None, description="Pass as ?cursor= to fetch the next page")


class PostListResponse(BaseModel):
    documents: list[Post]


class DeleteResponse(BaseModel):
    status: str = "ok"


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get("/posts/infinite", response_model=FeedPageResponse)
async def posts_infinite(
    cursor: str | None = Query(None, description="Id of the last post of the previous page"),
    engine: PaginationEngine = Depends(get_pagination),
    cache: QueryCache = Depends(get_cache),
) -> FeedPageResponse:
    """Return one feed page.  An empty page with no cursor marks the end."""
    result = await engine.cached_page(cache, cursor or None)
    if isinstance(result, PageErr):
        raise HTTPException(status_code=502, detail="Feed page could not be fetched")
    page = result.page
    return FeedPageResponse(
        documents=page.documents,
        total=page.total,
        next_cursor=engine.next_cursor(page),
    )


@router.get("/posts/recent", response_model=PostListResponse)
async def posts_recent(service: PostService = Depends(get_post_service)) -> PostListResponse:
    return PostListResponse(documents=await service.recent_posts())


@router.get("/posts/search", response_model=PostListResponse)
async def posts_search(
    q: str = Query(..., min_length=1, description="Text to match against captions"),
    service: PostService = Depends(get_post_service),
) -> PostListResponse:
    try:
        posts = await service.search_posts(q)
    except StoreUnavailable as exc:
        logger.exception("Post search failed")
        raise HTTPException(status_code=502, detail="Search request failed") from exc
    return PostListResponse(documents=posts)


@router.get("/posts/{post_id}", response_model=Post)
async def posts_get(post_id: str, service: PostService = Depends(get_post_service)) -> Post:
    try:
        post = await service.get_post(post_id)
    except StoreUnavailable as exc:
        raise HTTPException(status_code=502, detail="Post could not be fetched") from exc
    if post is None:
        raise HTTPException(status_code=404, detail="Post not found")
    return post


@router.delete("/posts/{post_id}", response_model=DeleteResponse)
async def posts_delete(
    post_id: str,
    image_id: str = Query(..., description="Blob id of the post image"),
    service: PostService = Depends(get_post_service),
) -> DeleteResponse:
    try:
        await service.delete_post(post_id, image_id)
    except ValidationFailure as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except DocumentNotFound as exc:
        raise HTTPException(status_code=404, detail="Post not found") from exc
    except StoreUnavailable as exc:
        raise HTTPException(status_code=502, detail="Post could not be deleted") from exc
    return DeleteResponse()
