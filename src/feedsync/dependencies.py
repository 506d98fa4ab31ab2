"""FastAPI dependencies wiring the feed services to the app-scoped clients.

The lifespan in ``main.py`` attaches ``store``, ``blobs``, ``cache`` and
``settings`` to ``app.state``.  Tests replace them with in-memory doubles.
"""

from fastapi import Request

from .config import Settings
from .lib.blobs import BlobStore
from .lib.cache import QueryCache
from .lib.creators import CreatorResolver
from .lib.pagination import DEFAULT_PAGE_SIZE, PaginationEngine
from .lib.posts import DEFAULT_RECENT_LIMIT, PostService
from .lib.projection import PostProjector
from .lib.social import SocialStateMutator
from .lib.store import DocumentStore
from .lib.users import UserService


def get_store(request: Request) -> DocumentStore:
    return request.app.state.store


def get_blobs(request: Request) -> BlobStore:
    return request.app.state.blobs


def get_cache(request: Request) -> QueryCache:
    return request.app.state.cache


def _settings(request: Request) -> Settings | None:
    return getattr(request.app.state, "settings", None)


def get_projector(request: Request) -> PostProjector:
    # One resolver per request: creators are de-duplicated within a page,
    # not memoized across requests.
    return PostProjector(CreatorResolver(get_store(request)), get_blobs(request))


def get_pagination(request: Request) -> PaginationEngine:
    settings = _settings(request)
    page_size = settings.feed_page_size if settings else DEFAULT_PAGE_SIZE
    return PaginationEngine(get_store(request), get_projector(request), page_size=page_size)


def get_post_service(request: Request) -> PostService:
    settings = _settings(request)
    return PostService(
        get_store(request),
        get_blobs(request),
        get_projector(request),
        get_cache(request),
        recent_limit=settings.recent_posts_limit if settings else DEFAULT_RECENT_LIMIT,
    )


def get_user_service(request: Request) -> UserService:
    return UserService(get_store(request), get_cache(request))


def get_mutator(request: Request) -> SocialStateMutator:
    return SocialStateMutator(get_store(request), get_cache(request))
