"""Feed synchronization core.

Creator resolution, post projection, cursor pagination, optimistic
like/save mutations and the query cache they share.
"""

from .blobs import BlobStore, HttpBlobStore, InMemoryBlobStore
from .cache import QueryCache, QueryKeys
from .creators import CreatorResolver, creator_ref_from_raw
from .pagination import PaginationEngine
from .posts import PostService
from .projection import PostProjector, as_raw
from .social import PostSocialState, SocialStateMutator
from .users import UserService

__all__ = [
    "BlobStore",
    "CreatorResolver",
    "HttpBlobStore",
    "InMemoryBlobStore",
    "PaginationEngine",
    "PostProjector",
    "PostService",
    "PostSocialState",
    "QueryCache",
    "QueryKeys",
    "SocialStateMutator",
    "UserService",
    "as_raw",
    "creator_ref_from_raw",
]
