"""Social router – likes and saves for the acting user.

POST /posts/{post_id}/like
    Toggle the acting user's like.  The body carries the client's current
    likes list, which the new list is computed from.

POST /posts/{post_id}/save, DELETE /posts/{post_id}/save
    Create or remove the acting user's save record.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from ..dependencies import get_mutator, get_user_service
from ..lib.errors import MutationFailed
from ..lib.social import PostSocialState, SocialStateMutator
from ..lib.users import UserService
from ..security import ActingUser, verify_api_key

router = APIRouter(tags=["social"], dependencies=[Depends(verify_api_key)])

logger = logging.getLogger(__name__)


class LikeRequest(BaseModel):
    likes: list[str] = Field(default_factory=list, description="Likes as currently shown by the client")


class LikeResponse(BaseModel):
    likes: list[str]
    liked: bool


class SaveResponse(BaseModel):
    saved: bool
    record_id: str | None = None


def _mutation_error(exc: MutationFailed) -> HTTPException:
    return HTTPException(status_code=502, detail=f"Could not {exc.operation} post {exc.post_id}")


@router.post("/posts/{post_id}/like", response_model=LikeResponse)
async def posts_like(
    post_id: str,
    payload: LikeRequest,
    user_id: ActingUser,
    mutator: SocialStateMutator = Depends(get_mutator),
) -> LikeResponse:
    state = PostSocialState(post_id=post_id, likes=list(dict.fromkeys(payload.likes)))
    try:
        likes = await mutator.toggle_like(state, user_id)
    except MutationFailed as exc:
        raise _mutation_error(exc) from exc
    return LikeResponse(likes=likes, liked=user_id in likes)


@router.post("/posts/{post_id}/save", response_model=SaveResponse)
async def posts_save(
    post_id: str,
    user_id: ActingUser,
    mutator: SocialStateMutator = Depends(get_mutator),
    users: UserService = Depends(get_user_service),
) -> SaveResponse:
    user = await users.get_user(user_id, with_saves=True)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")

    state = PostSocialState(post_id=post_id)
    try:
        record = await mutator.save(state, user)
    except MutationFailed as exc:
        raise _mutation_error(exc) from exc
    return SaveResponse(saved=True, record_id=record.id)


@router.delete("/posts/{post_id}/save", response_model=SaveResponse)
async def posts_unsave(
    post_id: str,
    user_id: ActingUser,
    mutator: SocialStateMutator = Depends(get_mutator),
    users: UserService = Depends(get_user_service),
) -> SaveResponse:
    user = await users.get_user(user_id, with_saves=True)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")

    state = PostSocialState(post_id=post_id, saved=user.save_record_for(post_id) is not None)
    try:
        await mutator.unsave(state, user)
    except MutationFailed as exc:
        raise _mutation_error(exc) from exc
    return SaveResponse(saved=False)
