from typing import Annotated

from fastapi import APIRouter, Depends, Header, HTTPException

from ..dependencies import get_user_service
from ..lib.users import UserService
from ..models import User
from ..security import verify_api_key

router = APIRouter(tags=["users"], dependencies=[Depends(verify_api_key)])


@router.get("/users/current", response_model=User)
async def users_current(
    x_account_id: Annotated[str | None, Header()] = None,
    users: UserService = Depends(get_user_service),
) -> User:
    """Return the signed-in user's document together with their save records."""
    if not x_account_id:
        raise HTTPException(status_code=401, detail="Missing X-Account-Id header")
    user = await users.get_current_user(x_account_id)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return user
