import os
import secrets
from typing import Annotated

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import APIKeyHeader

API_KEY_HEADER_NAME = "X-API-Key"

api_key_header = APIKeyHeader(name=API_KEY_HEADER_NAME, auto_error=False)


def get_api_key() -> str | None:
    return os.environ.get("API_KEY")


async def verify_api_key(
    api_key: Annotated[str | None, Depends(api_key_header)],
) -> str | None:
    expected_key = get_api_key()
    if not expected_key or not api_key or not secrets.compare_digest(api_key, expected_key):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing API key",
        )
    return api_key


async def acting_user_id(
    x_user_id: Annotated[str | None, Header()] = None,
) -> str:
    """Id of the user document the request acts as.

    Sign-in happens at the identity provider; the UI forwards the
    resolved user id with every mutating request.
    """
    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-User-Id header",
        )
    return x_user_id


RequireApiKey = Annotated[str, Depends(verify_api_key)]
ActingUser = Annotated[str, Depends(acting_user_id)]
