from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from ..dependencies import get_store
from ..lib.errors import StoreUnavailable
from ..lib.store import DocumentStore, Query

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    status: str


@router.get("/health", response_model=HealthResponse, status_code=200)
async def healthcheck():
    return {"status": "ok"}


@router.get("/health/ready", response_model=HealthResponse)
async def readiness(store: DocumentStore = Depends(get_store)):
    """Ready once the document store answers a one-document query."""
    try:
        await store.list_documents("posts", [Query.limit(1)])
    except StoreUnavailable as exc:
        raise HTTPException(status_code=503, detail="Document store unavailable") from exc
    return {"status": "ready"}
