from __future__ import annotations

from fastapi import APIRouter, Depends

from app.connections import ConnectionCache
from app.dependencies import get_connection_cache, get_store
from app.schemas import HealthResponse
from app.store import AppStore

router = APIRouter(tags=["discovery"])


@router.get("/health", response_model=HealthResponse)
def health_check(
    store: AppStore = Depends(get_store),
    cache: ConnectionCache = Depends(get_connection_cache),
) -> HealthResponse:
    """Check that the API is up and the application database is readable."""
    return HealthResponse(
        status="ok",
        connections_registered=len(store.list_connections()),
        connections_open=len(cache),
    )
