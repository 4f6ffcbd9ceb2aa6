from __future__ import annotations

from fastapi import Depends, Request

from app.connections import ConnectionCache
from app.schemas import Connection
from app.store import AppStore


def get_store(request: Request) -> AppStore:
    """FastAPI dependency that provides the application database."""
    return request.app.state.store


def get_connection_cache(request: Request) -> ConnectionCache:
    """FastAPI dependency that provides the shared read-only handle cache."""
    return request.app.state.connections


def get_connection_record(
    connection_id: int,
    store: AppStore = Depends(get_store),
) -> Connection:
    """Resolve the ``{connection_id}`` path parameter and mark it as accessed."""
    connection = store.get_connection(connection_id)
    store.touch_connection(connection.id)
    return connection
