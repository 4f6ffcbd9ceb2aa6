from __future__ import annotations

from fastapi import APIRouter, Depends, Response

from app.connections import ConnectionCache
from app.dependencies import get_connection_cache, get_store
from app.schemas import Connection, ConnectionCreate
from app.store import AppStore

router = APIRouter(prefix="/connections", tags=["connections"])


@router.get("", response_model=list[Connection])
def list_connections(store: AppStore = Depends(get_store)) -> list[Connection]:
    """List registered database files, most recently used first."""
    return store.list_connections()


@router.post("", response_model=Connection, status_code=201)
def create_connection(
    body: ConnectionCreate,
    store: AppStore = Depends(get_store),
) -> Connection:
    """Register a SQLite file after checking it opens read-only."""
    return store.create_connection(body.name, body.path)


@router.get("/{connection_id}", response_model=Connection)
def get_connection(
    connection_id: int,
    store: AppStore = Depends(get_store),
) -> Connection:
    return store.get_connection(connection_id)


@router.delete("/{connection_id}", status_code=204)
def delete_connection(
    connection_id: int,
    store: AppStore = Depends(get_store),
    cache: ConnectionCache = Depends(get_connection_cache),
) -> Response:
    """Forget a connection, its saved visualizations and its open handle."""
    store.delete_connection(connection_id)
    cache.discard(connection_id)
    return Response(status_code=204)
