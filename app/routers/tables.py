from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request

from app.config import Settings, get_settings
from app.connections import ConnectionCache
from app.dependencies import get_connection_cache, get_connection_record
from app.exceptions import NotFoundError
from app.query_processor import (
    execute_query,
    get_sample_data,
    get_table_schema,
    get_tables,
)
from app.routers._query_utils import _filters_from_query
from app.schemas import ColumnSchema, Connection, QueryResult, TableQuery
from app.sql import validate_identifier

router = APIRouter(prefix="/connections/{connection_id}/tables", tags=["tables"])


@router.get("", response_model=list[str])
def list_tables(
    connection: Connection = Depends(get_connection_record),
    cache: ConnectionCache = Depends(get_connection_cache),
) -> list[str]:
    """List user tables in the connected database."""
    with cache.acquire(connection.id, connection.path) as db:
        return get_tables(db)


@router.get("/{table}/schema", response_model=list[ColumnSchema])
def table_schema(
    table: str,
    connection: Connection = Depends(get_connection_record),
    cache: ConnectionCache = Depends(get_connection_cache),
) -> list[ColumnSchema]:
    """Get column names and declared types for a table."""
    table = validate_identifier(table)
    with cache.acquire(connection.id, connection.path) as db:
        columns = get_table_schema(db, table)
    if not columns:
        raise NotFoundError(f"Table does not exist: {table}")
    return columns


@router.get("/{table}/data", response_model=QueryResult)
def table_data(
    table: str,
    request: Request,
    page: int = Query(default=1),
    page_size: int | None = Query(default=None, alias="pageSize"),
    sort_column: str | None = Query(default=None, alias="sortColumn"),
    sort_direction: str = Query(default="asc", alias="sortDirection"),
    connection: Connection = Depends(get_connection_record),
    cache: ConnectionCache = Depends(get_connection_cache),
    settings: Settings = Depends(get_settings),
) -> QueryResult:
    """Get one page of rows, sorted and filtered by ``filter[<column>]`` params."""
    body = TableQuery(
        table=table,
        page=page,
        page_size=page_size if page_size is not None else settings.page_size_default,
        sort_column=sort_column or None,
        sort_direction=sort_direction,
        filters=_filters_from_query(request),
    )
    with cache.acquire(connection.id, connection.path) as db:
        return execute_query(db, body, max_page_size=settings.page_size_max)


@router.get("/{table}/data/sample", response_model=list[dict])
def table_sample(
    table: str,
    size: int = Query(default=100),
    connection: Connection = Depends(get_connection_record),
    cache: ConnectionCache = Depends(get_connection_cache),
    settings: Settings = Depends(get_settings),
) -> list[dict]:
    """Get a random sample of rows from a table."""
    with cache.acquire(connection.id, connection.path) as db:
        return get_sample_data(
            db, table, size, max_sample_size=settings.sample_size_max
        )
