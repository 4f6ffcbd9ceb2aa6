from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response

from app.config import Settings, get_settings
from app.connections import ConnectionCache
from app.dependencies import get_connection_cache, get_connection_record, get_store
from app.export import export_chart_csv, export_table_csv
from app.routers._query_utils import _attachment_headers, _filters_from_query
from app.schemas import Connection
from app.sql import validate_identifier
from app.store import AppStore

router = APIRouter(prefix="/export/csv", tags=["export"])


@router.get("/table/{connection_id}/{table}")
def export_table(
    table: str,
    request: Request,
    connection: Connection = Depends(get_connection_record),
    cache: ConnectionCache = Depends(get_connection_cache),
    settings: Settings = Depends(get_settings),
) -> Response:
    """Download a table (optionally filtered) as CSV."""
    table = validate_identifier(table)
    with cache.acquire(connection.id, connection.path) as db:
        csv_text = export_table_csv(
            db,
            table,
            _filters_from_query(request),
            row_limit=settings.export_row_limit,
        )
    return Response(
        content=csv_text,
        media_type="text/csv",
        headers=_attachment_headers(f"{table}.csv"),
    )


@router.get("/{visualization_id}")
def export_visualization(
    visualization_id: int,
    store: AppStore = Depends(get_store),
    cache: ConnectionCache = Depends(get_connection_cache),
    settings: Settings = Depends(get_settings),
) -> Response:
    """Download the shaped data behind a saved visualization as CSV."""
    visualization = store.get_visualization(visualization_id)
    connection = store.get_connection(visualization.connection_id)
    store.touch_connection(connection.id)
    with cache.acquire(connection.id, connection.path) as db:
        csv_text = export_chart_csv(
            db, visualization.config, row_limit=settings.chart_row_limit
        )
    return Response(
        content=csv_text,
        media_type="text/csv",
        headers=_attachment_headers(f"visualization-{visualization_id}.csv"),
    )
