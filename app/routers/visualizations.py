from __future__ import annotations

from fastapi import APIRouter, Depends, Response

from app.charts import build_chart_data
from app.config import Settings, get_settings
from app.connections import ConnectionCache
from app.dependencies import get_connection_cache, get_store
from app.schemas import (
    ChartData,
    ChartPreviewRequest,
    Visualization,
    VisualizationCreate,
    VisualizationUpdate,
)
from app.store import AppStore

router = APIRouter(tags=["visualizations"])


@router.get("/visualizations", response_model=list[Visualization])
def list_visualizations(store: AppStore = Depends(get_store)) -> list[Visualization]:
    """List saved visualizations, most recently updated first."""
    return store.list_visualizations()


@router.post("/visualizations", response_model=Visualization, status_code=201)
def create_visualization(
    body: VisualizationCreate,
    store: AppStore = Depends(get_store),
) -> Visualization:
    return store.create_visualization(
        connection_id=body.connection_id, name=body.name, config=body.config
    )


@router.get("/visualizations/{visualization_id}", response_model=Visualization)
def get_visualization(
    visualization_id: int,
    store: AppStore = Depends(get_store),
) -> Visualization:
    return store.get_visualization(visualization_id)


@router.put("/visualizations/{visualization_id}", response_model=Visualization)
def update_visualization(
    visualization_id: int,
    body: VisualizationUpdate,
    store: AppStore = Depends(get_store),
) -> Visualization:
    return store.update_visualization(
        visualization_id, name=body.name, config=body.config
    )


@router.delete("/visualizations/{visualization_id}", status_code=204)
def delete_visualization(
    visualization_id: int,
    store: AppStore = Depends(get_store),
) -> Response:
    store.delete_visualization(visualization_id)
    return Response(status_code=204)


@router.get("/visualizations/{visualization_id}/data", response_model=ChartData)
def visualization_data(
    visualization_id: int,
    store: AppStore = Depends(get_store),
    cache: ConnectionCache = Depends(get_connection_cache),
    settings: Settings = Depends(get_settings),
) -> ChartData:
    """Query and shape the data behind a saved visualization."""
    visualization = store.get_visualization(visualization_id)
    connection = store.get_connection(visualization.connection_id)
    store.touch_connection(connection.id)
    with cache.acquire(connection.id, connection.path) as db:
        return build_chart_data(
            db, visualization.config, limit=settings.chart_row_limit
        )


@router.post("/charts/preview", response_model=ChartData)
def preview_chart(
    body: ChartPreviewRequest,
    store: AppStore = Depends(get_store),
    cache: ConnectionCache = Depends(get_connection_cache),
    settings: Settings = Depends(get_settings),
) -> ChartData:
    """Shape chart data for an unsaved chart configuration."""
    connection = store.get_connection(body.connection_id)
    store.touch_connection(connection.id)
    with cache.acquire(connection.id, connection.path) as db:
        return build_chart_data(db, body.config, limit=settings.chart_row_limit)
