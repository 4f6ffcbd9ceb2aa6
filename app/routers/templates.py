from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from app.connections import ConnectionCache
from app.dependencies import get_connection_cache, get_store
from app.schemas import (
    ApplyTemplateRequest,
    ChartConfig,
    InsightTemplate,
    TemplateCreate,
)
from app.store import AppStore
from app.templates import apply_template

router = APIRouter(prefix="/templates", tags=["templates"])


@router.get("", response_model=list[InsightTemplate])
def list_templates(
    category: str | None = Query(default=None),
    store: AppStore = Depends(get_store),
) -> list[InsightTemplate]:
    """List insight templates, optionally restricted to one category."""
    return store.list_templates(category)


@router.get("/{template_id}", response_model=InsightTemplate)
def get_template(
    template_id: int,
    store: AppStore = Depends(get_store),
) -> InsightTemplate:
    """Get a template with the fields it needs mapped."""
    return store.get_template(template_id)


@router.post("", response_model=InsightTemplate, status_code=201)
def create_template(
    body: TemplateCreate,
    store: AppStore = Depends(get_store),
) -> InsightTemplate:
    return store.create_template(
        name=body.name,
        description=body.description,
        type=body.type,
        config=body.config,
        category=body.category,
        is_default=body.is_default,
    )


@router.post(
    "/{template_id}/apply",
    response_model=ChartConfig,
    response_model_exclude_none=True,
)
def apply_template_route(
    template_id: int,
    body: ApplyTemplateRequest,
    store: AppStore = Depends(get_store),
    cache: ConnectionCache = Depends(get_connection_cache),
) -> ChartConfig:
    """Bind a template's fields to ``table.column`` references."""
    chart_config = apply_template(
        store, cache, template_id, body.connection_id, body.mappings
    )
    store.touch_connection(body.connection_id)
    return chart_config
