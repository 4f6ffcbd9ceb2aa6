from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import get_settings
from app.connections import ConnectionCache
from app.exceptions import register_exception_handlers
from app.routers import connections, discovery, export, tables, templates, visualizations
from app.store import AppStore

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open the application database and handle cache at startup, close at shutdown."""
    settings = get_settings()
    logger.info("Opening application database %s", settings.app_db_path)
    store = AppStore(settings.app_db_path)
    store.initialize()
    store.seed_default_templates(Path(settings.templates_seed_path))
    app.state.store = store
    app.state.connections = ConnectionCache(
        capacity=settings.connection_cache_size,
        timeout_seconds=settings.query_timeout_seconds,
    )
    yield
    logger.info("Closing database handles")
    app.state.connections.close()
    store.close()


def create_app() -> FastAPI:
    """Application factory."""
    settings = get_settings()

    app = FastAPI(
        title="SQLite Visualizer API",
        description="Browse, chart and export data from SQLite database files",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    app.include_router(discovery.router, prefix="/api")
    app.include_router(connections.router, prefix="/api")
    app.include_router(tables.router, prefix="/api")
    app.include_router(templates.router, prefix="/api")
    app.include_router(visualizations.router, prefix="/api")
    app.include_router(export.router, prefix="/api")

    return app


app = create_app()
