from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings

_DEFAULT_TEMPLATES_PATH = Path(__file__).with_name("default_templates.yaml")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    app_db_path: str = "sqlite_visualizer_app.db"
    templates_seed_path: str = str(_DEFAULT_TEMPLATES_PATH)
    cors_origins: list[str] = ["http://localhost:8000"]
    page_size_default: int = 10
    page_size_max: int = 1000
    sample_size_max: int = 1000
    chart_row_limit: int = 1000
    export_row_limit: int = 50000
    query_timeout_seconds: float = 5.0
    connection_cache_size: int = 8

    model_config = {"env_prefix": "SQLVIZ_"}


@lru_cache
def get_settings() -> Settings:
    return Settings()
