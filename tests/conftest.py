from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import AsyncIterator, Iterator

import pytest
from httpx import ASGITransport, AsyncClient

from app.connections import ConnectionCache, open_read_only
from app.schemas import Connection
from app.store import AppStore

SEED_TEMPLATES = Path(__file__).resolve().parents[1] / "app" / "default_templates.yaml"

REGIONS = ("east", "west", "north")


def _order_rows() -> list[tuple]:
    rows = []
    for i in range(1, 26):
        rows.append(
            (
                i,
                f"customer_{i}",
                REGIONS[i % 3],
                f"Q{(i % 4) + 1}",
                i * 10.0,
                i % 2,
                f"2024-01-{i:02d}T10:00:00",
                '{"tier": "gold"}' if i % 5 == 0 else None,
            )
        )
    return rows


@pytest.fixture
def sample_db_path(tmp_path: Path) -> Path:
    """Create a SQLite file with a few realistic tables."""
    path = tmp_path / "sample.db"
    db = sqlite3.connect(path)
    db.executescript(
        """
        CREATE TABLE sales (region TEXT, amount INTEGER);
        INSERT INTO sales VALUES ('east', 10), ('west', 20);

        CREATE TABLE orders (
            id INTEGER PRIMARY KEY,
            customer_name TEXT,
            region TEXT,
            quarter TEXT,
            amount REAL,
            is_paid INTEGER,
            created_at TEXT,
            metadata TEXT
        );

        CREATE TABLE empty_table (id INTEGER, created_at TEXT);

        CREATE TABLE "order" (id INTEGER, "group" TEXT);
        INSERT INTO "order" VALUES (1, 'a');
        """
    )
    db.executemany("INSERT INTO orders VALUES (?, ?, ?, ?, ?, ?, ?, ?)", _order_rows())
    db.commit()
    db.close()
    return path


@pytest.fixture
def db(sample_db_path: Path) -> Iterator[sqlite3.Connection]:
    """Read-only handle to the sample database."""
    handle = open_read_only(str(sample_db_path))
    yield handle
    handle.close()


@pytest.fixture
def store(tmp_path: Path) -> Iterator[AppStore]:
    """Application database with the default templates seeded."""
    app_store = AppStore(str(tmp_path / "app.db"))
    app_store.initialize()
    app_store.seed_default_templates(SEED_TEMPLATES)
    yield app_store
    app_store.close()


@pytest.fixture
def cache() -> Iterator[ConnectionCache]:
    connection_cache = ConnectionCache(capacity=4, timeout_seconds=5.0)
    yield connection_cache
    connection_cache.close()


@pytest.fixture
def connection(store: AppStore, sample_db_path: Path) -> Connection:
    """The sample database registered in the application store."""
    return store.create_connection("sample", str(sample_db_path))


@pytest.fixture
def test_app(store: AppStore, cache: ConnectionCache):
    """Create FastAPI test app backed by temporary databases."""
    from app.config import get_settings

    # Clear cached settings so each test gets a fresh instance.
    get_settings.cache_clear()

    from app.main import create_app

    app = create_app()
    app.state.store = store
    app.state.connections = cache
    return app


@pytest.fixture
async def client(test_app) -> AsyncIterator[AsyncClient]:
    """Async HTTP test client."""
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
