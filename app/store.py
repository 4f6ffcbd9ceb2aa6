"""Application database: registered connections, insight templates and saved charts."""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from app.exceptions import NotFoundError, StoredRecordError
from app.query_processor import get_database_metadata
from app.schemas import (
    ChartConfig,
    Connection,
    InsightTemplate,
    Visualization,
)
from app.templates import extract_fields

logger = logging.getLogger(__name__)

_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS connections (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    path TEXT NOT NULL,
    last_accessed TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    size_bytes INTEGER,
    table_count INTEGER,
    is_valid BOOLEAN DEFAULT 1
);

CREATE TABLE IF NOT EXISTS saved_visualizations (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    connection_id INTEGER,
    name TEXT NOT NULL,
    type TEXT NOT NULL,
    config TEXT NOT NULL,
    table_name TEXT,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY (connection_id) REFERENCES connections(id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS insight_templates (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    description TEXT,
    type TEXT NOT NULL,
    config TEXT NOT NULL,
    category TEXT,
    is_default BOOLEAN DEFAULT 0
);
"""

_TEMPLATE_COLUMNS = "id, name, description, type, config, category, is_default"
_VISUALIZATION_COLUMNS = (
    "id, connection_id, name, type, config, table_name, created_at, updated_at"
)
_CONNECTION_COLUMNS = (
    "id, name, path, last_accessed, size_bytes, table_count, is_valid"
)


def parse_config(raw: str | None, *, context: str) -> dict[str, Any]:
    """Deserialize a stored config document; malformed JSON reads as empty."""
    if not raw:
        return {}
    try:
        payload = json.loads(raw)
    except ValueError as exc:
        logger.warning("Malformed config for %s: %s", context, exc)
        return {}
    if not isinstance(payload, dict):
        logger.warning("Config for %s is not a JSON object", context)
        return {}
    return payload


def load_template_seeds(path: Path) -> list[dict[str, Any]]:
    """Read default template definitions from a YAML file."""
    if not path.exists():
        return []

    with path.open("r", encoding="utf-8") as handle:
        payload = yaml.safe_load(handle) or {}

    if not isinstance(payload, dict):
        raise ValueError("Template seed file must contain a YAML dictionary")

    templates = payload.get("templates") or []
    if not isinstance(templates, list):
        raise ValueError("'templates' in the seed file must be a list")
    return templates


class AppStore:
    """CRUD over the application's own SQLite database."""

    def __init__(self, path: str) -> None:
        self.path = path
        if path != ":memory:":
            Path(path).expanduser().parent.mkdir(parents=True, exist_ok=True)
        self._db = sqlite3.connect(path, check_same_thread=False)
        self._db.row_factory = sqlite3.Row
        self._db.execute("PRAGMA foreign_keys = ON")
        self._lock = threading.Lock()

    def close(self) -> None:
        with self._lock:
            self._db.close()

    def initialize(self) -> None:
        """Create the application tables if they do not exist."""
        with self._lock, self._db:
            self._db.executescript(_SCHEMA_SQL)

    def _fetchall(self, sql: str, params: tuple[Any, ...] = ()) -> list[sqlite3.Row]:
        with self._lock:
            return self._db.execute(sql, params).fetchall()

    def _fetchone(self, sql: str, params: tuple[Any, ...] = ()) -> sqlite3.Row | None:
        with self._lock:
            return self._db.execute(sql, params).fetchone()

    def _write(self, sql: str, params: tuple[Any, ...] = ()) -> sqlite3.Cursor:
        with self._lock, self._db:
            return self._db.execute(sql, params)

    # -- connections ---------------------------------------------------------

    @staticmethod
    def _connection(row: sqlite3.Row) -> Connection:
        return Connection(
            id=row["id"],
            name=row["name"],
            path=row["path"],
            last_accessed=row["last_accessed"],
            size_bytes=row["size_bytes"],
            table_count=row["table_count"],
            is_valid=bool(row["is_valid"]),
        )

    def create_connection(self, name: str, path: str) -> Connection:
        """Register a SQLite file after checking that it opens read-only."""
        resolved = str(Path(path).expanduser().resolve())
        metadata = get_database_metadata(resolved)
        cursor = self._write(
            "INSERT INTO connections (name, path, size_bytes, table_count, is_valid) "
            "VALUES (?, ?, ?, ?, ?)",
            (name, resolved, metadata["size_bytes"], metadata["table_count"], 1),
        )
        logger.info("Registered connection %s (%s)", cursor.lastrowid, resolved)
        return self.get_connection(cursor.lastrowid)

    def list_connections(self) -> list[Connection]:
        rows = self._fetchall(
            f"SELECT {_CONNECTION_COLUMNS} FROM connections "
            "ORDER BY last_accessed DESC, id DESC"
        )
        return [self._connection(row) for row in rows]

    def get_connection(self, connection_id: int) -> Connection:
        row = self._fetchone(
            f"SELECT {_CONNECTION_COLUMNS} FROM connections WHERE id = ?",
            (connection_id,),
        )
        if row is None:
            raise NotFoundError(f"Connection not found with ID: {connection_id}")
        return self._connection(row)

    def touch_connection(self, connection_id: int) -> None:
        self._write(
            "UPDATE connections SET last_accessed = CURRENT_TIMESTAMP WHERE id = ?",
            (connection_id,),
        )

    def delete_connection(self, connection_id: int) -> None:
        cursor = self._write("DELETE FROM connections WHERE id = ?", (connection_id,))
        if cursor.rowcount == 0:
            raise NotFoundError(f"Connection not found with ID: {connection_id}")

    # -- templates -----------------------------------------------------------

    @staticmethod
    def _template(row: sqlite3.Row) -> InsightTemplate:
        config = parse_config(row["config"], context=f"template {row['id']}")
        return InsightTemplate(
            id=row["id"],
            name=row["name"],
            description=row["description"] or "",
            type=row["type"],
            config=config,
            category=row["category"] or "",
            is_default=bool(row["is_default"]),
            fields=extract_fields(config),
        )

    def list_templates(self, category: str | None = None) -> list[InsightTemplate]:
        if category:
            rows = self._fetchall(
                f"SELECT {_TEMPLATE_COLUMNS} FROM insight_templates "
                "WHERE category = ? ORDER BY name",
                (category,),
            )
        else:
            rows = self._fetchall(
                f"SELECT {_TEMPLATE_COLUMNS} FROM insight_templates ORDER BY name"
            )
        return [self._template(row) for row in rows]

    def get_template(self, template_id: int) -> InsightTemplate:
        row = self._fetchone(
            f"SELECT {_TEMPLATE_COLUMNS} FROM insight_templates WHERE id = ?",
            (template_id,),
        )
        if row is None:
            raise NotFoundError(f"Template not found with ID: {template_id}")
        return self._template(row)

    def create_template(
        self,
        *,
        name: str,
        type: str,
        config: dict[str, Any],
        description: str = "",
        category: str = "",
        is_default: bool = False,
    ) -> InsightTemplate:
        """Store a template; a config whose fields cannot be read is rejected unwritten."""
        extract_fields(config, strict=True)
        cursor = self._write(
            "INSERT INTO insight_templates "
            "(name, description, type, config, category, is_default) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (name, description, type, json.dumps(config), category, int(is_default)),
        )
        return self.get_template(cursor.lastrowid)

    def seed_default_templates(self, path: Path) -> int:
        """Insert seed templates when the template table is empty."""
        existing = self._fetchone("SELECT COUNT(*) FROM insight_templates")
        if existing is not None and existing[0] > 0:
            return 0

        seeds = load_template_seeds(path)
        for seed in seeds:
            self.create_template(
                name=seed["name"],
                type=seed["type"],
                config=seed.get("config") or {},
                description=seed.get("description", ""),
                category=seed.get("category", ""),
                is_default=bool(seed.get("is_default", True)),
            )
        if seeds:
            logger.info("Seeded %d default templates from %s", len(seeds), path)
        return len(seeds)

    # -- visualizations ------------------------------------------------------

    @staticmethod
    def _visualization(row: sqlite3.Row) -> Visualization:
        """Build a Visualization, raising StoredRecordError for an unusable config."""
        config = parse_config(row["config"], context=f"visualization {row['id']}")
        try:
            chart_config = ChartConfig.model_validate(config)
        except ValidationError as exc:
            raise StoredRecordError(
                f"Visualization {row['id']} has an invalid stored chart config "
                f"({exc.error_count()} problem(s)); save a new config to repair it"
            ) from exc
        return Visualization(
            id=row["id"],
            connection_id=row["connection_id"],
            name=row["name"],
            type=row["type"],
            config=chart_config,
            table_name=row["table_name"] or "",
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def list_visualizations(self) -> list[Visualization]:
        """List readable visualizations; rows with an unusable config are skipped."""
        rows = self._fetchall(
            f"SELECT {_VISUALIZATION_COLUMNS} FROM saved_visualizations "
            "ORDER BY updated_at DESC, id DESC"
        )
        result: list[Visualization] = []
        for row in rows:
            try:
                result.append(self._visualization(row))
            except StoredRecordError as exc:
                logger.warning("Skipping visualization: %s", exc)
        return result

    def _visualization_row(self, visualization_id: int) -> sqlite3.Row:
        row = self._fetchone(
            f"SELECT {_VISUALIZATION_COLUMNS} FROM saved_visualizations WHERE id = ?",
            (visualization_id,),
        )
        if row is None:
            raise NotFoundError(f"Visualization not found with ID: {visualization_id}")
        return row

    def get_visualization(self, visualization_id: int) -> Visualization:
        return self._visualization(self._visualization_row(visualization_id))

    def create_visualization(
        self, *, connection_id: int, name: str, config: ChartConfig
    ) -> Visualization:
        self.get_connection(connection_id)
        cursor = self._write(
            "INSERT INTO saved_visualizations "
            "(connection_id, name, type, config, table_name) VALUES (?, ?, ?, ?, ?)",
            (
                connection_id,
                name,
                config.type,
                config.model_dump_json(by_alias=True, exclude_none=True),
                config.table,
            ),
        )
        return self.get_visualization(cursor.lastrowid)

    def update_visualization(
        self,
        visualization_id: int,
        *,
        name: str | None = None,
        config: ChartConfig | None = None,
    ) -> Visualization:
        current = self._visualization_row(visualization_id)
        name = name if name is not None else current["name"]
        if config is None:
            config = self._visualization(current).config
        self._write(
            "UPDATE saved_visualizations "
            "SET name = ?, type = ?, config = ?, table_name = ?, "
            "updated_at = CURRENT_TIMESTAMP WHERE id = ?",
            (
                name,
                config.type,
                config.model_dump_json(by_alias=True, exclude_none=True),
                config.table,
                visualization_id,
            ),
        )
        return self.get_visualization(visualization_id)

    def delete_visualization(self, visualization_id: int) -> None:
        cursor = self._write(
            "DELETE FROM saved_visualizations WHERE id = ?", (visualization_id,)
        )
        if cursor.rowcount == 0:
            raise NotFoundError(f"Visualization not found with ID: {visualization_id}")
