"""Read-only queries against user SQLite files: tables, schema, pages and samples."""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path
from typing import Any, Callable

from app.connections import open_read_only
from app.exceptions import InvalidInputError, QueryExecutionError
from app.rows import transform_row
from app.schemas import ColumnSchema, QueryResult, TableQuery
from app.sql import (
    build_where,
    normalize_sort_direction,
    quote_identifier,
    validate_identifier,
)

logger = logging.getLogger(__name__)

RowTransform = Callable[[dict[str, Any]], dict[str, Any]]

_SYSTEM_TABLE_PREFIX = "sqlite_"


def _run(
    db: sqlite3.Connection,
    sql: str,
    params: list[Any] | tuple[Any, ...] = (),
    *,
    operation: str,
    table: str | None = None,
) -> tuple[list[str], list[tuple[Any, ...]]]:
    """Execute a statement, returning (column names, value tuples).

    Engine failures are re-raised as QueryExecutionError naming the operation.
    """
    try:
        cursor = db.execute(sql, params)
        rows = [tuple(row) for row in cursor.fetchall()]
    except sqlite3.Error as exc:
        target = f" on table '{table}'" if table else ""
        logger.warning("SQLite %s failed%s: %s", operation, target, exc)
        raise QueryExecutionError(f"Failed to {operation}{target}: {exc}") from exc
    columns = [description[0] for description in cursor.description or ()]
    return columns, rows


def _records(
    columns: list[str],
    rows: list[tuple[Any, ...]],
    transform: RowTransform | None,
) -> list[dict[str, Any]]:
    records = [dict(zip(columns, row)) for row in rows]
    if transform is not None:
        records = [transform(record) for record in records]
    return records


def get_tables(db: sqlite3.Connection) -> list[str]:
    """List user tables, excluding SQLite's internal ones, sorted by name."""
    _, rows = _run(
        db,
        "SELECT name FROM sqlite_master WHERE type = 'table' AND name NOT LIKE ? "
        "ORDER BY name",
        [f"{_SYSTEM_TABLE_PREFIX}%"],
        operation="list tables",
    )
    return [row[0] for row in rows]


def get_table_schema(db: sqlite3.Connection, table: str) -> list[ColumnSchema]:
    """Get column names and declared types for a table, in definition order."""
    table = validate_identifier(table)
    _, rows = _run(
        db,
        "SELECT name, type FROM pragma_table_info(?) ORDER BY cid",
        [table],
        operation="read schema",
        table=table,
    )
    return [ColumnSchema(name=row[0], type=row[1] or "") for row in rows]


def get_database_metadata(path: str) -> dict[str, Any]:
    """File size, table count and table names for a SQLite file."""
    db = open_read_only(path)
    try:
        tables = get_tables(db)
    finally:
        db.close()
    return {
        "size_bytes": Path(path).expanduser().stat().st_size,
        "table_count": len(tables),
        "tables": tables,
    }


def _result_columns(
    db: sqlite3.Connection,
    table: str,
    rows: list[dict[str, Any]],
    transform: RowTransform | None,
) -> list[str]:
    """Column names for a result page.

    HasRows: the key order of the first returned row.
    Empty: the declared schema, renamed the same way rows would have been.
    """
    if rows:
        return list(rows[0].keys())
    names = [column.name for column in get_table_schema(db, table)]
    if transform is None:
        return names
    return list(transform(dict.fromkeys(names)).keys())


def execute_query(
    db: sqlite3.Connection,
    request: TableQuery,
    *,
    max_page_size: int | None = None,
    transform: RowTransform | None = transform_row,
) -> QueryResult:
    """Execute a paginated, sorted and filtered read of one table.

    The count and the data query share the same WHERE clause and parameters;
    any engine failure aborts both and no partial result is returned.
    """
    table = validate_identifier(request.table)
    page = request.page
    page_size = request.page_size
    if page < 1:
        raise InvalidInputError(f"page must be >= 1, got {page}")
    if page_size < 1:
        raise InvalidInputError(f"pageSize must be >= 1, got {page_size}")
    if max_page_size is not None and page_size > max_page_size:
        raise InvalidInputError(
            f"pageSize must be <= {max_page_size}, got {page_size}"
        )

    offset = (page - 1) * page_size
    where_sql, params = build_where(request.filters)

    order_sql = ""
    if request.sort_column:
        sort_column = validate_identifier(request.sort_column)
        direction = normalize_sort_direction(request.sort_direction)
        order_sql = f" ORDER BY {quote_identifier(sort_column)} {direction}"

    count_sql = f"SELECT COUNT(*) AS total FROM {quote_identifier(table)}{where_sql}"
    data_sql = (
        f"SELECT * FROM {quote_identifier(table)}{where_sql}{order_sql} "
        f"LIMIT {page_size} OFFSET {offset}"
    )

    _, count_rows = _run(db, count_sql, params, operation="count rows", table=table)
    total = int(count_rows[0][0])
    columns, data_rows = _run(db, data_sql, params, operation="query rows", table=table)
    rows = _records(columns, data_rows, transform)

    return QueryResult(
        columns=_result_columns(db, table, rows, transform),
        rows=rows,
        total=total,
        page=page,
        page_size=page_size,
    )


def get_sample_data(
    db: sqlite3.Connection,
    table: str,
    sample_size: int = 100,
    *,
    max_sample_size: int | None = None,
    transform: RowTransform | None = transform_row,
) -> list[dict[str, Any]]:
    """Get up to ``sample_size`` rows in random order (not seeded)."""
    table = validate_identifier(table)
    if sample_size < 1:
        raise InvalidInputError(f"Sample size must be >= 1, got {sample_size}")
    if max_sample_size is not None and sample_size > max_sample_size:
        raise InvalidInputError(
            f"Sample size must be <= {max_sample_size}, got {sample_size}"
        )

    columns, rows = _run(
        db,
        f"SELECT * FROM {quote_identifier(table)} ORDER BY RANDOM() LIMIT ?",
        [sample_size],
        operation="sample rows",
        table=table,
    )
    return _records(columns, rows, transform)
