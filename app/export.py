"""CSV rendering of table pages and saved chart data."""

from __future__ import annotations

import sqlite3
from typing import Any

import pandas as pd

from app.charts import build_chart_data
from app.query_processor import execute_query
from app.schemas import ChartConfig, ChartData, TableQuery


def rows_to_csv(rows: list[dict[str, Any]], columns: list[str] | None = None) -> str:
    """Render rows as CSV text; ``columns`` selects and orders the output."""
    if columns is None and not rows:
        return ""
    return pd.DataFrame.from_records(rows, columns=columns).to_csv(index=False)


def _unique_column(name: str, taken: set[str]) -> str:
    candidate = name
    suffix = 2
    while candidate in taken:
        candidate = f"{name}_{suffix}"
        suffix += 1
    taken.add(candidate)
    return candidate


def chart_data_to_frame(chart: ChartData, label_column: str) -> pd.DataFrame:
    """One row per label, one column per dataset.

    Dataset labels that clash with the label column or with each other get a
    numeric suffix (``region_2``).
    """
    taken = {label_column}
    frame = pd.DataFrame({label_column: chart.labels})
    for dataset in chart.datasets:
        if len(dataset.data) == len(chart.labels):
            frame[_unique_column(dataset.label, taken)] = dataset.data
    return frame


def export_table_csv(
    db: sqlite3.Connection,
    table: str,
    filters: dict[str, Any] | None = None,
    *,
    row_limit: int,
) -> str:
    """Export up to ``row_limit`` filtered rows of a table as CSV.

    Rows are read by a single statement so the export is one consistent scan.
    """
    result = execute_query(
        db,
        TableQuery(table=table, page=1, page_size=row_limit, filters=filters or {}),
        transform=None,
    )
    return rows_to_csv(result.rows, result.columns)


def export_chart_csv(db: sqlite3.Connection, config: ChartConfig, *, row_limit: int) -> str:
    """Export the shaped data behind a chart as CSV."""
    chart = build_chart_data(db, config, limit=row_limit)
    return chart_data_to_frame(chart, config.x_field).to_csv(index=False)
