"""Turn flat query rows into labeled chart datasets."""

from __future__ import annotations

import math
import sqlite3
from datetime import date, datetime
from typing import Any

from app.query_processor import execute_query
from app.rows import to_camel_case
from app.schemas import ChartConfig, ChartData, ChartDataset, TableQuery

CHART_COLORS: tuple[str, ...] = (
    "#2563EB",
    "#D946EF",
    "#F59E0B",
    "#10B981",
    "#6366F1",
    "#EF4444",
    "#8B5CF6",
    "#EC4899",
    "#06B6D4",
    "#84CC16",
)

_MISSING = object()


def _field_value(row: dict[str, Any], field: str) -> Any:
    """Look a column up by its raw name or by the camelCase name rows carry."""
    value = row.get(field, _MISSING)
    if value is _MISSING:
        value = row.get(to_camel_case(field), _MISSING)
    return None if value is _MISSING else value


def _label(value: Any, missing: str) -> str:
    if value is None:
        return missing
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def _number(value: Any) -> int | float:
    """Coerce a cell to a number; anything non-numeric counts as 0."""
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        number = value
    elif isinstance(value, str):
        try:
            number = float(value.strip()) if value.strip() else 0
        except ValueError:
            return 0
    else:
        return 0
    if isinstance(number, float):
        if not math.isfinite(number):
            return 0
        if number.is_integer():
            return int(number)
    return number


def _color(index: int) -> str:
    return CHART_COLORS[index % len(CHART_COLORS)]


def shape_chart_data(rows: list[dict[str, Any]], config: ChartConfig) -> ChartData:
    """Build chart labels and datasets from rows and an x/y/group-by mapping.

    Grouped charts get one dataset per distinct group (first-seen order), each
    exactly as long as ``labels`` and zero-filled where a (label, group) pair
    has no row.
    """
    if not rows:
        return ChartData(
            labels=[],
            datasets=[
                ChartDataset(
                    label="No Data",
                    data=[],
                    background_color=_color(0),
                    border_color=_color(0),
                )
            ],
        )

    labels = [_label(_field_value(row, config.x_field), "Unknown") for row in rows]

    if not config.group_by:
        data = [_number(_field_value(row, config.y_field)) for row in rows]
        if config.type in ("pie", "doughnut"):
            colors: str | list[str] = [_color(i) for i in range(len(data))]
        else:
            colors = _color(0)
        return ChartData(
            labels=labels,
            datasets=[
                ChartDataset(
                    label=config.y_field,
                    data=data,
                    background_color=colors,
                    border_color=colors,
                )
            ],
        )

    group_values = [
        _label(_field_value(row, config.group_by), "Other") for row in rows
    ]
    groups = list(dict.fromkeys(group_values))

    first_rows: dict[tuple[str, str], dict[str, Any]] = {}
    for row_label, row_group, row in zip(labels, group_values, rows):
        first_rows.setdefault((row_label, row_group), row)

    datasets: list[ChartDataset] = []
    for index, group in enumerate(groups):
        data: list[int | float] = []
        for label in labels:
            row = first_rows.get((label, group))
            data.append(0 if row is None else _number(_field_value(row, config.y_field)))
        datasets.append(
            ChartDataset(
                label=group,
                data=data,
                background_color=_color(index),
                border_color=_color(index),
            )
        )
    return ChartData(labels=labels, datasets=datasets)


def load_chart_rows(
    db: sqlite3.Connection, config: ChartConfig, *, limit: int
) -> list[dict[str, Any]]:
    """Fetch the first ``limit`` rows a chart is drawn from, honoring its filters."""
    result = execute_query(
        db,
        TableQuery(
            table=config.table,
            page=1,
            page_size=limit,
            filters=config.filters or {},
        ),
    )
    return result.rows


def build_chart_data(
    db: sqlite3.Connection, config: ChartConfig, *, limit: int
) -> ChartData:
    """Query a chart's rows and shape them into ChartData."""
    return shape_chart_data(load_chart_rows(db, config, limit=limit), config)
