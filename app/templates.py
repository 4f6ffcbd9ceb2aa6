"""Insight template field extraction and template-to-chart resolution."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from app.exceptions import InvalidInputError
from app.query_processor import get_tables
from app.schemas import CHART_TYPES, ChartConfig, TemplateField
from app.sql import is_identifier

if TYPE_CHECKING:
    from app.connections import ConnectionCache
    from app.store import AppStore

logger = logging.getLogger(__name__)


def _describe_errors(exc: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(part) for part in error['loc']) or 'value'}: {error['msg']}"
        for error in exc.errors()
    )


def _explicit_fields(
    fields: list[Any] | tuple[Any, ...], *, strict: bool
) -> list[TemplateField]:
    result: list[TemplateField] = []
    for index, field in enumerate(fields):
        try:
            result.append(TemplateField.model_validate(field))
        except ValidationError as exc:
            problems = _describe_errors(exc)
            if strict:
                raise InvalidInputError(
                    f"Invalid template field at index {index}: {problems}"
                ) from exc
            logger.warning("Skipping malformed template field %d: %s", index, problems)
    return result


def extract_fields(
    config: Mapping[str, Any], *, strict: bool = False
) -> list[TemplateField]:
    """Derive the logical fields a template needs mapped to real columns.

    First match wins: an explicit ``fields`` list, then ``requiredMappings``,
    then the standard x/y axis pair (plus ``groupBy`` when grouping is allowed).

    Malformed entries in an explicit ``fields`` list are skipped with a warning,
    or rejected with InvalidInputError when ``strict`` is set.
    """
    fields = config.get("fields")
    if isinstance(fields, (list, tuple)):
        return _explicit_fields(fields, strict=strict)

    required_mappings = config.get("requiredMappings")
    if isinstance(required_mappings, Mapping):
        result: list[TemplateField] = []
        for field_id, mapping in required_mappings.items():
            mapping = mapping if isinstance(mapping, Mapping) else {}
            name = str(mapping.get("name") or field_id)
            required = mapping.get("required")
            result.append(
                TemplateField(
                    id=str(field_id),
                    name=name,
                    description=str(mapping.get("description") or f"Field for {name}"),
                    required=True if required is None else bool(required),
                )
            )
        return result

    result = [
        TemplateField(
            id="xField",
            name="X-Axis Field",
            description="Field to use for the X-axis (categories)",
            required=True,
        ),
        TemplateField(
            id="yField",
            name="Y-Axis Field",
            description="Field to use for the Y-axis (values)",
            required=True,
        ),
    ]
    if config.get("allowGrouping"):
        result.append(
            TemplateField(
                id="groupBy",
                name="Group By Field",
                description="Optional field to group data by",
                required=False,
            )
        )
    return result


def split_field_reference(reference: str) -> tuple[str, str] | None:
    """Split ``"table.column"`` into its parts; None unless both are identifiers."""
    parts = reference.split(".")
    if len(parts) != 2:
        return None
    table, column = parts
    if not (is_identifier(table) and is_identifier(column)):
        return None
    return table, column


def apply_template(
    store: AppStore,
    connections: ConnectionCache,
    template_id: int,
    connection_id: int,
    mappings: Mapping[str, str],
) -> ChartConfig:
    """Bind a template's fields to ``table.column`` references on a connection."""
    template = store.get_template(template_id)
    connection = store.get_connection(connection_id)

    missing = [
        field.name for field in template.fields
        if field.required and not mappings.get(field.id)
    ]
    if missing:
        raise InvalidInputError(
            f"Missing required field mappings: {', '.join(missing)}"
        )

    if not mappings:
        raise InvalidInputError("No fields mapped")

    first_reference = next(iter(mappings.values()))
    parsed = split_field_reference(first_reference or "")
    if parsed is None:
        raise InvalidInputError(
            f"Invalid field format {first_reference!r}. "
            "Expected: tableName.columnName"
        )
    table = parsed[0]

    with connections.acquire(connection.id, connection.path) as db:
        tables = get_tables(db)
    if table not in tables:
        raise InvalidInputError(f"Table does not exist: {table}")

    columns: dict[str, str] = {}
    for field_id, reference in mappings.items():
        parsed = split_field_reference(reference or "")
        if parsed is None:
            logger.debug("Ignoring unparseable mapping %s=%r", field_id, reference)
            continue
        columns[field_id] = parsed[1]

    if template.type not in CHART_TYPES:
        raise InvalidInputError(
            f"Template {template.id} has unsupported chart type {template.type!r}"
        )

    x_field = columns.get("xField", "")
    y_field = columns.get("yField", "")
    if not x_field or not y_field:
        raise InvalidInputError(
            "Template mappings must resolve both xField and yField"
        )

    options = template.config.get("options")
    return ChartConfig(
        type=template.type,
        table=table,
        x_field=x_field,
        y_field=y_field,
        group_by=columns.get("groupBy") or None,
        options=options if isinstance(options, dict) else None,
    )
