"""Identifier validation and WHERE-clause construction for user supplied filters."""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Union

from app.exceptions import InvalidInputError

_IDENTIFIER_RE = re.compile(r"^[A-Za-z0-9_]+$")

Scalar = Union[str, int, float, bool, None]

COMPARISON_OPERATORS: dict[str, str] = {
    "eq": "=",
    "neq": "!=",
    "gt": ">",
    "gte": ">=",
    "lt": "<",
    "lte": "<=",
    "like": "LIKE",
}


def is_identifier(name: object) -> bool:
    return isinstance(name, str) and _IDENTIFIER_RE.fullmatch(name) is not None


def validate_identifier(name: str) -> str:
    """Validate that a string is a safe SQL identifier.

    SQLite cannot bind identifiers as parameters, so every table or column name
    interpolated into SQL text must pass this check first.
    """
    if not is_identifier(name):
        raise InvalidInputError(
            f"Invalid identifier: {name!r}. "
            "Expected letters, digits and underscores only."
        )
    return name


def quote_identifier(name: str) -> str:
    """Quote a validated identifier for use in SQL (handles reserved keywords).

    Backticks, unlike double quotes, never fall back to a string literal when
    no such column exists, so unknown names still fail.
    """
    return f"`{validate_identifier(name)}`"


@dataclass(frozen=True)
class Contains:
    """Substring match on a text value."""

    text: str


@dataclass(frozen=True)
class Equals:
    """Exact match on a number or boolean."""

    value: int | float | bool


@dataclass(frozen=True)
class OneOf:
    """Membership test against an ordered set of values."""

    values: tuple[Scalar, ...]


@dataclass(frozen=True)
class Compare:
    """Operator-tagged comparison, e.g. ``{"gte": 10}``."""

    operator: str
    value: Scalar


FilterExpression = Union[Contains, Equals, OneOf, Compare]


def _is_scalar(value: object) -> bool:
    return value is None or isinstance(value, (str, int, float, bool))


def parse_filter(column: str, raw: Any) -> FilterExpression | None:
    """Convert a loosely typed filter value into a FilterExpression.

    Returns None for values that mean "no filter" (None or an empty string).
    """
    if raw is None or raw == "":
        return None
    if isinstance(raw, (Contains, Equals, OneOf, Compare)):
        return raw
    if isinstance(raw, str):
        return Contains(raw)
    if isinstance(raw, (bool, int, float)):
        return Equals(raw)
    if isinstance(raw, Mapping):
        if len(raw) != 1:
            raise InvalidInputError(
                f"Filter for '{column}' must have exactly one operator, "
                f"got {list(raw)}"
            )
        operator, operand = next(iter(raw.items()))
        if operator not in COMPARISON_OPERATORS:
            allowed = ", ".join(COMPARISON_OPERATORS)
            raise InvalidInputError(
                f"Unknown filter operator {operator!r} for '{column}'. "
                f"Expected one of: {allowed}"
            )
        if not _is_scalar(operand):
            raise InvalidInputError(
                f"Operand for '{column}' {operator} must be a single value"
            )
        return Compare(operator, operand)
    if isinstance(raw, Sequence) and not isinstance(raw, (bytes, bytearray)):
        values = tuple(raw)
        if not all(_is_scalar(v) for v in values):
            raise InvalidInputError(
                f"Membership filter for '{column}' may only contain single values"
            )
        return OneOf(values)
    raise InvalidInputError(
        f"Unsupported filter value for '{column}': {type(raw).__name__}"
    )


def _condition(column: str, expr: FilterExpression) -> tuple[str, list[Any]]:
    col = quote_identifier(column)
    if isinstance(expr, Contains):
        return f"{col} LIKE ?", [f"%{expr.text}%"]
    if isinstance(expr, Equals):
        return f"{col} = ?", [expr.value]
    if isinstance(expr, OneOf):
        placeholders = ", ".join("?" for _ in expr.values)
        return f"{col} IN ({placeholders})", list(expr.values)
    if isinstance(expr, Compare):
        if expr.value is None and expr.operator in ("eq", "neq"):
            return f"{col} IS {'NOT ' if expr.operator == 'neq' else ''}NULL", []
        return f"{col} {COMPARISON_OPERATORS[expr.operator]} ?", [expr.value]
    raise InvalidInputError(f"Unsupported filter expression for '{column}'")


def build_where(filters: Mapping[str, Any] | None) -> tuple[str, list[Any]]:
    """Build a parameterized WHERE clause from column -> filter mappings.

    The returned clause starts with `` WHERE `` or is empty. Parameters are in
    emission order and must be bound as-is by every query sharing the clause.
    """
    where_clauses: list[str] = []
    params: list[Any] = []

    for column, raw in (filters or {}).items():
        column = validate_identifier(column)
        expr = parse_filter(column, raw)
        if expr is None:
            continue
        clause, clause_params = _condition(column, expr)
        where_clauses.append(clause)
        params.extend(clause_params)

    where_sql = f" WHERE {' AND '.join(where_clauses)}" if where_clauses else ""
    return where_sql, params


def normalize_sort_direction(direction: str | None) -> str:
    """Uppercase a sort direction, defaulting to ASC for anything unrecognized."""
    if direction and direction.strip().upper() == "DESC":
        return "DESC"
    return "ASC"
