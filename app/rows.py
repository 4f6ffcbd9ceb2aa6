"""Shape raw SQLite rows into JSON-friendly records."""

from __future__ import annotations

import json
import re
from datetime import datetime
from typing import Any

_ISO_TIMESTAMP_RE = re.compile(
    r"^\d{4}-\d{2}-\d{2}[T ]\d{2}:\d{2}:\d{2}(\.\d+)?(Z|[+-]\d{2}:?\d{2})?$"
)
_BOOLEAN_PREFIXES = ("is_", "has_", "can_", "should_")


def to_camel_case(name: str) -> str:
    """Convert ``snake_case`` to ``camelCase``; other names pass through."""
    head, *rest = name.split("_")
    if not rest:
        return name
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


def parse_value(column: str, value: Any) -> Any:
    """Decode booleans, ISO timestamps and JSON documents stored as plain values."""
    if isinstance(value, int) and not isinstance(value, bool):
        if value in (0, 1) and column.lower().startswith(_BOOLEAN_PREFIXES):
            return bool(value)
        return value

    if not isinstance(value, str):
        return value

    if _ISO_TIMESTAMP_RE.match(value):
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return value

    if value[:1] in ("{", "["):
        try:
            return json.loads(value)
        except ValueError:
            return value

    return value


def transform_row(row: dict[str, Any]) -> dict[str, Any]:
    """Rename keys to camelCase and decode values, preserving column order."""
    return {to_camel_case(key): parse_value(key, value) for key, value in row.items()}
