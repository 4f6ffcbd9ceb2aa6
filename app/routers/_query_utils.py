"""Shared helpers for routers that read user tables."""

from __future__ import annotations

import re

from fastapi import Request

_FILTER_PARAM_RE = re.compile(r"^filter\[(.+)\]$")


def _filters_from_query(request: Request) -> dict[str, str]:
    """Collect ``filter[<column>]=<value>`` query parameters into a mapping.

    Values stay strings; column names are validated later when the WHERE
    clause is built.
    """
    filters: dict[str, str] = {}
    for key, value in request.query_params.multi_items():
        match = _FILTER_PARAM_RE.match(key)
        if match:
            filters[match.group(1)] = value
    return filters


def _attachment_headers(filename: str) -> dict[str, str]:
    return {"Content-Disposition": f'attachment; filename="{filename}"'}
