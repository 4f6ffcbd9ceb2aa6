from __future__ import annotations

import pytest

from app.exceptions import InvalidInputError
from app.sql import (
    Compare,
    Contains,
    Equals,
    OneOf,
    build_where,
    normalize_sort_direction,
    parse_filter,
    quote_identifier,
    validate_identifier,
)


@pytest.mark.parametrize("name", ["sales", "order_items", "T1", "_private", "2024_data"])
def test_validate_identifier_accepts_safe_names(name: str) -> None:
    assert validate_identifier(name) == name


@pytest.mark.parametrize(
    "name",
    [
        "",
        "drop table",
        "sales;",
        "sales; DROP TABLE users",
        "a'b",
        'a"b',
        "sales--",
        "sales.amount",
        "naïve",
        "sales\n",
    ],
)
def test_validate_identifier_rejects_unsafe_names(name: str) -> None:
    with pytest.raises(InvalidInputError) as excinfo:
        validate_identifier(name)
    assert repr(name) in str(excinfo.value)


def test_validate_identifier_rejects_non_strings() -> None:
    with pytest.raises(InvalidInputError):
        validate_identifier(None)  # type: ignore[arg-type]


def test_quote_identifier_wraps_in_backticks() -> None:
    assert quote_identifier("order") == "`order`"


def test_parse_filter_maps_each_shape() -> None:
    assert parse_filter("c", "east") == Contains("east")
    assert parse_filter("c", 3) == Equals(3)
    assert parse_filter("c", True) == Equals(True)
    assert parse_filter("c", ["a", "b"]) == OneOf(("a", "b"))
    assert parse_filter("c", {"gte": 5}) == Compare("gte", 5)


@pytest.mark.parametrize("value", [None, ""])
def test_parse_filter_skips_empty_values(value: object) -> None:
    assert parse_filter("c", value) is None


@pytest.mark.parametrize(
    "value",
    [
        {"between": [1, 2]},
        {"gt": 1, "lt": 5},
        {},
        {"eq": [1, 2]},
        [["nested"]],
        object(),
    ],
)
def test_parse_filter_rejects_unrecognized_shapes(value: object) -> None:
    with pytest.raises(InvalidInputError):
        parse_filter("c", value)


def test_build_where_empty_filters() -> None:
    assert build_where({}) == ("", [])
    assert build_where(None) == ("", [])
    assert build_where({"region": None, "name": ""}) == ("", [])


def test_build_where_string_is_substring_match() -> None:
    where_sql, params = build_where({"region": "east"})
    assert where_sql == ' WHERE `region` LIKE ?'
    assert params == ["%east%"]


def test_build_where_joins_conditions_in_emission_order() -> None:
    where_sql, params = build_where(
        {
            "region": ["east", "west"],
            "amount": {"gt": 100},
            "is_paid": True,
            "skipped": None,
            "name": {"like": "cust%"},
        }
    )
    assert where_sql == (
        ' WHERE `region` IN (?, ?) AND `amount` > ? AND `is_paid` = ?'
        ' AND `name` LIKE ?'
    )
    assert params == ["east", "west", 100, True, "cust%"]


@pytest.mark.parametrize(
    ("operator", "sql"),
    [("eq", "="), ("neq", "!="), ("gt", ">"), ("gte", ">="), ("lt", "<"), ("lte", "<=")],
)
def test_build_where_comparison_operators(operator: str, sql: str) -> None:
    where_sql, params = build_where({"amount": {operator: 10}})
    assert where_sql == f' WHERE `amount` {sql} ?'
    assert params == [10]


def test_build_where_null_equality_uses_is_null() -> None:
    assert build_where({"metadata": {"eq": None}}) == (' WHERE `metadata` IS NULL', [])
    assert build_where({"metadata": {"neq": None}}) == (
        ' WHERE `metadata` IS NOT NULL',
        [],
    )


def test_build_where_rejects_bad_column_names() -> None:
    with pytest.raises(InvalidInputError):
        build_where({"region = 'x' OR 1=1 --": "east"})


@pytest.mark.parametrize(
    ("direction", "expected"),
    [("asc", "ASC"), ("desc", "DESC"), ("DESC", "DESC"), ("sideways", "ASC"), (None, "ASC")],
)
def test_normalize_sort_direction(direction: str | None, expected: str) -> None:
    assert normalize_sort_direction(direction) == expected
