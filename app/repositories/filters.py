"""
Repository Filter Parsing.

Translates the filter-map convention used by every repository into
typed clauses, and evaluates those clauses against plain row dicts for
the JSON file backend.

Filter keys::

    gte_<col>      col >= value
    lte_<col>      col <= value
    ilike_<col>    case-insensitive LIKE ('%' any run, '_' one character)
    neq_<col>      col != value
    in_<col>       col IN (values)
    is_null_<col>  col IS NULL when truthy, IS NOT NULL when falsy
    <col>          col == value

Keys whose value is ``None`` are skipped, so callers can pass optional
query parameters straight through.  Comparison semantics follow
PostgreSQL: a NULL column never satisfies a comparison.
"""

from __future__ import annotations

import re
from datetime import date, datetime
from decimal import Decimal
from enum import Enum, StrEnum
from functools import lru_cache
from typing import Mapping, Optional, Union

from pydantic import BaseModel

from app.utils.string_helpers import JsonValue

__all__ = [
    "FilterOperator",
    "FilterClause",
    "parse_filters",
    "row_matches",
    "ilike_match",
    "sort_rows",
]

ClauseValue = Union[str, int, float, bool, list[str], None]


class FilterOperator(StrEnum):
    EQ = "eq"
    NEQ = "neq"
    GTE = "gte"
    LTE = "lte"
    ILIKE = "ilike"
    IN = "in"
    IS_NULL = "is_null"


# Longest prefixes first so "is_null_" is not read as a column named "is_null_x".
_PREFIXES: tuple[tuple[str, FilterOperator], ...] = (
    ("is_null_", FilterOperator.IS_NULL),
    ("ilike_", FilterOperator.ILIKE),
    ("gte_", FilterOperator.GTE),
    ("lte_", FilterOperator.LTE),
    ("neq_", FilterOperator.NEQ),
    ("in_", FilterOperator.IN),
)


class FilterClause(BaseModel):
    """One parsed ``column <operator> value`` predicate."""

    model_config = {"frozen": True}

    column: str
    operator: FilterOperator
    value: ClauseValue


def _normalize_value(value: object) -> ClauseValue:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, (list, tuple, set, frozenset)):
        return [str(_normalize_value(item)) for item in value]
    return value


def parse_filters(filters: Optional[Mapping[str, object]]) -> list[FilterClause]:
    """Convert a filter map into clauses, skipping ``None`` values."""
    clauses: list[FilterClause] = []
    for key, raw_value in (filters or {}).items():
        if raw_value is None:
            continue
        operator = FilterOperator.EQ
        column = key
        for prefix, prefix_operator in _PREFIXES:
            if key.startswith(prefix) and len(key) > len(prefix):
                operator = prefix_operator
                column = key[len(prefix):]
                break
        value = _normalize_value(raw_value)
        if operator == FilterOperator.IN and not isinstance(value, list):
            value = [str(value)]
        clauses.append(FilterClause(column=column, operator=operator, value=value))
    return clauses


# ---------------------------------------------------------------------------
# In-memory evaluation (JSON file backend)
# ---------------------------------------------------------------------------

_TRUE_STRINGS = frozenset({"true", "1", "yes"})


@lru_cache(maxsize=256)
def _ilike_regex(pattern: str) -> re.Pattern[str]:
    parts: list[str] = []
    for char in pattern:
        if char == "%":
            parts.append(".*")
        elif char == "_":
            parts.append(".")
        else:
            parts.append(re.escape(char))
    return re.compile("".join(parts), re.IGNORECASE | re.DOTALL)


def ilike_match(value: object, pattern: str) -> bool:
    """PostgreSQL ``ILIKE``: whole-string, case-insensitive, ``%``/``_`` wildcards."""
    if value is None:
        return False
    return _ilike_regex(pattern).fullmatch(str(value)) is not None


def _coerce_pair(row_value: JsonValue, filter_value: ClauseValue) -> tuple[object, object]:
    """Bring a stored value and a filter value to comparable types.

    Numeric columns compare numerically and booleans accept ``"true"``/
    ``"false"`` strings; everything else compares as text, which orders
    ISO dates correctly.
    """
    if isinstance(row_value, bool):
        if isinstance(filter_value, str):
            return row_value, filter_value.strip().lower() in _TRUE_STRINGS
        return row_value, bool(filter_value)
    if isinstance(row_value, (int, float)) and not isinstance(filter_value, bool):
        try:
            return float(row_value), float(filter_value)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            return str(row_value), str(filter_value)
    return str(row_value), str(filter_value)


def _clause_matches(row: Mapping[str, JsonValue], clause: FilterClause) -> bool:
    row_value = row.get(clause.column)

    if clause.operator == FilterOperator.IS_NULL:
        return (row_value is None) == bool(clause.value)

    if row_value is None:
        return False

    if clause.operator == FilterOperator.ILIKE:
        return ilike_match(row_value, str(clause.value))

    if clause.operator == FilterOperator.IN:
        candidates = clause.value if isinstance(clause.value, list) else [clause.value]
        return str(row_value) in {str(item) for item in candidates}

    left, right = _coerce_pair(row_value, clause.value)
    if clause.operator == FilterOperator.EQ:
        return left == right
    if clause.operator == FilterOperator.NEQ:
        return left != right
    if clause.operator == FilterOperator.GTE:
        return left >= right  # type: ignore[operator]
    if clause.operator == FilterOperator.LTE:
        return left <= right  # type: ignore[operator]
    raise ValueError(f"Unsupported filter operator: {clause.operator}")


def row_matches(row: Mapping[str, JsonValue], clauses: list[FilterClause]) -> bool:
    """``True`` when *row* satisfies every clause."""
    return all(_clause_matches(row, clause) for clause in clauses)


def _sort_key(value: JsonValue) -> tuple[int, object]:
    if isinstance(value, bool):
        return (0, int(value))
    if isinstance(value, (int, float)):
        return (0, float(value))
    return (1, str(value).lower())


def sort_rows(
    rows: list[dict[str, JsonValue]],
    column: str,
    descending: bool,
) -> list[dict[str, JsonValue]]:
    """Sort rows by *column*; rows without a value always come last."""
    present = [row for row in rows if row.get(column) is not None]
    missing = [row for row in rows if row.get(column) is None]
    present.sort(key=lambda row: _sort_key(row[column]), reverse=descending)
    return present + missing
