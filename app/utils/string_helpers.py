"""
String Helpers.

Header normalization for imported spreadsheets and sanitizing of
user-supplied search terms before they reach a PostgREST filter.
"""

from __future__ import annotations

import re
from typing import Union

# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

__all__ = [
    "JsonValue",
    "to_snake_case",
    "sanitize_postgrest_value",
]

# ---------------------------------------------------------------------------
# Recursive JSON value type (PEP 484 - no use of ``Any``)
# ---------------------------------------------------------------------------

JsonValue = Union[
    str,
    int,
    float,
    bool,
    None,
    dict[str, "JsonValue"],
    list["JsonValue"],
]

# ---------------------------------------------------------------------------
# Pre-compiled regex patterns
# ---------------------------------------------------------------------------

# Inserts underscore between a run of uppercase letters and an uppercase
# letter followed by a lowercase letter.  e.g. "IDNumber" -> "ID_Number"
_RE_UPPER_RUN = re.compile(r"([A-Z]+)([A-Z][a-z])")

# Inserts underscore at the camelCase boundary where a lowercase letter or
# digit is followed by an uppercase letter.  e.g. "categoryId" -> "category_Id"
_RE_CAMEL_BOUNDARY = re.compile(r"([a-z\d])([A-Z])")

# Spaces, hyphens and slashes in spreadsheet headers become underscores.
_RE_SEPARATORS = re.compile(r"[\s\-/]+")

# Collapses multiple consecutive underscores into a single one.
_RE_MULTI_UNDERSCORE = re.compile(r"_+")

# ---------------------------------------------------------------------------
# Case-conversion primitives
# ---------------------------------------------------------------------------


def to_snake_case(name: str) -> str:
    """Convert a camelCase, PascalCase, Title Case or mixed string to snake_case.

    Examples::

        categoryId       -> category_id
        budgetAmount     -> budget_amount
        Budget Amount    -> budget_amount
        Parent Category  -> parent_category
        isActive         -> is_active
        start-date       -> start_date

    Known limitation: an all-uppercase acronym followed directly by a
    lowercase letter (``XMLproperty``) splits in the wrong place.  Use
    PascalCase boundaries after acronyms (``XMLProperty``).
    """
    s0 = _RE_SEPARATORS.sub("_", name.strip())
    s1 = _RE_UPPER_RUN.sub(r"\1_\2", s0)
    s2 = _RE_CAMEL_BOUNDARY.sub(r"\1_\2", s1)
    s3 = _RE_MULTI_UNDERSCORE.sub("_", s2)
    return s3.strip("_").lower()


# Characters unsafe for PostgREST filter interpolation: commas (OR
# predicates), periods (operator separators), parentheses (grouping),
# percent/underscore (SQL wildcards), backslash (ILIKE escape), colon
# (PostgREST relation/cast syntax).  The allowlist keeps alphanumerics,
# whitespace, hyphens, apostrophes, ampersands and accented Latin letters.
_POSTGREST_UNSAFE_RE: re.Pattern[str] = re.compile(r"[^a-zA-Z0-9\s\-'&À-ɏ]")


def sanitize_postgrest_value(value: str) -> str:
    """Strip characters unsafe for interpolation into an ``ilike`` pattern.

    Parameters
    ----------
    value:
        The raw user-supplied search string.

    Returns
    -------
    str
        The string with PostgREST operators (``.``, ``,``, ``(``, ``)``),
        SQL wildcards (``%``, ``_``) and escapes removed, safe to wrap as
        ``%value%``.
    """
    return _POSTGREST_UNSAFE_RE.sub("", value).strip()
