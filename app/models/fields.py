"""
Reusable Annotated Field Types.

Constraint bundles shared by the entity input models so the amount
ceiling and identifier format are declared once.
"""

from __future__ import annotations

import uuid
from decimal import Decimal
from typing import Annotated

from pydantic import AfterValidator, Field

MAX_AMOUNT: Decimal = Decimal("999999999.99")
HEX_COLOR_PATTERN: str = r"^#([A-Fa-f0-9]{6}|[A-Fa-f0-9]{3})$"


def validate_uuid(value: str) -> str:
    """Return *value* in canonical lowercase form or raise ``ValueError``."""
    try:
        return str(uuid.UUID(str(value)))
    except (ValueError, AttributeError, TypeError) as exc:
        raise ValueError(f"'{value}' is not a valid UUID") from exc


def is_valid_uuid(value: str) -> bool:
    try:
        validate_uuid(value)
    except ValueError:
        return False
    return True


UuidStr = Annotated[str, AfterValidator(validate_uuid)]

# Positive monetary amount with cent precision.
Money = Annotated[Decimal, Field(gt=0, le=MAX_AMOUNT, decimal_places=2)]

HexColor = Annotated[str, Field(pattern=HEX_COLOR_PATTERN)]
