"""
Money and Statistics Utilities.

Pure Decimal helpers shared by the services and the analytics engine.
No external dependencies (no numpy/scipy needed).
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Union

__all__: list[str] = [
    "to_decimal",
    "round_money",
    "round_percent",
    "safe_divide",
    "percentage",
    "percentage_change",
    "mean",
    "std_deviation",
    "coefficient_of_variation",
]

ZERO: Decimal = Decimal("0")
_CENT: Decimal = Decimal("0.01")

Numeric = Union[Decimal, int, float, str]


def _validate_finite(value: Decimal, name: str) -> None:
    """Raise ``ValueError`` if *value* is NaN or +/-Inf."""
    if value.is_nan() or value.is_infinite():
        raise ValueError(f"{name} must be a finite number, got {value!r}.")


def to_decimal(value: Numeric | None) -> Decimal:
    """Convert a stored numeric value to ``Decimal``.

    Floats go through ``str`` so ``45.1`` becomes ``Decimal("45.1")``
    rather than its binary expansion.  ``None`` and blanks become zero.
    """
    if value is None or value == "":
        return ZERO
    if isinstance(value, Decimal):
        result = value
    else:
        result = Decimal(str(value))
    _validate_finite(result, "value")
    return result


def round_money(value: Numeric) -> Decimal:
    """Round to cents using half-up, the convention for displayed money."""
    return to_decimal(value).quantize(_CENT, rounding=ROUND_HALF_UP)


def round_percent(value: Numeric, places: int = 2) -> Decimal:
    return to_decimal(value).quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)


def safe_divide(numerator: Numeric, denominator: Numeric) -> Decimal:
    """``numerator / denominator``, or zero when the denominator is zero."""
    denom = to_decimal(denominator)
    if denom == ZERO:
        return ZERO
    return to_decimal(numerator) / denom


def percentage(part: Numeric, whole: Numeric) -> Decimal:
    """``part`` as a percentage of ``whole``, rounded to 2 places."""
    return round_percent(safe_divide(part, whole) * 100)


def percentage_change(previous: Numeric, current: Numeric) -> Decimal:
    """Relative change from *previous* to *current* in percent.

    A move away from zero reports 100 (or -100); staying at zero is 0.
    Negative baselines are compared by magnitude so a shrinking deficit
    reads as an improvement.
    """
    prev = to_decimal(previous)
    curr = to_decimal(current)
    if prev == ZERO:
        if curr == ZERO:
            return ZERO
        return Decimal("100") if curr > ZERO else Decimal("-100")
    return round_percent((curr - prev) / abs(prev) * 100)


def mean(values: Iterable[Numeric]) -> Decimal:
    items = [to_decimal(v) for v in values]
    if not items:
        return ZERO
    return sum(items, ZERO) / len(items)


def std_deviation(values: Iterable[Numeric]) -> Decimal:
    """Population standard deviation."""
    items = [to_decimal(v) for v in values]
    if len(items) < 2:
        return ZERO
    avg = sum(items, ZERO) / len(items)
    variance = sum(((v - avg) ** 2 for v in items), ZERO) / len(items)
    return variance.sqrt()


def coefficient_of_variation(values: Iterable[Numeric]) -> Decimal:
    """Standard deviation over mean.

    Returns ``1`` when the mean is zero, the least favourable value in the
    0.1 / 0.2 / 0.3 stability bands used by the health score.
    """
    items = [to_decimal(v) for v in values]
    avg = mean(items)
    if avg <= ZERO:
        return Decimal("1")
    return std_deviation(items) / avg
