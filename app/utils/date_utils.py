"""
Calendar Helpers.

Budget period arithmetic and analytics date windows.  All functions take
``today`` explicitly (defaulting to the current UTC date) so callers and
tests can pin the clock.
"""

from __future__ import annotations

import calendar
from datetime import date, datetime, timedelta, timezone
from typing import Optional

from app.models.enums import AnalyticsPeriod, BudgetPeriod

__all__ = [
    "utc_today",
    "utc_now_iso",
    "add_months",
    "month_start",
    "month_end",
    "budget_end_date",
    "period_range",
    "previous_period",
    "month_starts_back",
]


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string, the stored timestamp format."""
    return datetime.now(timezone.utc).isoformat()


def add_months(value: date, months: int) -> date:
    """Shift *value* by *months*, clamping the day to the target month's length."""
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def month_start(value: date) -> date:
    return value.replace(day=1)


def month_end(value: date) -> date:
    return value.replace(day=calendar.monthrange(value.year, value.month)[1])


def budget_end_date(start: date, period: BudgetPeriod) -> date:
    """Last day (inclusive) of a budget starting on *start*.

    weekly: start + 6 days
    monthly: start + 1 month - 1 day
    yearly: start + 1 year - 1 day
    """
    if period == BudgetPeriod.WEEKLY:
        return start + timedelta(days=6)
    if period == BudgetPeriod.MONTHLY:
        return add_months(start, 1) - timedelta(days=1)
    if period == BudgetPeriod.YEARLY:
        return add_months(start, 12) - timedelta(days=1)
    raise ValueError(f"Unsupported budget period: {period}")


def period_range(
    period: Optional[AnalyticsPeriod] = None,
    start: Optional[date] = None,
    end: Optional[date] = None,
    today: Optional[date] = None,
) -> tuple[date, date]:
    """Resolve an analytics window.

    Explicit *start*/*end* win when both are given.  Otherwise the window
    ends today and begins at: week = 7 days ago, month = first of the
    month (default), quarter = first day of the quarter, year = Jan 1.
    """
    today = today or utc_today()
    if start is not None and end is not None:
        return start, end

    end = end or today
    if period == AnalyticsPeriod.WEEK:
        return end - timedelta(days=7), end
    if period == AnalyticsPeriod.QUARTER:
        quarter_month = (end.month - 1) // 3 * 3 + 1
        return date(end.year, quarter_month, 1), end
    if period == AnalyticsPeriod.YEAR:
        return date(end.year, 1, 1), end
    return month_start(end), end


def previous_period(start: date, end: date) -> tuple[date, date]:
    """The window of equal length ending the day before *start*."""
    length = end - start
    previous_end = start - timedelta(days=1)
    return previous_end - length, previous_end


def month_starts_back(months: int, today: Optional[date] = None) -> list[date]:
    """First days of the last *months* months, oldest first, ending with the current month."""
    current = month_start(today or utc_today())
    return [add_months(current, -offset) for offset in range(months - 1, -1, -1)]

