"""Shared utility functions and models for the Budget Tracker API.

This package provides convenience re-exports so that consumers can import
directly from ``app.utils`` (e.g. ``from app.utils import round_money``)
while full absolute imports (e.g. ``from app.utils.math_utils import
round_money``) remain supported.
"""

from app.utils.audit import AuditEvent, log_audit_event
from app.utils.date_utils import budget_end_date, period_range, utc_today
from app.utils.general import convert_to_json_safe
from app.utils.math_utils import percentage, round_money
from app.utils.string_helpers import sanitize_postgrest_value, to_snake_case

__all__ = [
    "AuditEvent",
    "log_audit_event",
    "budget_end_date",
    "period_range",
    "utc_today",
    "convert_to_json_safe",
    "percentage",
    "round_money",
    "sanitize_postgrest_value",
    "to_snake_case",
]
