import json
from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from app.models.enums import AnalyticsPeriod, BudgetPeriod, TransactionType
from app.models.fields import is_valid_uuid, validate_uuid
from app.utils.audit import log_audit_event
from app.utils.date_utils import (
    add_months,
    budget_end_date,
    month_starts_back,
    period_range,
    previous_period,
)
from app.utils.general import convert_to_json_safe
from app.utils.math_utils import (
    coefficient_of_variation,
    percentage,
    percentage_change,
    round_money,
    safe_divide,
    to_decimal,
)
from app.utils.string_helpers import sanitize_postgrest_value, to_snake_case


class TestDates:
    @pytest.mark.parametrize(
        ("start", "period", "expected"),
        [
            (date(2024, 1, 1), BudgetPeriod.WEEKLY, date(2024, 1, 7)),
            (date(2024, 1, 1), BudgetPeriod.MONTHLY, date(2024, 1, 31)),
            (date(2024, 1, 15), BudgetPeriod.MONTHLY, date(2024, 2, 14)),
            (date(2024, 1, 31), BudgetPeriod.MONTHLY, date(2024, 2, 28)),
            (date(2024, 1, 1), BudgetPeriod.YEARLY, date(2024, 12, 31)),
            (date(2024, 2, 29), BudgetPeriod.YEARLY, date(2025, 2, 27)),
        ],
    )
    def test_budget_end_date(self, start, period, expected):
        assert budget_end_date(start, period) == expected

    def test_add_months_clamps_the_day(self):
        assert add_months(date(2024, 3, 31), -1) == date(2024, 2, 29)
        assert add_months(date(2024, 11, 30), 3) == date(2025, 2, 28)

    @pytest.mark.parametrize(
        ("period", "expected_start"),
        [
            (None, date(2024, 5, 1)),
            (AnalyticsPeriod.MONTH, date(2024, 5, 1)),
            (AnalyticsPeriod.WEEK, date(2024, 5, 13)),
            (AnalyticsPeriod.QUARTER, date(2024, 4, 1)),
            (AnalyticsPeriod.YEAR, date(2024, 1, 1)),
        ],
    )
    def test_period_range(self, period, expected_start):
        today = date(2024, 5, 20)
        assert period_range(period, today=today) == (expected_start, today)

    def test_explicit_range_wins(self):
        start, end = date(2023, 1, 1), date(2023, 3, 31)
        assert period_range(AnalyticsPeriod.WEEK, start, end, today=date(2024, 5, 20)) == (start, end)

    def test_previous_period_has_equal_length(self):
        assert previous_period(date(2024, 2, 1), date(2024, 2, 29)) == (date(2024, 1, 3), date(2024, 1, 31))

    def test_month_starts_back(self):
        assert month_starts_back(3, today=date(2024, 2, 10)) == [
            date(2023, 12, 1), date(2024, 1, 1), date(2024, 2, 1),
        ]


class TestMath:
    def test_floats_convert_through_str(self):
        assert to_decimal(45.1) == Decimal("45.1")
        assert to_decimal(None) == Decimal("0")

    def test_non_finite_values_are_rejected(self):
        with pytest.raises(ValueError):
            to_decimal("NaN")

    def test_round_money_is_half_up(self):
        assert round_money("2.675") == Decimal("2.68")
        assert round_money("-0.005") == Decimal("-0.01")

    def test_division_by_zero_is_zero(self):
        assert safe_divide(10, 0) == Decimal("0")
        assert percentage(1, 0) == Decimal("0.00")
        assert percentage(1, 3) == Decimal("33.33")

    @pytest.mark.parametrize(
        ("previous", "current", "expected"),
        [
            (0, 0, Decimal("0")),
            (0, 50, Decimal("100")),
            (0, -50, Decimal("-100")),
            (200, 100, Decimal("-50.00")),
            (-100, -50, Decimal("50.00")),
        ],
    )
    def test_percentage_change(self, previous, current, expected):
        assert percentage_change(previous, current) == expected

    def test_coefficient_of_variation(self):
        assert coefficient_of_variation([100, 100, 100]) == Decimal("0")
        assert coefficient_of_variation([0, 0]) == Decimal("1")
        assert coefficient_of_variation([50, 150]) == Decimal("0.5")


class TestStrings:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("categoryId", "category_id"),
            ("Budget Amount", "budget_amount"),
            ("start-date", "start_date"),
            ("  Parent Category ", "parent_category"),
            ("isActive", "is_active"),
            ("amount", "amount"),
        ],
    )
    def test_to_snake_case(self, raw, expected):
        assert to_snake_case(raw) == expected

    def test_sanitize_strips_postgrest_operators_and_wildcards(self):
        assert sanitize_postgrest_value(" coffee,(or.id.eq.1)% ") == "coffeeorideq1"
        assert sanitize_postgrest_value("Café & Bar's") == "Café & Bar's"


class TestUuid:
    def test_canonical_form(self):
        assert validate_uuid("A3BB189E-8BF9-3888-9912-ACE4E6543002") == "a3bb189e-8bf9-3888-9912-ace4e6543002"

    def test_invalid(self):
        assert not is_valid_uuid("not-a-uuid")
        assert not is_valid_uuid("")


def test_convert_to_json_safe_handles_nested_values():
    stamp = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)

    converted = convert_to_json_safe({
        "amount": Decimal("12.50"),
        "when": [date(2024, 1, 1), stamp],
        "type": TransactionType.INCOME,
        "ratio": float("nan"),
    })

    assert converted == {
        "amount": 12.5,
        "when": ["2024-01-01", "2024-01-02T03:04:05+00:00"],
        "type": "income",
        "ratio": None,
    }


def test_audit_event_is_logged_as_json():
    class RecordingLogger:
        def __init__(self):
            self.messages = []

        def info(self, msg, *args):
            self.messages.append(msg % args)

    recorder = RecordingLogger()

    log_audit_event(recorder, "DELETE", "Category", "abc", {"name": "Food"})

    prefix, payload = recorder.messages[0].split(" ", 1)
    event = json.loads(payload)
    assert prefix == "AUDIT:"
    assert event["action"] == "DELETE"
    assert event["entity_id"] == "abc"
    assert event["actor"] == "api"
    assert event["details"] == {"name": "Food"}
