"""
Budget Model.

Pydantic models for per-category spending budgets.  A budget covers a
closed date range derived from its period and start date; progress is
computed from the expense transactions inside that range.
"""

from __future__ import annotations
from datetime import date as Date, datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, model_validator

from app.models.category import CategorySummary
from app.models.enums import BudgetPeriod, BudgetStatus
from app.models.fields import Money, UuidStr

DEFAULT_ALERT_THRESHOLD: Decimal = Decimal("80")


class BudgetProgress(BaseModel):
    """Derived spending figures for one budget."""

    spent_amount: Decimal
    remaining_amount: Decimal
    progress_percentage: Decimal
    is_overspent: bool
    days_remaining: int
    days_elapsed: int
    total_days: int
    average_daily_spending: Decimal
    projected_total: Decimal
    transaction_count: int = 0
    status: BudgetStatus


class Budget(BaseModel):
    """Represents a budget record as stored."""

    id: str
    name: str
    category_id: str
    amount: Decimal
    period: BudgetPeriod
    start_date: Date
    end_date: Date
    alert_threshold: Decimal = DEFAULT_ALERT_THRESHOLD
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    # Populated by the service layer on request
    category: Optional[CategorySummary] = None
    progress: Optional[BudgetProgress] = None

    model_config = {"from_attributes": True}


# ---------------------------------------------------------------------------
# Input models
# ---------------------------------------------------------------------------

class BudgetCreate(BaseModel):
    """Validated payload for creating a budget.

    ``end_date`` is derived from ``period`` when omitted and ``name``
    defaults to the category name.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    category_id: UuidStr
    amount: Money
    period: BudgetPeriod
    start_date: Date
    end_date: Optional[Date] = None
    alert_threshold: Decimal = Field(default=DEFAULT_ALERT_THRESHOLD, ge=1, le=100)
    is_active: bool = True

    @model_validator(mode="after")
    def _check_range(self) -> "BudgetCreate":
        if self.end_date is not None and self.end_date <= self.start_date:
            raise ValueError("end_date must be after start_date")
        return self


class BudgetUpdate(BaseModel):
    """Partial update; only the fields present in the request are applied."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    category_id: Optional[UuidStr] = None
    amount: Optional[Money] = None
    period: Optional[BudgetPeriod] = None
    start_date: Optional[Date] = None
    end_date: Optional[Date] = None
    alert_threshold: Optional[Decimal] = Field(default=None, ge=1, le=100)
    is_active: Optional[bool] = None

    @model_validator(mode="after")
    def _require_one_field(self) -> "BudgetUpdate":
        if not self.model_fields_set:
            raise ValueError("At least one field must be provided for update")
        for field_name in self.model_fields_set:
            if getattr(self, field_name) is None:
                raise ValueError(f"{field_name} cannot be null")
        return self

    def changes(self) -> dict[str, object]:
        return self.model_dump(include=self.model_fields_set)
