"""
Service Layer Data Transfer Objects.

Pydantic models for validated input/output at repository and service
boundaries.  Replaces raw dict passing between layers.
"""

from __future__ import annotations

import math
from datetime import date as Date
from decimal import Decimal
from typing import Generic, Optional, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field

from app.models.category import Category
from app.models.enums import (
    AlertSeverity,
    AlertType,
    BudgetPeriod,
    BulkAction,
    DataType,
    SortOrder,
    TransactionType,
)

T = TypeVar("T")

FilterValue = Union[str, int, float, bool, Decimal, Date, list[str], None]

__all__ = [
    "BudgetAlert",
    "BudgetQuery",
    "BudgetSummary",
    "BulkItemError",
    "BulkResult",
    "CategoryQuery",
    "DateRange",
    "FilterValue",
    "ImportResult",
    "ImportRowError",
    "ListOptions",
    "PaginatedResult",
    "Pagination",
    "RepositoryResult",
    "SeedResult",
    "ServiceResult",
    "TransactionQuery",
    "TransactionSummary",
]


# ---------------------------------------------------------------------------
# Generic result envelopes
# ---------------------------------------------------------------------------

class RepositoryResult(BaseModel, Generic[T]):
    """
    Uniform repository return value.

    ``error`` is set only for storage faults.  A single-row lookup that
    finds nothing is ``data=None, error=None``.  ``count`` carries the
    total number of matching rows for list queries.
    """

    data: Optional[T] = None
    error: Optional[str] = None
    count: Optional[int] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class ServiceResult(BaseModel, Generic[T]):
    """
    Standard service return envelope.

    All service methods return this, providing a consistent contract
    for the HTTP layer.  ``error_code`` is the machine-readable code
    surfaced in API error responses; ``details`` carries per-field or
    per-item context.
    """

    success: bool
    data: Optional[T] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    details: Optional[Union[list[dict[str, object]], dict[str, object]]] = None
    status_code: int = 200


# ---------------------------------------------------------------------------
# Listing and pagination
# ---------------------------------------------------------------------------

class ListOptions(BaseModel):
    """Sort and pagination request passed to ``find_all``."""

    sort: str = "created_at"
    order: SortOrder = SortOrder.DESC
    page: Optional[int] = Field(default=None, ge=1)
    limit: Optional[int] = Field(default=None, ge=1)

    @property
    def paginated(self) -> bool:
        return self.page is not None and self.limit is not None

    @property
    def offset(self) -> int:
        if not self.paginated:
            return 0
        return (self.page - 1) * self.limit


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int
    has_next: bool
    has_prev: bool

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "Pagination":
        pages = math.ceil(total / limit) if limit > 0 else 1
        return cls(
            page=page,
            limit=limit,
            total=total,
            pages=pages,
            has_next=page < pages,
            has_prev=page > 1,
        )


class PaginatedResult(BaseModel, Generic[T]):
    items: list[T] = Field(default_factory=list)
    pagination: Optional[Pagination] = None


class TransactionQuery(BaseModel):
    """Query-string parameters accepted by the transaction list endpoint.

    ``filters`` holds raw repository filter keys (``gte_date``,
    ``ilike_description`` ...) passed straight through by the caller.
    """

    model_config = ConfigDict(populate_by_name=True)

    page: int = Field(default=1, ge=1)
    limit: int = Field(default=20, ge=1, le=100)
    type: Optional[TransactionType] = None
    category_id: Optional[str] = None
    start_date: Optional[Date] = None
    end_date: Optional[Date] = None
    min_amount: Optional[Decimal] = Field(default=None, ge=0)
    max_amount: Optional[Decimal] = Field(default=None, ge=0)
    search: Optional[str] = None
    sort: str = "date"
    order: SortOrder = SortOrder.DESC
    include_category: bool = False
    filters: dict[str, FilterValue] = Field(default_factory=dict)


class CategoryQuery(BaseModel):
    type: Optional[TransactionType] = None
    is_active: Optional[bool] = None
    parent_id: Optional[str] = None  # "null" selects root categories
    search: Optional[str] = None
    sort: str = "name"
    order: SortOrder = SortOrder.ASC
    page: Optional[int] = Field(default=None, ge=1)
    limit: Optional[int] = Field(default=None, ge=1, le=100)


class BudgetQuery(BaseModel):
    category_id: Optional[str] = None
    period: Optional[BudgetPeriod] = None
    is_active: Optional[bool] = None
    include_progress: bool = True
    overspent_only: bool = False
    sort: str = "start_date"
    order: SortOrder = SortOrder.DESC
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=20, ge=1, le=100)


# ---------------------------------------------------------------------------
# Bulk operations
# ---------------------------------------------------------------------------

class BulkItemError(BaseModel):
    """Failure of a single item inside a bulk request."""

    index: int
    id: Optional[str] = None
    error: str
    code: Optional[str] = None


class BulkResult(BaseModel, Generic[T]):
    """
    Outcome of a bulk request processed item by item.

    Exactly one of ``created`` / ``updated`` / ``deleted`` is filled,
    depending on ``action``.  ``successful + failed == processed``.
    """

    action: BulkAction
    processed: int = 0
    successful: int = 0
    failed: int = 0
    created: list[T] = Field(default_factory=list)
    updated: list[T] = Field(default_factory=list)
    deleted: list[str] = Field(default_factory=list)
    errors: list[BulkItemError] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Summaries
# ---------------------------------------------------------------------------

class DateRange(BaseModel):
    start: Optional[Date] = None
    end: Optional[Date] = None


class TransactionSummary(BaseModel):
    total_transactions: int
    total_income: Decimal
    total_expenses: Decimal
    net_amount: Decimal
    average_transaction: Decimal
    date_range: DateRange


class BudgetAlert(BaseModel):
    budget_id: str
    budget_name: str
    category_id: str
    category_name: Optional[str] = None
    alert_type: AlertType
    severity: AlertSeverity
    message: str
    progress_percentage: Decimal
    spent_amount: Decimal
    budget_amount: Decimal


class BudgetSummary(BaseModel):
    total_budgets: int
    active_budgets: int
    total_budget_amount: Decimal
    total_spent_amount: Decimal
    total_remaining_amount: Decimal
    overspent_budgets: int
    average_progress_percentage: Decimal
    date_range: DateRange


class SeedResult(BaseModel):
    created_count: int
    skipped_count: int
    categories: list[Category] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Import / export
# ---------------------------------------------------------------------------

class ImportRowError(BaseModel):
    row: int
    error: str
    data: Optional[dict[str, object]] = None


class ImportResult(BaseModel):
    """Per-row accounting of an import run.

    ``imported + updated + skipped + failed == total_rows``.
    """

    data_type: DataType
    file_name: str
    total_rows: int = 0
    imported: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0
    errors: list[ImportRowError] = Field(default_factory=list)

