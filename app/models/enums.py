"""
Shared Enumerations for Budget Tracker Models.

All string enumerations for type-safe field constraints.
StrEnum values compare equal to their string equivalents,
so code like ``if txn.type == 'expense'`` keeps working.
"""

from __future__ import annotations
from enum import StrEnum


class Environment(StrEnum):
    """Deployment environment of the running API."""

    DEVELOPMENT = "development"
    PRODUCTION = "production"
    TEST = "test"


class StorageMode(StrEnum):
    """Persistence backend selected by ``STORAGE_MODE``.

    ``localStorage`` keeps one JSON file per table on disk and exists for
    development without a Supabase project.
    """

    DATABASE = "database"
    LOCAL = "localStorage"


class TransactionType(StrEnum):
    """Direction of money flow.  Categories carry the same values."""

    INCOME = "income"
    EXPENSE = "expense"


CategoryType = TransactionType


class BudgetPeriod(StrEnum):
    """Length of a budget window."""

    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class SortOrder(StrEnum):
    ASC = "asc"
    DESC = "desc"


class BulkAction(StrEnum):
    """Operations accepted by the bulk transaction endpoint."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class BudgetStatus(StrEnum):
    ON_TRACK = "on_track"
    APPROACHING_LIMIT = "approaching_limit"
    OVERSPENT = "overspent"


class AlertType(StrEnum):
    OVERSPENT = "overspent"
    EXCEEDED_PROJECTION = "exceeded_projection"
    APPROACHING_LIMIT = "approaching_limit"


class AlertSeverity(StrEnum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class AnalyticsPeriod(StrEnum):
    """Named look-back windows for analytics queries."""

    WEEK = "week"
    MONTH = "month"
    QUARTER = "quarter"
    YEAR = "year"


class TrendDirection(StrEnum):
    UP = "up"
    DOWN = "down"
    STABLE = "stable"


class ForecastDirection(StrEnum):
    INCREASING = "increasing"
    DECREASING = "decreasing"
    STABLE = "stable"


class DataType(StrEnum):
    """Entity types handled by import and export."""

    TRANSACTIONS = "transactions"
    CATEGORIES = "categories"
    BUDGETS = "budgets"


class FileFormat(StrEnum):
    CSV = "csv"
    XLSX = "xlsx"


class ImportOutcome(StrEnum):
    """Result of processing one imported row."""

    IMPORTED = "imported"
    UPDATED = "updated"
    SKIPPED = "skipped"


class ErrorCode(StrEnum):
    """Machine-readable codes surfaced in API error responses."""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    METHOD_NOT_ALLOWED = "METHOD_NOT_ALLOWED"
    TRANSACTION_NOT_FOUND = "TRANSACTION_NOT_FOUND"
    CATEGORY_NOT_FOUND = "CATEGORY_NOT_FOUND"
    BUDGET_NOT_FOUND = "BUDGET_NOT_FOUND"
    CATEGORY_INACTIVE = "CATEGORY_INACTIVE"
    CATEGORY_TYPE_MISMATCH = "CATEGORY_TYPE_MISMATCH"
    CATEGORY_IN_USE = "CATEGORY_IN_USE"
    CATEGORY_HAS_CHILDREN = "CATEGORY_HAS_CHILDREN"
    DEFAULT_CATEGORY_PROTECTED = "DEFAULT_CATEGORY_PROTECTED"
    DUPLICATE_CATEGORY = "DUPLICATE_CATEGORY"
    CIRCULAR_REFERENCE = "CIRCULAR_REFERENCE"
    BUDGET_OVERLAP = "BUDGET_OVERLAP"
    INVALID_BULK_ACTION = "INVALID_BULK_ACTION"
    MISSING_SEARCH_TERM = "MISSING_SEARCH_TERM"
    INVALID_ID = "INVALID_ID"
    IMPORT_FAILED = "IMPORT_FAILED"
    FILE_TOO_LARGE = "FILE_TOO_LARGE"
    UNSUPPORTED_FORMAT = "UNSUPPORTED_FORMAT"
    DATABASE_ERROR = "DATABASE_ERROR"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    INTERNAL_SERVER_ERROR = "INTERNAL_SERVER_ERROR"
