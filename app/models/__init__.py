"""
Data Models Package.

Re-exports the entity models and enums for short imports:
    from app.models import Category, Transaction, Budget
    from app.models import TransactionType, BudgetPeriod
"""

from app.models.enums import (
    BudgetPeriod,
    BudgetStatus,
    BulkAction,
    CategoryType,
    SortOrder,
    StorageMode,
    TransactionType,
)
from app.models.category import Category, CategoryNode, CategorySummary
from app.models.transaction import Transaction
from app.models.budget import Budget, BudgetProgress

__all__ = [
    "BudgetPeriod",
    "BudgetStatus",
    "BulkAction",
    "CategoryType",
    "SortOrder",
    "StorageMode",
    "TransactionType",
    "Category",
    "CategoryNode",
    "CategorySummary",
    "Transaction",
    "Budget",
    "BudgetProgress",
]
