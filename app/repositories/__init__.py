"""
Repository Layer Package.

Provides data-access abstractions over Supabase (hosted PostgreSQL) and
local JSON files.  All storage operations flow through repositories;
services never touch the storage backend directly.

Usage:
    from app.repositories import create_storage, TransactionRepository

    storage = create_storage(config, logger)
    transactions = TransactionRepository(storage, logger)
"""

from app.repositories.base_repository import BaseRepository
from app.repositories.budget_repository import BudgetRepository
from app.repositories.category_repository import CategoryRepository
from app.repositories.filters import FilterClause, FilterOperator, parse_filters
from app.repositories.storage import (
    JsonFileBackend,
    StorageBackend,
    SupabaseBackend,
    create_storage,
)
from app.repositories.transaction_repository import TransactionRepository

__all__ = [
    "BaseRepository",
    "BudgetRepository",
    "CategoryRepository",
    "TransactionRepository",
    "FilterClause",
    "FilterOperator",
    "parse_filters",
    "StorageBackend",
    "SupabaseBackend",
    "JsonFileBackend",
    "create_storage",
]
