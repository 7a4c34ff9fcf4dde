"""
Transaction Repository.

Handles all transaction data access through the configured storage
backend.  Provides category attachment for list/detail views and the
aggregation helpers used by summaries, budgets and duplicate detection.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Mapping, Optional

from app.logger import StructuredLogger
from app.models.enums import SortOrder, TransactionType
from app.models.service_models import (
    DateRange,
    ListOptions,
    RepositoryResult,
    TransactionSummary,
)
from app.models.transaction import Transaction
from app.repositories.base_repository import BaseRepository
from app.repositories.storage import StorageBackend
from app.utils.math_utils import ZERO, round_money, safe_divide
from app.utils.string_helpers import sanitize_postgrest_value


def _date_filters(
    start_date: Optional[date], end_date: Optional[date]
) -> dict[str, object]:
    return {"gte_date": start_date, "lte_date": end_date}


class TransactionRepository(BaseRepository[Transaction]):
    """Data access layer for Transaction entities."""

    TABLE = "transactions"
    MODEL = Transaction
    RELATION_FIELDS = frozenset({"category"})
    DEFAULT_SORT = "date"

    def __init__(self, storage: StorageBackend, logger: StructuredLogger) -> None:
        super().__init__(storage, logger)

    # ------------------------------------------------------------------
    # Category attachment
    # ------------------------------------------------------------------

    def _attach_categories(self, transactions: list[Transaction]) -> list[Transaction]:
        summaries = self._category_summaries(t.category_id for t in transactions)
        for transaction in transactions:
            transaction.category = summaries.get(transaction.category_id)
        return transactions

    def find_with_categories(
        self,
        filters: Optional[Mapping[str, object]] = None,
        options: Optional[ListOptions] = None,
    ) -> RepositoryResult[list[Transaction]]:
        """Like :meth:`find_all`, with each item's ``category`` summary filled in."""
        result = self.find_all(filters, options)
        if not result.ok or not result.data:
            return result
        return self._execute(
            "find_with_categories",
            lambda: RepositoryResult(
                data=self._attach_categories(result.data), count=result.count
            ),
        )

    def find_by_id_with_category(
        self, transaction_id: str
    ) -> RepositoryResult[Optional[Transaction]]:
        result = self.find_by_id(transaction_id)
        if not result.ok or result.data is None:
            return result
        return self._execute(
            "find_by_id_with_category",
            lambda: RepositoryResult(data=self._attach_categories([result.data])[0]),
        )

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def find_by_category_id(
        self,
        category_id: str,
        options: Optional[ListOptions] = None,
    ) -> RepositoryResult[list[Transaction]]:
        return self.find_all({"category_id": category_id}, options)

    def find_by_date_range(
        self,
        start_date: Optional[date],
        end_date: Optional[date],
        transaction_type: Optional[TransactionType] = None,
        category_id: Optional[str] = None,
    ) -> RepositoryResult[list[Transaction]]:
        """Every transaction with ``start_date <= date <= end_date`` (bounds optional)."""
        filters = _date_filters(start_date, end_date)
        filters["type"] = transaction_type
        filters["category_id"] = category_id
        return self.find_all(filters, ListOptions(sort="date", order=SortOrder.ASC))

    def search_by_description(
        self, term: str, limit: int = 10
    ) -> RepositoryResult[list[Transaction]]:
        """Case-insensitive substring search on the description."""
        clean = sanitize_postgrest_value(term)
        if not clean:
            return RepositoryResult(data=[], count=0)
        options = ListOptions(sort="date", order=SortOrder.DESC, page=1, limit=limit)
        return self.find_with_categories({"ilike_description": f"%{clean}%"}, options)

    def get_recent(self, limit: int = 5) -> RepositoryResult[list[Transaction]]:
        options = ListOptions(sort="date", order=SortOrder.DESC, page=1, limit=limit)
        return self.find_with_categories(None, options)

    def is_category_used(self, category_id: str) -> RepositoryResult[bool]:
        result = self.count({"category_id": category_id})
        if not result.ok:
            return RepositoryResult(error=result.error)
        return RepositoryResult(data=result.data > 0)

    def find_duplicate(
        self,
        transaction_type: TransactionType,
        amount: Decimal,
        description: str,
        category_id: str,
        transaction_date: date,
    ) -> RepositoryResult[Optional[Transaction]]:
        """An existing transaction with the same type, amount, description, category and date."""
        result = self.find_all(
            {
                "type": transaction_type,
                "category_id": category_id,
                "date": transaction_date,
                "amount": round_money(amount),
            }
        )
        if not result.ok:
            return RepositoryResult(error=result.error)
        wanted = description.strip().casefold()
        match = next(
            (t for t in result.data if t.description.strip().casefold() == wanted),
            None,
        )
        return RepositoryResult(data=match)

    # ------------------------------------------------------------------
    # Aggregates
    # ------------------------------------------------------------------

    def get_total_amount_by_type(
        self,
        transaction_type: TransactionType,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        category_id: Optional[str] = None,
    ) -> RepositoryResult[Decimal]:
        result = self.find_by_date_range(start_date, end_date, transaction_type, category_id)
        if not result.ok:
            return RepositoryResult(error=result.error)
        total = sum((t.amount for t in result.data), ZERO)
        return RepositoryResult(data=round_money(total), count=len(result.data))

    def get_summary_by_date_range(
        self,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> RepositoryResult[TransactionSummary]:
        """Income, expense and net totals over the (optional) date range."""
        result = self.find_by_date_range(start_date, end_date)
        if not result.ok:
            return RepositoryResult(error=result.error)

        income = sum(
            (t.amount for t in result.data if t.type == TransactionType.INCOME), ZERO
        )
        expenses = sum(
            (t.amount for t in result.data if t.type == TransactionType.EXPENSE), ZERO
        )
        count = len(result.data)
        summary = TransactionSummary(
            total_transactions=count,
            total_income=round_money(income),
            total_expenses=round_money(expenses),
            net_amount=round_money(income - expenses),
            average_transaction=round_money(safe_divide(income + expenses, count)),
            date_range=DateRange(start=start_date, end=end_date),
        )
        return RepositoryResult(data=summary, count=count)
