"""
Budget Repository.

Data access for the ``budgets`` table, including the overlap query that
keeps one active budget per category and date range.
"""

from __future__ import annotations

from datetime import date
from typing import Mapping, Optional

from app.logger import StructuredLogger
from app.models.budget import Budget
from app.models.enums import SortOrder
from app.models.service_models import ListOptions, RepositoryResult
from app.repositories.base_repository import BaseRepository
from app.repositories.storage import StorageBackend


class BudgetRepository(BaseRepository[Budget]):
    """Data access layer for Budget entities."""

    TABLE = "budgets"
    MODEL = Budget
    RELATION_FIELDS = frozenset({"category", "progress"})
    DEFAULT_SORT = "start_date"

    def __init__(self, storage: StorageBackend, logger: StructuredLogger) -> None:
        super().__init__(storage, logger)

    def find_overlapping(
        self,
        category_id: str,
        start_date: date,
        end_date: date,
        exclude_id: Optional[str] = None,
    ) -> RepositoryResult[list[Budget]]:
        """Active budgets of *category_id* whose range intersects ``[start_date, end_date]``.

        Two closed ranges intersect when each starts on or before the
        other's end.
        """
        filters: dict[str, object] = {
            "category_id": category_id,
            "is_active": True,
            "lte_start_date": end_date,
            "gte_end_date": start_date,
            "neq_id": exclude_id,
        }
        return self.find_all(filters, ListOptions(sort="start_date", order=SortOrder.ASC))

    def find_active(
        self, as_of: Optional[date] = None
    ) -> RepositoryResult[list[Budget]]:
        """Active budgets, optionally only those whose range contains *as_of*."""
        filters: dict[str, object] = {"is_active": True}
        if as_of is not None:
            filters["lte_start_date"] = as_of
            filters["gte_end_date"] = as_of
        return self.find_all(filters, ListOptions(sort="start_date", order=SortOrder.ASC))

    def find_by_category_id(self, category_id: str) -> RepositoryResult[list[Budget]]:
        return self.find_all({"category_id": category_id})

    def is_category_used(self, category_id: str) -> RepositoryResult[bool]:
        result = self.count({"category_id": category_id})
        if not result.ok:
            return RepositoryResult(error=result.error)
        return RepositoryResult(data=result.data > 0)

    def find_with_category(
        self,
        filters: Optional[Mapping[str, object]] = None,
        options: Optional[ListOptions] = None,
    ) -> RepositoryResult[list[Budget]]:
        """Like :meth:`find_all`, with each budget's ``category`` summary filled in."""
        result = self.find_all(filters, options)
        if not result.ok or not result.data:
            return result

        def _attach() -> RepositoryResult[list[Budget]]:
            summaries = self._category_summaries(b.category_id for b in result.data)
            for budget in result.data:
                budget.category = summaries.get(budget.category_id)
            return RepositoryResult(data=result.data, count=result.count)

        return self._execute("find_with_category", _attach)
