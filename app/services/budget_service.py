"""
Budget Service.

Business rules for per-category spending budgets:

- the category must exist, be active and be an expense category
- ``end_date`` is derived from the period when omitted
- a category has at most one active budget per date range

Progress figures come from ``analytics_engine.compute_budget_progress``
over the expense transactions of each budget's category and range.
"""

from __future__ import annotations

from datetime import date
from typing import Optional

from app.logger import StructuredLogger
from app.models.budget import Budget, BudgetCreate, BudgetUpdate
from app.models.enums import ErrorCode, SortOrder, TransactionType
from app.models.service_models import (
    BudgetQuery,
    BudgetSummary,
    DateRange,
    ListOptions,
    PaginatedResult,
    Pagination,
    RepositoryResult,
    ServiceResult,
)
from app.models.transaction import Transaction
from app.repositories.budget_repository import BudgetRepository
from app.repositories.category_repository import CategoryRepository
from app.repositories.transaction_repository import TransactionRepository
from app.services.analytics_engine import budget_alerts, compute_budget_progress
from app.services.base_service import BaseService
from app.utils.audit import log_audit_event
from app.utils.date_utils import budget_end_date, utc_today
from app.utils.math_utils import ZERO, round_money, round_percent, mean

SORTABLE_FIELDS: frozenset[str] = frozenset(
    {"start_date", "amount", "name", "progress_percentage", "created_at"}
)
# Sorting or filtering on derived progress happens in memory after the fetch.
_DERIVED_SORTS: frozenset[str] = frozenset({"progress_percentage"})


class BudgetService(BaseService):
    """
    Service layer for budget operations.

    Delegates data access to BudgetRepository; reads transactions and
    categories for progress and validation.
    """

    def __init__(
        self,
        budget_repo: BudgetRepository,
        category_repo: CategoryRepository,
        transaction_repo: TransactionRepository,
        logger: StructuredLogger,
    ) -> None:
        super().__init__(logger)
        self._repo = budget_repo
        self._category_repo = category_repo
        self._transaction_repo = transaction_repo

    # ------------------------------------------------------------------
    # Progress
    # ------------------------------------------------------------------

    def attach_progress(
        self, budgets: list[Budget], today: Optional[date] = None
    ) -> RepositoryResult[list[Budget]]:
        """Fill ``progress`` on every budget from one transaction query."""
        if not budgets:
            return RepositoryResult(data=budgets)
        today = today or utc_today()
        transactions = self._transaction_repo.find_all(
            {
                "type": TransactionType.EXPENSE,
                "in_category_id": sorted({b.category_id for b in budgets}),
                "gte_date": min(b.start_date for b in budgets),
                "lte_date": max(b.end_date for b in budgets),
            },
            ListOptions(sort="date", order=SortOrder.ASC),
        )
        if not transactions.ok:
            return RepositoryResult(error=transactions.error)

        spending: list[Transaction] = transactions.data
        for budget in budgets:
            budget.progress = compute_budget_progress(budget, spending, today)
        return RepositoryResult(data=budgets)

    def _with_progress(self, budget: Budget) -> ServiceResult:
        """Attach category and progress to a single budget."""
        summaries = self._repo.find_with_category({"id": budget.id})
        if not summaries.ok:
            return self._storage_failure("fetch budget category", summaries, budget.id)
        if summaries.data:
            budget.category = summaries.data[0].category
        result = self.attach_progress([budget])
        if not result.ok:
            return self._storage_failure("compute budget progress", result, budget.id)
        return ServiceResult(success=True, data=budget)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_budgets(self, query: BudgetQuery) -> ServiceResult:
        """
        Filtered, sorted, paginated budgets.

        Sorting by ``progress_percentage`` or asking for ``overspent_only``
        computes progress for every match before paging.
        """
        if query.sort not in SORTABLE_FIELDS:
            return self._fail(
                f"Invalid sort field '{query.sort}'. "
                f"Allowed: {', '.join(sorted(SORTABLE_FIELDS))}",
                ErrorCode.VALIDATION_ERROR,
            )

        filters: dict[str, object] = {
            "category_id": query.category_id,
            "period": query.period,
            "is_active": query.is_active,
        }
        in_memory = query.sort in _DERIVED_SORTS or query.overspent_only
        if in_memory:
            options = ListOptions(sort="start_date", order=SortOrder.DESC)
        else:
            options = ListOptions(
                sort=query.sort, order=query.order, page=query.page, limit=query.limit,
            )

        result = self._repo.find_with_category(filters, options)
        if not result.ok:
            return self._storage_failure("fetch budgets", result)
        budgets: list[Budget] = result.data
        total = result.count or 0

        if query.include_progress or in_memory:
            progress = self.attach_progress(budgets)
            if not progress.ok:
                return self._storage_failure("compute budget progress", progress)

        if in_memory:
            if query.overspent_only:
                budgets = [b for b in budgets if b.progress and b.progress.is_overspent]
            if query.sort in _DERIVED_SORTS:
                budgets.sort(
                    key=lambda b: b.progress.progress_percentage if b.progress else ZERO,
                    reverse=query.order == SortOrder.DESC,
                )
            else:
                budgets.sort(
                    key=lambda b: getattr(b, query.sort),
                    reverse=query.order == SortOrder.DESC,
                )
            total = len(budgets)
            offset = (query.page - 1) * query.limit
            budgets = budgets[offset:offset + query.limit]
            if not query.include_progress:
                for budget in budgets:
                    budget.progress = None

        return ServiceResult(
            success=True,
            data=PaginatedResult[Budget](
                items=budgets,
                pagination=Pagination.build(query.page, query.limit, total),
            ),
        )

    def get_budget(self, budget_id: str) -> ServiceResult:
        result = self._repo.find_by_id(budget_id)
        if not result.ok:
            return self._storage_failure("fetch budget", result, budget_id)
        if result.data is None:
            return self._fail("Budget not found", ErrorCode.BUDGET_NOT_FOUND, 404)
        return self._with_progress(result.data)

    def get_alerts(self, today: Optional[date] = None) -> ServiceResult:
        """Alerts for active budgets covering *today*, most severe first."""
        today = today or utc_today()
        active = self._repo.find_with_category(
            {"is_active": True, "lte_start_date": today, "gte_end_date": today},
            ListOptions(sort="start_date", order=SortOrder.ASC),
        )
        if not active.ok:
            return self._storage_failure("fetch active budgets", active)
        budgets: list[Budget] = active.data
        progress = self.attach_progress(budgets, today)
        if not progress.ok:
            return self._storage_failure("compute budget progress", progress)
        return ServiceResult(success=True, data=budget_alerts(budgets))

    def get_summary(self, today: Optional[date] = None) -> ServiceResult:
        """Totals across every budget; progress figures use the active ones."""
        all_budgets = self._repo.find_all()
        if not all_budgets.ok:
            return self._storage_failure("fetch budgets", all_budgets)
        budgets: list[Budget] = all_budgets.data
        active = [b for b in budgets if b.is_active]

        progress = self.attach_progress(active, today)
        if not progress.ok:
            return self._storage_failure("compute budget progress", progress)

        total_amount = sum((b.amount for b in active), ZERO)
        total_spent = sum((b.progress.spent_amount for b in active), ZERO)
        summary = BudgetSummary(
            total_budgets=len(budgets),
            active_budgets=len(active),
            total_budget_amount=round_money(total_amount),
            total_spent_amount=round_money(total_spent),
            total_remaining_amount=round_money(total_amount - total_spent),
            overspent_budgets=sum(1 for b in active if b.progress.is_overspent),
            average_progress_percentage=round_percent(
                mean(b.progress.progress_percentage for b in active)
            ),
            date_range=DateRange(
                start=min((b.start_date for b in active), default=None),
                end=max((b.end_date for b in active), default=None),
            ),
        )
        return ServiceResult(success=True, data=summary)

    # ------------------------------------------------------------------
    # Rule checks
    # ------------------------------------------------------------------

    def _check_category(self, category_id: str) -> ServiceResult:
        """Category exists, is active and is an expense category; data is the category."""
        result = self._category_repo.find_by_id(category_id)
        if not result.ok:
            return self._storage_failure("fetch category", result, category_id)
        category = result.data
        if category is None:
            return self._fail("Category not found", ErrorCode.CATEGORY_NOT_FOUND, 404)
        if not category.is_active:
            return self._fail("Cannot budget an inactive category", ErrorCode.CATEGORY_INACTIVE)
        if category.type != TransactionType.EXPENSE:
            return self._fail(
                "Budgets can only be created for expense categories",
                ErrorCode.CATEGORY_TYPE_MISMATCH,
            )
        return ServiceResult(success=True, data=category)

    def _check_overlap(
        self,
        category_id: str,
        start: date,
        end: date,
        exclude_id: Optional[str] = None,
    ) -> Optional[ServiceResult]:
        overlapping = self._repo.find_overlapping(category_id, start, end, exclude_id)
        if not overlapping.ok:
            return self._storage_failure("check overlapping budgets", overlapping)
        if overlapping.data:
            other = overlapping.data[0]
            return self._fail(
                f"An active budget for this category already covers "
                f"{other.start_date.isoformat()} to {other.end_date.isoformat()}",
                ErrorCode.BUDGET_OVERLAP,
                409,
                details={"budget_id": other.id},
            )
        return None

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_budget(self, payload: BudgetCreate) -> ServiceResult:
        """
        Create a budget.

        Validates that:
            1. The category exists, is active and is an expense category.
            2. The date range is valid (derived from the period when open).
            3. No active budget of the category overlaps the range.
        """
        # 1. Category
        checked = self._check_category(payload.category_id)
        if not checked.success:
            return checked
        category = checked.data

        # 2. Range
        end = payload.end_date or budget_end_date(payload.start_date, payload.period)
        if end <= payload.start_date:
            return self._fail("end_date must be after start_date", ErrorCode.VALIDATION_ERROR)

        # 3. Overlap
        if payload.is_active:
            failure = self._check_overlap(payload.category_id, payload.start_date, end)
            if failure:
                return failure

        # 4. Persist
        data = payload.model_dump()
        data["end_date"] = end
        data["name"] = payload.name or category.name
        data["amount"] = round_money(payload.amount)
        result = self._repo.create(data)
        if not result.ok:
            return self._storage_failure("create budget", result)

        log_audit_event(
            logger=self._logger,
            action="CREATE",
            entity_type="Budget",
            entity_id=result.data.id,
            details={
                "category_id": result.data.category_id,
                "amount": float(result.data.amount),
                "period": result.data.period.value,
            },
        )
        created = self._with_progress(result.data)
        if created.success:
            created.status_code = 201
        return created

    def update_budget(self, budget_id: str, payload: BudgetUpdate) -> ServiceResult:
        """Partial update; the end date follows period/start changes unless given."""
        existing = self._repo.find_by_id(budget_id)
        if not existing.ok:
            return self._storage_failure("fetch budget", existing, budget_id)
        if existing.data is None:
            return self._fail("Budget not found", ErrorCode.BUDGET_NOT_FOUND, 404)
        budget: Budget = existing.data
        changes = payload.changes()

        if "category_id" in changes:
            checked = self._check_category(changes["category_id"])
            if not checked.success:
                return checked

        start: date = changes.get("start_date", budget.start_date)
        period = changes.get("period", budget.period)
        if "end_date" in changes:
            end: date = changes["end_date"]
        elif "start_date" in changes or "period" in changes:
            end = budget_end_date(start, period)
            changes["end_date"] = end
        else:
            end = budget.end_date
        if end <= start:
            return self._fail("end_date must be after start_date", ErrorCode.VALIDATION_ERROR)

        if "amount" in changes:
            changes["amount"] = round_money(changes["amount"])

        is_active: bool = changes.get("is_active", budget.is_active)
        if is_active:
            failure = self._check_overlap(
                changes.get("category_id", budget.category_id), start, end, exclude_id=budget_id,
            )
            if failure:
                return failure

        result = self._repo.update(budget_id, changes)
        if not result.ok:
            return self._storage_failure("update budget", result, budget_id)
        if result.data is None:
            return self._fail("Budget not found", ErrorCode.BUDGET_NOT_FOUND, 404)

        log_audit_event(
            logger=self._logger,
            action="UPDATE",
            entity_type="Budget",
            entity_id=budget_id,
            details={"fields": ",".join(sorted(changes))},
        )
        return self._with_progress(result.data)

    def delete_budget(self, budget_id: str) -> ServiceResult:
        result = self._repo.delete(budget_id)
        if not result.ok:
            return self._storage_failure("delete budget", result, budget_id)
        if result.data is None:
            return self._fail("Budget not found", ErrorCode.BUDGET_NOT_FOUND, 404)

        log_audit_event(
            logger=self._logger,
            action="DELETE",
            entity_type="Budget",
            entity_id=budget_id,
            details={"amount": float(result.data.amount)},
        )
        return ServiceResult(success=True, data={"deleted_id": budget_id})

