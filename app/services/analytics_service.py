"""
Analytics Service.

Fetches transactions, categories and budgets through the repositories
and hands them to the pure functions in ``analytics_engine``.  Every
report is read-only.
"""

from __future__ import annotations

from datetime import date
from typing import Optional

from app.logger import StructuredLogger
from app.models.analytics import (
    AnalyticsOverview,
    DashboardSummary,
    PeriodComparison,
    SpendingInsights,
    TrendsAnalysis,
)
from app.models.budget import Budget
from app.models.category import CategorySummary
from app.models.enums import AnalyticsPeriod, ErrorCode, SortOrder
from app.models.service_models import DateRange, ListOptions, RepositoryResult, ServiceResult
from app.models.transaction import Transaction
from app.repositories.budget_repository import BudgetRepository
from app.repositories.category_repository import CategoryRepository
from app.repositories.transaction_repository import TransactionRepository
from app.services import analytics_engine as engine
from app.services.base_service import BaseService
from app.services.budget_service import BudgetService
from app.utils.date_utils import month_start, month_starts_back, period_range, previous_period, utc_today
from app.utils.math_utils import ZERO, percentage, round_money

DEFAULT_TREND_MONTHS: int = 6
MAX_TREND_MONTHS: int = 24
HEALTH_STABILITY_MONTHS: int = 3
RECENT_TRANSACTIONS: int = 5


class AnalyticsService(BaseService):
    """Read-only reports over transactions and budgets."""

    def __init__(
        self,
        transaction_repo: TransactionRepository,
        category_repo: CategoryRepository,
        budget_repo: BudgetRepository,
        budget_service: BudgetService,
        logger: StructuredLogger,
    ) -> None:
        super().__init__(logger)
        self._transaction_repo = transaction_repo
        self._category_repo = category_repo
        self._budget_repo = budget_repo
        self._budget_service = budget_service

    # ------------------------------------------------------------------
    # Data loading
    # ------------------------------------------------------------------

    def _transactions(self, start: Optional[date], end: Optional[date]) -> RepositoryResult[list[Transaction]]:
        return self._transaction_repo.find_by_date_range(start, end)

    def _category_lookup(self) -> RepositoryResult[dict[str, CategorySummary]]:
        result = self._category_repo.find_all()
        if not result.ok:
            return RepositoryResult(error=result.error)
        return RepositoryResult(data={
            c.id: CategorySummary.model_validate(c.model_dump()) for c in result.data
        })

    def _budgets_in_range(
        self, start: date, end: date, today: date
    ) -> RepositoryResult[list[Budget]]:
        """Active budgets intersecting ``[start, end]`` with category and progress attached."""
        result = self._budget_repo.find_with_category(
            {"is_active": True, "lte_start_date": end, "gte_end_date": start},
            ListOptions(sort="start_date", order=SortOrder.ASC),
        )
        if not result.ok:
            return result
        return self._budget_service.attach_progress(result.data, today)

    # ------------------------------------------------------------------
    # Reports
    # ------------------------------------------------------------------

    def get_spending_insights(
        self,
        period: Optional[AnalyticsPeriod] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        today: Optional[date] = None,
    ) -> ServiceResult:
        """Category breakdown, daily trend and top categories over a window."""
        start, end = period_range(period, start_date, end_date, today)
        if start > end:
            return self._fail_range()
        transactions = self._transactions(start, end)
        if not transactions.ok:
            return self._storage_failure("fetch transactions", transactions)
        categories = self._category_lookup()
        if not categories.ok:
            return self._storage_failure("fetch categories", categories)

        breakdown = engine.category_totals(transactions.data, categories.data)
        highest, most = engine.top_categories(breakdown)
        insights = SpendingInsights(
            period=DateRange(start=start, end=end),
            totals=engine.period_totals(transactions.data),
            category_breakdown=breakdown,
            spending_trends=engine.daily_trends(transactions.data),
            highest_spending=highest,
            most_transactions=most,
        )
        return ServiceResult(success=True, data=insights)

    def get_trends(
        self, months: int = DEFAULT_TREND_MONTHS, today: Optional[date] = None
    ) -> ServiceResult:
        """Monthly buckets, daily points and a next-month projection."""
        if not 1 <= months <= MAX_TREND_MONTHS:
            return self._fail(
                f"months must be between 1 and {MAX_TREND_MONTHS}", ErrorCode.VALIDATION_ERROR,
            )
        today = today or utc_today()
        start = month_starts_back(months, today)[0]
        transactions = self._transactions(start, today)
        if not transactions.ok:
            return self._storage_failure("fetch transactions", transactions)

        buckets = engine.month_buckets(transactions.data, months, today)
        analysis = TrendsAnalysis(
            months=buckets,
            daily=engine.daily_trends(transactions.data),
            predictions=engine.predict_next_month(buckets),
        )
        return ServiceResult(success=True, data=analysis)

    def get_budget_performance(
        self,
        period: Optional[AnalyticsPeriod] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        today: Optional[date] = None,
    ) -> ServiceResult:
        today = today or utc_today()
        start, end = period_range(period, start_date, end_date, today)
        if start > end:
            return self._fail_range()
        budgets = self._budgets_in_range(start, end, today)
        if not budgets.ok:
            return self._storage_failure("fetch budgets", budgets)
        return ServiceResult(success=True, data=engine.budget_performance(budgets.data))

    def get_health_score(
        self,
        period: Optional[AnalyticsPeriod] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        today: Optional[date] = None,
    ) -> ServiceResult:
        """
        Financial health score for a window (default: the current month).

        Savings rate, budget utilization and coverage use the window's
        totals and the active budgets intersecting it; the stability
        factors use the last three calendar months.
        """
        today = today or utc_today()
        start, end = period_range(period, start_date, end_date, today)
        if start > end:
            return self._fail_range()

        history_start = min(start, month_starts_back(HEALTH_STABILITY_MONTHS, today)[0])
        transactions = self._transactions(history_start, max(end, today))
        if not transactions.ok:
            return self._storage_failure("fetch transactions", transactions)
        budgets = self._budgets_in_range(start, end, today)
        if not budgets.ok:
            return self._storage_failure("fetch budgets", budgets)

        window = [t for t in transactions.data if engine.in_range(t, start, end)]
        buckets = engine.month_buckets(transactions.data, HEALTH_STABILITY_MONTHS, today)
        total_budgeted = round_money(sum((b.amount for b in budgets.data), ZERO))
        score = engine.financial_health_score(
            engine.period_totals(window),
            [bucket.totals for bucket in buckets],
            total_budgeted,
        )
        return ServiceResult(success=True, data=score)

    def get_comparison(
        self,
        period: Optional[AnalyticsPeriod] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        today: Optional[date] = None,
    ) -> ServiceResult:
        """Window versus the equally long window right before it."""
        start, end = period_range(period, start_date, end_date, today)
        if start > end:
            return self._fail_range()
        previous_start, previous_end = previous_period(start, end)

        transactions = self._transactions(previous_start, end)
        if not transactions.ok:
            return self._storage_failure("fetch transactions", transactions)
        categories = self._category_lookup()
        if not categories.ok:
            return self._storage_failure("fetch categories", categories)

        current = [t for t in transactions.data if engine.in_range(t, start, end)]
        previous = [t for t in transactions.data if engine.in_range(t, previous_start, previous_end)]
        now_totals = engine.period_totals(current)
        before_totals = engine.period_totals(previous)

        comparison = PeriodComparison(
            current_period=DateRange(start=start, end=end),
            previous_period=DateRange(start=previous_start, end=previous_end),
            income=engine.metric_change(now_totals.income, before_totals.income),
            expenses=engine.metric_change(now_totals.expenses, before_totals.expenses),
            net=engine.metric_change(now_totals.net, before_totals.net),
            transaction_count=engine.metric_change(
                now_totals.transaction_count, before_totals.transaction_count,
            ),
            categories=engine.compare_categories(
                engine.category_totals(current, categories.data),
                engine.category_totals(previous, categories.data),
            ),
        )
        return ServiceResult(success=True, data=comparison)

    def get_dashboard(self, today: Optional[date] = None) -> ServiceResult:
        """Year-to-date and current-month totals, budgets, recent activity and alerts."""
        today = today or utc_today()
        year_begin = engine.year_start(today)
        transactions = self._transactions(year_begin, today)
        if not transactions.ok:
            return self._storage_failure("fetch transactions", transactions)
        categories = self._category_lookup()
        if not categories.ok:
            return self._storage_failure("fetch categories", categories)
        budgets = self._budgets_in_range(today, today, today)
        if not budgets.ok:
            return self._storage_failure("fetch budgets", budgets)
        recent = self._transaction_repo.get_recent(RECENT_TRANSACTIONS)
        if not recent.ok:
            return self._storage_failure("fetch recent transactions", recent)

        this_month = [t for t in transactions.data if t.date >= month_start(today)]
        month_breakdown = engine.category_totals(this_month, categories.data)
        total_budget = sum((b.amount for b in budgets.data), ZERO)
        total_spent = sum((b.progress.spent_amount for b in budgets.data if b.progress), ZERO)

        dashboard = DashboardSummary(
            year_to_date=engine.period_totals(transactions.data),
            current_month=engine.period_totals(this_month),
            active_budgets=len(budgets.data),
            budget_utilization=percentage(total_spent, total_budget),
            top_expense_category=month_breakdown[0] if month_breakdown else None,
            recent_transactions=recent.data,
            alerts=engine.budget_alerts(budgets.data),
        )
        return ServiceResult(success=True, data=dashboard)

    def get_overview(self, today: Optional[date] = None) -> ServiceResult:
        """Dashboard, current-month insights and health score in one payload."""
        dashboard = self.get_dashboard(today)
        if not dashboard.success:
            return dashboard
        insights = self.get_spending_insights(AnalyticsPeriod.MONTH, today=today)
        if not insights.success:
            return insights
        health = self.get_health_score(AnalyticsPeriod.MONTH, today=today)
        if not health.success:
            return health
        return ServiceResult(
            success=True,
            data=AnalyticsOverview(
                dashboard=dashboard.data,
                insights=insights.data,
                health_score=health.data,
            ),
        )

    def _fail_range(self) -> ServiceResult:
        return self._fail("start_date must be on or before end_date", ErrorCode.VALIDATION_ERROR)

