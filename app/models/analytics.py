"""
Analytics Output Models.

Typed results produced by ``app.services.analytics_engine``.  These are
read-only aggregates computed from already-fetched transactions and
budgets; nothing here is persisted.
"""

from __future__ import annotations

from datetime import date as Date
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from app.models.enums import AlertSeverity, BudgetPeriod, BudgetStatus, ForecastDirection, TrendDirection
from app.models.service_models import BudgetAlert, DateRange
from app.models.transaction import Transaction


# ---------------------------------------------------------------------------
# Breakdown and bucket models
# ---------------------------------------------------------------------------

class CategoryTotal(BaseModel):
    """Spending attributed to one category over a date range."""

    category_id: str
    category_name: str
    category_color: Optional[str] = None
    total_amount: Decimal
    transaction_count: int
    percentage_of_total: Decimal
    average_transaction: Decimal


class PeriodTotals(BaseModel):
    income: Decimal = Decimal("0")
    expenses: Decimal = Decimal("0")
    net: Decimal = Decimal("0")
    transaction_count: int = 0


class MonthChanges(BaseModel):
    income: Decimal
    expenses: Decimal
    net: Decimal


class MonthBucket(BaseModel):
    """Totals for one calendar month (``period`` is ``YYYY-MM``)."""

    period: str
    start_date: Date
    end_date: Date
    totals: PeriodTotals
    changes: Optional[MonthChanges] = None


class DailyTrend(BaseModel):
    date: Date
    total_income: Decimal
    total_expenses: Decimal
    net_amount: Decimal
    cumulative_net: Decimal


class Prediction(BaseModel):
    """Naive projection of next month from recent monthly averages."""

    next_month_income: Decimal
    next_month_expenses: Decimal
    next_month_net: Decimal
    based_on_months: int
    income_trend: ForecastDirection
    expense_trend: ForecastDirection


# ---------------------------------------------------------------------------
# Report models
# ---------------------------------------------------------------------------

class TopCategory(BaseModel):
    category_name: str
    color: Optional[str] = None
    amount: Optional[Decimal] = None
    count: Optional[int] = None


class SpendingInsights(BaseModel):
    period: DateRange
    totals: PeriodTotals
    category_breakdown: list[CategoryTotal] = Field(default_factory=list)
    spending_trends: list[DailyTrend] = Field(default_factory=list)
    highest_spending: list[TopCategory] = Field(default_factory=list)
    most_transactions: list[TopCategory] = Field(default_factory=list)


class TrendsAnalysis(BaseModel):
    months: list[MonthBucket] = Field(default_factory=list)
    daily: list[DailyTrend] = Field(default_factory=list)
    predictions: Prediction


class HealthFactors(BaseModel):
    savings_rate: int
    budget_adherence: int
    income_stability: int
    spending_consistency: int
    budget_coverage: int


class HealthMetrics(BaseModel):
    savings_rate: Decimal
    budget_utilization: Decimal
    income_variability: Decimal
    expense_variability: Decimal
    budget_coverage: Decimal


class Recommendation(BaseModel):
    category: str
    priority: AlertSeverity
    message: str
    action: str


class FinancialHealthScore(BaseModel):
    """Weighted 0-100 score; ``factors`` sum to ``score``."""

    score: int
    max_score: int = 100
    grade: str
    factors: HealthFactors
    metrics: HealthMetrics
    recommendations: list[Recommendation] = Field(default_factory=list)


class MetricChange(BaseModel):
    current: Decimal
    previous: Decimal
    amount: Decimal
    percentage: Decimal
    trend: TrendDirection


class CategoryComparison(BaseModel):
    category_name: str
    current_amount: Decimal
    previous_amount: Decimal
    change_amount: Decimal
    change_percentage: Decimal
    trend: TrendDirection


class PeriodComparison(BaseModel):
    current_period: DateRange
    previous_period: DateRange
    income: MetricChange
    expenses: MetricChange
    net: MetricChange
    transaction_count: MetricChange
    categories: list[CategoryComparison] = Field(default_factory=list)


class BudgetPerformanceItem(BaseModel):
    budget_id: str
    budget_name: str
    category_name: Optional[str] = None
    period: BudgetPeriod
    budget_amount: Decimal
    spent_amount: Decimal
    remaining_amount: Decimal
    utilization_percentage: Decimal
    days_remaining: int
    daily_average: Decimal
    projected_total: Decimal
    status: BudgetStatus


class BudgetPerformance(BaseModel):
    total_budgets: int
    total_budget_amount: Decimal
    total_spent: Decimal
    overall_utilization: Decimal
    budgets_on_track: int
    budgets_approaching_limit: int
    budgets_overspent: int
    budgets: list[BudgetPerformanceItem] = Field(default_factory=list)


class DashboardSummary(BaseModel):
    year_to_date: PeriodTotals
    current_month: PeriodTotals
    active_budgets: int
    budget_utilization: Decimal
    top_expense_category: Optional[CategoryTotal] = None
    recent_transactions: list[Transaction] = Field(default_factory=list)
    alerts: list[BudgetAlert] = Field(default_factory=list)


class AnalyticsOverview(BaseModel):
    dashboard: DashboardSummary
    insights: SpendingInsights
    health_score: FinancialHealthScore
