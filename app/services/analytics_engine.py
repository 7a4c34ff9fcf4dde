"""
Analytics Engine -- Pure Calculation Functions.

Every function here works on already-fetched transactions and budgets
and returns typed models from ``app.models.analytics``.  No storage
access, no logging, no clock reads except through the explicit
``today`` arguments.

Usage::

    from app.services.analytics_engine import compute_budget_progress, category_totals

    progress = compute_budget_progress(budget, transactions, today=date(2024, 1, 20))
    breakdown = category_totals(transactions, categories_by_id)
"""

from __future__ import annotations

from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Iterable, Mapping, Optional, Sequence

from app.models.analytics import (
    BudgetPerformance,
    BudgetPerformanceItem,
    CategoryComparison,
    CategoryTotal,
    DailyTrend,
    FinancialHealthScore,
    HealthFactors,
    HealthMetrics,
    MetricChange,
    MonthBucket,
    MonthChanges,
    PeriodTotals,
    Prediction,
    Recommendation,
    TopCategory,
)
from app.models.budget import Budget, BudgetProgress
from app.models.category import CategorySummary
from app.models.enums import (
    AlertSeverity,
    AlertType,
    BudgetStatus,
    ForecastDirection,
    TransactionType,
    TrendDirection,
)
from app.models.service_models import BudgetAlert
from app.models.transaction import Transaction
from app.utils.date_utils import month_end, month_starts_back
from app.utils.math_utils import (
    ZERO,
    coefficient_of_variation,
    mean,
    percentage,
    percentage_change,
    round_money,
    round_percent,
    safe_divide,
)

# Progress at or above this share of the budget is always a high-severity alert.
HIGH_ALERT_PERCENT: Decimal = Decimal("95")
# Budget performance reports a budget as approaching its limit above this utilization.
APPROACHING_LIMIT_PERCENT: Decimal = Decimal("80")
# Period comparisons within +/- this many percent are "stable".
STABLE_CHANGE_PERCENT: Decimal = Decimal("5")
PREDICTION_WINDOW_MONTHS: int = 3

_SEVERITY_RANK: dict[AlertSeverity, int] = {
    AlertSeverity.HIGH: 0,
    AlertSeverity.MEDIUM: 1,
    AlertSeverity.LOW: 2,
}

CategoryLookup = Mapping[str, CategorySummary]


# ---------------------------------------------------------------------------
# Totals
# ---------------------------------------------------------------------------

def period_totals(transactions: Iterable[Transaction]) -> PeriodTotals:
    """Income, expenses, net and count of *transactions*."""
    income = ZERO
    expenses = ZERO
    count = 0
    for transaction in transactions:
        count += 1
        if transaction.type == TransactionType.INCOME:
            income += transaction.amount
        else:
            expenses += transaction.amount
    return PeriodTotals(
        income=round_money(income),
        expenses=round_money(expenses),
        net=round_money(income - expenses),
        transaction_count=count,
    )


def in_range(transaction: Transaction, start: Optional[date], end: Optional[date]) -> bool:
    if start is not None and transaction.date < start:
        return False
    if end is not None and transaction.date > end:
        return False
    return True


def category_totals(
    transactions: Iterable[Transaction],
    categories: CategoryLookup,
    transaction_type: TransactionType = TransactionType.EXPENSE,
) -> list[CategoryTotal]:
    """Per-category totals of one transaction type, largest first.

    ``percentage_of_total`` is relative to the sum over all categories.
    """
    sums: dict[str, Decimal] = defaultdict(lambda: ZERO)
    counts: dict[str, int] = defaultdict(int)
    for transaction in transactions:
        if transaction.type != transaction_type:
            continue
        sums[transaction.category_id] += transaction.amount
        counts[transaction.category_id] += 1

    grand_total = sum(sums.values(), ZERO)
    totals: list[CategoryTotal] = []
    for category_id, amount in sums.items():
        category = categories.get(category_id)
        totals.append(CategoryTotal(
            category_id=category_id,
            category_name=category.name if category else "Unknown",
            category_color=category.color if category else None,
            total_amount=round_money(amount),
            transaction_count=counts[category_id],
            percentage_of_total=percentage(amount, grand_total),
            average_transaction=round_money(safe_divide(amount, counts[category_id])),
        ))
    totals.sort(key=lambda item: (-item.total_amount, item.category_name))
    return totals


def top_categories(breakdown: Sequence[CategoryTotal], limit: int = 5) -> tuple[list[TopCategory], list[TopCategory]]:
    """Highest-spending and most-used categories from a breakdown."""
    highest = [
        TopCategory(category_name=item.category_name, color=item.category_color, amount=item.total_amount)
        for item in breakdown[:limit]
    ]
    busiest = sorted(breakdown, key=lambda item: (-item.transaction_count, item.category_name))
    most = [
        TopCategory(category_name=item.category_name, color=item.category_color, count=item.transaction_count)
        for item in busiest[:limit]
    ]
    return highest, most


# ---------------------------------------------------------------------------
# Trends
# ---------------------------------------------------------------------------

def daily_trends(transactions: Iterable[Transaction]) -> list[DailyTrend]:
    """One point per day that has transactions, oldest first, with running net."""
    by_day: dict[date, list[Transaction]] = defaultdict(list)
    for transaction in transactions:
        by_day[transaction.date].append(transaction)

    trends: list[DailyTrend] = []
    cumulative = ZERO
    for day in sorted(by_day):
        totals = period_totals(by_day[day])
        cumulative += totals.net
        trends.append(DailyTrend(
            date=day,
            total_income=totals.income,
            total_expenses=totals.expenses,
            net_amount=totals.net,
            cumulative_net=round_money(cumulative),
        ))
    return trends


def month_buckets(
    transactions: Sequence[Transaction],
    months: int = 6,
    today: Optional[date] = None,
) -> list[MonthBucket]:
    """The last *months* calendar months (current month included), oldest first.

    Each bucket after the first carries percentage changes against the
    month before it.
    """
    buckets: list[MonthBucket] = []
    previous: Optional[PeriodTotals] = None
    for start in month_starts_back(months, today):
        end = month_end(start)
        totals = period_totals(t for t in transactions if in_range(t, start, end))
        changes = None
        if previous is not None:
            changes = MonthChanges(
                income=percentage_change(previous.income, totals.income),
                expenses=percentage_change(previous.expenses, totals.expenses),
                net=percentage_change(previous.net, totals.net),
            )
        buckets.append(MonthBucket(
            period=start.strftime("%Y-%m"),
            start_date=start,
            end_date=end,
            totals=totals,
            changes=changes,
        ))
        previous = totals
    return buckets


def forecast_direction(values: Sequence[Decimal]) -> ForecastDirection:
    """Compare the recent half of *values* (oldest first) with the earlier half."""
    if len(values) < 2:
        return ForecastDirection.STABLE
    middle = len(values) // 2
    earlier = mean(values[:middle])
    recent = mean(values[middle:])
    if earlier == ZERO:
        return ForecastDirection.INCREASING if recent > ZERO else ForecastDirection.STABLE
    if recent > earlier * Decimal("1.1"):
        return ForecastDirection.INCREASING
    if recent < earlier * Decimal("0.9"):
        return ForecastDirection.DECREASING
    return ForecastDirection.STABLE


def predict_next_month(buckets: Sequence[MonthBucket]) -> Prediction:
    """Project next month as the average of the most recent buckets."""
    recent = list(buckets[-PREDICTION_WINDOW_MONTHS:])
    income = round_money(mean(b.totals.income for b in recent))
    expenses = round_money(mean(b.totals.expenses for b in recent))
    return Prediction(
        next_month_income=income,
        next_month_expenses=expenses,
        next_month_net=round_money(income - expenses),
        based_on_months=len(recent),
        income_trend=forecast_direction([b.totals.income for b in buckets]),
        expense_trend=forecast_direction([b.totals.expenses for b in buckets]),
    )


# ---------------------------------------------------------------------------
# Budgets
# ---------------------------------------------------------------------------

def budget_status(progress_percentage: Decimal, alert_threshold: Decimal, overspent: bool) -> BudgetStatus:
    if overspent:
        return BudgetStatus.OVERSPENT
    if progress_percentage >= alert_threshold:
        return BudgetStatus.APPROACHING_LIMIT
    return BudgetStatus.ON_TRACK


def budget_transactions(budget: Budget, transactions: Iterable[Transaction]) -> list[Transaction]:
    """Expenses in the budget's category within its closed date range."""
    return [
        t for t in transactions
        if t.type == TransactionType.EXPENSE
        and t.category_id == budget.category_id
        and budget.start_date <= t.date <= budget.end_date
    ]


def compute_budget_progress(
    budget: Budget,
    transactions: Iterable[Transaction],
    today: date,
) -> BudgetProgress:
    """Spending figures for *budget*.

    Only expense transactions of the budget's category inside
    ``[start_date, end_date]`` count towards ``spent_amount``.
    """
    matching = budget_transactions(budget, transactions)
    spent = sum((t.amount for t in matching), ZERO)

    total_days = max(1, (budget.end_date - budget.start_date).days + 1)
    days_remaining = min(total_days, max(0, (budget.end_date - today).days))
    days_elapsed = total_days - days_remaining
    average_daily = safe_divide(spent, days_elapsed) if days_elapsed > 0 else ZERO
    progress = percentage(spent, budget.amount)
    overspent = spent > budget.amount

    return BudgetProgress(
        spent_amount=round_money(spent),
        remaining_amount=round_money(budget.amount - spent),
        progress_percentage=progress,
        is_overspent=overspent,
        days_remaining=days_remaining,
        days_elapsed=days_elapsed,
        total_days=total_days,
        average_daily_spending=round_money(average_daily),
        projected_total=round_money(average_daily * total_days),
        transaction_count=len(matching),
        status=budget_status(progress, budget.alert_threshold, overspent),
    )


def budget_alerts(budgets: Iterable[Budget]) -> list[BudgetAlert]:
    """Alerts for budgets whose ``progress`` is filled in, most severe first.

    One alert per budget, the first rule that applies:
    overspent (high), projected overrun (medium), at least 95 % used
    (high), at least the budget's alert threshold used (medium).
    """
    alerts: list[BudgetAlert] = []
    for budget in budgets:
        progress = budget.progress
        if progress is None:
            continue
        category_name = budget.category.name if budget.category else None
        pct = progress.progress_percentage

        if progress.is_overspent:
            alert_type, severity = AlertType.OVERSPENT, AlertSeverity.HIGH
            message = f"Budget '{budget.name}' is overspent by {round_money(progress.spent_amount - budget.amount)}"
        elif progress.projected_total > budget.amount:
            alert_type, severity = AlertType.EXCEEDED_PROJECTION, AlertSeverity.MEDIUM
            message = f"Budget '{budget.name}' is projected to reach {progress.projected_total} of {budget.amount}"
        elif pct >= HIGH_ALERT_PERCENT:
            alert_type, severity = AlertType.APPROACHING_LIMIT, AlertSeverity.HIGH
            message = f"Budget '{budget.name}' has used {pct}% of its amount"
        elif pct >= budget.alert_threshold:
            alert_type, severity = AlertType.APPROACHING_LIMIT, AlertSeverity.MEDIUM
            message = f"Budget '{budget.name}' has used {pct}% of its amount"
        else:
            continue

        alerts.append(BudgetAlert(
            budget_id=budget.id,
            budget_name=budget.name,
            category_id=budget.category_id,
            category_name=category_name,
            alert_type=alert_type,
            severity=severity,
            message=message,
            progress_percentage=pct,
            spent_amount=progress.spent_amount,
            budget_amount=budget.amount,
        ))
    alerts.sort(key=lambda a: (_SEVERITY_RANK[a.severity], -a.progress_percentage))
    return alerts


def budget_performance(budgets: Sequence[Budget]) -> BudgetPerformance:
    """Utilization per budget (``progress`` must be filled in) and overall counts."""
    items: list[BudgetPerformanceItem] = []
    total_amount = ZERO
    total_spent = ZERO
    counts = {BudgetStatus.ON_TRACK: 0, BudgetStatus.APPROACHING_LIMIT: 0, BudgetStatus.OVERSPENT: 0}

    for budget in budgets:
        progress = budget.progress
        if progress is None:
            continue
        utilization = progress.progress_percentage
        if progress.is_overspent:
            status = BudgetStatus.OVERSPENT
        elif utilization > APPROACHING_LIMIT_PERCENT:
            status = BudgetStatus.APPROACHING_LIMIT
        else:
            status = BudgetStatus.ON_TRACK
        counts[status] += 1
        total_amount += budget.amount
        total_spent += progress.spent_amount
        items.append(BudgetPerformanceItem(
            budget_id=budget.id,
            budget_name=budget.name,
            category_name=budget.category.name if budget.category else None,
            period=budget.period,
            budget_amount=round_money(budget.amount),
            spent_amount=progress.spent_amount,
            remaining_amount=progress.remaining_amount,
            utilization_percentage=utilization,
            days_remaining=progress.days_remaining,
            daily_average=progress.average_daily_spending,
            projected_total=progress.projected_total,
            status=status,
        ))

    return BudgetPerformance(
        total_budgets=len(items),
        total_budget_amount=round_money(total_amount),
        total_spent=round_money(total_spent),
        overall_utilization=percentage(total_spent, total_amount),
        budgets_on_track=counts[BudgetStatus.ON_TRACK],
        budgets_approaching_limit=counts[BudgetStatus.APPROACHING_LIMIT],
        budgets_overspent=counts[BudgetStatus.OVERSPENT],
        budgets=items,
    )


# ---------------------------------------------------------------------------
# Financial health score
# ---------------------------------------------------------------------------

def _savings_points(savings_rate: Decimal) -> int:
    if savings_rate >= 20:
        return 30
    if savings_rate >= 10:
        return 20
    if savings_rate >= 5:
        return 10
    if savings_rate > 0:
        return 5
    return 0


def _adherence_points(utilization: Decimal) -> int:
    if utilization <= 80:
        return 25
    if utilization <= 90:
        return 20
    if utilization <= 100:
        return 15
    if utilization <= 110:
        return 10
    return 0


def _stability_points(variability: Decimal, bands: tuple[int, int, int, int]) -> int:
    if variability <= Decimal("0.1"):
        return bands[0]
    if variability <= Decimal("0.2"):
        return bands[1]
    if variability <= Decimal("0.3"):
        return bands[2]
    return bands[3]


def _coverage_points(coverage: Decimal) -> int:
    if coverage >= Decimal("0.9"):
        return 10
    if coverage >= Decimal("0.7"):
        return 8
    if coverage >= Decimal("0.5"):
        return 5
    return 2


def health_grade(score: int) -> str:
    for floor, grade in (
        (90, "A+"), (85, "A"), (80, "A-"), (75, "B+"), (70, "B"), (65, "B-"),
        (60, "C+"), (55, "C"), (50, "C-"), (45, "D+"), (40, "D"),
    ):
        if score >= floor:
            return grade
    return "F"


def _recommendations(factors: HealthFactors) -> list[Recommendation]:
    recommendations: list[Recommendation] = []
    if factors.savings_rate < 20:
        recommendations.append(Recommendation(
            category="savings",
            priority=AlertSeverity.HIGH,
            message="Increase your savings rate to at least 20% of income",
            action="Review expenses and find areas to cut back",
        ))
    if factors.budget_adherence < 20:
        recommendations.append(Recommendation(
            category="budgeting",
            priority=AlertSeverity.HIGH,
            message="Improve budget adherence to stay within spending limits",
            action="Review and adjust budget amounts or spending habits",
        ))
    if factors.income_stability < 15:
        recommendations.append(Recommendation(
            category="income",
            priority=AlertSeverity.MEDIUM,
            message="Work on stabilizing your income streams",
            action="Consider diversifying income sources or building an emergency fund",
        ))
    if factors.spending_consistency < 10:
        recommendations.append(Recommendation(
            category="expenses",
            priority=AlertSeverity.MEDIUM,
            message="Focus on controlling expense variability",
            action="Track spending more carefully and identify irregular expenses",
        ))
    if factors.budget_coverage < 8:
        recommendations.append(Recommendation(
            category="planning",
            priority=AlertSeverity.LOW,
            message="Create budgets for more expense categories",
            action="Analyze spending patterns and set budgets for major categories",
        ))
    recommendations.sort(key=lambda r: _SEVERITY_RANK[r.priority])
    return recommendations


def financial_health_score(
    totals: PeriodTotals,
    recent_months: Sequence[PeriodTotals],
    total_budgeted: Decimal,
) -> FinancialHealthScore:
    """
    Weighted 0-100 score.

    Parameters
    ----------
    totals:
        Income and expenses over the scored period.
    recent_months:
        Monthly totals used for the stability factors (coefficient of
        variation of income and of expenses).
    total_budgeted:
        Sum of the budget amounts covering the scored period.

    Factors: savings rate (30), budget adherence (25), income stability
    (20), spending consistency (15), budget coverage (10).
    """
    savings_rate = (
        round_percent(safe_divide(totals.income - totals.expenses, totals.income) * 100, 1)
        if totals.income > ZERO else ZERO
    )
    utilization = (
        round_percent(safe_divide(totals.expenses, total_budgeted) * 100, 1)
        if total_budgeted > ZERO else ZERO
    )
    income_cv = round_percent(coefficient_of_variation(m.income for m in recent_months), 4)
    expense_cv = round_percent(coefficient_of_variation(m.expenses for m in recent_months), 4)
    coverage = (
        round_percent(safe_divide(total_budgeted, totals.expenses), 4)
        if totals.expenses > ZERO else ZERO
    )

    factors = HealthFactors(
        savings_rate=_savings_points(savings_rate),
        budget_adherence=_adherence_points(utilization),
        income_stability=_stability_points(income_cv, (20, 15, 10, 5)),
        spending_consistency=_stability_points(expense_cv, (15, 12, 8, 5)),
        budget_coverage=_coverage_points(coverage),
    )
    score = min(100, sum(factors.model_dump().values()))
    return FinancialHealthScore(
        score=score,
        grade=health_grade(score),
        factors=factors,
        metrics=HealthMetrics(
            savings_rate=savings_rate,
            budget_utilization=utilization,
            income_variability=income_cv,
            expense_variability=expense_cv,
            budget_coverage=coverage,
        ),
        recommendations=_recommendations(factors),
    )


# ---------------------------------------------------------------------------
# Period comparison
# ---------------------------------------------------------------------------

def change_trend(change_percentage: Decimal) -> TrendDirection:
    if abs(change_percentage) < STABLE_CHANGE_PERCENT:
        return TrendDirection.STABLE
    return TrendDirection.UP if change_percentage > 0 else TrendDirection.DOWN


def metric_change(current: Decimal, previous: Decimal) -> MetricChange:
    change = percentage_change(previous, current)
    return MetricChange(
        current=current,
        previous=previous,
        amount=round_money(current - previous),
        percentage=change,
        trend=change_trend(change),
    )


def compare_categories(
    current: Sequence[CategoryTotal],
    previous: Sequence[CategoryTotal],
) -> list[CategoryComparison]:
    """Per-category expense change, covering categories seen in either period."""
    current_by_id = {item.category_id: item for item in current}
    previous_by_id = {item.category_id: item for item in previous}
    comparisons: list[CategoryComparison] = []
    for category_id in current_by_id.keys() | previous_by_id.keys():
        now = current_by_id.get(category_id)
        before = previous_by_id.get(category_id)
        now_amount = now.total_amount if now else ZERO
        before_amount = before.total_amount if before else ZERO
        change = percentage_change(before_amount, now_amount)
        comparisons.append(CategoryComparison(
            category_name=(now or before).category_name,
            current_amount=now_amount,
            previous_amount=before_amount,
            change_amount=round_money(now_amount - before_amount),
            change_percentage=change,
            trend=change_trend(change),
        ))
    comparisons.sort(key=lambda c: (-abs(c.change_amount), c.category_name))
    return comparisons


def year_start(today: date) -> date:
    return date(today.year, 1, 1)
