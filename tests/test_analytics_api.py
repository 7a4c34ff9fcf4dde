from datetime import date

import pytest


@pytest.fixture
def ledger(make_category, make_transaction, make_budget):
    groceries = make_category("Groceries")
    rent = make_category("Rent", color="#222222", icon="home")
    salary = make_category("Salary", "income", color="#2ECC71", icon="briefcase")

    make_transaction(salary, "3000.00", date(2024, 1, 1), "January salary")
    make_transaction(rent, "1000.00", date(2024, 1, 2), "January rent")
    make_transaction(groceries, "200.00", date(2024, 1, 5), "Market")
    make_transaction(salary, "3000.00", date(2024, 2, 1), "February salary")
    make_transaction(groceries, "300.00", date(2024, 2, 6), "Market")

    make_budget(groceries, amount="250.00")
    make_budget(rent, amount="900.00")
    return {"groceries": groceries, "rent": rent, "salary": salary}


JANUARY = {"start_date": "2024-01-01", "end_date": "2024-01-31"}


def test_spending_insights_for_explicit_range(client, ledger):
    insights = client.get("/api/analytics/spending-insights", params=JANUARY).json()["data"]

    assert insights["period"] == {"start": "2024-01-01", "end": "2024-01-31"}
    assert insights["totals"] == {"income": 3000.0, "expenses": 1200.0, "net": 1800.0, "transaction_count": 3}
    breakdown = insights["category_breakdown"]
    assert [c["category_name"] for c in breakdown] == ["Rent", "Groceries"]
    assert breakdown[0]["percentage_of_total"] == 83.33
    assert [d["date"] for d in insights["spending_trends"]] == ["2024-01-01", "2024-01-02", "2024-01-05"]
    assert insights["highest_spending"][0]["category_name"] == "Rent"


def test_budget_performance(client, ledger):
    performance = client.get("/api/analytics/budget-performance", params=JANUARY).json()["data"]

    assert performance["total_budgets"] == 2
    assert performance["total_spent"] == 1200.0
    assert performance["overall_utilization"] == 104.35
    assert performance["budgets_overspent"] == 1
    assert performance["budgets_on_track"] == 1
    statuses = {b["budget_name"]: b["status"] for b in performance["budgets"]}
    assert statuses == {"Groceries": "on_track", "Rent": "overspent"}


def test_health_score_factors(client, ledger):
    score = client.get("/api/analytics/health-score", params=JANUARY).json()["data"]

    assert score["factors"]["savings_rate"] == 30
    assert score["factors"]["budget_adherence"] == 10
    assert score["factors"]["budget_coverage"] == 10
    assert score["metrics"]["savings_rate"] == 60.0
    assert 0 <= score["score"] <= 100
    assert score["grade"]


def test_comparison_against_previous_window(client, ledger):
    comparison = client.get(
        "/api/analytics/comparison", params={"start_date": "2024-02-01", "end_date": "2024-02-29"}
    ).json()["data"]

    assert comparison["previous_period"] == {"start": "2024-01-03", "end": "2024-01-31"}
    assert comparison["expenses"]["current"] == 300.0
    assert comparison["expenses"]["previous"] == 200.0
    assert comparison["expenses"]["percentage"] == 50.0
    assert comparison["expenses"]["trend"] == "up"
    assert [c["category_name"] for c in comparison["categories"]] == ["Groceries"]


def test_reversed_range_is_rejected(client):
    response = client.get(
        "/api/analytics/spending-insights", params={"start_date": "2024-02-01", "end_date": "2024-01-01"}
    )
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"


def test_trend_months_are_bounded(client):
    assert client.get("/api/analytics/trends", params={"months": 25}).status_code == 400
    assert client.get("/api/analytics/trends", params={"months": 0}).status_code == 400
    assert client.get("/api/analytics/trends", params={"months": 2}).status_code == 200


def test_overview_and_dashboard_respond(client, ledger):
    overview = client.get("/api/analytics/overview").json()["data"]
    dashboard = client.get("/api/analytics/dashboard")

    assert set(overview) == {"dashboard", "insights", "health_score"}
    assert dashboard.status_code == 200


class TestPinnedClock:
    def test_trends(self, services, ledger):
        result = services["analytics_service"].get_trends(3, today=date(2024, 2, 15))

        months = result.data.months
        assert [m.period for m in months] == ["2023-12", "2024-01", "2024-02"]
        assert months[1].totals.expenses == 1200
        assert months[2].changes.expenses == -75
        assert result.data.predictions.next_month_income == 2000

    def test_dashboard(self, services, ledger):
        dashboard = services["analytics_service"].get_dashboard(today=date(2024, 2, 15)).data

        assert dashboard.year_to_date.income == 6000
        assert dashboard.year_to_date.expenses == 1500
        assert dashboard.current_month.net == 2700
        assert dashboard.active_budgets == 0
        assert dashboard.top_expense_category.category_name == "Groceries"
        assert dashboard.recent_transactions[0].date == date(2024, 2, 6)

    def test_dashboard_alerts_for_budgets_covering_today(self, services, ledger):
        dashboard = services["analytics_service"].get_dashboard(today=date(2024, 1, 20)).data

        assert dashboard.active_budgets == 2
        assert [a.budget_name for a in dashboard.alerts][0] == "Rent"
