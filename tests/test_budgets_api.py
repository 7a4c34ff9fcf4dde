from datetime import date

import pytest

MISSING_ID = "00000000-0000-4000-8000-000000000000"


@pytest.fixture
def dining(make_category):
    return make_category("Dining")


@pytest.fixture
def fuel(make_category):
    return make_category("Fuel", color="#123456", icon="gas-pump")


def _budget(category, **overrides):
    body = {
        "category_id": category.id,
        "amount": 200,
        "period": "monthly",
        "start_date": "2024-01-01",
    }
    body.update(overrides)
    return body


class TestCreate:
    def test_end_date_is_derived_from_the_period(self, client, dining):
        response = client.post("/api/budgets", json=_budget(dining))

        assert response.status_code == 201
        created = response.json()["data"]
        assert created["end_date"] == "2024-01-31"
        assert created["name"] == "Dining"
        assert created["alert_threshold"] == 80.0
        assert created["category"]["name"] == "Dining"
        assert created["progress"]["spent_amount"] == 0.0

    @pytest.mark.parametrize(
        ("period", "end"), [("weekly", "2024-01-07"), ("yearly", "2024-12-31")]
    )
    def test_other_periods(self, client, dining, period, end):
        created = client.post("/api/budgets", json=_budget(dining, period=period)).json()["data"]
        assert created["end_date"] == end

    def test_overlapping_active_budget_conflicts(self, client, dining):
        client.post("/api/budgets", json=_budget(dining))

        overlap = client.post("/api/budgets", json=_budget(dining, start_date="2024-01-20"))
        next_month = client.post("/api/budgets", json=_budget(dining, start_date="2024-02-01"))
        inactive = client.post("/api/budgets", json=_budget(dining, start_date="2024-01-15", is_active=False))

        assert overlap.status_code == 409
        assert overlap.json()["error"]["code"] == "BUDGET_OVERLAP"
        assert next_month.status_code == 201
        assert inactive.status_code == 201

    def test_income_category_is_rejected(self, client, make_category):
        salary = make_category("Salary", "income")

        response = client.post("/api/budgets", json=_budget(salary))

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "CATEGORY_TYPE_MISMATCH"

    def test_end_before_start_is_rejected(self, client, dining):
        response = client.post("/api/budgets", json=_budget(dining, end_date="2023-12-31"))
        assert response.status_code == 400

    def test_threshold_bounds(self, client, dining):
        response = client.post("/api/budgets", json=_budget(dining, alert_threshold=150))
        assert response.json()["error"]["details"][0]["field"] == "alert_threshold"


class TestProgress:
    def test_spent_is_the_sum_of_category_expenses_in_range(self, client, dining, fuel, make_transaction, make_budget):
        budget = make_budget(dining, amount="200.00")
        make_transaction(dining, "10.00", date(2024, 1, 1))
        make_transaction(dining, "20.50", date(2024, 1, 31))
        make_transaction(dining, "99.00", date(2024, 2, 1))
        make_transaction(fuel, "40.00", date(2024, 1, 10))

        progress = client.get(f"/api/budgets/{budget.id}").json()["data"]["progress"]

        assert progress["spent_amount"] == 30.5
        assert progress["remaining_amount"] == 169.5
        assert progress["progress_percentage"] == 15.25
        assert progress["transaction_count"] == 2
        assert progress["is_overspent"] is False

    def test_list_sorted_by_progress(self, client, dining, fuel, make_transaction, make_budget):
        make_budget(dining, amount="100.00")
        make_budget(fuel, amount="100.00")
        make_transaction(dining, "10.00", date(2024, 1, 5))
        make_transaction(fuel, "150.00", date(2024, 1, 5))

        by_progress = client.get("/api/budgets", params={"sort": "progress_percentage", "order": "desc"}).json()
        overspent = client.get("/api/budgets", params={"overspent_only": "true"}).json()

        assert [b["name"] for b in by_progress["data"]] == ["Fuel", "Dining"]
        assert [b["name"] for b in overspent["data"]] == ["Fuel"]
        assert overspent["meta"]["pagination"]["total"] == 1

    def test_progress_can_be_omitted(self, client, dining, make_budget):
        make_budget(dining)
        data = client.get("/api/budgets", params={"include_progress": "false"}).json()["data"]
        assert data[0]["progress"] is None

    def test_alerts_cover_budgets_active_today(self, client, dining, make_transaction, make_budget):
        today = date.today()
        make_budget(dining, amount="50.00", start=today.replace(day=1))
        make_transaction(dining, "75.00", today)

        alerts = client.get("/api/budgets/alerts").json()["data"]

        assert len(alerts) == 1
        assert alerts[0]["alert_type"] == "overspent"
        assert alerts[0]["severity"] == "high"
        assert alerts[0]["category_name"] == "Dining"

    def test_summary(self, client, dining, fuel, make_transaction, make_budget):
        make_budget(dining, amount="100.00")
        make_budget(fuel, amount="300.00", is_active=False)
        make_transaction(dining, "25.00", date(2024, 1, 5))

        summary = client.get("/api/budgets/summary").json()["data"]

        assert summary["total_budgets"] == 2
        assert summary["active_budgets"] == 1
        assert summary["total_budget_amount"] == 100.0
        assert summary["total_spent_amount"] == 25.0
        assert summary["average_progress_percentage"] == 25.0


class TestUpdateDelete:
    def test_period_change_recomputes_end_date(self, client, dining, make_budget):
        budget = make_budget(dining)

        updated = client.patch(f"/api/budgets/{budget.id}", json={"period": "weekly"}).json()["data"]

        assert updated["end_date"] == "2024-01-07"

    def test_update_into_overlap_conflicts(self, client, dining, make_budget):
        make_budget(dining)
        later = make_budget(dining, start=date(2024, 3, 1))

        response = client.put(f"/api/budgets/{later.id}", json={"start_date": "2024-01-15"})

        assert response.status_code == 409

    def test_delete(self, client, dining, make_budget):
        budget = make_budget(dining)

        assert client.delete(f"/api/budgets/{budget.id}").json()["data"] == {"deleted_id": budget.id}
        assert client.get(f"/api/budgets/{budget.id}").json()["error"]["code"] == "BUDGET_NOT_FOUND"

    def test_missing_budget(self, client):
        assert client.delete(f"/api/budgets/{MISSING_ID}").status_code == 404
