from datetime import date, timedelta

import pytest

MISSING_ID = "00000000-0000-4000-8000-000000000000"


@pytest.fixture
def groceries(make_category):
    return make_category("Groceries", "expense")


@pytest.fixture
def salary(make_category):
    return make_category("Salary", "income", color="#2ECC71", icon="briefcase")


def _payload(category, **overrides):
    body = {
        "type": "expense",
        "amount": 45.5,
        "description": "Weekly shop",
        "category_id": category.id,
        "date": "2024-01-15",
    }
    body.update(overrides)
    return body


class TestCreate:
    def test_returns_201_with_id_and_timestamps(self, client, groceries):
        response = client.post("/api/transactions", json=_payload(groceries))

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "Transaction created successfully"
        created = body["data"]
        assert created["id"]
        assert created["created_at"]
        assert created["updated_at"]
        assert created["amount"] == 45.5
        assert created["date"] == "2024-01-15"

    @pytest.mark.parametrize("amount", [0, -5, 1000000000, 12.345])
    def test_rejects_out_of_range_amounts(self, client, groceries, amount):
        response = client.post("/api/transactions", json=_payload(groceries, amount=amount))

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["error"]["code"] == "VALIDATION_ERROR"
        assert body["error"]["details"][0]["field"] == "amount"
        assert body["path"] == "/api/transactions"
        assert body["method"] == "POST"

    def test_accepts_the_maximum_amount(self, client, groceries):
        response = client.post("/api/transactions", json=_payload(groceries, amount=999999999.99))
        assert response.status_code == 201

    def test_type_must_match_category(self, client, salary):
        response = client.post("/api/transactions", json=_payload(salary, type="expense"))

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "CATEGORY_TYPE_MISMATCH"

    def test_unknown_category(self, client, groceries):
        body = _payload(groceries, category_id=MISSING_ID)
        response = client.post("/api/transactions", json=body)

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "CATEGORY_NOT_FOUND"

    def test_date_more_than_a_day_ahead_is_rejected(self, client, groceries):
        ahead = (date.today() + timedelta(days=5)).isoformat()
        response = client.post("/api/transactions", json=_payload(groceries, date=ahead))

        assert response.status_code == 400
        assert "future" in response.json()["error"]["message"]

    def test_inactive_category_is_rejected(self, client, services, groceries):
        client.put(f"/api/categories/{groceries.id}", json={"is_active": False})

        response = client.post("/api/transactions", json=_payload(groceries))

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "CATEGORY_INACTIVE"


class TestList:
    @pytest.fixture
    def january(self, groceries, salary, make_transaction):
        make_transaction(groceries, "12.00", date(2024, 1, 3), "Bakery")
        make_transaction(groceries, "80.00", date(2024, 1, 10), "Supermarket")
        make_transaction(groceries, "45.00", date(2024, 1, 20), "Coffee beans")
        make_transaction(groceries, "300.00", date(2024, 2, 2), "Bulk order")
        make_transaction(salary, "2500.00", date(2024, 1, 31), "January salary")

    def test_range_filters_with_amount_sort(self, client, january):
        response = client.get(
            "/api/transactions",
            params={"gte_date": "2024-01-01", "lte_date": "2024-01-31", "sort": "amount", "order": "desc"},
        )

        assert response.status_code == 200
        amounts = [t["amount"] for t in response.json()["data"]]
        assert amounts == [2500.0, 80.0, 45.0, 12.0]

    def test_pagination_meta(self, client, january):
        response = client.get("/api/transactions", params={"page": 2, "limit": 2, "sort": "date", "order": "asc"})

        body = response.json()
        assert [t["description"] for t in body["data"]] == ["Coffee beans", "January salary"]
        assert body["meta"]["pagination"] == {
            "page": 2, "limit": 2, "total": 5, "pages": 3, "has_next": True, "has_prev": True,
        }

    def test_named_filters(self, client, january, groceries):
        response = client.get(
            "/api/transactions",
            params={"type": "expense", "min_amount": 40, "max_amount": 100, "category_id": groceries.id},
        )

        assert sorted(t["description"] for t in response.json()["data"]) == ["Coffee beans", "Supermarket"]

    def test_search_and_ilike(self, client, january):
        by_search = client.get("/api/transactions", params={"search": "coffee"}).json()["data"]
        by_ilike = client.get("/api/transactions", params={"ilike_description": "%SUPER%"}).json()["data"]

        assert [t["description"] for t in by_search] == ["Coffee beans"]
        assert [t["description"] for t in by_ilike] == ["Supermarket"]

    def test_include_category_embeds_summary(self, client, january):
        data = client.get("/api/transactions", params={"include_category": "true", "limit": 1}).json()["data"]
        assert set(data[0]["category"]) >= {"id", "name", "type", "color", "icon"}

    def test_invalid_sort_field(self, client):
        response = client.get("/api/transactions", params={"sort": "password"})
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    def test_invalid_raw_filter_value(self, client):
        response = client.get("/api/transactions", params={"gte_date": "not-a-date"})
        assert response.status_code == 400

    def test_summary(self, client, january):
        response = client.get("/api/transactions/summary", params={"start_date": "2024-01-01", "end_date": "2024-01-31"})

        summary = response.json()["data"]
        assert summary["total_transactions"] == 4
        assert summary["total_income"] == 2500.0
        assert summary["total_expenses"] == 137.0
        assert summary["net_amount"] == 2363.0

    def test_search_endpoint_requires_term(self, client):
        response = client.get("/api/transactions/search")
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "MISSING_SEARCH_TERM"

    def test_search_endpoint(self, client, january):
        response = client.get("/api/transactions/search", params={"q": "salary"})
        assert [t["description"] for t in response.json()["data"]] == ["January salary"]

    def test_by_category(self, client, january, salary):
        response = client.get(f"/api/transactions/category/{salary.id}")

        body = response.json()
        assert [t["description"] for t in body["data"]] == ["January salary"]
        assert body["meta"]["pagination"]["total"] == 1


class TestSingle:
    def test_get_update_delete(self, client, groceries, make_transaction):
        created = make_transaction(groceries, "10.00")

        fetched = client.get(f"/api/transactions/{created.id}", params={"include_category": "true"})
        assert fetched.json()["data"]["category"]["name"] == "Groceries"

        updated = client.patch(f"/api/transactions/{created.id}", json={"amount": 15.25, "description": "Fixed"})
        assert updated.status_code == 200
        assert updated.json()["data"]["amount"] == 15.25
        assert updated.json()["data"]["description"] == "Fixed"

        deleted = client.delete(f"/api/transactions/{created.id}")
        assert deleted.json()["data"] == {"deleted_id": created.id}

        assert client.get(f"/api/transactions/{created.id}").status_code == 404

    def test_malformed_id(self, client):
        response = client.get("/api/transactions/not-a-uuid")
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_ID"

    def test_missing_transaction(self, client):
        response = client.delete(f"/api/transactions/{MISSING_ID}")
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "TRANSACTION_NOT_FOUND"

    def test_empty_update_is_rejected(self, client, groceries, make_transaction):
        created = make_transaction(groceries)
        response = client.put(f"/api/transactions/{created.id}", json={})
        assert response.status_code == 400


class TestBulk:
    def test_created_plus_errors_equals_items(self, client, groceries):
        items = [
            _payload(groceries, description="ok 1"),
            _payload(groceries, amount=-1),
            _payload(groceries, description="ok 2"),
            _payload(groceries, category_id=MISSING_ID),
        ]

        response = client.post("/api/transactions/bulk", json={"action": "create", "transactions": items})

        assert response.status_code == 200
        result = response.json()["data"]
        assert result["processed"] == 4
        assert len(result["created"]) + len(result["errors"]) == 4
        assert result["successful"] == 2
        assert [e["index"] for e in result["errors"]] == [1, 3]
        assert result["errors"][1]["code"] == "CATEGORY_NOT_FOUND"

    def test_bulk_delete(self, client, groceries, make_transaction):
        first = make_transaction(groceries)
        items = [{"id": first.id}, {"id": MISSING_ID}, {"id": "nope"}]

        result = client.post("/api/transactions/bulk", json={"action": "delete", "transactions": items}).json()["data"]

        assert result["deleted"] == [first.id]
        assert result["failed"] == 2

    def test_bulk_update(self, client, groceries, make_transaction):
        first = make_transaction(groceries)

        result = client.post(
            "/api/transactions/bulk",
            json={"action": "update", "transactions": [{"id": first.id, "amount": 99}]},
        ).json()["data"]

        assert result["updated"][0]["amount"] == 99.0

    def test_unknown_action(self, client):
        response = client.post("/api/transactions/bulk", json={"action": "merge", "transactions": [{}]})
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_BULK_ACTION"

    def test_item_count_limits(self, client, groceries):
        too_many = [_payload(groceries)] * 51
        assert client.post("/api/transactions/bulk", json={"action": "create", "transactions": []}).status_code == 400
        assert client.post("/api/transactions/bulk", json={"action": "create", "transactions": too_many}).status_code == 400
