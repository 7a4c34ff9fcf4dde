from datetime import date

MISSING_ID = "00000000-0000-4000-8000-000000000000"


def _category(**overrides):
    body = {"name": "Pets", "type": "expense", "color": "#AABBCC", "icon": "paw"}
    body.update(overrides)
    return body


class TestCreate:
    def test_create_returns_201(self, client):
        response = client.post("/api/categories", json=_category(description="Vet and food"))

        assert response.status_code == 201
        created = response.json()["data"]
        assert created["name"] == "Pets"
        assert created["is_default"] is False
        assert created["is_active"] is True
        assert created["id"]

    def test_duplicate_name_within_type_conflicts(self, client):
        client.post("/api/categories", json=_category())

        duplicate = client.post("/api/categories", json=_category(name="  pets "))
        other_type = client.post("/api/categories", json=_category(type="income"))

        assert duplicate.status_code == 409
        assert duplicate.json()["error"]["code"] == "DUPLICATE_CATEGORY"
        assert other_type.status_code == 201

    def test_invalid_color(self, client):
        response = client.post("/api/categories", json=_category(color="red"))
        assert response.status_code == 400
        assert response.json()["error"]["details"][0]["field"] == "color"

    def test_parent_must_share_type(self, client, make_category):
        parent = make_category("Salary", "income")

        response = client.post("/api/categories", json=_category(parent_id=parent.id))

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "CATEGORY_TYPE_MISMATCH"


class TestDelete:
    def test_category_referenced_by_a_transaction_cannot_be_deleted(self, client, make_category, make_transaction):
        used = make_category("Groceries")
        make_transaction(used)

        response = client.delete(f"/api/categories/{used.id}")

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "CATEGORY_IN_USE"
        assert client.get(f"/api/categories/{used.id}").status_code == 200

    def test_unreferenced_category_is_deleted(self, client, make_category):
        unused = make_category("Hobbies")

        response = client.delete(f"/api/categories/{unused.id}")

        assert response.status_code == 200
        assert response.json()["data"] == {"deleted_id": unused.id}
        assert client.get(f"/api/categories/{unused.id}").status_code == 404

    def test_category_with_budget_cannot_be_deleted(self, client, make_category, make_budget):
        budgeted = make_category("Travel")
        make_budget(budgeted)

        response = client.delete(f"/api/categories/{budgeted.id}")

        assert response.json()["error"]["code"] == "CATEGORY_IN_USE"

    def test_parent_with_children_cannot_be_deleted(self, client, make_category):
        parent = make_category("Food")
        make_category("Restaurants", parent_id=parent.id)

        response = client.delete(f"/api/categories/{parent.id}")

        assert response.json()["error"]["code"] == "CATEGORY_HAS_CHILDREN"

    def test_default_categories_are_protected(self, client):
        client.post("/api/categories/seed")
        default = client.get("/api/categories/defaults").json()["data"][0]

        response = client.delete(f"/api/categories/{default['id']}")

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "DEFAULT_CATEGORY_PROTECTED"


class TestUpdate:
    def test_cycle_is_rejected(self, client, make_category):
        root = make_category("Food")
        child = make_category("Restaurants", parent_id=root.id)

        response = client.patch(f"/api/categories/{root.id}", json={"parent_id": child.id})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "CIRCULAR_REFERENCE"

    def test_type_change_blocked_while_in_use(self, client, make_category, make_transaction):
        used = make_category("Groceries")
        make_transaction(used, on=date(2024, 1, 2))

        response = client.put(f"/api/categories/{used.id}", json={"type": "income"})

        assert response.json()["error"]["code"] == "CATEGORY_IN_USE"

    def test_deactivate(self, client, make_category):
        category = make_category("Gym")

        response = client.put(f"/api/categories/{category.id}", json={"is_active": False})

        assert response.status_code == 200
        assert response.json()["data"]["is_active"] is False


class TestListing:
    def test_filters_and_root_selection(self, client, make_category):
        food = make_category("Food")
        make_category("Restaurants", parent_id=food.id)
        make_category("Salary", "income")

        roots = client.get("/api/categories", params={"parent_id": "null"}).json()
        income = client.get("/api/categories", params={"type": "income"}).json()
        search = client.get("/api/categories", params={"search": "rest"}).json()

        assert [c["name"] for c in roots["data"]] == ["Food", "Salary"]
        assert "meta" not in roots
        assert [c["name"] for c in income["data"]] == ["Salary"]
        assert [c["name"] for c in search["data"]] == ["Restaurants"]

    def test_pagination_only_when_requested(self, client, make_category):
        for name in ("A", "B", "C"):
            make_category(name)

        body = client.get("/api/categories", params={"page": 1, "limit": 2}).json()

        assert len(body["data"]) == 2
        assert body["meta"]["pagination"]["total"] == 3

    def test_hierarchy(self, client, make_category):
        food = make_category("Food")
        make_category("Restaurants", parent_id=food.id)

        tree = client.get("/api/categories/hierarchy").json()["data"]

        assert [node["name"] for node in tree] == ["Food"]
        assert [child["name"] for child in tree[0]["children"]] == ["Restaurants"]

    def test_invalid_id(self, client):
        assert client.get("/api/categories/xyz").json()["error"]["code"] == "INVALID_ID"
        assert client.get(f"/api/categories/{MISSING_ID}").status_code == 404


class TestSeedAndBulk:
    def test_seed_is_idempotent(self, client):
        first = client.post("/api/categories/seed")
        second = client.post("/api/categories/seed")

        assert first.status_code == 201
        assert first.json()["data"]["created_count"] == 16
        assert second.status_code == 200
        assert second.json()["data"]["created_count"] == 0
        assert second.json()["message"] == "Default categories already exist"
        assert len(client.get("/api/categories/defaults").json()["data"]) == 16

    def test_seed_skips_existing_names(self, client, make_category):
        make_category("Salary", "income")

        seeded = client.post("/api/categories/seed").json()["data"]

        assert seeded["created_count"] == 15
        assert seeded["skipped_count"] == 1

    def test_bulk_create_reports_per_item(self, client):
        items = [_category(name="One"), _category(name="One"), _category(name="")]

        result = client.post("/api/categories/bulk", json={"action": "create", "categories": items}).json()["data"]

        assert result["successful"] == 1
        assert [e["index"] for e in result["errors"]] == [1, 2]
        assert result["errors"][0]["code"] == "DUPLICATE_CATEGORY"

    def test_bulk_only_supports_create(self, client):
        response = client.post("/api/categories/bulk", json={"action": "delete", "categories": [{}]})
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_BULK_ACTION"
