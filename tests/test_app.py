import pytest
from fastapi.testclient import TestClient

from app.api import create_app
from app.api.rate_limit import FixedWindowRateLimiter


def test_health(client):
    body = client.get("/health").json()

    assert body["success"] is True
    assert body["message"] == "Budget Tracker API is running"
    assert body["environment"] == "test"
    assert body["storage_mode"] == "localStorage"


def test_api_index_lists_resources(client):
    data = client.get("/api").json()["data"]

    assert data["name"] == "Budget Tracker API"
    assert data["endpoints"]["transactions"] == "/api/transactions"


def test_openapi_document(client):
    schema = client.get("/openapi.json").json()

    assert schema["info"]["title"] == "Budget Tracker API"
    assert "/api/transactions" in schema["paths"]


def test_operation_ids_are_unique(client):
    paths = client.get("/openapi.json").json()["paths"]

    ids = [operation["operationId"] for item in paths.values() for operation in item.values()]

    assert len(ids) == len(set(ids))
    for path in ("/api/budgets/{budget_id}", "/api/categories/{category_id}", "/api/transactions/{transaction_id}"):
        assert {"put", "patch"} <= set(paths[path])


def test_unknown_route_uses_error_envelope(client):
    response = client.get("/api/nope")

    assert response.status_code == 404
    body = response.json()
    assert body["success"] is False
    assert body["error"] == {"code": "NOT_FOUND", "message": "Route GET /api/nope not found"}
    assert body["path"] == "/api/nope"
    assert body["timestamp"]


def test_wrong_method(client):
    response = client.delete("/api/transactions")

    assert response.status_code == 405
    assert response.json()["error"]["code"] == "METHOD_NOT_ALLOWED"


class TestRateLimiting:
    @pytest.fixture
    def limited_client(self, config, services, logger):
        limited = config.model_copy(update={"RATE_LIMIT_ENABLED": True, "RATE_LIMIT_MAX_REQUESTS": 2})
        app = create_app(config=limited, services=services, logger=logger)
        with TestClient(app) as test_client:
            yield test_client

    def test_requests_past_the_limit_get_429(self, limited_client):
        first = limited_client.get("/api/categories")
        limited_client.get("/api/categories")
        blocked = limited_client.get("/api/categories")

        assert first.headers["X-RateLimit-Limit"] == "2"
        assert first.headers["X-RateLimit-Remaining"] == "1"
        assert blocked.status_code == 429
        assert blocked.json()["error"]["code"] == "RATE_LIMIT_EXCEEDED"
        assert int(blocked.headers["Retry-After"]) > 0

    def test_health_is_not_limited(self, limited_client):
        statuses = {limited_client.get("/health").status_code for _ in range(5)}
        assert statuses == {200}


class TestFixedWindowRateLimiter:
    def test_counts_per_client_within_a_window(self):
        limiter = FixedWindowRateLimiter(max_requests=2, window_seconds=60, clock=lambda: 100.0)

        first = limiter.hit("a")
        second = limiter.hit("a")
        third = limiter.hit("a")
        other = limiter.hit("b")

        assert (first.allowed, first.remaining) == (True, 1)
        assert (second.allowed, second.remaining) == (True, 0)
        assert third.allowed is False
        assert third.retry_after == 60
        assert other.allowed is True

    def test_window_expiry_starts_a_new_count(self):
        limiter = FixedWindowRateLimiter(max_requests=1, window_seconds=10)

        limiter.hit("a", now=0.0)
        blocked = limiter.hit("a", now=4.0)
        fresh = limiter.hit("a", now=10.0)

        assert blocked.allowed is False
        assert blocked.retry_after == 6
        assert fresh.allowed is True

    def test_reset(self):
        limiter = FixedWindowRateLimiter(max_requests=1, window_seconds=10, clock=lambda: 0.0)
        limiter.hit("a")

        limiter.reset()

        assert limiter.hit("a").allowed is True
