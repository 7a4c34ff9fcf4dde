from types import SimpleNamespace

import pytest

from app.models.enums import SortOrder
from app.models.service_models import ListOptions
from app.repositories.filters import parse_filters
from app.repositories.storage import SupabaseBackend


class RecordingQuery:
    """Chainable stand-in for the PostgREST builder that logs every call."""

    def __init__(self, response):
        self.calls = []
        self._response = response

    def __getattr__(self, name):
        def _call(*args, **kwargs):
            self.calls.append((name, args, kwargs))
            return self

        return _call

    @property
    def not_(self):
        self.calls.append(("not_", (), {}))
        return self

    def execute(self):
        self.calls.append(("execute", (), {}))
        return self._response


@pytest.fixture
def query():
    return RecordingQuery(SimpleNamespace(data=[{"id": "t1", "amount": 10.0}], count=42))


@pytest.fixture
def backend(query):
    client = SimpleNamespace(table=lambda name: query.calls.append(("table", (name,), {})) or query)
    return SupabaseBackend(SimpleNamespace(supabase=client))


def _names(query):
    return [name for name, _, _ in query.calls]


def test_select_translates_filter_prefixes(backend, query):
    clauses = parse_filters({
        "type": "expense",
        "gte_date": "2024-01-01",
        "lte_amount": 50,
        "ilike_description": "%coffee%",
        "in_category_id": ["a", "b"],
        "is_null_parent_id": True,
    })

    rows, total = backend.select(
        "transactions", clauses, ListOptions(sort="amount", order=SortOrder.DESC, page=3, limit=10)
    )

    assert rows == [{"id": "t1", "amount": 10.0}]
    assert total == 42
    assert ("table", ("transactions",), {}) in query.calls
    assert ("select", ("*",), {"count": "exact"}) in query.calls
    assert ("eq", ("type", "expense"), {}) in query.calls
    assert ("gte", ("date", "2024-01-01"), {}) in query.calls
    assert ("lte", ("amount", 50), {}) in query.calls
    assert ("ilike", ("description", "%coffee%"), {}) in query.calls
    assert ("in_", ("category_id", ["a", "b"]), {}) in query.calls
    assert ("is_", ("parent_id", "null"), {}) in query.calls
    assert ("order", ("amount",), {"desc": True}) in query.calls
    assert ("range", (20, 29), {}) in query.calls
    assert _names(query)[-1] == "execute"


def test_unpaginated_select_has_no_range(backend, query):
    backend.select("categories", [], ListOptions(sort="name", order=SortOrder.ASC))

    assert "range" not in _names(query)
    assert ("order", ("name",), {"desc": False}) in query.calls


def test_is_not_null_uses_negation(backend, query):
    backend.count("categories", parse_filters({"is_null_parent_id": False}))

    names = _names(query)
    assert names.index("not_") < names.index("is_")
    assert ("limit", (1,), {}) in query.calls


def test_count_returns_exact_count(backend):
    assert backend.count("transactions", []) == 42


def test_update_scopes_to_id_and_returns_first_row(backend, query):
    row = backend.update("transactions", "t1", {"amount": 12.5})

    assert row == {"id": "t1", "amount": 10.0}
    assert ("update", ({"amount": 12.5},), {}) in query.calls
    assert ("eq", ("id", "t1"), {}) in query.calls


def test_delete_without_filter_is_refused(backend, query):
    with pytest.raises(ValueError):
        backend.delete("transactions", [])
    assert "delete" not in _names(query)


def test_insert_of_nothing_skips_the_round_trip(backend, query):
    assert backend.insert("transactions", []) == []
    assert query.calls == []
