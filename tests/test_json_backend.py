import json
import logging
from datetime import date
from decimal import Decimal

import pytest

from app.database import JsonFileStore, StorageError
from app.logger import StructuredLogger
from app.models.enums import CategoryType, SortOrder, TransactionType
from app.models.service_models import ListOptions
from app.repositories import category_repository
from app.repositories.budget_repository import BudgetRepository
from app.repositories.category_repository import DEFAULTS_CACHE_TTL_SECONDS, CategoryRepository
from app.repositories.filters import parse_filters
from app.repositories.storage import JsonFileBackend
from app.repositories.transaction_repository import TransactionRepository


@pytest.fixture
def quiet_logger():
    return StructuredLogger(name="tests.storage", level=logging.WARNING)


@pytest.fixture
def persistent_store(tmp_path, quiet_logger):
    return JsonFileStore(data_dir=tmp_path, persist=True, logger=quiet_logger)


class TestJsonFileBackend:
    def test_select_filters_sorts_and_counts_before_paging(self, storage):
        storage.insert("transactions", [
            {"id": str(i), "amount": float(i * 10), "date": f"2024-01-{i:02d}"} for i in range(1, 8)
        ])

        rows, total = storage.select(
            "transactions",
            parse_filters({"gte_amount": 30}),
            ListOptions(sort="amount", order=SortOrder.DESC, page=2, limit=2),
        )

        assert total == 5
        assert [r["amount"] for r in rows] == [50.0, 40.0]

    def test_returned_rows_are_copies(self, storage):
        storage.insert("categories", [{"id": "c1", "name": "Food"}])
        row = storage.select_one("categories", "c1")
        row["name"] = "Changed"
        assert storage.select_one("categories", "c1")["name"] == "Food"

    def test_insert_rejects_duplicate_ids(self, storage):
        storage.insert("categories", [{"id": "c1"}])
        with pytest.raises(ValueError):
            storage.insert("categories", [{"id": "c1"}])

    def test_update_missing_row_returns_none(self, storage):
        assert storage.update("categories", "missing", {"name": "x"}) is None

    def test_delete_requires_a_filter(self, storage):
        with pytest.raises(ValueError):
            storage.delete("categories", [])

    def test_batch_rolls_back_on_error(self, storage):
        storage.insert("categories", [{"id": "c1"}])
        with pytest.raises(RuntimeError):
            with storage.batch():
                storage.insert("categories", [{"id": "c2"}])
                raise RuntimeError("boom")
        assert storage.count("categories", []) == 1


class TestJsonFileStore:
    def test_writes_are_persisted_and_reloaded(self, tmp_path, persistent_store, quiet_logger):
        JsonFileBackend(persistent_store).insert("budgets", [{"id": "b1", "amount": 100.0}])

        on_disk = json.loads((tmp_path / "budgets.json").read_text(encoding="utf-8"))
        assert on_disk == [{"id": "b1", "amount": 100.0}]

        reopened = JsonFileStore(data_dir=tmp_path, persist=True, logger=quiet_logger)
        assert reopened.table("budgets") == [{"id": "b1", "amount": 100.0}]

    def test_batch_flushes_once_at_exit(self, tmp_path, persistent_store):
        backend = JsonFileBackend(persistent_store)
        with backend.batch():
            backend.insert("categories", [{"id": "a"}])
            assert not (tmp_path / "categories.json").exists()
        assert (tmp_path / "categories.json").exists()

    def test_corrupt_file_raises_storage_error(self, tmp_path, persistent_store):
        (tmp_path / "categories.json").write_text("{not json", encoding="utf-8")
        with pytest.raises(StorageError):
            persistent_store.table("categories")

    def test_non_persistent_store_never_touches_disk(self, tmp_path, store):
        JsonFileBackend(store).insert("categories", [{"id": "a"}])
        assert list(tmp_path.iterdir()) == []


class TestRepositories:
    def test_storage_fault_becomes_error_result(self, tmp_path, persistent_store, quiet_logger):
        (tmp_path / "transactions.json").write_text("[broken", encoding="utf-8")
        repo = TransactionRepository(JsonFileBackend(persistent_store), quiet_logger)

        result = repo.find_all()

        assert result.data is None
        assert "Cannot read local table" in result.error

    def test_not_found_is_not_an_error(self, storage, quiet_logger):
        repo = CategoryRepository(storage, quiet_logger)
        result = repo.find_by_id("00000000-0000-0000-0000-000000000000")
        assert result.ok and result.data is None

    def test_create_generates_id_and_timestamps(self, storage, quiet_logger):
        repo = CategoryRepository(storage, quiet_logger)
        created = repo.create({"name": "Rent", "type": "expense", "color": "#000000", "icon": "home"})

        assert created.ok
        assert created.data.id
        assert created.data.created_at is not None
        assert created.data.created_at == created.data.updated_at

    def test_update_cannot_change_id_or_created_at(self, storage, quiet_logger):
        repo = CategoryRepository(storage, quiet_logger)
        created = repo.create({"name": "Rent", "type": "expense"}).data

        updated = repo.update(created.id, {"id": "other", "created_at": "1999-01-01", "name": "Housing"})

        assert updated.data.id == created.id
        assert updated.data.created_at == created.created_at
        assert updated.data.name == "Housing"

    def test_hierarchy_nests_children_and_promotes_orphans(self, storage, quiet_logger):
        repo = CategoryRepository(storage, quiet_logger)
        food = repo.create({"name": "Food", "type": "expense"}).data
        repo.create({"name": "Groceries", "type": "expense", "parent_id": food.id})
        repo.create({"name": "Lost", "type": "expense", "parent_id": "11111111-1111-1111-1111-111111111111"})

        roots = repo.get_hierarchy().data

        assert [node.name for node in roots] == ["Food", "Lost"]
        assert [child.name for child in roots[0].children] == ["Groceries"]

    def test_bulk_delete_returns_removed_ids(self, storage, quiet_logger):
        repo = CategoryRepository(storage, quiet_logger)
        ids = [repo.create({"name": n, "type": "income"}).data.id for n in ("A", "B", "C")]

        removed = repo.bulk_delete(ids[:2] + ["not-there"])

        assert sorted(removed.data) == sorted(ids[:2])
        assert repo.count().data == 1

    def test_find_existing_ids(self, storage, quiet_logger):
        repo = CategoryRepository(storage, quiet_logger)
        kept = repo.create({"name": "Rent", "type": "expense"}).data

        found = repo.find_existing_ids([kept.id, "22222222-2222-2222-2222-222222222222"])

        assert found.data == {kept.id}
        assert repo.find_existing_ids([]).data == set()

    def test_total_amount_by_type(self, storage, quiet_logger):
        repo = TransactionRepository(storage, quiet_logger)
        category_id = "33333333-3333-4333-8333-333333333333"
        for amount, kind, day in (("10.10", "expense", "2024-01-02"), ("5.05", "expense", "2024-01-30"),
                                  ("7.00", "expense", "2024-02-01"), ("100.00", "income", "2024-01-15")):
            repo.create({
                "type": kind, "amount": amount, "description": "x",
                "category_id": category_id, "date": day,
            })

        total = repo.get_total_amount_by_type(TransactionType.EXPENSE, date(2024, 1, 1), date(2024, 1, 31))

        assert total.data == Decimal("15.15")
        assert total.count == 2

    def test_active_budgets_covering_a_day(self, storage, quiet_logger):
        repo = BudgetRepository(storage, quiet_logger)
        base = {
            "name": "Food", "category_id": "44444444-4444-4444-8444-444444444444",
            "amount": "100.00", "period": "monthly", "alert_threshold": "80",
        }
        repo.create({**base, "start_date": "2024-01-01", "end_date": "2024-01-31", "is_active": True})
        repo.create({**base, "start_date": "2024-02-01", "end_date": "2024-02-29", "is_active": True})
        repo.create({**base, "start_date": "2024-01-01", "end_date": "2024-01-31", "is_active": False})

        covering = repo.find_active(as_of=date(2024, 1, 15)).data

        assert [b.start_date for b in covering] == [date(2024, 1, 1)]
        assert len(repo.find_active().data) == 2


class TestFailedWritesLeaveNoTrace:
    @pytest.fixture
    def disk(self, persistent_store, monkeypatch):
        """Toggle ``disk["full"]`` to make every flush fail."""
        state = {"full": False}
        write = persistent_store._write_atomic

        def _write(name, rows):
            if state["full"]:
                raise StorageError("disk full")
            write(name, rows)

        monkeypatch.setattr(persistent_store, "_write_atomic", _write)
        return state

    def test_create_into_unwritable_directory(self, tmp_path, quiet_logger):
        not_a_dir = tmp_path / "data"
        not_a_dir.write_text("", encoding="utf-8")
        repo = CategoryRepository(
            JsonFileBackend(JsonFileStore(data_dir=not_a_dir, persist=True, logger=quiet_logger)),
            quiet_logger,
        )

        created = repo.create({"name": "Food", "type": "expense"})

        assert "Cannot write local table" in created.error
        assert repo.find_all().data == []

    def test_update_is_rolled_back(self, persistent_store, quiet_logger, disk):
        repo = CategoryRepository(JsonFileBackend(persistent_store), quiet_logger)
        food = repo.create({"name": "Food", "type": "expense"}).data
        disk["full"] = True

        result = repo.update(food.id, {"name": "Groceries"})

        assert result.error == "disk full"
        assert repo.find_by_id(food.id).data.name == "Food"

    def test_delete_is_rolled_back(self, persistent_store, disk):
        backend = JsonFileBackend(persistent_store)
        backend.insert("categories", [{"id": "c1", "name": "Food"}])
        disk["full"] = True

        with pytest.raises(StorageError):
            backend.delete("categories", parse_filters({"id": "c1"}))

        assert backend.count("categories", []) == 1

    def test_later_commits_do_not_write_failed_rows(self, tmp_path, persistent_store, disk):
        backend = JsonFileBackend(persistent_store)
        disk["full"] = True
        with pytest.raises(StorageError):
            backend.insert("categories", [{"id": "lost"}])

        disk["full"] = False
        backend.insert("categories", [{"id": "kept"}])

        on_disk = json.loads((tmp_path / "categories.json").read_text(encoding="utf-8"))
        assert on_disk == [{"id": "kept"}]


class TestCategoryLookups:
    @pytest.fixture
    def repo(self, storage, quiet_logger):
        return CategoryRepository(storage, quiet_logger)

    @staticmethod
    def _add(repo, name, kind="expense", **fields):
        row = {"name": name, "type": kind, "parent_id": None, "is_active": True, "is_default": False}
        row.update(fields)
        return repo.create(row).data

    def test_find_by_type_active_only(self, repo):
        self._add(repo, "Rent")
        self._add(repo, "Old gym", is_active=False)
        self._add(repo, "Salary", "income")

        active = repo.find_by_type(CategoryType.EXPENSE).data
        every = repo.find_by_type(CategoryType.EXPENSE, active_only=False).data

        assert [c.name for c in active] == ["Rent"]
        assert [c.name for c in every] == ["Old gym", "Rent"]

    def test_parent_and_root_selection(self, repo):
        food = self._add(repo, "Food")
        self._add(repo, "Restaurants", parent_id=food.id)
        self._add(repo, "Groceries", parent_id=food.id)
        self._add(repo, "Transport")

        children = repo.find_by_parent_id(food.id).data
        roots = repo.find_root_categories().data

        assert [c.name for c in children] == ["Groceries", "Restaurants"]
        assert [c.name for c in roots] == ["Food", "Transport"]

    def test_search_by_name_is_case_insensitive_and_limited(self, repo):
        for name in ("Coffee", "Coffee beans", "Decaf coffee", "Tea"):
            self._add(repo, name)

        found = repo.search_by_name("COFFEE", limit=2)

        assert [c.name for c in found.data] == ["Coffee", "Coffee beans"]
        assert found.count == 3
        assert repo.search_by_name("%,()").data == []


class TestDefaultCategoriesCache:
    @pytest.fixture
    def clock(self, monkeypatch):
        now = [1000.0]
        monkeypatch.setattr(category_repository.time, "monotonic", lambda: now[0])
        return now

    @pytest.fixture
    def repo(self, storage, quiet_logger):
        return CategoryRepository(storage, quiet_logger)

    @staticmethod
    def _default_row(name):
        return {"name": name, "type": "expense", "is_default": True, "is_active": True}

    def test_reads_within_ttl_are_served_from_cache(self, repo, storage, clock):
        repo.create(self._default_row("Food"))
        assert len(repo.find_default_categories().data) == 1

        # Written behind the repository's back, so only a fresh read sees it.
        storage.insert("categories", [{"id": "raw", **self._default_row("Rent")}])
        clock[0] += DEFAULTS_CACHE_TTL_SECONDS - 1
        cached = repo.find_default_categories().data
        clock[0] += 2
        refreshed = repo.find_default_categories().data

        assert [c.name for c in cached] == ["Food"]
        assert [c.name for c in refreshed] == ["Food", "Rent"]

    def test_writes_invalidate_the_cache(self, repo, clock):
        food = repo.create(self._default_row("Food")).data
        repo.find_default_categories()

        repo.create(self._default_row("Rent"))
        after_create = repo.find_default_categories().data
        repo.update(food.id, {"name": "Dining"})
        after_update = repo.find_default_categories().data
        repo.bulk_create([self._default_row("Travel"), self._default_row("Bills")])
        after_bulk = repo.find_default_categories().data

        assert [c.name for c in after_create] == ["Food", "Rent"]
        assert [c.name for c in after_update] == ["Dining", "Rent"]
        assert [c.name for c in after_bulk] == ["Bills", "Dining", "Rent", "Travel"]

    def test_read_racing_a_write_is_not_cached(self, repo, storage, clock, monkeypatch):
        repo.create(self._default_row("Food"))
        real_find_all = CategoryRepository.find_all

        def find_all_then_write(self, *args, **kwargs):
            result = real_find_all(self, *args, **kwargs)
            self.invalidate_defaults_cache()
            return result

        monkeypatch.setattr(CategoryRepository, "find_all", find_all_then_write)
        repo.find_default_categories()
        monkeypatch.setattr(CategoryRepository, "find_all", real_find_all)
        storage.insert("categories", [{"id": "raw", **self._default_row("Rent")}])

        assert [c.name for c in repo.find_default_categories().data] == ["Food", "Rent"]
