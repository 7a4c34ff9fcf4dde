"""
Storage Backends.

Two interchangeable implementations of the low-level table operations the
repositories are built on:

- ``SupabaseBackend`` drives the PostgREST query builder of the Supabase
  client held by :class:`~app.database.DatabaseManager`.
- ``JsonFileBackend`` evaluates the same filter clauses in memory over the
  tables of a :class:`~app.database.JsonFileStore`.

Backends raise on faults; repositories turn exceptions into
``RepositoryResult.error``.  :func:`create_storage` picks the backend from
``STORAGE_MODE``.
"""

from __future__ import annotations

import contextlib
from typing import ContextManager, Optional, Protocol, runtime_checkable

from app.config import AppConfig
from app.database import DatabaseManager, JsonFileStore
from app.logger import StructuredLogger
from app.models.enums import SortOrder, StorageMode
from app.models.service_models import ListOptions
from app.repositories.filters import FilterClause, FilterOperator, row_matches, sort_rows
from app.utils.string_helpers import JsonValue

Row = dict[str, JsonValue]

__all__ = [
    "Row",
    "StorageBackend",
    "SupabaseBackend",
    "JsonFileBackend",
    "create_storage",
]


@runtime_checkable
class StorageBackend(Protocol):
    """Table operations shared by every persistence target."""

    mode: StorageMode

    def select(
        self, table: str, clauses: list[FilterClause], options: ListOptions,
    ) -> tuple[list[Row], int]:
        """Matching rows for the requested page plus the total match count."""
        ...

    def select_one(self, table: str, row_id: str) -> Optional[Row]: ...

    def count(self, table: str, clauses: list[FilterClause]) -> int: ...

    def insert(self, table: str, rows: list[Row]) -> list[Row]: ...

    def update(self, table: str, row_id: str, changes: Row) -> Optional[Row]: ...

    def delete(self, table: str, clauses: list[FilterClause]) -> list[Row]: ...

    def batch(self) -> ContextManager[None]: ...


# ---------------------------------------------------------------------------
# Supabase
# ---------------------------------------------------------------------------

class SupabaseBackend:
    """PostgREST-backed storage."""

    mode = StorageMode.DATABASE

    def __init__(self, db: DatabaseManager) -> None:
        self._db = db

    @staticmethod
    def _apply(query, clauses: list[FilterClause]):  # noqa: ANN001, ANN205 - postgrest builder types
        for clause in clauses:
            if clause.operator == FilterOperator.EQ:
                query = query.eq(clause.column, clause.value)
            elif clause.operator == FilterOperator.NEQ:
                query = query.neq(clause.column, clause.value)
            elif clause.operator == FilterOperator.GTE:
                query = query.gte(clause.column, clause.value)
            elif clause.operator == FilterOperator.LTE:
                query = query.lte(clause.column, clause.value)
            elif clause.operator == FilterOperator.ILIKE:
                query = query.ilike(clause.column, str(clause.value))
            elif clause.operator == FilterOperator.IN:
                query = query.in_(clause.column, list(clause.value or []))
            elif clause.operator == FilterOperator.IS_NULL:
                if clause.value:
                    query = query.is_(clause.column, "null")
                else:
                    query = query.not_.is_(clause.column, "null")
        return query

    def select(
        self, table: str, clauses: list[FilterClause], options: ListOptions,
    ) -> tuple[list[Row], int]:
        query = self._db.supabase.table(table).select("*", count="exact")
        query = self._apply(query, clauses)
        query = query.order(options.sort, desc=options.order == SortOrder.DESC)
        if options.paginated:
            query = query.range(options.offset, options.offset + options.limit - 1)
        response = query.execute()
        rows: list[Row] = response.data or []
        total = response.count if response.count is not None else len(rows)
        return rows, total

    def select_one(self, table: str, row_id: str) -> Optional[Row]:
        response = (
            self._db.supabase.table(table)
            .select("*")
            .eq("id", row_id)
            .maybe_single()
            .execute()
        )
        if response is None or not response.data:
            return None
        return response.data

    def count(self, table: str, clauses: list[FilterClause]) -> int:
        query = self._db.supabase.table(table).select("id", count="exact")
        response = self._apply(query, clauses).limit(1).execute()
        return response.count or 0

    def insert(self, table: str, rows: list[Row]) -> list[Row]:
        if not rows:
            return []
        response = self._db.supabase.table(table).insert(rows).execute()
        return response.data or []

    def update(self, table: str, row_id: str, changes: Row) -> Optional[Row]:
        response = (
            self._db.supabase.table(table)
            .update(changes)
            .eq("id", row_id)
            .execute()
        )
        return response.data[0] if response.data else None

    def delete(self, table: str, clauses: list[FilterClause]) -> list[Row]:
        if not clauses:
            raise ValueError("Refusing to delete without a filter")
        query = self._db.supabase.table(table).delete()
        response = self._apply(query, clauses).execute()
        return response.data or []

    def batch(self) -> ContextManager[None]:
        # Each PostgREST call is its own transaction.
        return contextlib.nullcontext()


# ---------------------------------------------------------------------------
# JSON files
# ---------------------------------------------------------------------------

class JsonFileBackend:
    """In-memory evaluation over :class:`JsonFileStore` tables.

    Every returned row is a copy; callers never mutate stored rows.
    """

    mode = StorageMode.LOCAL

    def __init__(self, store: JsonFileStore) -> None:
        self._store = store

    def select(
        self, table: str, clauses: list[FilterClause], options: ListOptions,
    ) -> tuple[list[Row], int]:
        with self._store.write_lock:
            rows = [dict(row) for row in self._store.table(table) if row_matches(row, clauses)]
        total = len(rows)
        rows = sort_rows(rows, options.sort, descending=options.order == SortOrder.DESC)
        if options.paginated:
            rows = rows[options.offset:options.offset + options.limit]
        return rows, total

    def select_one(self, table: str, row_id: str) -> Optional[Row]:
        with self._store.write_lock:
            for row in self._store.table(table):
                if row.get("id") == row_id:
                    return dict(row)
        return None

    def count(self, table: str, clauses: list[FilterClause]) -> int:
        with self._store.write_lock:
            return sum(1 for row in self._store.table(table) if row_matches(row, clauses))

    def insert(self, table: str, rows: list[Row]) -> list[Row]:
        with self._store.mutate(table) as target:
            existing_ids = {row.get("id") for row in target}
            for row in rows:
                if row.get("id") in existing_ids:
                    raise ValueError(f"Duplicate id in {table}: {row.get('id')}")
            target.extend(dict(row) for row in rows)
        return [dict(row) for row in rows]

    def update(self, table: str, row_id: str, changes: Row) -> Optional[Row]:
        with self._store.write_lock:
            if self.select_one(table, row_id) is None:
                return None
            with self._store.mutate(table) as target:
                row = next(row for row in target if row.get("id") == row_id)
                row.update(changes)
                updated = dict(row)
        return updated

    def delete(self, table: str, clauses: list[FilterClause]) -> list[Row]:
        if not clauses:
            raise ValueError("Refusing to delete without a filter")
        with self._store.write_lock:
            removed = [row for row in self._store.table(table) if row_matches(row, clauses)]
            if removed:
                with self._store.mutate(table) as target:
                    target[:] = [row for row in target if not row_matches(row, clauses)]
        return [dict(row) for row in removed]

    def batch(self) -> ContextManager[None]:
        return self._store.batch_write()


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

def create_storage(
    config: AppConfig,
    logger: StructuredLogger,
    db: Optional[DatabaseManager] = None,
    store: Optional[JsonFileStore] = None,
) -> StorageBackend:
    """Build the backend selected by ``config.STORAGE_MODE``.

    *db* / *store* may be injected (tests, shared instances); otherwise
    they are created from *config*.
    """
    if config.STORAGE_MODE == StorageMode.DATABASE:
        manager = db or DatabaseManager(
            supabase_url=config.SUPABASE_URL,
            supabase_key=config.supabase_key,
            logger=logger,
        )
        logger.info("Storage mode: Supabase database")
        return SupabaseBackend(manager)

    json_store = store or JsonFileStore(
        data_dir=config.LOCALSTORAGE_PATH,
        persist=config.LOCALSTORAGE_PERSIST,
        logger=logger,
    )
    logger.info("Storage mode: local JSON files")
    return JsonFileBackend(json_store)
