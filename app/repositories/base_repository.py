"""
Base Repository.

Provides shared infrastructure for all repositories:
- Storage backend reference (Supabase or JSON files, chosen at startup)
- Logger reference
- Generic CRUD over one table with the filter-prefix convention
- Conversion of every storage fault into ``RepositoryResult.error``
"""

from __future__ import annotations

import uuid
from typing import Callable, ClassVar, Generic, Iterable, Mapping, Optional, TypeVar

from pydantic import BaseModel

from app.logger import StructuredLogger
from app.models.category import CategorySummary
from app.models.enums import StorageMode
from app.models.service_models import ListOptions, RepositoryResult
from app.repositories.filters import parse_filters
from app.repositories.storage import Row, StorageBackend
from app.utils.date_utils import utc_now_iso
from app.utils.general import convert_to_json_safe

ModelT = TypeVar("ModelT", bound=BaseModel)
T = TypeVar("T")

CATEGORIES_TABLE: str = "categories"

# Columns a caller can never overwrite through ``update``.
_IMMUTABLE_COLUMNS: frozenset[str] = frozenset({"id", "created_at"})


class BaseRepository(Generic[ModelT]):
    """Base class for all repositories. Receives dependencies via __init__.

    Subclasses set ``TABLE`` and ``MODEL``.  ``RELATION_FIELDS`` names
    model attributes that are attached after reading (``category``,
    ``progress``) and must never be written back to storage.
    """

    TABLE: ClassVar[str] = ""
    MODEL: ClassVar[type[BaseModel]]
    RELATION_FIELDS: ClassVar[frozenset[str]] = frozenset()
    DEFAULT_SORT: ClassVar[str] = "created_at"

    def __init__(self, storage: StorageBackend, logger: StructuredLogger) -> None:
        self._storage = storage
        self._logger = logger

    @property
    def storage_mode(self) -> StorageMode:
        return self._storage.mode

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    def _execute(
        self,
        operation_name: str,
        operation: Callable[[], RepositoryResult[T]],
    ) -> RepositoryResult[T]:
        """Run *operation*, turning any exception into an error result."""
        try:
            return operation()
        except Exception as exc:
            self._logger.warning(
                "Storage operation %s (%s) failed: %s", operation_name, self.TABLE, exc
            )
            return RepositoryResult(error=str(exc))

    def _parse(self, row: Row) -> ModelT:
        return self.MODEL.model_validate(row)  # type: ignore[return-value]

    def _to_row(self, data: Mapping[str, object]) -> Row:
        row = convert_to_json_safe(dict(data))
        for key in self.RELATION_FIELDS:
            row.pop(key, None)
        return row

    # ------------------------------------------------------------------
    # Generic CRUD
    # ------------------------------------------------------------------

    def find_all(
        self,
        filters: Optional[Mapping[str, object]] = None,
        options: Optional[ListOptions] = None,
    ) -> RepositoryResult[list[ModelT]]:
        """Rows matching *filters*, sorted and optionally paginated.

        ``count`` is the total number of matches before pagination.
        """
        list_options = options or ListOptions(sort=self.DEFAULT_SORT)

        def _op() -> RepositoryResult[list[ModelT]]:
            rows, total = self._storage.select(
                self.TABLE, parse_filters(filters), list_options
            )
            return RepositoryResult(data=[self._parse(row) for row in rows], count=total)

        return self._execute("find_all", _op)

    def find_one(self, filters: Mapping[str, object]) -> RepositoryResult[Optional[ModelT]]:
        """First row matching *filters*, or ``data=None``."""
        result = self.find_all(filters, ListOptions(sort=self.DEFAULT_SORT, page=1, limit=1))
        if not result.ok:
            return RepositoryResult(error=result.error)
        return RepositoryResult(data=result.data[0] if result.data else None)

    def find_by_id(self, entity_id: str) -> RepositoryResult[Optional[ModelT]]:
        """Single row by id; a missing row is ``data=None`` with no error."""

        def _op() -> RepositoryResult[Optional[ModelT]]:
            row = self._storage.select_one(self.TABLE, entity_id)
            return RepositoryResult(data=self._parse(row) if row else None)

        return self._execute("find_by_id", _op)

    def _prepare_insert(self, data: Mapping[str, object], now: str) -> Row:
        row = self._to_row(data)
        row["id"] = str(row.get("id") or uuid.uuid4())
        row["created_at"] = now
        row["updated_at"] = now
        return row

    def create(self, data: Mapping[str, object]) -> RepositoryResult[ModelT]:
        """Insert one row, generating ``id`` and timestamps."""

        def _op() -> RepositoryResult[ModelT]:
            row = self._prepare_insert(data, utc_now_iso())
            inserted = self._storage.insert(self.TABLE, [row])
            return RepositoryResult(data=self._parse(inserted[0] if inserted else row), count=1)

        return self._execute("create", _op)

    def update(
        self, entity_id: str, changes: Mapping[str, object]
    ) -> RepositoryResult[Optional[ModelT]]:
        """Apply a partial update and refresh ``updated_at``.

        A missing row is ``data=None`` with no error.
        """

        def _op() -> RepositoryResult[Optional[ModelT]]:
            row = self._to_row(changes)
            for column in _IMMUTABLE_COLUMNS:
                row.pop(column, None)
            row["updated_at"] = utc_now_iso()
            updated = self._storage.update(self.TABLE, entity_id, row)
            return RepositoryResult(data=self._parse(updated) if updated else None)

        return self._execute("update", _op)

    def delete(self, entity_id: str) -> RepositoryResult[Optional[ModelT]]:
        """Delete by id and return the removed row (``None`` if it did not exist)."""

        def _op() -> RepositoryResult[Optional[ModelT]]:
            removed = self._storage.delete(self.TABLE, parse_filters({"id": entity_id}))
            return RepositoryResult(
                data=self._parse(removed[0]) if removed else None,
                count=len(removed),
            )

        return self._execute("delete", _op)

    def count(self, filters: Optional[Mapping[str, object]] = None) -> RepositoryResult[int]:
        def _op() -> RepositoryResult[int]:
            total = self._storage.count(self.TABLE, parse_filters(filters))
            return RepositoryResult(data=total, count=total)

        return self._execute("count", _op)

    def exists(self, entity_id: str) -> RepositoryResult[bool]:
        result = self.count({"id": entity_id})
        if not result.ok:
            return RepositoryResult(error=result.error)
        return RepositoryResult(data=bool(result.data))

    def bulk_create(
        self, items: Iterable[Mapping[str, object]]
    ) -> RepositoryResult[list[ModelT]]:
        """Insert many rows in one storage call; all or nothing."""

        def _op() -> RepositoryResult[list[ModelT]]:
            now = utc_now_iso()
            rows = [self._prepare_insert(item, now) for item in items]
            with self._storage.batch():
                inserted = self._storage.insert(self.TABLE, rows)
            return RepositoryResult(
                data=[self._parse(row) for row in inserted], count=len(inserted)
            )

        return self._execute("bulk_create", _op)

    def bulk_delete(self, entity_ids: Iterable[str]) -> RepositoryResult[list[str]]:
        """Delete every listed id; returns the ids actually removed."""
        ids = [str(entity_id) for entity_id in entity_ids]

        def _op() -> RepositoryResult[list[str]]:
            if not ids:
                return RepositoryResult(data=[], count=0)
            with self._storage.batch():
                removed = self._storage.delete(self.TABLE, parse_filters({"in_id": ids}))
            removed_ids = [str(row.get("id")) for row in removed]
            return RepositoryResult(data=removed_ids, count=len(removed_ids))

        return self._execute("bulk_delete", _op)

    # ------------------------------------------------------------------
    # Relations
    # ------------------------------------------------------------------

    def _category_summaries(
        self, category_ids: Iterable[str]
    ) -> dict[str, CategorySummary]:
        """Look up category summaries by id in one query.  Raises on storage faults."""
        wanted = sorted({category_id for category_id in category_ids if category_id})
        if not wanted:
            return {}
        rows, _ = self._storage.select(
            CATEGORIES_TABLE,
            parse_filters({"in_id": wanted}),
            ListOptions(sort="name"),
        )
        return {str(row["id"]): CategorySummary.model_validate(row) for row in rows}
