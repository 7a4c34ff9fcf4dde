"""
Category Repository.

Data access for the ``categories`` table: lookups by name/type/parent,
the hierarchy tree and a short-lived cache of the seeded default
categories.
"""

from __future__ import annotations

import threading
import time
from typing import Iterable, Mapping, Optional

from app.logger import StructuredLogger
from app.models.category import Category, CategoryNode
from app.models.enums import CategoryType, SortOrder
from app.models.service_models import ListOptions, RepositoryResult
from app.repositories.base_repository import CATEGORIES_TABLE, BaseRepository
from app.repositories.storage import StorageBackend
from app.utils.string_helpers import sanitize_postgrest_value

# Default categories rarely change; reads within this window reuse the last result.
DEFAULTS_CACHE_TTL_SECONDS: float = 300.0


class CategoryRepository(BaseRepository[Category]):
    """Data access layer for Category entities."""

    TABLE = CATEGORIES_TABLE
    MODEL = Category
    RELATION_FIELDS = frozenset({"children"})
    DEFAULT_SORT = "name"

    def __init__(self, storage: StorageBackend, logger: StructuredLogger) -> None:
        super().__init__(storage, logger)
        self._defaults_lock = threading.Lock()
        self._defaults_cache: Optional[list[Category]] = None
        self._defaults_cached_at: float = 0.0
        self._defaults_generation: int = 0

    @staticmethod
    def _by_name() -> ListOptions:
        return ListOptions(sort="name", order=SortOrder.ASC)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def find_by_name_and_type(
        self, name: str, category_type: CategoryType
    ) -> RepositoryResult[Optional[Category]]:
        """Case-insensitive exact name match within one type."""
        result = self.find_all({"type": category_type}, self._by_name())
        if not result.ok:
            return RepositoryResult(error=result.error)
        wanted = name.strip().casefold()
        match = next(
            (category for category in result.data if category.name.casefold() == wanted),
            None,
        )
        return RepositoryResult(data=match)

    def find_by_type(
        self, category_type: CategoryType, active_only: bool = True
    ) -> RepositoryResult[list[Category]]:
        filters: dict[str, object] = {"type": category_type}
        if active_only:
            filters["is_active"] = True
        return self.find_all(filters, self._by_name())

    def find_by_parent_id(self, parent_id: str) -> RepositoryResult[list[Category]]:
        return self.find_all({"parent_id": parent_id}, self._by_name())

    def find_root_categories(self) -> RepositoryResult[list[Category]]:
        return self.find_all({"is_null_parent_id": True}, self._by_name())

    def find_default_categories(self) -> RepositoryResult[list[Category]]:
        """Default categories, served from a cache for five minutes."""
        with self._defaults_lock:
            if (
                self._defaults_cache is not None
                and time.monotonic() - self._defaults_cached_at < DEFAULTS_CACHE_TTL_SECONDS
            ):
                return RepositoryResult(
                    data=list(self._defaults_cache), count=len(self._defaults_cache)
                )
            generation = self._defaults_generation

        result = self.find_all({"is_default": True}, self._by_name())
        if result.ok:
            with self._defaults_lock:
                # A write since the read started makes this result stale.
                if generation == self._defaults_generation:
                    self._defaults_cache = list(result.data)
                    self._defaults_cached_at = time.monotonic()
        return result

    def invalidate_defaults_cache(self) -> None:
        with self._defaults_lock:
            self._defaults_cache = None
            self._defaults_generation += 1

    def has_children(self, category_id: str) -> RepositoryResult[bool]:
        result = self.count({"parent_id": category_id})
        if not result.ok:
            return RepositoryResult(error=result.error)
        return RepositoryResult(data=result.data > 0)

    def search_by_name(
        self, term: str, limit: int = 10
    ) -> RepositoryResult[list[Category]]:
        clean = sanitize_postgrest_value(term)
        if not clean:
            return RepositoryResult(data=[], count=0)
        options = ListOptions(sort="name", order=SortOrder.ASC, page=1, limit=limit)
        return self.find_all({"ilike_name": f"%{clean}%"}, options)

    def find_existing_ids(self, category_ids: Iterable[str]) -> RepositoryResult[set[str]]:
        """The subset of *category_ids* that exist."""
        ids = sorted({str(category_id) for category_id in category_ids})
        if not ids:
            return RepositoryResult(data=set())
        result = self.find_all({"in_id": ids})
        if not result.ok:
            return RepositoryResult(error=result.error)
        return RepositoryResult(data={category.id for category in result.data})

    def get_hierarchy(
        self, active_only: bool = False
    ) -> RepositoryResult[list[CategoryNode]]:
        """All categories as a tree of root nodes, children in name order.

        Built from a single query in one pass.  Categories whose parent is
        missing (or filtered out) are promoted to roots; with
        *active_only* an inactive category hides its whole subtree.
        """
        filters: dict[str, object] = {"is_active": True} if active_only else {}
        result = self.find_all(filters, self._by_name())
        if not result.ok:
            return RepositoryResult(error=result.error)

        nodes: dict[str, CategoryNode] = {
            category.id: CategoryNode(**category.model_dump()) for category in result.data
        }
        roots: list[CategoryNode] = []
        for category in result.data:
            node = nodes[category.id]
            parent = nodes.get(category.parent_id) if category.parent_id else None
            if parent is not None and parent.id != node.id:
                parent.children.append(node)
            elif category.parent_id is None or not active_only:
                roots.append(node)
        return RepositoryResult(data=roots, count=len(result.data))

    # ------------------------------------------------------------------
    # Writes invalidate the defaults cache
    # ------------------------------------------------------------------

    def create(self, data: Mapping[str, object]) -> RepositoryResult[Category]:
        self.invalidate_defaults_cache()
        try:
            return super().create(data)
        finally:
            self.invalidate_defaults_cache()

    def update(
        self, entity_id: str, changes: Mapping[str, object]
    ) -> RepositoryResult[Optional[Category]]:
        self.invalidate_defaults_cache()
        try:
            return super().update(entity_id, changes)
        finally:
            self.invalidate_defaults_cache()

    def delete(self, entity_id: str) -> RepositoryResult[Optional[Category]]:
        self.invalidate_defaults_cache()
        try:
            return super().delete(entity_id)
        finally:
            self.invalidate_defaults_cache()

    def bulk_create(
        self, items: Iterable[Mapping[str, object]]
    ) -> RepositoryResult[list[Category]]:
        self.invalidate_defaults_cache()
        try:
            return super().bulk_create(items)
        finally:
            self.invalidate_defaults_cache()
