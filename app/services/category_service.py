"""
Category Service.

Business rules for income/expense categories: unique names per type,
parent/child type agreement, cycle-free hierarchy, protection of the
seeded default categories, and the in-use check that blocks deleting a
category still referenced by transactions or budgets.
"""

from __future__ import annotations

from typing import Mapping, Optional

from pydantic import ValidationError

from app.logger import StructuredLogger
from app.models.category import Category, CategoryCreate, CategoryUpdate
from app.models.enums import BulkAction, CategoryType, ErrorCode
from app.models.service_models import (
    BulkItemError,
    BulkResult,
    CategoryQuery,
    ListOptions,
    PaginatedResult,
    Pagination,
    SeedResult,
    ServiceResult,
)
from app.repositories.budget_repository import BudgetRepository
from app.repositories.category_repository import CategoryRepository
from app.repositories.transaction_repository import TransactionRepository
from app.services.base_service import BaseService
from app.utils.audit import log_audit_event
from app.utils.string_helpers import sanitize_postgrest_value

SORTABLE_FIELDS: frozenset[str] = frozenset({"name", "type", "created_at", "updated_at"})
MAX_BULK_ITEMS: int = 50
MAX_HIERARCHY_DEPTH: int = 10

# Fields a default category keeps for its whole life.
_PROTECTED_DEFAULT_FIELDS: tuple[str, ...] = ("name", "type", "parent_id")

DEFAULT_CATEGORIES: tuple[dict[str, str], ...] = (
    {"name": "Food & Dining", "type": "expense", "color": "#FF6B6B", "icon": "utensils"},
    {"name": "Transportation", "type": "expense", "color": "#4ECDC4", "icon": "car"},
    {"name": "Shopping", "type": "expense", "color": "#95E1D3", "icon": "shopping-bag"},
    {"name": "Entertainment", "type": "expense", "color": "#F6D55C", "icon": "gamepad"},
    {"name": "Bills & Utilities", "type": "expense", "color": "#ED553B", "icon": "file-invoice-dollar"},
    {"name": "Healthcare", "type": "expense", "color": "#20639B", "icon": "heartbeat"},
    {"name": "Education", "type": "expense", "color": "#173F5F", "icon": "graduation-cap"},
    {"name": "Personal Care", "type": "expense", "color": "#3CAEA3", "icon": "spa"},
    {"name": "Home", "type": "expense", "color": "#F6D55C", "icon": "home"},
    {"name": "Other", "type": "expense", "color": "#95A5A6", "icon": "ellipsis-h"},
    {"name": "Salary", "type": "income", "color": "#2ECC71", "icon": "briefcase"},
    {"name": "Freelance", "type": "income", "color": "#3498DB", "icon": "laptop"},
    {"name": "Investment", "type": "income", "color": "#9B59B6", "icon": "chart-line"},
    {"name": "Business", "type": "income", "color": "#E74C3C", "icon": "store"},
    {"name": "Gift", "type": "income", "color": "#F39C12", "icon": "gift"},
    {"name": "Other Income", "type": "income", "color": "#95A5A6", "icon": "plus-circle"},
)


class CategoryService(BaseService):
    """
    Service layer for category operations.

    Delegates data access to CategoryRepository and consults the
    transaction and budget repositories for in-use checks.
    """

    def __init__(
        self,
        category_repo: CategoryRepository,
        transaction_repo: TransactionRepository,
        budget_repo: BudgetRepository,
        logger: StructuredLogger,
    ) -> None:
        super().__init__(logger)
        self._repo = category_repo
        self._transaction_repo = transaction_repo
        self._budget_repo = budget_repo

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_categories(self, query: CategoryQuery) -> ServiceResult:
        """Filtered, sorted categories; paginated only when page and limit are given."""
        if query.sort not in SORTABLE_FIELDS:
            return self._fail(
                f"Invalid sort field '{query.sort}'. "
                f"Allowed: {', '.join(sorted(SORTABLE_FIELDS))}",
                ErrorCode.VALIDATION_ERROR,
            )

        filters: dict[str, object] = {"type": query.type, "is_active": query.is_active}
        if query.parent_id is not None:
            if query.parent_id.lower() == "null":
                filters["is_null_parent_id"] = True
            else:
                filters["parent_id"] = query.parent_id
        if query.search:
            clean = sanitize_postgrest_value(query.search)
            if clean:
                filters["ilike_name"] = f"%{clean}%"

        paginated = query.page is not None and query.limit is not None
        options = ListOptions(
            sort=query.sort,
            order=query.order,
            page=query.page if paginated else None,
            limit=query.limit if paginated else None,
        )
        result = self._repo.find_all(filters, options)
        if not result.ok:
            return self._storage_failure("fetch categories", result)

        pagination = (
            Pagination.build(query.page, query.limit, result.count or 0) if paginated else None
        )
        return ServiceResult(
            success=True,
            data=PaginatedResult[Category](items=result.data, pagination=pagination),
        )

    def get_category(self, category_id: str) -> ServiceResult:
        result = self._repo.find_by_id(category_id)
        if not result.ok:
            return self._storage_failure("fetch category", result, category_id)
        if result.data is None:
            return self._fail("Category not found", ErrorCode.CATEGORY_NOT_FOUND, 404)
        return ServiceResult(success=True, data=result.data)

    def get_hierarchy(self, active_only: bool = False) -> ServiceResult:
        result = self._repo.get_hierarchy(active_only=active_only)
        if not result.ok:
            return self._storage_failure("build category hierarchy", result)
        return ServiceResult(success=True, data=result.data)

    def get_default_categories(self) -> ServiceResult:
        result = self._repo.find_default_categories()
        if not result.ok:
            return self._storage_failure("fetch default categories", result)
        return ServiceResult(success=True, data=result.data)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _check_parent(
        self, parent_id: str, category_type: CategoryType
    ) -> Optional[ServiceResult]:
        parent = self._repo.find_by_id(parent_id)
        if not parent.ok:
            return self._storage_failure("fetch parent category", parent, parent_id)
        if parent.data is None:
            return self._fail("Parent category not found", ErrorCode.CATEGORY_NOT_FOUND, 404)
        if parent.data.type != category_type:
            return self._fail(
                "Parent category must have the same type",
                ErrorCode.CATEGORY_TYPE_MISMATCH,
            )
        return None

    def _check_name_available(
        self, name: str, category_type: CategoryType, exclude_id: Optional[str] = None
    ) -> Optional[ServiceResult]:
        existing = self._repo.find_by_name_and_type(name, category_type)
        if not existing.ok:
            return self._storage_failure("check category name", existing)
        if existing.data is not None and existing.data.id != exclude_id:
            return self._fail(
                f"A {category_type} category named '{name}' already exists",
                ErrorCode.DUPLICATE_CATEGORY,
                409,
            )
        return None

    def create_category(self, payload: CategoryCreate) -> ServiceResult:
        """
        Create a user category.

        Validates that:
            1. The parent (when given) exists and has the same type.
            2. No category with the same name and type exists.
        """
        # 1. Parent
        if payload.parent_id:
            failure = self._check_parent(payload.parent_id, payload.type)
            if failure:
                return failure

        # 2. Unique name per type
        failure = self._check_name_available(payload.name, payload.type)
        if failure:
            return failure

        # 3. Persist
        data = payload.model_dump()
        data.update(is_default=False, is_active=True)
        result = self._repo.create(data)
        if not result.ok:
            return self._storage_failure("create category", result)

        log_audit_event(
            logger=self._logger,
            action="CREATE",
            entity_type="Category",
            entity_id=result.data.id,
            details={"name": result.data.name, "type": result.data.type.value},
        )
        return ServiceResult(success=True, data=result.data, status_code=201)

    def _check_no_cycle(self, category_id: str, parent_id: str) -> Optional[ServiceResult]:
        """Walk up from *parent_id*; reaching *category_id* means a cycle."""
        current: Optional[str] = parent_id
        depth = 0
        while current and depth < MAX_HIERARCHY_DEPTH:
            if current == category_id:
                return self._fail(
                    "Category cannot be moved under its own descendant",
                    ErrorCode.CIRCULAR_REFERENCE,
                )
            ancestor = self._repo.find_by_id(current)
            if not ancestor.ok:
                return self._storage_failure("walk category ancestors", ancestor, current)
            current = ancestor.data.parent_id if ancestor.data else None
            depth += 1
        if current:
            return self._fail(
                f"Category hierarchy cannot be deeper than {MAX_HIERARCHY_DEPTH} levels",
                ErrorCode.CIRCULAR_REFERENCE,
            )
        return None

    def update_category(self, category_id: str, payload: CategoryUpdate) -> ServiceResult:
        """Apply a partial update after the same checks as creation."""
        existing = self._repo.find_by_id(category_id)
        if not existing.ok:
            return self._storage_failure("fetch category", existing, category_id)
        if existing.data is None:
            return self._fail("Category not found", ErrorCode.CATEGORY_NOT_FOUND, 404)
        category = existing.data
        changes = payload.changes()

        # 1. Default categories keep their identity
        if category.is_default:
            touched = [
                field for field in _PROTECTED_DEFAULT_FIELDS
                if field in changes and changes[field] != getattr(category, field)
            ]
            if touched:
                return self._fail(
                    f"Default categories cannot change {', '.join(touched)}",
                    ErrorCode.DEFAULT_CATEGORY_PROTECTED,
                )

        new_type: CategoryType = changes.get("type") or category.type
        new_name: str = changes.get("name") or category.name
        new_parent: Optional[str] = changes.get("parent_id", category.parent_id)

        # 2. A type change must not strand transactions or children
        if new_type != category.type:
            in_use = self._transaction_repo.is_category_used(category_id)
            if not in_use.ok:
                return self._storage_failure("check category usage", in_use, category_id)
            if in_use.data:
                return self._fail(
                    "Cannot change the type of a category used by transactions",
                    ErrorCode.CATEGORY_IN_USE,
                )
            children = self._repo.has_children(category_id)
            if not children.ok:
                return self._storage_failure("check subcategories", children, category_id)
            if children.data:
                return self._fail(
                    "Cannot change the type of a category with subcategories",
                    ErrorCode.CATEGORY_HAS_CHILDREN,
                )

        # 3. Parent must exist, match the type and not create a cycle
        if new_parent:
            if new_parent == category_id:
                return self._fail(
                    "Category cannot be its own parent", ErrorCode.CIRCULAR_REFERENCE,
                )
            failure = self._check_parent(new_parent, new_type)
            if failure:
                return failure
            failure = self._check_no_cycle(category_id, new_parent)
            if failure:
                return failure

        # 4. Rename conflicts
        if "name" in changes or "type" in changes:
            failure = self._check_name_available(new_name, new_type, exclude_id=category_id)
            if failure:
                return failure

        # 5. Persist
        result = self._repo.update(category_id, changes)
        if not result.ok:
            return self._storage_failure("update category", result, category_id)
        if result.data is None:
            return self._fail("Category not found", ErrorCode.CATEGORY_NOT_FOUND, 404)

        log_audit_event(
            logger=self._logger,
            action="UPDATE",
            entity_type="Category",
            entity_id=category_id,
            details={"fields": ",".join(sorted(changes))},
        )
        return ServiceResult(success=True, data=result.data)

    def delete_category(self, category_id: str) -> ServiceResult:
        """
        Hard-delete an unreferenced user category.

        Default categories, categories with subcategories and categories
        referenced by any transaction or budget are refused; such
        categories can be deactivated instead.
        """
        existing = self._repo.find_by_id(category_id)
        if not existing.ok:
            return self._storage_failure("fetch category", existing, category_id)
        if existing.data is None:
            return self._fail("Category not found", ErrorCode.CATEGORY_NOT_FOUND, 404)
        if existing.data.is_default:
            return self._fail(
                "Default categories cannot be deleted",
                ErrorCode.DEFAULT_CATEGORY_PROTECTED,
            )

        children = self._repo.has_children(category_id)
        if not children.ok:
            return self._storage_failure("check subcategories", children, category_id)
        if children.data:
            return self._fail(
                "Cannot delete a category that has subcategories",
                ErrorCode.CATEGORY_HAS_CHILDREN,
            )

        used = self._transaction_repo.is_category_used(category_id)
        if not used.ok:
            return self._storage_failure("check category usage", used, category_id)
        if used.data:
            return self._fail(
                "Cannot delete a category that is used by transactions. "
                "Consider deactivating it instead.",
                ErrorCode.CATEGORY_IN_USE,
            )

        budgeted = self._budget_repo.is_category_used(category_id)
        if not budgeted.ok:
            return self._storage_failure("check category budgets", budgeted, category_id)
        if budgeted.data:
            return self._fail(
                "Cannot delete a category that has budgets. "
                "Delete the budgets or deactivate the category instead.",
                ErrorCode.CATEGORY_IN_USE,
            )

        result = self._repo.delete(category_id)
        if not result.ok:
            return self._storage_failure("delete category", result, category_id)
        if result.data is None:
            return self._fail("Category not found", ErrorCode.CATEGORY_NOT_FOUND, 404)

        log_audit_event(
            logger=self._logger,
            action="DELETE",
            entity_type="Category",
            entity_id=category_id,
            details={"name": result.data.name},
        )
        return ServiceResult(success=True, data={"deleted_id": category_id})

    # ------------------------------------------------------------------
    # Bulk and seeding
    # ------------------------------------------------------------------

    def bulk_create_categories(self, items: list[Mapping[str, object]]) -> ServiceResult:
        """Create each item independently; failures are reported per index."""
        if not 1 <= len(items) <= MAX_BULK_ITEMS:
            return self._fail(
                f"Bulk requests must contain between 1 and {MAX_BULK_ITEMS} items",
                ErrorCode.VALIDATION_ERROR,
            )

        outcome: BulkResult[Category] = BulkResult[Category](action=BulkAction.CREATE)
        for index, item in enumerate(items):
            outcome.processed += 1
            try:
                payload = CategoryCreate.model_validate(item)
            except ValidationError as exc:
                failure = self._invalid(exc)
                outcome.errors.append(BulkItemError(
                    index=index, error=failure.error, code=failure.error_code,
                ))
                continue

            result = self.create_category(payload)
            if result.success:
                outcome.created.append(result.data)
            else:
                outcome.errors.append(BulkItemError(
                    index=index, error=result.error, code=result.error_code,
                ))

        outcome.successful = len(outcome.created)
        outcome.failed = len(outcome.errors)
        log_audit_event(
            logger=self._logger,
            action="BULK_CREATE",
            entity_type="Category",
            entity_id="bulk",
            details={"successful": outcome.successful, "failed": outcome.failed},
        )
        return ServiceResult(success=True, data=outcome)

    def seed_default_categories(self) -> ServiceResult:
        """Create whichever of the standard categories are missing."""
        existing = self._repo.find_all()
        if not existing.ok:
            return self._storage_failure("fetch categories", existing)
        present = {(c.name.casefold(), c.type.value) for c in existing.data}

        missing = [
            {**default, "is_default": True, "is_active": True}
            for default in DEFAULT_CATEGORIES
            if (default["name"].casefold(), default["type"]) not in present
        ]
        created: list[Category] = []
        if missing:
            result = self._repo.bulk_create(missing)
            if not result.ok:
                return self._storage_failure("seed default categories", result)
            created = result.data

        log_audit_event(
            logger=self._logger,
            action="SEED",
            entity_type="Category",
            entity_id="defaults",
            details={"created": len(created), "skipped": len(DEFAULT_CATEGORIES) - len(created)},
        )
        return ServiceResult(
            success=True,
            data=SeedResult(
                created_count=len(created),
                skipped_count=len(DEFAULT_CATEGORIES) - len(created),
                categories=created,
            ),
            status_code=201 if created else 200,
        )
