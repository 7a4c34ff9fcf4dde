"""
Transaction Service.

Business rules for income and expense transactions:

- the category must exist, be active and share the transaction's type
- amounts are positive, capped and stored with cent precision
- dates may not lie more than one day in the future

Also hosts the paginated list with filter-prefix pass-through, the
date-range summary, description search and bulk create/update/delete
with independent per-item outcomes.
"""

from __future__ import annotations

from datetime import date, timedelta
from typing import Mapping, Optional

from pydantic import ValidationError

from app.logger import StructuredLogger
from app.models.category import Category
from app.models.enums import BulkAction, ErrorCode, TransactionType
from app.models.service_models import (
    BulkItemError,
    BulkResult,
    ListOptions,
    PaginatedResult,
    Pagination,
    ServiceResult,
    TransactionQuery,
)
from app.models.transaction import (
    Transaction,
    TransactionBulkUpdate,
    TransactionCreate,
    TransactionUpdate,
)
from app.models.fields import is_valid_uuid
from app.repositories.category_repository import CategoryRepository
from app.repositories.transaction_repository import TransactionRepository
from app.services.base_service import BaseService
from app.utils.audit import log_audit_event
from app.utils.date_utils import utc_today
from app.utils.math_utils import round_money
from app.utils.string_helpers import sanitize_postgrest_value

SORTABLE_FIELDS: frozenset[str] = frozenset(
    {"date", "amount", "description", "created_at", "type"}
)
MAX_BULK_ITEMS: int = 50
MAX_SEARCH_LIMIT: int = 50
MAX_FUTURE_DAYS: int = 1


class TransactionService(BaseService):
    """
    Service layer for transaction operations.

    Delegates data access to TransactionRepository; category rules are
    checked against CategoryRepository.
    """

    def __init__(
        self,
        transaction_repo: TransactionRepository,
        category_repo: CategoryRepository,
        logger: StructuredLogger,
    ) -> None:
        super().__init__(logger)
        self._repo = transaction_repo
        self._category_repo = category_repo

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_transactions(self, query: TransactionQuery) -> ServiceResult:
        """
        Paginated transactions.

        The named query fields map onto repository filter keys
        (``start_date`` -> ``gte_date``, ``search`` -> ``ilike_description``
        ...).  Raw prefixed keys in ``query.filters`` are applied as given
        and take precedence over the named fields.
        """
        if query.sort not in SORTABLE_FIELDS:
            return self._fail(
                f"Invalid sort field '{query.sort}'. "
                f"Allowed: {', '.join(sorted(SORTABLE_FIELDS))}",
                ErrorCode.VALIDATION_ERROR,
            )

        filters: dict[str, object] = {
            "type": query.type,
            "category_id": query.category_id,
            "gte_date": query.start_date,
            "lte_date": query.end_date,
            "gte_amount": query.min_amount,
            "lte_amount": query.max_amount,
        }
        if query.search:
            clean = sanitize_postgrest_value(query.search)
            if clean:
                filters["ilike_description"] = f"%{clean}%"
        filters.update({k: v for k, v in query.filters.items() if v is not None})

        options = ListOptions(
            sort=query.sort, order=query.order, page=query.page, limit=query.limit
        )
        if query.include_category:
            result = self._repo.find_with_categories(filters, options)
        else:
            result = self._repo.find_all(filters, options)
        if not result.ok:
            return self._storage_failure("fetch transactions", result)

        return ServiceResult(
            success=True,
            data=PaginatedResult[Transaction](
                items=result.data,
                pagination=Pagination.build(query.page, query.limit, result.count or 0),
            ),
        )

    def get_transaction(self, transaction_id: str, include_category: bool = False) -> ServiceResult:
        if include_category:
            result = self._repo.find_by_id_with_category(transaction_id)
        else:
            result = self._repo.find_by_id(transaction_id)
        if not result.ok:
            return self._storage_failure("fetch transaction", result, transaction_id)
        if result.data is None:
            return self._fail("Transaction not found", ErrorCode.TRANSACTION_NOT_FOUND, 404)
        return ServiceResult(success=True, data=result.data)

    def get_summary(
        self,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> ServiceResult:
        if start_date and end_date and start_date > end_date:
            return self._fail(
                "start_date must be on or before end_date", ErrorCode.VALIDATION_ERROR,
            )
        result = self._repo.get_summary_by_date_range(start_date, end_date)
        if not result.ok:
            return self._storage_failure("summarize transactions", result)
        return ServiceResult(success=True, data=result.data)

    def search_transactions(self, term: Optional[str], limit: int = 10) -> ServiceResult:
        if not term or not term.strip():
            return self._fail("Search term is required", ErrorCode.MISSING_SEARCH_TERM)
        if not 1 <= limit <= MAX_SEARCH_LIMIT:
            return self._fail(
                f"limit must be between 1 and {MAX_SEARCH_LIMIT}", ErrorCode.VALIDATION_ERROR,
            )
        result = self._repo.search_by_description(term, limit=limit)
        if not result.ok:
            return self._storage_failure("search transactions", result)
        return ServiceResult(success=True, data=result.data)

    def get_by_category(
        self, category_id: str, page: int = 1, limit: int = 20
    ) -> ServiceResult:
        category = self._category_repo.find_by_id(category_id)
        if not category.ok:
            return self._storage_failure("fetch category", category, category_id)
        if category.data is None:
            return self._fail("Category not found", ErrorCode.CATEGORY_NOT_FOUND, 404)

        options = ListOptions(sort="date", page=page, limit=limit)
        result = self._repo.find_by_category_id(category_id, options)
        if not result.ok:
            return self._storage_failure("fetch transactions by category", result, category_id)
        return ServiceResult(
            success=True,
            data=PaginatedResult[Transaction](
                items=result.data,
                pagination=Pagination.build(page, limit, result.count or 0),
            ),
        )

    # ------------------------------------------------------------------
    # Rule checks
    # ------------------------------------------------------------------

    def _check_category(
        self, category_id: str, transaction_type: TransactionType
    ) -> Optional[ServiceResult]:
        """Category exists, is active and has the transaction's type."""
        result = self._category_repo.find_by_id(category_id)
        if not result.ok:
            return self._storage_failure("fetch category", result, category_id)
        category: Optional[Category] = result.data
        if category is None:
            return self._fail("Category not found", ErrorCode.CATEGORY_NOT_FOUND, 404)
        if not category.is_active:
            return self._fail(
                "Cannot use an inactive category", ErrorCode.CATEGORY_INACTIVE,
            )
        if category.type != transaction_type:
            return self._fail(
                f'Transaction type "{transaction_type}" does not match '
                f'category type "{category.type}"',
                ErrorCode.CATEGORY_TYPE_MISMATCH,
            )
        return None

    def _check_date(self, transaction_date: date) -> Optional[ServiceResult]:
        if transaction_date > utc_today() + timedelta(days=MAX_FUTURE_DAYS):
            return self._fail(
                "Transaction date cannot be more than 1 day in the future",
                ErrorCode.VALIDATION_ERROR,
            )
        return None

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_transaction(self, payload: TransactionCreate) -> ServiceResult:
        """
        Create a transaction.

        Validates that:
            1. The category exists, is active and matches the type.
            2. The date is at most one day in the future.
        """
        failure = self._check_category(payload.category_id, payload.type)
        if failure:
            return failure
        failure = self._check_date(payload.date)
        if failure:
            return failure

        data = payload.model_dump()
        data["amount"] = round_money(payload.amount)
        result = self._repo.create(data)
        if not result.ok:
            return self._storage_failure("create transaction", result)

        created: Transaction = result.data
        self._logger.info(
            "Transaction created: %s - %s (%s)", created.description, created.amount, created.id,
        )
        log_audit_event(
            logger=self._logger,
            action="CREATE",
            entity_type="Transaction",
            entity_id=created.id,
            details={"type": created.type.value, "amount": float(created.amount)},
        )
        return ServiceResult(success=True, data=created, status_code=201)

    def update_transaction(self, transaction_id: str, payload: TransactionUpdate) -> ServiceResult:
        """Apply a partial update; category rules are re-checked on the merged record."""
        existing = self._repo.find_by_id(transaction_id)
        if not existing.ok:
            return self._storage_failure("fetch transaction", existing, transaction_id)
        if existing.data is None:
            return self._fail("Transaction not found", ErrorCode.TRANSACTION_NOT_FOUND, 404)

        changes = payload.changes()
        if "category_id" in changes or "type" in changes:
            failure = self._check_category(
                changes.get("category_id", existing.data.category_id),
                changes.get("type", existing.data.type),
            )
            if failure:
                return failure
        if "date" in changes:
            failure = self._check_date(changes["date"])
            if failure:
                return failure
        if "amount" in changes:
            changes["amount"] = round_money(changes["amount"])

        result = self._repo.update(transaction_id, changes)
        if not result.ok:
            return self._storage_failure("update transaction", result, transaction_id)
        if result.data is None:
            return self._fail("Transaction not found", ErrorCode.TRANSACTION_NOT_FOUND, 404)

        log_audit_event(
            logger=self._logger,
            action="UPDATE",
            entity_type="Transaction",
            entity_id=transaction_id,
            details={"fields": ",".join(sorted(changes))},
        )
        return ServiceResult(success=True, data=result.data)

    def delete_transaction(self, transaction_id: str) -> ServiceResult:
        result = self._repo.delete(transaction_id)
        if not result.ok:
            return self._storage_failure("delete transaction", result, transaction_id)
        if result.data is None:
            return self._fail("Transaction not found", ErrorCode.TRANSACTION_NOT_FOUND, 404)

        log_audit_event(
            logger=self._logger,
            action="DELETE",
            entity_type="Transaction",
            entity_id=transaction_id,
            details={"amount": float(result.data.amount)},
        )
        return ServiceResult(success=True, data={"deleted_id": transaction_id})

    # ------------------------------------------------------------------
    # Bulk
    # ------------------------------------------------------------------

    def bulk_operation(
        self, action: str, items: list[Mapping[str, object]]
    ) -> ServiceResult:
        """
        Run *action* (create, update or delete) on 1-50 items.

        Each item succeeds or fails on its own; the result satisfies
        ``successful + failed == processed`` and lists per-index errors.
        """
        try:
            bulk_action = BulkAction(action)
        except ValueError:
            return self._fail(
                f"Invalid bulk action '{action}'. Use create, update or delete.",
                ErrorCode.INVALID_BULK_ACTION,
            )
        if not 1 <= len(items) <= MAX_BULK_ITEMS:
            return self._fail(
                f"Bulk requests must contain between 1 and {MAX_BULK_ITEMS} items",
                ErrorCode.VALIDATION_ERROR,
            )

        outcome: BulkResult[Transaction] = BulkResult[Transaction](action=bulk_action)
        for index, item in enumerate(items):
            outcome.processed += 1
            item_id = str(item.get("id")) if item.get("id") is not None else None
            try:
                result = self._bulk_item(bulk_action, item, item_id)
            except ValidationError as exc:
                result = self._invalid(exc)

            if not result.success:
                outcome.errors.append(BulkItemError(
                    index=index, id=item_id, error=result.error, code=result.error_code,
                ))
            elif bulk_action == BulkAction.CREATE:
                outcome.created.append(result.data)
            elif bulk_action == BulkAction.UPDATE:
                outcome.updated.append(result.data)
            else:
                outcome.deleted.append(result.data["deleted_id"])

        outcome.failed = len(outcome.errors)
        outcome.successful = outcome.processed - outcome.failed
        self._logger.info(
            "Bulk %s completed: %d successful, %d failed",
            bulk_action, outcome.successful, outcome.failed,
        )
        log_audit_event(
            logger=self._logger,
            action=f"BULK_{bulk_action.upper()}",
            entity_type="Transaction",
            entity_id="bulk",
            details={"successful": outcome.successful, "failed": outcome.failed},
        )
        return ServiceResult(success=True, data=outcome)

    def _bulk_item(
        self, action: BulkAction, item: Mapping[str, object], item_id: Optional[str]
    ) -> ServiceResult:
        if action == BulkAction.CREATE:
            return self.create_transaction(TransactionCreate.model_validate(item))
        if action == BulkAction.UPDATE:
            update = TransactionBulkUpdate.model_validate(item)
            return self.update_transaction(
                update.id, TransactionUpdate.model_validate(update.changes()),
            )
        if not item_id or not is_valid_uuid(item_id):
            return self._fail("A valid transaction id is required", ErrorCode.INVALID_ID)
        return self.delete_transaction(item_id)
