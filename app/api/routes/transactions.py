"""Transaction endpoints under ``/api/transactions``."""

from __future__ import annotations

from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from app.api.dependencies import require_uuid, transaction_service
from app.api.responses import ApiError, respond, success_response, unwrap
from app.models.enums import ErrorCode, SortOrder, TransactionType
from app.models.service_models import FilterValue, TransactionQuery
from app.models.transaction import TransactionCreate, TransactionUpdate
from app.services.transaction_service import TransactionService

router = APIRouter(prefix="/api/transactions", tags=["Transactions"])

# Raw ``gte_`` / ``lte_`` / ``ilike_`` query keys accepted for these columns.
RAW_FILTER_PREFIXES: tuple[str, ...] = ("gte_", "lte_", "ilike_")
RAW_FILTER_COLUMNS: frozenset[str] = frozenset({"date", "amount", "description", "created_at"})


class TransactionBulkRequest(BaseModel):
    action: str
    transactions: list[dict[str, Any]] = Field(default_factory=list)


def _raw_filter_value(key: str, column: str, value: str) -> FilterValue:
    try:
        if column == "date":
            return date.fromisoformat(value)
        if column == "amount":
            return Decimal(value)
    except (ValueError, InvalidOperation):
        raise ApiError(f"Invalid value for {key}: '{value}'", ErrorCode.VALIDATION_ERROR, 400) from None
    return value


def raw_filters(request: Request) -> dict[str, FilterValue]:
    """Prefixed filter keys passed straight through to the repository."""
    filters: dict[str, FilterValue] = {}
    for key, value in request.query_params.items():
        prefix = next((p for p in RAW_FILTER_PREFIXES if key.startswith(p)), None)
        if prefix is None:
            continue
        column = key[len(prefix):]
        if column not in RAW_FILTER_COLUMNS:
            continue
        if prefix == "ilike_" and column != "description":
            continue
        filters[key] = _raw_filter_value(key, column, value)
    return filters


@router.get("")
def list_transactions(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    type_: Optional[TransactionType] = Query(None, alias="type"),
    category_id: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    min_amount: Optional[Decimal] = Query(None, ge=0),
    max_amount: Optional[Decimal] = Query(None, ge=0),
    search: Optional[str] = None,
    sort: str = "date",
    order: SortOrder = SortOrder.DESC,
    include_category: bool = False,
    filters: dict[str, FilterValue] = Depends(raw_filters),
    service: TransactionService = Depends(transaction_service),
) -> JSONResponse:
    """List transactions with filters, sorting and pagination.

    Besides the named parameters, ``gte_date``, ``lte_date``, ``gte_amount``,
    ``lte_amount``, ``gte_created_at``, ``lte_created_at`` and
    ``ilike_description`` are applied as given.
    """
    query = TransactionQuery(
        page=page,
        limit=limit,
        type=type_,
        category_id=require_uuid(category_id, "category id") if category_id else None,
        start_date=start_date,
        end_date=end_date,
        min_amount=min_amount,
        max_amount=max_amount,
        search=search,
        sort=sort,
        order=order,
        include_category=include_category,
        filters=filters,
    )
    result = unwrap(service.list_transactions(query))
    return success_response(result.items, meta={"pagination": result.pagination})


@router.get("/summary")
def get_summary(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    service: TransactionService = Depends(transaction_service),
) -> JSONResponse:
    return respond(service.get_summary(start_date, end_date))


@router.get("/search")
def search_transactions(
    q: Optional[str] = None,
    limit: int = 10,
    service: TransactionService = Depends(transaction_service),
) -> JSONResponse:
    return respond(service.search_transactions(q, limit))


@router.get("/category/{category_id}")
def get_by_category(
    category_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    service: TransactionService = Depends(transaction_service),
) -> JSONResponse:
    result = unwrap(service.get_by_category(require_uuid(category_id, "category id"), page, limit))
    return success_response(result.items, meta={"pagination": result.pagination})


@router.post("/bulk")
def bulk_operation(
    body: TransactionBulkRequest,
    service: TransactionService = Depends(transaction_service),
) -> JSONResponse:
    result = service.bulk_operation(body.action, body.transactions)
    return respond(result, message=f"Bulk {body.action} operation completed")


@router.get("/{transaction_id}")
def get_transaction(
    transaction_id: str,
    include_category: bool = False,
    service: TransactionService = Depends(transaction_service),
) -> JSONResponse:
    return respond(service.get_transaction(require_uuid(transaction_id, "transaction id"), include_category))


@router.post("", status_code=201)
def create_transaction(
    payload: TransactionCreate,
    service: TransactionService = Depends(transaction_service),
) -> JSONResponse:
    return respond(service.create_transaction(payload), message="Transaction created successfully")


@router.put("/{transaction_id}")
@router.patch("/{transaction_id}")
def update_transaction(
    transaction_id: str,
    payload: TransactionUpdate,
    service: TransactionService = Depends(transaction_service),
) -> JSONResponse:
    result = service.update_transaction(require_uuid(transaction_id, "transaction id"), payload)
    return respond(result, message="Transaction updated successfully")


@router.delete("/{transaction_id}")
def delete_transaction(
    transaction_id: str,
    service: TransactionService = Depends(transaction_service),
) -> JSONResponse:
    result = service.delete_transaction(require_uuid(transaction_id, "transaction id"))
    return respond(result, message="Transaction deleted successfully")
