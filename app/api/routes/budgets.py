"""Budget endpoints under ``/api/budgets``."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from app.api.dependencies import budget_service, require_uuid
from app.api.responses import respond, success_response, unwrap
from app.models.budget import BudgetCreate, BudgetUpdate
from app.models.enums import BudgetPeriod, SortOrder
from app.models.service_models import BudgetQuery
from app.services.budget_service import BudgetService

router = APIRouter(prefix="/api/budgets", tags=["Budgets"])


@router.get("")
def list_budgets(
    category_id: Optional[str] = None,
    period: Optional[BudgetPeriod] = None,
    is_active: Optional[bool] = None,
    include_progress: bool = True,
    overspent_only: bool = False,
    sort: str = "start_date",
    order: SortOrder = SortOrder.DESC,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    service: BudgetService = Depends(budget_service),
) -> JSONResponse:
    query = BudgetQuery(
        category_id=require_uuid(category_id, "category id") if category_id else None,
        period=period,
        is_active=is_active,
        include_progress=include_progress,
        overspent_only=overspent_only,
        sort=sort,
        order=order,
        page=page,
        limit=limit,
    )
    result = unwrap(service.list_budgets(query))
    return success_response(result.items, meta={"pagination": result.pagination})


@router.get("/alerts")
def get_alerts(service: BudgetService = Depends(budget_service)) -> JSONResponse:
    return respond(service.get_alerts())


@router.get("/summary")
def get_summary(service: BudgetService = Depends(budget_service)) -> JSONResponse:
    return respond(service.get_summary())


@router.get("/{budget_id}")
def get_budget(
    budget_id: str,
    service: BudgetService = Depends(budget_service),
) -> JSONResponse:
    return respond(service.get_budget(require_uuid(budget_id, "budget id")))


@router.post("", status_code=201)
def create_budget(
    payload: BudgetCreate,
    service: BudgetService = Depends(budget_service),
) -> JSONResponse:
    return respond(service.create_budget(payload), message="Budget created successfully")


@router.put("/{budget_id}")
@router.patch("/{budget_id}")
def update_budget(
    budget_id: str,
    payload: BudgetUpdate,
    service: BudgetService = Depends(budget_service),
) -> JSONResponse:
    result = service.update_budget(require_uuid(budget_id, "budget id"), payload)
    return respond(result, message="Budget updated successfully")


@router.delete("/{budget_id}")
def delete_budget(
    budget_id: str,
    service: BudgetService = Depends(budget_service),
) -> JSONResponse:
    result = service.delete_budget(require_uuid(budget_id, "budget id"))
    return respond(result, message="Budget deleted successfully")
