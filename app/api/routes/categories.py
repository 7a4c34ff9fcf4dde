"""Category endpoints under ``/api/categories``."""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from app.api.dependencies import category_service, require_uuid
from app.api.responses import ApiError, respond, success_response, unwrap
from app.models.category import CategoryCreate, CategoryUpdate
from app.models.enums import BulkAction, ErrorCode, SortOrder, TransactionType
from app.models.service_models import CategoryQuery
from app.services.category_service import CategoryService

router = APIRouter(prefix="/api/categories", tags=["Categories"])


class CategoryBulkRequest(BaseModel):
    action: str
    categories: list[dict[str, Any]] = Field(default_factory=list)


@router.get("")
def list_categories(
    type_: Optional[TransactionType] = Query(None, alias="type"),
    is_active: Optional[bool] = None,
    parent_id: Optional[str] = None,
    search: Optional[str] = None,
    sort: str = "name",
    order: SortOrder = SortOrder.ASC,
    page: Optional[int] = Query(None, ge=1),
    limit: Optional[int] = Query(None, ge=1, le=100),
    service: CategoryService = Depends(category_service),
) -> JSONResponse:
    """List categories.  ``parent_id=null`` returns root categories only."""
    if parent_id is not None and parent_id.lower() != "null":
        parent_id = require_uuid(parent_id, "parent id")
    query = CategoryQuery(
        type=type_,
        is_active=is_active,
        parent_id=parent_id,
        search=search,
        sort=sort,
        order=order,
        page=page,
        limit=limit,
    )
    result = unwrap(service.list_categories(query))
    meta = {"pagination": result.pagination} if result.pagination else None
    return success_response(result.items, meta=meta)


@router.get("/hierarchy")
def get_hierarchy(
    active_only: bool = False,
    service: CategoryService = Depends(category_service),
) -> JSONResponse:
    return respond(service.get_hierarchy(active_only))


@router.get("/defaults")
def get_default_categories(service: CategoryService = Depends(category_service)) -> JSONResponse:
    return respond(service.get_default_categories())


@router.post("/seed")
def seed_default_categories(service: CategoryService = Depends(category_service)) -> JSONResponse:
    result = service.seed_default_categories()
    seeded = unwrap(result)
    message = (
        f"Seeded {seeded.created_count} default categories"
        if seeded.created_count
        else "Default categories already exist"
    )
    return success_response(seeded, message=message, status_code=result.status_code)


@router.post("/bulk")
def bulk_operation(
    body: CategoryBulkRequest,
    service: CategoryService = Depends(category_service),
) -> JSONResponse:
    if body.action != BulkAction.CREATE:
        raise ApiError(
            f"Invalid bulk action '{body.action}'. Categories support bulk create only.",
            ErrorCode.INVALID_BULK_ACTION,
            400,
        )
    result = service.bulk_create_categories(body.categories)
    return respond(result, message=f"Bulk {body.action} operation completed")


@router.get("/{category_id}")
def get_category(
    category_id: str,
    service: CategoryService = Depends(category_service),
) -> JSONResponse:
    return respond(service.get_category(require_uuid(category_id, "category id")))


@router.post("", status_code=201)
def create_category(
    payload: CategoryCreate,
    service: CategoryService = Depends(category_service),
) -> JSONResponse:
    return respond(service.create_category(payload), message="Category created successfully")


@router.put("/{category_id}")
@router.patch("/{category_id}")
def update_category(
    category_id: str,
    payload: CategoryUpdate,
    service: CategoryService = Depends(category_service),
) -> JSONResponse:
    result = service.update_category(require_uuid(category_id, "category id"), payload)
    return respond(result, message="Category updated successfully")


@router.delete("/{category_id}")
def delete_category(
    category_id: str,
    service: CategoryService = Depends(category_service),
) -> JSONResponse:
    result = service.delete_category(require_uuid(category_id, "category id"))
    return respond(result, message="Category deleted successfully")
