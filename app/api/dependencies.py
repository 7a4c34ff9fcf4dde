"""FastAPI dependencies resolving services from ``app.state`` and checking path ids."""

from __future__ import annotations

from fastapi import Request

from app.api.responses import ApiError
from app.config import AppConfig
from app.models.enums import ErrorCode
from app.models.fields import validate_uuid
from app.services import ServiceContainer
from app.services.analytics_service import AnalyticsService
from app.services.budget_service import BudgetService
from app.services.category_service import CategoryService
from app.services.import_export_service import ImportExportService
from app.services.transaction_service import TransactionService


def get_services(request: Request) -> ServiceContainer:
    return request.app.state.services


def app_config(request: Request) -> AppConfig:
    return request.app.state.config


def transaction_service(request: Request) -> TransactionService:
    return get_services(request)["transaction_service"]


def category_service(request: Request) -> CategoryService:
    return get_services(request)["category_service"]


def budget_service(request: Request) -> BudgetService:
    return get_services(request)["budget_service"]


def analytics_service(request: Request) -> AnalyticsService:
    return get_services(request)["analytics_service"]


def import_export_service(request: Request) -> ImportExportService:
    return get_services(request)["import_export_service"]


def require_uuid(value: str, label: str = "id") -> str:
    """Canonical form of a path id, or a 400 ``INVALID_ID`` error."""
    try:
        return validate_uuid(value)
    except ValueError:
        raise ApiError(f"Invalid {label} format", ErrorCode.INVALID_ID, 400) from None
