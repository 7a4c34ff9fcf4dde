"""Health check and API index."""

from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from app.api.dependencies import app_config, get_services
from app.config import AppConfig
from app.services import ServiceContainer
from app.utils.general import convert_to_json_safe

router = APIRouter(tags=["System"])

API_NAME: str = "Budget Tracker API"

ENDPOINTS: dict[str, str] = {
    "transactions": "/api/transactions",
    "categories": "/api/categories",
    "budgets": "/api/budgets",
    "analytics": "/api/analytics",
    "import_export": "/api/import-export",
    "health": "/health",
    "docs": "/docs",
    "openapi": "/openapi.json",
}


@router.get("/health")
def health(
    config: AppConfig = Depends(app_config),
    services: ServiceContainer = Depends(get_services),
) -> JSONResponse:
    return JSONResponse(content=convert_to_json_safe({
        "success": True,
        "message": f"{API_NAME} is running",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": config.API_VERSION,
        "environment": config.ENVIRONMENT,
        "storage_mode": services["storage"].mode,
    }))


@router.get("/api")
def api_index(config: AppConfig = Depends(app_config)) -> JSONResponse:
    return JSONResponse(content={
        "success": True,
        "data": {
            "name": API_NAME,
            "version": config.API_VERSION,
            "endpoints": ENDPOINTS,
        },
    })
