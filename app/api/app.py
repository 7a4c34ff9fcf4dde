"""
FastAPI Application Factory.

``create_app`` builds the HTTP layer around an already wired
``ServiceContainer``.  Tests pass their own container (JSON storage in a
temporary directory); the entry point lets the factory build one from
``AppConfig``.

Middleware, outermost first:
    1. CORS from ``CORS_ORIGINS``.
    2. Request logging (method, path, status, duration).
    3. Fixed-window rate limiting of ``/api/*`` per client address.
"""

from __future__ import annotations

import time
from typing import Awaitable, Callable, Optional

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from app.api.errors import register_exception_handlers
from app.api.rate_limit import FixedWindowRateLimiter
from app.api.responses import error_response
from app.api.routes import analytics, budgets, categories, import_export, system, transactions
from app.config import AppConfig, get_config
from app.logger import StructuredLogger, get_logger
from app.models.enums import ErrorCode
from app.repositories.storage import create_storage
from app.services import ServiceContainer, create_services

CallNext = Callable[[Request], Awaitable[Response]]

API_DESCRIPTION: str = (
    "REST API for managing transactions, categories and budgets, "
    "with spending analytics and CSV/Excel import and export."
)


def create_app(
    config: Optional[AppConfig] = None,
    services: Optional[ServiceContainer] = None,
    logger: Optional[StructuredLogger] = None,
) -> FastAPI:
    """Build the FastAPI application.

    Args:
        config: Application configuration; the cached singleton when omitted.
        services: Wired services; built from *config* when omitted.
        logger: HTTP-layer logger; an ``api`` logger is created when omitted.
    """
    config = config or get_config()
    logger = logger or get_logger("api")
    if services is None:
        storage = create_storage(config, get_logger("storage"))
        services = create_services(storage, config)

    app = FastAPI(
        title="Budget Tracker API",
        description=API_DESCRIPTION,
        version=config.API_VERSION,
        openapi_url="/openapi.json",
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.config = config
    app.state.services = services

    rate_limiter = FixedWindowRateLimiter(
        max_requests=config.RATE_LIMIT_MAX_REQUESTS,
        window_seconds=config.rate_limit_window_seconds,
    )
    app.state.rate_limiter = rate_limiter

    @app.middleware("http")
    async def rate_limit(request: Request, call_next: CallNext) -> Response:
        if not config.RATE_LIMIT_ENABLED or not request.url.path.startswith("/api"):
            return await call_next(request)

        client_key = request.client.host if request.client else "unknown"
        decision = rate_limiter.hit(client_key)
        headers = {
            "X-RateLimit-Limit": str(decision.limit),
            "X-RateLimit-Remaining": str(decision.remaining),
        }
        if not decision.allowed:
            logger.warning("Rate limit exceeded for %s on %s", client_key, request.url.path)
            headers["Retry-After"] = str(decision.retry_after)
            return error_response(
                request,
                429,
                ErrorCode.RATE_LIMIT_EXCEEDED,
                "Too many requests from this IP, please try again later",
                headers=headers,
            )

        response = await call_next(request)
        response.headers.update(headers)
        return response

    @app.middleware("http")
    async def log_requests(request: Request, call_next: CallNext) -> Response:
        started = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - started) * 1000
        logger.info(
            "%s %s %d %.1fms", request.method, request.url.path, response.status_code, duration_ms,
        )
        return response

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origin_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app, logger)

    app.include_router(system.router)
    app.include_router(transactions.router)
    app.include_router(categories.router)
    app.include_router(budgets.router)
    app.include_router(analytics.router)
    app.include_router(import_export.router)

    logger.info(
        "Budget Tracker API configured (environment=%s, storage=%s)",
        config.ENVIRONMENT, services["storage"].mode,
    )
    return app
