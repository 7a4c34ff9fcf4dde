"""Exception handlers rendering every failure in the error envelope."""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api.responses import ApiError, error_response
from app.logger import StructuredLogger
from app.models.enums import ErrorCode
from app.services.base_service import validation_details

_HTTP_STATUS_CODES: dict[int, ErrorCode] = {
    404: ErrorCode.NOT_FOUND,
    405: ErrorCode.METHOD_NOT_ALLOWED,
    413: ErrorCode.FILE_TOO_LARGE,
    429: ErrorCode.RATE_LIMIT_EXCEEDED,
}


def register_exception_handlers(app: FastAPI, logger: StructuredLogger) -> None:
    """Attach the envelope-producing handlers to *app*."""

    @app.exception_handler(ApiError)
    async def handle_api_error(request: Request, exc: ApiError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(
                "API error %s on %s %s: %s", exc.code, request.method, request.url.path, exc.message,
            )
        else:
            logger.warning(
                "Request rejected (%s) on %s %s: %s",
                exc.code, request.method, request.url.path, exc.message,
            )
        return error_response(request, exc.status_code, exc.code, exc.message, exc.details)

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        details = validation_details(exc.errors())
        first = details[0] if details else {"field": "body", "message": "Invalid request"}
        return error_response(
            request,
            400,
            ErrorCode.VALIDATION_ERROR,
            f"Validation failed: {first['field']}: {first['message']}",
            details,
        )

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        code = _HTTP_STATUS_CODES.get(exc.status_code, ErrorCode.INTERNAL_SERVER_ERROR)
        if exc.status_code == 404:
            message = f"Route {request.method} {request.url.path} not found"
        else:
            message = str(exc.detail)
        return error_response(request, exc.status_code, code, message)

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "Unhandled error on %s %s: %s", request.method, request.url.path, exc, exc_info=True,
        )
        return error_response(
            request, 500, ErrorCode.INTERNAL_SERVER_ERROR, "An unexpected error occurred",
        )
