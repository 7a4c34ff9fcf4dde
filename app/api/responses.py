"""
Response Envelope Helpers.

Every JSON response shares one of two shapes:

- success: ``{success: true, data, message?, meta?}``
- failure: ``{success: false, error: {code, message, details?}, timestamp, path, method}``

Route handlers call :func:`unwrap` on a ``ServiceResult``; a failed result
is raised as :class:`ApiError` and rendered by the exception handlers in
``app.api.errors``.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from fastapi import Request
from fastapi.responses import JSONResponse

from app.models.enums import ErrorCode
from app.models.service_models import ServiceResult
from app.utils.general import JsonInputType, convert_to_json_safe

__all__ = ["ApiError", "error_response", "respond", "success_response", "unwrap"]


class ApiError(Exception):
    """An HTTP error carrying a machine-readable code."""

    def __init__(
        self,
        message: str,
        code: str = ErrorCode.INTERNAL_SERVER_ERROR,
        status_code: int = 500,
        details: JsonInputType = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = str(code)
        self.status_code = status_code
        self.details = details

    @classmethod
    def from_result(cls, result: ServiceResult) -> "ApiError":
        status_code = result.status_code if result.status_code >= 400 else 400
        return cls(
            message=result.error or "Request failed",
            code=result.error_code or ErrorCode.INTERNAL_SERVER_ERROR,
            status_code=status_code,
            details=result.details,
        )


def unwrap(result: ServiceResult) -> object:
    """Return ``result.data`` or raise the failure as an ``ApiError``."""
    if not result.success:
        raise ApiError.from_result(result)
    return result.data


def success_response(
    data: JsonInputType = None,
    message: Optional[str] = None,
    meta: Optional[dict[str, JsonInputType]] = None,
    status_code: int = 200,
) -> JSONResponse:
    body: dict[str, JsonInputType] = {"success": True, "data": data}
    if message:
        body["message"] = message
    if meta:
        body["meta"] = meta
    return JSONResponse(status_code=status_code, content=convert_to_json_safe(body))


def respond(result: ServiceResult, message: Optional[str] = None) -> JSONResponse:
    """Success envelope for *result*, keeping the service's status code (201 on create)."""
    data = unwrap(result)
    return success_response(data, message=message, status_code=result.status_code)


def error_response(
    request: Request,
    status_code: int,
    code: str,
    message: str,
    details: JsonInputType = None,
    headers: Optional[dict[str, str]] = None,
) -> JSONResponse:
    error: dict[str, JsonInputType] = {"code": str(code), "message": message}
    if details:
        error["details"] = details
    body = {
        "success": False,
        "error": error,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "path": request.url.path,
        "method": request.method,
    }
    return JSONResponse(status_code=status_code, content=convert_to_json_safe(body), headers=headers)
