"""
Base Service Class.

Minimal base class standardizing the logger pattern for all services.
Services extend this and add their own repository dependencies via __init__.
"""

from __future__ import annotations

from typing import Iterable, Mapping, Optional, Union

from pydantic import ValidationError

from app.logger import StructuredLogger
from app.models.enums import ErrorCode
from app.models.service_models import RepositoryResult, ServiceResult

Details = Union[list[dict[str, object]], dict[str, object], None]

# Location prefixes added by FastAPI that carry no field information.
_LOCATION_ROOTS = frozenset({"body", "query", "path", "header"})


def validation_details(errors: Iterable[Mapping[str, object]]) -> list[dict[str, object]]:
    """Flatten pydantic error dicts into ``{field, message}`` pairs."""
    details: list[dict[str, object]] = []
    for error in errors:
        location = [str(part) for part in error.get("loc", ())]
        if location and location[0] in _LOCATION_ROOTS:
            location = location[1:]
        message = str(error.get("msg", "Invalid value"))
        details.append({
            "field": ".".join(location) or "body",
            "message": message.removeprefix("Value error, "),
        })
    return details


class BaseService:
    """Base class for all service classes. Provides a logger and failure helpers."""

    def __init__(self, logger: StructuredLogger) -> None:
        self._logger: StructuredLogger = logger

    @staticmethod
    def _fail(
        error: str,
        error_code: ErrorCode,
        status_code: int = 400,
        details: Details = None,
    ) -> ServiceResult:
        return ServiceResult(
            success=False,
            error=error,
            error_code=error_code,
            status_code=status_code,
            details=details,
        )

    @classmethod
    def _invalid(cls, exc: ValidationError) -> ServiceResult:
        details = validation_details(exc.errors())
        first = details[0] if details else {"field": "body", "message": "Invalid value"}
        return cls._fail(
            f"Validation failed: {first['field']}: {first['message']}",
            ErrorCode.VALIDATION_ERROR,
            details=details,
        )

    def _storage_failure(
        self, action: str, result: RepositoryResult, entity_id: Optional[str] = None
    ) -> ServiceResult:
        """500 result carrying the repository's error message through."""
        self._logger.error(
            "Storage error while trying to %s%s: %s",
            action,
            f" ({entity_id})" if entity_id else "",
            result.error,
        )
        return self._fail(
            f"Failed to {action}: {result.error}",
            ErrorCode.DATABASE_ERROR,
            status_code=500,
        )
