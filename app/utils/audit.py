"""
Structured Audit Logging Utility.

Every state change (create, update, delete, bulk, import, seed) is logged
as a structured JSON object.  Provides a Pydantic-validated model and a
single function for consistent audit trail entries.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Optional, Union

from pydantic import BaseModel, Field

from app.logger import StructuredLogger

__all__ = ["AuditEvent", "log_audit_event"]

# Scalar type permitted inside the ``details`` mapping.  Nested structures
# should be modelled explicitly, not smuggled through the audit log.
DetailValue = Union[str, int, float, bool, None]

# The API has no authenticated principal; changes are attributed to it.
DEFAULT_ACTOR: str = "api"


class AuditEvent(BaseModel):
    """Schema-validated representation of a single audit trail entry."""

    timestamp: str
    action: str
    entity_type: str
    entity_id: str
    actor: str = DEFAULT_ACTOR
    details: dict[str, DetailValue] = Field(default_factory=dict)


def log_audit_event(
    logger: StructuredLogger,
    action: str,
    entity_type: str,
    entity_id: str,
    details: Optional[dict[str, DetailValue]] = None,
    actor: str = DEFAULT_ACTOR,
) -> None:
    """Log a structured JSON audit event.

    Args:
        logger: The logger instance to write to.
        action: What happened (e.g. ``"CREATE"``, ``"UPDATE"``,
            ``"DELETE"``, ``"BULK_CREATE"``, ``"IMPORT"``).
        entity_type: Type of entity affected (``"Transaction"``,
            ``"Category"``, ``"Budget"``).
        entity_id: Primary key of the affected entity, or a batch label.
        details: Optional additional context (changed fields, counts).
        actor: Who performed the action.
    """
    event = AuditEvent(
        timestamp=datetime.now(timezone.utc).isoformat(),
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        actor=actor,
        details=details or {},
    )
    logger.info("AUDIT: %s", json.dumps(event.model_dump(), default=str))
