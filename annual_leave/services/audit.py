"""Audit trail for administrative changes to policies and the ledger."""

from __future__ import annotations

import enum
import logging
import uuid
from datetime import date, datetime
from typing import TYPE_CHECKING, Any

from annual_leave.models.audit import AuditLog

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession
    from sqlmodel import SQLModel

    from annual_leave.models.enums import AuditAction, AuditEntityType

logger = logging.getLogger(__name__)


def _json_safe(value: Any) -> Any:
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, dict):
        return {str(k): _json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [_json_safe(v) for v in value]
    return value


def model_to_audit_dict(model: SQLModel) -> dict[str, Any]:
    """Snapshot a row as a JSON-safe dict."""
    return _json_safe(model.model_dump())


async def write_audit_log(
    session: AsyncSession,
    *,
    actor: str,
    entity_type: AuditEntityType,
    entity_id: uuid.UUID,
    action: AuditAction,
    before_json: dict[str, Any] | None = None,
    after_json: dict[str, Any] | None = None,
) -> AuditLog:
    """Add an audit entry to the caller's transaction; the caller commits.

    ``before_json`` and ``after_json`` may hold UUIDs, dates and enums; they
    are converted to JSON-safe values here.
    """
    entry = AuditLog(
        actor=actor,
        entity_type=entity_type.value,
        entity_id=entity_id,
        action=action.value,
        before_json=_json_safe(before_json) if before_json is not None else None,
        after_json=_json_safe(after_json) if after_json is not None else None,
    )
    session.add(entry)
    logger.debug("Audit %s %s %s by %s", action.value, entity_type.value, entity_id, actor)
    return entry
