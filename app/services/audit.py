"""Audit logging service."""

from __future__ import annotations

from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.audit import AuditLog

logger = structlog.get_logger(__name__)


async def log_event(
    session: AsyncSession,
    *,
    action: str,
    resource_type: str,
    resource_id: str,
    metadata: dict[str, str | int | float | None],
    user_id: UUID | None = None,
) -> AuditLog:
    """Persist an audit event and mirror it to the application log.

    Parameters
    ----------
    session : AsyncSession
        Active database session.
    action : str
        Event action.
    resource_type : str
        Kind of resource touched.
    resource_id : str
        String resource identifier.
    metadata : dict[str, str | int | float | None]
        Additional event metadata. Must never contain secrets.
    user_id : UUID | None, default=None
        Acting user, when known.

    Returns
    -------
    AuditLog
        Persisted audit record.
    """
    event = AuditLog(
        user_id=user_id,
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        event_metadata=metadata,
    )
    session.add(event)
    await session.flush()
    logger.info(
        "audit_event",
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        user_id=str(user_id) if user_id else None,
    )
    return event
