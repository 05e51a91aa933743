"""Audit trail for reservation state changes."""
import logging
from typing import Any, Dict, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from db.models_sqlalchemy import AuditLog
from domain.enums import AuditAction


logger = logging.getLogger(__name__)


async def record_audit(
    session: AsyncSession,
    action: AuditAction,
    entity_id: str,
    details: Optional[Dict[str, Any]] = None,
    entity_type: str = "reservation",
) -> AuditLog:
    """
    Log action to audit log inside the caller's transaction.

    Args:
        session: Session whose transaction owns the change
        action: Action performed
        entity_id: ID of affected entity
        details: Additional details about the action
        entity_type: Kind of entity

    Returns:
        The staged AuditLog row
    """
    entry = AuditLog(
        action=action.value,
        entity_type=entity_type,
        entity_id=entity_id,
        details=details or {},
    )
    session.add(entry)
    logger.info(f"Audit log: {action.value} for {entity_type} {entity_id}")
    return entry


async def get_audit_log(
    session: AsyncSession,
    entity_id: Optional[str] = None,
    limit: int = 100,
) -> list:
    """
    Retrieve audit log entries, oldest first.

    Args:
        session: Database session
        entity_id: Filter by a specific entity ID
        limit: Maximum number of entries to return
    """
    stmt = select(AuditLog)
    if entity_id:
        stmt = stmt.where(AuditLog.entity_id == entity_id)
    stmt = stmt.order_by(AuditLog.id).limit(limit)
    result = await session.execute(stmt)
    return list(result.scalars())
