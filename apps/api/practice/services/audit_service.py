"""Audit service - append-only trail of administrative and workflow events."""

from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from practice.db.enums import AuditEventType
from practice.db.models import AuditLog


def log_event(
    db: Session,
    event_type: AuditEventType,
    office_id: UUID | None = None,
    actor_user_id: UUID | None = None,
    target_type: str | None = None,
    target_id: UUID | str | None = None,
    details: dict[str, Any] | None = None,
) -> AuditLog:
    """
    Add an audit entry to the current transaction.

    The caller commits, so the entry lands atomically with the change it
    describes.

    Args:
        db: Database session
        event_type: Type of event (from AuditEventType)
        office_id: Office the event belongs to (None for cross-office events)
        actor_user_id: User who performed the action (None for system/CLI)
        target_type: Type of entity affected (e.g., 'office', 'task')
        target_id: ID of the affected entity
        details: Ids and counts only - never patient content
    """
    entry = AuditLog(
        office_id=office_id,
        actor_user_id=actor_user_id,
        event_type=event_type.value,
        target_type=target_type,
        target_id=str(target_id) if target_id is not None else None,
        details=details,
    )
    db.add(entry)
    db.flush()
    return entry


def list_events(
    db: Session,
    event_type: AuditEventType | None = None,
    target_id: UUID | str | None = None,
) -> list[AuditLog]:
    """List audit entries, oldest first."""
    query = select(AuditLog)
    if event_type is not None:
        query = query.where(AuditLog.event_type == event_type.value)
    if target_id is not None:
        query = query.where(AuditLog.target_id == str(target_id))
    query = query.order_by(AuditLog.created_at, AuditLog.id)
    return list(db.execute(query).scalars().all())
