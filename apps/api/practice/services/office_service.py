"""Office service - the tenant directory.

Authoritative registry of offices and the canonical patient -> office mapping.
Offices are never deleted; only renamed by an administrator.
"""

import logging
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from practice.core.errors import (
    DuplicateNameError,
    InvariantViolationError,
    NotFoundError,
    ValidationError,
)
from practice.db.enums import AuditEventType
from practice.db.models import Office, Patient
from practice.services import audit_service

logger = logging.getLogger(__name__)


def _clean_name(name: str | None) -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        raise ValidationError("Office name is required", field="name")
    return cleaned


def list_offices(db: Session) -> list[Office]:
    """List all offices ordered by name."""
    query = select(Office).order_by(Office.name)
    return list(db.execute(query).scalars().all())


def get_office(db: Session, office_id: UUID) -> Office | None:
    """Get a single office by ID."""
    return db.get(Office, office_id)


def get_office_by_name(db: Session, name: str) -> Office | None:
    """Case-insensitive lookup by name."""
    return db.execute(
        select(Office).where(func.lower(Office.name) == name.strip().lower())
    ).scalar_one_or_none()


def create_office(
    db: Session,
    name: str,
    actor_user_id: UUID | None = None,
    commit: bool = True,
) -> Office:
    """
    Create a new office.

    Raises:
        ValidationError: blank name
        DuplicateNameError: an office with that name exists (case-insensitive)
    """
    name = _clean_name(name)
    if get_office_by_name(db, name):
        raise DuplicateNameError(f"Office '{name}' already exists")

    office = Office(name=name)
    try:
        db.add(office)
        db.flush()
    except IntegrityError:
        # Lost a race with a concurrent creator; the unique index decided
        db.rollback()
        raise DuplicateNameError(f"Office '{name}' already exists")

    audit_service.log_event(
        db,
        AuditEventType.OFFICE_CREATED,
        office_id=office.id,
        actor_user_id=actor_user_id,
        target_type="office",
        target_id=office.id,
    )
    if commit:
        db.commit()
        db.refresh(office)
    logger.info("Office created", extra={"office_id": str(office.id)})
    return office


def ensure_office(db: Session, name: str) -> tuple[Office, bool]:
    """
    Create-if-absent, matched by name. Returns (office, created).

    Does not commit; used inside the backfill's per-step transaction.
    """
    existing = get_office_by_name(db, _clean_name(name))
    if existing:
        return existing, False
    return create_office(db, name, commit=False), True


def rename_office(
    db: Session,
    office_id: UUID,
    name: str,
    actor_user_id: UUID | None = None,
) -> Office:
    """Rename an office (administrator operation)."""
    office = get_office(db, office_id)
    if not office:
        raise NotFoundError(f"Office {office_id} not found")

    name = _clean_name(name)
    clash = get_office_by_name(db, name)
    if clash and clash.id != office.id:
        raise DuplicateNameError(f"Office '{name}' already exists")

    old_name = office.name
    office.name = name
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        raise DuplicateNameError(f"Office '{name}' already exists")

    audit_service.log_event(
        db,
        AuditEventType.OFFICE_RENAMED,
        office_id=office.id,
        actor_user_id=actor_user_id,
        target_type="office",
        target_id=office.id,
        details={"name_changed": old_name != name},
    )
    db.commit()
    db.refresh(office)
    return office


def resolve_office_for_patient(db: Session, patient_id: UUID) -> Office:
    """
    Return the office currently assigned to a patient.

    Raises:
        NotFoundError: patient does not exist
        InvariantViolationError: patient has no office (backfill incomplete)
    """
    patient = db.get(Patient, patient_id)
    if not patient:
        raise NotFoundError(f"Patient {patient_id} not found")
    if patient.office_id is None:
        logger.error(
            "Patient has no office assigned",
            extra={"patient_id": str(patient_id), "event": "tenancy_invariant_violation"},
        )
        raise InvariantViolationError(f"Patient {patient_id} has no office assigned")

    office = db.get(Office, patient.office_id)
    if office is None:
        logger.error(
            "Patient references a missing office",
            extra={"patient_id": str(patient_id), "event": "tenancy_invariant_violation"},
        )
        raise InvariantViolationError(f"Patient {patient_id} references a missing office")
    return office
