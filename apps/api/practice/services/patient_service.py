"""Patient service - office-scoped patient charts and their child records.

Reads take an OfficeScope (from resolve_effective_office_filter); writes take
the user and go through authorize(). Child records never accept an office from
the caller: it is copied from the patient.
"""

import logging
from datetime import datetime
from typing import Any, TypeVar
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from practice.core.access_policy import (
    OfficeOperation,
    OfficeScope,
    OfficeUser,
    ensure_authorized,
)
from practice.core.errors import InvariantViolationError, NotFoundError, ValidationError
from practice.db.models import (
    AdminNote,
    Appointment,
    ClinicalNote,
    LabNote,
    LabPrescription,
    Milestone,
    Office,
    Patient,
    PatientFile,
)
from practice.schemas.patient import PatientCreate

logger = logging.getLogger(__name__)

R = TypeVar("R")


def ensure_consistent_office(record: Any, owner: Any) -> None:
    """
    Verify a record's office equals the office of the row it hangs off.

    The owner is the patient for child records and the task for task notes.
    Never patched at request time: a mismatch means the backfill (or a
    patient move) has to be re-run.
    """
    if record.office_id is not None and record.office_id == owner.office_id:
        return
    logger.error(
        "Office-scoped record disagrees with its owner",
        extra={
            "event": "tenancy_invariant_violation",
            "table": record.__tablename__,
            "record_id": str(record.id),
            "owner_table": owner.__tablename__,
            "owner_id": str(owner.id),
        },
    )
    raise InvariantViolationError(
        f"{record.__tablename__} {record.id} office does not match "
        f"{owner.__tablename__} {owner.id}"
    )


# =============================================================================
# Patients
# =============================================================================


def create_patient(db: Session, user: OfficeUser, data: PatientCreate) -> Patient:
    """
    Create a patient in the caller's office.

    Cross-office users may pick the office (and must, if they have none).
    """
    name = (data.name or "").strip()
    if not name:
        raise ValidationError("Patient name is required", field="name")

    office_id = data.office_id or user.office_id
    if office_id is None:
        raise ValidationError("An office is required for this patient", field="office_id")
    ensure_authorized(user, office_id, OfficeOperation.CREATE)
    if db.get(Office, office_id) is None:
        raise ValidationError("Office not found", field="office_id")

    fields = data.model_dump(exclude={"office_id", "name"})
    patient = Patient(office_id=office_id, name=name, **fields)
    db.add(patient)
    db.commit()
    db.refresh(patient)
    return patient


def get_patient(db: Session, scope: OfficeScope, patient_id: UUID) -> Patient:
    """Get a patient within scope. Out-of-scope looks exactly like absent."""
    query = scope.apply(select(Patient).where(Patient.id == patient_id), Patient.office_id)
    patient = db.execute(query).scalar_one_or_none()
    if not patient:
        raise NotFoundError("Patient not found")
    return patient


def list_patients(db: Session, scope: OfficeScope, q: str | None = None) -> list[Patient]:
    """List patients visible in scope, ordered by name."""
    query = scope.apply(select(Patient), Patient.office_id)
    if q:
        pattern = f"%{q.strip().lower()}%"
        query = query.where(
            or_(
                func.lower(Patient.name).like(pattern),
                func.lower(Patient.email).like(pattern),
                Patient.phone.like(pattern),
            )
        )
    query = query.order_by(Patient.name, Patient.id)
    return list(db.execute(query).scalars().all())


def get_patient_for_write(
    db: Session,
    user: OfficeUser,
    patient_id: UUID,
    operation: OfficeOperation,
) -> Patient:
    """
    Load a patient that is about to receive a write.

    Raises:
        NotFoundError: no such patient
        InvariantViolationError: patient has no office to derive from
        AuthorizationError: patient belongs to an office outside user's scope
    """
    patient = db.get(Patient, patient_id)
    if not patient:
        raise NotFoundError("Patient not found")
    if patient.office_id is None:
        logger.error(
            "Write against patient without office",
            extra={"event": "tenancy_invariant_violation", "patient_id": str(patient_id)},
        )
        raise InvariantViolationError(f"Patient {patient_id} has no office assigned")
    ensure_authorized(user, patient.office_id, operation)
    return patient


# =============================================================================
# Office-scoped child records
# =============================================================================

_ORDER_COLUMNS = {
    ClinicalNote: ClinicalNote.created_at,
    LabNote: LabNote.created_at,
    AdminNote: AdminNote.created_at,
    LabPrescription: LabPrescription.created_at,
    PatientFile: PatientFile.uploaded_at,
    Appointment: Appointment.appointment_date,
    Milestone: Milestone.position,
}


def actor_name(user: OfficeUser) -> str:
    """Display name recorded as author/actor. Writes are never anonymous."""
    name = (getattr(user, "display_name", None) or "").strip()
    if not name:
        raise ValidationError("Acting user has no display name", field="actor")
    return name


def _require_text(value: str | None, field: str) -> str:
    cleaned = (value or "").strip()
    if not cleaned:
        raise ValidationError(f"{field.replace('_', ' ').capitalize()} is required", field=field)
    return cleaned


def _add_child(db: Session, user: OfficeUser, patient_id: UUID, model: type[R], **fields) -> R:
    patient = get_patient_for_write(db, user, patient_id, OfficeOperation.CREATE)
    record = model(patient_id=patient.id, office_id=patient.office_id, **fields)
    db.add(record)
    db.commit()
    db.refresh(record)
    return record


def add_clinical_note(
    db: Session,
    user: OfficeUser,
    patient_id: UUID,
    content: str,
    appointment_id: UUID | None = None,
) -> ClinicalNote:
    content = _require_text(content, "content")
    if appointment_id is not None:
        appointment = db.get(Appointment, appointment_id)
        if not appointment or appointment.patient_id != patient_id:
            raise ValidationError("Appointment not found for this patient", field="appointment_id")
    return _add_child(
        db, user, patient_id, ClinicalNote,
        content=content, appointment_id=appointment_id, created_by=actor_name(user),
    )


def add_lab_note(db: Session, user: OfficeUser, patient_id: UUID, content: str) -> LabNote:
    return _add_child(
        db, user, patient_id, LabNote,
        content=_require_text(content, "content"), created_by=actor_name(user),
    )


def add_admin_note(db: Session, user: OfficeUser, patient_id: UUID, content: str) -> AdminNote:
    return _add_child(
        db, user, patient_id, AdminNote,
        content=_require_text(content, "content"), created_by=actor_name(user),
    )


def add_lab_prescription(
    db: Session,
    user: OfficeUser,
    patient_id: UUID,
    lab_name: str,
    arch: str | None = None,
    fabrication_stage_upper: str | None = None,
    fabrication_stage_lower: str | None = None,
    instructions: str | None = None,
) -> LabPrescription:
    return _add_child(
        db, user, patient_id, LabPrescription,
        lab_name=_require_text(lab_name, "lab_name"),
        arch=arch,
        fabrication_stage_upper=fabrication_stage_upper,
        fabrication_stage_lower=fabrication_stage_lower,
        instructions=instructions,
        created_by=actor_name(user),
    )


def add_patient_file(
    db: Session,
    user: OfficeUser,
    patient_id: UUID,
    filename: str,
    file_size: int,
    file_type: str,
    storage_key: str,
) -> PatientFile:
    """Record metadata for an object already uploaded to storage."""
    return _add_child(
        db, user, patient_id, PatientFile,
        filename=_require_text(filename, "filename"),
        file_size=file_size,
        file_type=_require_text(file_type, "file_type"),
        storage_key=_require_text(storage_key, "storage_key"),
        uploaded_by=actor_name(user),
    )


def add_appointment(
    db: Session,
    user: OfficeUser,
    patient_id: UUID,
    appointment_date: datetime,
    appointment_type: str | None = None,
    notes: str | None = None,
) -> Appointment:
    return _add_child(
        db, user, patient_id, Appointment,
        appointment_date=appointment_date,
        appointment_type=appointment_type,
        notes=notes,
    )


def list_child_records(
    db: Session,
    scope: OfficeScope,
    patient_id: UUID,
    model: type[R],
) -> list[R]:
    """List one kind of child record for a patient, oldest first (milestones by position)."""
    patient = get_patient(db, scope, patient_id)
    order_column = _ORDER_COLUMNS[model]
    query = scope.apply(
        select(model).where(model.patient_id == patient.id),
        model.office_id,
    ).order_by(order_column, model.id)
    records = list(db.execute(query).scalars().all())

    # Rows whose office drifted from the patient are filtered out by the
    # scoped query above; look for them explicitly so they fail loudly.
    drifted = db.execute(
        select(model).where(
            model.patient_id == patient.id,
            or_(model.office_id.is_(None), model.office_id != patient.office_id),
        ).limit(1)
    ).scalar_one_or_none()
    if drifted is not None:
        ensure_consistent_office(drifted, patient)
    for record in records:
        ensure_consistent_office(record, patient)
    return records
