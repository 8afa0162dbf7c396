"""Tenancy administration - consistency diagnostics and patient moves."""

import logging
from uuid import UUID

from sqlalchemy import func, or_, select, update
from sqlalchemy.orm import Session

from practice.core.errors import NotFoundError, ValidationError
from practice.db.enums import AuditEventType
from practice.db.models import PATIENT_SCOPED_MODELS, Office, Patient, Task, TaskNote, User
from practice.schemas.tenancy import OfficePatientCount, PatientMoveResult, TenancyDiagnostics
from practice.services import audit_service

logger = logging.getLogger(__name__)


def _count(db: Session, query) -> int:
    return db.execute(select(func.count()).select_from(query.subquery())).scalar_one()


def diagnose(db: Session) -> TenancyDiagnostics:
    """Read-only report of how far the data is from being fully office-scoped."""
    patient_counts = dict(
        db.execute(select(Patient.office_id, func.count()).group_by(Patient.office_id)).all()
    )
    user_counts = dict(
        db.execute(select(User.office_id, func.count()).group_by(User.office_id)).all()
    )

    offices = []
    for office in db.execute(select(Office).order_by(Office.name)).scalars():
        offices.append(
            OfficePatientCount(
                office_id=office.id,
                office_name=office.name,
                patients=patient_counts.get(office.id, 0),
                users=user_counts.get(office.id, 0),
            )
        )
    offices.append(
        OfficePatientCount(
            office_id=None,
            office_name=None,
            patients=patient_counts.get(None, 0),
            users=user_counts.get(None, 0),
        )
    )

    restricted_without_office = _count(
        db,
        select(User.id).where(User.office_id.is_(None), User.can_view_all_offices.is_(False)),
    )

    without_office: dict[str, int] = {}
    mismatch: dict[str, int] = {}
    for model in PATIENT_SCOPED_MODELS:
        name = model.__tablename__
        without_office[name] = _count(db, select(model.id).where(model.office_id.is_(None)))
        mismatch[name] = _count(
            db,
            select(model.id)
            .join(Patient, Patient.id == model.patient_id)
            .where(
                model.office_id.is_not(None),
                or_(Patient.office_id.is_(None), model.office_id != Patient.office_id),
            ),
        )
    without_office[TaskNote.__tablename__] = _count(
        db, select(TaskNote.id).where(TaskNote.office_id.is_(None))
    )
    mismatch[TaskNote.__tablename__] = _count(
        db,
        select(TaskNote.id)
        .join(Task, Task.id == TaskNote.task_id)
        .where(
            TaskNote.office_id.is_not(None),
            or_(Task.office_id.is_(None), TaskNote.office_id != Task.office_id),
        ),
    )

    return TenancyDiagnostics(
        offices=offices,
        patients_without_office=patient_counts.get(None, 0),
        users_without_office=user_counts.get(None, 0),
        restricted_users_without_office=restricted_without_office,
        offices_with_patients_but_no_users=[
            row.office_id for row in offices
            if row.office_id is not None and row.patients and not row.users
        ],
        children_without_office=without_office,
        children_office_mismatch=mismatch,
    )


def move_patients(
    db: Session,
    patient_ids: list[UUID],
    target_office_id: UUID,
    actor_user_id: UUID | None = None,
    dry_run: bool = False,
) -> PatientMoveResult:
    """
    Move patients, with every office-scoped child record, to another office.

    All rows move in one transaction with the patients row-locked, so a
    patient and its records never disagree. dry_run reports the counts and
    writes nothing.

    Raises:
        ValidationError: no patient ids given
        NotFoundError: target office does not exist
    """
    requested = list(dict.fromkeys(patient_ids))
    if not requested:
        raise ValidationError("At least one patient is required", field="patient_ids")
    if db.get(Office, target_office_id) is None:
        raise NotFoundError(f"Office {target_office_id} not found")

    patients = db.execute(
        select(Patient).where(Patient.id.in_(requested)).with_for_update()
    ).scalars().all()
    found = {p.id for p in patients}
    missing = [pid for pid in requested if pid not in found]
    ids = [p.id for p in patients]

    def _needs_move(column):
        return or_(column.is_(None), column != target_office_id)

    moving_patients = [p.id for p in patients if p.office_id != target_office_id]
    records: dict[str, int] = {}
    task_ids = select(Task.id).where(Task.patient_id.in_(ids))

    if dry_run:
        for model in PATIENT_SCOPED_MODELS:
            records[model.__tablename__] = _count(
                db,
                select(model.id).where(model.patient_id.in_(ids), _needs_move(model.office_id)),
            )
        records[TaskNote.__tablename__] = _count(
            db,
            select(TaskNote.id).where(
                TaskNote.task_id.in_(task_ids), _needs_move(TaskNote.office_id)
            ),
        )
        db.rollback()
        return PatientMoveResult(
            target_office_id=target_office_id,
            dry_run=True,
            patients_moved=len(moving_patients),
            patients_missing=missing,
            records_moved=records,
        )

    if moving_patients:
        db.execute(
            update(Patient.__table__)
            .where(Patient.__table__.c.id.in_(moving_patients))
            .values(office_id=target_office_id)
        )
    for model in PATIENT_SCOPED_MODELS:
        table = model.__table__
        result = db.execute(
            update(table)
            .where(table.c.patient_id.in_(ids), _needs_move(table.c.office_id))
            .values(office_id=target_office_id)
        )
        records[table.name] = result.rowcount
    notes = TaskNote.__table__
    result = db.execute(
        update(notes)
        .where(notes.c.task_id.in_(task_ids), _needs_move(notes.c.office_id))
        .values(office_id=target_office_id)
    )
    records[notes.name] = result.rowcount

    audit_service.log_event(
        db,
        AuditEventType.PATIENTS_MOVED,
        office_id=target_office_id,
        actor_user_id=actor_user_id,
        target_type="office",
        target_id=target_office_id,
        details={"patients": len(moving_patients), **records},
    )
    db.commit()
    logger.info(
        "Patients moved",
        extra={"office_id": str(target_office_id), "patients": len(moving_patients)},
    )
    return PatientMoveResult(
        target_office_id=target_office_id,
        dry_run=False,
        patients_moved=len(moving_patients),
        patients_missing=missing,
        records_moved=records,
    )
