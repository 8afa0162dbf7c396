"""Milestone service - a patient's treatment pipeline.

pending -> in_progress -> completed. Completed is terminal; a redo is a new
milestone appended to the pipeline.
"""

import logging
from datetime import date, datetime, timezone
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from practice.core.access_policy import (
    OfficeOperation,
    OfficeScope,
    OfficeUser,
    ensure_authorized,
)
from practice.core.config import settings
from practice.core.errors import NotFoundError, ValidationError
from practice.db.enums import AuditEventType, MilestoneStatus
from practice.db.models import Milestone, Patient, Task
from practice.services import audit_service, patient_service, staff_service
from practice.services.staff_service import StaffRoster

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[MilestoneStatus, set[MilestoneStatus]] = {
    MilestoneStatus.PENDING: {MilestoneStatus.IN_PROGRESS},
    MilestoneStatus.IN_PROGRESS: {MilestoneStatus.COMPLETED},
    MilestoneStatus.COMPLETED: set(),
}


def _next_position(db: Session, patient_id: UUID) -> int:
    # Lock the patient row so concurrent appends serialize on PostgreSQL; the
    # unique (patient_id, position) index rejects a duplicate elsewhere.
    db.execute(select(Patient.id).where(Patient.id == patient_id).with_for_update())
    current = db.execute(
        select(func.max(Milestone.position)).where(Milestone.patient_id == patient_id)
    ).scalar_one()
    return 0 if current is None else current + 1


def _resolve_optional_assignee(
    db: Session,
    user: OfficeUser,
    assignee: str | None,
    office_id: UUID,
    roster: StaffRoster | None,
) -> str | None:
    if assignee is None or not assignee.strip():
        return None
    if roster is None:
        roster = staff_service.load_roster(db)
    return staff_service.resolve_assignee(user, roster, assignee, office_id).display_name


def create_milestone(
    db: Session,
    user: OfficeUser,
    patient_id: UUID,
    name: str,
    assignee: str | None = None,
    due_date: date | None = None,
    task_id: UUID | None = None,
    roster: StaffRoster | None = None,
) -> Milestone:
    """
    Append a milestone to a patient's pipeline.

    Always created pending, even when an assignee is given.
    """
    name = (name or "").strip()
    if not name:
        raise ValidationError("Milestone name is required", field="name")

    patient = patient_service.get_patient_for_write(db, user, patient_id, OfficeOperation.CREATE)
    if task_id is not None:
        task = db.get(Task, task_id)
        if not task or task.patient_id != patient.id:
            raise ValidationError("Task not found for this patient", field="task_id")

    milestone = Milestone(
        patient_id=patient.id,
        office_id=patient.office_id,
        task_id=task_id,
        name=name,
        position=_next_position(db, patient.id),
        status=MilestoneStatus.PENDING.value,
        assignee=_resolve_optional_assignee(db, user, assignee, patient.office_id, roster),
        due_date=due_date,
    )
    db.add(milestone)
    db.commit()
    db.refresh(milestone)
    return milestone


def create_pipeline(
    db: Session,
    user: OfficeUser,
    patient_id: UUID,
    names: list[str] | None = None,
) -> list[Milestone]:
    """
    Instantiate a treatment pipeline for a patient.

    Milestones are appended after any that already exist, all in one
    transaction. names=None uses TREATMENT_PIPELINE from settings.
    """
    if names is None:
        names = settings.treatment_pipeline_list
    cleaned = [n.strip() for n in names if n and n.strip()]
    if not cleaned:
        raise ValidationError("A pipeline needs at least one milestone", field="names")

    patient = patient_service.get_patient_for_write(db, user, patient_id, OfficeOperation.CREATE)
    start = _next_position(db, patient.id)
    milestones = [
        Milestone(
            patient_id=patient.id,
            office_id=patient.office_id,
            name=name,
            position=start + offset,
            status=MilestoneStatus.PENDING.value,
        )
        for offset, name in enumerate(cleaned)
    ]
    db.add_all(milestones)
    db.commit()
    for milestone in milestones:
        db.refresh(milestone)
    logger.info(
        "Pipeline created",
        extra={"patient_id": str(patient.id), "milestones": len(milestones)},
    )
    return milestones


def get_milestone(db: Session, scope: OfficeScope, milestone_id: UUID) -> Milestone:
    query = scope.apply(
        select(Milestone).where(Milestone.id == milestone_id), Milestone.office_id
    )
    milestone = db.execute(query).scalar_one_or_none()
    if not milestone:
        raise NotFoundError("Milestone not found")
    patient_service.ensure_consistent_office(milestone, milestone.patient)
    return milestone


def list_milestones(db: Session, scope: OfficeScope, patient_id: UUID) -> list[Milestone]:
    """A patient's pipeline in position order."""
    return patient_service.list_child_records(db, scope, patient_id, Milestone)


def _get_milestone_for_write(
    db: Session,
    user: OfficeUser,
    milestone_id: UUID,
    operation: OfficeOperation,
) -> Milestone:
    milestone = db.get(Milestone, milestone_id)
    if not milestone:
        raise NotFoundError("Milestone not found")
    ensure_authorized(user, milestone.office_id, operation)
    patient_service.ensure_consistent_office(milestone, milestone.patient)
    return milestone


def _check_transition(milestone: Milestone, target: MilestoneStatus) -> MilestoneStatus:
    current = MilestoneStatus(milestone.status)
    if target not in ALLOWED_TRANSITIONS[current]:
        raise ValidationError(
            f"Cannot move milestone from {current.value} to {target.value}",
            field="status",
        )
    return current


def _guarded_update(db: Session, milestone: Milestone, expected: MilestoneStatus, **values) -> None:
    # One statement, guarded on the current status: a concurrent transition
    # makes rowcount 0 and nothing is written.
    result = db.execute(
        update(Milestone)
        .where(Milestone.id == milestone.id, Milestone.status == expected.value)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.rollback()
        db.refresh(milestone)
        raise ValidationError(
            f"Milestone is {milestone.status}, expected {expected.value}", field="status"
        )


def start_milestone(
    db: Session,
    user: OfficeUser,
    milestone_id: UUID,
    assignee: str | None = None,
    roster: StaffRoster | None = None,
) -> Milestone:
    """pending -> in_progress. Optionally (re)assigns the milestone."""
    milestone = _get_milestone_for_write(db, user, milestone_id, OfficeOperation.UPDATE)
    current = _check_transition(milestone, MilestoneStatus.IN_PROGRESS)

    values = {
        "status": MilestoneStatus.IN_PROGRESS.value,
        "started_at": datetime.now(timezone.utc),
    }
    resolved = _resolve_optional_assignee(db, user, assignee, milestone.office_id, roster)
    if resolved is not None:
        values["assignee"] = resolved

    _guarded_update(db, milestone, current, **values)
    db.commit()
    db.refresh(milestone)
    return milestone


def complete_milestone(db: Session, user: OfficeUser, milestone_id: UUID) -> Milestone:
    """in_progress -> completed, recording who and when in the same statement."""
    milestone = _get_milestone_for_write(db, user, milestone_id, OfficeOperation.COMPLETE)
    current = _check_transition(milestone, MilestoneStatus.COMPLETED)
    actor = patient_service.actor_name(user)

    _guarded_update(
        db,
        milestone,
        current,
        status=MilestoneStatus.COMPLETED.value,
        completed_by=actor,
        completed_at=datetime.now(timezone.utc),
    )
    audit_service.log_event(
        db,
        AuditEventType.MILESTONE_COMPLETED,
        office_id=milestone.office_id,
        actor_user_id=user.id,
        target_type="milestone",
        target_id=milestone.id,
    )
    db.commit()
    db.refresh(milestone)
    return milestone


def transition_milestone(
    db: Session,
    user: OfficeUser,
    milestone_id: UUID,
    target: MilestoneStatus,
    assignee: str | None = None,
) -> Milestone:
    """Dispatch a requested status change to start/complete."""
    if target is MilestoneStatus.IN_PROGRESS:
        return start_milestone(db, user, milestone_id, assignee=assignee)
    if target is MilestoneStatus.COMPLETED:
        return complete_milestone(db, user, milestone_id)

    # Nothing moves back to pending
    milestone = _get_milestone_for_write(db, user, milestone_id, OfficeOperation.UPDATE)
    raise ValidationError(
        f"Cannot move milestone from {milestone.status} to {target.value}", field="status"
    )
