"""Task service - treatment tasks and their append-only note log."""

import logging
from datetime import datetime, timezone
from typing import Iterable
from uuid import UUID

from sqlalchemy import func, or_, select, update
from sqlalchemy.orm import Session

from practice.core.access_policy import (
    OfficeOperation,
    OfficeScope,
    OfficeUser,
    ensure_authorized,
)
from practice.core.errors import NotFoundError, ValidationError
from practice.db.enums import AuditEventType, TaskStatus
from practice.db.models import Patient, Task, TaskNote
from practice.schemas.task import TaskCreate, TaskUpdate
from practice.services import audit_service, patient_service, staff_service
from practice.services.staff_service import StaffRoster

logger = logging.getLogger(__name__)

# Hard cap per note; bounds storage fan-out per request
MAX_NOTE_IMAGES = 5


def _required(value: str | None, field: str, label: str) -> str:
    cleaned = (value or "").strip()
    if not cleaned:
        raise ValidationError(f"{label} is required", field=field)
    return cleaned


def create_task(
    db: Session,
    user: OfficeUser,
    data: TaskCreate,
    roster: StaffRoster | None = None,
) -> Task:
    """
    Create a task for a patient.

    The office is derived from the patient. The assignee must be on the
    roster visible to the creating user.
    """
    title = _required(data.title, "title", "Title")
    assignee = _required(data.assignee, "assignee", "Assignee")

    patient = patient_service.get_patient_for_write(
        db, user, data.patient_id, OfficeOperation.CREATE
    )
    if roster is None:
        roster = staff_service.load_roster(db)
    staff = staff_service.resolve_assignee(user, roster, assignee, patient.office_id)

    task = Task(
        patient_id=patient.id,
        office_id=patient.office_id,
        title=title,
        description=data.description,
        assignee=staff.display_name,
        assignee_staff_id=staff.id,
        priority=data.priority.value,
        due_date=data.due_date,
        status=TaskStatus.OPEN.value,
        created_by_user_id=user.id,
    )
    db.add(task)
    db.commit()
    db.refresh(task)
    logger.info(
        "Task created",
        extra={"task_id": str(task.id), "office_id": str(task.office_id)},
    )
    return task


def get_task(db: Session, scope: OfficeScope, task_id: UUID) -> Task:
    """
    Get a task within scope.

    Raises:
        NotFoundError: absent, or outside scope
        InvariantViolationError: task office disagrees with its patient
    """
    query = scope.apply(select(Task).where(Task.id == task_id), Task.office_id)
    task = db.execute(query).scalar_one_or_none()
    if not task:
        raise NotFoundError("Task not found")
    patient_service.ensure_consistent_office(task, task.patient)
    return task


def _get_task_for_write(
    db: Session,
    user: OfficeUser,
    task_id: UUID,
    operation: OfficeOperation,
) -> Task:
    task = db.get(Task, task_id)
    if not task:
        raise NotFoundError("Task not found")
    ensure_authorized(user, task.office_id, operation)
    patient_service.ensure_consistent_office(task, task.patient)
    return task


def _require_open(task: Task, action: str) -> None:
    if task.status != TaskStatus.OPEN.value:
        raise ValidationError(f"Cannot {action} a {task.status} task", field="status")


def list_tasks(
    db: Session,
    scope: OfficeScope,
    assignee: str | None = None,
    patient_id: UUID | None = None,
    status: TaskStatus | None = None,
) -> list[Task]:
    """List tasks visible in scope, oldest first."""
    query = scope.apply(select(Task), Task.office_id)
    if assignee:
        query = query.where(func.lower(Task.assignee) == assignee.strip().lower())
    if patient_id:
        query = query.where(Task.patient_id == patient_id)
    if status:
        query = query.where(Task.status == status.value)
    query = query.order_by(Task.created_at, Task.id)
    tasks = list(db.execute(query).scalars().all())

    # A task whose office drifted from its patient's either slips into this
    # scope or drops out of it; check from both sides so it fails loudly.
    drift = select(Task).join(Patient, Patient.id == Task.patient_id).where(
        or_(
            Task.office_id.is_(None),
            Patient.office_id.is_(None),
            Task.office_id != Patient.office_id,
        )
    )
    if patient_id:
        drift = drift.where(Task.patient_id == patient_id)
    for column in (Task.office_id, Patient.office_id):
        drifted = db.execute(scope.apply(drift, column).limit(1)).scalar_one_or_none()
        if drifted is not None:
            patient_service.ensure_consistent_office(drifted, drifted.patient)
    return tasks


def assign_task(
    db: Session,
    user: OfficeUser,
    task_id: UUID,
    assignee: str,
    roster: StaffRoster | None = None,
) -> Task:
    """
    Change a task's assignee.

    Tasks are cooperatively managed: any staff member who can see the task's
    office may reassign it.
    """
    name = _required(assignee, "assignee", "Assignee")
    task = _get_task_for_write(db, user, task_id, OfficeOperation.ASSIGN)
    _require_open(task, "reassign")

    if roster is None:
        roster = staff_service.load_roster(db)
    staff = staff_service.resolve_assignee(user, roster, name, task.office_id)

    previous_staff_id = task.assignee_staff_id
    task.assignee = staff.display_name
    task.assignee_staff_id = staff.id
    audit_service.log_event(
        db,
        AuditEventType.TASK_ASSIGNED,
        office_id=task.office_id,
        actor_user_id=user.id,
        target_type="task",
        target_id=task.id,
        details={"assignee_changed": previous_staff_id != staff.id},
    )
    db.commit()
    db.refresh(task)
    return task


reassign_task = assign_task


def update_task(
    db: Session,
    user: OfficeUser,
    task_id: UUID,
    data: TaskUpdate,
) -> Task:
    """
    Update task details (partial). Only open tasks can be edited.

    Uses exclude_unset=True so only explicitly provided fields are updated.
    """
    task = _get_task_for_write(db, user, task_id, OfficeOperation.UPDATE)
    _require_open(task, "edit")

    update_data = data.model_dump(exclude_unset=True)
    if "title" in update_data:
        update_data["title"] = _required(update_data["title"], "title", "Title")
    if "priority" in update_data:
        if update_data["priority"] is None:
            del update_data["priority"]
        else:
            update_data["priority"] = update_data["priority"].value

    for field, value in update_data.items():
        setattr(task, field, value)

    db.commit()
    db.refresh(task)
    return task


def _finish_task(
    db: Session,
    user: OfficeUser,
    task_id: UUID,
    target: TaskStatus,
    operation: OfficeOperation,
    event_type: AuditEventType,
) -> Task:
    task = _get_task_for_write(db, user, task_id, operation)
    actor = patient_service.actor_name(user)
    now = datetime.now(timezone.utc)

    values: dict = {"status": target.value, "updated_at": now}
    if target is TaskStatus.COMPLETED:
        values.update(completed_by=actor, completed_at=now)
    else:
        values.update(cancelled_at=now)

    # Single guarded statement: status and completion metadata land together,
    # and only one of two concurrent finishers wins.
    result = db.execute(
        update(Task)
        .where(Task.id == task.id, Task.status == TaskStatus.OPEN.value)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.rollback()
        db.refresh(task)
        verb = "complete" if target is TaskStatus.COMPLETED else "cancel"
        raise ValidationError(f"Cannot {verb} a {task.status} task", field="status")

    audit_service.log_event(
        db,
        event_type,
        office_id=task.office_id,
        actor_user_id=user.id,
        target_type="task",
        target_id=task.id,
    )
    db.commit()
    db.refresh(task)
    return task


def complete_task(db: Session, user: OfficeUser, task_id: UUID) -> Task:
    """Mark an open task completed, recording who and when."""
    return _finish_task(
        db, user, task_id, TaskStatus.COMPLETED,
        OfficeOperation.COMPLETE, AuditEventType.TASK_COMPLETED,
    )


def cancel_task(db: Session, user: OfficeUser, task_id: UUID) -> Task:
    """Cancel an open task. Cancelled tasks stay in history."""
    return _finish_task(
        db, user, task_id, TaskStatus.CANCELLED,
        OfficeOperation.UPDATE, AuditEventType.TASK_CANCELLED,
    )


# =============================================================================
# Task notes (append-only)
# =============================================================================


def _clean_image_refs(image_refs: Iterable[str] | None) -> list[str]:
    refs = list(image_refs or [])
    if len(refs) > MAX_NOTE_IMAGES:
        raise ValidationError(
            f"A note can have at most {MAX_NOTE_IMAGES} images", field="image_refs"
        )
    cleaned = []
    for ref in refs:
        if not isinstance(ref, str) or not ref.strip():
            raise ValidationError("Image references must be non-empty", field="image_refs")
        cleaned.append(ref.strip())
    return cleaned


def add_note(
    db: Session,
    user: OfficeUser,
    task_id: UUID,
    content: str | None = None,
    image_refs: Iterable[str] | None = None,
) -> TaskNote:
    """
    Append a note to a task.

    Needs text or at least one image reference. The note is one INSERT, so a
    partially written note is never visible.
    """
    text = (content or "").strip() or None
    refs = _clean_image_refs(image_refs)
    if text is None and not refs:
        raise ValidationError("A note needs text or at least one image", field="content")

    task = _get_task_for_write(db, user, task_id, OfficeOperation.ANNOTATE)
    note = TaskNote(
        task_id=task.id,
        office_id=task.office_id,
        content=text,
        image_refs=refs,
        created_by=patient_service.actor_name(user),
    )
    db.add(note)
    db.commit()
    db.refresh(note)
    return note


def list_notes(db: Session, scope: OfficeScope, task_id: UUID) -> list[TaskNote]:
    """Notes for a task in insertion order."""
    task = get_task(db, scope, task_id)
    query = scope.apply(
        select(TaskNote).where(TaskNote.task_id == task.id), TaskNote.office_id
    ).order_by(TaskNote.id)
    notes = list(db.execute(query).scalars().all())

    drifted = db.execute(
        select(TaskNote).where(
            TaskNote.task_id == task.id,
            or_(TaskNote.office_id.is_(None), TaskNote.office_id != task.office_id),
        ).limit(1)
    ).scalar_one_or_none()
    if drifted is not None:
        patient_service.ensure_consistent_office(drifted, task)
    return notes
