"""Tests for treatment tasks."""

import uuid

import pytest
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from practice.core.errors import (
    AuthorizationError,
    InvariantViolationError,
    NotFoundError,
    ValidationError,
)
from practice.db.enums import AuditEventType, TaskPriority, TaskStatus
from practice.db.models import Patient, Task
from practice.schemas.task import TaskCreate, TaskUpdate
from practice.services import audit_service, task_service


def _create(db, user, patient, **overrides):
    data = dict(patient_id=patient.id, title="Order teeth", assignee="Dana Smith")
    data.update(overrides)
    return task_service.create_task(db, user, TaskCreate(**data))


def test_empty_assignee_fails_then_named_assignee_succeeds(db, north_user, north_patient, roster):
    with pytest.raises(ValidationError) as exc:
        _create(db, north_user, north_patient, assignee="")
    assert exc.value.field == "assignee"

    task = _create(db, north_user, north_patient, assignee="Dana Smith")
    assert task.office_id == north_patient.office_id
    assert task.status == TaskStatus.OPEN.value


def test_create_task_requires_title(db, north_user, north_patient, roster):
    with pytest.raises(ValidationError) as exc:
        _create(db, north_user, north_patient, title="   ")
    assert exc.value.field == "title"


def test_create_task_stores_canonical_roster_name(db, north_user, north_patient, roster):
    task = _create(db, north_user, north_patient, assignee="  lee park ")
    assert task.assignee == "Lee Park"
    assert task.assignee_staff_id == roster["Lee Park"].id


def test_create_task_rejects_unknown_assignee(db, north_user, north_patient, roster):
    with pytest.raises(ValidationError):
        _create(db, north_user, north_patient, assignee="Nobody")


def test_create_task_rejects_staff_of_another_office(db, north_user, north_patient, roster):
    with pytest.raises(ValidationError):
        _create(db, north_user, north_patient, assignee="Sam Diaz")


def test_head_office_user_may_assign_any_office_staff(db, head_user, south_patient, roster):
    task = _create(db, head_user, south_patient, assignee="Sam Diaz")
    assert task.office_id == south_patient.office_id


def test_create_task_for_other_office_patient_is_forbidden(db, north_user, south_patient, roster):
    with pytest.raises(AuthorizationError):
        _create(db, north_user, south_patient, assignee="Dana Smith")


def test_create_task_for_missing_patient(db, north_user, roster):
    with pytest.raises(NotFoundError):
        task_service.create_task(
            db,
            north_user,
            TaskCreate(patient_id=uuid.uuid4(), title="Order teeth", assignee="Dana Smith"),
        )


def test_get_task_outside_scope_is_not_found(db, north_user, south_user, north_patient, roster, scope_for):
    task = _create(db, north_user, north_patient)
    with pytest.raises(NotFoundError):
        task_service.get_task(db, scope_for(south_user), task.id)
    assert task_service.get_task(db, scope_for(north_user), task.id).id == task.id


def test_get_task_with_drifted_office_is_invariant_violation(
    db, north_user, head_user, south, north_patient, roster, scope_for
):
    task = _create(db, north_user, north_patient)
    db.execute(update(Task).where(Task.id == task.id).values(office_id=south.id))
    db.commit()

    with pytest.raises(InvariantViolationError):
        task_service.get_task(db, scope_for(head_user), task.id)


def test_list_tasks_filters(db, north_user, head_user, north_patient, south_patient, roster, scope_for):
    _create(db, north_user, north_patient, title="A", assignee="Dana Smith")
    second = _create(db, north_user, north_patient, title="B", assignee="Lee Park")
    _create(db, head_user, south_patient, title="C", assignee="Sam Diaz")

    north_tasks = task_service.list_tasks(db, scope_for(north_user))
    assert [t.title for t in north_tasks] == ["A", "B"]

    assert [t.title for t in task_service.list_tasks(db, scope_for(head_user))] == ["A", "B", "C"]
    assert [t.id for t in task_service.list_tasks(db, scope_for(north_user), assignee="lee park")] == [
        second.id
    ]

    task_service.complete_task(db, north_user, second.id)
    open_tasks = task_service.list_tasks(db, scope_for(north_user), status=TaskStatus.OPEN)
    assert [t.title for t in open_tasks] == ["A"]


def test_reassign_task_within_office(db, north_user, north_patient, roster):
    task = _create(db, north_user, north_patient)
    other = task_service.reassign_task(db, north_user, task.id, "lee park")

    assert other.assignee == "Lee Park"
    assert other.assignee_staff_id == roster["Lee Park"].id
    events = audit_service.list_events(db, AuditEventType.TASK_ASSIGNED, target_id=task.id)
    assert len(events) == 1


def test_reassign_from_other_office_is_forbidden(db, north_user, south_user, north_patient, roster):
    task = _create(db, north_user, north_patient)
    with pytest.raises(AuthorizationError):
        task_service.assign_task(db, south_user, task.id, "Sam Diaz")


def test_update_task_fields(db, north_user, north_patient, roster):
    task = _create(db, north_user, north_patient)
    updated = task_service.update_task(
        db, north_user, task.id, TaskUpdate(title="Order upper", priority=TaskPriority.HIGH)
    )
    assert updated.title == "Order upper"
    assert updated.priority == "high"
    assert updated.assignee == "Dana Smith"


def test_complete_task_records_actor_and_time(db, north_user, north_patient, roster):
    task = _create(db, north_user, north_patient)
    done = task_service.complete_task(db, north_user, task.id)

    assert done.status == TaskStatus.COMPLETED.value
    assert done.completed_by == "Nora North"
    assert done.completed_at is not None
    assert len(audit_service.list_events(db, AuditEventType.TASK_COMPLETED, target_id=task.id)) == 1


def test_completed_task_is_terminal(db, north_user, north_patient, roster):
    task = _create(db, north_user, north_patient)
    done = task_service.complete_task(db, north_user, task.id)
    completed_at = done.completed_at

    with pytest.raises(ValidationError):
        task_service.complete_task(db, north_user, task.id)
    with pytest.raises(ValidationError):
        task_service.cancel_task(db, north_user, task.id)
    with pytest.raises(ValidationError):
        task_service.assign_task(db, north_user, task.id, "Lee Park")

    db.expire_all()
    again = db.get(Task, task.id)
    assert again.status == TaskStatus.COMPLETED.value
    assert again.completed_at == completed_at


def test_cancel_task_keeps_history(db, north_user, north_patient, roster, scope_for):
    task = _create(db, north_user, north_patient)
    cancelled = task_service.cancel_task(db, north_user, task.id)

    assert cancelled.status == TaskStatus.CANCELLED.value
    assert cancelled.cancelled_at is not None
    assert cancelled.completed_by is None
    listed = task_service.list_tasks(db, scope_for(north_user), status=TaskStatus.CANCELLED)
    assert [t.id for t in listed] == [task.id]


def test_completed_without_actor_is_unrepresentable(db, north_user, north_patient, roster):
    task = _create(db, north_user, north_patient)
    with pytest.raises(IntegrityError):
        db.execute(
            update(Task).where(Task.id == task.id).values(status=TaskStatus.COMPLETED.value)
        )
        db.commit()
    db.rollback()


def test_list_tasks_fails_loudly_when_patient_office_drifts(
    db, north_user, south_user, south, north_patient, roster, scope_for
):
    _create(db, north_user, north_patient)
    db.execute(update(Patient).where(Patient.id == north_patient.id).values(office_id=south.id))
    db.commit()

    # The task still says North, its patient now says South: both sides see it
    with pytest.raises(InvariantViolationError):
        task_service.list_tasks(db, scope_for(north_user))
    with pytest.raises(InvariantViolationError):
        task_service.list_tasks(db, scope_for(south_user))


def test_list_tasks_fails_loudly_on_task_without_office(
    db, north_user, north_patient, roster, scope_for
):
    task = _create(db, north_user, north_patient)
    db.execute(update(Task).where(Task.id == task.id).values(office_id=None))
    db.commit()

    with pytest.raises(InvariantViolationError):
        task_service.list_tasks(db, scope_for(north_user), patient_id=north_patient.id)


def test_write_to_drifted_task_checks_authorization_first(
    db, north_user, south_user, south, north_patient, roster
):
    task = _create(db, north_user, north_patient)
    db.execute(update(Patient).where(Patient.id == north_patient.id).values(office_id=south.id))
    db.commit()

    with pytest.raises(AuthorizationError):
        task_service.complete_task(db, south_user, task.id)
    with pytest.raises(InvariantViolationError):
        task_service.complete_task(db, north_user, task.id)
