"""Tests for the treatment milestone pipeline."""

import pytest
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from practice.core.config import settings
from practice.core.errors import (
    AuthorizationError,
    InvariantViolationError,
    NotFoundError,
    ValidationError,
)
from practice.db.enums import AuditEventType, MilestoneStatus
from practice.db.models import Milestone, Patient
from practice.services import audit_service, milestone_service


@pytest.fixture
def milestone(db, north_user, north_patient, roster):
    return milestone_service.create_milestone(db, north_user, north_patient.id, "Metal ETA")


def test_new_milestone_is_pending_even_with_assignee(db, north_user, north_patient, roster):
    m = milestone_service.create_milestone(
        db, north_user, north_patient.id, "Setup Assigned", assignee="dana smith"
    )
    assert m.status == MilestoneStatus.PENDING.value
    assert m.assignee == "Dana Smith"
    assert m.office_id == north_patient.office_id


def test_create_milestone_requires_name(db, north_user, north_patient):
    with pytest.raises(ValidationError):
        milestone_service.create_milestone(db, north_user, north_patient.id, " ")


def test_create_milestone_for_other_office_is_forbidden(db, north_user, south_patient):
    with pytest.raises(AuthorizationError):
        milestone_service.create_milestone(db, north_user, south_patient.id, "Metal ETA")


def test_full_lifecycle(db, north_user, milestone):
    started = milestone_service.start_milestone(db, north_user, milestone.id, assignee="Lee Park")
    assert started.status == MilestoneStatus.IN_PROGRESS.value
    assert started.started_at is not None
    assert started.assignee == "Lee Park"

    done = milestone_service.complete_milestone(db, north_user, milestone.id)
    assert done.status == MilestoneStatus.COMPLETED.value
    assert done.completed_by == "Nora North"
    assert done.completed_at is not None
    events = audit_service.list_events(db, AuditEventType.MILESTONE_COMPLETED, target_id=milestone.id)
    assert len(events) == 1


def test_completed_milestone_cannot_go_back(db, north_user, milestone):
    milestone_service.start_milestone(db, north_user, milestone.id)
    done = milestone_service.complete_milestone(db, north_user, milestone.id)
    completed_by, completed_at = done.completed_by, done.completed_at

    with pytest.raises(ValidationError):
        milestone_service.transition_milestone(
            db, north_user, milestone.id, MilestoneStatus.IN_PROGRESS
        )

    db.expire_all()
    again = db.get(Milestone, milestone.id)
    assert again.status == MilestoneStatus.COMPLETED.value
    assert again.completed_by == completed_by
    assert again.completed_at == completed_at


@pytest.mark.parametrize("target", [MilestoneStatus.COMPLETED, MilestoneStatus.PENDING])
def test_pending_cannot_skip_or_stay(db, north_user, milestone, target):
    with pytest.raises(ValidationError):
        milestone_service.transition_milestone(db, north_user, milestone.id, target)
    db.expire_all()
    assert db.get(Milestone, milestone.id).status == MilestoneStatus.PENDING.value


def test_transition_from_other_office_is_forbidden(db, south_user, milestone):
    with pytest.raises(AuthorizationError):
        milestone_service.transition_milestone(
            db, south_user, milestone.id, MilestoneStatus.IN_PROGRESS
        )


def test_completion_without_actor_is_unrepresentable(db, milestone):
    with pytest.raises(IntegrityError):
        db.execute(
            update(Milestone)
            .where(Milestone.id == milestone.id)
            .values(status=MilestoneStatus.COMPLETED.value)
        )
        db.commit()
    db.rollback()


def test_default_pipeline_is_appended_in_order(db, north_user, north_patient, milestone, scope_for):
    created = milestone_service.create_pipeline(db, north_user, north_patient.id)

    names = settings.treatment_pipeline_list
    assert [m.name for m in created] == names
    pipeline = milestone_service.list_milestones(db, scope_for(north_user), north_patient.id)
    assert [m.name for m in pipeline] == ["Metal ETA", *names]
    assert [m.position for m in pipeline] == list(range(len(names) + 1))
    assert all(m.status == MilestoneStatus.PENDING.value for m in created)


def test_custom_pipeline(db, north_user, north_patient):
    created = milestone_service.create_pipeline(
        db, north_user, north_patient.id, names=["Try-in", " ", "Delivery"]
    )
    assert [m.name for m in created] == ["Try-in", "Delivery"]

    with pytest.raises(ValidationError):
        milestone_service.create_pipeline(db, north_user, north_patient.id, names=[])


def test_milestones_outside_scope_are_not_visible(db, south_user, milestone, north_patient, scope_for):
    with pytest.raises(NotFoundError):
        milestone_service.get_milestone(db, scope_for(south_user), milestone.id)
    with pytest.raises(NotFoundError):
        milestone_service.list_milestones(db, scope_for(south_user), north_patient.id)


def test_list_milestones_fails_loudly_on_office_drift(
    db, north_user, head_user, south, north_patient, milestone, scope_for
):
    db.execute(update(Milestone).where(Milestone.id == milestone.id).values(office_id=south.id))
    db.commit()

    with pytest.raises(InvariantViolationError):
        milestone_service.list_milestones(db, scope_for(north_user), north_patient.id)
    with pytest.raises(InvariantViolationError):
        milestone_service.list_milestones(db, scope_for(head_user), north_patient.id)


def test_list_milestones_fails_loudly_on_missing_office(
    db, north_user, north_patient, milestone, scope_for
):
    db.execute(update(Milestone).where(Milestone.id == milestone.id).values(office_id=None))
    db.commit()

    with pytest.raises(InvariantViolationError):
        milestone_service.list_milestones(db, scope_for(north_user), north_patient.id)


def test_positions_are_unique_per_patient(db, north_patient, milestone):
    with pytest.raises(IntegrityError):
        db.add(
            Milestone(
                patient_id=north_patient.id,
                office_id=north_patient.office_id,
                name="Duplicate slot",
                position=milestone.position,
                status=MilestoneStatus.PENDING.value,
            )
        )
        db.commit()
    db.rollback()


def test_transition_on_drifted_milestone_checks_authorization_first(
    db, north_user, south_user, south, north_patient, milestone
):
    db.execute(update(Patient).where(Patient.id == north_patient.id).values(office_id=south.id))
    db.commit()

    with pytest.raises(AuthorizationError):
        milestone_service.start_milestone(db, south_user, milestone.id)
    with pytest.raises(InvariantViolationError):
        milestone_service.start_milestone(db, north_user, milestone.id)


def test_in_progress_cannot_go_back_to_pending(db, north_user, milestone):
    milestone_service.start_milestone(db, north_user, milestone.id)

    with pytest.raises(ValidationError) as exc:
        milestone_service.transition_milestone(
            db, north_user, milestone.id, MilestoneStatus.PENDING
        )
    assert exc.value.field == "status"
    db.expire_all()
    assert db.get(Milestone, milestone.id).status == MilestoneStatus.IN_PROGRESS.value
