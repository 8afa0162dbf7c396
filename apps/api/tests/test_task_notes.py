"""Tests for append-only task notes."""

import pytest
from sqlalchemy import update

from practice.core.errors import (
    AuthorizationError,
    InvariantViolationError,
    NotFoundError,
    ValidationError,
)
from practice.db.models import TaskNote
from practice.schemas.task import TaskCreate
from practice.services import task_service
from practice.services.task_service import MAX_NOTE_IMAGES


@pytest.fixture
def task(db, north_user, north_patient, roster):
    return task_service.create_task(
        db,
        north_user,
        TaskCreate(patient_id=north_patient.id, title="Order teeth", assignee="Dana Smith"),
    )


def test_empty_note_is_rejected(db, north_user, task):
    with pytest.raises(ValidationError):
        task_service.add_note(db, north_user, task.id, content="", image_refs=[])
    with pytest.raises(ValidationError):
        task_service.add_note(db, north_user, task.id, content="   ")


def test_more_than_five_images_is_rejected(db, north_user, task, scope_for):
    refs = [f"uploads/img-{i}.jpg" for i in range(MAX_NOTE_IMAGES + 1)]
    with pytest.raises(ValidationError) as exc:
        task_service.add_note(db, north_user, task.id, image_refs=refs)
    assert exc.value.field == "image_refs"
    assert task_service.list_notes(db, scope_for(north_user), task.id) == []


def test_blank_image_reference_is_rejected(db, north_user, task):
    with pytest.raises(ValidationError):
        task_service.add_note(db, north_user, task.id, image_refs=["uploads/a.jpg", " "])


def test_image_only_note_is_accepted(db, north_user, task):
    refs = [f"uploads/img-{i}.jpg" for i in range(MAX_NOTE_IMAGES)]
    note = task_service.add_note(db, north_user, task.id, image_refs=refs)

    assert note.content is None
    assert note.image_refs == refs
    assert note.office_id == task.office_id
    assert note.created_by == "Nora North"


def test_notes_are_listed_in_insertion_order(db, north_user, task, scope_for):
    for text in ("first", "second", "third"):
        task_service.add_note(db, north_user, task.id, content=text)

    notes = task_service.list_notes(db, scope_for(north_user), task.id)
    assert [n.content for n in notes] == ["first", "second", "third"]
    assert [n.id for n in notes] == sorted(n.id for n in notes)


def test_notes_allowed_on_completed_task(db, north_user, task):
    task_service.complete_task(db, north_user, task.id)
    note = task_service.add_note(db, north_user, task.id, content="Delivered to patient")
    assert note.task_id == task.id


def test_note_on_other_office_task_is_forbidden(db, south_user, task):
    with pytest.raises(AuthorizationError):
        task_service.add_note(db, south_user, task.id, content="Hello")


def test_notes_of_other_office_task_are_not_visible(db, south_user, task, scope_for):
    with pytest.raises(NotFoundError):
        task_service.list_notes(db, scope_for(south_user), task.id)


def test_note_from_another_office_fails_loudly(
    db, north_user, head_user, south, task, scope_for
):
    note = task_service.add_note(db, north_user, task.id, content="Shade A2")
    db.execute(update(TaskNote).where(TaskNote.id == note.id).values(office_id=south.id))
    db.commit()

    with pytest.raises(InvariantViolationError):
        task_service.list_notes(db, scope_for(north_user), task.id)
    with pytest.raises(InvariantViolationError):
        task_service.list_notes(db, scope_for(head_user), task.id)


def test_note_without_office_fails_loudly(db, north_user, task, scope_for):
    task_service.add_note(db, north_user, task.id, content="Kept")
    note = task_service.add_note(db, north_user, task.id, content="Legacy")
    db.execute(update(TaskNote).where(TaskNote.id == note.id).values(office_id=None))
    db.commit()

    with pytest.raises(InvariantViolationError):
        task_service.list_notes(db, scope_for(north_user), task.id)
