"""Tests for the office (tenant) directory."""

import uuid

import pytest

from practice.core.errors import (
    DuplicateNameError,
    InvariantViolationError,
    NotFoundError,
    ValidationError,
)
from practice.db.enums import AuditEventType
from practice.services import audit_service, office_service


def test_create_office_trims_name_and_audits(db):
    office = office_service.create_office(db, "  Downtown  ")

    assert office.name == "Downtown"
    events = audit_service.list_events(db, AuditEventType.OFFICE_CREATED, target_id=office.id)
    assert len(events) == 1
    assert events[0].office_id == office.id


def test_create_office_rejects_blank_name(db):
    with pytest.raises(ValidationError) as exc:
        office_service.create_office(db, "   ")
    assert exc.value.field == "name"


def test_create_office_rejects_case_insensitive_duplicate(db):
    office_service.create_office(db, "Downtown")
    with pytest.raises(DuplicateNameError):
        office_service.create_office(db, "DOWNTOWN")
    assert len(office_service.list_offices(db)) == 1


def test_ensure_office_is_idempotent(db):
    first, created = office_service.ensure_office(db, "Uptown")
    db.commit()
    second, created_again = office_service.ensure_office(db, "uptown")

    assert created is True
    assert created_again is False
    assert first.id == second.id


def test_list_offices_is_ordered_by_name(db):
    for name in ("West", "East", "North"):
        office_service.create_office(db, name)
    assert [o.name for o in office_service.list_offices(db)] == ["East", "North", "West"]


def test_rename_office(db, north, south):
    renamed = office_service.rename_office(db, north.id, "North Clinic")
    assert renamed.name == "North Clinic"

    with pytest.raises(DuplicateNameError):
        office_service.rename_office(db, north.id, "south")

    # Renaming to its own name in another case is not a clash
    assert office_service.rename_office(db, north.id, "NORTH CLINIC").name == "NORTH CLINIC"


def test_rename_missing_office(db):
    with pytest.raises(NotFoundError):
        office_service.rename_office(db, uuid.uuid4(), "Anything")


def test_resolve_office_for_patient(db, north, north_patient):
    assert office_service.resolve_office_for_patient(db, north_patient.id).id == north.id


def test_resolve_office_for_unassigned_patient_is_invariant_violation(db, patient_factory, caplog):
    patient = patient_factory(None, "Legacy Patient")
    with pytest.raises(InvariantViolationError):
        office_service.resolve_office_for_patient(db, patient.id)
    assert any(
        getattr(r, "event", None) == "tenancy_invariant_violation" for r in caplog.records
    )


def test_resolve_office_for_missing_patient(db):
    with pytest.raises(NotFoundError):
        office_service.resolve_office_for_patient(db, uuid.uuid4())
