"""Patients router - office-scoped patient charts."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from practice.core.access_policy import OfficeScope
from practice.core.deps import (
    get_current_user,
    get_db,
    get_office_scope,
    require_csrf_header,
)
from practice.db.models import ClinicalNote, PatientFile
from practice.schemas.milestone import MilestoneRead
from practice.schemas.patient import (
    ClinicalNoteCreate,
    ClinicalNoteRead,
    PatientCreate,
    PatientFileCreate,
    PatientFileRead,
    PatientListResponse,
    PatientRead,
)
from practice.services import milestone_service, patient_service

router = APIRouter()


@router.get("", response_model=PatientListResponse)
def list_patients(
    q: str | None = Query(None, description="Search in name, email and phone"),
    scope: OfficeScope = Depends(get_office_scope),
    db: Session = Depends(get_db),
):
    """
    List patients.

    Head office users may pass office_id to narrow to one office; everyone
    else always sees their own office.
    """
    patients = patient_service.list_patients(db, scope, q=q)
    return PatientListResponse(items=patients, total=len(patients))


@router.post(
    "",
    response_model=PatientRead,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def create_patient(
    data: PatientCreate,
    user=Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return patient_service.create_patient(db, user, data)


@router.get("/{patient_id}", response_model=PatientRead)
def get_patient(
    patient_id: UUID,
    scope: OfficeScope = Depends(get_office_scope),
    db: Session = Depends(get_db),
):
    return patient_service.get_patient(db, scope, patient_id)


# =============================================================================
# Clinical notes
# =============================================================================

@router.get("/{patient_id}/clinical-notes", response_model=list[ClinicalNoteRead])
def list_clinical_notes(
    patient_id: UUID,
    scope: OfficeScope = Depends(get_office_scope),
    db: Session = Depends(get_db),
):
    return patient_service.list_child_records(db, scope, patient_id, ClinicalNote)


@router.post(
    "/{patient_id}/clinical-notes",
    response_model=ClinicalNoteRead,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def add_clinical_note(
    patient_id: UUID,
    data: ClinicalNoteCreate,
    user=Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return patient_service.add_clinical_note(
        db, user, patient_id, data.content, appointment_id=data.appointment_id
    )


# =============================================================================
# Files (metadata only; bytes live in object storage)
# =============================================================================

@router.get("/{patient_id}/files", response_model=list[PatientFileRead])
def list_patient_files(
    patient_id: UUID,
    scope: OfficeScope = Depends(get_office_scope),
    db: Session = Depends(get_db),
):
    return patient_service.list_child_records(db, scope, patient_id, PatientFile)


@router.post(
    "/{patient_id}/files",
    response_model=PatientFileRead,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def add_patient_file(
    patient_id: UUID,
    data: PatientFileCreate,
    user=Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return patient_service.add_patient_file(
        db, user, patient_id, data.filename, data.file_size, data.file_type, data.storage_key
    )


@router.get("/{patient_id}/milestones", response_model=list[MilestoneRead])
def list_patient_milestones(
    patient_id: UUID,
    scope: OfficeScope = Depends(get_office_scope),
    db: Session = Depends(get_db),
):
    """The patient's treatment pipeline in order."""
    return milestone_service.list_milestones(db, scope, patient_id)
