"""Pydantic schemas for patients and office-scoped clinical records."""

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, Field


class PatientCreate(BaseModel):
    """
    Request to create a patient.

    office_id is only honoured for users who can view all offices; everyone
    else creates patients in their own office.
    """
    name: str = Field(..., max_length=255)
    office_id: UUID | None = None
    date_of_birth: date | None = None
    phone: str | None = Field(None, max_length=50)
    email: str | None = Field(None, max_length=255)
    payment_status: str | None = Field(None, max_length=50)
    predetermination_status: str | None = Field(None, max_length=50)
    upper_denture_type: str | None = Field(None, max_length=100)
    lower_denture_type: str | None = Field(None, max_length=100)
    is_cdcp: bool = False
    work_insurance: bool = False
    copay_discussed: bool = False
    current_tooth_shade: str | None = Field(None, max_length=20)
    requested_tooth_shade: str | None = Field(None, max_length=20)


class PatientRead(BaseModel):
    id: UUID
    office_id: UUID | None
    name: str
    date_of_birth: date | None
    phone: str | None
    email: str | None
    payment_status: str | None
    predetermination_status: str | None
    upper_denture_type: str | None
    lower_denture_type: str | None
    is_cdcp: bool
    work_insurance: bool
    copay_discussed: bool
    current_tooth_shade: str | None
    requested_tooth_shade: str | None
    created_at: datetime

    model_config = {"from_attributes": True}


class PatientListResponse(BaseModel):
    items: list[PatientRead]
    total: int


class ClinicalNoteCreate(BaseModel):
    content: str = Field(..., max_length=50000)
    appointment_id: UUID | None = None


class ClinicalNoteRead(BaseModel):
    id: UUID
    patient_id: UUID
    office_id: UUID | None
    appointment_id: UUID | None
    content: str
    created_by: str
    created_at: datetime

    model_config = {"from_attributes": True}


class PatientFileCreate(BaseModel):
    """Metadata for an already-uploaded object."""
    filename: str = Field(..., max_length=255)
    file_size: int = Field(..., ge=0)
    file_type: str = Field(..., max_length=100)
    storage_key: str


class PatientFileRead(BaseModel):
    id: UUID
    patient_id: UUID
    office_id: UUID | None
    filename: str
    file_size: int
    file_type: str
    storage_key: str
    uploaded_by: str
    uploaded_at: datetime

    model_config = {"from_attributes": True}
