"""Patient and office-scoped clinical record models."""

from __future__ import annotations

import uuid
from datetime import date, datetime

from sqlalchemy import Boolean, Date, ForeignKey, Integer, String, Text, Uuid, func, text
from sqlalchemy.orm import Mapped, declared_attr, mapped_column, relationship

from practice.db.base import Base
from practice.db.models.offices import Office, utcnow


class Patient(Base):
    """
    Patient chart. The patient's office is authoritative for every child record.

    office_id is nullable only until the tenancy backfill tightens it.
    """

    __tablename__ = "patients"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    office_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("offices.id", ondelete="RESTRICT"), nullable=True, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    date_of_birth: Mapped[date | None] = mapped_column(Date, nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Treatment / billing status
    payment_status: Mapped[str | None] = mapped_column(String(50), nullable=True)
    predetermination_status: Mapped[str | None] = mapped_column(String(50), nullable=True)
    upper_denture_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    lower_denture_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    is_cdcp: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default=text("false"), nullable=False
    )
    work_insurance: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default=text("false"), nullable=False
    )
    copay_discussed: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default=text("false"), nullable=False
    )
    current_tooth_shade: Mapped[str | None] = mapped_column(String(20), nullable=True)
    requested_tooth_shade: Mapped[str | None] = mapped_column(String(20), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        default=utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        default=utcnow, server_default=func.now(), onupdate=utcnow, nullable=False
    )

    office: Mapped["Office | None"] = relationship()


class PatientScopedMixin:
    """
    patient_id + denormalized office_id.

    office_id must always equal the parent patient's office_id. It is never
    supplied by callers; services copy it from the patient.
    """

    @declared_attr
    def patient_id(cls) -> Mapped[uuid.UUID]:
        return mapped_column(
            Uuid, ForeignKey("patients.id", ondelete="CASCADE"), nullable=False, index=True
        )

    @declared_attr
    def office_id(cls) -> Mapped[uuid.UUID | None]:
        return mapped_column(
            Uuid, ForeignKey("offices.id", ondelete="RESTRICT"), nullable=True, index=True
        )


class ClinicalNote(PatientScopedMixin, Base):
    __tablename__ = "clinical_notes"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    appointment_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("appointments.id", ondelete="SET NULL"), nullable=True
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_by: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        default=utcnow, server_default=func.now(), nullable=False
    )


class LabNote(PatientScopedMixin, Base):
    __tablename__ = "lab_notes"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_by: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        default=utcnow, server_default=func.now(), nullable=False
    )


class AdminNote(PatientScopedMixin, Base):
    __tablename__ = "admin_notes"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_by: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        default=utcnow, server_default=func.now(), nullable=False
    )


class LabPrescription(PatientScopedMixin, Base):
    __tablename__ = "lab_prescriptions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    lab_name: Mapped[str] = mapped_column(String(255), nullable=False)
    arch: Mapped[str | None] = mapped_column(String(20), nullable=True)
    fabrication_stage_upper: Mapped[str | None] = mapped_column(String(100), nullable=True)
    fabrication_stage_lower: Mapped[str | None] = mapped_column(String(100), nullable=True)
    instructions: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        default=utcnow, server_default=func.now(), nullable=False
    )


class PatientFile(PatientScopedMixin, Base):
    """Uploaded file metadata. storage_key is an opaque object-store reference."""

    __tablename__ = "patient_files"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    filename: Mapped[str] = mapped_column(String(255), nullable=False)
    file_size: Mapped[int] = mapped_column(Integer, nullable=False)
    file_type: Mapped[str] = mapped_column(String(100), nullable=False)
    storage_key: Mapped[str] = mapped_column(Text, nullable=False)
    uploaded_by: Mapped[str] = mapped_column(String(255), nullable=False)
    uploaded_at: Mapped[datetime] = mapped_column(
        default=utcnow, server_default=func.now(), nullable=False
    )


class Appointment(PatientScopedMixin, Base):
    __tablename__ = "appointments"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    appointment_date: Mapped[datetime] = mapped_column(nullable=False)
    appointment_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    status: Mapped[str] = mapped_column(
        String(30), default="scheduled", server_default=text("'scheduled'"), nullable=False
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        default=utcnow, server_default=func.now(), nullable=False
    )
