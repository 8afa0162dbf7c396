"""SQLAlchemy ORM models."""

from practice.db.models.audit import AuditLog
from practice.db.models.offices import Office, StaffMember, User
from practice.db.models.patients import (
    AdminNote,
    Appointment,
    ClinicalNote,
    LabNote,
    LabPrescription,
    Patient,
    PatientFile,
)
from practice.db.models.tasks import Milestone, Task, TaskNote

# Every table whose office_id is derived from patients.office_id
PATIENT_SCOPED_MODELS = (
    ClinicalNote,
    LabNote,
    AdminNote,
    Task,
    LabPrescription,
    PatientFile,
    Appointment,
    Milestone,
)

__all__ = [
    "AdminNote",
    "Appointment",
    "AuditLog",
    "ClinicalNote",
    "LabNote",
    "LabPrescription",
    "Milestone",
    "Office",
    "PATIENT_SCOPED_MODELS",
    "Patient",
    "PatientFile",
    "StaffMember",
    "Task",
    "TaskNote",
    "User",
]
