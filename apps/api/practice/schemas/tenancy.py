"""Schemas for the tenancy backfill, diagnostics and patient moves.

These are the machine-readable results printed by the admin CLI.
"""

from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field


class BackfillStepStatus(str, Enum):
    OK = "ok"
    FAILED = "failed"
    SKIPPED = "skipped"


class BackfillStepResult(BaseModel):
    name: str
    status: BackfillStepStatus
    rows_affected: int = 0
    details: dict[str, int] = Field(default_factory=dict)
    error: str | None = None


class BackfillReport(BaseModel):
    default_office_id: UUID | None = None
    steps: list[BackfillStepResult]
    succeeded: bool

    @property
    def total_rows_affected(self) -> int:
        return sum(step.rows_affected for step in self.steps)

    def step(self, name: str) -> BackfillStepResult:
        for result in self.steps:
            if result.name == name:
                return result
        raise KeyError(name)


class OfficePatientCount(BaseModel):
    office_id: UUID | None
    office_name: str | None
    patients: int
    users: int


class TenancyDiagnostics(BaseModel):
    offices: list[OfficePatientCount]
    patients_without_office: int
    users_without_office: int
    restricted_users_without_office: int
    offices_with_patients_but_no_users: list[UUID]
    children_without_office: dict[str, int]
    children_office_mismatch: dict[str, int]

    @property
    def is_consistent(self) -> bool:
        return (
            self.patients_without_office == 0
            and self.restricted_users_without_office == 0
            and not any(self.children_without_office.values())
            and not any(self.children_office_mismatch.values())
        )


class PatientMoveResult(BaseModel):
    target_office_id: UUID
    dry_run: bool
    patients_moved: int
    patients_missing: list[UUID]
    records_moved: dict[str, int]
