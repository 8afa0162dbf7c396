"""Pydantic schemas for treatment milestones."""

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, Field

from practice.db.enums import MilestoneStatus


class MilestoneCreate(BaseModel):
    patient_id: UUID
    name: str = Field(..., max_length=255)
    assignee: str | None = Field(None, max_length=255)
    due_date: date | None = None
    task_id: UUID | None = None


class PipelineCreate(BaseModel):
    """Instantiate a treatment pipeline. names=None uses the configured default."""
    patient_id: UUID
    names: list[str] | None = None


class MilestoneTransition(BaseModel):
    status: MilestoneStatus
    assignee: str | None = Field(None, max_length=255)


class MilestoneRead(BaseModel):
    id: UUID
    patient_id: UUID
    office_id: UUID | None
    task_id: UUID | None
    name: str
    position: int
    status: MilestoneStatus
    assignee: str | None
    due_date: date | None
    started_at: datetime | None
    completed_by: str | None
    completed_at: datetime | None
    created_at: datetime

    model_config = {"from_attributes": True}
