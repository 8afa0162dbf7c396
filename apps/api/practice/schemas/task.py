"""Pydantic schemas for tasks and task notes."""

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, Field

from practice.db.enums import TaskPriority, TaskStatus


class TaskCreate(BaseModel):
    """
    Request to create a task.

    No office field: the office always comes from the patient.
    """
    patient_id: UUID
    title: str = Field(..., max_length=255)
    assignee: str = Field(..., max_length=255)
    priority: TaskPriority = TaskPriority.NORMAL
    description: str | None = Field(None, max_length=5000)
    due_date: date | None = None


class TaskUpdate(BaseModel):
    """Request to update a task (partial)."""
    title: str | None = Field(None, max_length=255)
    description: str | None = Field(None, max_length=5000)
    priority: TaskPriority | None = None
    due_date: date | None = None


class TaskAssign(BaseModel):
    assignee: str = Field(..., max_length=255)


class TaskRead(BaseModel):
    """Full task response."""
    id: UUID
    patient_id: UUID
    office_id: UUID | None
    title: str
    description: str | None
    assignee: str
    assignee_staff_id: UUID | None
    priority: TaskPriority
    due_date: date | None
    status: TaskStatus
    completed_by: str | None
    completed_at: datetime | None
    cancelled_at: datetime | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class TaskListResponse(BaseModel):
    items: list[TaskRead]
    total: int


class TaskNoteCreate(BaseModel):
    content: str | None = Field(None, max_length=10000)
    image_refs: list[str] = Field(default_factory=list)


class TaskNoteRead(BaseModel):
    id: int
    task_id: UUID
    content: str | None
    image_refs: list[str]
    created_by: str
    created_at: datetime

    model_config = {"from_attributes": True}
