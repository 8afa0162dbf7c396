"""Pydantic schemas for offices and staff."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field


class OfficeCreate(BaseModel):
    name: str = Field(..., max_length=255)


class OfficeRename(BaseModel):
    name: str = Field(..., max_length=255)


class OfficeRead(BaseModel):
    id: UUID
    name: str
    created_at: datetime

    model_config = {"from_attributes": True}


class StaffRead(BaseModel):
    """Assignable staff member (as shown in the task form)."""
    id: UUID
    office_id: UUID
    display_name: str

    model_config = {"from_attributes": True}


class StaffCreate(BaseModel):
    office_id: UUID
    display_name: str = Field(..., max_length=255)
