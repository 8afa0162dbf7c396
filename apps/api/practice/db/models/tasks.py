"""Treatment task, task note and milestone models."""

from __future__ import annotations

import uuid
from datetime import date, datetime

from sqlalchemy import (
    JSON,
    BigInteger,
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Uuid,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from practice.db.base import Base
from practice.db.enums import MilestoneStatus, TaskPriority, TaskStatus
from practice.db.models.offices import utcnow
from practice.db.models.patients import Patient, PatientScopedMixin


class Task(PatientScopedMixin, Base):
    """
    Staff to-do item attached to a patient.

    Any staff member in the patient's office may edit or reassign it
    (no ownership lock). Tasks are cancelled, never deleted.
    """

    __tablename__ = "tasks"
    __table_args__ = (
        Index("idx_tasks_office_status", "office_id", "status"),
        Index("idx_tasks_office_assignee", "office_id", "assignee"),
        CheckConstraint(
            "status <> 'completed' OR (completed_by IS NOT NULL AND completed_at IS NOT NULL)",
            name="ck_tasks_completion_actor",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Display name kept for legacy rows; assignee_staff_id is set when the
    # name was validated against the roster.
    assignee: Mapped[str] = mapped_column(String(255), nullable=False)
    assignee_staff_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("staff_members.id", ondelete="SET NULL"), nullable=True
    )

    priority: Mapped[str] = mapped_column(
        String(10),
        default=TaskPriority.NORMAL.value,
        server_default=text(f"'{TaskPriority.NORMAL.value}'"),
        nullable=False,
    )
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    status: Mapped[str] = mapped_column(
        String(20),
        default=TaskStatus.OPEN.value,
        server_default=text(f"'{TaskStatus.OPEN.value}'"),
        nullable=False,
    )
    completed_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(nullable=True)
    created_by_user_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        default=utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        default=utcnow, server_default=func.now(), onupdate=utcnow, nullable=False
    )

    patient: Mapped["Patient"] = relationship()
    notes: Mapped[list["TaskNote"]] = relationship(
        back_populates="task", order_by="TaskNote.id"
    )

    @property
    def is_open(self) -> bool:
        return self.status == TaskStatus.OPEN.value


class TaskNote(Base):
    """
    Append-only note on a task: text and/or up to 5 image references.

    The integer id is the ordering key (insertion order).
    """

    __tablename__ = "task_notes"
    __table_args__ = (Index("idx_task_notes_task", "task_id", "id"),)

    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True
    )
    task_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False
    )
    office_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("offices.id", ondelete="RESTRICT"), nullable=True, index=True
    )
    content: Mapped[str | None] = mapped_column(Text, nullable=True)
    image_refs: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    created_by: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        default=utcnow, server_default=func.now(), nullable=False
    )

    task: Mapped["Task"] = relationship(back_populates="notes")


class Milestone(PatientScopedMixin, Base):
    """
    One step of a patient's treatment pipeline.

    pending -> in_progress -> completed; completed is terminal. Reopening is
    modelled by appending a new milestone.
    """

    __tablename__ = "milestones"
    __table_args__ = (
        Index("uq_milestones_patient_position", "patient_id", "position", unique=True),
        CheckConstraint(
            "status <> 'completed' OR (completed_by IS NOT NULL AND completed_at IS NOT NULL)",
            name="ck_milestones_completion_actor",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    task_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("tasks.id", ondelete="SET NULL"), nullable=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20),
        default=MilestoneStatus.PENDING.value,
        server_default=text(f"'{MilestoneStatus.PENDING.value}'"),
        nullable=False,
    )
    assignee: Mapped[str | None] = mapped_column(String(255), nullable=True)
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    started_at: Mapped[datetime | None] = mapped_column(nullable=True)
    completed_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        default=utcnow, server_default=func.now(), nullable=False
    )

    patient: Mapped["Patient"] = relationship()
