"""Tenant (office), user and staff roster models."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String, Uuid, func, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from practice.db.base import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Office(Base):
    """
    A tenant. Owns a disjoint set of patients and their records.

    Never deleted: deleting an office would orphan every record that
    references it. Only the name is editable.
    """

    __tablename__ = "offices"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        default=utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        default=utcnow, server_default=func.now(), onupdate=utcnow, nullable=False
    )


# Case-insensitive uniqueness, enforced by the store for concurrent creators
Index("uq_offices_name_lower", func.lower(Office.name), unique=True)


class User(Base):
    """
    Staff login account.

    can_view_all_offices=False users must have an office; every operation
    they perform is scoped to it.
    """

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    display_name: Mapped[str] = mapped_column(String(255), nullable=False)
    office_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("offices.id", ondelete="RESTRICT"), nullable=True, index=True
    )
    can_view_all_offices: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default=text("false"), nullable=False
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean, default=True, server_default=text("true"), nullable=False
    )
    token_version: Mapped[int] = mapped_column(
        Integer, default=1, server_default=text("1"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        default=utcnow, server_default=func.now(), nullable=False
    )

    office: Mapped["Office | None"] = relationship()


class StaffMember(Base):
    """
    Assignable staff roster entry.

    Tasks keep the display name for legacy rows; new assignments are
    validated against this roster.
    """

    __tablename__ = "staff_members"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    office_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("offices.id", ondelete="RESTRICT"), nullable=False
    )
    display_name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(
        Boolean, default=True, server_default=text("true"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        default=utcnow, server_default=func.now(), nullable=False
    )

    office: Mapped["Office"] = relationship()


Index(
    "uq_staff_members_office_name",
    StaffMember.office_id,
    func.lower(StaffMember.display_name),
    unique=True,
)
