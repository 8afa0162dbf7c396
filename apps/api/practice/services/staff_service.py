"""Staff directory - roster of assignable staff per office.

Task assignees are validated against this roster at write time. The roster is
read from the store on every call and never cached, so roster edits apply on
the next task-creation view.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from practice.core.access_policy import OfficeUser
from practice.core.errors import DuplicateNameError, ValidationError
from practice.db.models import StaffMember


@dataclass(frozen=True)
class StaffEntry:
    id: UUID
    office_id: UUID
    display_name: str


@dataclass(frozen=True)
class StaffRoster:
    """Immutable snapshot: office_id -> active staff, in name order."""

    by_office: dict[UUID, tuple[StaffEntry, ...]] = field(default_factory=dict)

    def for_office(self, office_id: UUID | None) -> list[StaffEntry]:
        if office_id is None:
            return []
        return list(self.by_office.get(office_id, ()))

    def all_members(self) -> list[StaffEntry]:
        members = [entry for entries in self.by_office.values() for entry in entries]
        return sorted(members, key=lambda e: (e.display_name.lower(), str(e.office_id)))


def build_roster(entries: list[StaffEntry]) -> StaffRoster:
    """Group entries by office (used by load_roster and by test fixtures)."""
    grouped: dict[UUID, list[StaffEntry]] = {}
    for entry in entries:
        grouped.setdefault(entry.office_id, []).append(entry)
    return StaffRoster(
        by_office={
            office_id: tuple(sorted(items, key=lambda e: e.display_name.lower()))
            for office_id, items in grouped.items()
        }
    )


def load_roster(db: Session) -> StaffRoster:
    """Load the active roster from the store."""
    rows = db.execute(
        select(StaffMember).where(StaffMember.is_active.is_(True))
    ).scalars().all()
    return build_roster(
        [StaffEntry(id=r.id, office_id=r.office_id, display_name=r.display_name) for r in rows]
    )


def visible_staff(user: OfficeUser, roster: StaffRoster) -> list[StaffEntry]:
    """
    Staff the user may pick as an assignee.

    Cross-office users see every office's roster; everyone else sees only
    their own office.
    """
    if user.can_view_all_offices:
        return roster.all_members()
    return roster.for_office(user.office_id)


def resolve_assignee(
    user: OfficeUser,
    roster: StaffRoster,
    assignee: str | None,
    office_id: UUID | None = None,
) -> StaffEntry:
    """
    Match a free-text assignee against the staff visible to user.

    Matching is case-insensitive. When several offices have staff with the
    same name, the one in office_id wins.

    Raises:
        ValidationError: blank assignee, or not on the visible roster
    """
    name = (assignee or "").strip()
    if not name:
        raise ValidationError("Assignee is required", field="assignee")

    matches = [e for e in visible_staff(user, roster) if e.display_name.lower() == name.lower()]
    if not matches:
        raise ValidationError(f"Unknown assignee '{name}'", field="assignee")
    for entry in matches:
        if entry.office_id == office_id:
            return entry
    return matches[0]


def get_staff_member_by_name(db: Session, office_id: UUID, display_name: str) -> StaffMember | None:
    return db.execute(
        select(StaffMember).where(
            StaffMember.office_id == office_id,
            func.lower(StaffMember.display_name) == display_name.strip().lower(),
        )
    ).scalar_one_or_none()


def add_staff_member(
    db: Session,
    office_id: UUID,
    display_name: str,
    commit: bool = True,
) -> StaffMember:
    """Add a staff member to an office roster."""
    name = (display_name or "").strip()
    if not name:
        raise ValidationError("Display name is required", field="display_name")
    if get_staff_member_by_name(db, office_id, name):
        raise DuplicateNameError(f"Staff member '{name}' already exists in this office")

    member = StaffMember(office_id=office_id, display_name=name)
    try:
        db.add(member)
        db.flush()
    except IntegrityError:
        db.rollback()
        raise DuplicateNameError(f"Staff member '{name}' already exists in this office")
    if commit:
        db.commit()
        db.refresh(member)
    return member


def ensure_staff_member(db: Session, office_id: UUID, display_name: str) -> tuple[StaffMember, bool]:
    """Create-if-absent. Does not commit."""
    existing = get_staff_member_by_name(db, office_id, display_name)
    if existing:
        return existing, False
    return add_staff_member(db, office_id, display_name, commit=False), True
