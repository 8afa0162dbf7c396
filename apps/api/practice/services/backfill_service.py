"""Tenancy backfill - retrofit offices onto data created before offices existed.

Run from the admin CLI (`practice backfill-tenancy`). Every step is idempotent
and committed on its own, so a failed run is recovered by running again from
the top. A second successful run changes nothing.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Callable, Iterator
from uuid import UUID

from alembic.operations import Operations
from alembic.runtime.migration import MigrationContext
from sqlalchemy import Uuid, func, inspect, select, text, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from practice.core.config import Settings, settings
from practice.core.errors import InvariantViolationError, PracticeError, ValidationError
from practice.db.enums import AuditEventType
from practice.db.models import PATIENT_SCOPED_MODELS, Patient, Task, TaskNote, User
from practice.schemas.tenancy import BackfillReport, BackfillStepResult, BackfillStepStatus
from practice.services import audit_service, office_service, staff_service

logger = logging.getLogger(__name__)

BACKFILL_LOCK_ID = 9823418


@dataclass
class BackfillConfig:
    """Seed data for a backfill run. Injected so tests never touch settings."""

    default_office_name: str
    seed_offices: list[str] = field(default_factory=list)
    staff_roster: dict[str, list[str]] = field(default_factory=dict)
    staff_emails: list[str] = field(default_factory=list)
    head_office_emails: list[str] = field(default_factory=list)

    @classmethod
    def from_settings(
        cls,
        source: Settings = settings,
        default_office_name: str | None = None,
    ) -> "BackfillConfig":
        return cls(
            default_office_name=default_office_name or source.DEFAULT_OFFICE_NAME,
            seed_offices=source.seed_offices_list,
            staff_roster=dict(source.STAFF_ROSTER),
            staff_emails=source.default_office_staff_emails_list,
            head_office_emails=source.head_office_emails_list,
        )


@dataclass
class _RunState:
    config: BackfillConfig
    default_office_id: UUID | None = None


StepResult = tuple[int, dict[str, int]]


# =============================================================================
# Steps
# =============================================================================


def _ensure_offices(db: Session, state: _RunState) -> StepResult:
    config = state.config
    names = list(config.seed_offices)
    if config.default_office_name.strip().lower() not in {n.strip().lower() for n in names}:
        names.append(config.default_office_name)

    created = 0
    for name in names:
        office, was_created = office_service.ensure_office(db, name)
        created += int(was_created)
        if office.name.lower() == config.default_office_name.strip().lower():
            state.default_office_id = office.id
    return created, {"offices_created": created}


def _seed_staff_roster(db: Session, state: _RunState) -> StepResult:
    created = 0
    details: dict[str, int] = {}
    for office_name, names in state.config.staff_roster.items():
        office = office_service.get_office_by_name(db, office_name)
        if office is None:
            raise ValidationError(
                f"Staff roster names unknown office '{office_name}'", field="staff_roster"
            )
        added = 0
        for display_name in names:
            _, was_created = staff_service.ensure_staff_member(db, office.id, display_name)
            added += int(was_created)
        details[office.name] = added
        created += added
    return created, details


def _assign_patients(db: Session, state: _RunState) -> StepResult:
    # The IS NULL guard makes this single-assignment even under concurrent runs
    result = db.execute(
        update(Patient.__table__)
        .where(Patient.__table__.c.office_id.is_(None))
        .values(office_id=state.default_office_id)
    )
    return result.rowcount, {"patients": result.rowcount}


def _propagate_child_offices(db: Session, state: _RunState) -> StepResult:
    patients = Patient.__table__
    details: dict[str, int] = {}
    for model in PATIENT_SCOPED_MODELS:
        table = model.__table__
        result = db.execute(
            update(table)
            .where(
                table.c.office_id.is_(None),
                table.c.patient_id.in_(
                    select(patients.c.id).where(patients.c.office_id.is_not(None))
                ),
            )
            .values(
                office_id=select(patients.c.office_id)
                .where(patients.c.id == table.c.patient_id)
                .scalar_subquery()
            )
        )
        details[table.name] = result.rowcount

    # Notes hang off tasks, so they run after tasks were filled above
    tasks = Task.__table__
    notes = TaskNote.__table__
    result = db.execute(
        update(notes)
        .where(
            notes.c.office_id.is_(None),
            notes.c.task_id.in_(select(tasks.c.id).where(tasks.c.office_id.is_not(None))),
        )
        .values(
            office_id=select(tasks.c.office_id)
            .where(tasks.c.id == notes.c.task_id)
            .scalar_subquery()
        )
    )
    details[notes.name] = result.rowcount
    return sum(details.values()), details


def _promote_staff_accounts(db: Session, state: _RunState) -> StepResult:
    config = state.config
    head_emails = sorted({e.strip().lower() for e in config.head_office_emails if e.strip()})
    staff_emails = sorted(
        {e.strip().lower() for e in config.staff_emails if e.strip()} | set(head_emails)
    )

    assigned = 0
    if staff_emails:
        assigned = db.execute(
            update(User.__table__)
            .where(
                func.lower(User.__table__.c.email).in_(staff_emails),
                User.__table__.c.office_id.is_(None),
            )
            .values(office_id=state.default_office_id)
        ).rowcount

    granted = 0
    if head_emails:
        granted = db.execute(
            update(User.__table__)
            .where(
                func.lower(User.__table__.c.email).in_(head_emails),
                User.__table__.c.can_view_all_offices.is_(False),
            )
            .values(can_view_all_offices=True)
        ).rowcount

    return assigned + granted, {"office_assigned": assigned, "cross_office_granted": granted}


def _tighten_patient_office(db: Session, state: _RunState) -> StepResult:
    remaining = db.execute(
        select(func.count()).select_from(Patient).where(Patient.office_id.is_(None))
    ).scalar_one()
    if remaining:
        logger.error(
            "Patients still without office after backfill",
            extra={"event": "tenancy_invariant_violation", "patients": remaining},
        )
        raise InvariantViolationError(f"{remaining} patients still have no office")

    connection = db.connection()
    columns = {c["name"]: c for c in inspect(connection).get_columns("patients")}
    if not columns["office_id"]["nullable"]:
        return 0, {"columns_altered": 0}

    # Batch mode recreates the table where ALTER COLUMN is unsupported (SQLite)
    op = Operations(MigrationContext.configure(connection))
    with op.batch_alter_table("patients") as batch_op:
        batch_op.alter_column("office_id", existing_type=Uuid(), nullable=False)
    return 1, {"columns_altered": 1}


STEPS: list[tuple[str, Callable[[Session, _RunState], StepResult]]] = [
    ("ensure_offices", _ensure_offices),
    ("seed_staff_roster", _seed_staff_roster),
    ("assign_patients", _assign_patients),
    ("propagate_child_offices", _propagate_child_offices),
    ("promote_staff_accounts", _promote_staff_accounts),
    ("tighten_patient_office", _tighten_patient_office),
]


# =============================================================================
# Runner
# =============================================================================


@contextmanager
def _run_lock(db: Session) -> Iterator[None]:
    """Serialize concurrent runs on PostgreSQL with a session advisory lock."""
    bind = db.get_bind()
    if bind.dialect.name != "postgresql":
        yield
        return

    # Held on a dedicated connection: the session's connection is returned to
    # the pool after every step's commit.
    with bind.connect() as connection:
        connection.execute(text("SELECT pg_advisory_lock(:lock_id)"), {"lock_id": BACKFILL_LOCK_ID})
        connection.commit()
        try:
            yield
        finally:
            connection.execute(
                text("SELECT pg_advisory_unlock(:lock_id)"), {"lock_id": BACKFILL_LOCK_ID}
            )
            connection.commit()


def run_backfill(db: Session, config: BackfillConfig) -> BackfillReport:
    """
    Run every backfill step in order and report per-step results.

    The default office is never inferred: config.default_office_name must
    name it.

    Raises:
        ValidationError: no default office configured
    """
    if not (config.default_office_name or "").strip():
        raise ValidationError(
            "A default office name is required for the backfill", field="default_office_name"
        )

    state = _RunState(config=config)
    results: list[BackfillStepResult] = []
    failed = False

    with _run_lock(db):
        for name, step in STEPS:
            if failed:
                results.append(BackfillStepResult(name=name, status=BackfillStepStatus.SKIPPED))
                continue
            try:
                rows, details = step(db, state)
                db.commit()
            except (PracticeError, SQLAlchemyError) as exc:
                db.rollback()
                logger.error(
                    "Backfill step failed",
                    extra={"step": name, "error_type": type(exc).__name__},
                )
                results.append(
                    BackfillStepResult(name=name, status=BackfillStepStatus.FAILED, error=str(exc))
                )
                failed = True
                continue
            logger.info("Backfill step complete", extra={"step": name, "rows": rows})
            results.append(
                BackfillStepResult(
                    name=name, status=BackfillStepStatus.OK, rows_affected=rows, details=details
                )
            )

        if not failed:
            audit_service.log_event(
                db,
                AuditEventType.BACKFILL_COMPLETED,
                office_id=state.default_office_id,
                target_type="backfill",
                details={r.name: r.rows_affected for r in results},
            )
            db.commit()

    return BackfillReport(
        default_office_id=state.default_office_id,
        steps=results,
        succeeded=not failed,
    )
