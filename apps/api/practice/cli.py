"""CLI tools for practice tenancy administration."""

import sys
from uuid import UUID

import click
from sqlalchemy.exc import SQLAlchemyError

from practice.core.errors import PracticeError
from practice.core.structured_logging import configure_logging
from practice.db.session import SessionLocal


@click.group()
@click.option("--log-level", default=None, help="Override LOG_LEVEL for this run")
def cli(log_level: str | None):
    """Practice CLI tools."""
    configure_logging(log_level)


def _fail(message: str) -> None:
    click.echo(f"❌ {message}", err=True)
    sys.exit(1)


@cli.command()
@click.option("--name", required=True, help="Office name")
def create_office(name: str):
    """
    Create an office (tenant).

    Example:
        python -m practice.cli create-office --name "Downtown"
    """
    from practice.services import office_service

    db = SessionLocal()
    try:
        office = office_service.create_office(db, name)
        click.echo(f"✓ Created office: {office.name}")
        click.echo(f"  ID: {office.id}")
    except (PracticeError, SQLAlchemyError) as e:
        db.rollback()
        _fail(f"Error: {e}")
    finally:
        db.close()


@cli.command()
@click.option("--name", required=True, help="Current office name")
@click.option("--new-name", required=True, help="New office name")
def rename_office(name: str, new_name: str):
    """
    Rename an office. Offices are never deleted.

    Example:
        python -m practice.cli rename-office --name "Downtown" --new-name "Downtown Clinic"
    """
    from practice.services import office_service

    db = SessionLocal()
    try:
        office = office_service.get_office_by_name(db, name)
        if not office:
            _fail(f"Office not found: {name}")
        office = office_service.rename_office(db, office.id, new_name)
        click.echo(f"✓ Renamed office: {name} → {office.name}")
    except (PracticeError, SQLAlchemyError) as e:
        db.rollback()
        _fail(f"Error: {e}")
    finally:
        db.close()


@cli.command()
def list_offices():
    """List offices with their IDs."""
    from practice.services import office_service

    db = SessionLocal()
    try:
        offices = office_service.list_offices(db)
        if not offices:
            click.echo("No offices")
        for office in offices:
            click.echo(f"{office.id}  {office.name}")
    finally:
        db.close()


@cli.command()
@click.option("--office", "office_name", required=True, help="Office name")
@click.option("--name", "names", multiple=True, required=True, help="Staff display name (repeatable)")
def seed_staff(office_name: str, names: tuple[str, ...]):
    """
    Add staff members to an office roster (existing names are kept).

    Example:
        python -m practice.cli seed-staff --office "Downtown" --name "Dana" --name "Lee"
    """
    from practice.services import office_service, staff_service

    db = SessionLocal()
    try:
        office = office_service.get_office_by_name(db, office_name)
        if not office:
            _fail(f"Office not found: {office_name}")
        created = 0
        for display_name in names:
            _, was_created = staff_service.ensure_staff_member(db, office.id, display_name)
            created += int(was_created)
        db.commit()
        click.echo(f"✓ Added {created} staff member(s) to {office.name}")
    except (PracticeError, SQLAlchemyError) as e:
        db.rollback()
        _fail(f"Error: {e}")
    finally:
        db.close()


@cli.command()
@click.option(
    "--default-office",
    default=None,
    help="Office that receives unassigned records (default: DEFAULT_OFFICE_NAME)",
)
def backfill_tenancy(default_office: str | None):
    """
    Assign offices to records created before offices existed.

    Safe to re-run: completed steps report zero rows. Prints a JSON report
    and exits 1 when a step failed.

    Example:
        python -m practice.cli backfill-tenancy --default-office "Downtown"
    """
    from practice.services.backfill_service import BackfillConfig, run_backfill

    db = SessionLocal()
    try:
        config = BackfillConfig.from_settings(default_office_name=default_office)
        report = run_backfill(db, config)
    except PracticeError as e:
        db.rollback()
        _fail(f"Error: {e}")
    finally:
        db.close()

    click.echo(report.model_dump_json(indent=2))
    if not report.succeeded:
        sys.exit(1)


@cli.command()
def diagnose_tenancy():
    """Print office consistency diagnostics as JSON (read-only)."""
    from practice.services import tenancy_service

    db = SessionLocal()
    try:
        diagnostics = tenancy_service.diagnose(db)
    finally:
        db.close()
    click.echo(diagnostics.model_dump_json(indent=2))


@cli.command()
@click.option("--patient-id", "patient_ids", multiple=True, required=True, type=click.UUID,
              help="Patient to move (repeatable)")
@click.option("--to-office", "office_name", required=True, help="Target office name")
@click.option("--dry-run", is_flag=True, help="Preview changes without applying")
def move_patients(patient_ids: tuple[UUID, ...], office_name: str, dry_run: bool):
    """
    Move patients and all their records to another office.

    Example:
        python -m practice.cli move-patients --patient-id <uuid> --to-office "Uptown" --dry-run
    """
    from practice.services import office_service, tenancy_service

    db = SessionLocal()
    try:
        office = office_service.get_office_by_name(db, office_name)
        if not office:
            _fail(f"Office not found: {office_name}")
        result = tenancy_service.move_patients(
            db, list(patient_ids), office.id, dry_run=dry_run
        )
    except (PracticeError, SQLAlchemyError) as e:
        db.rollback()
        _fail(f"Error: {e}")
    finally:
        db.close()

    if dry_run:
        click.echo("🔍 DRY RUN - no changes were made", err=True)
    click.echo(result.model_dump_json(indent=2))


if __name__ == "__main__":
    cli()
