"""Office support - tenancy columns, staff roster, milestones, task notes

Revision ID: 0002_office_support
Revises: 0001_baseline
Create Date: 2026-10-02

Adds:
- offices, staff_members, audit_logs, task_notes, milestones
- office_id (nullable) on users, patients and every patient-scoped table
- users.can_view_all_offices
- task roster/cancellation columns and completion CHECK constraint

office_id stays nullable here. Existing rows are filled, and
patients.office_id tightened to NOT NULL, by `practice backfill-tenancy`.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0002_office_support'
down_revision: Union[str, Sequence[str], None] = '0001_baseline'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

PATIENT_SCOPED_TABLES = (
    'clinical_notes',
    'lab_notes',
    'admin_notes',
    'tasks',
    'lab_prescriptions',
    'patient_files',
    'appointments',
)

COMPLETION_CHECK = "status <> 'completed' OR (completed_by IS NOT NULL AND completed_at IS NOT NULL)"


def _created_at(name: str = 'created_at') -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False)


def _office_fk(index: bool = True) -> sa.Column:
    return sa.Column(
        'office_id', sa.Uuid(), sa.ForeignKey('offices.id', ondelete='RESTRICT'),
        nullable=True, index=index,
    )


def _add_office_column(table: str) -> None:
    with op.batch_alter_table(table) as batch_op:
        batch_op.add_column(sa.Column('office_id', sa.Uuid(), nullable=True))
        batch_op.create_foreign_key(
            f'fk_{table}_office_id', 'offices', ['office_id'], ['id'], ondelete='RESTRICT'
        )
        batch_op.create_index(f'ix_{table}_office_id', ['office_id'])


def upgrade() -> None:
    # ==========================================================================
    # Offices
    # ==========================================================================
    op.create_table(
        'offices',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        _created_at(),
        _created_at('updated_at'),
    )
    op.create_index('uq_offices_name_lower', 'offices', [sa.text('lower(name)')], unique=True)

    op.create_table(
        'staff_members',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column(
            'office_id', sa.Uuid(), sa.ForeignKey('offices.id', ondelete='RESTRICT'), nullable=False
        ),
        sa.Column('display_name', sa.String(255), nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default=sa.text('true'), nullable=False),
        _created_at(),
    )
    op.create_index(
        'uq_staff_members_office_name',
        'staff_members',
        ['office_id', sa.text('lower(display_name)')],
        unique=True,
    )

    # ==========================================================================
    # Tenancy columns on existing tables (nullable until backfilled)
    # ==========================================================================
    _add_office_column('users')
    with op.batch_alter_table('users') as batch_op:
        batch_op.add_column(
            sa.Column(
                'can_view_all_offices', sa.Boolean(),
                server_default=sa.text('false'), nullable=False,
            )
        )

    _add_office_column('patients')
    for table in PATIENT_SCOPED_TABLES:
        _add_office_column(table)

    with op.batch_alter_table('tasks') as batch_op:
        batch_op.add_column(sa.Column('assignee_staff_id', sa.Uuid(), nullable=True))
        batch_op.add_column(sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True))
        batch_op.add_column(sa.Column('created_by_user_id', sa.Uuid(), nullable=True))
        batch_op.create_foreign_key(
            'fk_tasks_assignee_staff_id', 'staff_members',
            ['assignee_staff_id'], ['id'], ondelete='SET NULL',
        )
        batch_op.create_foreign_key(
            'fk_tasks_created_by_user_id', 'users',
            ['created_by_user_id'], ['id'], ondelete='SET NULL',
        )
        batch_op.create_check_constraint('ck_tasks_completion_actor', COMPLETION_CHECK)
        batch_op.create_index('idx_tasks_office_status', ['office_id', 'status'])
        batch_op.create_index('idx_tasks_office_assignee', ['office_id', 'assignee'])

    # ==========================================================================
    # Task notes (append-only; integer id is the ordering key)
    # ==========================================================================
    op.create_table(
        'task_notes',
        sa.Column(
            'id', sa.BigInteger().with_variant(sa.Integer(), 'sqlite'),
            primary_key=True, autoincrement=True,
        ),
        sa.Column(
            'task_id', sa.Uuid(), sa.ForeignKey('tasks.id', ondelete='CASCADE'), nullable=False
        ),
        _office_fk(),
        sa.Column('content', sa.Text(), nullable=True),
        sa.Column('image_refs', sa.JSON(), nullable=False),
        sa.Column('created_by', sa.String(255), nullable=False),
        _created_at(),
    )
    op.create_index('idx_task_notes_task', 'task_notes', ['task_id', 'id'])

    # ==========================================================================
    # Milestones
    # ==========================================================================
    op.create_table(
        'milestones',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column(
            'patient_id', sa.Uuid(), sa.ForeignKey('patients.id', ondelete='CASCADE'),
            nullable=False, index=True,
        ),
        _office_fk(),
        sa.Column(
            'task_id', sa.Uuid(), sa.ForeignKey('tasks.id', ondelete='SET NULL'), nullable=True
        ),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(20), server_default=sa.text("'pending'"), nullable=False),
        sa.Column('assignee', sa.String(255), nullable=True),
        sa.Column('due_date', sa.Date(), nullable=True),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_by', sa.String(255), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        _created_at(),
        sa.CheckConstraint(COMPLETION_CHECK, name='ck_milestones_completion_actor'),
    )
    op.create_index('uq_milestones_patient_position', 'milestones', ['patient_id', 'position'], unique=True)

    # ==========================================================================
    # Audit log
    # ==========================================================================
    op.create_table(
        'audit_logs',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column(
            'office_id', sa.Uuid(), sa.ForeignKey('offices.id', ondelete='RESTRICT'), nullable=True
        ),
        sa.Column(
            'actor_user_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='SET NULL'),
            nullable=True,
        ),
        sa.Column('event_type', sa.String(50), nullable=False),
        sa.Column('target_type', sa.String(50), nullable=True),
        sa.Column('target_id', sa.String(64), nullable=True),
        sa.Column('details', sa.JSON(), nullable=True),
        _created_at(),
    )
    op.create_index('idx_audit_office_created', 'audit_logs', ['office_id', 'created_at'])
    op.create_index('idx_audit_event_created', 'audit_logs', ['event_type', 'created_at'])


def downgrade() -> None:
    op.drop_table('audit_logs')
    op.drop_table('milestones')
    op.drop_table('task_notes')

    with op.batch_alter_table('tasks') as batch_op:
        batch_op.drop_index('idx_tasks_office_assignee')
        batch_op.drop_index('idx_tasks_office_status')
        batch_op.drop_constraint('ck_tasks_completion_actor', type_='check')
        batch_op.drop_constraint('fk_tasks_created_by_user_id', type_='foreignkey')
        batch_op.drop_constraint('fk_tasks_assignee_staff_id', type_='foreignkey')
        batch_op.drop_column('created_by_user_id')
        batch_op.drop_column('cancelled_at')
        batch_op.drop_column('assignee_staff_id')

    for table in (*PATIENT_SCOPED_TABLES, 'patients', 'users'):
        with op.batch_alter_table(table) as batch_op:
            batch_op.drop_index(f'ix_{table}_office_id')
            batch_op.drop_constraint(f'fk_{table}_office_id', type_='foreignkey')
            batch_op.drop_column('office_id')
    with op.batch_alter_table('users') as batch_op:
        batch_op.drop_column('can_view_all_offices')

    op.drop_table('staff_members')
    op.drop_table('offices')
