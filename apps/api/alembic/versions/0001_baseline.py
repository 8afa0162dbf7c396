"""Baseline migration - single-practice schema (before offices)

Revision ID: 0001_baseline
Revises:
Create Date: 2026-09-28

Users, patients and their clinical records as they existed before the
practice was split into offices. 0002_office_support adds tenancy.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0001_baseline'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _created_at(name: str = 'created_at') -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False)


def _patient_fk() -> sa.Column:
    return sa.Column(
        'patient_id', sa.Uuid(), sa.ForeignKey('patients.id', ondelete='CASCADE'), nullable=False
    )


def upgrade() -> None:
    """Create the pre-tenancy tables."""

    # ==========================================================================
    # Users
    # ==========================================================================
    op.create_table(
        'users',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False, unique=True),
        sa.Column('display_name', sa.String(255), nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default=sa.text('true'), nullable=False),
        sa.Column('token_version', sa.Integer(), server_default=sa.text('1'), nullable=False),
        _created_at(),
    )

    # ==========================================================================
    # Patients
    # ==========================================================================
    op.create_table(
        'patients',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('date_of_birth', sa.Date(), nullable=True),
        sa.Column('phone', sa.String(50), nullable=True),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('payment_status', sa.String(50), nullable=True),
        sa.Column('predetermination_status', sa.String(50), nullable=True),
        sa.Column('upper_denture_type', sa.String(100), nullable=True),
        sa.Column('lower_denture_type', sa.String(100), nullable=True),
        sa.Column('is_cdcp', sa.Boolean(), server_default=sa.text('false'), nullable=False),
        sa.Column('work_insurance', sa.Boolean(), server_default=sa.text('false'), nullable=False),
        sa.Column('copay_discussed', sa.Boolean(), server_default=sa.text('false'), nullable=False),
        sa.Column('current_tooth_shade', sa.String(20), nullable=True),
        sa.Column('requested_tooth_shade', sa.String(20), nullable=True),
        _created_at(),
        _created_at('updated_at'),
    )

    # ==========================================================================
    # Clinical records
    # ==========================================================================
    op.create_table(
        'appointments',
        sa.Column('id', sa.Uuid(), primary_key=True),
        _patient_fk(),
        sa.Column('appointment_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('appointment_type', sa.String(100), nullable=True),
        sa.Column('status', sa.String(30), server_default=sa.text("'scheduled'"), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        _created_at(),
    )
    op.create_table(
        'clinical_notes',
        sa.Column('id', sa.Uuid(), primary_key=True),
        _patient_fk(),
        sa.Column(
            'appointment_id', sa.Uuid(),
            sa.ForeignKey('appointments.id', ondelete='SET NULL'), nullable=True,
        ),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('created_by', sa.String(255), nullable=False),
        _created_at(),
    )
    for table in ('lab_notes', 'admin_notes'):
        op.create_table(
            table,
            sa.Column('id', sa.Uuid(), primary_key=True),
            _patient_fk(),
            sa.Column('content', sa.Text(), nullable=False),
            sa.Column('created_by', sa.String(255), nullable=False),
            _created_at(),
        )
    op.create_table(
        'lab_prescriptions',
        sa.Column('id', sa.Uuid(), primary_key=True),
        _patient_fk(),
        sa.Column('lab_name', sa.String(255), nullable=False),
        sa.Column('arch', sa.String(20), nullable=True),
        sa.Column('fabrication_stage_upper', sa.String(100), nullable=True),
        sa.Column('fabrication_stage_lower', sa.String(100), nullable=True),
        sa.Column('instructions', sa.Text(), nullable=True),
        sa.Column('created_by', sa.String(255), nullable=False),
        _created_at(),
    )
    op.create_table(
        'patient_files',
        sa.Column('id', sa.Uuid(), primary_key=True),
        _patient_fk(),
        sa.Column('filename', sa.String(255), nullable=False),
        sa.Column('file_size', sa.Integer(), nullable=False),
        sa.Column('file_type', sa.String(100), nullable=False),
        sa.Column('storage_key', sa.Text(), nullable=False),
        sa.Column('uploaded_by', sa.String(255), nullable=False),
        _created_at('uploaded_at'),
    )

    # ==========================================================================
    # Tasks (free-text assignee, no roster yet)
    # ==========================================================================
    op.create_table(
        'tasks',
        sa.Column('id', sa.Uuid(), primary_key=True),
        _patient_fk(),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('assignee', sa.String(255), nullable=False),
        sa.Column('priority', sa.String(10), server_default=sa.text("'normal'"), nullable=False),
        sa.Column('due_date', sa.Date(), nullable=True),
        sa.Column('status', sa.String(20), server_default=sa.text("'open'"), nullable=False),
        sa.Column('completed_by', sa.String(255), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        _created_at(),
        _created_at('updated_at'),
    )

    for table in (
        'appointments', 'clinical_notes', 'lab_notes', 'admin_notes',
        'lab_prescriptions', 'patient_files', 'tasks',
    ):
        op.create_index(f'ix_{table}_patient_id', table, ['patient_id'])


def downgrade() -> None:
    for table in (
        'tasks', 'patient_files', 'lab_prescriptions', 'admin_notes',
        'lab_notes', 'clinical_notes', 'appointments', 'patients', 'users',
    ):
        op.drop_table(table)
