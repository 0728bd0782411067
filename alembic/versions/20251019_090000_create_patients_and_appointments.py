"""create patients and appointments

Revision ID: 20251019_090000
Revises:
Create Date: 2025-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '20251019_090000'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'patients',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('full_name', sa.String(120), nullable=False),
        sa.Column('email', sa.String(254), nullable=True),
        sa.Column('phone', sa.String(20), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_patients_full_name', 'patients', ['full_name'])

    op.create_table(
        'appointments',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('clinic_id', sa.String(64), nullable=False, server_default='default'),
        sa.Column('patient_id', sa.String(36), sa.ForeignKey('patients.id', ondelete='CASCADE'), nullable=False),
        sa.Column('patient_name', sa.String(120), nullable=False),
        sa.Column('therapist_id', sa.String(64), nullable=False),
        sa.Column('therapist_name', sa.String(120), nullable=True),
        sa.Column('date_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('duration', sa.Integer, nullable=False),
        sa.Column('ends_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('type', sa.String(32), nullable=False, server_default='regular'),
        sa.Column('status', sa.String(32), nullable=False, server_default='scheduled'),
        sa.Column('notes', sa.Text, nullable=True),
        sa.Column('session_notes', sa.Text, nullable=True),
        sa.Column('cancellation_reason', sa.String(255), nullable=True),
        sa.Column('cancelled_by', sa.String(16), nullable=True),
        sa.Column('cancellation_notes', sa.Text, nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('confirmed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint('duration > 0', name='ck_appointments_duration_positive'),
    )
    op.create_index('ix_appointments_therapist_date_time', 'appointments', ['therapist_id', 'date_time'])
    op.create_index('ix_appointments_patient_id', 'appointments', ['patient_id'])
    op.create_index('ix_appointments_status', 'appointments', ['status'])

    # Store-level guard: no two active appointments of a therapist may overlap
    if op.get_bind().dialect.name == 'postgresql':
        op.execute('CREATE EXTENSION IF NOT EXISTS btree_gist')
        op.execute(
            """
            ALTER TABLE appointments
            ADD CONSTRAINT ex_appointments_no_overlap
            EXCLUDE USING gist (
                therapist_id WITH =,
                tstzrange(date_time, ends_at, '[)') WITH &&
            )
            WHERE (status IN ('scheduled', 'confirmed', 'in-progress'))
            """
        )


def downgrade() -> None:
    if op.get_bind().dialect.name == 'postgresql':
        op.execute('ALTER TABLE appointments DROP CONSTRAINT IF EXISTS ex_appointments_no_overlap')
    op.drop_index('ix_appointments_status', table_name='appointments')
    op.drop_index('ix_appointments_patient_id', table_name='appointments')
    op.drop_index('ix_appointments_therapist_date_time', table_name='appointments')
    op.drop_table('appointments')
    op.drop_index('ix_patients_full_name', table_name='patients')
    op.drop_table('patients')
