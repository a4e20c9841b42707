"""initial schema

Revision ID: 0001
Revises:
Create Date: 2026-10-18 12:00:00

"""
from alembic import op
import sqlalchemy as sa


revision = '0001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'users',
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('role', sa.Text(), server_default=sa.text("'patient'"), nullable=False),
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('email', sa.Text(), unique=True),
        sa.Column('mobile', sa.Text()),
        sa.Column('created_at', sa.Text(), server_default=sa.text('CURRENT_TIMESTAMP')),
    )
    op.create_table(
        'hospitals',
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('address', sa.Text()),
        sa.Column('phone', sa.Text()),
    )
    op.create_table(
        'doctor_profiles',
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, unique=True),
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('bio', sa.Text()),
        sa.Column('created_at', sa.Text(), server_default=sa.text('CURRENT_TIMESTAMP')),
    )
    op.create_table(
        'doctor_hospitals',
        sa.Column('doctor_id', sa.Integer(), sa.ForeignKey('doctor_profiles.id', ondelete='CASCADE'), nullable=False),
        sa.Column('hospital_id', sa.Integer(), sa.ForeignKey('hospitals.id', ondelete='CASCADE'), nullable=False),
        sa.Column('availability', sa.Text(), server_default=sa.text("'[]'"), nullable=False),
        sa.Column('position', sa.Integer(), server_default=sa.text('0'), nullable=False),
        sa.Column('status', sa.Text(), server_default=sa.text("'active'"), nullable=False),
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('consultation_fee', sa.Integer()),
        sa.UniqueConstraint('doctor_id', 'hospital_id'),
    )
    op.create_table(
        'helpdesks',
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('email', sa.Text(), nullable=False, unique=True),
        sa.Column('status', sa.Text(), server_default=sa.text("'active'"), nullable=False),
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('hospital_id', sa.Integer(), sa.ForeignKey('hospitals.id', ondelete='SET NULL')),
    )
    op.create_table(
        'patient_profiles',
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, unique=True),
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('dob', sa.Text()),
        sa.Column('gender', sa.Text()),
        sa.Column('contact_number', sa.Text()),
    )
    op.create_table(
        'patient_hospital_records',
        sa.Column('patient_profile_id', sa.Integer(), sa.ForeignKey('patient_profiles.id', ondelete='CASCADE'), nullable=False),
        sa.Column('hospital_id', sa.Integer(), sa.ForeignKey('hospitals.id', ondelete='CASCADE'), nullable=False),
        sa.Column('mrn', sa.Text(), nullable=False),
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('last_visit', sa.Text()),
        sa.UniqueConstraint('patient_profile_id', 'hospital_id'),
    )
    op.create_table(
        'leaves',
        sa.Column('doctor_user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('start_date', sa.Text(), nullable=False),
        sa.Column('end_date', sa.Text(), nullable=False),
        sa.Column('reason', sa.Text(), nullable=False),
        sa.Column('status', sa.Text(), server_default=sa.text("'pending'"), nullable=False),
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('created_at', sa.Text(), server_default=sa.text('CURRENT_TIMESTAMP')),
    )
    op.create_table(
        'appointments',
        sa.Column('patient_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('doctor_id', sa.Integer(), sa.ForeignKey('doctor_profiles.id', ondelete='CASCADE'), nullable=False),
        sa.Column('hospital_id', sa.Integer(), sa.ForeignKey('hospitals.id', ondelete='CASCADE'), nullable=False),
        sa.Column('date', sa.Text(), nullable=False),
        sa.Column('start_time', sa.Text(), nullable=False),
        sa.Column('end_time', sa.Text(), nullable=False),
        sa.Column('status', sa.Text(), server_default=sa.text("'pending'"), nullable=False),
        sa.Column('type', sa.Text(), server_default=sa.text("'offline'"), nullable=False),
        sa.Column('urgency', sa.Text(), server_default=sa.text("'non-urgent'"), nullable=False),
        sa.Column('created_at', sa.Text(), nullable=False),
        sa.Column('updated_at', sa.Text(), nullable=False),
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('symptoms', sa.Text()),
        sa.Column('reason', sa.Text()),
        sa.Column('mrn', sa.Text()),
        sa.Column('patient_details', sa.Text()),
        sa.Column('cancel_reason', sa.Text()),
    )
    op.create_index(
        'uq_appointments_live_slot',
        'appointments',
        ['doctor_id', 'hospital_id', 'date', 'start_time'],
        unique=True,
        sqlite_where=sa.text("status != 'cancelled'"),
        postgresql_where=sa.text("status != 'cancelled'"),
    )
    op.create_index('ix_appointments_status_created', 'appointments', ['status', 'created_at'])
    op.create_table(
        'notifications',
        sa.Column('recipient_role', sa.Text(), nullable=False),
        sa.Column('recipient_id', sa.Integer(), nullable=False),
        sa.Column('type', sa.Text(), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('is_read', sa.Integer(), server_default=sa.text('0'), nullable=False),
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('sender_id', sa.Integer()),
        sa.Column('related_id', sa.Integer()),
        sa.Column('created_at', sa.Text(), server_default=sa.text('CURRENT_TIMESTAMP')),
    )


def downgrade():
    op.drop_table('notifications')
    op.drop_index('ix_appointments_status_created', table_name='appointments')
    op.drop_index('uq_appointments_live_slot', table_name='appointments')
    op.drop_table('appointments')
    op.drop_table('leaves')
    op.drop_table('patient_hospital_records')
    op.drop_table('patient_profiles')
    op.drop_table('helpdesks')
    op.drop_table('doctor_hospitals')
    op.drop_table('doctor_profiles')
    op.drop_table('hospitals')
    op.drop_table('users')
