"""Initial schema - booking calendars, schedules, reservations, window locks and audit log.

Revision ID: 001
Revises:
Create Date: 2026-01-20

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list:
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade() -> None:
    """Create initial database tables."""
    op.create_table(
        'staff',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_staff')),
        sa.UniqueConstraint('email', name=op.f('uq_staff_email')),
    )
    op.create_index(op.f('ix_staff_is_active'), 'staff', ['is_active'], unique=False)
    op.create_index(op.f('ix_staff_created_at'), 'staff', ['created_at'], unique=False)

    op.create_table(
        'clients',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=50), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_clients')),
        sa.UniqueConstraint('email', name=op.f('uq_clients_email')),
    )
    op.create_index(op.f('ix_clients_name'), 'clients', ['name'], unique=False)
    op.create_index(op.f('ix_clients_phone'), 'clients', ['phone'], unique=False)
    op.create_index(op.f('ix_clients_created_at'), 'clients', ['created_at'], unique=False)

    op.create_table(
        'services',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('duration_minutes', sa.Integer(), nullable=False),
        sa.Column('price', sa.Numeric(precision=10, scale=2), nullable=False),
        *_timestamps(),
        sa.CheckConstraint('duration_minutes > 0', name=op.f('ck_services_positive_duration')),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_services')),
    )
    op.create_index(op.f('ix_services_created_at'), 'services', ['created_at'], unique=False)

    op.create_table(
        'booking_calendars',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('slug', sa.String(length=100), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('concurrency_limit', sa.Integer(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('requires_payment', sa.Boolean(), nullable=False),
        sa.Column('google_calendar_id', sa.String(length=255), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_booking_calendars')),
        sa.UniqueConstraint('slug', name=op.f('uq_booking_calendars_slug')),
    )
    op.create_index(op.f('ix_booking_calendars_created_at'), 'booking_calendars', ['created_at'], unique=False)

    op.create_table(
        'booking_calendar_services',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('calendar_id', sa.String(length=36), nullable=False),
        sa.Column('service_id', sa.String(length=36), nullable=False),
        sa.Column('is_enabled', sa.Boolean(), nullable=False),
        sa.ForeignKeyConstraint(
            ['calendar_id'], ['booking_calendars.id'],
            name=op.f('fk_booking_calendar_services_calendar_id_booking_calendars'),
            ondelete='CASCADE',
        ),
        sa.ForeignKeyConstraint(
            ['service_id'], ['services.id'],
            name=op.f('fk_booking_calendar_services_service_id_services'),
            ondelete='CASCADE',
        ),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_booking_calendar_services')),
        sa.UniqueConstraint(
            'calendar_id', 'service_id',
            name='uq_booking_calendar_services_calendar_service',
        ),
    )

    op.create_table(
        'schedules',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('day_of_week', sa.String(length=10), nullable=False),
        sa.Column('is_open', sa.Boolean(), nullable=False),
        sa.Column('open_time', sa.Time(), nullable=True),
        sa.Column('close_time', sa.Time(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_schedules')),
        sa.UniqueConstraint('day_of_week', name=op.f('uq_schedules_day_of_week')),
    )
    op.create_index(op.f('ix_schedules_created_at'), 'schedules', ['created_at'], unique=False)

    op.create_table(
        'rest_times',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('day_of_week', sa.String(length=10), nullable=False),
        sa.Column('start_time', sa.Time(), nullable=False),
        sa.Column('end_time', sa.Time(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_rest_times')),
    )
    op.create_index(op.f('ix_rest_times_day_of_week'), 'rest_times', ['day_of_week'], unique=False)
    op.create_index(op.f('ix_rest_times_created_at'), 'rest_times', ['created_at'], unique=False)

    op.create_table(
        'reservations',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('start_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('end_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('client_id', sa.String(length=36), nullable=False),
        sa.Column('staff_id', sa.String(length=36), nullable=False),
        sa.Column('service_id', sa.String(length=36), nullable=False),
        sa.Column('calendar_id', sa.String(length=36), nullable=True),
        sa.Column('price', sa.Numeric(precision=10, scale=2), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('external_event_id', sa.String(length=255), nullable=True),
        sa.Column('google_calendar_id', sa.String(length=255), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint('start_time < end_time', name=op.f('ck_reservations_start_before_end')),
        sa.ForeignKeyConstraint(['client_id'], ['clients.id'], name=op.f('fk_reservations_client_id_clients')),
        sa.ForeignKeyConstraint(['staff_id'], ['staff.id'], name=op.f('fk_reservations_staff_id_staff')),
        sa.ForeignKeyConstraint(['service_id'], ['services.id'], name=op.f('fk_reservations_service_id_services')),
        sa.ForeignKeyConstraint(
            ['calendar_id'], ['booking_calendars.id'],
            name=op.f('fk_reservations_calendar_id_booking_calendars'),
        ),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_reservations')),
    )
    op.create_index(op.f('ix_reservations_status'), 'reservations', ['status'], unique=False)
    op.create_index(op.f('ix_reservations_client_id'), 'reservations', ['client_id'], unique=False)
    op.create_index(op.f('ix_reservations_created_at'), 'reservations', ['created_at'], unique=False)
    op.create_index(
        'ix_reservations_status_start_end', 'reservations',
        ['status', 'start_time', 'end_time'], unique=False,
    )

    op.create_table(
        'booking_window_locks',
        sa.Column('bucket_start', sa.DateTime(timezone=True), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint('bucket_start', name=op.f('pk_booking_window_locks')),
    )

    op.create_table(
        'audit_log',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('action', sa.String(length=50), nullable=False),
        sa.Column('entity_type', sa.String(length=50), nullable=False),
        sa.Column('entity_id', sa.String(length=100), nullable=False),
        sa.Column('details', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_audit_log')),
    )
    op.create_index(op.f('ix_audit_log_action'), 'audit_log', ['action'], unique=False)
    op.create_index(op.f('ix_audit_log_entity_type'), 'audit_log', ['entity_type'], unique=False)
    op.create_index(op.f('ix_audit_log_entity_id'), 'audit_log', ['entity_id'], unique=False)
    op.create_index(op.f('ix_audit_log_created_at'), 'audit_log', ['created_at'], unique=False)
    op.create_index('ix_audit_log_entity', 'audit_log', ['entity_type', 'entity_id'], unique=False)
    op.create_index('ix_audit_log_action_created', 'audit_log', ['action', 'created_at'], unique=False)


def downgrade() -> None:
    """Drop all tables."""
    op.drop_table('audit_log')
    op.drop_table('booking_window_locks')
    op.drop_table('reservations')
    op.drop_table('rest_times')
    op.drop_table('schedules')
    op.drop_table('booking_calendar_services')
    op.drop_table('booking_calendars')
    op.drop_table('services')
    op.drop_table('clients')
    op.drop_table('staff')
