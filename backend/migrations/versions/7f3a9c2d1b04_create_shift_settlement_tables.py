"""create_shift_settlement_tables

Revision ID: 7f3a9c2d1b04
Revises:
Create Date: 2026-10-17 10:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '7f3a9c2d1b04'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create tenant, staff, booking, shift and audit tables."""
    op.create_table(
        'businesses',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table(
        'branches',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('business_id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['business_id'], ['businesses.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_branches_business', 'branches', ['business_id'])

    op.create_table(
        'users',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('username', sa.String(length=150), nullable=False),
        sa.Column('role', sa.Enum('OWNER', 'MANAGER', 'STAFF', name='roleenum'), nullable=False),
        sa.Column('business_id', sa.Uuid(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['business_id'], ['businesses.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('username'),
    )

    op.create_table(
        'staff',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('business_id', sa.Uuid(), nullable=False),
        sa.Column('branch_id', sa.Uuid(), nullable=True),
        sa.Column('user_id', sa.Uuid(), nullable=True),
        sa.Column('full_name', sa.String(length=255), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('percent_master', sa.Numeric(precision=9, scale=4), nullable=True),
        sa.Column('percent_salon', sa.Numeric(precision=9, scale=4), nullable=True),
        sa.Column('hourly_rate', sa.Numeric(precision=20, scale=4), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['business_id'], ['businesses.id']),
        sa.ForeignKeyConstraint(['branch_id'], ['branches.id']),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id'),
    )
    op.create_index('ix_staff_business', 'staff', ['business_id'])
    op.create_index('ix_staff_branch', 'staff', ['branch_id'])

    op.create_table(
        'working_hours',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('staff_id', sa.Uuid(), nullable=False),
        sa.Column('day_of_week', sa.Integer(), nullable=False),
        sa.Column('intervals', postgresql.JSONB(), nullable=False, server_default='[]'),
        sa.ForeignKeyConstraint(['staff_id'], ['staff.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('staff_id', 'day_of_week', name='uq_working_hours_staff_day'),
        sa.CheckConstraint('day_of_week BETWEEN 0 AND 6', name='ck_working_hours_day'),
    )

    op.create_table(
        'staff_schedule_rules',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('staff_id', sa.Uuid(), nullable=False),
        sa.Column('date_on', sa.Date(), nullable=False),
        sa.Column('intervals', postgresql.JSONB(), nullable=False, server_default='[]'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.ForeignKeyConstraint(['staff_id'], ['staff.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_schedule_rules_staff_date', 'staff_schedule_rules', ['staff_id', 'date_on'])

    op.create_table(
        'staff_time_off',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('staff_id', sa.Uuid(), nullable=False),
        sa.Column('date_from', sa.Date(), nullable=False),
        sa.Column('date_to', sa.Date(), nullable=False),
        sa.Column('reason', sa.String(length=255), nullable=True),
        sa.ForeignKeyConstraint(['staff_id'], ['staff.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('date_to >= date_from', name='ck_time_off_range'),
    )
    op.create_index('ix_time_off_staff', 'staff_time_off', ['staff_id'])

    op.create_table(
        'services',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('business_id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('price_from', sa.Numeric(precision=20, scale=4), nullable=False, server_default='0'),
        sa.Column('price_to', sa.Numeric(precision=20, scale=4), nullable=True),
        sa.ForeignKeyConstraint(['business_id'], ['businesses.id']),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table(
        'bookings',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('business_id', sa.Uuid(), nullable=False),
        sa.Column('branch_id', sa.Uuid(), nullable=True),
        sa.Column('staff_id', sa.Uuid(), nullable=False),
        sa.Column('service_id', sa.Uuid(), nullable=True),
        sa.Column('client_name', sa.String(length=255), nullable=True),
        sa.Column('start_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            'status',
            sa.Enum('pending', 'confirmed', 'completed', 'no_show', 'cancelled', name='bookingstatus'),
            nullable=False,
        ),
        sa.Column('promotion_applied', postgresql.JSONB(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['business_id'], ['businesses.id']),
        sa.ForeignKeyConstraint(['branch_id'], ['branches.id']),
        sa.ForeignKeyConstraint(['staff_id'], ['staff.id']),
        sa.ForeignKeyConstraint(['service_id'], ['services.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_bookings_staff_start', 'bookings', ['staff_id', 'start_at'])
    op.create_index('ix_bookings_status', 'bookings', ['status'])

    op.create_table(
        'staff_shifts',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('staff_id', sa.Uuid(), nullable=False),
        sa.Column('business_id', sa.Uuid(), nullable=False),
        sa.Column('branch_id', sa.Uuid(), nullable=True),
        sa.Column('shift_date', sa.Date(), nullable=False),
        sa.Column('status', sa.Enum('OPEN', 'CLOSED', name='shiftstatus'), nullable=False),
        sa.Column('opened_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('closed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('close_mode', sa.Enum('INTERACTIVE', 'SCHEDULED', name='closemode'), nullable=True),
        sa.Column('expected_start', sa.DateTime(timezone=True), nullable=True),
        sa.Column('late_minutes', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_amount', sa.Numeric(precision=20, scale=4), nullable=False, server_default='0'),
        sa.Column('consumables_amount', sa.Numeric(precision=20, scale=4), nullable=False, server_default='0'),
        sa.Column('percent_master', sa.Numeric(precision=9, scale=4), nullable=True),
        sa.Column('percent_salon', sa.Numeric(precision=9, scale=4), nullable=True),
        sa.Column('master_share', sa.Numeric(precision=20, scale=4), nullable=False, server_default='0'),
        sa.Column('salon_share', sa.Numeric(precision=20, scale=4), nullable=False, server_default='0'),
        sa.Column('hourly_rate', sa.Numeric(precision=20, scale=4), nullable=True),
        sa.Column('hours_worked', sa.Numeric(precision=9, scale=2), nullable=True),
        sa.Column('guaranteed_amount', sa.Numeric(precision=20, scale=4), nullable=False, server_default='0'),
        sa.Column('topup_amount', sa.Numeric(precision=20, scale=4), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['staff_id'], ['staff.id']),
        sa.ForeignKeyConstraint(['business_id'], ['businesses.id']),
        sa.ForeignKeyConstraint(['branch_id'], ['branches.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('staff_id', 'shift_date', name='uq_staff_shifts_staff_date'),
    )
    op.create_index('ix_staff_shifts_status_date', 'staff_shifts', ['status', 'shift_date'])
    op.create_index('ix_staff_shifts_business_date', 'staff_shifts', ['business_id', 'shift_date'])

    op.create_table(
        'staff_shift_items',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('shift_id', sa.Uuid(), nullable=False),
        sa.Column('client_name', sa.String(length=255), nullable=True),
        sa.Column('service_name', sa.String(length=255), nullable=True),
        sa.Column('service_amount', sa.Numeric(precision=20, scale=4), nullable=False, server_default='0'),
        sa.Column('consumables_amount', sa.Numeric(precision=20, scale=4), nullable=False, server_default='0'),
        sa.Column('booking_id', sa.Uuid(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['shift_id'], ['staff_shifts.id']),
        sa.ForeignKeyConstraint(['booking_id'], ['bookings.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('service_amount >= 0', name='ck_shift_item_service_non_negative'),
        sa.CheckConstraint('consumables_amount >= 0', name='ck_shift_item_consumables_non_negative'),
    )
    op.create_index('ix_staff_shift_items_shift', 'staff_shift_items', ['shift_id'])
    op.create_index('ix_staff_shift_items_booking', 'staff_shift_items', ['booking_id'])

    op.create_table(
        'audit_logs',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('table_name', sa.String(length=100), nullable=False),
        sa.Column('record_id', sa.String(length=255), nullable=False),
        sa.Column('action', sa.String(length=50), nullable=False),
        sa.Column('changed_by', sa.Uuid(), nullable=True),
        sa.Column('new_values', postgresql.JSONB(), nullable=True),
        sa.Column('ip_address', sa.String(length=45), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['changed_by'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_audit_table_record', 'audit_logs', ['table_name', 'record_id'])
    op.create_index('ix_audit_created_at', 'audit_logs', ['created_at'])
    op.create_index('ix_audit_action', 'audit_logs', ['action'])


def downgrade() -> None:
    """Drop all settlement tables and enum types."""
    op.drop_index('ix_audit_action', table_name='audit_logs')
    op.drop_index('ix_audit_created_at', table_name='audit_logs')
    op.drop_index('ix_audit_table_record', table_name='audit_logs')
    op.drop_table('audit_logs')
    op.drop_index('ix_staff_shift_items_booking', table_name='staff_shift_items')
    op.drop_index('ix_staff_shift_items_shift', table_name='staff_shift_items')
    op.drop_table('staff_shift_items')
    op.drop_index('ix_staff_shifts_business_date', table_name='staff_shifts')
    op.drop_index('ix_staff_shifts_status_date', table_name='staff_shifts')
    op.drop_table('staff_shifts')
    op.drop_index('ix_bookings_status', table_name='bookings')
    op.drop_index('ix_bookings_staff_start', table_name='bookings')
    op.drop_table('bookings')
    op.drop_table('services')
    op.drop_index('ix_time_off_staff', table_name='staff_time_off')
    op.drop_table('staff_time_off')
    op.drop_index('ix_schedule_rules_staff_date', table_name='staff_schedule_rules')
    op.drop_table('staff_schedule_rules')
    op.drop_table('working_hours')
    op.drop_index('ix_staff_branch', table_name='staff')
    op.drop_index('ix_staff_business', table_name='staff')
    op.drop_table('staff')
    op.drop_table('users')
    op.drop_index('ix_branches_business', table_name='branches')
    op.drop_table('branches')
    op.drop_table('businesses')
    op.execute("DROP TYPE IF EXISTS closemode")
    op.execute("DROP TYPE IF EXISTS shiftstatus")
    op.execute("DROP TYPE IF EXISTS bookingstatus")
    op.execute("DROP TYPE IF EXISTS roleenum")
