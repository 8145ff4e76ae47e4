"""Create booking tables

Revision ID: b001_booking_tables
Revises:
Create Date: 2026-10-19

This migration creates:
- schedules table (weekly hours and dated exceptions)
- special_periods table (holidays and closures)
- tickets table
- gift_codes table
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'b001_booking_tables'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # ========================================
    # Create schedules table
    # ========================================
    op.create_table(
        'schedules',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('day_of_week', sa.Integer(), nullable=True),
        sa.Column('start_time', sa.Time(), nullable=False),
        sa.Column('end_time', sa.Time(), nullable=False),
        sa.Column('audience_type', sa.String(20), nullable=False, server_default='public'),
        sa.Column('start_date', sa.Date(), nullable=True),
        sa.Column('end_date', sa.Date(), nullable=True),
        sa.Column('is_exception', sa.Boolean(), server_default=sa.text('false'), nullable=False),
        sa.Column('is_closed', sa.Boolean(), server_default=sa.text('false'), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('position', sa.Integer(), server_default='0', nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.CheckConstraint(
            'day_of_week IS NULL OR (day_of_week >= 0 AND day_of_week <= 6)',
            name='ck_schedules_dow',
        ),
        sa.CheckConstraint(
            "audience_type IN ('public', 'member', 'holiday')",
            name='ck_schedules_audience_type',
        ),
    )
    op.create_index('idx_schedules_lookup', 'schedules', ['audience_type', 'is_exception', 'day_of_week'])

    # ========================================
    # Create special_periods table
    # ========================================
    op.create_table(
        'special_periods',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('type', sa.String(20), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default=sa.text('true'), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.CheckConstraint("type IN ('holiday', 'closure')", name='ck_special_periods_type'),
        sa.CheckConstraint('end_date >= start_date', name='ck_special_periods_range'),
    )
    op.create_index('idx_special_periods_dates', 'special_periods', ['start_date', 'end_date'])

    # ========================================
    # Create tickets table
    # ========================================
    op.create_table(
        'tickets',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('code', sa.String(8), nullable=False),
        sa.Column('first_name', sa.String(255), nullable=True),
        sa.Column('last_name', sa.String(255), nullable=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('reservation_date', sa.Date(), nullable=False),
        sa.Column('slot_start_time', sa.Time(), nullable=False),
        sa.Column('slot_end_time', sa.Time(), nullable=False),
        sa.Column('ticket_price', sa.Numeric(10, 2), server_default='0', nullable=False),
        sa.Column('donation_amount', sa.Numeric(10, 2), server_default='0', nullable=False),
        sa.Column('total_amount', sa.Numeric(10, 2), server_default='0', nullable=False),
        sa.Column('status', sa.String(20), server_default='pending', nullable=False),
        sa.Column('used_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('checkout_id', sa.String(255), nullable=True),
        sa.Column('checkout_reference', sa.String(255), nullable=True),
        sa.Column('transaction_status', sa.String(50), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('language', sa.String(10), server_default='fr', nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.UniqueConstraint('code', name='uq_tickets_code'),
        sa.CheckConstraint('slot_end_time > slot_start_time', name='ck_tickets_slot_order'),
        sa.CheckConstraint('ticket_price >= 0', name='ck_tickets_price_non_negative'),
        sa.CheckConstraint('donation_amount >= 0', name='ck_tickets_donation_non_negative'),
        sa.CheckConstraint('total_amount = ticket_price + donation_amount', name='ck_tickets_total'),
        sa.CheckConstraint(
            "status IN ('pending', 'paid', 'cancelled', 'used', 'expired')",
            name='ck_tickets_status',
        ),
    )
    op.create_index('ix_tickets_email', 'tickets', ['email'])
    op.create_index('ix_tickets_checkout_id', 'tickets', ['checkout_id'])
    op.create_index(
        'ix_tickets_reservation_slot', 'tickets', ['reservation_date', 'slot_start_time', 'slot_end_time']
    )
    op.create_index('ix_tickets_status_created', 'tickets', ['status', 'created_at'])

    # ========================================
    # Create gift_codes table
    # ========================================
    op.create_table(
        'gift_codes',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('code', sa.String(12), nullable=False),
        sa.Column('status', sa.String(20), server_default='unused', nullable=False),
        sa.Column('pack_id', sa.String(), nullable=True),
        sa.Column('ticket_id', sa.String(), sa.ForeignKey('tickets.id', ondelete='SET NULL'), nullable=True),
        sa.Column('recipient_email', sa.String(255), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('used_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.UniqueConstraint('code', name='uq_gift_codes_code'),
        sa.CheckConstraint("status IN ('unused', 'used', 'expired')", name='ck_gift_codes_status'),
        # A used code is always bound to the moment it was used
        sa.CheckConstraint("status <> 'used' OR used_at IS NOT NULL", name='ck_gift_codes_used_at'),
    )
    op.create_index('ix_gift_codes_pack_id', 'gift_codes', ['pack_id'])


def downgrade() -> None:
    op.drop_index('ix_gift_codes_pack_id', table_name='gift_codes')
    op.drop_table('gift_codes')

    op.drop_index('ix_tickets_status_created', table_name='tickets')
    op.drop_index('ix_tickets_reservation_slot', table_name='tickets')
    op.drop_index('ix_tickets_checkout_id', table_name='tickets')
    op.drop_index('ix_tickets_email', table_name='tickets')
    op.drop_table('tickets')

    op.drop_index('idx_special_periods_dates', table_name='special_periods')
    op.drop_table('special_periods')

    op.drop_index('idx_schedules_lookup', table_name='schedules')
    op.drop_table('schedules')
