"""Create gift_code_purchases table

Revision ID: b002_gift_code_purchases
Revises: b001_booking_tables
Create Date: 2026-10-19

This migration creates:
- gift_code_purchases table (packs of gift codes sold through checkout)
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'b002_gift_code_purchases'
down_revision = 'b001_booking_tables'
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'gift_code_purchases',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('checkout_id', sa.String(255), nullable=False),
        sa.Column('checkout_reference', sa.String(255), nullable=False),
        sa.Column('transaction_status', sa.String(50), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price', sa.Numeric(10, 2), nullable=False),
        sa.Column('total_amount', sa.Numeric(10, 2), nullable=False),
        sa.Column('buyer_email', sa.String(255), nullable=False),
        sa.Column('language', sa.String(10), server_default='fr', nullable=True),
        sa.Column('status', sa.String(20), server_default='pending', nullable=False),
        sa.Column('pack_id', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.UniqueConstraint('checkout_id', name='uq_gift_code_purchases_checkout_id'),
        sa.CheckConstraint('quantity > 0', name='ck_gift_code_purchases_quantity'),
        sa.CheckConstraint(
            "status IN ('pending', 'paid', 'cancelled')",
            name='ck_gift_code_purchases_status',
        ),
    )
    op.create_index(
        'ix_gift_code_purchases_checkout_reference', 'gift_code_purchases', ['checkout_reference']
    )


def downgrade() -> None:
    op.drop_index('ix_gift_code_purchases_checkout_reference', table_name='gift_code_purchases')
    op.drop_table('gift_code_purchases')
