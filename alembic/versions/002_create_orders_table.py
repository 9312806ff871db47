"""Create orders table.

Revision ID: 002
Revises: 001
Create Date: 2026-10-19

"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "002"
down_revision = "001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Create orders table for rentals and purchases."""
    op.create_table(
        "orders",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("kind", sa.String(20), nullable=False, index=True),
        sa.Column("customer_id", sa.String(100), nullable=False, index=True),
        sa.Column(
            "status",
            sa.String(30),
            nullable=False,
            server_default="pending",
            index=True,
        ),
        sa.Column("currency", sa.String(3), nullable=False, server_default="PHP"),
        # Item
        sa.Column("item_name", sa.String(255), nullable=False),
        sa.Column("clothing_type", sa.String(100), nullable=False),
        sa.Column(
            "measurements",
            postgresql.JSONB,
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        sa.Column("item_notes", sa.Text, nullable=True),
        # Quotation
        sa.Column("quotation_amount_cents", sa.Integer, nullable=True),
        sa.Column("quotation_notes", sa.Text, nullable=True),
        sa.Column("quotation_sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("quotation_responded_at", sa.DateTime(timezone=True), nullable=True),
        # Counter-offer
        sa.Column("counter_offer_amount_cents", sa.Integer, nullable=True),
        sa.Column("counter_offer_notes", sa.Text, nullable=True),
        sa.Column("counter_offer_sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "counter_offer_status",
            sa.String(20),
            nullable=False,
            server_default="none",
        ),
        sa.Column("cancelled_by", sa.String(150), nullable=True),
        # Rental penalties (null for purchases)
        sa.Column("cancellation_fee_cents", sa.Integer, nullable=True),
        sa.Column("daily_delay_fee_cents", sa.Integer, nullable=True),
        sa.Column("damage_fee_min_cents", sa.Integer, nullable=True),
        sa.Column("damage_fee_max_cents", sa.Integer, nullable=True),
        sa.Column("damage_level", sa.String(20), nullable=True),
        sa.Column("assessed_damage_fee_cents", sa.Integer, nullable=True),
        sa.Column("assessed_delay_fee_cents", sa.Integer, nullable=True),
        sa.Column("total_penalties_cents", sa.Integer, nullable=True),
        sa.Column("penalty_status", sa.String(20), nullable=True),
        sa.Column("penalty_notes", sa.Text, nullable=True),
        sa.Column("penalty_calculated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("penalty_paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("agreement_accepted", sa.Boolean, nullable=True),
        sa.Column("agreement_accepted_at", sa.DateTime(timezone=True), nullable=True),
        # Audit trail
        sa.Column(
            "status_history",
            postgresql.JSONB,
            nullable=False,
            server_default=sa.text("'[]'::jsonb"),
        ),
        sa.Column("version", sa.Integer, nullable=False, server_default="1"),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )


def downgrade() -> None:
    """Drop orders table."""
    op.drop_table("orders")
