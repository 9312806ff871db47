"""Create appointments table.

Revision ID: 001
Revises:
Create Date: 2026-10-19

"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Create appointments table with the booking uniqueness indexes."""
    op.create_table(
        "appointments",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("customer_id", sa.String(100), nullable=False, index=True),
        sa.Column("appointment_date", sa.Date, nullable=False, index=True),
        sa.Column("scheduled_at", sa.DateTime(timezone=False), nullable=False),
        sa.Column("service_type", sa.String(100), nullable=False),
        sa.Column(
            "status",
            sa.String(20),
            nullable=False,
            server_default="pending",
            index=True,
        ),
        sa.Column("notes", sa.Text, nullable=True),
        sa.Column("cancellation_reason", sa.Text, nullable=True),
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

    # One live booking per customer per day, and per slot
    op.create_index(
        "uq_appointments_customer_date",
        "appointments",
        ["customer_id", "appointment_date"],
        unique=True,
        postgresql_where=sa.text("status <> 'cancelled'"),
    )
    op.create_index(
        "uq_appointments_slot",
        "appointments",
        ["scheduled_at"],
        unique=True,
        postgresql_where=sa.text("status <> 'cancelled'"),
    )


def downgrade() -> None:
    """Drop appointments table."""
    op.drop_index("uq_appointments_slot", table_name="appointments")
    op.drop_index("uq_appointments_customer_date", table_name="appointments")
    op.drop_table("appointments")
