"""SQLAlchemy models for database tables.

Provides ORM models for the appointments and orders tables. Rental and
purchase orders share one table, told apart by ``kind``; the rental
penalty columns stay null for purchases.
"""

from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB

from tailorshop.infrastructure.database import Base

NOT_CANCELLED = text("status <> 'cancelled'")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


# ============================================================================
# Appointment Model
# ============================================================================


class AppointmentModel(Base):
    """Appointment model for database persistence.

    The two partial unique indexes back the one-per-customer-per-day and
    one-per-slot rules for every appointment that is not cancelled.
    """

    __tablename__ = "appointments"

    id = Column(String(36), primary_key=True)
    customer_id = Column(String(100), nullable=False, index=True)
    appointment_date = Column(Date, nullable=False, index=True)
    scheduled_at = Column(DateTime(timezone=False), nullable=False)
    service_type = Column(String(100), nullable=False)
    status = Column(String(20), nullable=False, default="pending", index=True)
    notes = Column(Text, nullable=True)
    cancellation_reason = Column(Text, nullable=True)

    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utc_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utc_now)

    __table_args__ = (
        Index(
            "uq_appointments_customer_date",
            "customer_id",
            "appointment_date",
            unique=True,
            postgresql_where=NOT_CANCELLED,
        ),
        Index(
            "uq_appointments_slot",
            "scheduled_at",
            unique=True,
            postgresql_where=NOT_CANCELLED,
        ),
    )

    def __repr__(self) -> str:
        return f"<Appointment {self.id} {self.scheduled_at} status={self.status}>"


# ============================================================================
# Order Model
# ============================================================================


class OrderModel(Base):
    """Rental or purchase order.

    Money columns hold centavos in ``currency``.
    """

    __tablename__ = "orders"

    id = Column(String(36), primary_key=True)
    kind = Column(String(20), nullable=False, index=True)
    customer_id = Column(String(100), nullable=False, index=True)
    status = Column(String(30), nullable=False, default="pending", index=True)
    currency = Column(String(3), nullable=False, default="PHP")

    # Item
    item_name = Column(String(255), nullable=False)
    clothing_type = Column(String(100), nullable=False)
    measurements = Column(JSONB, nullable=False, default=dict)
    item_notes = Column(Text, nullable=True)

    # Quotation
    quotation_amount_cents = Column(Integer, nullable=True)
    quotation_notes = Column(Text, nullable=True)
    quotation_sent_at = Column(DateTime(timezone=True), nullable=True)
    quotation_responded_at = Column(DateTime(timezone=True), nullable=True)

    # Counter-offer
    counter_offer_amount_cents = Column(Integer, nullable=True)
    counter_offer_notes = Column(Text, nullable=True)
    counter_offer_sent_at = Column(DateTime(timezone=True), nullable=True)
    counter_offer_status = Column(String(20), nullable=False, default="none")

    cancelled_by = Column(String(150), nullable=True)

    # Rental penalties
    cancellation_fee_cents = Column(Integer, nullable=True)
    daily_delay_fee_cents = Column(Integer, nullable=True)
    damage_fee_min_cents = Column(Integer, nullable=True)
    damage_fee_max_cents = Column(Integer, nullable=True)
    damage_level = Column(String(20), nullable=True)
    assessed_damage_fee_cents = Column(Integer, nullable=True)
    assessed_delay_fee_cents = Column(Integer, nullable=True)
    total_penalties_cents = Column(Integer, nullable=True)
    penalty_status = Column(String(20), nullable=True)
    penalty_notes = Column(Text, nullable=True)
    penalty_calculated_at = Column(DateTime(timezone=True), nullable=True)
    penalty_paid_at = Column(DateTime(timezone=True), nullable=True)
    agreement_accepted = Column(Boolean, nullable=True)
    agreement_accepted_at = Column(DateTime(timezone=True), nullable=True)

    # History: [{from_status, to_status, transition, actor, at}]
    status_history = Column(JSONB, nullable=False, default=list)

    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utc_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utc_now)

    def __repr__(self) -> str:
        return f"<Order {self.id} kind={self.kind} status={self.status}>"
