"""Domain events for the tailor shop.

Domain events represent significant occurrences in the domain.
They are used for:
- Customer and admin notifications
- Audit logging
- Integration with external systems via webhooks
"""

from dataclasses import dataclass
from typing import Any, ClassVar

from tailorshop.domain.base import DomainEvent


# ============================================================================
# Appointment Events
# ============================================================================


@dataclass(frozen=True)
class AppointmentRequested(DomainEvent):
    """Event raised when a customer reserves a slot."""

    event_type: ClassVar[str] = "appointment.requested"

    appointment_id: str = ""
    customer_id: str = ""
    scheduled_at: str = ""
    service_type: str = ""

    def _payload(self) -> dict[str, Any]:
        return {
            "appointment_id": self.appointment_id,
            "customer_id": self.customer_id,
            "scheduled_at": self.scheduled_at,
            "service_type": self.service_type,
        }


@dataclass(frozen=True)
class AppointmentRescheduled(DomainEvent):
    """Event raised when an appointment moves to another slot."""

    event_type: ClassVar[str] = "appointment.rescheduled"

    appointment_id: str = ""
    customer_id: str = ""
    previous_scheduled_at: str = ""
    scheduled_at: str = ""

    def _payload(self) -> dict[str, Any]:
        return {
            "appointment_id": self.appointment_id,
            "customer_id": self.customer_id,
            "previous_scheduled_at": self.previous_scheduled_at,
            "scheduled_at": self.scheduled_at,
        }


@dataclass(frozen=True)
class AppointmentStatusChanged(DomainEvent):
    """Event raised whenever an appointment changes status."""

    event_type: ClassVar[str] = "appointment.status_changed"

    appointment_id: str = ""
    customer_id: str = ""
    actor: str = ""
    old_status: str = ""
    new_status: str = ""
    reason: str | None = None

    def _payload(self) -> dict[str, Any]:
        return {
            "appointment_id": self.appointment_id,
            "customer_id": self.customer_id,
            "actor": self.actor,
            "old_status": self.old_status,
            "new_status": self.new_status,
            "reason": self.reason,
        }


# ============================================================================
# Order Events
# ============================================================================


@dataclass(frozen=True)
class OrderCreated(DomainEvent):
    """Event raised when a customer places a rental or purchase order."""

    event_type: ClassVar[str] = "order.created"

    order_id: str = ""
    order_kind: str = ""
    customer_id: str = ""
    item_name: str = ""

    def _payload(self) -> dict[str, Any]:
        return {
            "order_id": self.order_id,
            "order_kind": self.order_kind,
            "customer_id": self.customer_id,
            "item_name": self.item_name,
        }


@dataclass(frozen=True)
class OrderStatusChanged(DomainEvent):
    """Event raised by every order transition that changes status.

    ``amount_cents`` carries the quotation or counter-offer amount for
    the negotiation transitions so notifications can quote it.
    """

    event_type: ClassVar[str] = "order.status_changed"

    order_id: str = ""
    order_kind: str = ""
    customer_id: str = ""
    actor: str = ""
    transition: str = ""
    old_status: str = ""
    new_status: str = ""
    amount_cents: int | None = None
    currency: str | None = None

    def _payload(self) -> dict[str, Any]:
        return {
            "order_id": self.order_id,
            "order_kind": self.order_kind,
            "customer_id": self.customer_id,
            "actor": self.actor,
            "transition": self.transition,
            "old_status": self.old_status,
            "new_status": self.new_status,
            "amount_cents": self.amount_cents,
            "currency": self.currency,
        }


@dataclass(frozen=True)
class RentalAgreementAccepted(DomainEvent):
    """Event raised when a customer accepts the rental agreement."""

    event_type: ClassVar[str] = "rental.agreement_accepted"

    order_id: str = ""
    customer_id: str = ""

    def _payload(self) -> dict[str, Any]:
        return {"order_id": self.order_id, "customer_id": self.customer_id}


@dataclass(frozen=True)
class PenaltiesAssessed(DomainEvent):
    """Event raised when rental penalties are calculated."""

    event_type: ClassVar[str] = "rental.penalties_assessed"

    order_id: str = ""
    customer_id: str = ""
    damage_level: str = ""
    total_cents: int = 0
    currency: str = ""

    def _payload(self) -> dict[str, Any]:
        return {
            "order_id": self.order_id,
            "customer_id": self.customer_id,
            "damage_level": self.damage_level,
            "total_cents": self.total_cents,
            "currency": self.currency,
        }


@dataclass(frozen=True)
class PenaltiesPaid(DomainEvent):
    """Event raised when rental penalties are settled."""

    event_type: ClassVar[str] = "rental.penalties_paid"

    order_id: str = ""
    customer_id: str = ""
    total_cents: int = 0
    currency: str = ""

    def _payload(self) -> dict[str, Any]:
        return {
            "order_id": self.order_id,
            "customer_id": self.customer_id,
            "total_cents": self.total_cents,
            "currency": self.currency,
        }


# ============================================================================
# Event Registry
# ============================================================================


# Registry of all event types for deserialization
EVENT_REGISTRY: dict[str, type[DomainEvent]] = {
    # Appointment events
    AppointmentRequested.event_type: AppointmentRequested,
    AppointmentRescheduled.event_type: AppointmentRescheduled,
    AppointmentStatusChanged.event_type: AppointmentStatusChanged,
    # Order events
    OrderCreated.event_type: OrderCreated,
    OrderStatusChanged.event_type: OrderStatusChanged,
    # Rental events
    RentalAgreementAccepted.event_type: RentalAgreementAccepted,
    PenaltiesAssessed.event_type: PenaltiesAssessed,
    PenaltiesPaid.event_type: PenaltiesPaid,
}


def get_event_class(event_type: str) -> type[DomainEvent] | None:
    """Get event class by event type string.

    Args:
        event_type: Event type identifier (e.g., 'order.status_changed').

    Returns:
        Event class if found, None otherwise.
    """
    return EVENT_REGISTRY.get(event_type)
