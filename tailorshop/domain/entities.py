"""Domain records for the tailor shop.

Records are immutable: every change goes through a method that
returns a ``Transition`` holding the new record and the events that
describe the change. This module contains the Appointment record and
the Order record with its Rental and Purchase variants.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import ClassVar, Self

from tailorshop.domain.base import Record, Transition, utc_now
from tailorshop.domain.events import (
    AppointmentRequested,
    AppointmentRescheduled,
    AppointmentStatusChanged,
    OrderCreated,
    OrderStatusChanged,
)
from tailorshop.domain.exceptions import ValidationError
from tailorshop.domain.state_machines import (
    AppointmentStatus,
    CounterOfferStatus,
    DamageLevel,
    OrderKind,
    OrderStatus,
    PenaltyStatus,
    validate_appointment_transition,
    validate_order_transition,
)
from tailorshop.domain.value_objects import (
    Actor,
    AppointmentId,
    CustomerId,
    ItemDescriptor,
    Money,
    OrderId,
)


# ============================================================================
# Appointment Record
# ============================================================================


@dataclass(frozen=True, kw_only=True)
class Appointment(Record[AppointmentId]):
    """A fitting or consultation booked by a customer.

    ``created_at`` is the first-come-first-served priority and never
    changes, including across reschedules.

    Attributes:
        id: Unique appointment identifier.
        customer_id: Customer who booked the slot.
        scheduled_at: Shop-local date and time of the slot.
        service_type: Requested service (e.g. "fitting").
        status: Current appointment status.
        notes: Optional customer notes.
        cancellation_reason: Why the appointment was cancelled, if it was.
    """

    customer_id: CustomerId
    scheduled_at: datetime
    service_type: str
    status: AppointmentStatus = AppointmentStatus.PENDING
    notes: str | None = None
    cancellation_reason: str | None = None

    @classmethod
    def request(
        cls,
        customer_id: CustomerId,
        scheduled_at: datetime,
        service_type: str,
        notes: str | None = None,
        now: datetime | None = None,
        appointment_id: AppointmentId | None = None,
    ) -> Transition["Appointment"]:
        """Create a new pending appointment.

        Args:
            customer_id: Customer booking the slot.
            scheduled_at: Requested slot (naive, shop-local).
            service_type: Requested service.
            notes: Optional notes.
            now: Creation timestamp, the FCFS priority.
            appointment_id: Optional pre-generated ID.

        Returns:
            Transition with the new appointment and its creation event.

        Raises:
            ValidationError: If the service type is blank.
        """
        if not service_type or not service_type.strip():
            raise ValidationError("Service type is required")
        created = now or utc_now()
        appointment = cls(
            id=appointment_id or AppointmentId.generate(),
            customer_id=customer_id,
            scheduled_at=scheduled_at.replace(second=0, microsecond=0, tzinfo=None),
            service_type=service_type.strip(),
            notes=notes,
            created_at=created,
            updated_at=created,
        )
        event = AppointmentRequested(
            aggregate_id=str(appointment.id),
            aggregate_type="Appointment",
            occurred_at=created,
            appointment_id=str(appointment.id),
            customer_id=str(customer_id),
            scheduled_at=appointment.scheduled_at.isoformat(),
            service_type=appointment.service_type,
        )
        return Transition(appointment, (event,))

    # -------------------------------------------------------------------------
    # Query Methods
    # -------------------------------------------------------------------------

    @property
    def day(self) -> date:
        return self.scheduled_at.date()

    @property
    def slot_time(self) -> time:
        return self.scheduled_at.time()

    @property
    def priority(self) -> tuple[datetime, str]:
        """FCFS ordering key: creation time, then id for exact ties."""
        return (self.created_at, str(self.id))

    def holds_slot(self) -> bool:
        return self.status.holds_slot()

    # -------------------------------------------------------------------------
    # State Transitions
    # -------------------------------------------------------------------------

    def with_status(
        self,
        target: AppointmentStatus,
        actor: Actor,
        transition: str,
        reason: str | None = None,
        now: datetime | None = None,
    ) -> Transition["Appointment"]:
        """Move to ``target`` status.

        Raises:
            InvalidStateTransitionError: If the move is not allowed.
        """
        validate_appointment_transition(str(self.id), transition, self.status, target)
        at = now or utc_now()
        updated = self.evolve(
            now=at,
            status=target,
            cancellation_reason=reason if target == AppointmentStatus.CANCELLED else None,
        )
        event = AppointmentStatusChanged(
            aggregate_id=str(self.id),
            aggregate_type="Appointment",
            occurred_at=at,
            appointment_id=str(self.id),
            customer_id=str(self.customer_id),
            actor=str(actor),
            old_status=self.status.value,
            new_status=target.value,
            reason=reason,
        )
        return Transition(updated, (event,))

    def reschedule(
        self,
        scheduled_at: datetime,
        actor: Actor,
        now: datetime | None = None,
    ) -> Transition["Appointment"]:
        """Move the appointment to another slot and reset it to pending.

        Raises:
            InvalidStateTransitionError: If the appointment is cancelled or completed.
        """
        validate_appointment_transition(
            str(self.id), "reschedule", self.status, AppointmentStatus.PENDING
        )
        at = now or utc_now()
        new_at = scheduled_at.replace(second=0, microsecond=0, tzinfo=None)
        updated = self.evolve(now=at, scheduled_at=new_at, status=AppointmentStatus.PENDING)
        events: list = [
            AppointmentRescheduled(
                aggregate_id=str(self.id),
                aggregate_type="Appointment",
                occurred_at=at,
                appointment_id=str(self.id),
                customer_id=str(self.customer_id),
                previous_scheduled_at=self.scheduled_at.isoformat(),
                scheduled_at=new_at.isoformat(),
            )
        ]
        if self.status != AppointmentStatus.PENDING:
            events.append(
                AppointmentStatusChanged(
                    aggregate_id=str(self.id),
                    aggregate_type="Appointment",
                    occurred_at=at,
                    appointment_id=str(self.id),
                    customer_id=str(self.customer_id),
                    actor=str(actor),
                    old_status=self.status.value,
                    new_status=AppointmentStatus.PENDING.value,
                    reason="rescheduled",
                )
            )
        return Transition(updated, tuple(events))


# ============================================================================
# Order Records
# ============================================================================


@dataclass(frozen=True)
class StatusHistoryEntry:
    """One status change in an order's history."""

    from_status: OrderStatus | None
    to_status: OrderStatus
    transition: str
    actor: str
    at: datetime


@dataclass(frozen=True, kw_only=True)
class Order(Record[OrderId]):
    """Common fields of rental and purchase orders.

    Orders are created by a customer and only change through
    ``OrderStateMachine``.

    Attributes:
        id: Unique order identifier.
        customer_id: Customer who placed the order.
        item: What is being rented or made.
        status: Current order status.
        quotation_amount: Price quoted by the shop (or agreed counter-offer).
        quotation_notes: Notes sent with the quotation.
        quotation_sent_at: When the quotation was issued.
        quotation_responded_at: When the customer accepted or rejected it.
        counter_offer_amount: Price proposed by the customer.
        counter_offer_notes: Notes sent with the counter-offer.
        counter_offer_sent_at: When the counter-offer was submitted.
        counter_offer_status: Counter-offer state.
        cancelled_by: Actor who cancelled the order.
        status_history: Every status change, oldest first.
    """

    kind: ClassVar[OrderKind]

    customer_id: CustomerId
    item: ItemDescriptor
    status: OrderStatus = OrderStatus.PENDING
    quotation_amount: Money | None = None
    quotation_notes: str | None = None
    quotation_sent_at: datetime | None = None
    quotation_responded_at: datetime | None = None
    counter_offer_amount: Money | None = None
    counter_offer_notes: str | None = None
    counter_offer_sent_at: datetime | None = None
    counter_offer_status: CounterOfferStatus = CounterOfferStatus.NONE
    cancelled_by: str | None = None
    status_history: tuple[StatusHistoryEntry, ...] = ()

    @classmethod
    def place(
        cls,
        customer_id: CustomerId,
        item: ItemDescriptor,
        now: datetime | None = None,
        order_id: OrderId | None = None,
        **extra,
    ) -> Transition[Self]:
        """Create a new pending order.

        Args:
            customer_id: Customer placing the order.
            item: Item descriptor.
            now: Creation timestamp.
            order_id: Optional pre-generated ID.
            **extra: Variant-specific fields (e.g. rental fee defaults).

        Returns:
            Transition with the new order and its creation event.
        """
        created = now or utc_now()
        order = cls(
            id=order_id or OrderId.generate(),
            customer_id=customer_id,
            item=item,
            created_at=created,
            updated_at=created,
            status_history=(
                StatusHistoryEntry(
                    from_status=None,
                    to_status=OrderStatus.PENDING,
                    transition="create",
                    actor=f"customer:{customer_id}",
                    at=created,
                ),
            ),
            **extra,
        )
        event = OrderCreated(
            aggregate_id=str(order.id),
            aggregate_type=cls.kind.value,
            occurred_at=created,
            order_id=str(order.id),
            order_kind=cls.kind.value,
            customer_id=str(customer_id),
            item_name=item.name,
        )
        return Transition(order, (event,))

    def is_owned_by(self, customer_id: CustomerId | None) -> bool:
        return customer_id is not None and customer_id == self.customer_id

    def advance(
        self,
        target: OrderStatus,
        transition: str,
        actor: Actor,
        now: datetime,
        amount: Money | None = None,
        **changes,
    ) -> Transition[Self]:
        """Move to ``target`` status, applying ``changes`` alongside.

        Records the history entry and the ``OrderStatusChanged`` event.

        Raises:
            InvalidStateTransitionError: If the status table forbids the move.
        """
        validate_order_transition(str(self.id), self.kind, transition, self.status, target)
        entry = StatusHistoryEntry(
            from_status=self.status,
            to_status=target,
            transition=transition,
            actor=str(actor),
            at=now,
        )
        updated = self.evolve(
            now=now,
            status=target,
            status_history=self.status_history + (entry,),
            **changes,
        )
        event = OrderStatusChanged(
            aggregate_id=str(self.id),
            aggregate_type=self.kind.value,
            occurred_at=now,
            order_id=str(self.id),
            order_kind=self.kind.value,
            customer_id=str(self.customer_id),
            actor=str(actor),
            transition=transition,
            old_status=self.status.value,
            new_status=target.value,
            amount_cents=amount.amount_cents if amount else None,
            currency=amount.currency if amount else None,
        )
        return Transition(updated, (event,))


@dataclass(frozen=True, kw_only=True)
class Purchase(Order):
    """A made-to-measure garment the customer buys."""

    kind: ClassVar[OrderKind] = OrderKind.PURCHASE


def _pesos(amount: str) -> Money:
    return Money.from_decimal(amount)


@dataclass(frozen=True, kw_only=True)
class Rental(Order):
    """A garment rented for an occasion and returned afterwards.

    Attributes:
        cancellation_fee: Flat fee charged when the rental is cancelled.
        daily_delay_fee: Fee per day of late return.
        damage_fee_min: Fee for minor damage.
        damage_fee_max: Damage ceiling, set from the quotation amount.
        damage_level: Damage found at the last penalty assessment.
        assessed_damage_fee: Damage component of the last assessment.
        assessed_delay_fee: Delay component of the last assessment.
        total_penalties: Amount the customer owes in penalties.
        penalty_status: Penalty settlement state.
        penalty_notes: Admin notes on the assessment.
        penalty_calculated_at: When penalties were last assessed.
        penalty_paid_at: When penalties were settled.
        agreement_accepted: Whether the customer accepted the rental terms.
        agreement_accepted_at: When the rental terms were accepted.
    """

    kind: ClassVar[OrderKind] = OrderKind.RENTAL

    cancellation_fee: Money = field(default_factory=lambda: _pesos("500.00"))
    daily_delay_fee: Money = field(default_factory=lambda: _pesos("100.00"))
    damage_fee_min: Money = field(default_factory=lambda: _pesos("200.00"))
    damage_fee_max: Money | None = None
    damage_level: DamageLevel | None = None
    assessed_damage_fee: Money = field(default_factory=Money.zero)
    assessed_delay_fee: Money = field(default_factory=Money.zero)
    total_penalties: Money = field(default_factory=Money.zero)
    penalty_status: PenaltyStatus = PenaltyStatus.NONE
    penalty_notes: str | None = None
    penalty_calculated_at: datetime | None = None
    penalty_paid_at: datetime | None = None
    agreement_accepted: bool = False
    agreement_accepted_at: datetime | None = None


ORDER_TYPES: dict[OrderKind, type[Order]] = {
    OrderKind.RENTAL: Rental,
    OrderKind.PURCHASE: Purchase,
}
