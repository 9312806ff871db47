"""State machines for domain records.

Deterministic state machines that define valid state transitions
for appointments and orders. State machines enforce business
rules about what operations are valid in each state.
"""

from enum import Enum

from tailorshop.domain.exceptions import InvalidStateTransitionError


# ============================================================================
# Appointment State Machine
# ============================================================================


class AppointmentStatus(str, Enum):
    """Appointment lifecycle states.

    State diagram:
        PENDING ──────────────┬──────────────► CANCELLED
          │    ▲              │
          │    │ reschedule   │
          │ confirm           │
          ▼    │              │
        CONFIRMED ────────────┘
          │
          │ complete
          ▼
        COMPLETED
    """

    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"

    def can_transition_to(self, target: "AppointmentStatus") -> bool:
        return target in _APPOINTMENT_TRANSITIONS.get(self, set())

    def allowed_transitions(self) -> list["AppointmentStatus"]:
        return sorted(_APPOINTMENT_TRANSITIONS.get(self, set()), key=lambda s: s.value)

    def is_terminal(self) -> bool:
        return len(_APPOINTMENT_TRANSITIONS.get(self, set())) == 0

    def holds_slot(self) -> bool:
        """Check if the appointment counts against slot and daily capacity.

        Returns:
            True for every status except CANCELLED.
        """
        return self != AppointmentStatus.CANCELLED


_APPOINTMENT_TRANSITIONS: dict[AppointmentStatus, set[AppointmentStatus]] = {
    AppointmentStatus.PENDING: {
        AppointmentStatus.PENDING,  # reschedule keeps it pending
        AppointmentStatus.CONFIRMED,
        AppointmentStatus.CANCELLED,
    },
    AppointmentStatus.CONFIRMED: {
        AppointmentStatus.PENDING,  # reschedule resets approval
        AppointmentStatus.CANCELLED,
        AppointmentStatus.COMPLETED,
    },
    AppointmentStatus.CANCELLED: set(),  # Terminal state
    AppointmentStatus.COMPLETED: set(),  # Terminal state
}


# ============================================================================
# Order State Machine
# ============================================================================


class OrderKind(str, Enum):
    """Concrete order variants sharing one state machine."""

    RENTAL = "rental"
    PURCHASE = "purchase"


class OrderStatus(str, Enum):
    """Order lifecycle states shared by rentals and purchases.

    State diagram:
        PENDING ──► CONFIRMED ──► QUOTATION_SENT ──► COUNTER_OFFER_PENDING
          │                          │   │   ▲          │        │
          │ decline          reject  │   │   └──────────┼─ retry │ reject
          ▼                          ▼   │              │        ▼
        DECLINED ◄────────────────────── │ ◄────────────┼─── DECLINED
                                         │ accept       │ accept
                                         ▼              ▼
              (purchase) IN_PROGRESS ──► READY_FOR_PICKUP (rental lands here)
                                                │
                                                ▼
                                            PICKED_UP ──► RETURNED (rental only)

        Any state outside {PICKED_UP, RETURNED, DECLINED, CANCELLED}
        can move to CANCELLED.
    """

    PENDING = "pending"
    CONFIRMED = "confirmed"
    DECLINED = "declined"
    QUOTATION_SENT = "quotation_sent"
    COUNTER_OFFER_PENDING = "counter_offer_pending"
    IN_PROGRESS = "in_progress"
    READY_FOR_PICKUP = "ready_for_pickup"
    PICKED_UP = "picked_up"
    RETURNED = "returned"
    CANCELLED = "cancelled"

    def can_transition_to(self, target: "OrderStatus", kind: OrderKind) -> bool:
        """Check if transition to target state is valid for an order kind.

        Args:
            target: Target state to transition to.
            kind: Rental or purchase.

        Returns:
            True if transition is valid.
        """
        return target in _order_transitions(kind).get(self, set())

    def allowed_transitions(self, kind: OrderKind) -> list["OrderStatus"]:
        return sorted(_order_transitions(kind).get(self, set()), key=lambda s: s.value)

    def is_terminal(self, kind: OrderKind) -> bool:
        """Check if no transition at all leaves this state."""
        return len(_order_transitions(kind).get(self, set())) == 0

    def is_negotiation_closed(self) -> bool:
        """Check if quotations, counter-offers and cancellation are closed.

        Returns:
            True for PICKED_UP, RETURNED, DECLINED and CANCELLED.
        """
        return self in NEGOTIATION_CLOSED_STATUSES

    def is_cancellable(self) -> bool:
        return not self.is_negotiation_closed()


NEGOTIATION_CLOSED_STATUSES: frozenset[OrderStatus] = frozenset(
    {
        OrderStatus.PICKED_UP,
        OrderStatus.RETURNED,
        OrderStatus.DECLINED,
        OrderStatus.CANCELLED,
    }
)


def acceptance_target(kind: OrderKind) -> OrderStatus:
    """Status an order lands on once a price is agreed.

    Accepted purchases go to the workshop (IN_PROGRESS) while accepted
    rentals are already made and go straight to READY_FOR_PICKUP.
    """
    if kind == OrderKind.RENTAL:
        return OrderStatus.READY_FOR_PICKUP
    return OrderStatus.IN_PROGRESS


_SHARED_ORDER_TRANSITIONS: dict[OrderStatus, set[OrderStatus]] = {
    OrderStatus.PENDING: {
        OrderStatus.CONFIRMED,
        OrderStatus.DECLINED,
        OrderStatus.QUOTATION_SENT,
        OrderStatus.CANCELLED,
    },
    OrderStatus.CONFIRMED: {OrderStatus.QUOTATION_SENT, OrderStatus.CANCELLED},
    OrderStatus.QUOTATION_SENT: {
        OrderStatus.DECLINED,
        OrderStatus.COUNTER_OFFER_PENDING,
        OrderStatus.CANCELLED,
    },
    # Customer may retry with a counter-offer after a rejection
    OrderStatus.DECLINED: {OrderStatus.COUNTER_OFFER_PENDING},
    OrderStatus.COUNTER_OFFER_PENDING: {OrderStatus.DECLINED, OrderStatus.CANCELLED},
    OrderStatus.IN_PROGRESS: {OrderStatus.READY_FOR_PICKUP, OrderStatus.CANCELLED},
    OrderStatus.READY_FOR_PICKUP: {OrderStatus.PICKED_UP, OrderStatus.CANCELLED},
    OrderStatus.PICKED_UP: set(),
    OrderStatus.RETURNED: set(),  # Terminal state
    OrderStatus.CANCELLED: set(),  # Terminal state
}


def _build_order_transitions(kind: OrderKind) -> dict[OrderStatus, set[OrderStatus]]:
    table = {status: set(targets) for status, targets in _SHARED_ORDER_TRANSITIONS.items()}
    accepted = acceptance_target(kind)
    table[OrderStatus.QUOTATION_SENT].add(accepted)
    table[OrderStatus.COUNTER_OFFER_PENDING].add(accepted)
    if kind == OrderKind.RENTAL:
        table[OrderStatus.PICKED_UP] = {OrderStatus.RETURNED}
    return table


_ORDER_TRANSITIONS: dict[OrderKind, dict[OrderStatus, set[OrderStatus]]] = {
    kind: _build_order_transitions(kind) for kind in OrderKind
}


def _order_transitions(kind: OrderKind) -> dict[OrderStatus, set[OrderStatus]]:
    return _ORDER_TRANSITIONS[kind]


# ============================================================================
# Negotiation Sub-States
# ============================================================================


class CounterOfferStatus(str, Enum):
    """Counter-offer lifecycle."""

    NONE = "none"
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class PenaltyStatus(str, Enum):
    """Rental penalty settlement state."""

    NONE = "none"
    PENDING = "pending"
    PAID = "paid"


class DamageLevel(str, Enum):
    """Damage found on a returned rental, in increasing severity."""

    NONE = "none"
    MINOR = "minor"
    MAJOR = "major"
    SEVERE = "severe"


# ============================================================================
# State Machine Helpers
# ============================================================================


def validate_appointment_transition(
    appointment_id: str,
    transition: str,
    current_status: AppointmentStatus,
    target_status: AppointmentStatus,
) -> None:
    """Validate and raise if appointment state transition is invalid.

    Raises:
        InvalidStateTransitionError: If transition is not valid.
    """
    if not current_status.can_transition_to(target_status):
        raise InvalidStateTransitionError(
            entity_type="Appointment",
            entity_id=appointment_id,
            transition=transition,
            current_state=current_status.value,
            guard=f"status_allows_{target_status.value}",
            allowed_states=[
                s.value for s in AppointmentStatus if s.can_transition_to(target_status)
            ],
        )


def validate_order_transition(
    order_id: str,
    kind: OrderKind,
    transition: str,
    current_status: OrderStatus,
    target_status: OrderStatus,
) -> None:
    """Validate and raise if order state transition is invalid.

    Args:
        order_id: Order identifier for error message.
        kind: Rental or purchase.
        transition: Name of the attempted transition.
        current_status: Current order status.
        target_status: Target order status.

    Raises:
        InvalidStateTransitionError: If transition is not valid.
    """
    if not current_status.can_transition_to(target_status, kind):
        raise InvalidStateTransitionError(
            entity_type=kind.value.capitalize(),
            entity_id=order_id,
            transition=transition,
            current_state=current_status.value,
            guard=f"status_allows_{target_status.value}",
            allowed_states=[
                s.value for s in OrderStatus if s.can_transition_to(target_status, kind)
            ],
        )
