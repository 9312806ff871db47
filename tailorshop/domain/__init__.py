"""Domain layer - Records, value objects, state machines, domain events.

This module exports the core domain building blocks:

- **Records**: Immutable objects with identity (Appointment, Rental, Purchase)
- **Value Objects**: Immutable objects compared by value (Money, Actor, typed IDs)
- **State Machines**: Status vocabularies and transition tables
- **Policies**: Admission control, FCFS auto-approval, order negotiation, penalties
- **Domain Events**: Represent significant domain occurrences
- **Exceptions**: Domain-specific errors and invariant violations

Example usage:
    from tailorshop.domain import Actor, ItemDescriptor, Money, OrderKind, OrderStateMachine

    machine = OrderStateMachine()
    order, events = machine.create(
        OrderKind.PURCHASE,
        Actor.customer("cust-1"),
        ItemDescriptor.create(name="Barong Tagalog", clothing_type="barong"),
    )
    order, events = machine.set_quotation(order, Actor.admin(), Money.from_decimal("4500"))
    print(order.status)  # OrderStatus.QUOTATION_SENT
"""

# Base classes
from tailorshop.domain.base import DomainEvent, Record, Transition, ValueObject

# Records
from tailorshop.domain.entities import (
    ORDER_TYPES,
    Appointment,
    Order,
    Purchase,
    Rental,
    StatusHistoryEntry,
)

# Domain Events
from tailorshop.domain.events import (
    EVENT_REGISTRY,
    AppointmentRequested,
    AppointmentRescheduled,
    AppointmentStatusChanged,
    OrderCreated,
    OrderStatusChanged,
    PenaltiesAssessed,
    PenaltiesPaid,
    RentalAgreementAccepted,
    get_event_class,
)

# Exceptions
from tailorshop.domain.exceptions import (
    AuthorizationError,
    CapacityExceededError,
    ConflictError,
    CurrencyMismatchError,
    DailyLimitExceededError,
    DomainError,
    InvalidAmountError,
    InvalidStateTransitionError,
    NegativeMoneyError,
    NotFoundError,
    PastDateError,
    StaleRecordError,
    StateError,
    TimeSlotTakenError,
    ValidationError,
)

# Policies
from tailorshop.domain.order_machine import OrderStateMachine
from tailorshop.domain.penalties import PenaltyBreakdown, PenaltyCalculator
from tailorshop.domain.scheduling import (
    CONFLICT_WINDOW,
    ApprovalDecision,
    CapacitySnapshot,
    check_admission,
    daily_capacity,
    evaluate_auto_approval,
    find_conflicts,
)

# State Machines
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

# Value Objects
from tailorshop.domain.value_objects import (
    Actor,
    ActorRole,
    AppointmentId,
    BusinessRules,
    CustomerId,
    ItemDescriptor,
    Money,
    OrderId,
)

__all__ = [
    # Base classes
    "DomainEvent",
    "Record",
    "Transition",
    "ValueObject",
    # Records
    "ORDER_TYPES",
    "Appointment",
    "Order",
    "Purchase",
    "Rental",
    "StatusHistoryEntry",
    # Value Objects
    "Actor",
    "ActorRole",
    "AppointmentId",
    "BusinessRules",
    "CustomerId",
    "ItemDescriptor",
    "Money",
    "OrderId",
    # State Machines
    "AppointmentStatus",
    "CounterOfferStatus",
    "DamageLevel",
    "OrderKind",
    "OrderStatus",
    "PenaltyStatus",
    "validate_appointment_transition",
    "validate_order_transition",
    # Policies
    "CONFLICT_WINDOW",
    "ApprovalDecision",
    "CapacitySnapshot",
    "OrderStateMachine",
    "PenaltyBreakdown",
    "PenaltyCalculator",
    "check_admission",
    "daily_capacity",
    "evaluate_auto_approval",
    "find_conflicts",
    # Domain Events
    "EVENT_REGISTRY",
    "AppointmentRequested",
    "AppointmentRescheduled",
    "AppointmentStatusChanged",
    "OrderCreated",
    "OrderStatusChanged",
    "PenaltiesAssessed",
    "PenaltiesPaid",
    "RentalAgreementAccepted",
    "get_event_class",
    # Exceptions
    "AuthorizationError",
    "CapacityExceededError",
    "ConflictError",
    "CurrencyMismatchError",
    "DailyLimitExceededError",
    "DomainError",
    "InvalidAmountError",
    "InvalidStateTransitionError",
    "NegativeMoneyError",
    "NotFoundError",
    "PastDateError",
    "StaleRecordError",
    "StateError",
    "TimeSlotTakenError",
    "ValidationError",
]
