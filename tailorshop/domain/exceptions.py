"""Domain exceptions.

All domain-level errors that represent business rule violations.
Each error class carries a machine-readable ``code`` that callers
branch on (e.g. to show a "slot taken" message); the HTTP layer maps
the error family to a status code.
"""

from typing import Any, ClassVar


class DomainError(Exception):
    """Base class for all domain exceptions.

    All domain errors should inherit from this class to allow
    catching domain-specific errors at the application layer.
    """

    code: ClassVar[str] = "DOMAIN_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize domain error.

        Args:
            message: Human-readable error message.
            details: Optional dictionary with additional error context.
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}


# ============================================================================
# Validation Errors
# ============================================================================


class ValidationError(DomainError):
    """Raised when input is malformed or out of range."""

    code = "VALIDATION_ERROR"


class PastDateError(ValidationError):
    """Raised when an appointment is booked or moved into the past."""

    code = "PAST_DATE_NOT_ALLOWED"

    def __init__(self, requested_date: str) -> None:
        super().__init__(
            "Cannot schedule appointments in the past. "
            "Please select a current or future date.",
            details={"requested_date": requested_date},
        )


class InvalidAmountError(ValidationError):
    """Raised when a monetary amount is not acceptable."""

    code = "INVALID_AMOUNT"

    def __init__(self, field: str, amount: str, reason: str = "Amount must be positive") -> None:
        super().__init__(
            f"Invalid {field} {amount}: {reason}",
            details={"field": field, "amount": amount, "reason": reason},
        )


class NegativeMoneyError(ValidationError):
    """Raised when attempting to create money with negative amount."""

    code = "NEGATIVE_AMOUNT"

    def __init__(self, amount: int) -> None:
        """Initialize negative money error.

        Args:
            amount: The negative amount in cents.
        """
        super().__init__(
            f"Money amount cannot be negative: {amount}",
            details={"amount": amount},
        )


class CurrencyMismatchError(ValidationError):
    """Raised when attempting to combine money with different currencies."""

    code = "CURRENCY_MISMATCH"

    def __init__(self, currency1: str, currency2: str) -> None:
        super().__init__(
            f"Cannot combine money with different currencies: {currency1} and {currency2}",
            details={"currency1": currency1, "currency2": currency2},
        )


# ============================================================================
# Conflict Errors
# ============================================================================


class ConflictError(DomainError):
    """Base class for admission and concurrency conflicts."""

    code = "CONFLICT"


class DailyLimitExceededError(ConflictError):
    """Raised when a customer already holds an appointment on the date."""

    code = "DAILY_LIMIT_EXCEEDED"

    def __init__(self, customer_id: str, day: str) -> None:
        super().__init__(
            f"Customer {customer_id} already has an appointment on {day}. "
            "Only one appointment per day is allowed.",
            details={"customer_id": customer_id, "date": day},
        )


class TimeSlotTakenError(ConflictError):
    """Raised when the exact (date, time) slot is already reserved."""

    code = "TIME_SLOT_TAKEN"

    def __init__(self, day: str, time: str) -> None:
        super().__init__(
            f"The {time} slot on {day} is already booked. Please choose another time.",
            details={"date": day, "time": time},
        )


class CapacityExceededError(ConflictError):
    """Raised when the date has reached its appointment ceiling."""

    code = "CAPACITY_EXCEEDED"

    def __init__(self, day: str, booked_count: int, max_capacity: int) -> None:
        super().__init__(
            f"{day} is fully booked ({booked_count}/{max_capacity}). Please choose another date.",
            details={"date": day, "booked_count": booked_count, "max_capacity": max_capacity},
        )


class StaleRecordError(ConflictError):
    """Raised when a save is based on an outdated version of a record."""

    code = "STALE_RECORD"

    def __init__(self, entity_type: str, entity_id: str, expected: int, actual: int) -> None:
        super().__init__(
            f"{entity_type}({entity_id}) was modified concurrently "
            f"(expected version {expected}, found {actual})",
            details={
                "entity_type": entity_type,
                "entity_id": entity_id,
                "expected_version": expected,
                "actual_version": actual,
            },
        )


# ============================================================================
# State Machine Errors
# ============================================================================


class StateError(DomainError):
    """Raised when an operation's state precondition does not hold."""

    code = "INVALID_STATE_TRANSITION"


class InvalidStateTransitionError(StateError):
    """Raised when an invalid state transition is attempted.

    The ``guard`` names the violated precondition so callers can tell
    e.g. "quotation not sent yet" from "order already closed".
    """

    def __init__(
        self,
        entity_type: str,
        entity_id: str,
        transition: str,
        current_state: str,
        guard: str,
        allowed_states: list[str] | None = None,
    ) -> None:
        """Initialize invalid state transition error.

        Args:
            entity_type: Type of entity (e.g., "Rental", "Appointment").
            entity_id: ID of the entity.
            transition: Name of the attempted transition.
            current_state: Current state of the entity.
            guard: Name of the precondition that failed.
            allowed_states: States from which the transition is allowed.
        """
        allowed = allowed_states or []
        message = (
            f"Cannot {transition} {entity_type}({entity_id}) "
            f"in status '{current_state}': {guard}"
        )
        super().__init__(
            message,
            details={
                "entity_type": entity_type,
                "entity_id": entity_id,
                "transition": transition,
                "current_state": current_state,
                "guard": guard,
                "allowed_states": allowed,
            },
        )
        self.guard = guard


# ============================================================================
# Lookup and Access Errors
# ============================================================================


class NotFoundError(DomainError):
    """Raised when a referenced record does not exist."""

    code = "NOT_FOUND"

    def __init__(self, entity_type: str, entity_id: str) -> None:
        super().__init__(
            f"{entity_type} not found: {entity_id}",
            details={"entity_type": entity_type, "entity_id": entity_id},
        )


class AuthorizationError(DomainError):
    """Raised when the actor may not perform the operation."""

    code = "FORBIDDEN"

    def __init__(self, action: str, actor_role: str, reason: str = "") -> None:
        super().__init__(
            f"{actor_role} may not {action}" + (f": {reason}" if reason else ""),
            details={"action": action, "actor_role": actor_role, "reason": reason},
        )
