"""Value Objects for the domain layer.

Value objects are immutable objects that are defined by their attributes
rather than identity. They are interchangeable when their values are equal.
"""

from dataclasses import dataclass
from datetime import time
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Self
from uuid import UUID, uuid4

from tailorshop.domain.base import ValueObject
from tailorshop.domain.exceptions import (
    CurrencyMismatchError,
    NegativeMoneyError,
    ValidationError,
)

DEFAULT_CURRENCY = "PHP"


# ============================================================================
# Typed Identifiers
# ============================================================================


@dataclass(frozen=True)
class AppointmentId(ValueObject):
    """Strongly-typed appointment identifier.

    Using typed IDs prevents accidentally mixing up different entity IDs
    and provides compile-time safety.
    """

    value: UUID

    @classmethod
    def generate(cls) -> Self:
        """Generate a new appointment ID.

        Returns:
            New AppointmentId with random UUID.
        """
        return cls(value=uuid4())

    @classmethod
    def from_string(cls, value: str) -> Self:
        """Create AppointmentId from string representation.

        Args:
            value: String UUID representation.

        Returns:
            AppointmentId instance.

        Raises:
            ValidationError: If value is not a UUID.
        """
        try:
            return cls(value=UUID(value))
        except ValueError as e:
            raise ValidationError(f"Invalid appointment id: {value}") from e

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class OrderId(ValueObject):
    """Strongly-typed order identifier."""

    value: UUID

    @classmethod
    def generate(cls) -> Self:
        return cls(value=uuid4())

    @classmethod
    def from_string(cls, value: str) -> Self:
        """Create OrderId from string representation.

        Raises:
            ValidationError: If value is not a UUID.
        """
        try:
            return cls(value=UUID(value))
        except ValueError as e:
            raise ValidationError(f"Invalid order id: {value}") from e

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class CustomerId(ValueObject):
    """Strongly-typed customer identifier.

    Customer IDs come from the external account system and are opaque
    strings here.
    """

    value: str

    def __post_init__(self) -> None:
        """Validate customer ID format."""
        if not self.value or not self.value.strip():
            raise ValidationError("Customer ID cannot be empty")

    def __str__(self) -> str:
        return self.value


# ============================================================================
# Money Value Object
# ============================================================================


@dataclass(frozen=True)
class Money(ValueObject):
    """Represents monetary value with currency.

    Money is stored in the smallest currency unit (centavos for PHP)
    to avoid floating-point precision issues.

    Attributes:
        amount_cents: Amount in smallest currency unit.
        currency: ISO 4217 currency code (e.g., 'PHP').
    """

    amount_cents: int
    currency: str = DEFAULT_CURRENCY

    def __post_init__(self) -> None:
        """Validate money constraints."""
        if self.amount_cents < 0:
            raise NegativeMoneyError(self.amount_cents)
        # Normalize currency to uppercase
        object.__setattr__(self, "currency", self.currency.upper())

    @classmethod
    def zero(cls, currency: str = DEFAULT_CURRENCY) -> Self:
        """Create zero amount money."""
        return cls(amount_cents=0, currency=currency)

    @classmethod
    def from_decimal(cls, amount: Decimal | int | str, currency: str = DEFAULT_CURRENCY) -> Self:
        """Create money from an amount in major units.

        Args:
            amount: Amount in major units (e.g., pesos).
            currency: Currency code.

        Returns:
            Money instance.
        """
        cents = int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
        return cls(amount_cents=cents, currency=currency)

    @classmethod
    def from_float(cls, amount: float, currency: str = DEFAULT_CURRENCY) -> Self:
        """Create money from float amount.

        Note: Prefer from_decimal for precision.
        """
        return cls.from_decimal(Decimal(str(amount)), currency)

    def to_decimal(self) -> Decimal:
        """Convert to decimal amount in major units."""
        return (Decimal(self.amount_cents) / 100).quantize(Decimal("0.01"))

    def _check_currency(self, other: "Money") -> None:
        if self.currency != other.currency:
            raise CurrencyMismatchError(self.currency, other.currency)

    def __add__(self, other: "Money") -> "Money":
        self._check_currency(other)
        return Money(
            amount_cents=self.amount_cents + other.amount_cents,
            currency=self.currency,
        )

    def __sub__(self, other: "Money") -> "Money":
        self._check_currency(other)
        return Money(
            amount_cents=self.amount_cents - other.amount_cents,
            currency=self.currency,
        )

    def __mul__(self, quantity: int) -> "Money":
        return Money(
            amount_cents=self.amount_cents * quantity,
            currency=self.currency,
        )

    def __rmul__(self, quantity: int) -> "Money":
        return self.__mul__(quantity)

    def __lt__(self, other: "Money") -> bool:
        self._check_currency(other)
        return self.amount_cents < other.amount_cents

    def __le__(self, other: "Money") -> bool:
        self._check_currency(other)
        return self.amount_cents <= other.amount_cents

    def __str__(self) -> str:
        """Return formatted string representation.

        Returns:
            Formatted money string (e.g., '₱5,000.00 PHP').
        """
        symbol = {"PHP": "₱", "USD": "$", "EUR": "€"}.get(self.currency, "")
        return f"{symbol}{self.to_decimal():,.2f} {self.currency}"

    def is_zero(self) -> bool:
        return self.amount_cents == 0


# ============================================================================
# Actors
# ============================================================================


class ActorRole(str, Enum):
    """Who is performing an operation."""

    CUSTOMER = "customer"
    ADMIN = "admin"
    SYSTEM = "system"


@dataclass(frozen=True)
class Actor(ValueObject):
    """The caller of a state transition.

    Authentication is handled upstream; the core only checks that the
    role may perform the transition and that customers act on their
    own records.

    Attributes:
        role: Actor role.
        customer_id: Customer identity, required for the customer role.
    """

    role: ActorRole
    customer_id: CustomerId | None = None

    def __post_init__(self) -> None:
        if self.role == ActorRole.CUSTOMER and self.customer_id is None:
            raise ValidationError("Customer actor requires a customer id")

    @classmethod
    def customer(cls, customer_id: CustomerId | str) -> Self:
        if isinstance(customer_id, str):
            customer_id = CustomerId(customer_id)
        return cls(role=ActorRole.CUSTOMER, customer_id=customer_id)

    @classmethod
    def admin(cls) -> Self:
        return cls(role=ActorRole.ADMIN)

    @classmethod
    def system(cls) -> Self:
        return cls(role=ActorRole.SYSTEM)

    def __str__(self) -> str:
        if self.customer_id is not None:
            return f"{self.role.value}:{self.customer_id}"
        return self.role.value


# ============================================================================
# Business Rules
# ============================================================================


@dataclass(frozen=True)
class BusinessRules(ValueObject):
    """Tunable scheduling rules supplied by the config provider.

    Attributes:
        business_start: First bookable time of day (inclusive).
        business_end: Last bookable time of day (inclusive).
        max_appointments_per_day: Ceiling on non-cancelled appointments per date.
        auto_approve_enabled: Whether new appointments are auto-approved.
    """

    business_start: time
    business_end: time
    max_appointments_per_day: int = 5
    auto_approve_enabled: bool = False

    def __post_init__(self) -> None:
        if self.max_appointments_per_day < 1:
            raise ValidationError(
                "max_appointments_per_day must be at least 1",
                details={"max_appointments_per_day": self.max_appointments_per_day},
            )
        if self.business_end <= self.business_start:
            raise ValidationError(
                "business_end must be after business_start",
                details={
                    "business_start": self.business_start.isoformat(),
                    "business_end": self.business_end.isoformat(),
                },
            )

    def is_within_business_hours(self, at: time) -> bool:
        """Check a time of day against the inclusive business window."""
        return self.business_start <= at <= self.business_end


# ============================================================================
# Order Item Descriptor
# ============================================================================


@dataclass(frozen=True)
class ItemDescriptor(ValueObject):
    """What the customer wants rented or made.

    Attributes:
        name: Item name (e.g., "Barong Tagalog").
        clothing_type: Garment category.
        measurements: Body measurements keyed by name, in centimetres.
        notes: Free-form customer notes.
    """

    name: str
    clothing_type: str
    measurements: tuple[tuple[str, float], ...] = ()
    notes: str | None = None

    def __post_init__(self) -> None:
        if not self.name or not self.name.strip():
            raise ValidationError("Item name cannot be empty")
        if not self.clothing_type or not self.clothing_type.strip():
            raise ValidationError("Clothing type cannot be empty")

    @classmethod
    def create(
        cls,
        name: str,
        clothing_type: str,
        measurements: dict[str, float] | None = None,
        notes: str | None = None,
    ) -> Self:
        return cls(
            name=name,
            clothing_type=clothing_type,
            measurements=tuple(sorted((measurements or {}).items())),
            notes=notes,
        )

    def measurements_dict(self) -> dict[str, float]:
        return dict(self.measurements)
