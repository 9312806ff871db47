"""Base classes for domain layer.

Provides foundational abstractions for value objects, immutable
records and domain events. Records are never mutated in place: every
change produces a new record via ``evolve`` together with the events
that describe it.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, ClassVar, Generic, Self, TypeVar
from uuid import UUID, uuid4


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


# ============================================================================
# Value Object Base
# ============================================================================


@dataclass(frozen=True)
class ValueObject(ABC):
    """Base class for value objects.

    Value objects are immutable and compared by their attributes,
    not by identity. They have no lifecycle and are interchangeable
    when their values are equal.

    Example:
        @dataclass(frozen=True)
        class Money(ValueObject):
            amount_cents: int
            currency: str
    """

    pass


# ============================================================================
# Record Base
# ============================================================================


T = TypeVar("T")


@dataclass(frozen=True, kw_only=True)
class Record(ABC, Generic[T]):
    """Base class for immutable domain records.

    Records have identity that persists across versions. Equality
    compares the identity and the domain fields; version and timestamps
    are bookkeeping and are left out.

    Attributes:
        id: Unique identifier for this record.
        version: Optimistic locking version, bumped on every change.
        created_at: Timestamp when the record was created.
        updated_at: Timestamp of last modification.
    """

    id: T
    version: int = field(default=1, compare=False)
    created_at: datetime = field(default_factory=utc_now, compare=False)
    updated_at: datetime = field(default_factory=utc_now, compare=False)

    def evolve(self, now: datetime | None = None, **changes: Any) -> Self:
        """Return a copy with ``changes`` applied and the version bumped.

        Args:
            now: Timestamp to stamp as ``updated_at``.
            **changes: Field values to replace.

        Returns:
            New record instance.
        """
        return replace(
            self,
            version=self.version + 1,
            updated_at=now or utc_now(),
            **changes,
        )


# ============================================================================
# Domain Event Base
# ============================================================================


@dataclass(frozen=True)
class DomainEvent(ABC):
    """Base class for domain events.

    Domain events represent something significant that happened
    in the domain. They are immutable and contain all information
    about what happened.

    Attributes:
        event_id: Unique identifier for this event instance.
        event_type: String identifier for the event type (set by subclass).
        occurred_at: Timestamp when the event occurred.
        aggregate_id: ID of the record that emitted this event.
        aggregate_type: Type name of the record.
    """

    event_type: ClassVar[str]

    event_id: UUID = field(default_factory=uuid4)
    occurred_at: datetime = field(default_factory=utc_now)
    aggregate_id: str = field(default="")
    aggregate_type: str = field(default="")

    def to_dict(self) -> dict[str, Any]:
        """Convert event to dictionary for serialization.

        Returns:
            Dictionary representation of the event.
        """
        return {
            "event_id": str(self.event_id),
            "event_type": self.event_type,
            "occurred_at": self.occurred_at.isoformat(),
            "aggregate_id": self.aggregate_id,
            "aggregate_type": self.aggregate_type,
            "payload": self._payload(),
        }

    @abstractmethod
    def _payload(self) -> dict[str, Any]:
        """Get event-specific payload data.

        Returns:
            Dictionary with event-specific data.
        """
        pass


# ============================================================================
# Transition Result
# ============================================================================


R = TypeVar("R", bound=Record)


@dataclass(frozen=True)
class Transition(Generic[R]):
    """Result of a pure state transition.

    Unpacks as ``(record, events)``.

    Attributes:
        record: The new version of the record.
        events: Events describing the change, in emission order.
    """

    record: R
    events: tuple[DomainEvent, ...] = ()

    def __iter__(self):
        yield self.record
        yield self.events

    @property
    def changed(self) -> bool:
        return bool(self.events)
