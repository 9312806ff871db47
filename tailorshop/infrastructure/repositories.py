"""Appointment and order stores.

Stores are the only place records are persisted. They enforce the
optimistic version rule: a saved record must be exactly one version
ahead of the stored one, and a new record must be version 1.

The in-memory stores here are the default backend and the test
backend; ``sql_repositories`` holds the PostgreSQL versions.
"""

import threading
from collections.abc import Callable, Iterable, Sequence
from datetime import date, datetime
from typing import Protocol

from tailorshop.domain.base import Record, Transition
from tailorshop.domain.entities import Appointment, Order
from tailorshop.domain.exceptions import StaleRecordError
from tailorshop.domain.state_machines import AppointmentStatus, OrderKind, OrderStatus
from tailorshop.domain.value_objects import AppointmentId, CustomerId, OrderId

DayUpdate = Callable[[list[Appointment]], Sequence[Transition[Appointment]]]


def check_version(entity_type: str, stored: Record | None, record: Record) -> None:
    """Reject a save that was not based on the stored version.

    Raises:
        StaleRecordError: If ``record`` does not follow ``stored``.
    """
    expected = stored.version + 1 if stored is not None else 1
    if record.version != expected:
        raise StaleRecordError(
            entity_type,
            str(record.id),
            expected=record.version - 1,
            actual=stored.version if stored is not None else 0,
        )


# ============================================================================
# Store Interfaces
# ============================================================================


class AppointmentStore(Protocol):
    """Persistence boundary for appointments."""

    async def get(self, appointment_id: AppointmentId) -> Appointment | None: ...

    async def find(
        self,
        customer_id: CustomerId | None = None,
        status: AppointmentStatus | None = None,
        day: date | None = None,
    ) -> list[Appointment]: ...

    async def list_pending(self, created_before: datetime | None = None) -> list[Appointment]: ...

    async def count_by_date_and_status(
        self,
        day: date,
        statuses: Iterable[AppointmentStatus] | None = None,
    ) -> int: ...

    async def booked_dates(self, from_day: date | None = None) -> list[date]: ...

    async def save(self, appointment: Appointment) -> Appointment: ...

    async def apply_on_day(self, day: date, update: DayUpdate) -> list[Transition[Appointment]]:
        """Run ``update`` on a snapshot of ``day`` and save its results atomically."""
        ...


class OrderStore(Protocol):
    """Persistence boundary for rental and purchase orders."""

    async def get(self, order_id: OrderId) -> Order | None: ...

    async def find(
        self,
        customer_id: CustomerId | None = None,
        kind: OrderKind | None = None,
        status: OrderStatus | None = None,
    ) -> list[Order]: ...

    async def save(self, order: Order) -> Order: ...

    async def delete(self, order_id: OrderId) -> bool: ...


# ============================================================================
# In-Memory Appointment Store
# ============================================================================


class InMemoryAppointmentStore:
    """In-memory appointment store.

    A single re-entrant lock serializes every write, which makes each
    ``apply_on_day`` call an atomic read-check-write on its day.
    """

    def __init__(self) -> None:
        self._appointments: dict[AppointmentId, Appointment] = {}
        self._lock = threading.RLock()

    async def get(self, appointment_id: AppointmentId) -> Appointment | None:
        with self._lock:
            return self._appointments.get(appointment_id)

    async def find(
        self,
        customer_id: CustomerId | None = None,
        status: AppointmentStatus | None = None,
        day: date | None = None,
    ) -> list[Appointment]:
        with self._lock:
            appointments = list(self._appointments.values())

        if customer_id is not None:
            appointments = [a for a in appointments if a.customer_id == customer_id]
        if status is not None:
            appointments = [a for a in appointments if a.status == status]
        if day is not None:
            appointments = [a for a in appointments if a.day == day]

        appointments.sort(key=lambda a: (a.scheduled_at, a.priority))
        return appointments

    async def list_pending(self, created_before: datetime | None = None) -> list[Appointment]:
        """Pending appointments in FCFS order."""
        pending = await self.find(status=AppointmentStatus.PENDING)
        if created_before is not None:
            pending = [a for a in pending if a.created_at < created_before]
        return sorted(pending, key=lambda a: a.priority)

    async def count_by_date_and_status(
        self,
        day: date,
        statuses: Iterable[AppointmentStatus] | None = None,
    ) -> int:
        wanted = set(statuses) if statuses is not None else None
        with self._lock:
            return sum(
                1
                for a in self._appointments.values()
                if a.day == day and (wanted is None or a.status in wanted)
            )

    async def booked_dates(self, from_day: date | None = None) -> list[date]:
        """Dates holding at least one non-cancelled appointment."""
        with self._lock:
            days = {a.day for a in self._appointments.values() if a.holds_slot()}
        if from_day is not None:
            days = {d for d in days if d >= from_day}
        return sorted(days)

    async def save(self, appointment: Appointment) -> Appointment:
        with self._lock:
            self._save_locked(appointment)
        return appointment

    def _save_locked(self, appointment: Appointment) -> None:
        check_version("Appointment", self._appointments.get(appointment.id), appointment)
        self._appointments[appointment.id] = appointment

    async def apply_on_day(self, day: date, update: DayUpdate) -> list[Transition[Appointment]]:
        """Apply ``update`` to the appointments of ``day`` under the store lock.

        ``update`` receives the day's appointments (every status) and
        returns the transitions to persist. Either all of them are saved
        or none are.
        """
        with self._lock:
            snapshot = [a for a in self._appointments.values() if a.day == day]
            transitions = [t for t in update(snapshot) if t.changed]
            for transition in transitions:
                check_version(
                    "Appointment",
                    self._appointments.get(transition.record.id),
                    transition.record,
                )
            for transition in transitions:
                self._appointments[transition.record.id] = transition.record
        return transitions


# ============================================================================
# In-Memory Order Store
# ============================================================================


class InMemoryOrderStore:
    """In-memory store for rental and purchase orders."""

    def __init__(self) -> None:
        self._orders: dict[OrderId, Order] = {}
        self._lock = threading.Lock()

    async def get(self, order_id: OrderId) -> Order | None:
        with self._lock:
            return self._orders.get(order_id)

    async def find(
        self,
        customer_id: CustomerId | None = None,
        kind: OrderKind | None = None,
        status: OrderStatus | None = None,
    ) -> list[Order]:
        with self._lock:
            orders = list(self._orders.values())

        if customer_id is not None:
            orders = [o for o in orders if o.customer_id == customer_id]
        if kind is not None:
            orders = [o for o in orders if o.kind == kind]
        if status is not None:
            orders = [o for o in orders if o.status == status]

        # Newest first
        orders.sort(key=lambda o: o.created_at, reverse=True)
        return orders

    async def save(self, order: Order) -> Order:
        with self._lock:
            check_version(order.kind.value.capitalize(), self._orders.get(order.id), order)
            self._orders[order.id] = order
        return order

    async def delete(self, order_id: OrderId) -> bool:
        with self._lock:
            return self._orders.pop(order_id, None) is not None


# ============================================================================
# Store Singletons
# ============================================================================


_appointment_store: AppointmentStore | None = None
_order_store: OrderStore | None = None


def _use_postgres() -> bool:
    from tailorshop.infrastructure.config import settings

    return settings.storage_backend == "postgres"


def get_appointment_store() -> AppointmentStore:
    """Get appointment store singleton for the configured backend."""
    global _appointment_store
    if _appointment_store is None:
        if _use_postgres():
            from tailorshop.infrastructure.sql_repositories import SqlAppointmentStore

            _appointment_store = SqlAppointmentStore()
        else:
            _appointment_store = InMemoryAppointmentStore()
    return _appointment_store


def get_order_store() -> OrderStore:
    """Get order store singleton for the configured backend."""
    global _order_store
    if _order_store is None:
        if _use_postgres():
            from tailorshop.infrastructure.sql_repositories import SqlOrderStore

            _order_store = SqlOrderStore()
        else:
            _order_store = InMemoryOrderStore()
    return _order_store


def reset_stores() -> None:
    """Reset both stores to empty in-memory ones (for testing)."""
    global _appointment_store, _order_store
    _appointment_store = InMemoryAppointmentStore()
    _order_store = InMemoryOrderStore()
