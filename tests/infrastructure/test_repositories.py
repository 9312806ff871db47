"""Tests for the in-memory stores."""

import asyncio
from datetime import date, datetime, time, timedelta, timezone

import pytest

from tailorshop.domain import (
    Actor,
    Appointment,
    AppointmentStatus,
    CustomerId,
    ItemDescriptor,
    OrderKind,
    OrderStateMachine,
    Purchase,
)
from tailorshop.domain.base import Transition
from tailorshop.domain.exceptions import StaleRecordError
from tailorshop.infrastructure.repositories import (
    InMemoryAppointmentStore,
    InMemoryOrderStore,
)

DAY = date(2026, 5, 4)
T0 = datetime(2026, 4, 1, 8, 0, tzinfo=timezone.utc)


def request(customer: str, hh: int, mm: int = 0, minute: int = 0, day: date = DAY) -> Appointment:
    appointment, _ = Appointment.request(
        CustomerId(customer),
        datetime.combine(day, time(hh, mm)),
        "fitting",
        now=T0 + timedelta(minutes=minute),
    )
    return appointment


class TestAppointmentStore:
    """Tests for InMemoryAppointmentStore."""

    @pytest.mark.asyncio
    async def test_save_and_get(self) -> None:
        store = InMemoryAppointmentStore()
        appointment = await store.save(request("a", 9))
        assert await store.get(appointment.id) == appointment

    @pytest.mark.asyncio
    async def test_new_record_must_be_version_one(self) -> None:
        store = InMemoryAppointmentStore()
        appointment = request("a", 9).evolve()
        with pytest.raises(StaleRecordError) as exc_info:
            await store.save(appointment)
        assert exc_info.value.code == "STALE_RECORD"

    @pytest.mark.asyncio
    async def test_concurrent_edit_is_rejected(self) -> None:
        store = InMemoryAppointmentStore()
        original = await store.save(request("a", 9))
        first, _ = original.with_status(AppointmentStatus.CONFIRMED, Actor.admin(), "confirm")
        second, _ = original.with_status(AppointmentStatus.CANCELLED, Actor.admin(), "cancel")
        await store.save(first)
        with pytest.raises(StaleRecordError):
            await store.save(second)
        assert (await store.get(original.id)).status == AppointmentStatus.CONFIRMED

    @pytest.mark.asyncio
    async def test_find_filters_and_orders_by_slot(self) -> None:
        store = InMemoryAppointmentStore()
        late = await store.save(request("a", 15, minute=0))
        early = await store.save(request("b", 9, minute=1))
        await store.save(request("a", 10, day=DAY + timedelta(days=1)))

        assert await store.find(day=DAY) == [early, late]
        assert len(await store.find(customer_id=CustomerId("a"))) == 2
        assert await store.find(status=AppointmentStatus.CONFIRMED) == []

    @pytest.mark.asyncio
    async def test_list_pending_is_fcfs(self) -> None:
        store = InMemoryAppointmentStore()
        second = await store.save(request("a", 9, minute=5))
        first = await store.save(request("b", 16, minute=1))
        assert await store.list_pending() == [first, second]
        assert await store.list_pending(created_before=T0 + timedelta(minutes=2)) == [first]

    @pytest.mark.asyncio
    async def test_count_and_booked_dates(self) -> None:
        store = InMemoryAppointmentStore()
        kept = await store.save(request("a", 9))
        dropped = await store.save(request("b", 9, day=DAY + timedelta(days=2)))
        cancelled, _ = dropped.with_status(AppointmentStatus.CANCELLED, Actor.admin(), "cancel")
        await store.save(cancelled)

        assert await store.count_by_date_and_status(kept.day) == 1
        assert (
            await store.count_by_date_and_status(
                cancelled.day, [AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED]
            )
            == 0
        )
        assert await store.booked_dates() == [DAY]
        assert await store.booked_dates(from_day=DAY + timedelta(days=1)) == []


class TestApplyOnDay:
    """Tests for the atomic per-day update."""

    @pytest.mark.asyncio
    async def test_snapshot_contains_only_that_day(self) -> None:
        store = InMemoryAppointmentStore()
        await store.save(request("a", 9))
        await store.save(request("b", 9, day=DAY + timedelta(days=1)))
        seen: list[Appointment] = []

        def update(snapshot: list[Appointment]) -> list[Transition[Appointment]]:
            seen.extend(snapshot)
            return []

        assert await store.apply_on_day(DAY, update) == []
        assert [a.customer_id for a in seen] == [CustomerId("a")]

    @pytest.mark.asyncio
    async def test_unchanged_transitions_are_not_saved(self) -> None:
        store = InMemoryAppointmentStore()
        appointment = await store.save(request("a", 9))
        saved = await store.apply_on_day(DAY, lambda snapshot: [Transition(snapshot[0])])
        assert saved == []
        assert (await store.get(appointment.id)).version == 1

    @pytest.mark.asyncio
    async def test_all_or_nothing(self) -> None:
        store = InMemoryAppointmentStore()
        a = await store.save(request("a", 9))
        b = await store.save(request("b", 11))

        def update(snapshot: list[Appointment]) -> list[Transition[Appointment]]:
            good = a.with_status(AppointmentStatus.CONFIRMED, Actor.admin(), "confirm")
            stale_b = b.evolve().evolve()
            bad = Transition(stale_b, good.events)
            return [good, bad]

        with pytest.raises(StaleRecordError):
            await store.apply_on_day(DAY, update)
        assert (await store.get(a.id)).status == AppointmentStatus.PENDING

    @pytest.mark.asyncio
    async def test_concurrent_inserts_respect_capacity(self) -> None:
        """Two writers racing for the last seat: only one gets in."""
        store = InMemoryAppointmentStore()
        for i in range(4):
            await store.save(request(f"c{i}", 9 + i))

        def insert(customer: str, hh: int):
            def update(snapshot: list[Appointment]) -> list[Transition[Appointment]]:
                holding = [s for s in snapshot if s.holds_slot()]
                if len(holding) >= 5:
                    return []
                return [Appointment.request(CustomerId(customer), datetime.combine(DAY, time(hh)), "fitting")]

            return store.apply_on_day(DAY, update)

        results = await asyncio.gather(insert("x", 14), insert("y", 15))
        assert sorted(len(r) for r in results) == [0, 1]
        assert await store.count_by_date_and_status(DAY) == 5


class TestOrderStore:
    """Tests for InMemoryOrderStore."""

    @pytest.mark.asyncio
    async def test_save_find_delete(self, clock) -> None:
        store = InMemoryOrderStore()
        machine = OrderStateMachine(clock=clock)
        customer = Actor.customer("cust-1")
        item = ItemDescriptor.create(name="Gown", clothing_type="gown")
        rental, _ = machine.create(OrderKind.RENTAL, customer, item)
        purchase, _ = machine.create(OrderKind.PURCHASE, customer, item)
        await store.save(rental)
        await store.save(purchase)

        # Newest first
        assert await store.find() == [purchase, rental]
        assert await store.find(kind=OrderKind.RENTAL) == [rental]
        assert await store.find(customer_id=CustomerId("other")) == []

        assert await store.delete(rental.id) is True
        assert await store.delete(rental.id) is False
        assert await store.get(rental.id) is None

    @pytest.mark.asyncio
    async def test_stale_order_rejected(self) -> None:
        store = InMemoryOrderStore()
        item = ItemDescriptor.create(name="Suit", clothing_type="suit")
        order, _ = Purchase.place(CustomerId("cust-1"), item)
        await store.save(order)
        with pytest.raises(StaleRecordError) as exc_info:
            await store.save(order)
        assert exc_info.value.details["entity_type"] == "Purchase"
