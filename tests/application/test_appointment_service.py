"""Tests for the appointment application service."""

from datetime import date, time, timedelta

import pytest

from tailorshop.application.appointment_service import AppointmentService
from tailorshop.domain import Actor, AppointmentStatus
from tailorshop.domain.exceptions import ValidationError
from tailorshop.infrastructure.config import Settings, SettingsConfigProvider
from tailorshop.infrastructure.notifications import InMemoryNotificationDispatcher
from tailorshop.infrastructure.repositories import InMemoryAppointmentStore


@pytest.fixture
def config() -> SettingsConfigProvider:
    return SettingsConfigProvider(
        Settings(
            business_start=time(9, 0),
            business_end=time(17, 0),
            max_appointments_per_day=5,
            auto_approve_enabled=True,
        )
    )


@pytest.fixture
def store() -> InMemoryAppointmentStore:
    return InMemoryAppointmentStore()


@pytest.fixture
def service(store, config, dispatcher, clock) -> AppointmentService:
    return AppointmentService(
        store=store, config=config, dispatcher=dispatcher, request_id="req-test", clock=clock
    )


async def reserve(service: AppointmentService, customer: str, day: date, hh: int, mm: int = 0):
    return await service.reserve_appointment(customer, day, time(hh, mm), "fitting")


class TestReserve:
    """Tests for reserve_appointment."""

    @pytest.mark.asyncio
    async def test_books_and_auto_approves(
        self, service: AppointmentService, dispatcher: InMemoryNotificationDispatcher, booking_day
    ) -> None:
        result = await reserve(service, "cust-001", booking_day, 9)
        assert result.success
        assert result.appointment.status == AppointmentStatus.CONFIRMED
        assert result.appointment.version == 2
        assert dispatcher.event_types() == [
            "appointment.requested",
            "appointment.status_changed",
        ]

    @pytest.mark.asyncio
    async def test_stays_pending_when_auto_approve_off(
        self, service: AppointmentService, config: SettingsConfigProvider, booking_day
    ) -> None:
        config.set_auto_approve(False)
        result = await reserve(service, "cust-001", booking_day, 9)
        assert result.appointment.status == AppointmentStatus.PENDING

    @pytest.mark.asyncio
    async def test_outside_hours_is_booked_but_pending(
        self, service: AppointmentService, booking_day
    ) -> None:
        result = await reserve(service, "cust-001", booking_day, 18)
        assert result.success
        assert result.appointment.status == AppointmentStatus.PENDING

    @pytest.mark.asyncio
    async def test_past_date_rejected(self, service: AppointmentService) -> None:
        result = await reserve(service, "cust-001", date.today() - timedelta(days=1), 10)
        assert not result.success
        assert result.error_code == "PAST_DATE_NOT_ALLOWED"

    @pytest.mark.asyncio
    async def test_blank_service_type_rejected(
        self, service: AppointmentService, booking_day
    ) -> None:
        result = await service.reserve_appointment("cust-001", booking_day, time(10, 0), "  ")
        assert result.error_code == "VALIDATION_ERROR"

    @pytest.mark.asyncio
    async def test_second_booking_same_day_rejected(
        self, service: AppointmentService, booking_day
    ) -> None:
        await reserve(service, "cust-001", booking_day, 9)
        result = await reserve(service, "cust-001", booking_day, 14)
        assert result.error_code == "DAILY_LIMIT_EXCEEDED"

    @pytest.mark.asyncio
    async def test_same_slot_rejected(self, service: AppointmentService, booking_day) -> None:
        await reserve(service, "cust-001", booking_day, 9)
        result = await reserve(service, "cust-002", booking_day, 9)
        assert result.error_code == "TIME_SLOT_TAKEN"

    @pytest.mark.asyncio
    async def test_scenario_full_day(
        self, service: AppointmentService, store: InMemoryAppointmentStore, booking_day
    ) -> None:
        """Five bookings fill the day; a sixth is refused."""
        for i in range(5):
            assert (await reserve(service, f"cust-{i}", booking_day, 9 + i)).success
        result = await reserve(service, "cust-late", booking_day, 16)
        assert result.error_code == "CAPACITY_EXCEEDED"
        assert await store.count_by_date_and_status(booking_day) == 5

        capacity = (await service.get_daily_capacity(booking_day)).capacity
        assert capacity.booked_count == 5
        assert capacity.available_slots == 0

    @pytest.mark.asyncio
    async def test_booking_that_fills_the_day_stays_pending(
        self, service: AppointmentService, booking_day
    ) -> None:
        statuses = [
            (await reserve(service, f"cust-{i}", booking_day, 9 + i)).appointment.status
            for i in range(5)
        ]
        assert statuses == [AppointmentStatus.CONFIRMED] * 4 + [AppointmentStatus.PENDING]

    @pytest.mark.asyncio
    async def test_scenario_earlier_booking_keeps_slot(
        self, service: AppointmentService, booking_day
    ) -> None:
        first = await reserve(service, "cust-X", booking_day, 9, 0)
        second = await reserve(service, "cust-Y", booking_day, 9, 10)
        assert first.appointment.status == AppointmentStatus.CONFIRMED
        assert second.success
        assert second.appointment.status == AppointmentStatus.CANCELLED
        assert second.appointment.cancellation_reason == "slot_taken_earlier"

    @pytest.mark.asyncio
    async def test_auto_approval_failure_keeps_booking(
        self, store: InMemoryAppointmentStore, config, dispatcher, clock, booking_day
    ) -> None:
        calls = {"n": 0}
        original = store.apply_on_day

        async def flaky_apply(day, update):
            calls["n"] += 1
            if calls["n"] > 1:
                raise RuntimeError("lock timeout")
            return await original(day, update)

        store.apply_on_day = flaky_apply
        service = AppointmentService(store=store, config=config, dispatcher=dispatcher, clock=clock)
        result = await reserve(service, "cust-001", booking_day, 9)
        assert result.success
        assert result.appointment.status == AppointmentStatus.PENDING
        assert await store.get(result.appointment.id) == result.appointment


class TestChanges:
    """Tests for reschedule, cancel and admin status updates."""

    @pytest.mark.asyncio
    async def test_reschedule_reruns_approval(
        self, service: AppointmentService, booking_day
    ) -> None:
        booked = (await reserve(service, "cust-001", booking_day, 9)).appointment
        customer = Actor.customer("cust-001")
        result = await service.reschedule_appointment(
            str(booked.id), customer, booking_day + timedelta(days=1), time(11, 0)
        )
        assert result.success
        assert result.appointment.status == AppointmentStatus.CONFIRMED
        assert result.appointment.day == booking_day + timedelta(days=1)
        assert result.appointment.created_at == booked.created_at

    @pytest.mark.asyncio
    async def test_reschedule_within_same_day(
        self, service: AppointmentService, booking_day
    ) -> None:
        booked = (await reserve(service, "cust-001", booking_day, 9)).appointment
        result = await service.reschedule_appointment(
            str(booked.id), Actor.customer("cust-001"), booking_day, time(15, 0)
        )
        assert result.success
        assert result.appointment.slot_time == time(15, 0)

    @pytest.mark.asyncio
    async def test_reschedule_into_taken_slot(
        self, service: AppointmentService, booking_day
    ) -> None:
        await reserve(service, "cust-002", booking_day, 11)
        mine = (await reserve(service, "cust-001", booking_day, 9)).appointment
        result = await service.reschedule_appointment(
            str(mine.id), Actor.customer("cust-001"), booking_day, time(11, 0)
        )
        assert result.error_code == "TIME_SLOT_TAKEN"

    @pytest.mark.asyncio
    async def test_other_customer_cannot_reschedule(
        self, service: AppointmentService, booking_day
    ) -> None:
        booked = (await reserve(service, "cust-001", booking_day, 9)).appointment
        result = await service.reschedule_appointment(
            str(booked.id), Actor.customer("cust-002"), booking_day, time(10, 0)
        )
        assert result.error_code == "FORBIDDEN"

    @pytest.mark.asyncio
    async def test_cancel_releases_slot(self, service: AppointmentService, booking_day) -> None:
        booked = (await reserve(service, "cust-001", booking_day, 9)).appointment
        cancelled = await service.cancel_appointment(
            str(booked.id), Actor.customer("cust-001"), reason="travel"
        )
        assert cancelled.appointment.status == AppointmentStatus.CANCELLED
        assert cancelled.appointment.cancellation_reason == "travel"
        assert (await reserve(service, "cust-002", booking_day, 9)).success

    @pytest.mark.asyncio
    async def test_cancel_twice_fails(self, service: AppointmentService, booking_day) -> None:
        booked = (await reserve(service, "cust-001", booking_day, 9)).appointment
        await service.cancel_appointment(str(booked.id), Actor.admin())
        result = await service.cancel_appointment(str(booked.id), Actor.admin())
        assert result.error_code == "INVALID_STATE_TRANSITION"

    @pytest.mark.asyncio
    async def test_admin_completes(self, service: AppointmentService, booking_day) -> None:
        booked = (await reserve(service, "cust-001", booking_day, 9)).appointment
        result = await service.admin_update_status(
            str(booked.id), Actor.admin(), AppointmentStatus.COMPLETED
        )
        assert result.appointment.status == AppointmentStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_admin_cannot_set_pending(
        self, service: AppointmentService, booking_day
    ) -> None:
        booked = (await reserve(service, "cust-001", booking_day, 9)).appointment
        result = await service.admin_update_status(
            str(booked.id), Actor.admin(), AppointmentStatus.PENDING
        )
        assert result.error_code == "VALIDATION_ERROR"

    @pytest.mark.asyncio
    async def test_customer_cannot_update_status(
        self, service: AppointmentService, booking_day
    ) -> None:
        booked = (await reserve(service, "cust-001", booking_day, 9)).appointment
        result = await service.admin_update_status(
            str(booked.id), Actor.customer("cust-001"), AppointmentStatus.COMPLETED
        )
        assert result.error_code == "FORBIDDEN"

    @pytest.mark.asyncio
    async def test_unknown_appointment(self, service: AppointmentService) -> None:
        result = await service.get_appointment(
            "7c9e6679-7425-40de-944b-e07fc1f90ae7", Actor.admin()
        )
        assert result.error_code == "NOT_FOUND"


class TestQueries:
    """Tests for listing and stats."""

    @pytest.mark.asyncio
    async def test_customers_only_see_their_own(
        self, service: AppointmentService, booking_day
    ) -> None:
        await reserve(service, "cust-001", booking_day, 9)
        await reserve(service, "cust-002", booking_day, 11)
        mine = await service.list_appointments(Actor.customer("cust-001"), customer_id="cust-002")
        assert mine.total == 1
        everyone = await service.list_appointments(Actor.admin())
        assert everyone.total == 2

    @pytest.mark.asyncio
    async def test_booked_dates_and_stats(
        self, service: AppointmentService, booking_day
    ) -> None:
        await reserve(service, "cust-001", booking_day, 9)
        second = (await reserve(service, "cust-002", booking_day + timedelta(days=1), 9)).appointment
        await service.cancel_appointment(str(second.id), Actor.admin())

        assert await service.get_booked_dates() == [booking_day]
        stats = await service.get_stats()
        assert stats.total == 2
        assert stats.confirmed == 1
        assert stats.cancelled == 1
        assert stats.total_customers == 2


class TestBatchJobs:
    """Tests for the pending-appointment batch jobs."""

    @pytest.mark.asyncio
    async def test_process_pending_in_fcfs_order(
        self, service: AppointmentService, config: SettingsConfigProvider, booking_day
    ) -> None:
        config.set_auto_approve(False)
        x = (await reserve(service, "cust-X", booking_day, 9, 0)).appointment
        y = (await reserve(service, "cust-Y", booking_day, 9, 10)).appointment
        z = (await reserve(service, "cust-Z", booking_day, 13, 0)).appointment

        config.set_auto_approve(True)
        result = await service.process_pending_appointments()
        assert result.processed == 2
        assert result.confirmed == 2
        assert result.cancelled == 1
        assert result.left_pending == 0
        assert result.failed == 0

        statuses = {
            a.id: a.status for a in (await service.list_appointments(Actor.admin())).appointments
        }
        assert statuses[x.id] == AppointmentStatus.CONFIRMED
        assert statuses[y.id] == AppointmentStatus.CANCELLED
        assert statuses[z.id] == AppointmentStatus.CONFIRMED

    @pytest.mark.asyncio
    async def test_process_pending_with_auto_approve_off(
        self, service: AppointmentService, config: SettingsConfigProvider, booking_day
    ) -> None:
        config.set_auto_approve(False)
        await reserve(service, "cust-001", booking_day, 9)
        result = await service.process_pending_appointments()
        assert result.processed == 1
        assert result.left_pending == 1

    @pytest.mark.asyncio
    async def test_auto_cancel_stale(
        self, service: AppointmentService, config: SettingsConfigProvider, clock, booking_day
    ) -> None:
        config.set_auto_approve(False)
        old = (await reserve(service, "cust-001", booking_day, 9)).appointment
        clock.advance(timedelta(days=3))
        fresh = (await reserve(service, "cust-002", booking_day, 11)).appointment

        result = await service.auto_cancel_stale_pending(days=2)
        assert result.processed == 1
        assert result.cancelled == 1
        assert (await service.get_appointment(str(old.id), Actor.admin())).appointment.status == (
            AppointmentStatus.CANCELLED
        )
        assert (
            await service.get_appointment(str(fresh.id), Actor.admin())
        ).appointment.status == AppointmentStatus.PENDING

    @pytest.mark.asyncio
    async def test_auto_cancel_requires_positive_days(self, service: AppointmentService) -> None:
        with pytest.raises(ValidationError):
            await service.auto_cancel_stale_pending(days=0)
