"""Shared fixtures for all tests.

Every test starts from empty in-memory stores, default business rules
and an in-memory notification dispatcher.
"""

from datetime import date, datetime, time, timedelta, timezone

import pytest

from tailorshop.domain.value_objects import Actor, BusinessRules
from tailorshop.infrastructure.config import reset_config_provider
from tailorshop.infrastructure.notifications import (
    InMemoryNotificationDispatcher,
    set_notification_dispatcher,
)
from tailorshop.infrastructure.repositories import reset_stores


@pytest.fixture(autouse=True)
def clean_state():
    """Reset process-wide singletons around every test."""
    reset_stores()
    reset_config_provider()
    set_notification_dispatcher(InMemoryNotificationDispatcher())
    yield
    set_notification_dispatcher(None)


@pytest.fixture
def dispatcher() -> InMemoryNotificationDispatcher:
    """A fresh in-memory dispatcher installed as the process dispatcher."""
    recorder = InMemoryNotificationDispatcher()
    set_notification_dispatcher(recorder)
    return recorder


class FakeClock:
    """Deterministic UTC clock that advances one second per reading."""

    def __init__(self, start: datetime | None = None, step: timedelta = timedelta(seconds=1)):
        self.now = start or datetime(2026, 1, 1, 8, 0, tzinfo=timezone.utc)
        self.step = step

    def __call__(self) -> datetime:
        current = self.now
        self.now = self.now + self.step
        return current

    def advance(self, delta: timedelta) -> None:
        self.now = self.now + delta


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def booking_day() -> date:
    """A date safely in the future."""
    return date.today() + timedelta(days=7)


@pytest.fixture
def rules() -> BusinessRules:
    """Scheduling rules with auto-approval on, 09:00-17:00, 5 per day."""
    return BusinessRules(
        business_start=time(9, 0),
        business_end=time(17, 0),
        max_appointments_per_day=5,
        auto_approve_enabled=True,
    )


@pytest.fixture
def admin() -> Actor:
    return Actor.admin()


@pytest.fixture
def customer() -> Actor:
    return Actor.customer("cust-001")


@pytest.fixture
def other_customer() -> Actor:
    return Actor.customer("cust-002")
