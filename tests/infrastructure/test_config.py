"""Tests for settings and the business rules provider."""

from datetime import time
from decimal import Decimal

import pytest

from tailorshop.domain import Money
from tailorshop.domain.exceptions import ValidationError
from tailorshop.infrastructure.config import (
    Settings,
    SettingsConfigProvider,
    get_config_provider,
    reset_config_provider,
)


@pytest.fixture
def provider() -> SettingsConfigProvider:
    return SettingsConfigProvider(
        Settings(business_start=time(9, 0), business_end=time(17, 0), max_appointments_per_day=5)
    )


def test_rules_seeded_from_settings(provider: SettingsConfigProvider) -> None:
    rules = provider.get_business_rules()
    assert rules.business_start == time(9, 0)
    assert rules.business_end == time(17, 0)
    assert rules.max_appointments_per_day == 5
    assert rules.auto_approve_enabled is False


def test_partial_update_keeps_other_rules(provider: SettingsConfigProvider) -> None:
    before = provider.get_business_rules()
    after = provider.update_business_rules(max_appointments_per_day=8)
    assert after.max_appointments_per_day == 8
    assert after.business_start == before.business_start
    # Earlier snapshots are unaffected
    assert before.max_appointments_per_day == 5


@pytest.mark.parametrize("value", [0, 21, -3])
def test_max_per_day_bounds(provider: SettingsConfigProvider, value: int) -> None:
    with pytest.raises(ValidationError):
        provider.update_business_rules(max_appointments_per_day=value)
    assert provider.get_business_rules().max_appointments_per_day == 5


def test_end_must_follow_start(provider: SettingsConfigProvider) -> None:
    with pytest.raises(ValidationError):
        provider.update_business_rules(business_end=time(8, 0))


def test_toggle_auto_approve(provider: SettingsConfigProvider) -> None:
    assert provider.set_auto_approve(True).auto_approve_enabled is True
    assert provider.get_business_rules().auto_approve_enabled is True


def test_rental_fee_defaults() -> None:
    provider = SettingsConfigProvider(Settings(cancellation_fee=Decimal("750.00")))
    fees = provider.rental_fee_defaults()
    assert fees["cancellation_fee"] == Money.from_decimal("750.00")
    assert fees["daily_delay_fee"] == Money.from_decimal("100.00")
    assert provider.default_damage_ceiling() == Money.from_decimal("1000.00")


def test_reset_replaces_singleton() -> None:
    first = get_config_provider()
    first.set_auto_approve(True)
    second = reset_config_provider()
    assert get_config_provider() is second
    assert second.get_business_rules().auto_approve_enabled is False
