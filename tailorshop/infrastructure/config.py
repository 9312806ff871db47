"""Application configuration.

Loads settings from environment variables with sensible defaults and
exposes the scheduling rules to the core as an immutable
``BusinessRules`` value.
"""

import threading
from datetime import time
from decimal import Decimal
from typing import Literal, Protocol

from pydantic import Field
from pydantic_settings import BaseSettings

from tailorshop.domain.exceptions import ValidationError
from tailorshop.domain.value_objects import BusinessRules, Money

MAX_APPOINTMENTS_CEILING = 20


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # API
    api_version: str = "0.1.0"
    debug: bool = False

    # Storage
    storage_backend: Literal["memory", "postgres"] = "memory"
    database_url: str = "postgresql+asyncpg://tailorshop:tailorshop_dev_password@db:5432/tailorshop"

    # Authentication
    tailorshop_api_key: str = "dev-api-key-change-in-production"

    # Scheduling rules
    business_start: time = time(10, 0)
    business_end: time = time(19, 0)
    max_appointments_per_day: int = Field(default=5, ge=1, le=MAX_APPOINTMENTS_CEILING)
    auto_approve_enabled: bool = False
    stale_pending_days: int = Field(default=2, ge=1)

    # Rental penalties (pesos)
    currency: str = "PHP"
    cancellation_fee: Decimal = Decimal("500.00")
    daily_delay_fee: Decimal = Decimal("100.00")
    damage_fee_min: Decimal = Decimal("200.00")
    default_damage_fee_max: Decimal = Decimal("1000.00")

    # Notifications
    notification_webhook_url: str | None = None
    notification_webhook_secret: str = "dev-webhook-secret-change-in-production"
    notification_timeout_seconds: float = 5.0

    # Logging
    log_level: str = "INFO"

    class Config:
        """Pydantic configuration."""

        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()


# ============================================================================
# Config Provider
# ============================================================================


class ConfigProvider(Protocol):
    """Source of the business rules the core runs with."""

    def get_business_rules(self) -> BusinessRules: ...


class SettingsConfigProvider:
    """Business rules seeded from settings and adjustable by admins.

    Every read returns an immutable snapshot, so an admin update never
    changes the rules under an evaluation already in progress.
    """

    def __init__(self, app_settings: Settings | None = None) -> None:
        self._settings = app_settings or settings
        self._lock = threading.Lock()
        self._rules = BusinessRules(
            business_start=self._settings.business_start,
            business_end=self._settings.business_end,
            max_appointments_per_day=self._settings.max_appointments_per_day,
            auto_approve_enabled=self._settings.auto_approve_enabled,
        )

    @property
    def settings(self) -> Settings:
        return self._settings

    def get_business_rules(self) -> BusinessRules:
        with self._lock:
            return self._rules

    def update_business_rules(
        self,
        business_start: time | None = None,
        business_end: time | None = None,
        max_appointments_per_day: int | None = None,
        auto_approve_enabled: bool | None = None,
    ) -> BusinessRules:
        """Replace some of the rules.

        Raises:
            ValidationError: If the daily maximum is outside 1-20 or the
                business day ends before it starts.
        """
        if max_appointments_per_day is not None and not (
            1 <= max_appointments_per_day <= MAX_APPOINTMENTS_CEILING
        ):
            raise ValidationError(
                f"max_appointments_per_day must be between 1 and {MAX_APPOINTMENTS_CEILING}",
                details={"max_appointments_per_day": max_appointments_per_day},
            )
        with self._lock:
            current = self._rules
            self._rules = BusinessRules(
                business_start=business_start or current.business_start,
                business_end=business_end or current.business_end,
                max_appointments_per_day=(
                    max_appointments_per_day
                    if max_appointments_per_day is not None
                    else current.max_appointments_per_day
                ),
                auto_approve_enabled=(
                    auto_approve_enabled
                    if auto_approve_enabled is not None
                    else current.auto_approve_enabled
                ),
            )
            return self._rules

    def set_auto_approve(self, enabled: bool) -> BusinessRules:
        return self.update_business_rules(auto_approve_enabled=enabled)

    # -------------------------------------------------------------------------
    # Rental penalty defaults
    # -------------------------------------------------------------------------

    def rental_fee_defaults(self) -> dict[str, Money]:
        """Fees stamped onto each new rental."""
        currency = self._settings.currency
        return {
            "cancellation_fee": Money.from_decimal(self._settings.cancellation_fee, currency),
            "daily_delay_fee": Money.from_decimal(self._settings.daily_delay_fee, currency),
            "damage_fee_min": Money.from_decimal(self._settings.damage_fee_min, currency),
        }

    def default_damage_ceiling(self) -> Money:
        return Money.from_decimal(self._settings.default_damage_fee_max, self._settings.currency)


_config_provider: SettingsConfigProvider | None = None


def get_config_provider() -> SettingsConfigProvider:
    """Get the process-wide config provider."""
    global _config_provider
    if _config_provider is None:
        _config_provider = SettingsConfigProvider()
    return _config_provider


def reset_config_provider(app_settings: Settings | None = None) -> SettingsConfigProvider:
    """Reset the config provider (for testing)."""
    global _config_provider
    _config_provider = SettingsConfigProvider(app_settings)
    return _config_provider
