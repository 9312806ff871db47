"""Rental penalty rules.

A rental can owe three kinds of penalty: the flat cancellation fee, a
damage fee graded by how badly the garment came back, and a daily fee
for late return. Neither the damage fee nor the total owed exceeds
the ceiling, which is the agreed rental price.
"""

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from tailorshop.domain.base import Transition, utc_now
from tailorshop.domain.entities import Order, Rental
from tailorshop.domain.events import PenaltiesAssessed, PenaltiesPaid
from tailorshop.domain.exceptions import ValidationError
from tailorshop.domain.order_machine import guard, require_role
from tailorshop.domain.state_machines import DamageLevel, OrderStatus, PenaltyStatus
from tailorshop.domain.value_objects import Actor, ActorRole, Money

ASSESSABLE_STATUSES = frozenset(
    {OrderStatus.PICKED_UP, OrderStatus.RETURNED, OrderStatus.CANCELLED}
)


@dataclass(frozen=True)
class PenaltyBreakdown:
    """Itemized penalties owed on a rental."""

    cancellation_fee: Money
    damage_fee: Money
    delay_fee: Money
    total: Money
    penalty_status: PenaltyStatus

    def to_dict(self) -> dict:
        return {
            "cancellation_fee": str(self.cancellation_fee.to_decimal()),
            "damage_fee": str(self.damage_fee.to_decimal()),
            "delay_fee": str(self.delay_fee.to_decimal()),
            "total": str(self.total.to_decimal()),
            "currency": self.total.currency,
            "penalty_status": self.penalty_status.value,
        }


class PenaltyCalculator:
    """Computes and settles rental penalties.

    Args:
        default_damage_ceiling: Ceiling used when no price was quoted.
        clock: Source of the current time.
    """

    def __init__(
        self,
        default_damage_ceiling: Money,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._default_ceiling = default_damage_ceiling
        self._clock = clock

    def damage_ceiling(self, rental: Rental) -> Money:
        return rental.damage_fee_max or self._default_ceiling

    def damage_fee(self, rental: Rental, level: DamageLevel) -> Money:
        """Fee for ``level`` damage, capped at the rental's ceiling."""
        ceiling = self.damage_ceiling(rental)
        minor = min(rental.damage_fee_min, ceiling)
        if level == DamageLevel.NONE:
            return Money.zero(ceiling.currency)
        if level == DamageLevel.MINOR:
            return minor
        if level == DamageLevel.MAJOR:
            half = Money(amount_cents=ceiling.amount_cents // 2, currency=ceiling.currency)
            return max(half, minor)
        return ceiling

    @staticmethod
    def cancellation_component(rental: Rental) -> Money:
        if rental.status == OrderStatus.CANCELLED:
            return rental.cancellation_fee
        return Money.zero(rental.cancellation_fee.currency)

    def calculate_total_penalties(
        self,
        order: Order,
        actor: Actor,
        damage_level: DamageLevel = DamageLevel.NONE,
        delay_days: int = 0,
        notes: str | None = None,
    ) -> Transition[Order]:
        """Assess penalties on a rental that left the shop or was cancelled.

        The itemized fees are stored as assessed. The total owed is their
        sum, capped at the rental's damage ceiling.

        Args:
            order: The rental.
            actor: Admin or system.
            damage_level: Damage found on return.
            delay_days: Days the return was late.
            notes: Assessment notes.

        Raises:
            ValidationError: If ``delay_days`` is negative.
            InvalidStateTransitionError: For purchases, for rentals not yet
                picked up, or when penalties are already paid.
        """
        require_role(actor, "calculate penalties", ActorRole.ADMIN, ActorRole.SYSTEM)
        guard(order, "calculate_penalties", "rental_only", isinstance(order, Rental))
        guard(
            order,
            "calculate_penalties",
            "penalties_assessable",
            order.status in ASSESSABLE_STATUSES,
        )
        guard(
            order,
            "calculate_penalties",
            "penalties_not_paid",
            order.penalty_status != PenaltyStatus.PAID,
        )
        if delay_days < 0:
            raise ValidationError(
                "delay_days cannot be negative", details={"delay_days": delay_days}
            )

        damage = self.damage_fee(order, damage_level)
        delay = order.daily_delay_fee * delay_days
        total = min(
            self.cancellation_component(order) + damage + delay,
            self.damage_ceiling(order),
        )
        now = self._clock()
        updated = order.evolve(
            now=now,
            damage_level=damage_level,
            assessed_damage_fee=damage,
            assessed_delay_fee=delay,
            total_penalties=total,
            penalty_status=PenaltyStatus.PENDING,
            penalty_notes=notes,
            penalty_calculated_at=now,
        )
        event = PenaltiesAssessed(
            aggregate_id=str(order.id),
            aggregate_type=order.kind.value,
            occurred_at=now,
            order_id=str(order.id),
            customer_id=str(order.customer_id),
            damage_level=damage_level.value,
            total_cents=total.amount_cents,
            currency=total.currency,
        )
        return Transition(updated, (event,))

    def get_penalty_breakdown(self, order: Order) -> PenaltyBreakdown:
        """Itemize what the rental currently owes."""
        guard(order, "get_penalty_breakdown", "rental_only", isinstance(order, Rental))
        return PenaltyBreakdown(
            cancellation_fee=self.cancellation_component(order),
            damage_fee=order.assessed_damage_fee,
            delay_fee=order.assessed_delay_fee,
            total=order.total_penalties,
            penalty_status=order.penalty_status,
        )

    def mark_paid(self, order: Order, actor: Actor) -> Transition[Order]:
        """Settle penalties. Settling twice returns the order unchanged."""
        require_role(actor, "mark penalties paid", ActorRole.ADMIN, ActorRole.SYSTEM)
        guard(order, "mark_penalties_paid", "rental_only", isinstance(order, Rental))
        guard(
            order,
            "mark_penalties_paid",
            "penalties_pending",
            order.penalty_status in (PenaltyStatus.PENDING, PenaltyStatus.PAID),
        )
        if order.penalty_status == PenaltyStatus.PAID:
            return Transition(order)

        now = self._clock()
        updated = order.evolve(now=now, penalty_status=PenaltyStatus.PAID, penalty_paid_at=now)
        event = PenaltiesPaid(
            aggregate_id=str(order.id),
            aggregate_type=order.kind.value,
            occurred_at=now,
            order_id=str(order.id),
            customer_id=str(order.customer_id),
            total_cents=order.total_penalties.amount_cents,
            currency=order.total_penalties.currency,
        )
        return Transition(updated, (event,))
