"""Order application service.

Orchestrates rental and purchase orders including:
- Order creation and admin accept/decline
- Quotation and counter-offer negotiation
- Fulfilment (ready for pickup, picked up, returned)
- Cancellation, rental penalties and the rental agreement

Every change follows the same path: load, apply a pure transition,
save with an optimistic version check, then emit events.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any

import structlog

from tailorshop.domain.base import Transition, utc_now
from tailorshop.domain.entities import Order
from tailorshop.domain.exceptions import (
    DomainError,
    NotFoundError,
    ValidationError,
)
from tailorshop.domain.order_machine import OrderStateMachine, require_owner
from tailorshop.domain.penalties import PenaltyBreakdown, PenaltyCalculator
from tailorshop.domain.state_machines import DamageLevel, OrderKind, OrderStatus
from tailorshop.domain.value_objects import (
    Actor,
    ActorRole,
    CustomerId,
    ItemDescriptor,
    Money,
    OrderId,
)
from tailorshop.infrastructure.config import SettingsConfigProvider, get_config_provider
from tailorshop.infrastructure.notifications import (
    NotificationDispatcher,
    dispatch_all,
    get_notification_dispatcher,
)
from tailorshop.infrastructure.repositories import OrderStore, get_order_store

logger = structlog.get_logger()


# ============================================================================
# Service Result Types
# ============================================================================


@dataclass
class OrderResult:
    """Result of an operation on a single order."""

    order: Order | None = None
    success: bool = True
    error: str | None = None
    error_code: str | None = None
    details: dict[str, Any] = field(default_factory=dict)


@dataclass
class ListOrdersResult:
    """Result of listing orders."""

    orders: list[Order] = field(default_factory=list)
    total: int = 0
    success: bool = True
    error: str | None = None
    error_code: str | None = None
    details: dict[str, Any] = field(default_factory=dict)


@dataclass
class PenaltyBreakdownResult:
    """Result of a penalty breakdown lookup."""

    breakdown: PenaltyBreakdown | None = None
    success: bool = True
    error: str | None = None
    error_code: str | None = None
    details: dict[str, Any] = field(default_factory=dict)


@dataclass
class DeleteOrderResult:
    """Result of deleting an order."""

    deleted: bool = False
    success: bool = True
    error: str | None = None
    error_code: str | None = None
    details: dict[str, Any] = field(default_factory=dict)


def _failure(result_cls, error: DomainError):
    return result_cls(
        success=False,
        error=error.message,
        error_code=error.code,
        details=error.details,
    )


# ============================================================================
# Order Service
# ============================================================================


class OrderService:
    """Application service for rental and purchase orders."""

    def __init__(
        self,
        store: OrderStore | None = None,
        config: SettingsConfigProvider | None = None,
        dispatcher: NotificationDispatcher | None = None,
        request_id: str | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """Initialize service.

        Args:
            store: Order store.
            config: Source of rental fee defaults and the damage ceiling.
            dispatcher: Notification dispatcher.
            request_id: Request ID for correlation.
            clock: Clock for transition timestamps.
        """
        self.store = store or get_order_store()
        self.config = config or get_config_provider()
        self.dispatcher = dispatcher or get_notification_dispatcher()
        self.request_id = request_id
        self.machine = OrderStateMachine(clock=clock)
        self.penalties = PenaltyCalculator(self.config.default_damage_ceiling(), clock=clock)

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _money(self, amount: Decimal | int | str) -> Money:
        return Money.from_decimal(amount, self.config.settings.currency)

    async def _load(self, order_id: str, actor: Actor, action: str) -> Order:
        order = await self.store.get(OrderId.from_string(order_id))
        if order is None:
            raise NotFoundError("Order", order_id)
        require_owner(order, actor, action)
        return order

    async def _apply(
        self,
        order_id: str,
        actor: Actor,
        action: str,
        step: Callable[[Order], Transition[Order]],
    ) -> OrderResult:
        """Load, transition, save and notify.

        A transition without events leaves the stored order untouched.
        """
        try:
            order = await self._load(order_id, actor, action)
            transition = step(order)
            if transition.changed:
                await self.store.save(transition.record)
        except DomainError as e:
            logger.info(
                "Order operation rejected",
                order_id=order_id,
                action=action,
                actor=str(actor),
                error_code=e.code,
                request_id=self.request_id,
            )
            return _failure(OrderResult, e)

        if transition.changed:
            logger.info(
                "Order updated",
                order_id=order_id,
                action=action,
                actor=str(actor),
                status=transition.record.status.value,
                version=transition.record.version,
                request_id=self.request_id,
            )
            await dispatch_all(self.dispatcher, transition.events, request_id=self.request_id)
        return OrderResult(order=transition.record)

    # -------------------------------------------------------------------------
    # Creation and Queries
    # -------------------------------------------------------------------------

    async def create_order(
        self,
        actor: Actor,
        kind: OrderKind,
        item_name: str,
        clothing_type: str,
        measurements: dict[str, float] | None = None,
        notes: str | None = None,
    ) -> OrderResult:
        """Place a rental or purchase order for the acting customer.

        New rentals take their fees from the current settings.
        """
        try:
            item = ItemDescriptor.create(
                name=item_name,
                clothing_type=clothing_type,
                measurements=measurements,
                notes=notes,
            )
            order, events = self.machine.create(
                kind, actor, item, **self.config.rental_fee_defaults()
            )
            await self.store.save(order)
        except DomainError as e:
            return _failure(OrderResult, e)

        logger.info(
            "Order created",
            order_id=str(order.id),
            kind=kind.value,
            customer_id=str(order.customer_id),
            request_id=self.request_id,
        )
        await dispatch_all(self.dispatcher, events, request_id=self.request_id)
        return OrderResult(order=order)

    async def get_order(self, order_id: str, actor: Actor) -> OrderResult:
        try:
            order = await self._load(order_id, actor, "view order")
        except DomainError as e:
            return _failure(OrderResult, e)
        return OrderResult(order=order)

    async def list_orders(
        self,
        actor: Actor,
        customer_id: str | None = None,
        kind: OrderKind | None = None,
        status: OrderStatus | None = None,
    ) -> ListOrdersResult:
        """List orders, newest first. Customers only see their own."""
        try:
            if actor.role == ActorRole.CUSTOMER:
                customer = actor.customer_id
            else:
                customer = CustomerId(customer_id) if customer_id else None
        except DomainError as e:
            return _failure(ListOrdersResult, e)

        orders = await self.store.find(customer_id=customer, kind=kind, status=status)
        return ListOrdersResult(orders=orders, total=len(orders))

    # -------------------------------------------------------------------------
    # Negotiation
    # -------------------------------------------------------------------------

    async def admin_respond(self, order_id: str, actor: Actor, accept: bool) -> OrderResult:
        step = self.machine.admin_accept if accept else self.machine.admin_decline
        return await self._apply(
            order_id, actor, "accept order" if accept else "decline order", lambda o: step(o, actor)
        )

    async def set_quotation(
        self,
        order_id: str,
        actor: Actor,
        amount: Decimal | int | str,
        notes: str | None = None,
    ) -> OrderResult:
        try:
            price = self._money(amount)
        except DomainError as e:
            return _failure(OrderResult, e)
        return await self._apply(
            order_id,
            actor,
            "set quotation",
            lambda o: self.machine.set_quotation(o, actor, price, notes),
        )

    async def respond_to_quotation(self, order_id: str, actor: Actor, accept: bool) -> OrderResult:
        step = (
            self.machine.customer_accept_quotation
            if accept
            else self.machine.customer_reject_quotation
        )
        return await self._apply(
            order_id,
            actor,
            "accept quotation" if accept else "reject quotation",
            lambda o: step(o, actor),
        )

    async def submit_counter_offer(
        self,
        order_id: str,
        actor: Actor,
        amount: Decimal | int | str,
        notes: str | None = None,
    ) -> OrderResult:
        try:
            price = self._money(amount)
        except DomainError as e:
            return _failure(OrderResult, e)
        return await self._apply(
            order_id,
            actor,
            "submit counter-offer",
            lambda o: self.machine.customer_counter_offer(o, actor, price, notes),
        )

    async def respond_to_counter_offer(
        self, order_id: str, actor: Actor, accept: bool
    ) -> OrderResult:
        step = (
            self.machine.admin_accept_counter_offer
            if accept
            else self.machine.admin_reject_counter_offer
        )
        return await self._apply(
            order_id,
            actor,
            "accept counter-offer" if accept else "reject counter-offer",
            lambda o: step(o, actor),
        )

    # -------------------------------------------------------------------------
    # Fulfilment and Cancellation
    # -------------------------------------------------------------------------

    async def advance_fulfillment(
        self,
        order_id: str,
        actor: Actor,
        target: OrderStatus,
    ) -> OrderResult:
        """Move an accepted order along: ready for pickup, picked up, returned."""
        steps = {
            OrderStatus.READY_FOR_PICKUP: self.machine.mark_ready_for_pickup,
            OrderStatus.PICKED_UP: self.machine.mark_picked_up,
            OrderStatus.RETURNED: self.machine.mark_returned,
        }
        step = steps.get(target)
        if step is None:
            return _failure(
                OrderResult,
                ValidationError(
                    f"Cannot advance fulfilment to '{target.value}'",
                    details={"allowed": [s.value for s in steps]},
                ),
            )
        return await self._apply(
            order_id, actor, f"mark {target.value}", lambda o: step(o, actor)
        )

    async def cancel_order(self, order_id: str, actor: Actor) -> OrderResult:
        return await self._apply(
            order_id, actor, "cancel order", lambda o: self.machine.cancel(o, actor)
        )

    async def accept_agreement(self, order_id: str, actor: Actor) -> OrderResult:
        return await self._apply(
            order_id,
            actor,
            "accept rental agreement",
            lambda o: self.machine.accept_agreement(o, actor),
        )

    async def delete_order(self, order_id: str, actor: Actor) -> DeleteOrderResult:
        """Remove a customer's own pending or declined order."""
        try:
            order = await self._load(order_id, actor, "delete order")
            self.machine.check_deletable(order, actor)
            deleted = await self.store.delete(order.id)
        except DomainError as e:
            return _failure(DeleteOrderResult, e)

        logger.info(
            "Order deleted",
            order_id=order_id,
            actor=str(actor),
            request_id=self.request_id,
        )
        return DeleteOrderResult(deleted=deleted)

    # -------------------------------------------------------------------------
    # Rental Penalties
    # -------------------------------------------------------------------------

    async def calculate_penalties(
        self,
        order_id: str,
        actor: Actor,
        damage_level: DamageLevel = DamageLevel.NONE,
        delay_days: int = 0,
        notes: str | None = None,
    ) -> OrderResult:
        return await self._apply(
            order_id,
            actor,
            "calculate penalties",
            lambda o: self.penalties.calculate_total_penalties(
                o, actor, damage_level=damage_level, delay_days=delay_days, notes=notes
            ),
        )

    async def get_penalty_breakdown(self, order_id: str, actor: Actor) -> PenaltyBreakdownResult:
        try:
            order = await self._load(order_id, actor, "view penalties")
            breakdown = self.penalties.get_penalty_breakdown(order)
        except DomainError as e:
            return _failure(PenaltyBreakdownResult, e)
        return PenaltyBreakdownResult(breakdown=breakdown)

    async def mark_penalties_paid(self, order_id: str, actor: Actor) -> OrderResult:
        return await self._apply(
            order_id,
            actor,
            "mark penalties paid",
            lambda o: self.penalties.mark_paid(o, actor),
        )


def get_order_service(request_id: str | None = None) -> OrderService:
    """Get order service instance.

    Args:
        request_id: Request ID for correlation.

    Returns:
        OrderService instance.
    """
    return OrderService(request_id=request_id)
