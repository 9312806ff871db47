"""Order negotiation and fulfilment transitions.

``OrderStateMachine`` is the only way an order changes status. Each
method checks who is acting, checks the precondition it names, and
returns a ``Transition`` with the new order and its events. Nothing is
persisted here.
"""

from collections.abc import Callable
from datetime import datetime

from tailorshop.domain.base import Transition, utc_now
from tailorshop.domain.entities import ORDER_TYPES, Order, Rental
from tailorshop.domain.events import RentalAgreementAccepted
from tailorshop.domain.exceptions import (
    AuthorizationError,
    InvalidAmountError,
    InvalidStateTransitionError,
)
from tailorshop.domain.state_machines import (
    CounterOfferStatus,
    OrderKind,
    OrderStatus,
    PenaltyStatus,
    acceptance_target,
)
from tailorshop.domain.value_objects import Actor, ActorRole, ItemDescriptor, Money

DELETABLE_STATUSES = frozenset({OrderStatus.PENDING, OrderStatus.DECLINED})
AGREEMENT_CLOSED_STATUSES = frozenset(
    {OrderStatus.RETURNED, OrderStatus.DECLINED, OrderStatus.CANCELLED}
)


def require_role(actor: Actor, action: str, *roles: ActorRole) -> None:
    """Raise unless ``actor`` has one of ``roles``.

    Raises:
        AuthorizationError: If the role is not allowed.
    """
    if actor.role not in roles:
        raise AuthorizationError(
            action,
            actor.role.value,
            reason="requires " + " or ".join(r.value for r in roles),
        )


def require_owner(order: Order, actor: Actor, action: str) -> None:
    """Raise if a customer acts on someone else's order."""
    if actor.role == ActorRole.CUSTOMER and not order.is_owned_by(actor.customer_id):
        raise AuthorizationError(action, actor.role.value, reason="not the order owner")


def require_positive(field: str, amount: Money) -> None:
    if amount.amount_cents <= 0:
        raise InvalidAmountError(field, str(amount))


def guard(order: Order, transition: str, name: str, holds: bool) -> None:
    """Raise a state error naming ``name`` unless the precondition holds.

    Raises:
        InvalidStateTransitionError: If ``holds`` is false.
    """
    if not holds:
        raise InvalidStateTransitionError(
            entity_type=order.kind.value.capitalize(),
            entity_id=str(order.id),
            transition=transition,
            current_state=order.status.value,
            guard=name,
        )


class OrderStateMachine:
    """Transitions shared by rental and purchase orders.

    Args:
        clock: Source of the current time, injectable for tests.
    """

    def __init__(self, clock: Callable[[], datetime] = utc_now) -> None:
        self._clock = clock

    # -------------------------------------------------------------------------
    # Creation
    # -------------------------------------------------------------------------

    def create(
        self,
        kind: OrderKind,
        actor: Actor,
        item: ItemDescriptor,
        **defaults,
    ) -> Transition[Order]:
        """Place a new order for the acting customer.

        Args:
            kind: Rental or purchase.
            actor: Must be a customer.
            item: What is being ordered.
            **defaults: Variant field defaults (rental fees).
        """
        require_role(actor, "create order", ActorRole.CUSTOMER)
        order_type = ORDER_TYPES[kind]
        if order_type is not Rental:
            defaults = {}
        return order_type.place(actor.customer_id, item, now=self._clock(), **defaults)

    # -------------------------------------------------------------------------
    # Admin Response
    # -------------------------------------------------------------------------

    def admin_accept(self, order: Order, actor: Actor) -> Transition[Order]:
        require_role(actor, "accept order", ActorRole.ADMIN)
        guard(order, "admin_accept", "order_pending", order.status == OrderStatus.PENDING)
        return order.advance(OrderStatus.CONFIRMED, "admin_accept", actor, self._clock())

    def admin_decline(self, order: Order, actor: Actor) -> Transition[Order]:
        require_role(actor, "decline order", ActorRole.ADMIN)
        guard(order, "admin_decline", "order_pending", order.status == OrderStatus.PENDING)
        return order.advance(OrderStatus.DECLINED, "admin_decline", actor, self._clock())

    # -------------------------------------------------------------------------
    # Quotation
    # -------------------------------------------------------------------------

    def set_quotation(
        self,
        order: Order,
        actor: Actor,
        amount: Money,
        notes: str | None = None,
    ) -> Transition[Order]:
        """Send the shop's price to the customer.

        For rentals the quoted price also becomes the damage fee ceiling.

        Raises:
            AuthorizationError: If the actor is not an admin.
            InvalidAmountError: If the amount is not positive.
            InvalidStateTransitionError: Unless the order is pending or confirmed.
        """
        require_role(actor, "set quotation", ActorRole.ADMIN)
        require_positive("quotation_amount", amount)
        guard(
            order,
            "set_quotation",
            "quotation_allowed",
            order.status in (OrderStatus.PENDING, OrderStatus.CONFIRMED),
        )
        now = self._clock()
        changes = {
            "quotation_amount": amount,
            "quotation_notes": notes,
            "quotation_sent_at": now,
            "quotation_responded_at": None,
        }
        if isinstance(order, Rental):
            changes["damage_fee_max"] = amount
        return order.advance(
            OrderStatus.QUOTATION_SENT, "set_quotation", actor, now, amount=amount, **changes
        )

    def customer_accept_quotation(self, order: Order, actor: Actor) -> Transition[Order]:
        """Accept the quoted price.

        Purchases go to the workshop; rentals become ready for pickup.
        """
        require_role(actor, "accept quotation", ActorRole.CUSTOMER)
        require_owner(order, actor, "accept quotation")
        guard(
            order,
            "accept_quotation",
            "quotation_sent",
            order.status == OrderStatus.QUOTATION_SENT,
        )
        now = self._clock()
        return order.advance(
            acceptance_target(order.kind),
            "accept_quotation",
            actor,
            now,
            amount=order.quotation_amount,
            quotation_responded_at=now,
        )

    def customer_reject_quotation(self, order: Order, actor: Actor) -> Transition[Order]:
        require_role(actor, "reject quotation", ActorRole.CUSTOMER)
        require_owner(order, actor, "reject quotation")
        guard(
            order,
            "reject_quotation",
            "quotation_sent",
            order.status == OrderStatus.QUOTATION_SENT,
        )
        now = self._clock()
        return order.advance(
            OrderStatus.DECLINED,
            "reject_quotation",
            actor,
            now,
            amount=order.quotation_amount,
            quotation_responded_at=now,
        )

    # -------------------------------------------------------------------------
    # Counter-Offer
    # -------------------------------------------------------------------------

    def customer_counter_offer(
        self,
        order: Order,
        actor: Actor,
        amount: Money,
        notes: str | None = None,
    ) -> Transition[Order]:
        """Propose a different price.

        Allowed while a quotation is open or after the order was declined,
        so a customer can retry with a new price.

        Raises:
            InvalidStateTransitionError: With guard ``counter_offer_allowed``
                from any other status, including in_progress and
                ready_for_pickup.
        """
        require_role(actor, "submit counter-offer", ActorRole.CUSTOMER)
        require_owner(order, actor, "submit counter-offer")
        require_positive("counter_offer_amount", amount)
        guard(
            order,
            "counter_offer",
            "counter_offer_allowed",
            order.status in (OrderStatus.QUOTATION_SENT, OrderStatus.DECLINED),
        )
        now = self._clock()
        return order.advance(
            OrderStatus.COUNTER_OFFER_PENDING,
            "counter_offer",
            actor,
            now,
            amount=amount,
            counter_offer_amount=amount,
            counter_offer_notes=notes,
            counter_offer_sent_at=now,
            counter_offer_status=CounterOfferStatus.PENDING,
        )

    def _check_counter_offer_open(self, order: Order, transition: str) -> None:
        guard(
            order,
            transition,
            "counter_offer_pending",
            order.status == OrderStatus.COUNTER_OFFER_PENDING
            and order.counter_offer_status == CounterOfferStatus.PENDING,
        )

    def admin_accept_counter_offer(self, order: Order, actor: Actor) -> Transition[Order]:
        """Agree to the customer's price; it becomes the quotation."""
        require_role(actor, "accept counter-offer", ActorRole.ADMIN)
        self._check_counter_offer_open(order, "accept_counter_offer")
        agreed = order.counter_offer_amount
        changes = {
            "quotation_amount": agreed,
            "counter_offer_status": CounterOfferStatus.ACCEPTED,
        }
        if isinstance(order, Rental):
            changes["damage_fee_max"] = agreed
        return order.advance(
            acceptance_target(order.kind),
            "accept_counter_offer",
            actor,
            self._clock(),
            amount=agreed,
            **changes,
        )

    def admin_reject_counter_offer(self, order: Order, actor: Actor) -> Transition[Order]:
        require_role(actor, "reject counter-offer", ActorRole.ADMIN)
        self._check_counter_offer_open(order, "reject_counter_offer")
        return order.advance(
            OrderStatus.DECLINED,
            "reject_counter_offer",
            actor,
            self._clock(),
            amount=order.counter_offer_amount,
            counter_offer_status=CounterOfferStatus.REJECTED,
        )

    # -------------------------------------------------------------------------
    # Fulfilment
    # -------------------------------------------------------------------------

    def mark_ready_for_pickup(self, order: Order, actor: Actor) -> Transition[Order]:
        require_role(actor, "mark ready for pickup", ActorRole.ADMIN)
        guard(order, "mark_ready_for_pickup", "in_progress", order.status == OrderStatus.IN_PROGRESS)
        return order.advance(
            OrderStatus.READY_FOR_PICKUP, "mark_ready_for_pickup", actor, self._clock()
        )

    def mark_picked_up(self, order: Order, actor: Actor) -> Transition[Order]:
        require_role(actor, "mark picked up", ActorRole.ADMIN)
        guard(
            order,
            "mark_picked_up",
            "ready_for_pickup",
            order.status == OrderStatus.READY_FOR_PICKUP,
        )
        return order.advance(OrderStatus.PICKED_UP, "mark_picked_up", actor, self._clock())

    def mark_returned(self, order: Order, actor: Actor) -> Transition[Order]:
        require_role(actor, "mark returned", ActorRole.ADMIN)
        guard(order, "mark_returned", "rental_only", order.kind == OrderKind.RENTAL)
        guard(order, "mark_returned", "picked_up", order.status == OrderStatus.PICKED_UP)
        return order.advance(OrderStatus.RETURNED, "mark_returned", actor, self._clock())

    # -------------------------------------------------------------------------
    # Cancellation
    # -------------------------------------------------------------------------

    def cancel(self, order: Order, actor: Actor) -> Transition[Order]:
        """Cancel an open order.

        Cancelling a rental always charges its cancellation fee.

        Raises:
            AuthorizationError: For the system role or a foreign customer.
            InvalidStateTransitionError: With guard ``order_open`` once the
                order is picked up, returned, declined or cancelled.
        """
        require_role(actor, "cancel order", ActorRole.CUSTOMER, ActorRole.ADMIN)
        require_owner(order, actor, "cancel order")
        guard(order, "cancel", "order_open", order.status.is_cancellable())
        now = self._clock()
        changes: dict = {"cancelled_by": str(actor)}
        amount = None
        if isinstance(order, Rental):
            amount = order.cancellation_fee
            changes.update(
                total_penalties=order.cancellation_fee,
                penalty_status=PenaltyStatus.PENDING,
                penalty_calculated_at=now,
            )
        return order.advance(OrderStatus.CANCELLED, "cancel", actor, now, amount=amount, **changes)

    # -------------------------------------------------------------------------
    # Rental Agreement and Deletion
    # -------------------------------------------------------------------------

    def accept_agreement(self, order: Order, actor: Actor) -> Transition[Order]:
        """Record that the customer accepted the rental terms.

        Accepting twice returns the order unchanged.
        """
        require_role(actor, "accept rental agreement", ActorRole.CUSTOMER)
        require_owner(order, actor, "accept rental agreement")
        guard(order, "accept_agreement", "rental_only", isinstance(order, Rental))
        guard(
            order,
            "accept_agreement",
            "order_open",
            order.status not in AGREEMENT_CLOSED_STATUSES,
        )
        if order.agreement_accepted:
            return Transition(order)
        now = self._clock()
        updated = order.evolve(now=now, agreement_accepted=True, agreement_accepted_at=now)
        event = RentalAgreementAccepted(
            aggregate_id=str(order.id),
            aggregate_type=order.kind.value,
            occurred_at=now,
            order_id=str(order.id),
            customer_id=str(order.customer_id),
        )
        return Transition(updated, (event,))

    def check_deletable(self, order: Order, actor: Actor) -> None:
        """Raise unless the acting customer may delete ``order``."""
        require_role(actor, "delete order", ActorRole.CUSTOMER)
        require_owner(order, actor, "delete order")
        guard(order, "delete", "order_pending_or_declined", order.status in DELETABLE_STATUSES)
