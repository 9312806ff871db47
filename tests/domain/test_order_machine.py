"""Tests for order negotiation and fulfilment transitions."""

import pytest

from tailorshop.domain import (
    Actor,
    CounterOfferStatus,
    ItemDescriptor,
    Money,
    Order,
    OrderKind,
    OrderStateMachine,
    OrderStatus,
    PenaltyStatus,
)
from tailorshop.domain.exceptions import (
    AuthorizationError,
    InvalidAmountError,
    InvalidStateTransitionError,
)

ADMIN = Actor.admin()
CUSTOMER = Actor.customer("cust-001")
STRANGER = Actor.customer("cust-999")


@pytest.fixture
def machine(clock) -> OrderStateMachine:
    return OrderStateMachine(clock=clock)


def place(machine: OrderStateMachine, kind: OrderKind) -> Order:
    item = ItemDescriptor.create(name="Barong Tagalog", clothing_type="barong")
    order, _ = machine.create(kind, CUSTOMER, item)
    return order


def quoted(machine: OrderStateMachine, kind: OrderKind, amount: str = "5000") -> Order:
    order = place(machine, kind)
    order, _ = machine.set_quotation(order, ADMIN, Money.from_decimal(amount), "hand-beaded")
    return order


def guard_of(exc_info) -> str:
    return exc_info.value.details["guard"]


class TestCreation:
    """Tests for order creation."""

    def test_only_customers_create(self, machine: OrderStateMachine) -> None:
        item = ItemDescriptor.create(name="Suit", clothing_type="suit")
        with pytest.raises(AuthorizationError):
            machine.create(OrderKind.PURCHASE, ADMIN, item)

    def test_rental_defaults_applied_to_rentals_only(self, machine: OrderStateMachine) -> None:
        item = ItemDescriptor.create(name="Gown", clothing_type="gown")
        fee = Money.from_decimal("750")
        rental, _ = machine.create(OrderKind.RENTAL, CUSTOMER, item, cancellation_fee=fee)
        purchase, _ = machine.create(OrderKind.PURCHASE, CUSTOMER, item, cancellation_fee=fee)
        assert rental.cancellation_fee == fee
        assert not hasattr(purchase, "cancellation_fee")


class TestAdminResponse:
    """Tests for admin accept/decline."""

    def test_accept_pending(self, machine: OrderStateMachine) -> None:
        order, events = machine.admin_accept(place(machine, OrderKind.PURCHASE), ADMIN)
        assert order.status == OrderStatus.CONFIRMED
        assert events[0].event_type == "order.status_changed"
        assert events[0].old_status == "pending"
        assert events[0].new_status == "confirmed"

    def test_decline_pending(self, machine: OrderStateMachine) -> None:
        order, _ = machine.admin_decline(place(machine, OrderKind.RENTAL), ADMIN)
        assert order.status == OrderStatus.DECLINED

    def test_customer_cannot_accept(self, machine: OrderStateMachine) -> None:
        with pytest.raises(AuthorizationError) as exc_info:
            machine.admin_accept(place(machine, OrderKind.PURCHASE), CUSTOMER)
        assert exc_info.value.code == "FORBIDDEN"

    def test_accept_twice_fails_with_guard(self, machine: OrderStateMachine) -> None:
        order, _ = machine.admin_accept(place(machine, OrderKind.PURCHASE), ADMIN)
        with pytest.raises(InvalidStateTransitionError) as exc_info:
            machine.admin_accept(order, ADMIN)
        assert guard_of(exc_info) == "order_pending"


class TestQuotation:
    """Tests for quotations."""

    def test_set_quotation_from_pending(self, machine: OrderStateMachine) -> None:
        order = quoted(machine, OrderKind.PURCHASE)
        assert order.status == OrderStatus.QUOTATION_SENT
        assert order.quotation_amount == Money.from_decimal("5000")
        assert order.quotation_notes == "hand-beaded"
        assert order.quotation_sent_at is not None

    def test_rental_quotation_sets_damage_ceiling(self, machine: OrderStateMachine) -> None:
        order = quoted(machine, OrderKind.RENTAL, "3000")
        assert order.damage_fee_max == Money.from_decimal("3000")

    def test_quotation_must_be_positive(self, machine: OrderStateMachine) -> None:
        with pytest.raises(InvalidAmountError):
            machine.set_quotation(place(machine, OrderKind.PURCHASE), ADMIN, Money.zero())

    def test_quotation_not_allowed_once_sent(self, machine: OrderStateMachine) -> None:
        with pytest.raises(InvalidStateTransitionError) as exc_info:
            machine.set_quotation(
                quoted(machine, OrderKind.PURCHASE), ADMIN, Money.from_decimal("100")
            )
        assert guard_of(exc_info) == "quotation_allowed"

    def test_accepted_rental_is_ready_for_pickup(self, machine: OrderStateMachine) -> None:
        order, _ = machine.customer_accept_quotation(quoted(machine, OrderKind.RENTAL), CUSTOMER)
        assert order.status == OrderStatus.READY_FOR_PICKUP
        assert order.quotation_responded_at is not None

    def test_accepted_purchase_is_in_progress(self, machine: OrderStateMachine) -> None:
        order, events = machine.customer_accept_quotation(
            quoted(machine, OrderKind.PURCHASE), CUSTOMER
        )
        assert order.status == OrderStatus.IN_PROGRESS
        assert events[0].amount_cents == 500000

    def test_reject_declines(self, machine: OrderStateMachine) -> None:
        order, _ = machine.customer_reject_quotation(quoted(machine, OrderKind.PURCHASE), CUSTOMER)
        assert order.status == OrderStatus.DECLINED

    def test_accept_requires_sent_quotation(self, machine: OrderStateMachine) -> None:
        with pytest.raises(InvalidStateTransitionError) as exc_info:
            machine.customer_accept_quotation(place(machine, OrderKind.PURCHASE), CUSTOMER)
        assert guard_of(exc_info) == "quotation_sent"

    def test_other_customer_cannot_accept(self, machine: OrderStateMachine) -> None:
        with pytest.raises(AuthorizationError):
            machine.customer_accept_quotation(quoted(machine, OrderKind.PURCHASE), STRANGER)


class TestCounterOffer:
    """Tests for counter-offers."""

    def test_scenario_rental_counter_offer_accepted(self, machine: OrderStateMachine) -> None:
        """Quotation 5000, counter 4000, admin accepts."""
        order = quoted(machine, OrderKind.RENTAL, "5000")
        order, _ = machine.customer_counter_offer(
            order, CUSTOMER, Money.from_decimal("4000"), "student budget"
        )
        assert order.status == OrderStatus.COUNTER_OFFER_PENDING
        assert order.counter_offer_status == CounterOfferStatus.PENDING

        order, events = machine.admin_accept_counter_offer(order, ADMIN)
        assert order.quotation_amount == Money.from_decimal("4000")
        assert order.status == OrderStatus.READY_FOR_PICKUP
        assert order.counter_offer_status == CounterOfferStatus.ACCEPTED
        assert order.damage_fee_max == Money.from_decimal("4000")
        assert events[0].transition == "accept_counter_offer"

    def test_purchase_counter_offer_accepted_goes_to_workshop(
        self, machine: OrderStateMachine
    ) -> None:
        order = quoted(machine, OrderKind.PURCHASE)
        order, _ = machine.customer_counter_offer(order, CUSTOMER, Money.from_decimal("4500"))
        order, _ = machine.admin_accept_counter_offer(order, ADMIN)
        assert order.status == OrderStatus.IN_PROGRESS

    def test_rejected_counter_offer_declines(self, machine: OrderStateMachine) -> None:
        order = quoted(machine, OrderKind.PURCHASE)
        order, _ = machine.customer_counter_offer(order, CUSTOMER, Money.from_decimal("10"))
        order, _ = machine.admin_reject_counter_offer(order, ADMIN)
        assert order.status == OrderStatus.DECLINED
        assert order.counter_offer_status == CounterOfferStatus.REJECTED

    def test_counter_offer_retry_after_decline(self, machine: OrderStateMachine) -> None:
        order, _ = machine.customer_reject_quotation(quoted(machine, OrderKind.RENTAL), CUSTOMER)
        order, _ = machine.customer_counter_offer(order, CUSTOMER, Money.from_decimal("4200"))
        assert order.status == OrderStatus.COUNTER_OFFER_PENDING

    @pytest.mark.parametrize("kind", list(OrderKind))
    def test_counter_offer_blocked_once_accepted(
        self, machine: OrderStateMachine, kind: OrderKind
    ) -> None:
        order, _ = machine.customer_accept_quotation(quoted(machine, kind), CUSTOMER)
        with pytest.raises(InvalidStateTransitionError) as exc_info:
            machine.customer_counter_offer(order, CUSTOMER, Money.from_decimal("100"))
        assert guard_of(exc_info) == "counter_offer_allowed"

    def test_counter_offer_needs_open_counter(self, machine: OrderStateMachine) -> None:
        with pytest.raises(InvalidStateTransitionError) as exc_info:
            machine.admin_accept_counter_offer(quoted(machine, OrderKind.RENTAL), ADMIN)
        assert guard_of(exc_info) == "counter_offer_pending"


class TestFulfilment:
    """Tests for fulfilment transitions."""

    def test_purchase_path(self, machine: OrderStateMachine) -> None:
        order, _ = machine.customer_accept_quotation(quoted(machine, OrderKind.PURCHASE), CUSTOMER)
        order, _ = machine.mark_ready_for_pickup(order, ADMIN)
        order, _ = machine.mark_picked_up(order, ADMIN)
        assert order.status == OrderStatus.PICKED_UP
        with pytest.raises(InvalidStateTransitionError) as exc_info:
            machine.mark_returned(order, ADMIN)
        assert guard_of(exc_info) == "rental_only"

    def test_rental_path(self, machine: OrderStateMachine) -> None:
        order, _ = machine.customer_accept_quotation(quoted(machine, OrderKind.RENTAL), CUSTOMER)
        order, _ = machine.mark_picked_up(order, ADMIN)
        order, _ = machine.mark_returned(order, ADMIN)
        assert order.status == OrderStatus.RETURNED
        assert [h.transition for h in order.status_history] == [
            "create",
            "set_quotation",
            "accept_quotation",
            "mark_picked_up",
            "mark_returned",
        ]

    def test_ready_requires_in_progress(self, machine: OrderStateMachine) -> None:
        with pytest.raises(InvalidStateTransitionError) as exc_info:
            machine.mark_ready_for_pickup(place(machine, OrderKind.PURCHASE), ADMIN)
        assert guard_of(exc_info) == "in_progress"

    def test_customer_cannot_mark_picked_up(self, machine: OrderStateMachine) -> None:
        order, _ = machine.customer_accept_quotation(quoted(machine, OrderKind.RENTAL), CUSTOMER)
        with pytest.raises(AuthorizationError):
            machine.mark_picked_up(order, CUSTOMER)


class TestCancellation:
    """Tests for cancel."""

    def test_scenario_rental_cancelled_while_confirmed(self, machine: OrderStateMachine) -> None:
        order, _ = machine.admin_accept(place(machine, OrderKind.RENTAL), ADMIN)
        order, events = machine.cancel(order, CUSTOMER)
        assert order.status == OrderStatus.CANCELLED
        assert order.total_penalties == order.cancellation_fee
        assert order.penalty_status == PenaltyStatus.PENDING
        assert order.cancelled_by == "customer:cust-001"
        assert events[0].amount_cents == 50000

    def test_purchase_cancel_has_no_penalty(self, machine: OrderStateMachine) -> None:
        order, events = machine.cancel(place(machine, OrderKind.PURCHASE), ADMIN)
        assert order.status == OrderStatus.CANCELLED
        assert order.cancelled_by == "admin"
        assert events[0].amount_cents is None

    @pytest.mark.parametrize("kind", list(OrderKind))
    def test_cannot_cancel_after_pickup(self, machine: OrderStateMachine, kind: OrderKind) -> None:
        order, _ = machine.customer_accept_quotation(quoted(machine, kind), CUSTOMER)
        if order.status == OrderStatus.IN_PROGRESS:
            order, _ = machine.mark_ready_for_pickup(order, ADMIN)
        order, _ = machine.mark_picked_up(order, ADMIN)
        with pytest.raises(InvalidStateTransitionError) as exc_info:
            machine.cancel(order, ADMIN)
        assert guard_of(exc_info) == "order_open"

    def test_cannot_cancel_declined(self, machine: OrderStateMachine) -> None:
        order, _ = machine.admin_decline(place(machine, OrderKind.RENTAL), ADMIN)
        with pytest.raises(InvalidStateTransitionError):
            machine.cancel(order, CUSTOMER)

    def test_other_customer_cannot_cancel(self, machine: OrderStateMachine) -> None:
        with pytest.raises(AuthorizationError):
            machine.cancel(place(machine, OrderKind.RENTAL), STRANGER)

    def test_system_cannot_cancel(self, machine: OrderStateMachine) -> None:
        with pytest.raises(AuthorizationError):
            machine.cancel(place(machine, OrderKind.RENTAL), Actor.system())


class TestAgreementAndDeletion:
    """Tests for the rental agreement and deletion checks."""

    def test_accept_agreement_once(self, machine: OrderStateMachine) -> None:
        order, events = machine.accept_agreement(place(machine, OrderKind.RENTAL), CUSTOMER)
        assert order.agreement_accepted is True
        assert order.agreement_accepted_at is not None
        assert [e.event_type for e in events] == ["rental.agreement_accepted"]

        again = machine.accept_agreement(order, CUSTOMER)
        assert again.record is order
        assert not again.changed

    def test_agreement_is_rental_only(self, machine: OrderStateMachine) -> None:
        with pytest.raises(InvalidStateTransitionError) as exc_info:
            machine.accept_agreement(place(machine, OrderKind.PURCHASE), CUSTOMER)
        assert guard_of(exc_info) == "rental_only"

    def test_delete_allowed_when_pending_or_declined(self, machine: OrderStateMachine) -> None:
        machine.check_deletable(place(machine, OrderKind.PURCHASE), CUSTOMER)
        declined, _ = machine.admin_decline(place(machine, OrderKind.PURCHASE), ADMIN)
        machine.check_deletable(declined, CUSTOMER)

    def test_delete_blocked_once_quoted(self, machine: OrderStateMachine) -> None:
        with pytest.raises(InvalidStateTransitionError) as exc_info:
            machine.check_deletable(quoted(machine, OrderKind.PURCHASE), CUSTOMER)
        assert guard_of(exc_info) == "order_pending_or_declined"

    def test_every_transition_bumps_version_once(self, machine: OrderStateMachine) -> None:
        order = place(machine, OrderKind.RENTAL)
        steps = [
            lambda o: machine.set_quotation(o, ADMIN, Money.from_decimal("5000")),
            lambda o: machine.customer_counter_offer(o, CUSTOMER, Money.from_decimal("4000")),
            lambda o: machine.admin_accept_counter_offer(o, ADMIN),
            lambda o: machine.mark_picked_up(o, ADMIN),
            lambda o: machine.mark_returned(o, ADMIN),
        ]
        for step in steps:
            before = order.version
            order, events = step(order)
            assert order.version == before + 1
            assert len(events) == 1
