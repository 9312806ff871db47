"""Notification dispatchers.

Domain events are turned into customer or admin notifications and
handed to a dispatcher. Delivery is fire-and-forget: a failing
dispatcher is logged and never undoes or blocks the transition that
produced the event.
"""

import hashlib
import hmac
import json
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any, Protocol

import httpx
import structlog

from tailorshop.domain.base import DomainEvent
from tailorshop.domain.events import (
    AppointmentRequested,
    AppointmentRescheduled,
    AppointmentStatusChanged,
    OrderCreated,
    OrderStatusChanged,
    PenaltiesAssessed,
    PenaltiesPaid,
    RentalAgreementAccepted,
)
from tailorshop.domain.value_objects import Money

logger = structlog.get_logger()

SIGNATURE_HEADER = "X-Tailorshop-Signature"


# ============================================================================
# Message Rendering
# ============================================================================


@dataclass(frozen=True)
class Notification:
    """A rendered message for one recipient.

    Attributes:
        recipient_role: "customer" or "admin".
        customer_id: Customer the message is about (and for, if a customer).
        title: Short heading.
        message: Full text.
    """

    recipient_role: str
    customer_id: str
    title: str
    message: str

    def to_dict(self) -> dict[str, str]:
        return {
            "recipient_role": self.recipient_role,
            "customer_id": self.customer_id,
            "title": self.title,
            "message": self.message,
        }


def _amount(cents: int | None, currency: str | None) -> str:
    if cents is None:
        return ""
    return str(Money(amount_cents=cents, currency=currency or "PHP"))


_ORDER_MESSAGES: dict[str, tuple[str, str, str]] = {
    # transition: (recipient, title, template)
    "admin_accept": ("customer", "Order accepted", "Your {kind} order #{ref} has been accepted."),
    "admin_decline": ("customer", "Order declined", "Your {kind} order #{ref} has been declined."),
    "set_quotation": (
        "customer",
        "Quotation received",
        "We quoted {amount} for your {kind} order #{ref}. Please accept, reject or counter.",
    ),
    "accept_quotation": (
        "admin",
        "Quotation accepted",
        "Customer {customer} accepted the quotation of {amount} for {kind} order #{ref}.",
    ),
    "reject_quotation": (
        "admin",
        "Quotation rejected",
        "Customer {customer} rejected the quotation for {kind} order #{ref}.",
    ),
    "counter_offer": (
        "admin",
        "Counter-offer received",
        "Customer {customer} offered {amount} for {kind} order #{ref}.",
    ),
    "accept_counter_offer": (
        "customer",
        "Counter-offer accepted",
        "Your counter-offer of {amount} for {kind} order #{ref} has been accepted.",
    ),
    "reject_counter_offer": (
        "customer",
        "Counter-offer rejected",
        "Your counter-offer of {amount} for {kind} order #{ref} was not accepted.",
    ),
    "mark_ready_for_pickup": (
        "customer",
        "Ready for pickup",
        "Your {kind} order #{ref} is ready for pickup.",
    ),
    "mark_picked_up": ("customer", "Picked up", "Your {kind} order #{ref} was picked up."),
    "mark_returned": ("customer", "Rental returned", "Thank you for returning rental #{ref}."),
}


def render_message(event: DomainEvent) -> Notification | None:
    """Render the notification for ``event``.

    Returns:
        The notification, or None for events nobody is told about.
    """
    if isinstance(event, AppointmentRequested):
        return Notification(
            "admin",
            event.customer_id,
            "New appointment request",
            f"Customer {event.customer_id} requested a {event.service_type} "
            f"appointment for {event.scheduled_at}.",
        )
    if isinstance(event, AppointmentRescheduled):
        return Notification(
            "admin",
            event.customer_id,
            "Appointment rescheduled",
            f"Appointment {event.appointment_id} moved from "
            f"{event.previous_scheduled_at} to {event.scheduled_at}.",
        )
    if isinstance(event, AppointmentStatusChanged):
        text = f"Your appointment is now {event.new_status}."
        if event.reason:
            text = f"{text} Reason: {event.reason}."
        return Notification("customer", event.customer_id, "Appointment update", text)
    if isinstance(event, OrderCreated):
        return Notification(
            "admin",
            event.customer_id,
            f"New {event.order_kind} order",
            f"Customer {event.customer_id} placed {event.order_kind} order "
            f"#{event.order_id} for {event.item_name}.",
        )
    if isinstance(event, OrderStatusChanged):
        if event.transition == "cancel":
            recipient = "customer" if event.actor == "admin" else "admin"
            text = f"{event.order_kind.capitalize()} order #{event.order_id} was cancelled."
            if event.amount_cents:
                text = f"{text} A cancellation fee of {_amount(event.amount_cents, event.currency)} applies."
            return Notification(recipient, event.customer_id, "Order cancelled", text)
        template = _ORDER_MESSAGES.get(event.transition)
        if template is None:
            return None
        recipient, title, body = template
        return Notification(
            recipient,
            event.customer_id,
            title,
            body.format(
                kind=event.order_kind,
                ref=event.order_id,
                customer=event.customer_id,
                amount=_amount(event.amount_cents, event.currency),
            ),
        )
    if isinstance(event, RentalAgreementAccepted):
        return Notification(
            "admin",
            event.customer_id,
            "Rental agreement accepted",
            f"Customer {event.customer_id} accepted the agreement for rental #{event.order_id}.",
        )
    if isinstance(event, PenaltiesAssessed):
        return Notification(
            "customer",
            event.customer_id,
            "Rental penalties",
            f"Penalties of {_amount(event.total_cents, event.currency)} were assessed "
            f"on rental #{event.order_id} (damage: {event.damage_level}).",
        )
    if isinstance(event, PenaltiesPaid):
        return Notification(
            "customer",
            event.customer_id,
            "Penalties settled",
            f"Penalties of {_amount(event.total_cents, event.currency)} on rental "
            f"#{event.order_id} are marked as paid.",
        )
    return None


# ============================================================================
# Dispatchers
# ============================================================================


class NotificationError(Exception):
    """Raised when a dispatcher fails to deliver an event."""


class NotificationDispatcher(Protocol):
    """Receives every domain event after it has been persisted."""

    async def emit(self, event: DomainEvent) -> None: ...


class LoggingNotificationDispatcher:
    """Writes notifications to the structured log."""

    async def emit(self, event: DomainEvent) -> None:
        notification = render_message(event)
        logger.info(
            "Notification",
            event_type=event.event_type,
            aggregate_id=event.aggregate_id,
            recipient_role=notification.recipient_role if notification else None,
            title=notification.title if notification else None,
            message=notification.message if notification else None,
        )


class InMemoryNotificationDispatcher:
    """Keeps emitted events and their notifications in memory."""

    def __init__(self) -> None:
        self.events: list[DomainEvent] = []
        self.notifications: list[Notification] = []

    async def emit(self, event: DomainEvent) -> None:
        self.events.append(event)
        notification = render_message(event)
        if notification is not None:
            self.notifications.append(notification)

    def event_types(self) -> list[str]:
        return [e.event_type for e in self.events]

    def clear(self) -> None:
        self.events.clear()
        self.notifications.clear()


def sign_payload(secret: str, body: bytes) -> str:
    """HMAC-SHA256 signature header value (format: sha256=<hex>)."""
    digest = hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
    return f"sha256={digest}"


class WebhookNotificationDispatcher:
    """POSTs each event, with its rendered notification, to a webhook.

    The body is signed with HMAC-SHA256 so the receiver can verify it.
    """

    def __init__(
        self,
        url: str,
        secret: str,
        timeout: float = 5.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize dispatcher.

        Args:
            url: Webhook endpoint.
            secret: HMAC secret shared with the receiver.
            timeout: Request timeout in seconds.
            client: Optional pre-built HTTP client (tests use a mock transport).
        """
        self.url = url
        self.secret = secret
        self.timeout = timeout
        self._client = client

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    def build_body(self, event: DomainEvent) -> bytes:
        payload: dict[str, Any] = event.to_dict()
        notification = render_message(event)
        payload["notification"] = notification.to_dict() if notification else None
        return json.dumps(payload, sort_keys=True).encode()

    async def emit(self, event: DomainEvent) -> None:
        """Deliver one event.

        Raises:
            NotificationError: On a transport error or non-2xx response.
        """
        body = self.build_body(event)
        headers = {
            "Content-Type": "application/json",
            SIGNATURE_HEADER: sign_payload(self.secret, body),
        }
        try:
            client = await self._get_client()
            response = await client.post(self.url, content=body, headers=headers)
        except httpx.RequestError as e:
            raise NotificationError(f"Webhook request failed: {e}") from e

        if response.status_code >= 300:
            raise NotificationError(
                f"Webhook rejected {event.event_type}: HTTP {response.status_code}"
            )


async def dispatch_all(
    dispatcher: NotificationDispatcher,
    events: Iterable[DomainEvent],
    request_id: str | None = None,
) -> None:
    """Emit ``events`` in order, logging and skipping any that fail."""
    for event in events:
        try:
            await dispatcher.emit(event)
        except Exception as e:
            logger.warning(
                "Notification dispatch failed",
                event_type=event.event_type,
                aggregate_id=event.aggregate_id,
                error=str(e),
                request_id=request_id,
            )


# ============================================================================
# Dispatcher Singleton
# ============================================================================


_dispatcher: NotificationDispatcher | None = None


def get_notification_dispatcher() -> NotificationDispatcher:
    """Get the dispatcher configured for this process."""
    global _dispatcher
    if _dispatcher is None:
        from tailorshop.infrastructure.config import settings

        if settings.notification_webhook_url:
            _dispatcher = WebhookNotificationDispatcher(
                settings.notification_webhook_url,
                settings.notification_webhook_secret,
                timeout=settings.notification_timeout_seconds,
            )
        else:
            _dispatcher = LoggingNotificationDispatcher()
    return _dispatcher


def set_notification_dispatcher(dispatcher: NotificationDispatcher | None) -> None:
    """Replace the process dispatcher (for testing)."""
    global _dispatcher
    _dispatcher = dispatcher
