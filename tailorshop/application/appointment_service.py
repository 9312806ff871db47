"""Appointment application service.

Orchestrates appointment scheduling including:
- Admission control (one per customer per day, one per slot, daily ceiling)
- FCFS auto-approval right after booking and after each reschedule
- Customer cancellation and rescheduling, admin status updates
- Batch jobs: re-evaluating pending bookings and expiring stale ones
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Any

import structlog

from tailorshop.domain.base import Transition, utc_now
from tailorshop.domain.entities import Appointment
from tailorshop.domain.exceptions import (
    AuthorizationError,
    DomainError,
    NotFoundError,
    PastDateError,
    StaleRecordError,
    ValidationError,
)
from tailorshop.domain.scheduling import (
    CapacitySnapshot,
    check_admission,
    daily_capacity,
    evaluate_auto_approval,
)
from tailorshop.domain.state_machines import AppointmentStatus
from tailorshop.domain.value_objects import (
    Actor,
    ActorRole,
    AppointmentId,
    BusinessRules,
    CustomerId,
)
from tailorshop.infrastructure.config import (
    ConfigProvider,
    get_config_provider,
    settings,
)
from tailorshop.infrastructure.notifications import (
    NotificationDispatcher,
    dispatch_all,
    get_notification_dispatcher,
)
from tailorshop.infrastructure.repositories import AppointmentStore, get_appointment_store

logger = structlog.get_logger()

ADMIN_SETTABLE_STATUSES = frozenset(
    {AppointmentStatus.CONFIRMED, AppointmentStatus.CANCELLED, AppointmentStatus.COMPLETED}
)


# ============================================================================
# Service Result Types
# ============================================================================


@dataclass
class AppointmentResult:
    """Result of an operation on a single appointment."""

    appointment: Appointment | None = None
    success: bool = True
    error: str | None = None
    error_code: str | None = None
    details: dict[str, Any] = field(default_factory=dict)


@dataclass
class ListAppointmentsResult:
    """Result of listing appointments."""

    appointments: list[Appointment] = field(default_factory=list)
    total: int = 0
    success: bool = True
    error: str | None = None
    error_code: str | None = None
    details: dict[str, Any] = field(default_factory=dict)


@dataclass
class CapacityResult:
    """Result of a daily capacity lookup."""

    capacity: CapacitySnapshot | None = None
    success: bool = True
    error: str | None = None
    error_code: str | None = None
    details: dict[str, Any] = field(default_factory=dict)


@dataclass
class AppointmentStats:
    """Counts for the admin dashboard."""

    total: int = 0
    pending: int = 0
    confirmed: int = 0
    cancelled: int = 0
    completed: int = 0
    total_customers: int = 0


@dataclass
class BatchResult:
    """Outcome of a batch job over pending appointments."""

    processed: int = 0
    confirmed: int = 0
    cancelled: int = 0
    left_pending: int = 0
    failed: int = 0


def _failure(result_cls, error: DomainError):
    return result_cls(
        success=False,
        error=error.message,
        error_code=error.code,
        details=error.details,
    )


def _system_now() -> datetime:
    """Shop-local wall clock, used for the "not in the past" check."""
    return datetime.now()


# ============================================================================
# Appointment Service
# ============================================================================


class AppointmentService:
    """Application service for booking and managing appointments.

    Handles:
    - Reserving a slot and running auto-approval
    - Capacity and booked-date lookups
    - Reschedule, cancel, admin status updates
    - Batch processing of pending appointments
    """

    def __init__(
        self,
        store: AppointmentStore | None = None,
        config: ConfigProvider | None = None,
        dispatcher: NotificationDispatcher | None = None,
        request_id: str | None = None,
        clock: Callable[[], datetime] = utc_now,
        local_clock: Callable[[], datetime] = _system_now,
        stale_pending_days: int | None = None,
    ) -> None:
        """Initialize service.

        Args:
            store: Appointment store.
            config: Source of business rules.
            dispatcher: Notification dispatcher.
            request_id: Request ID for correlation.
            clock: UTC clock, stamps ``created_at`` (the FCFS priority).
            local_clock: Shop-local clock for past-date checks.
            stale_pending_days: Age after which pending bookings expire.
        """
        self.store = store or get_appointment_store()
        self.config = config or get_config_provider()
        self.dispatcher = dispatcher or get_notification_dispatcher()
        self.request_id = request_id
        self._clock = clock
        self._local_clock = local_clock
        self.stale_pending_days = stale_pending_days or settings.stale_pending_days

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _check_not_past(self, day: date) -> None:
        if day < self._local_clock().date():
            raise PastDateError(day.isoformat())

    async def _load(self, appointment_id: str, actor: Actor, action: str) -> Appointment:
        appointment = await self.store.get(AppointmentId.from_string(appointment_id))
        if appointment is None:
            raise NotFoundError("Appointment", appointment_id)
        if actor.role == ActorRole.CUSTOMER and appointment.customer_id != actor.customer_id:
            raise AuthorizationError(action, actor.role.value, reason="not the appointment owner")
        return appointment

    async def _emit(self, transitions: list[Transition[Appointment]]) -> None:
        await dispatch_all(
            self.dispatcher,
            [event for t in transitions for event in t.events],
            request_id=self.request_id,
        )

    async def _auto_approve(
        self,
        appointment_id: AppointmentId,
        day: date,
        rules: BusinessRules,
    ) -> tuple[list[Transition[Appointment]], bool]:
        """Run auto-approval for one appointment on its day's snapshot.

        Any error is logged and swallowed; the appointment then keeps
        its current state.

        Returns:
            The applied transitions, and whether evaluation succeeded.
        """
        system = Actor.system()

        def decide(snapshot: list[Appointment]) -> list[Transition[Appointment]]:
            by_id = {a.id: a for a in snapshot}
            current = by_id.get(appointment_id)
            if current is None:
                return []
            decision = evaluate_auto_approval(current, snapshot, rules)
            now = self._clock()
            transitions = [
                by_id[rival_id].with_status(
                    AppointmentStatus.CANCELLED,
                    system,
                    "auto_cancel",
                    reason="slot_taken_by_earlier_booking",
                    now=now,
                )
                for rival_id in decision.cancelled_ids
            ]
            if decision.status != current.status:
                transitions.append(
                    current.with_status(
                        decision.status, system, "auto_approve", reason=decision.reason, now=now
                    )
                )
            return transitions

        try:
            transitions = await self.store.apply_on_day(day, decide)
        except Exception:
            logger.exception(
                "Auto-approval failed",
                appointment_id=str(appointment_id),
                day=day.isoformat(),
                request_id=self.request_id,
            )
            return [], False

        if transitions:
            logger.info(
                "Auto-approval applied",
                appointment_id=str(appointment_id),
                changes=[f"{t.record.id}:{t.record.status.value}" for t in transitions],
                request_id=self.request_id,
            )
        return transitions, True

    @staticmethod
    def _latest(appointment: Appointment, transitions: list[Transition[Appointment]]) -> Appointment:
        for t in transitions:
            if t.record.id == appointment.id:
                appointment = t.record
        return appointment

    # -------------------------------------------------------------------------
    # Booking
    # -------------------------------------------------------------------------

    async def reserve_appointment(
        self,
        customer_id: str,
        day: date,
        slot: time,
        service_type: str,
        notes: str | None = None,
    ) -> AppointmentResult:
        """Book a slot for a customer.

        Validation runs first, then the admission checks and the insert
        as one atomic unit on the date. Auto-approval follows; it never
        fails the booking.

        Args:
            customer_id: Customer booking the slot.
            day: Requested date.
            slot: Requested time of day.
            service_type: Requested service.
            notes: Optional notes.

        Returns:
            AppointmentResult with the appointment in its post-approval state.
        """
        try:
            customer = CustomerId(customer_id)
            if not service_type or not service_type.strip():
                raise ValidationError("Service type is required", details={"field": "service_type"})
            self._check_not_past(day)

            scheduled_at = datetime.combine(day, slot).replace(second=0, microsecond=0)
            rules = self.config.get_business_rules()

            def admit(snapshot: list[Appointment]) -> list[Transition[Appointment]]:
                check_admission(customer, scheduled_at, snapshot, rules)
                return [
                    Appointment.request(
                        customer, scheduled_at, service_type, notes=notes, now=self._clock()
                    )
                ]

            created = await self.store.apply_on_day(day, admit)
        except DomainError as e:
            logger.info(
                "Appointment rejected",
                customer_id=customer_id,
                day=day.isoformat(),
                error_code=e.code,
                request_id=self.request_id,
            )
            return _failure(AppointmentResult, e)

        appointment = created[0].record
        logger.info(
            "Appointment reserved",
            appointment_id=str(appointment.id),
            customer_id=customer_id,
            scheduled_at=appointment.scheduled_at.isoformat(),
            request_id=self.request_id,
        )

        approval, _ = await self._auto_approve(appointment.id, day, rules)
        await self._emit(created + approval)
        return AppointmentResult(appointment=self._latest(appointment, approval))

    async def get_daily_capacity(self, day: date) -> CapacityResult:
        """How full ``day`` is."""
        appointments = await self.store.find(day=day)
        snapshot = daily_capacity(day, appointments, self.config.get_business_rules())
        return CapacityResult(capacity=snapshot)

    async def reschedule_appointment(
        self,
        appointment_id: str,
        actor: Actor,
        day: date,
        slot: time,
    ) -> AppointmentResult:
        """Move an appointment to another slot.

        The move goes through the same admission checks as a new booking
        (ignoring the appointment itself), resets it to pending and runs
        auto-approval again.
        """
        try:
            appointment = await self._load(appointment_id, actor, "reschedule appointment")
            self._check_not_past(day)
            rules = self.config.get_business_rules()
            scheduled_at = datetime.combine(day, slot).replace(second=0, microsecond=0)

            def move(snapshot: list[Appointment]) -> list[Transition[Appointment]]:
                check_admission(
                    appointment.customer_id,
                    scheduled_at,
                    snapshot,
                    rules,
                    exclude=appointment.id,
                )
                return [appointment.reschedule(scheduled_at, actor, now=self._clock())]

            moved = await self.store.apply_on_day(day, move)
        except DomainError as e:
            return _failure(AppointmentResult, e)

        updated = moved[0].record
        logger.info(
            "Appointment rescheduled",
            appointment_id=appointment_id,
            scheduled_at=updated.scheduled_at.isoformat(),
            actor=str(actor),
            request_id=self.request_id,
        )
        approval, _ = await self._auto_approve(updated.id, day, rules)
        await self._emit(moved + approval)
        return AppointmentResult(appointment=self._latest(updated, approval))

    # -------------------------------------------------------------------------
    # Status Changes
    # -------------------------------------------------------------------------

    async def cancel_appointment(
        self,
        appointment_id: str,
        actor: Actor,
        reason: str | None = None,
    ) -> AppointmentResult:
        """Cancel an appointment (its owner or an admin)."""
        try:
            appointment = await self._load(appointment_id, actor, "cancel appointment")
            transition = appointment.with_status(
                AppointmentStatus.CANCELLED,
                actor,
                "cancel",
                reason=reason or f"Cancelled by {actor.role.value}",
                now=self._clock(),
            )
            await self.store.save(transition.record)
        except DomainError as e:
            return _failure(AppointmentResult, e)

        logger.info(
            "Appointment cancelled",
            appointment_id=appointment_id,
            actor=str(actor),
            request_id=self.request_id,
        )
        await self._emit([transition])
        return AppointmentResult(appointment=transition.record)

    async def admin_update_status(
        self,
        appointment_id: str,
        actor: Actor,
        status: AppointmentStatus,
        reason: str | None = None,
    ) -> AppointmentResult:
        """Confirm, cancel or complete an appointment as an admin."""
        try:
            if actor.role != ActorRole.ADMIN:
                raise AuthorizationError("update appointment status", actor.role.value)
            if status not in ADMIN_SETTABLE_STATUSES:
                raise ValidationError(
                    f"Admins cannot set status '{status.value}'",
                    details={"allowed": sorted(s.value for s in ADMIN_SETTABLE_STATUSES)},
                )
            appointment = await self._load(appointment_id, actor, "update appointment status")
            transition = appointment.with_status(
                status, actor, f"admin_{status.value}", reason=reason, now=self._clock()
            )
            await self.store.save(transition.record)
        except DomainError as e:
            return _failure(AppointmentResult, e)

        logger.info(
            "Appointment status updated",
            appointment_id=appointment_id,
            status=status.value,
            request_id=self.request_id,
        )
        await self._emit([transition])
        return AppointmentResult(appointment=transition.record)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    async def get_appointment(self, appointment_id: str, actor: Actor) -> AppointmentResult:
        try:
            appointment = await self._load(appointment_id, actor, "view appointment")
        except DomainError as e:
            return _failure(AppointmentResult, e)
        return AppointmentResult(appointment=appointment)

    async def list_appointments(
        self,
        actor: Actor,
        customer_id: str | None = None,
        status: AppointmentStatus | None = None,
        day: date | None = None,
    ) -> ListAppointmentsResult:
        """List appointments. Customers only ever see their own."""
        try:
            if actor.role == ActorRole.CUSTOMER:
                customer = actor.customer_id
            else:
                customer = CustomerId(customer_id) if customer_id else None
        except DomainError as e:
            return _failure(ListAppointmentsResult, e)

        appointments = await self.store.find(customer_id=customer, status=status, day=day)
        return ListAppointmentsResult(appointments=appointments, total=len(appointments))

    async def get_booked_dates(self, from_day: date | None = None) -> list[date]:
        """Dates that hold at least one non-cancelled appointment."""
        return await self.store.booked_dates(from_day)

    async def get_stats(self) -> AppointmentStats:
        appointments = await self.store.find()
        stats = AppointmentStats(
            total=len(appointments),
            total_customers=len({a.customer_id for a in appointments}),
        )
        for appointment in appointments:
            name = appointment.status.value
            setattr(stats, name, getattr(stats, name) + 1)
        return stats

    # -------------------------------------------------------------------------
    # Batch Jobs
    # -------------------------------------------------------------------------

    async def process_pending_appointments(self) -> BatchResult:
        """Re-run auto-approval over every pending appointment, oldest first."""
        rules = self.config.get_business_rules()
        result = BatchResult()
        pending = await self.store.list_pending()

        for listed in pending:
            # An earlier appointment in this run may already have cancelled it
            appointment = await self.store.get(listed.id)
            if appointment is None or appointment.status != AppointmentStatus.PENDING:
                continue
            transitions, ok = await self._auto_approve(appointment.id, appointment.day, rules)
            result.processed += 1
            if not ok:
                result.failed += 1
                continue
            await self._emit(transitions)
            final = self._latest(appointment, transitions)
            if final.status == AppointmentStatus.CONFIRMED:
                result.confirmed += 1
            elif final.status == AppointmentStatus.CANCELLED:
                result.cancelled += 1
            else:
                result.left_pending += 1
            # Rivals cancelled in favour of this appointment
            result.cancelled += sum(1 for t in transitions if t.record.id != appointment.id)

        logger.info(
            "Pending appointments processed",
            processed=result.processed,
            confirmed=result.confirmed,
            cancelled=result.cancelled,
            left_pending=result.left_pending,
            failed=result.failed,
        )
        return result

    async def auto_cancel_stale_pending(self, days: int | None = None) -> BatchResult:
        """Cancel appointments left pending for more than ``days`` days."""
        days = days if days is not None else self.stale_pending_days
        if days < 1:
            raise ValidationError("days must be at least 1", details={"days": days})
        cutoff = self._clock() - timedelta(days=days)
        system = Actor.system()
        result = BatchResult()

        for appointment in await self.store.list_pending(created_before=cutoff):
            result.processed += 1
            try:
                transition = appointment.with_status(
                    AppointmentStatus.CANCELLED,
                    system,
                    "auto_cancel_stale",
                    reason=f"No confirmation within {days} days",
                    now=self._clock(),
                )
                await self.store.save(transition.record)
            except StaleRecordError:
                # Changed since it was listed; leave it to the next run
                result.failed += 1
                continue
            result.cancelled += 1
            await self._emit([transition])

        logger.info(
            "Stale pending appointments cancelled",
            days=days,
            cancelled=result.cancelled,
            skipped=result.failed,
        )
        return result


def get_appointment_service(request_id: str | None = None) -> AppointmentService:
    """Get appointment service instance.

    Args:
        request_id: Request ID for correlation.

    Returns:
        AppointmentService instance.
    """
    return AppointmentService(request_id=request_id)
