"""Appointment admission control and FCFS auto-approval.

Everything here is pure: functions take the appointments of one date
as a snapshot and either raise, return a capacity view, or return a
decision. Stores are responsible for taking that snapshot and applying
the result atomically.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime, timedelta

from tailorshop.domain.entities import Appointment
from tailorshop.domain.exceptions import (
    CapacityExceededError,
    DailyLimitExceededError,
    TimeSlotTakenError,
)
from tailorshop.domain.state_machines import AppointmentStatus
from tailorshop.domain.value_objects import AppointmentId, BusinessRules, CustomerId

CONFLICT_WINDOW = timedelta(minutes=15)


# ============================================================================
# Capacity
# ============================================================================


@dataclass(frozen=True)
class CapacitySnapshot:
    """Booking state of a single date.

    Attributes:
        day: The date.
        booked_count: Non-cancelled appointments on the date.
        max_capacity: Configured daily ceiling.
        available_slots: Remaining bookings, never negative.
        taken_times: Sorted ``HH:MM`` of non-cancelled appointments.
    """

    day: date
    booked_count: int
    max_capacity: int
    available_slots: int
    taken_times: tuple[str, ...]

    @property
    def is_full(self) -> bool:
        return self.available_slots == 0


def _holding(
    appointments: Iterable[Appointment],
    day: date,
    exclude: AppointmentId | None = None,
) -> list[Appointment]:
    return [
        a
        for a in appointments
        if a.day == day and a.holds_slot() and (exclude is None or a.id != exclude)
    ]


def daily_capacity(
    day: date,
    appointments: Iterable[Appointment],
    rules: BusinessRules,
) -> CapacitySnapshot:
    """Summarize how full ``day`` is.

    Args:
        day: Date to summarize.
        appointments: Appointments of that date (others are ignored).
        rules: Current business rules.

    Returns:
        CapacitySnapshot for the date.
    """
    holding = _holding(appointments, day)
    booked = len(holding)
    return CapacitySnapshot(
        day=day,
        booked_count=booked,
        max_capacity=rules.max_appointments_per_day,
        available_slots=max(0, rules.max_appointments_per_day - booked),
        taken_times=tuple(sorted({a.slot_time.strftime("%H:%M") for a in holding})),
    )


def check_admission(
    customer_id: CustomerId,
    scheduled_at: datetime,
    appointments: Iterable[Appointment],
    rules: BusinessRules,
    exclude: AppointmentId | None = None,
) -> None:
    """Check that a booking at ``scheduled_at`` may be created.

    Checks run in a fixed order and the first failure wins: one
    appointment per customer per day, one appointment per exact slot,
    then the daily ceiling.

    Args:
        customer_id: Customer asking for the slot.
        scheduled_at: Requested slot.
        appointments: Snapshot of the appointments on that date.
        rules: Current business rules.
        exclude: Appointment to leave out (the one being rescheduled).

    Raises:
        DailyLimitExceededError: Customer already holds a slot on the date.
        TimeSlotTakenError: The exact slot is held by someone.
        CapacityExceededError: The date is full.
    """
    day = scheduled_at.date()
    holding = _holding(appointments, day, exclude)

    if any(a.customer_id == customer_id for a in holding):
        raise DailyLimitExceededError(str(customer_id), day.isoformat())

    wanted = scheduled_at.replace(second=0, microsecond=0)
    if any(a.scheduled_at == wanted for a in holding):
        raise TimeSlotTakenError(day.isoformat(), wanted.strftime("%H:%M"))

    if len(holding) >= rules.max_appointments_per_day:
        raise CapacityExceededError(day.isoformat(), len(holding), rules.max_appointments_per_day)


# ============================================================================
# Auto-Approval
# ============================================================================


def within_conflict_window(a: datetime, b: datetime) -> bool:
    """Check whether two slots are at most 15 minutes apart."""
    return abs(a - b) <= CONFLICT_WINDOW


def find_conflicts(
    appointment: Appointment,
    siblings: Iterable[Appointment],
) -> list[Appointment]:
    """Find non-cancelled appointments competing with ``appointment``.

    Returns:
        Conflicting appointments in FCFS order (earliest priority first).
    """
    conflicts = [
        other
        for other in _holding(siblings, appointment.day, exclude=appointment.id)
        if within_conflict_window(other.scheduled_at, appointment.scheduled_at)
    ]
    return sorted(conflicts, key=lambda a: a.priority)


@dataclass(frozen=True)
class ApprovalDecision:
    """Outcome of auto-approval for one appointment.

    Attributes:
        status: Status the appointment should end up in.
        cancelled_ids: Pending rivals to cancel because this one came first.
        reason: Short machine-readable reason for the outcome.
    """

    status: AppointmentStatus
    cancelled_ids: tuple[AppointmentId, ...] = ()
    reason: str = ""

    def changes(self, appointment: Appointment) -> bool:
        return self.status != appointment.status or bool(self.cancelled_ids)


def evaluate_auto_approval(
    appointment: Appointment,
    siblings: Iterable[Appointment],
    rules: BusinessRules,
) -> ApprovalDecision:
    """Decide the fate of a pending appointment.

    Args:
        appointment: The appointment being evaluated.
        siblings: Snapshot of the appointments on the same date.
        rules: Current business rules.

    Returns:
        ApprovalDecision; pending means an admin has to decide.
    """
    if appointment.status != AppointmentStatus.PENDING:
        return ApprovalDecision(status=appointment.status, reason="not_pending")

    if not rules.auto_approve_enabled:
        return ApprovalDecision(status=AppointmentStatus.PENDING, reason="auto_approve_disabled")

    if not rules.is_within_business_hours(appointment.slot_time):
        return ApprovalDecision(status=AppointmentStatus.PENDING, reason="outside_business_hours")

    siblings = list(siblings)
    conflicts = find_conflicts(appointment, siblings)
    cancelled: tuple[AppointmentId, ...] = ()
    if conflicts:
        if appointment.priority > conflicts[0].priority:
            return ApprovalDecision(status=AppointmentStatus.CANCELLED, reason="slot_taken_earlier")
        cancelled = tuple(c.id for c in conflicts if c.status == AppointmentStatus.PENDING)

    # the day's total includes the appointment under evaluation
    others = [
        a
        for a in _holding(siblings, appointment.day, exclude=appointment.id)
        if a.id not in cancelled
    ]
    if len(others) + 1 >= rules.max_appointments_per_day:
        return ApprovalDecision(
            status=AppointmentStatus.PENDING,
            cancelled_ids=cancelled,
            reason="daily_capacity_reached",
        )

    return ApprovalDecision(
        status=AppointmentStatus.CONFIRMED,
        cancelled_ids=cancelled,
        reason="auto_approved",
    )
