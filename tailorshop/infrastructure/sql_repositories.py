"""PostgreSQL-backed stores.

Same contract as the in-memory stores. Day-scoped appointment updates
take a transaction-level advisory lock keyed by the date, so two
reservations for the same day never interleave; the partial unique
indexes on ``appointments`` back that up, and their violations are
mapped to the matching conflict errors.
"""

from collections.abc import Iterable
from datetime import date, datetime

import structlog
from sqlalchemy import delete, func, select, text, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tailorshop.domain.base import Transition
from tailorshop.domain.entities import ORDER_TYPES, Appointment, Order, Rental, StatusHistoryEntry
from tailorshop.domain.exceptions import (
    ConflictError,
    DailyLimitExceededError,
    StaleRecordError,
    TimeSlotTakenError,
)
from tailorshop.domain.state_machines import (
    AppointmentStatus,
    CounterOfferStatus,
    DamageLevel,
    OrderKind,
    OrderStatus,
    PenaltyStatus,
)
from tailorshop.domain.value_objects import (
    AppointmentId,
    CustomerId,
    ItemDescriptor,
    Money,
    OrderId,
)
from tailorshop.infrastructure.database import get_session_factory
from tailorshop.infrastructure.models import AppointmentModel, OrderModel
from tailorshop.infrastructure.repositories import DayUpdate

logger = structlog.get_logger()


# ============================================================================
# Appointment Mapping
# ============================================================================


def appointment_to_row(appointment: Appointment) -> dict:
    return {
        "id": str(appointment.id),
        "customer_id": str(appointment.customer_id),
        "appointment_date": appointment.day,
        "scheduled_at": appointment.scheduled_at,
        "service_type": appointment.service_type,
        "status": appointment.status.value,
        "notes": appointment.notes,
        "cancellation_reason": appointment.cancellation_reason,
        "version": appointment.version,
        "created_at": appointment.created_at,
        "updated_at": appointment.updated_at,
    }


def appointment_from_model(model: AppointmentModel) -> Appointment:
    return Appointment(
        id=AppointmentId.from_string(model.id),
        customer_id=CustomerId(model.customer_id),
        scheduled_at=model.scheduled_at,
        service_type=model.service_type,
        status=AppointmentStatus(model.status),
        notes=model.notes,
        cancellation_reason=model.cancellation_reason,
        version=model.version,
        created_at=model.created_at,
        updated_at=model.updated_at,
    )


def _map_integrity_error(error: IntegrityError, appointment: Appointment) -> ConflictError:
    message = str(error.orig)
    if "uq_appointments_customer_date" in message:
        return DailyLimitExceededError(str(appointment.customer_id), appointment.day.isoformat())
    if "uq_appointments_slot" in message:
        return TimeSlotTakenError(
            appointment.day.isoformat(), appointment.slot_time.strftime("%H:%M")
        )
    return ConflictError(f"Appointment write conflict: {message}")


# ============================================================================
# Order Mapping
# ============================================================================


def _cents(money: Money | None) -> int | None:
    return money.amount_cents if money is not None else None


def _money(cents: int | None, currency: str) -> Money | None:
    return Money(amount_cents=cents, currency=currency) if cents is not None else None


def order_to_row(order: Order) -> dict:
    row = {
        "id": str(order.id),
        "kind": order.kind.value,
        "customer_id": str(order.customer_id),
        "status": order.status.value,
        "currency": (order.quotation_amount or Money.zero()).currency,
        "item_name": order.item.name,
        "clothing_type": order.item.clothing_type,
        "measurements": order.item.measurements_dict(),
        "item_notes": order.item.notes,
        "quotation_amount_cents": _cents(order.quotation_amount),
        "quotation_notes": order.quotation_notes,
        "quotation_sent_at": order.quotation_sent_at,
        "quotation_responded_at": order.quotation_responded_at,
        "counter_offer_amount_cents": _cents(order.counter_offer_amount),
        "counter_offer_notes": order.counter_offer_notes,
        "counter_offer_sent_at": order.counter_offer_sent_at,
        "counter_offer_status": order.counter_offer_status.value,
        "cancelled_by": order.cancelled_by,
        "status_history": [
            {
                "from_status": e.from_status.value if e.from_status else None,
                "to_status": e.to_status.value,
                "transition": e.transition,
                "actor": e.actor,
                "at": e.at.isoformat(),
            }
            for e in order.status_history
        ],
        "version": order.version,
        "created_at": order.created_at,
        "updated_at": order.updated_at,
    }
    if isinstance(order, Rental):
        row.update(
            currency=order.cancellation_fee.currency,
            cancellation_fee_cents=_cents(order.cancellation_fee),
            daily_delay_fee_cents=_cents(order.daily_delay_fee),
            damage_fee_min_cents=_cents(order.damage_fee_min),
            damage_fee_max_cents=_cents(order.damage_fee_max),
            damage_level=order.damage_level.value if order.damage_level else None,
            assessed_damage_fee_cents=_cents(order.assessed_damage_fee),
            assessed_delay_fee_cents=_cents(order.assessed_delay_fee),
            total_penalties_cents=_cents(order.total_penalties),
            penalty_status=order.penalty_status.value,
            penalty_notes=order.penalty_notes,
            penalty_calculated_at=order.penalty_calculated_at,
            penalty_paid_at=order.penalty_paid_at,
            agreement_accepted=order.agreement_accepted,
            agreement_accepted_at=order.agreement_accepted_at,
        )
    return row


def order_from_model(model: OrderModel) -> Order:
    kind = OrderKind(model.kind)
    currency = model.currency
    fields = {
        "id": OrderId.from_string(model.id),
        "customer_id": CustomerId(model.customer_id),
        "item": ItemDescriptor.create(
            name=model.item_name,
            clothing_type=model.clothing_type,
            measurements=model.measurements or {},
            notes=model.item_notes,
        ),
        "status": OrderStatus(model.status),
        "quotation_amount": _money(model.quotation_amount_cents, currency),
        "quotation_notes": model.quotation_notes,
        "quotation_sent_at": model.quotation_sent_at,
        "quotation_responded_at": model.quotation_responded_at,
        "counter_offer_amount": _money(model.counter_offer_amount_cents, currency),
        "counter_offer_notes": model.counter_offer_notes,
        "counter_offer_sent_at": model.counter_offer_sent_at,
        "counter_offer_status": CounterOfferStatus(model.counter_offer_status),
        "cancelled_by": model.cancelled_by,
        "status_history": tuple(
            StatusHistoryEntry(
                from_status=OrderStatus(e["from_status"]) if e["from_status"] else None,
                to_status=OrderStatus(e["to_status"]),
                transition=e["transition"],
                actor=e["actor"],
                at=datetime.fromisoformat(e["at"]),
            )
            for e in model.status_history or []
        ),
        "version": model.version,
        "created_at": model.created_at,
        "updated_at": model.updated_at,
    }
    if kind == OrderKind.RENTAL:
        fields.update(
            cancellation_fee=_money(model.cancellation_fee_cents, currency),
            daily_delay_fee=_money(model.daily_delay_fee_cents, currency),
            damage_fee_min=_money(model.damage_fee_min_cents, currency),
            damage_fee_max=_money(model.damage_fee_max_cents, currency),
            damage_level=DamageLevel(model.damage_level) if model.damage_level else None,
            assessed_damage_fee=_money(model.assessed_damage_fee_cents or 0, currency),
            assessed_delay_fee=_money(model.assessed_delay_fee_cents or 0, currency),
            total_penalties=_money(model.total_penalties_cents or 0, currency),
            penalty_status=PenaltyStatus(model.penalty_status or "none"),
            penalty_notes=model.penalty_notes,
            penalty_calculated_at=model.penalty_calculated_at,
            penalty_paid_at=model.penalty_paid_at,
            agreement_accepted=bool(model.agreement_accepted),
            agreement_accepted_at=model.agreement_accepted_at,
        )
    return ORDER_TYPES[kind](**fields)


# ============================================================================
# Shared Write Helper
# ============================================================================


async def _write_versioned(session: AsyncSession, model_cls, row: dict, entity_type: str) -> None:
    """Insert a version-1 row or update the row one version behind.

    Raises:
        StaleRecordError: If the stored row is not at ``version - 1``.
    """
    if row["version"] == 1:
        session.add(model_cls(**row))
        await session.flush()
        return

    expected = row["version"] - 1
    result = await session.execute(
        update(model_cls)
        .where(model_cls.id == row["id"], model_cls.version == expected)
        .values(**{k: v for k, v in row.items() if k != "id"})
    )
    if result.rowcount == 0:
        current = await session.scalar(select(model_cls.version).where(model_cls.id == row["id"]))
        raise StaleRecordError(entity_type, row["id"], expected=expected, actual=current or 0)


# ============================================================================
# SQL Appointment Store
# ============================================================================


class SqlAppointmentStore:
    """Appointment store on PostgreSQL."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None) -> None:
        self._session_factory = session_factory or get_session_factory()

    async def get(self, appointment_id: AppointmentId) -> Appointment | None:
        async with self._session_factory() as session:
            model = await session.get(AppointmentModel, str(appointment_id))
            return appointment_from_model(model) if model else None

    async def find(
        self,
        customer_id: CustomerId | None = None,
        status: AppointmentStatus | None = None,
        day: date | None = None,
    ) -> list[Appointment]:
        stmt = select(AppointmentModel)
        if customer_id is not None:
            stmt = stmt.where(AppointmentModel.customer_id == str(customer_id))
        if status is not None:
            stmt = stmt.where(AppointmentModel.status == status.value)
        if day is not None:
            stmt = stmt.where(AppointmentModel.appointment_date == day)
        stmt = stmt.order_by(
            AppointmentModel.scheduled_at, AppointmentModel.created_at, AppointmentModel.id
        )
        async with self._session_factory() as session:
            result = await session.scalars(stmt)
            return [appointment_from_model(m) for m in result]

    async def list_pending(self, created_before: datetime | None = None) -> list[Appointment]:
        stmt = select(AppointmentModel).where(
            AppointmentModel.status == AppointmentStatus.PENDING.value
        )
        if created_before is not None:
            stmt = stmt.where(AppointmentModel.created_at < created_before)
        stmt = stmt.order_by(AppointmentModel.created_at, AppointmentModel.id)
        async with self._session_factory() as session:
            result = await session.scalars(stmt)
            return [appointment_from_model(m) for m in result]

    async def count_by_date_and_status(
        self,
        day: date,
        statuses: Iterable[AppointmentStatus] | None = None,
    ) -> int:
        stmt = select(func.count(AppointmentModel.id)).where(
            AppointmentModel.appointment_date == day
        )
        if statuses is not None:
            stmt = stmt.where(AppointmentModel.status.in_([s.value for s in statuses]))
        async with self._session_factory() as session:
            return await session.scalar(stmt) or 0

    async def booked_dates(self, from_day: date | None = None) -> list[date]:
        stmt = (
            select(AppointmentModel.appointment_date)
            .where(AppointmentModel.status != AppointmentStatus.CANCELLED.value)
            .distinct()
            .order_by(AppointmentModel.appointment_date)
        )
        if from_day is not None:
            stmt = stmt.where(AppointmentModel.appointment_date >= from_day)
        async with self._session_factory() as session:
            return list(await session.scalars(stmt))

    async def save(self, appointment: Appointment) -> Appointment:
        async with self._session_factory() as session, session.begin():
            try:
                await _write_versioned(
                    session, AppointmentModel, appointment_to_row(appointment), "Appointment"
                )
            except IntegrityError as e:
                raise _map_integrity_error(e, appointment) from e
        return appointment

    async def apply_on_day(self, day: date, day_update: DayUpdate) -> list[Transition[Appointment]]:
        async with self._session_factory() as session, session.begin():
            await session.execute(
                text("SELECT pg_advisory_xact_lock(:key)"), {"key": day.toordinal()}
            )
            result = await session.scalars(
                select(AppointmentModel).where(AppointmentModel.appointment_date == day)
            )
            snapshot = [appointment_from_model(m) for m in result]
            transitions = [t for t in day_update(snapshot) if t.changed]
            for transition in transitions:
                try:
                    await _write_versioned(
                        session,
                        AppointmentModel,
                        appointment_to_row(transition.record),
                        "Appointment",
                    )
                except IntegrityError as e:
                    raise _map_integrity_error(e, transition.record) from e
        logger.debug("Day update applied", day=day.isoformat(), changes=len(transitions))
        return transitions


# ============================================================================
# SQL Order Store
# ============================================================================


class SqlOrderStore:
    """Order store on PostgreSQL."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None) -> None:
        self._session_factory = session_factory or get_session_factory()

    async def get(self, order_id: OrderId) -> Order | None:
        async with self._session_factory() as session:
            model = await session.get(OrderModel, str(order_id))
            return order_from_model(model) if model else None

    async def find(
        self,
        customer_id: CustomerId | None = None,
        kind: OrderKind | None = None,
        status: OrderStatus | None = None,
    ) -> list[Order]:
        stmt = select(OrderModel)
        if customer_id is not None:
            stmt = stmt.where(OrderModel.customer_id == str(customer_id))
        if kind is not None:
            stmt = stmt.where(OrderModel.kind == kind.value)
        if status is not None:
            stmt = stmt.where(OrderModel.status == status.value)
        stmt = stmt.order_by(OrderModel.created_at.desc())
        async with self._session_factory() as session:
            result = await session.scalars(stmt)
            return [order_from_model(m) for m in result]

    async def save(self, order: Order) -> Order:
        async with self._session_factory() as session, session.begin():
            await _write_versioned(
                session, OrderModel, order_to_row(order), order.kind.value.capitalize()
            )
        return order

    async def delete(self, order_id: OrderId) -> bool:
        async with self._session_factory() as session, session.begin():
            result = await session.execute(delete(OrderModel).where(OrderModel.id == str(order_id)))
            return result.rowcount > 0
