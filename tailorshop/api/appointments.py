"""Appointment API endpoints.

Provides endpoints for booking and managing fitting appointments:
- POST /appointments - reserve a slot
- GET /appointments - list appointments
- GET /appointments/capacity/{day} - booking state of a date
- GET /appointments/booked-dates - dates with bookings
- GET /appointments/stats - dashboard counts (admin)
- GET /appointments/{id} - appointment details
- POST /appointments/{id}/reschedule - move to another slot
- POST /appointments/{id}/cancel - cancel
- POST /appointments/{id}/status - admin status update
- POST /appointments/process-pending - re-run auto-approval (admin)
- POST /appointments/auto-cancel-stale - expire stale bookings (admin)
"""

from datetime import date
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request, status

from tailorshop.api.dependencies import (
    get_actor,
    raise_for_failure,
    request_id_of,
    require_admin,
)
from tailorshop.api.schemas import (
    AppointmentCancelRequest,
    AppointmentCreateRequest,
    AppointmentRescheduleRequest,
    AppointmentResponse,
    AppointmentsListResponse,
    AppointmentStatsResponse,
    AppointmentStatusUpdateRequest,
    BatchResultResponse,
    BookedDatesResponse,
    DailyCapacityResponse,
    ErrorResponse,
    StaleCancelRequest,
)
from tailorshop.application.appointment_service import (
    AppointmentService,
    BatchResult,
    get_appointment_service,
)
from tailorshop.domain.entities import Appointment
from tailorshop.domain.state_machines import AppointmentStatus
from tailorshop.domain.value_objects import Actor, ActorRole

router = APIRouter(prefix="/appointments", tags=["Appointments"])

ERRORS = {
    401: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    422: {"model": ErrorResponse},
}


# ============================================================================
# Dependencies
# ============================================================================


def get_service(request: Request) -> AppointmentService:
    """Get appointment service with request ID."""
    return get_appointment_service(request_id=request_id_of(request))


# ============================================================================
# Converters
# ============================================================================


def appointment_to_response(appointment: Appointment) -> AppointmentResponse:
    return AppointmentResponse(
        id=str(appointment.id),
        customer_id=str(appointment.customer_id),
        scheduled_at=appointment.scheduled_at,
        appointment_date=appointment.day,
        appointment_time=appointment.slot_time.strftime("%H:%M"),
        service_type=appointment.service_type,
        status=appointment.status,
        notes=appointment.notes,
        cancellation_reason=appointment.cancellation_reason,
        version=appointment.version,
        created_at=appointment.created_at,
        updated_at=appointment.updated_at,
    )


def batch_to_response(result: BatchResult) -> BatchResultResponse:
    return BatchResultResponse(
        processed=result.processed,
        confirmed=result.confirmed,
        cancelled=result.cancelled,
        left_pending=result.left_pending,
        failed=result.failed,
    )


# ============================================================================
# Booking
# ============================================================================


@router.post(
    "",
    response_model=AppointmentResponse,
    status_code=status.HTTP_201_CREATED,
    responses=ERRORS,
    summary="Reserve an appointment",
    description="Book a slot. The booking may be confirmed immediately when "
    "auto-approval is on and it is the earliest request for the slot.",
)
async def reserve_appointment(
    body: AppointmentCreateRequest,
    actor: Annotated[Actor, Depends(get_actor)],
    service: Annotated[AppointmentService, Depends(get_service)],
) -> AppointmentResponse:
    """Reserve a slot for the calling customer (or, for admins, any customer).

    Raises:
        HTTPException: 409 when the customer already has a booking that day,
            the slot is taken or the day is full; 422 for past dates.
    """
    if actor.role == ActorRole.CUSTOMER:
        customer_id = str(actor.customer_id)
    else:
        customer_id = body.customer_id or ""

    result = await service.reserve_appointment(
        customer_id=customer_id,
        day=body.appointment_date,
        slot=body.appointment_time,
        service_type=body.service_type,
        notes=body.notes,
    )
    raise_for_failure(result)
    return appointment_to_response(result.appointment)


@router.get(
    "",
    response_model=AppointmentsListResponse,
    responses=ERRORS,
    summary="List appointments",
)
async def list_appointments(
    actor: Annotated[Actor, Depends(get_actor)],
    service: Annotated[AppointmentService, Depends(get_service)],
    customer_id: str | None = Query(default=None, description="Filter by customer (admin)"),
    status_filter: AppointmentStatus | None = Query(
        default=None, alias="status", description="Filter by status"
    ),
    day: date | None = Query(default=None, description="Filter by date"),
) -> AppointmentsListResponse:
    result = await service.list_appointments(
        actor=actor, customer_id=customer_id, status=status_filter, day=day
    )
    raise_for_failure(result)
    return AppointmentsListResponse(
        items=[appointment_to_response(a) for a in result.appointments],
        total=result.total,
    )


@router.get(
    "/capacity/{day}",
    response_model=DailyCapacityResponse,
    summary="Daily capacity",
    description="How many slots are booked on a date and which times are taken.",
)
async def get_daily_capacity(
    day: date,
    service: Annotated[AppointmentService, Depends(get_service)],
) -> DailyCapacityResponse:
    result = await service.get_daily_capacity(day)
    raise_for_failure(result)
    capacity = result.capacity
    return DailyCapacityResponse(
        day=capacity.day,
        booked_count=capacity.booked_count,
        max_capacity=capacity.max_capacity,
        available_slots=capacity.available_slots,
        taken_times=list(capacity.taken_times),
    )


@router.get(
    "/booked-dates",
    response_model=BookedDatesResponse,
    summary="Booked dates",
)
async def get_booked_dates(
    service: Annotated[AppointmentService, Depends(get_service)],
    from_day: date | None = Query(default=None, description="Only dates on or after this one"),
) -> BookedDatesResponse:
    return BookedDatesResponse(booked_dates=await service.get_booked_dates(from_day))


@router.get(
    "/stats",
    response_model=AppointmentStatsResponse,
    responses={403: {"model": ErrorResponse}},
    summary="Appointment statistics (admin)",
)
async def get_stats(
    actor: Annotated[Actor, Depends(get_actor)],
    service: Annotated[AppointmentService, Depends(get_service)],
) -> AppointmentStatsResponse:
    require_admin(actor, "view appointment statistics")
    stats = await service.get_stats()
    return AppointmentStatsResponse(
        total_appointments=stats.total,
        pending_appointments=stats.pending,
        confirmed_appointments=stats.confirmed,
        cancelled_appointments=stats.cancelled,
        completed_appointments=stats.completed,
        total_customers=stats.total_customers,
    )


# ============================================================================
# Batch Jobs
# ============================================================================


@router.post(
    "/process-pending",
    response_model=BatchResultResponse,
    responses={403: {"model": ErrorResponse}},
    summary="Process pending appointments (admin)",
    description="Re-run auto-approval over all pending appointments in booking order.",
)
async def process_pending(
    actor: Annotated[Actor, Depends(get_actor)],
    service: Annotated[AppointmentService, Depends(get_service)],
) -> BatchResultResponse:
    require_admin(actor, "process pending appointments")
    return batch_to_response(await service.process_pending_appointments())


@router.post(
    "/auto-cancel-stale",
    response_model=BatchResultResponse,
    responses={403: {"model": ErrorResponse}},
    summary="Cancel stale pending appointments (admin)",
)
async def auto_cancel_stale(
    body: StaleCancelRequest,
    actor: Annotated[Actor, Depends(get_actor)],
    service: Annotated[AppointmentService, Depends(get_service)],
) -> BatchResultResponse:
    require_admin(actor, "cancel stale appointments")
    return batch_to_response(await service.auto_cancel_stale_pending(days=body.days))


# ============================================================================
# Single Appointment
# ============================================================================


@router.get(
    "/{appointment_id}",
    response_model=AppointmentResponse,
    responses=ERRORS,
    summary="Get appointment details",
)
async def get_appointment(
    appointment_id: str,
    actor: Annotated[Actor, Depends(get_actor)],
    service: Annotated[AppointmentService, Depends(get_service)],
) -> AppointmentResponse:
    result = await service.get_appointment(appointment_id, actor)
    raise_for_failure(result)
    return appointment_to_response(result.appointment)


@router.post(
    "/{appointment_id}/reschedule",
    response_model=AppointmentResponse,
    responses=ERRORS,
    summary="Reschedule appointment",
    description="Move an appointment to another slot. It returns to pending "
    "and goes through auto-approval again.",
)
async def reschedule_appointment(
    appointment_id: str,
    body: AppointmentRescheduleRequest,
    actor: Annotated[Actor, Depends(get_actor)],
    service: Annotated[AppointmentService, Depends(get_service)],
) -> AppointmentResponse:
    result = await service.reschedule_appointment(
        appointment_id,
        actor,
        day=body.appointment_date,
        slot=body.appointment_time,
    )
    raise_for_failure(result)
    return appointment_to_response(result.appointment)


@router.post(
    "/{appointment_id}/cancel",
    response_model=AppointmentResponse,
    responses=ERRORS,
    summary="Cancel appointment",
)
async def cancel_appointment(
    appointment_id: str,
    body: AppointmentCancelRequest,
    actor: Annotated[Actor, Depends(get_actor)],
    service: Annotated[AppointmentService, Depends(get_service)],
) -> AppointmentResponse:
    result = await service.cancel_appointment(appointment_id, actor, reason=body.reason)
    raise_for_failure(result)
    return appointment_to_response(result.appointment)


@router.post(
    "/{appointment_id}/status",
    response_model=AppointmentResponse,
    responses=ERRORS,
    summary="Update appointment status (admin)",
)
async def update_status(
    appointment_id: str,
    body: AppointmentStatusUpdateRequest,
    actor: Annotated[Actor, Depends(get_actor)],
    service: Annotated[AppointmentService, Depends(get_service)],
) -> AppointmentResponse:
    result = await service.admin_update_status(
        appointment_id, actor, body.status, reason=body.reason
    )
    raise_for_failure(result)
    return appointment_to_response(result.appointment)
