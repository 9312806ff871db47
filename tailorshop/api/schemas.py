"""API schemas for the tailor shop API.

Pydantic models for request/response validation and serialization.
"""

from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from tailorshop.domain.state_machines import (
    AppointmentStatus,
    CounterOfferStatus,
    DamageLevel,
    OrderKind,
    OrderStatus,
    PenaltyStatus,
)


# ============================================================================
# Common Schemas
# ============================================================================


class PriceSchema(BaseModel):
    """Price representation."""

    amount: int = Field(..., description="Amount in smallest currency unit (centavos)")
    currency: str = Field(default="PHP", description="Currency code")
    display: str = Field(..., description="Formatted amount, e.g. '₱500.00 PHP'")


class ErrorResponse(BaseModel):
    """Standard error response.

    All API errors follow this format for consistency.
    """

    error_code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")
    details: dict[str, Any] | list[Any] = Field(
        default_factory=dict, description="Additional error details"
    )
    request_id: str | None = Field(default=None, description="Request ID for correlation")


class Decision(str, Enum):
    """Customer or admin answer to an offer."""

    ACCEPT = "accept"
    REJECT = "reject"


class AdminDecision(str, Enum):
    """Admin answer to a new order."""

    ACCEPT = "accept"
    DECLINE = "decline"


# ============================================================================
# Appointment Schemas
# ============================================================================


class AppointmentCreateRequest(BaseModel):
    """Request to reserve an appointment slot."""

    appointment_date: date = Field(..., description="Appointment date (shop-local)")
    appointment_time: time = Field(..., description="Appointment time (shop-local)")
    service_type: str = Field(..., max_length=100, description="Requested service")
    notes: str | None = Field(default=None, max_length=2000, description="Customer notes")
    customer_id: str | None = Field(
        default=None, description="Customer to book for (admins only; customers book for themselves)"
    )


class AppointmentRescheduleRequest(BaseModel):
    """Request to move an appointment to another slot."""

    appointment_date: date = Field(..., description="New date")
    appointment_time: time = Field(..., description="New time")


class AppointmentCancelRequest(BaseModel):
    """Request to cancel an appointment."""

    reason: str | None = Field(default=None, max_length=500, description="Cancellation reason")


class AppointmentStatusUpdateRequest(BaseModel):
    """Admin request to change an appointment's status."""

    status: AppointmentStatus = Field(..., description="confirmed, cancelled or completed")
    reason: str | None = Field(default=None, max_length=500)


class AppointmentResponse(BaseModel):
    """Appointment details."""

    id: str
    customer_id: str
    scheduled_at: datetime = Field(..., description="Shop-local date and time")
    appointment_date: date
    appointment_time: str = Field(..., description="HH:MM")
    service_type: str
    status: AppointmentStatus
    notes: str | None = None
    cancellation_reason: str | None = None
    version: int
    created_at: datetime
    updated_at: datetime


class AppointmentsListResponse(BaseModel):
    """List of appointments."""

    items: list[AppointmentResponse]
    total: int


class DailyCapacityResponse(BaseModel):
    """Booking state of one date."""

    day: date
    booked_count: int
    max_capacity: int
    available_slots: int
    taken_times: list[str] = Field(..., description="Sorted HH:MM of held slots")


class BookedDatesResponse(BaseModel):
    """Dates holding at least one non-cancelled appointment."""

    booked_dates: list[date]


class AppointmentStatsResponse(BaseModel):
    """Appointment counts for the admin dashboard."""

    total_appointments: int
    pending_appointments: int
    confirmed_appointments: int
    cancelled_appointments: int
    completed_appointments: int
    total_customers: int


class BatchResultResponse(BaseModel):
    """Outcome of a batch job over pending appointments."""

    processed: int
    confirmed: int
    cancelled: int
    left_pending: int
    failed: int


class StaleCancelRequest(BaseModel):
    """Request to expire stale pending appointments."""

    days: int | None = Field(default=None, ge=1, description="Age threshold in days")


# ============================================================================
# Order Schemas
# ============================================================================


class ItemSchema(BaseModel):
    """What is being rented or made."""

    name: str
    clothing_type: str
    measurements: dict[str, float] = Field(default_factory=dict)
    notes: str | None = None


class OrderCreateRequest(BaseModel):
    """Request to place a rental or purchase order."""

    kind: OrderKind = Field(..., description="rental or purchase")
    item_name: str = Field(..., max_length=255)
    clothing_type: str = Field(..., max_length=100)
    measurements: dict[str, float] | None = Field(
        default=None, description="Body measurements in centimetres"
    )
    notes: str | None = Field(default=None, max_length=2000)


class AdminRespondRequest(BaseModel):
    """Admin accept/decline of a new order."""

    action: AdminDecision


class QuotationRequest(BaseModel):
    """Admin quotation for an order."""

    amount: Decimal = Field(..., description="Quoted price in pesos")
    notes: str | None = Field(default=None, max_length=2000)


class CounterOfferRequest(BaseModel):
    """Customer counter-offer."""

    amount: Decimal = Field(..., description="Proposed price in pesos")
    notes: str | None = Field(default=None, max_length=2000)


class DecisionRequest(BaseModel):
    """Accept or reject a quotation or counter-offer."""

    action: Decision


class FulfillmentRequest(BaseModel):
    """Admin request to move an order along fulfilment."""

    status: OrderStatus = Field(..., description="ready_for_pickup, picked_up or returned")


class PenaltyCalculationRequest(BaseModel):
    """Admin penalty assessment for a rental."""

    damage_level: DamageLevel = Field(default=DamageLevel.NONE)
    delay_days: int = Field(default=0, ge=0, description="Days the return was late")
    notes: str | None = Field(default=None, max_length=2000)


class StatusHistorySchema(BaseModel):
    """One status change."""

    from_status: OrderStatus | None
    to_status: OrderStatus
    transition: str
    actor: str
    at: datetime


class RentalTermsSchema(BaseModel):
    """Rental fees, penalties and agreement."""

    cancellation_fee: PriceSchema
    daily_delay_fee: PriceSchema
    damage_fee_min: PriceSchema
    damage_fee_max: PriceSchema | None = None
    damage_level: DamageLevel | None = None
    total_penalties: PriceSchema
    penalty_status: PenaltyStatus
    penalty_notes: str | None = None
    penalty_calculated_at: datetime | None = None
    penalty_paid_at: datetime | None = None
    agreement_accepted: bool
    agreement_accepted_at: datetime | None = None


class OrderResponse(BaseModel):
    """Order details."""

    id: str
    kind: OrderKind
    customer_id: str
    status: OrderStatus
    item: ItemSchema
    quotation_amount: PriceSchema | None = None
    quotation_notes: str | None = None
    quotation_sent_at: datetime | None = None
    quotation_responded_at: datetime | None = None
    counter_offer_amount: PriceSchema | None = None
    counter_offer_notes: str | None = None
    counter_offer_sent_at: datetime | None = None
    counter_offer_status: CounterOfferStatus
    cancelled_by: str | None = None
    rental: RentalTermsSchema | None = None
    status_history: list[StatusHistorySchema]
    version: int
    created_at: datetime
    updated_at: datetime


class OrdersListResponse(BaseModel):
    """List of orders."""

    items: list[OrderResponse]
    total: int


class PenaltyBreakdownResponse(BaseModel):
    """Itemized rental penalties."""

    order_id: str
    cancellation_fee: PriceSchema
    damage_fee: PriceSchema
    delay_fee: PriceSchema
    total: PriceSchema
    penalty_status: PenaltyStatus


# ============================================================================
# Admin Settings Schemas
# ============================================================================


class BusinessRulesResponse(BaseModel):
    """Current scheduling rules."""

    business_start: time
    business_end: time
    max_appointments_per_day: int
    auto_approve_enabled: bool


class BusinessRulesUpdateRequest(BaseModel):
    """Partial update of the scheduling rules."""

    business_start: time | None = None
    business_end: time | None = None
    max_appointments_per_day: int | None = Field(default=None, ge=1, le=20)
    auto_approve_enabled: bool | None = None


class AutoApprovalRequest(BaseModel):
    """Toggle auto-approval."""

    enabled: bool
