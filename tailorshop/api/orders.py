"""Order API endpoints.

Provides endpoints for the rental and purchase order lifecycle:
- POST /orders - place an order
- GET /orders - list orders
- GET /orders/{id} - order details and status history
- DELETE /orders/{id} - delete a pending or declined order
- POST /orders/{id}/respond - admin accept/decline
- POST /orders/{id}/quotation - admin quotation
- POST /orders/{id}/quotation/respond - customer accept/reject
- POST /orders/{id}/counter-offer - customer counter-offer
- POST /orders/{id}/counter-offer/respond - admin accept/reject
- POST /orders/{id}/fulfillment - ready for pickup, picked up, returned
- POST /orders/{id}/cancel - cancel an order
- POST /orders/{id}/agreement - accept the rental agreement
- POST /orders/{id}/penalties/calculate - assess rental penalties
- POST /orders/{id}/penalties/paid - settle rental penalties
- GET /orders/{id}/penalties - penalty breakdown
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request, status

from tailorshop.api.dependencies import (
    get_actor,
    price,
    raise_for_failure,
    request_id_of,
)
from tailorshop.api.schemas import (
    AdminDecision,
    AdminRespondRequest,
    CounterOfferRequest,
    Decision,
    DecisionRequest,
    ErrorResponse,
    FulfillmentRequest,
    ItemSchema,
    OrderCreateRequest,
    OrderResponse,
    OrdersListResponse,
    PenaltyBreakdownResponse,
    PenaltyCalculationRequest,
    QuotationRequest,
    RentalTermsSchema,
    StatusHistorySchema,
)
from tailorshop.application.order_service import (
    OrderResult,
    OrderService,
    get_order_service,
)
from tailorshop.domain.entities import Order, Rental
from tailorshop.domain.state_machines import OrderKind, OrderStatus
from tailorshop.domain.value_objects import Actor

router = APIRouter(prefix="/orders", tags=["Orders"])

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


def get_service(request: Request) -> OrderService:
    """Get order service with request ID."""
    return get_order_service(request_id=request_id_of(request))


# ============================================================================
# Converters
# ============================================================================


def rental_terms(order: Rental) -> RentalTermsSchema:
    return RentalTermsSchema(
        cancellation_fee=price(order.cancellation_fee),
        daily_delay_fee=price(order.daily_delay_fee),
        damage_fee_min=price(order.damage_fee_min),
        damage_fee_max=price(order.damage_fee_max),
        damage_level=order.damage_level,
        total_penalties=price(order.total_penalties),
        penalty_status=order.penalty_status,
        penalty_notes=order.penalty_notes,
        penalty_calculated_at=order.penalty_calculated_at,
        penalty_paid_at=order.penalty_paid_at,
        agreement_accepted=order.agreement_accepted,
        agreement_accepted_at=order.agreement_accepted_at,
    )


def order_to_response(order: Order) -> OrderResponse:
    """Convert an Order to OrderResponse."""
    item = ItemSchema(
        name=order.item.name,
        clothing_type=order.item.clothing_type,
        measurements=order.item.measurements_dict(),
        notes=order.item.notes,
    )
    status_history = [
        StatusHistorySchema(
            from_status=entry.from_status,
            to_status=entry.to_status,
            transition=entry.transition,
            actor=entry.actor,
            at=entry.at,
        )
        for entry in order.status_history
    ]

    return OrderResponse(
        id=str(order.id),
        kind=order.kind,
        customer_id=str(order.customer_id),
        status=order.status,
        item=item,
        quotation_amount=price(order.quotation_amount),
        quotation_notes=order.quotation_notes,
        quotation_sent_at=order.quotation_sent_at,
        quotation_responded_at=order.quotation_responded_at,
        counter_offer_amount=price(order.counter_offer_amount),
        counter_offer_notes=order.counter_offer_notes,
        counter_offer_sent_at=order.counter_offer_sent_at,
        counter_offer_status=order.counter_offer_status,
        cancelled_by=order.cancelled_by,
        rental=rental_terms(order) if isinstance(order, Rental) else None,
        status_history=status_history,
        version=order.version,
        created_at=order.created_at,
        updated_at=order.updated_at,
    )


def _respond(result: OrderResult) -> OrderResponse:
    raise_for_failure(result)
    return order_to_response(result.order)


# ============================================================================
# Creation and Queries
# ============================================================================


@router.post(
    "",
    response_model=OrderResponse,
    status_code=status.HTTP_201_CREATED,
    responses=ERRORS,
    summary="Place an order",
    description="Place a rental or purchase order. Rentals take their fees "
    "from the current shop settings.",
)
async def create_order(
    body: OrderCreateRequest,
    actor: Annotated[Actor, Depends(get_actor)],
    service: Annotated[OrderService, Depends(get_service)],
) -> OrderResponse:
    result = await service.create_order(
        actor,
        kind=body.kind,
        item_name=body.item_name,
        clothing_type=body.clothing_type,
        measurements=body.measurements,
        notes=body.notes,
    )
    return _respond(result)


@router.get(
    "",
    response_model=OrdersListResponse,
    responses=ERRORS,
    summary="List orders",
    description="Newest first. Customers only see their own orders.",
)
async def list_orders(
    actor: Annotated[Actor, Depends(get_actor)],
    service: Annotated[OrderService, Depends(get_service)],
    customer_id: str | None = Query(default=None, description="Filter by customer (admin)"),
    kind: OrderKind | None = Query(default=None, description="rental or purchase"),
    status_filter: OrderStatus | None = Query(
        default=None, alias="status", description="Filter by status"
    ),
) -> OrdersListResponse:
    result = await service.list_orders(
        actor, customer_id=customer_id, kind=kind, status=status_filter
    )
    raise_for_failure(result)
    return OrdersListResponse(
        items=[order_to_response(o) for o in result.orders],
        total=result.total,
    )


@router.get(
    "/{order_id}",
    response_model=OrderResponse,
    responses=ERRORS,
    summary="Get order details",
)
async def get_order(
    order_id: str,
    actor: Annotated[Actor, Depends(get_actor)],
    service: Annotated[OrderService, Depends(get_service)],
) -> OrderResponse:
    return _respond(await service.get_order(order_id, actor))


@router.delete(
    "/{order_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses=ERRORS,
    summary="Delete order",
    description="Customers may delete their own orders while pending or declined.",
)
async def delete_order(
    order_id: str,
    actor: Annotated[Actor, Depends(get_actor)],
    service: Annotated[OrderService, Depends(get_service)],
) -> None:
    raise_for_failure(await service.delete_order(order_id, actor))


# ============================================================================
# Negotiation
# ============================================================================


@router.post(
    "/{order_id}/respond",
    response_model=OrderResponse,
    responses=ERRORS,
    summary="Accept or decline a new order (admin)",
)
async def admin_respond(
    order_id: str,
    body: AdminRespondRequest,
    actor: Annotated[Actor, Depends(get_actor)],
    service: Annotated[OrderService, Depends(get_service)],
) -> OrderResponse:
    accept = body.action == AdminDecision.ACCEPT
    return _respond(await service.admin_respond(order_id, actor, accept=accept))


@router.post(
    "/{order_id}/quotation",
    response_model=OrderResponse,
    responses=ERRORS,
    summary="Send a quotation (admin)",
)
async def set_quotation(
    order_id: str,
    body: QuotationRequest,
    actor: Annotated[Actor, Depends(get_actor)],
    service: Annotated[OrderService, Depends(get_service)],
) -> OrderResponse:
    return _respond(
        await service.set_quotation(order_id, actor, amount=body.amount, notes=body.notes)
    )


@router.post(
    "/{order_id}/quotation/respond",
    response_model=OrderResponse,
    responses=ERRORS,
    summary="Accept or reject the quotation (customer)",
    description="Accepting moves a rental to ready_for_pickup and a purchase to in_progress.",
)
async def respond_to_quotation(
    order_id: str,
    body: DecisionRequest,
    actor: Annotated[Actor, Depends(get_actor)],
    service: Annotated[OrderService, Depends(get_service)],
) -> OrderResponse:
    accept = body.action == Decision.ACCEPT
    return _respond(await service.respond_to_quotation(order_id, actor, accept=accept))


@router.post(
    "/{order_id}/counter-offer",
    response_model=OrderResponse,
    responses=ERRORS,
    summary="Submit a counter-offer (customer)",
)
async def submit_counter_offer(
    order_id: str,
    body: CounterOfferRequest,
    actor: Annotated[Actor, Depends(get_actor)],
    service: Annotated[OrderService, Depends(get_service)],
) -> OrderResponse:
    return _respond(
        await service.submit_counter_offer(order_id, actor, amount=body.amount, notes=body.notes)
    )


@router.post(
    "/{order_id}/counter-offer/respond",
    response_model=OrderResponse,
    responses=ERRORS,
    summary="Accept or reject the counter-offer (admin)",
)
async def respond_to_counter_offer(
    order_id: str,
    body: DecisionRequest,
    actor: Annotated[Actor, Depends(get_actor)],
    service: Annotated[OrderService, Depends(get_service)],
) -> OrderResponse:
    accept = body.action == Decision.ACCEPT
    return _respond(await service.respond_to_counter_offer(order_id, actor, accept=accept))


# ============================================================================
# Fulfilment and Cancellation
# ============================================================================


@router.post(
    "/{order_id}/fulfillment",
    response_model=OrderResponse,
    responses=ERRORS,
    summary="Advance fulfilment (admin)",
)
async def advance_fulfillment(
    order_id: str,
    body: FulfillmentRequest,
    actor: Annotated[Actor, Depends(get_actor)],
    service: Annotated[OrderService, Depends(get_service)],
) -> OrderResponse:
    return _respond(await service.advance_fulfillment(order_id, actor, body.status))


@router.post(
    "/{order_id}/cancel",
    response_model=OrderResponse,
    responses=ERRORS,
    summary="Cancel order",
    description="Cancelling a rental charges its cancellation fee.",
)
async def cancel_order(
    order_id: str,
    actor: Annotated[Actor, Depends(get_actor)],
    service: Annotated[OrderService, Depends(get_service)],
) -> OrderResponse:
    return _respond(await service.cancel_order(order_id, actor))


@router.post(
    "/{order_id}/agreement",
    response_model=OrderResponse,
    responses=ERRORS,
    summary="Accept the rental agreement (customer)",
)
async def accept_agreement(
    order_id: str,
    actor: Annotated[Actor, Depends(get_actor)],
    service: Annotated[OrderService, Depends(get_service)],
) -> OrderResponse:
    return _respond(await service.accept_agreement(order_id, actor))


# ============================================================================
# Rental Penalties
# ============================================================================


@router.post(
    "/{order_id}/penalties/calculate",
    response_model=OrderResponse,
    responses=ERRORS,
    summary="Assess rental penalties (admin)",
)
async def calculate_penalties(
    order_id: str,
    body: PenaltyCalculationRequest,
    actor: Annotated[Actor, Depends(get_actor)],
    service: Annotated[OrderService, Depends(get_service)],
) -> OrderResponse:
    result = await service.calculate_penalties(
        order_id,
        actor,
        damage_level=body.damage_level,
        delay_days=body.delay_days,
        notes=body.notes,
    )
    return _respond(result)


@router.post(
    "/{order_id}/penalties/paid",
    response_model=OrderResponse,
    responses=ERRORS,
    summary="Mark rental penalties as paid (admin)",
)
async def mark_penalties_paid(
    order_id: str,
    actor: Annotated[Actor, Depends(get_actor)],
    service: Annotated[OrderService, Depends(get_service)],
) -> OrderResponse:
    return _respond(await service.mark_penalties_paid(order_id, actor))


@router.get(
    "/{order_id}/penalties",
    response_model=PenaltyBreakdownResponse,
    responses=ERRORS,
    summary="Rental penalty breakdown",
)
async def get_penalty_breakdown(
    order_id: str,
    actor: Annotated[Actor, Depends(get_actor)],
    service: Annotated[OrderService, Depends(get_service)],
) -> PenaltyBreakdownResponse:
    result = await service.get_penalty_breakdown(order_id, actor)
    raise_for_failure(result)
    breakdown = result.breakdown
    return PenaltyBreakdownResponse(
        order_id=order_id,
        cancellation_fee=price(breakdown.cancellation_fee),
        damage_fee=price(breakdown.damage_fee),
        delay_fee=price(breakdown.delay_fee),
        total=price(breakdown.total),
        penalty_status=breakdown.penalty_status,
    )
