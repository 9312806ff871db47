"""Shared API dependencies.

Provides:
- Actor resolution from the X-Actor-Role / X-Customer-Id headers
- Mapping of service failures to HTTP errors
- Money conversion for responses
"""

from typing import Annotated, Any

from fastapi import Header, HTTPException, Request, status

from tailorshop.api.schemas import PriceSchema
from tailorshop.domain.exceptions import (
    AuthorizationError,
    ConflictError,
    DomainError,
    NotFoundError,
    StateError,
    ValidationError,
)
from tailorshop.domain.value_objects import Actor, ActorRole, CustomerId, Money


# ============================================================================
# Error Mapping
# ============================================================================


def _codes(base: type[DomainError]) -> set[str]:
    codes = {base.code}
    for sub in base.__subclasses__():
        codes |= _codes(sub)
    return codes


def _status_by_code() -> dict[str, int]:
    families = [
        (ValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
        (ConflictError, status.HTTP_409_CONFLICT),
        (StateError, status.HTTP_409_CONFLICT),
        (NotFoundError, status.HTTP_404_NOT_FOUND),
        (AuthorizationError, status.HTTP_403_FORBIDDEN),
    ]
    return {code: http_status for family, http_status in families for code in _codes(family)}


STATUS_BY_CODE = _status_by_code()


def http_status_for(error_code: str | None) -> int:
    return STATUS_BY_CODE.get(error_code or "", status.HTTP_400_BAD_REQUEST)


def raise_for_failure(result: Any) -> None:
    """Raise the HTTP error matching a failed service result.

    Raises:
        HTTPException: If ``result.success`` is false.
    """
    if result.success:
        return
    raise HTTPException(
        status_code=http_status_for(result.error_code),
        detail={
            "error_code": result.error_code or "ERROR",
            "message": result.error or "Request failed",
            "details": result.details or {},
        },
    )


def domain_error_to_http(error: DomainError) -> HTTPException:
    return HTTPException(
        status_code=http_status_for(error.code),
        detail={"error_code": error.code, "message": error.message, "details": error.details},
    )


def request_id_of(request: Request) -> str | None:
    return getattr(request.state, "request_id", None)


# ============================================================================
# Actor
# ============================================================================


def get_actor(
    x_actor_role: Annotated[str, Header(description="customer or admin")] = "customer",
    x_customer_id: Annotated[str | None, Header(description="Customer identity")] = None,
) -> Actor:
    """Resolve who is calling.

    Identity is asserted by the upstream gateway; only the customer and
    admin roles are accepted over HTTP.

    Raises:
        HTTPException: 422 for an unknown role or a customer without an id.
    """
    try:
        role = ActorRole(x_actor_role.lower())
        if role == ActorRole.SYSTEM:
            raise ValueError("system role is internal")
        customer_id = CustomerId(x_customer_id) if x_customer_id else None
        return Actor(role=role, customer_id=customer_id)
    except (ValueError, DomainError) as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={
                "error_code": "INVALID_ACTOR",
                "message": f"Invalid actor headers: {e}",
                "details": {"x_actor_role": x_actor_role},
            },
        ) from e


def require_admin(actor: Actor, action: str) -> None:
    """Raise 403 unless ``actor`` is an admin."""
    if actor.role != ActorRole.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "error_code": AuthorizationError.code,
                "message": f"{actor.role.value} may not {action}",
                "details": {"action": action},
            },
        )


# ============================================================================
# Converters
# ============================================================================


def price(money: Money | None) -> PriceSchema | None:
    if money is None:
        return None
    return PriceSchema(amount=money.amount_cents, currency=money.currency, display=str(money))
