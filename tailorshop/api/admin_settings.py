"""Admin settings endpoints.

Scheduling rules are seeded from configuration and adjustable at runtime:
- GET /admin/settings - current rules
- PUT /admin/settings - partial update
- POST /admin/settings/auto-approval - toggle auto-approval
"""

from typing import Annotated

import structlog
from fastapi import APIRouter, Depends

from tailorshop.api.dependencies import domain_error_to_http, get_actor, require_admin
from tailorshop.api.schemas import (
    AutoApprovalRequest,
    BusinessRulesResponse,
    BusinessRulesUpdateRequest,
    ErrorResponse,
)
from tailorshop.domain.exceptions import DomainError
from tailorshop.domain.value_objects import Actor, BusinessRules
from tailorshop.infrastructure.config import SettingsConfigProvider, get_config_provider

logger = structlog.get_logger()

router = APIRouter(prefix="/admin/settings", tags=["Admin"])

ERRORS = {
    401: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    422: {"model": ErrorResponse},
}


def rules_to_response(rules: BusinessRules) -> BusinessRulesResponse:
    return BusinessRulesResponse(
        business_start=rules.business_start,
        business_end=rules.business_end,
        max_appointments_per_day=rules.max_appointments_per_day,
        auto_approve_enabled=rules.auto_approve_enabled,
    )


@router.get(
    "",
    response_model=BusinessRulesResponse,
    responses=ERRORS,
    summary="Get scheduling rules",
)
async def get_settings(
    actor: Annotated[Actor, Depends(get_actor)],
    config: Annotated[SettingsConfigProvider, Depends(get_config_provider)],
) -> BusinessRulesResponse:
    require_admin(actor, "view settings")
    return rules_to_response(config.get_business_rules())


@router.put(
    "",
    response_model=BusinessRulesResponse,
    responses=ERRORS,
    summary="Update scheduling rules",
    description="Only the fields sent are changed. New rules apply to the next evaluation.",
)
async def update_settings(
    body: BusinessRulesUpdateRequest,
    actor: Annotated[Actor, Depends(get_actor)],
    config: Annotated[SettingsConfigProvider, Depends(get_config_provider)],
) -> BusinessRulesResponse:
    require_admin(actor, "update settings")
    try:
        rules = config.update_business_rules(
            business_start=body.business_start,
            business_end=body.business_end,
            max_appointments_per_day=body.max_appointments_per_day,
            auto_approve_enabled=body.auto_approve_enabled,
        )
    except DomainError as e:
        raise domain_error_to_http(e) from e

    logger.info(
        "Business rules updated",
        max_appointments_per_day=rules.max_appointments_per_day,
        auto_approve_enabled=rules.auto_approve_enabled,
        business_start=rules.business_start.isoformat(),
        business_end=rules.business_end.isoformat(),
    )
    return rules_to_response(rules)


@router.post(
    "/auto-approval",
    response_model=BusinessRulesResponse,
    responses=ERRORS,
    summary="Toggle auto-approval",
)
async def set_auto_approval(
    body: AutoApprovalRequest,
    actor: Annotated[Actor, Depends(get_actor)],
    config: Annotated[SettingsConfigProvider, Depends(get_config_provider)],
) -> BusinessRulesResponse:
    require_admin(actor, "toggle auto-approval")
    rules = config.set_auto_approve(body.enabled)
    logger.info("Auto-approval toggled", enabled=rules.auto_approve_enabled)
    return rules_to_response(rules)
