"""
Subscription API Routes

Entitlement, selections, cancellation and usage metering for the
signed-in user.
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status

from app.api.dependencies import (
    ActivationServiceDep,
    SelectionServiceDep,
    get_current_user_id,
)
from app.domain.subscription import (
    EntitlementSnapshot,
    SelectionUpdateRequest,
    SelectionUpdateResult,
    TokenUsageRequest,
)


logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/subscriptions/entitlement", response_model=EntitlementSnapshot)
async def get_entitlement(
    service: ActivationServiceDep,
    user_id: UUID = Depends(get_current_user_id),
):
    """
    Get the current user's entitlement.

    Users without a subscription get an empty snapshot rather than 404.
    """
    return await service.get_entitlement(user_id)


@router.post("/subscriptions/free", response_model=EntitlementSnapshot)
async def enrol_free_tier(
    service: ActivationServiceDep,
    user_id: UUID = Depends(get_current_user_id),
):
    """Put the user on the free tier unless they already have a subscription."""
    await service.ensure_subscription(user_id)
    return await service.get_entitlement(user_id)


@router.put("/subscriptions/selections", response_model=SelectionUpdateResult)
async def update_selections(
    request: SelectionUpdateRequest,
    service: SelectionServiceDep,
    user_id: UUID = Depends(get_current_user_id),
):
    """
    Change grade and subject selections.

    Validation failures are returned with success=false, not as errors.
    """
    return await service.update_selections(user_id, request.grade_id, request.subject_ids)


@router.post("/subscriptions/cancel")
async def cancel_subscription(
    service: ActivationServiceDep,
    user_id: UUID = Depends(get_current_user_id),
):
    """Stop renewal; access continues until the current period ends."""
    if not await service.cancel_subscription(user_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No renewing subscription to cancel",
        )
    return {"cancelled": True}


@router.post("/subscriptions/usage", response_model=EntitlementSnapshot)
async def record_usage(
    request: TokenUsageRequest,
    service: ActivationServiceDep,
    user_id: UUID = Depends(get_current_user_id),
):
    """Meter tokens consumed by an AI interaction."""
    return await service.record_token_usage(user_id, request.tokens)
