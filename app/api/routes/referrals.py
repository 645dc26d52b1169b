"""
Referral API Routes

Referral codes, the points dashboard and points redemption.
"""

import logging
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from app.api.dependencies import ReferralServiceDep, get_current_user_id
from app.domain.referral import (
    ApplyReferralCodeRequest,
    ApplyReferralCodeResponse,
    RedeemPointsRequest,
    RedeemPointsResponse,
    ReferralSummary,
    ReferralTransactionRead,
)


logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/referrals/summary", response_model=ReferralSummary)
async def get_summary(
    service: ReferralServiceDep,
    user_id: UUID = Depends(get_current_user_id),
):
    """Points balance, code and referral counts. Zeros for new users."""
    return await service.get_summary(user_id)


@router.post("/referrals/code")
async def get_or_create_code(
    service: ReferralServiceDep,
    user_id: UUID = Depends(get_current_user_id),
):
    """Get the caller's shareable code, creating it on first use."""
    return {"code": await service.get_or_create_code(user_id)}


@router.get("/referrals/transactions", response_model=List[ReferralTransactionRead])
async def list_transactions(
    service: ReferralServiceDep,
    user_id: UUID = Depends(get_current_user_id),
    limit: int = Query(50, ge=1, le=200),
):
    """Points ledger, newest first."""
    return await service.list_transactions(user_id, limit=limit)


@router.post("/referrals/apply", response_model=ApplyReferralCodeResponse)
async def apply_code(
    request: ApplyReferralCodeRequest,
    service: ReferralServiceDep,
    user_id: UUID = Depends(get_current_user_id),
):
    """Attach a referrer to the caller's account."""
    applied = await service.apply_referral_code(user_id, request.code)
    return ApplyReferralCodeResponse(applied=applied)


@router.post("/referrals/redeem", response_model=RedeemPointsResponse)
async def redeem_points(
    request: RedeemPointsRequest,
    service: ReferralServiceDep,
    user_id: UUID = Depends(get_current_user_id),
):
    """Spend points on a tier."""
    return await service.redeem_points(
        user_id,
        request.tier_id,
        grade_id=request.grade_id,
        subject_ids=request.subject_ids,
    )
