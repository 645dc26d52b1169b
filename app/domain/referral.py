"""
Referral Domain Models

Enums and DTOs for the referral points ledger and its audit trail.
Outcomes and reasons are closed enumerations so the audit log stays
machine-checkable.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID
from pydantic import BaseModel, Field


class ReferralStatus(str, Enum):
    """Referral relationship status."""
    PENDING = "pending"
    COMPLETED = "completed"


class PointsTransactionType(str, Enum):
    """Direction of a points ledger entry."""
    EARNED = "earned"
    REDEEMED = "redeemed"


class AwardOutcome(str, Enum):
    """Result of one award attempt."""
    SUCCESS = "success"
    SKIPPED = "skipped"
    ERROR = "error"


class AwardReason(str, Enum):
    """Structured reason recorded with every award attempt."""
    AWARDED = "awarded"
    SUBSCRIPTION_NOT_FOUND = "subscription_not_found"
    FREE_TIER = "free_tier"
    NO_PENDING_REFERRAL = "no_pending_referral"
    NO_POINTS_CONFIGURED = "no_points_configured"
    UNEXPECTED_ERROR = "unexpected_error"


AWARD_REASON_MESSAGES = {
    AwardReason.AWARDED: "Awarded points to referrer",
    AwardReason.SUBSCRIPTION_NOT_FOUND: "Subscription not found",
    AwardReason.FREE_TIER: "Free tier - no points awarded",
    AwardReason.NO_PENDING_REFERRAL: (
        "No pending referral - user was not referred, or points were already awarded"
    ),
    AwardReason.NO_POINTS_CONFIGURED: "No points configured for this tier",
    AwardReason.UNEXPECTED_ERROR: "Award failed",
}


class AwardDecision(BaseModel):
    """What the award engine decided for one activation event."""
    subscription_id: str
    outcome: AwardOutcome
    reason: AwardReason
    points: int = 0
    referrer_id: Optional[str] = None
    referral_id: Optional[str] = None
    balance_after: Optional[int] = None


# =============================================================================
# Request/Response DTOs
# =============================================================================

class ApplyReferralCodeRequest(BaseModel):
    """Request DTO for attaching a referral code to the caller's account."""
    code: str = Field(..., min_length=4, max_length=32)


class ApplyReferralCodeResponse(BaseModel):
    """Response DTO for a referral code application."""
    applied: bool


class RedeemPointsRequest(BaseModel):
    """Request DTO for buying a tier with referral points."""
    tier_id: UUID
    grade_id: Optional[UUID] = None
    subject_ids: Optional[list[UUID]] = None


class RedeemPointsResponse(BaseModel):
    """Response DTO for a successful redemption."""
    subscription_id: str
    points_spent: int
    balance_after: int


class ReferralSummary(BaseModel):
    """Points balance and referral statistics for the dashboard."""
    user_id: str
    referral_code: Optional[str] = None
    points_balance: int = 0
    total_earned: int = 0
    total_spent: int = 0
    total_referrals: int = 0
    successful_referrals: int = 0


class ReferralTransactionRead(BaseModel):
    """One ledger entry as shown to the user."""
    id: str
    transaction_type: PointsTransactionType
    points: int
    balance_after: int
    description: Optional[str] = None
    created_at: datetime
