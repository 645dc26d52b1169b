"""
Subscription Domain Models

Domain models for subscription management following Clean Architecture.
Enums, DTOs, and the pure arithmetic of the subscription lifecycle
(token carryover, billing period boundaries, effective limits).
"""

import calendar
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field


class SubscriptionStatus(str, Enum):
    """Subscription lifecycle status."""
    ACTIVE = "active"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


class BillingCycle(str, Enum):
    """Billing cycle for subscriptions."""
    DAILY = "daily"
    MONTHLY = "monthly"
    YEARLY = "yearly"
    LIFETIME = "lifetime"


class PaymentStatus(str, Enum):
    """Payment transaction status."""
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class ActivationOutcome(str, Enum):
    """Why a payment did or did not activate a subscription."""
    ACTIVATED = "activated"
    ALREADY_COMPLETED = "already_completed"
    NOT_COMPLETED = "not_completed"
    TIER_NOT_FOUND = "tier_not_found"


# =============================================================================
# Request/Response DTOs
# =============================================================================

class PaymentStatusUpdateRequest(BaseModel):
    """Request DTO for a payment status change reported by the gateway."""
    status: PaymentStatus = Field(..., description="New payment status")


class ActivationResult(BaseModel):
    """Outcome of handling a payment status change."""
    activated: bool
    outcome: ActivationOutcome
    transaction_id: str
    subscription_id: Optional[str] = None
    token_limit_override: Optional[int] = None
    message: str = ""


class EntitlementSnapshot(BaseModel):
    """Current entitlement of a user, consumed by access control."""
    user_id: str
    tier: Optional[str] = None
    tier_display_name: Optional[str] = None
    status: Optional[SubscriptionStatus] = None
    billing_cycle: Optional[BillingCycle] = None
    token_limit_effective: Optional[int] = Field(
        default=0,
        description="Token budget for this period. None means unlimited."
    )
    tokens_used: int = 0
    tokens_remaining: Optional[int] = 0
    papers_limit: Optional[int] = None
    papers_accessed: int = 0
    selected_grade: Optional[str] = None
    selected_subjects: list[str] = Field(default_factory=list)
    period_start_date: Optional[datetime] = None
    period_end_date: Optional[datetime] = None
    is_recurring: bool = False


class SelectionUpdateRequest(BaseModel):
    """Request DTO for changing grade/subject selections."""
    grade_id: str = Field(..., description="Grade level ID")
    subject_ids: list[str] = Field(default_factory=list, description="Subject IDs")


class SelectionUpdateResult(BaseModel):
    """Structured result of a selection update. Never raised, always returned."""
    success: bool
    message: str


class TokenUsageRequest(BaseModel):
    """Request DTO for metering AI token usage."""
    tokens: int = Field(..., gt=0, description="Tokens consumed by one interaction")


# =============================================================================
# Lifecycle Arithmetic (Business Logic)
# =============================================================================

def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


def add_months(moment: datetime, months: int) -> datetime:
    """Add calendar months, clamping the day to the target month's length."""
    month_index = moment.month - 1 + months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def compute_period_end(
    billing_cycle: BillingCycle,
    start: datetime,
) -> Optional[datetime]:
    """End of the first billing period. Lifetime purchases never end."""
    if billing_cycle == BillingCycle.DAILY:
        return start + timedelta(days=1)
    if billing_cycle == BillingCycle.MONTHLY:
        return add_months(start, 1)
    if billing_cycle == BillingCycle.YEARLY:
        return add_months(start, 12)
    return None


def effective_token_limit(
    token_limit_override: Optional[int],
    tier_token_limit: Optional[int],
) -> Optional[int]:
    """Override wins over the tier limit. None means unlimited."""
    if token_limit_override is not None:
        return token_limit_override
    return tier_token_limit


def compute_token_carryover(
    old_limit: Optional[int],
    old_used: Optional[int],
    new_limit: Optional[int],
) -> Optional[int]:
    """
    Token limit override for a tier change.

    Unused budget of the previous subscription is added on top of the new
    tier's limit. Returns None when nothing carries over, when there was no
    previous subscription (old_limit is None) or when either side is
    unlimited.

    >>> compute_token_carryover(1000, 400, 2000)
    2600
    >>> compute_token_carryover(1000, 1000, 2000) is None
    True
    """
    if old_limit is None or new_limit is None:
        return None

    old_remaining = max(0, old_limit - (old_used or 0))
    if old_remaining > 0:
        return new_limit + old_remaining
    return None


def should_reset_period(
    billing_cycle: BillingCycle,
    is_recurring: bool,
) -> bool:
    """Whether an elapsed period is renewed. Lifetime periods never elapse."""
    if billing_cycle == BillingCycle.LIFETIME:
        return False
    return is_recurring
