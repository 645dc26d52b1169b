"""
Subscription Database Model

SQLModel table for the subscription ledger. One row per user, enforced
by the unique constraint on user_id.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlmodel import Field

from app.infrastructure.db.models.base import BaseModel, json_list_column, timestamp_field


class UserSubscription(BaseModel, table=True):
    """
    Subscription table for storing user subscription state.

    Created on first payment (or free-tier enrolment) and mutated in place
    on every later tier change. Cancellation and expiry are soft.
    """

    __tablename__ = "user_subscriptions"

    user_id: UUID = Field(..., unique=True, index=True, nullable=False)
    tier_id: UUID = Field(..., foreign_key="subscription_tiers.id", nullable=False, index=True)

    # Subscription details
    status: str = Field(default="active", max_length=20)
    billing_cycle: str = Field(default="monthly", max_length=20)
    is_recurring: bool = Field(default=True)
    payment_provider: Optional[str] = Field(default=None, max_length=50)

    # Billing period dates
    period_start_date: Optional[datetime] = timestamp_field()
    period_end_date: Optional[datetime] = timestamp_field(description="NULL for lifetime")

    # Usage tracking
    token_limit_override: Optional[int] = Field(
        default=None,
        description="Carried-over budget; replaces the tier limit for this period"
    )
    tokens_used_current_period: int = Field(default=0)
    papers_accessed_current_period: int = Field(default=0)
    accessed_paper_ids: list = Field(default_factory=list, sa_column=json_list_column())

    # Entitlement selections
    selected_grade_id: Optional[UUID] = Field(default=None, foreign_key="grade_levels.id")
    selected_subject_ids: list = Field(default_factory=list, sa_column=json_list_column())
