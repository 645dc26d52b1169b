"""
Referral Ledger SQLModels

Referral codes and relationships, the per-user points balance, the
append-only points transaction log and the award audit log.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import CheckConstraint, Index
from sqlmodel import Field

from app.infrastructure.db.models.base import AppendOnlyModel, BaseModel, timestamp_field


class ReferralCode(BaseModel, table=True):
    """Unique shareable code for each user."""

    __tablename__ = "referral_codes"

    user_id: UUID = Field(..., unique=True, index=True, nullable=False)
    code: str = Field(..., max_length=32, unique=True, index=True)


class Referral(BaseModel, table=True):
    """
    Who referred whom.

    A user can be referred once. The row moves pending -> completed at most
    once and is immutable afterwards.
    """

    __tablename__ = "referrals"
    __table_args__ = (
        CheckConstraint("status IN ('pending', 'completed')", name="ck_referrals_status"),
    )

    referrer_id: UUID = Field(..., index=True, nullable=False)
    referred_id: UUID = Field(..., unique=True, index=True, nullable=False)
    referral_code: str = Field(..., max_length=32)
    status: str = Field(default="pending", max_length=20, index=True)
    points_awarded: int = Field(default=0)
    subscription_tier_id: Optional[UUID] = Field(default=None, foreign_key="subscription_tiers.id")
    completed_at: Optional[datetime] = timestamp_field()


class UserReferralPoints(BaseModel, table=True):
    """Running points balance. Only changed through additive updates."""

    __tablename__ = "user_referral_points"
    __table_args__ = (
        CheckConstraint("points_balance >= 0", name="ck_user_referral_points_balance"),
    )

    user_id: UUID = Field(..., unique=True, index=True, nullable=False)
    points_balance: int = Field(default=0)
    total_earned: int = Field(default=0)
    total_spent: int = Field(default=0)
    total_referrals: int = Field(default=0)
    successful_referrals: int = Field(default=0)


class ReferralTransaction(AppendOnlyModel, table=True):
    """
    Points ledger entry.

    points is signed: positive for earned, negative for redeemed.
    balance_after is the balance right after this entry was applied.
    """

    __tablename__ = "referral_transactions"
    __table_args__ = (
        Index("ix_referral_transactions_user_created", "user_id", "created_at"),
    )

    user_id: UUID = Field(..., nullable=False)
    transaction_type: str = Field(..., max_length=20)
    points: int = Field(...)
    balance_after: int = Field(...)
    referral_id: Optional[UUID] = Field(default=None, foreign_key="referrals.id")
    subscription_id: Optional[UUID] = Field(default=None, foreign_key="user_subscriptions.id")
    description: Optional[str] = Field(default=None)


class ReferralPointsLog(AppendOnlyModel, table=True):
    """Audit record of one award attempt, whatever its outcome."""

    __tablename__ = "referral_points_log"

    # No foreign keys: attempts for missing subscriptions are logged too
    subscription_id: UUID = Field(..., index=True, nullable=False)
    user_id: Optional[UUID] = Field(default=None)
    referrer_id: Optional[UUID] = Field(default=None)
    tier_name: Optional[str] = Field(default=None, max_length=50)
    referral_points_awarded: Optional[int] = Field(default=None)
    outcome: str = Field(..., max_length=20, index=True)
    reason: str = Field(..., max_length=50)
    detail: Optional[str] = Field(default=None)
