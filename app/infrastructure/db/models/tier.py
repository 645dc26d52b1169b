"""
Tier Catalog SQLModels

Reference data edited only by administrators: subscription tiers and the
grade levels and subjects a tier may let users select.
"""

from typing import Optional
from uuid import UUID

from sqlmodel import Field

from app.infrastructure.db.models.base import BaseModel


class SubscriptionTier(BaseModel, table=True):
    """
    Subscription tier definition.

    token_limit, papers_limit and max_subjects use NULL for unlimited.
    """

    __tablename__ = "subscription_tiers"

    name: str = Field(..., max_length=50, unique=True, index=True)
    display_name: str = Field(..., max_length=100)
    description: Optional[str] = Field(default=None)

    price_monthly: float = Field(default=0)
    price_yearly: float = Field(default=0)

    # Entitlements
    token_limit: Optional[int] = Field(default=None, description="NULL means unlimited")
    papers_limit: Optional[int] = Field(default=None, description="NULL means unlimited")
    max_subjects: Optional[int] = Field(default=None)
    can_select_grade: bool = Field(default=False)
    can_select_subjects: bool = Field(default=False)

    # Referral economics
    referral_points_awarded: int = Field(
        default=0,
        description="Points awarded to the referrer when a referred user buys this tier"
    )
    points_cost: int = Field(
        default=0,
        description="Points required to buy this tier by redemption (0 = not redeemable)"
    )
    duration_months: int = Field(default=1, description="Length of a points-redeemed period")

    ai_model_id: Optional[UUID] = Field(
        default=None,
        foreign_key="ai_models.id",
        description="Model assigned to subscribers of this tier"
    )

    is_active: bool = Field(default=True)
    display_order: int = Field(default=0)


class GradeLevel(BaseModel, table=True):
    """Grade level a subscriber can select."""

    __tablename__ = "grade_levels"

    name: str = Field(..., max_length=100, unique=True)
    display_order: int = Field(default=0)


class Subject(BaseModel, table=True):
    """Subject a subscriber can select."""

    __tablename__ = "subjects"

    name: str = Field(..., max_length=100)
    code: Optional[str] = Field(default=None, max_length=20)
    is_active: bool = Field(default=True)
