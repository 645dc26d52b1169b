"""
SQLModel ORM Models for Study Subscriptions

Exports all database models for Alembic autogenerate and application use.
Import models here to register them with SQLModel.metadata.
"""

from app.infrastructure.db.models.base import (
    AppendOnlyModel,
    BaseModel,
    TimestampMixin,
    UUIDMixin,
)
from app.infrastructure.db.models.ai_model import AIModel, UserAIPreference
from app.infrastructure.db.models.tier import GradeLevel, Subject, SubscriptionTier
from app.infrastructure.db.models.subscription import UserSubscription
from app.infrastructure.db.models.payment import PaymentMethod, PaymentTransaction
from app.infrastructure.db.models.referral import (
    Referral,
    ReferralCode,
    ReferralPointsLog,
    ReferralTransaction,
    UserReferralPoints,
)


__all__ = [
    # Base
    "AppendOnlyModel",
    "BaseModel",
    "TimestampMixin",
    "UUIDMixin",
    # Catalog
    "AIModel",
    "UserAIPreference",
    "SubscriptionTier",
    "GradeLevel",
    "Subject",
    # Subscription ledger
    "UserSubscription",
    "PaymentMethod",
    "PaymentTransaction",
    # Referral ledger
    "Referral",
    "ReferralCode",
    "ReferralPointsLog",
    "ReferralTransaction",
    "UserReferralPoints",
]
