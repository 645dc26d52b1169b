"""
Repository Layer for Study Subscriptions

Exports all repository classes for dependency injection.
"""

from app.infrastructure.db.repositories.base_repository import BaseRepository, as_uuid
from app.infrastructure.db.repositories.tier_repository import (
    CatalogRepository,
    TierRepository,
)
from app.infrastructure.db.repositories.subscription_repository import (
    SubscriptionRepository,
)
from app.infrastructure.db.repositories.payment_repository import PaymentRepository
from app.infrastructure.db.repositories.referral_repository import ReferralRepository
from app.infrastructure.db.repositories.ai_model_repository import AIModelRepository


__all__ = [
    # Base
    "BaseRepository",
    "as_uuid",
    # Repositories
    "CatalogRepository",
    "TierRepository",
    "SubscriptionRepository",
    "PaymentRepository",
    "ReferralRepository",
    "AIModelRepository",
]
