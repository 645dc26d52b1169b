"""
Subscription Repository

Data access layer for the subscription ledger. One row per user; usage
counters are only ever changed with additive SQL updates.
"""

import logging
from datetime import datetime
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.subscription import SubscriptionStatus
from app.infrastructure.db.models.subscription import UserSubscription
from app.infrastructure.db.models.tier import SubscriptionTier
from app.infrastructure.db.repositories.base_repository import BaseRepository, as_uuid


logger = logging.getLogger(__name__)


class SubscriptionRepository(BaseRepository[UserSubscription]):
    """
    Repository for subscription data access.

    Callers that are about to change a user's subscription read it with
    for_update=True so concurrent activations for the same user serialize
    on the row lock.
    """

    def __init__(self, session: AsyncSession):
        super().__init__(UserSubscription, session)

    # =========================================================================
    # Query Methods
    # =========================================================================

    async def get_by_user_id(
        self,
        user_id: UUID,
        for_update: bool = False,
    ) -> Optional[UserSubscription]:
        """
        Get a user's subscription row, whatever its status.

        Args:
            user_id: Internal user ID
            for_update: Lock the row until the transaction ends

        Returns:
            UserSubscription or None
        """
        stmt = (
            select(UserSubscription)
            .where(UserSubscription.user_id == as_uuid(user_id))
            .execution_options(populate_existing=True)
        )
        if for_update:
            stmt = stmt.with_for_update()
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_active_with_tier(
        self,
        user_id: UUID,
    ) -> Optional[Tuple[UserSubscription, SubscriptionTier]]:
        """Get the user's active subscription joined to its tier."""
        stmt = (
            select(UserSubscription, SubscriptionTier)
            .join(SubscriptionTier, UserSubscription.tier_id == SubscriptionTier.id)
            .where(
                UserSubscription.user_id == as_uuid(user_id),
                UserSubscription.status == SubscriptionStatus.ACTIVE.value,
            )
        )
        # Counters may have moved through additive updates since the row was loaded
        stmt = stmt.execution_options(populate_existing=True)
        result = await self._session.execute(stmt)
        row = result.first()
        if row is None:
            return None
        return row[0], row[1]

    async def get_with_tier(
        self,
        subscription_id: UUID,
    ) -> Optional[Tuple[UserSubscription, SubscriptionTier]]:
        """Resolve a subscription and its tier by subscription ID."""
        stmt = (
            select(UserSubscription, SubscriptionTier)
            .join(SubscriptionTier, UserSubscription.tier_id == SubscriptionTier.id)
            .where(UserSubscription.id == as_uuid(subscription_id))
        )
        result = await self._session.execute(stmt)
        row = result.first()
        if row is None:
            return None
        return row[0], row[1]

    async def list_elapsed_active(self, now: datetime) -> List[UserSubscription]:
        """Active subscriptions whose current period has ended, locked."""
        stmt = (
            select(UserSubscription)
            .where(
                UserSubscription.status == SubscriptionStatus.ACTIVE.value,
                UserSubscription.period_end_date.is_not(None),
                UserSubscription.period_end_date < now,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    # =========================================================================
    # Command Methods
    # =========================================================================

    async def increment_usage(
        self,
        user_id: UUID,
        tokens: int = 0,
        papers: int = 0,
    ) -> bool:
        """
        Add to the current period's usage counters.

        Returns:
            True if an active subscription was updated
        """
        stmt = (
            update(UserSubscription)
            .where(
                UserSubscription.user_id == as_uuid(user_id),
                UserSubscription.status == SubscriptionStatus.ACTIVE.value,
            )
            .values(
                tokens_used_current_period=UserSubscription.tokens_used_current_period + tokens,
                papers_accessed_current_period=UserSubscription.papers_accessed_current_period + papers,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return result.rowcount == 1
