"""
AI Model Repository

Read access to the model catalog and per-user preferences.
"""

from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.subscription import SubscriptionStatus
from app.infrastructure.db.models.ai_model import AIModel, UserAIPreference
from app.infrastructure.db.models.subscription import UserSubscription
from app.infrastructure.db.models.tier import SubscriptionTier
from app.infrastructure.db.repositories.base_repository import BaseRepository, as_uuid


class AIModelRepository(BaseRepository[AIModel]):
    """Repository for AI models and user model preferences."""

    def __init__(self, session: AsyncSession):
        super().__init__(AIModel, session)

    async def get_active(self, model_id: UUID) -> Optional[AIModel]:
        stmt = select(AIModel).where(
            AIModel.id == as_uuid(model_id),
            AIModel.is_active.is_(True),
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_active(self) -> List[AIModel]:
        stmt = (
            select(AIModel)
            .where(AIModel.is_active.is_(True))
            .order_by(AIModel.provider, AIModel.model_name)
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def get_user_preferred_model(self, user_id: UUID) -> Optional[AIModel]:
        """The user's chosen model, if they chose one and it is still active."""
        stmt = (
            select(AIModel)
            .join(UserAIPreference, UserAIPreference.ai_model_id == AIModel.id)
            .where(
                UserAIPreference.user_id == as_uuid(user_id),
                AIModel.is_active.is_(True),
            )
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_tier_model_for_user(self, user_id: UUID) -> Optional[AIModel]:
        """The active model assigned to the tier of the user's active subscription."""
        stmt = (
            select(AIModel)
            .join(SubscriptionTier, SubscriptionTier.ai_model_id == AIModel.id)
            .join(UserSubscription, UserSubscription.tier_id == SubscriptionTier.id)
            .where(
                UserSubscription.user_id == as_uuid(user_id),
                UserSubscription.status == SubscriptionStatus.ACTIVE.value,
                AIModel.is_active.is_(True),
            )
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_default_model(self) -> Optional[AIModel]:
        """The catalog's designated default among active models."""
        stmt = (
            select(AIModel)
            .where(AIModel.is_default.is_(True), AIModel.is_active.is_(True))
            .order_by(AIModel.created_at)
            .limit(1)
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_preference(self, user_id: UUID) -> Optional[UserAIPreference]:
        stmt = select(UserAIPreference).where(UserAIPreference.user_id == as_uuid(user_id))
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def save_preference(self, user_id: UUID, model_id: UUID) -> UserAIPreference:
        preference = await self.get_preference(user_id)
        if preference is None:
            preference = UserAIPreference(user_id=as_uuid(user_id), ai_model_id=as_uuid(model_id))
            self._session.add(preference)
        else:
            preference.ai_model_id = as_uuid(model_id)
        await self._session.flush()
        return preference

    async def delete_preference(self, user_id: UUID) -> bool:
        preference = await self.get_preference(user_id)
        if preference is None:
            return False
        await self._session.delete(preference)
        await self._session.flush()
        return True
