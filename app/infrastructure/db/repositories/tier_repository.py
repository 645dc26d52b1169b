"""
Tier Catalog Repository

Read access to tiers, grade levels and subjects.
"""

from typing import List, Optional, Sequence
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.infrastructure.db.models.tier import GradeLevel, Subject, SubscriptionTier
from app.infrastructure.db.repositories.base_repository import BaseRepository, as_uuid


class TierRepository(BaseRepository[SubscriptionTier]):
    """Repository for subscription tiers."""

    def __init__(self, session: AsyncSession):
        super().__init__(SubscriptionTier, session)

    async def get_active_by_id(self, tier_id: UUID) -> Optional[SubscriptionTier]:
        """Get a tier only if it is still offered."""
        stmt = select(SubscriptionTier).where(
            SubscriptionTier.id == as_uuid(tier_id),
            SubscriptionTier.is_active.is_(True),
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_name(self, name: str) -> Optional[SubscriptionTier]:
        stmt = select(SubscriptionTier).where(SubscriptionTier.name == name)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()


class CatalogRepository:
    """Lookups against the grade level and subject reference tables."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_grade(self, grade_id: UUID) -> Optional[GradeLevel]:
        return await self._session.get(GradeLevel, as_uuid(grade_id))

    async def count_existing_subjects(self, subject_ids: Sequence[UUID]) -> int:
        """How many of the given distinct subject IDs exist."""
        ids = list({as_uuid(subject_id) for subject_id in subject_ids})
        if not ids:
            return 0
        stmt = select(func.count()).select_from(Subject).where(Subject.id.in_(ids))
        result = await self._session.execute(stmt)
        return result.scalar_one()

    async def get_subject_names(self, subject_ids: Sequence[UUID]) -> List[str]:
        ids = [as_uuid(subject_id) for subject_id in subject_ids]
        if not ids:
            return []
        stmt = select(Subject.name).where(Subject.id.in_(ids)).order_by(Subject.name)
        result = await self._session.execute(stmt)
        return list(result.scalars().all())
