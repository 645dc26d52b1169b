"""
Selection Service

Lets subscribers change the grade level and subjects their tier
entitles them to. Validation failures come back as a structured result
rather than an exception.
"""

import logging
from typing import Optional, Sequence
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.config.settings import Settings, get_settings
from app.domain.subscription import SelectionUpdateResult
from app.infrastructure.db.repositories.base_repository import as_uuid
from app.infrastructure.db.repositories.subscription_repository import SubscriptionRepository
from app.infrastructure.db.repositories.tier_repository import CatalogRepository


logger = logging.getLogger(__name__)


def _parse_ids(values: Sequence) -> Optional[list]:
    try:
        return [as_uuid(value) for value in values]
    except (TypeError, ValueError):
        return None


class SelectionService:
    """Service for manual grade and subject selection updates."""

    def __init__(self, session: AsyncSession, settings: Optional[Settings] = None):
        self._session = session
        self._settings = settings or get_settings()
        self._subscriptions = SubscriptionRepository(session)
        self._catalog = CatalogRepository(session)

    async def update_selections(
        self,
        user_id: UUID,
        grade_id,
        subject_ids: Sequence,
    ) -> SelectionUpdateResult:
        """
        Replace the user's grade and subject selections.

        Checks run in order and the first failure is returned: active
        subscription, tier permissions, the optional one-time lock, grade
        exists, subject count within the tier maximum, subjects exist.
        """
        row = await self._subscriptions.get_active_with_tier(user_id)
        if row is None:
            return SelectionUpdateResult(success=False, message="No active subscription found")
        subscription, tier = row

        if not (tier.can_select_grade and tier.can_select_subjects):
            return SelectionUpdateResult(
                success=False,
                message="Your tier does not support grade and subject selection",
            )

        if self._settings.selection_lock_after_purchase and (
            subscription.selected_grade_id or subscription.selected_subject_ids
        ):
            return SelectionUpdateResult(
                success=False,
                message="Selections are locked once they have been made",
            )

        grade_uuids = _parse_ids([grade_id])
        grade = await self._catalog.get_grade(grade_uuids[0]) if grade_uuids else None
        if grade is None:
            return SelectionUpdateResult(success=False, message="Invalid grade level")

        subject_ids = list(subject_ids or [])
        if not subject_ids:
            return SelectionUpdateResult(success=False, message="You must select at least one subject")
        if tier.max_subjects is not None and len(subject_ids) > tier.max_subjects:
            return SelectionUpdateResult(
                success=False,
                message=f"You can only select up to {tier.max_subjects} subjects",
            )

        subject_uuids = _parse_ids(subject_ids)
        if subject_uuids is None or len(set(subject_uuids)) != len(subject_uuids):
            return SelectionUpdateResult(success=False, message="One or more invalid subjects")
        if await self._catalog.count_existing_subjects(subject_uuids) != len(subject_uuids):
            return SelectionUpdateResult(success=False, message="One or more invalid subjects")

        subscription.selected_grade_id = grade.id
        subscription.selected_subject_ids = [str(subject_id) for subject_id in subject_uuids]
        await self._session.flush()

        logger.info(f"Updated selections for user {user_id}: {len(subject_uuids)} subject(s)")
        return SelectionUpdateResult(success=True, message="Selections updated successfully")
