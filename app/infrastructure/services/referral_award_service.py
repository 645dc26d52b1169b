"""
Referral Award Service

Decides whether a subscription activation earns the referrer points and
applies the award. Every attempt, whatever its outcome, leaves exactly
one row in the referral points audit log.

The pending referral is the idempotency gate: it is read under a row
lock and flipped to completed with a compare-and-swap update, so a
referrer is paid at most once per referred user no matter how many
activation events arrive.
"""

import logging
from typing import Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.config.settings import Settings, get_settings
from app.domain.events import SubscriptionActivated
from app.domain.referral import (
    AWARD_REASON_MESSAGES,
    AwardDecision,
    AwardOutcome,
    AwardReason,
    PointsTransactionType,
)
from app.domain.subscription import utcnow
from app.infrastructure.db.models.referral import (
    Referral,
    ReferralPointsLog,
    ReferralTransaction,
)
from app.infrastructure.db.models.subscription import UserSubscription
from app.infrastructure.db.models.tier import SubscriptionTier
from app.infrastructure.db.repositories.base_repository import as_uuid
from app.infrastructure.db.repositories.referral_repository import ReferralRepository
from app.infrastructure.db.repositories.subscription_repository import SubscriptionRepository
from app.infrastructure.exceptions import LedgerError, ReferralAwardError


logger = logging.getLogger(__name__)


class ReferralAwardService:
    """Referral award engine, run inside the activating transaction."""

    def __init__(self, session: AsyncSession, settings: Optional[Settings] = None):
        self._session = session
        self._free_tier_name = (settings or get_settings()).free_tier_name
        self._subscriptions = SubscriptionRepository(session)
        self._referrals = ReferralRepository(session)

    async def handle_subscription_activated(self, event: SubscriptionActivated) -> AwardDecision:
        return await self.award_for_subscription(event.subscription_id)

    async def award_for_subscription(self, subscription_id: UUID) -> AwardDecision:
        """
        Run the award decision for one activated subscription.

        Returns:
            The decision that was logged

        Raises:
            ReferralAwardError: if the award failed after the gate was
                passed. The enclosing transaction must be rolled back;
                the error carries the audit entry to record afterwards.
        """
        row = await self._subscriptions.get_with_tier(subscription_id)
        if row is None:
            return await self._skip(subscription_id, AwardReason.SUBSCRIPTION_NOT_FOUND)
        subscription, tier = row

        if tier.name == self._free_tier_name:
            return await self._skip(subscription_id, AwardReason.FREE_TIER, subscription, tier)

        referral = await self._referrals.get_pending_for_referred(subscription.user_id)
        if referral is None:
            return await self._skip(
                subscription_id, AwardReason.NO_PENDING_REFERRAL, subscription, tier
            )

        points = tier.referral_points_awarded or 0
        if points <= 0:
            return await self._skip(
                subscription_id,
                AwardReason.NO_POINTS_CONFIGURED,
                subscription,
                tier,
                referrer_id=referral.referrer_id,
            )

        # Captured before the savepoint; a rollback may expire loaded rows
        user_id, tier_name = subscription.user_id, tier.name
        referrer_id, referral_id = referral.referrer_id, referral.id

        try:
            async with self._session.begin_nested():
                balance_after = await self._apply_award(subscription, tier, referral, points)
        except Exception as e:
            logger.error(
                f"Referral award failed for subscription {subscription_id} "
                f"(referral {referral_id}): {e}"
            )
            audit_entry = self._log_entry(
                subscription_id,
                AwardOutcome.ERROR,
                AwardReason.UNEXPECTED_ERROR,
                user_id=user_id,
                tier_name=tier_name,
                referrer_id=referrer_id,
                points=points,
                detail=f"{type(e).__name__}: {e}",
            )
            raise ReferralAwardError(
                f"Referral award failed: {e}",
                subscription_id=str(subscription_id),
                referral_id=str(referral_id),
                original_error=e,
                audit_entry=audit_entry,
            ) from e

        logger.info(
            f"Awarded {points} points to {referrer_id} for referral {referral_id} "
            f"(balance {balance_after})"
        )
        return AwardDecision(
            subscription_id=str(subscription_id),
            outcome=AwardOutcome.SUCCESS,
            reason=AwardReason.AWARDED,
            points=points,
            referrer_id=str(referrer_id),
            referral_id=str(referral_id),
            balance_after=balance_after,
        )

    async def _apply_award(
        self,
        subscription: UserSubscription,
        tier: SubscriptionTier,
        referral: Referral,
        points: int,
    ) -> int:
        if not await self._referrals.complete_referral(referral.id, points, tier.id, utcnow()):
            raise LedgerError(
                "Referral is no longer pending",
                user_id=str(referral.referred_id),
                referral_id=str(referral.id),
            )

        await self._referrals.ensure_points_row(referral.referrer_id)
        balance_after = await self._referrals.add_points(
            referral.referrer_id,
            points,
            count_successful_referral=True,
        )
        await self._referrals.add_transaction(
            ReferralTransaction(
                user_id=referral.referrer_id,
                transaction_type=PointsTransactionType.EARNED.value,
                points=points,
                balance_after=balance_after,
                referral_id=referral.id,
                subscription_id=subscription.id,
                description=f"Referral reward: {tier.display_name} subscription",
            )
        )
        await self._referrals.add_log(
            self._log_entry(
                subscription.id,
                AwardOutcome.SUCCESS,
                AwardReason.AWARDED,
                user_id=subscription.user_id,
                tier_name=tier.name,
                referrer_id=referral.referrer_id,
                points=points,
            )
        )
        return balance_after

    async def _skip(
        self,
        subscription_id: UUID,
        reason: AwardReason,
        subscription: Optional[UserSubscription] = None,
        tier: Optional[SubscriptionTier] = None,
        referrer_id: Optional[UUID] = None,
    ) -> AwardDecision:
        if reason == AwardReason.SUBSCRIPTION_NOT_FOUND:
            logger.warning(f"Award skipped: subscription {subscription_id} not found")
        else:
            logger.debug(f"Award skipped for subscription {subscription_id}: {reason.value}")

        await self._referrals.add_log(
            self._log_entry(
                subscription_id,
                AwardOutcome.SKIPPED,
                reason,
                user_id=subscription.user_id if subscription else None,
                tier_name=tier.name if tier else None,
                referrer_id=referrer_id,
            )
        )
        return AwardDecision(
            subscription_id=str(subscription_id),
            outcome=AwardOutcome.SKIPPED,
            reason=reason,
            referrer_id=str(referrer_id) if referrer_id else None,
        )

    @staticmethod
    def _log_entry(
        subscription_id: UUID,
        outcome: AwardOutcome,
        reason: AwardReason,
        user_id: Optional[UUID] = None,
        tier_name: Optional[str] = None,
        referrer_id: Optional[UUID] = None,
        points: Optional[int] = None,
        detail: Optional[str] = None,
    ) -> ReferralPointsLog:
        return ReferralPointsLog(
            subscription_id=as_uuid(subscription_id),
            user_id=user_id,
            referrer_id=referrer_id,
            tier_name=tier_name,
            referral_points_awarded=points,
            outcome=outcome.value,
            reason=reason.value,
            detail=detail or AWARD_REASON_MESSAGES[reason],
        )
