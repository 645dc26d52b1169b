"""
Subscription Activation Service

Turns completed payments into active subscriptions and owns the rest of
the subscription lifecycle: free-tier enrolment, period resets,
cancellation, usage metering and the entitlement snapshot.

Every successful activation write publishes SubscriptionActivated on the
event bus, inside the caller's transaction.
"""

import logging
from datetime import datetime
from typing import List, Optional, Sequence, Union
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config.settings import Settings, get_settings
from app.domain.events import EventBus, SubscriptionActivated
from app.domain.subscription import (
    ActivationOutcome,
    ActivationResult,
    BillingCycle,
    EntitlementSnapshot,
    PaymentStatus,
    SubscriptionStatus,
    add_months,
    compute_period_end,
    compute_token_carryover,
    effective_token_limit,
    should_reset_period,
    utcnow,
)
from app.infrastructure.db.models.payment import PaymentTransaction
from app.infrastructure.db.models.subscription import UserSubscription
from app.infrastructure.db.models.tier import SubscriptionTier
from app.infrastructure.db.repositories.base_repository import as_uuid
from app.infrastructure.db.repositories.payment_repository import PaymentRepository
from app.infrastructure.db.repositories.subscription_repository import SubscriptionRepository
from app.infrastructure.db.repositories.tier_repository import CatalogRepository, TierRepository
from app.infrastructure.exceptions import ConfigurationError, DatabaseError, NotFoundError
from app.infrastructure.services.event_bus import get_event_bus


logger = logging.getLogger(__name__)


class SubscriptionActivationService:
    """
    Service for the subscription lifecycle.

    The session belongs to the caller, who commits or rolls back. Nothing
    here commits, so an activation and every side effect published with
    it land in the same transaction.
    """

    def __init__(
        self,
        session: AsyncSession,
        event_bus: Optional[EventBus] = None,
        settings: Optional[Settings] = None,
    ):
        self._session = session
        self._event_bus = event_bus or get_event_bus()
        self._settings = settings or get_settings()
        self._subscriptions = SubscriptionRepository(session)
        self._tiers = TierRepository(session)
        self._payments = PaymentRepository(session)
        self._catalog = CatalogRepository(session)

    # =========================================================================
    # Payment Completion
    # =========================================================================

    async def handle_payment_status(
        self,
        transaction_id: UUID,
        new_status: Union[PaymentStatus, str],
    ) -> ActivationResult:
        """
        Apply a payment status change reported by the gateway.

        Only a move into "completed" from any other status activates a
        subscription. Re-delivery of the same status is a no-op.

        Raises:
            NotFoundError: if the transaction does not exist
        """
        new_status = PaymentStatus(new_status)
        transaction = await self._payments.get_by_id_for_update(transaction_id)
        if transaction is None:
            raise NotFoundError(
                f"Payment transaction {transaction_id} not found",
                operation="update_status",
                table="payment_transactions",
            )

        previous_status = transaction.status
        if previous_status == new_status.value:
            outcome = (
                ActivationOutcome.ALREADY_COMPLETED
                if new_status == PaymentStatus.COMPLETED
                else ActivationOutcome.NOT_COMPLETED
            )
            logger.info(f"Payment {transaction_id} already {previous_status}; nothing to do")
            return ActivationResult(
                activated=False,
                outcome=outcome,
                transaction_id=str(transaction_id),
                message=f"Payment already {previous_status}",
            )

        transaction.status = new_status.value
        await self._session.flush()
        logger.info(f"Payment {transaction_id}: {previous_status} -> {new_status.value}")

        if new_status != PaymentStatus.COMPLETED:
            return ActivationResult(
                activated=False,
                outcome=ActivationOutcome.NOT_COMPLETED,
                transaction_id=str(transaction_id),
                message=f"Payment marked {new_status.value}",
            )

        return await self.activate_from_payment(transaction)

    async def activate_from_payment(self, transaction: PaymentTransaction) -> ActivationResult:
        """Activate the tier bought by a completed payment."""
        tier = await self._tiers.get_active_by_id(transaction.tier_id)
        if tier is None:
            # The payment stays completed; the tier catalog needs fixing
            logger.error(
                f"Tier {transaction.tier_id} not found or inactive for payment "
                f"{transaction.id}; subscription not activated"
            )
            return ActivationResult(
                activated=False,
                outcome=ActivationOutcome.TIER_NOT_FOUND,
                transaction_id=str(transaction.id),
                message="Tier not found or inactive",
            )

        billing_cycle = BillingCycle(transaction.billing_cycle)
        subscription = await self.activate(
            user_id=transaction.user_id,
            tier=tier,
            billing_cycle=billing_cycle,
            is_recurring=billing_cycle != BillingCycle.LIFETIME,
            payment_provider=await self._payments.get_method_name(transaction.payment_method_id),
            selected_grade_id=transaction.selected_grade_id,
            selected_subject_ids=transaction.selected_subject_ids,
        )
        return ActivationResult(
            activated=True,
            outcome=ActivationOutcome.ACTIVATED,
            transaction_id=str(transaction.id),
            subscription_id=str(subscription.id),
            token_limit_override=subscription.token_limit_override,
            message=f"Activated {tier.display_name}",
        )

    # =========================================================================
    # Activation
    # =========================================================================

    async def activate(
        self,
        user_id: UUID,
        tier: SubscriptionTier,
        billing_cycle: BillingCycle = BillingCycle.MONTHLY,
        is_recurring: bool = True,
        payment_provider: Optional[str] = None,
        selected_grade_id: Optional[UUID] = None,
        selected_subject_ids: Optional[Sequence] = None,
        period_months: Optional[int] = None,
    ) -> UserSubscription:
        """
        Put a user on a tier, carrying unused tokens over.

        Creates the user's subscription row or rewrites the existing one;
        a user never has more than one. Usage counters restart at zero.

        Args:
            period_months: Fixed period length overriding the billing cycle
        """
        for _ in range(2):
            written = await self._write_activation(
                user_id,
                tier,
                billing_cycle,
                is_recurring,
                payment_provider,
                selected_grade_id,
                list(selected_subject_ids or []),
                period_months,
            )
            if written is not None:
                return written
        raise DatabaseError(
            f"Could not activate subscription for user {user_id}",
            operation="activate",
            table="user_subscriptions",
        )

    async def _write_activation(
        self,
        user_id: UUID,
        tier: SubscriptionTier,
        billing_cycle: BillingCycle,
        is_recurring: bool,
        payment_provider: Optional[str],
        selected_grade_id: Optional[UUID],
        selected_subject_ids: List,
        period_months: Optional[int],
    ) -> Optional[UserSubscription]:
        """One locked read-compute-write pass. None if a concurrent insert won."""
        now = utcnow()
        existing = await self._subscriptions.get_by_user_id(user_id, for_update=True)

        token_limit_override = None
        if existing is not None and existing.status == SubscriptionStatus.ACTIVE.value:
            old_tier = await self._tiers.get_by_id(existing.tier_id)
            old_limit = effective_token_limit(
                existing.token_limit_override,
                old_tier.token_limit if old_tier else None,
            )
            token_limit_override = compute_token_carryover(
                old_limit,
                existing.tokens_used_current_period,
                tier.token_limit,
            )

        if period_months is not None:
            period_end = add_months(now, period_months)
        else:
            period_end = compute_period_end(billing_cycle, now)

        values = {
            "tier_id": tier.id,
            "status": SubscriptionStatus.ACTIVE.value,
            "billing_cycle": billing_cycle.value,
            "is_recurring": is_recurring,
            "payment_provider": payment_provider,
            "period_start_date": now,
            "period_end_date": period_end,
            "token_limit_override": token_limit_override,
            "tokens_used_current_period": 0,
            "papers_accessed_current_period": 0,
            "accessed_paper_ids": [],
            "selected_grade_id": as_uuid(selected_grade_id) if selected_grade_id else None,
            "selected_subject_ids": [str(subject_id) for subject_id in selected_subject_ids],
        }

        if existing is None:
            subscription = UserSubscription(user_id=as_uuid(user_id), **values)
            try:
                async with self._session.begin_nested():
                    self._session.add(subscription)
            except IntegrityError:
                logger.info(f"Concurrent activation for user {user_id}; retrying as update")
                return None
            previous_status = None
            previous_tier_id = None
        else:
            subscription = existing
            previous_status = existing.status
            previous_tier_id = existing.tier_id
            for key, value in values.items():
                setattr(subscription, key, value)
            await self._session.flush()

        logger.info(
            f"Activated tier {tier.name} for user {user_id} "
            f"(override={token_limit_override}, previous={previous_status})"
        )

        await self._event_bus.publish(
            SubscriptionActivated(
                subscription_id=subscription.id,
                user_id=subscription.user_id,
                tier_id=tier.id,
                previous_status=previous_status,
                previous_tier_id=previous_tier_id,
                created=existing is None,
            ),
            self._session,
        )
        return subscription

    async def ensure_subscription(self, user_id: UUID) -> UserSubscription:
        """
        Enrol a user on the free tier unless they already have a subscription.

        Raises:
            ConfigurationError: if the free tier is missing from the catalog
        """
        existing = await self._subscriptions.get_by_user_id(user_id)
        if existing is not None:
            return existing

        free_tier = await self._tiers.get_by_name(self._settings.free_tier_name)
        if free_tier is None:
            raise ConfigurationError(
                f"Free tier '{self._settings.free_tier_name}' is not configured",
                missing_keys=["FREE_TIER_NAME"],
            )
        return await self.activate(user_id, free_tier)

    # =========================================================================
    # Period Maintenance
    # =========================================================================

    async def reset_expired_periods(self, now: Optional[datetime] = None) -> int:
        """
        Start a fresh period for recurring subscriptions whose period ended.

        Returns:
            Number of subscriptions reset
        """
        now = now or utcnow()
        reset = 0
        for subscription in await self._subscriptions.list_elapsed_active(now):
            cycle = BillingCycle(subscription.billing_cycle)
            if not should_reset_period(cycle, subscription.is_recurring):
                continue
            subscription.period_start_date = now
            subscription.period_end_date = compute_period_end(cycle, now)
            subscription.tokens_used_current_period = 0
            subscription.papers_accessed_current_period = 0
            subscription.accessed_paper_ids = []
            subscription.token_limit_override = None
            reset += 1

        await self._session.flush()
        if reset:
            logger.info(f"Reset {reset} subscription period(s)")
        return reset

    async def cancel_subscription(self, user_id: UUID) -> bool:
        """
        Stop renewal. The subscription stays usable until its period ends.

        Returns:
            False if the user has no active paid subscription to cancel
        """
        row = await self._subscriptions.get_active_with_tier(user_id)
        if row is None:
            return False
        subscription, tier = row
        if tier.name == self._settings.free_tier_name or not subscription.is_recurring:
            return False

        subscription.is_recurring = False
        await self._session.flush()
        logger.info(f"Cancelled renewal of {tier.name} for user {user_id}")
        return True

    async def expire_cancelled(self, now: Optional[datetime] = None) -> int:
        """
        Move non-renewing subscriptions whose period ended back to the free tier.

        Without a free tier in the catalog they are marked expired instead.

        Returns:
            Number of subscriptions moved
        """
        now = now or utcnow()
        free_tier = await self._tiers.get_by_name(self._settings.free_tier_name)
        moved = 0
        for subscription in await self._subscriptions.list_elapsed_active(now):
            if subscription.is_recurring:
                continue
            if free_tier is None:
                subscription.status = SubscriptionStatus.EXPIRED.value
            else:
                subscription.tier_id = free_tier.id
                subscription.billing_cycle = BillingCycle.MONTHLY.value
                subscription.is_recurring = True
                subscription.payment_provider = None
                subscription.period_start_date = now
                subscription.period_end_date = compute_period_end(BillingCycle.MONTHLY, now)
                subscription.selected_grade_id = None
                subscription.selected_subject_ids = []
            subscription.token_limit_override = None
            subscription.tokens_used_current_period = 0
            subscription.papers_accessed_current_period = 0
            subscription.accessed_paper_ids = []
            moved += 1

        await self._session.flush()
        if moved:
            logger.info(f"Expired {moved} cancelled subscription(s)")
        return moved

    # =========================================================================
    # Usage and Entitlement
    # =========================================================================

    async def record_token_usage(self, user_id: UUID, tokens: int) -> EntitlementSnapshot:
        """
        Meter tokens against the current period.

        Raises:
            NotFoundError: if the user has no active subscription
        """
        if not await self._subscriptions.increment_usage(user_id, tokens=tokens):
            raise NotFoundError(
                f"No active subscription for user {user_id}",
                operation="record_token_usage",
                table="user_subscriptions",
            )
        return await self.get_entitlement(user_id)

    async def get_entitlement(self, user_id: UUID) -> EntitlementSnapshot:
        """Current entitlement. Users without a subscription get an empty snapshot."""
        row = await self._subscriptions.get_active_with_tier(user_id)
        if row is None:
            return EntitlementSnapshot(user_id=str(user_id))

        subscription, tier = row
        limit = effective_token_limit(subscription.token_limit_override, tier.token_limit)
        used = subscription.tokens_used_current_period
        remaining = None if limit is None else max(0, limit - used)

        grade_name = None
        if subscription.selected_grade_id:
            grade = await self._catalog.get_grade(subscription.selected_grade_id)
            grade_name = grade.name if grade else None

        return EntitlementSnapshot(
            user_id=str(user_id),
            tier=tier.name,
            tier_display_name=tier.display_name,
            status=SubscriptionStatus(subscription.status),
            billing_cycle=BillingCycle(subscription.billing_cycle),
            token_limit_effective=limit,
            tokens_used=used,
            tokens_remaining=remaining,
            papers_limit=tier.papers_limit,
            papers_accessed=subscription.papers_accessed_current_period,
            selected_grade=grade_name,
            selected_subjects=await self._catalog.get_subject_names(
                subscription.selected_subject_ids or []
            ),
            period_start_date=subscription.period_start_date,
            period_end_date=subscription.period_end_date,
            is_recurring=subscription.is_recurring,
        )
