"""
Referral Service

User-facing side of the referral program: shareable codes, attaching a
referrer, the points dashboard and spending points on a tier.
"""

import logging
import secrets
from typing import List, Optional, Sequence
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config.settings import Settings, get_settings
from app.domain.events import EventBus
from app.domain.referral import (
    PointsTransactionType,
    RedeemPointsResponse,
    ReferralStatus,
    ReferralSummary,
    ReferralTransactionRead,
)
from app.domain.subscription import BillingCycle
from app.infrastructure.db.models.referral import Referral, ReferralTransaction
from app.infrastructure.db.repositories.base_repository import as_uuid
from app.infrastructure.db.repositories.referral_repository import ReferralRepository
from app.infrastructure.db.repositories.tier_repository import TierRepository
from app.infrastructure.exceptions import (
    DuplicateError,
    InsufficientPointsError,
    NotFoundError,
    ValidationError,
)
from app.infrastructure.services.activation_service import SubscriptionActivationService


logger = logging.getLogger(__name__)


class ReferralService:
    """
    Service for referral codes, referral relationships and points spending.

    Like the other services it works inside the caller's transaction and
    never commits.
    """

    def __init__(
        self,
        session: AsyncSession,
        event_bus: Optional[EventBus] = None,
        settings: Optional[Settings] = None,
    ):
        self._session = session
        self._settings = settings or get_settings()
        self._referrals = ReferralRepository(session)
        self._tiers = TierRepository(session)
        self._activation = SubscriptionActivationService(
            session, event_bus=event_bus, settings=self._settings
        )

    # =========================================================================
    # Codes and Relationships
    # =========================================================================

    def _generate_code(self) -> str:
        length = self._settings.referral_code_length
        return secrets.token_hex((length + 1) // 2).upper()[:length]

    async def get_or_create_code(self, user_id: UUID) -> str:
        """
        Get the user's referral code, generating one on first use.

        Also opens the user's points balance at zero.

        Raises:
            DuplicateError: if no unused code was found
        """
        existing = await self._referrals.get_code_for_user(user_id)
        if existing is not None:
            return existing.code

        for _ in range(self._settings.referral_code_max_attempts):
            row = await self._referrals.try_insert_code(user_id, self._generate_code())
            if row is not None:
                await self._referrals.ensure_points_row(user_id)
                logger.info(f"Created referral code for user {user_id}")
                return row.code

            # Either the code collided or the user got one concurrently
            existing = await self._referrals.get_code_for_user(user_id)
            if existing is not None:
                return existing.code

        raise DuplicateError(
            "Could not generate a unique referral code",
            operation="insert",
            table="referral_codes",
        )

    async def apply_referral_code(self, referred_id: UUID, code: str) -> bool:
        """
        Record that a user signed up with someone's referral code.

        Returns:
            False for unknown codes, self-referral, or a user who already
            has a referrer
        """
        code_row = await self._referrals.get_code(code.strip().upper())
        if code_row is None:
            logger.info(f"Unknown referral code {code!r}")
            return False
        if code_row.user_id == as_uuid(referred_id):
            logger.info(f"User {referred_id} tried to use their own referral code")
            return False
        if await self._referrals.get_referral_for_referred(referred_id) is not None:
            return False

        referral = Referral(
            referrer_id=code_row.user_id,
            referred_id=as_uuid(referred_id),
            referral_code=code_row.code,
            status=ReferralStatus.PENDING.value,
        )
        try:
            async with self._session.begin_nested():
                await self._referrals.add_referral(referral)
        except IntegrityError:
            return False

        await self._referrals.ensure_points_row(code_row.user_id)
        await self._referrals.increment_total_referrals(code_row.user_id)
        logger.info(f"User {referred_id} referred by {code_row.user_id}")
        return True

    # =========================================================================
    # Queries
    # =========================================================================

    async def get_summary(self, user_id: UUID) -> ReferralSummary:
        """Points balance and referral counts. Zeros for users with no history."""
        code_row = await self._referrals.get_code_for_user(user_id)
        points = await self._referrals.get_points(user_id)
        summary = ReferralSummary(
            user_id=str(user_id),
            referral_code=code_row.code if code_row else None,
        )
        if points is None:
            return summary
        return summary.model_copy(update={
            "points_balance": points.points_balance,
            "total_earned": points.total_earned,
            "total_spent": points.total_spent,
            "total_referrals": points.total_referrals,
            "successful_referrals": points.successful_referrals,
        })

    async def list_transactions(self, user_id: UUID, limit: int = 50) -> List[ReferralTransactionRead]:
        entries = await self._referrals.list_transactions(user_id, limit=limit)
        return [
            ReferralTransactionRead(
                id=str(entry.id),
                transaction_type=PointsTransactionType(entry.transaction_type),
                points=entry.points,
                balance_after=entry.balance_after,
                description=entry.description,
                created_at=entry.created_at,
            )
            for entry in entries
        ]

    # =========================================================================
    # Redemption
    # =========================================================================

    async def redeem_points(
        self,
        user_id: UUID,
        tier_id: UUID,
        grade_id: Optional[UUID] = None,
        subject_ids: Optional[Sequence] = None,
    ) -> RedeemPointsResponse:
        """
        Buy a tier with referral points.

        The subscription runs for the tier's duration_months and does not
        renew.

        Raises:
            NotFoundError: if the tier does not exist or is inactive
            ValidationError: if the tier cannot be bought with points
            InsufficientPointsError: if the balance does not cover the cost
        """
        tier = await self._tiers.get_active_by_id(tier_id)
        if tier is None:
            raise NotFoundError(f"Tier {tier_id} not found", operation="redeem", table="subscription_tiers")
        cost = tier.points_cost or 0
        if cost <= 0:
            raise ValidationError(
                f"{tier.display_name} cannot be bought with points",
                details={"tier_id": str(tier_id)},
            )

        balance_after = await self._referrals.deduct_points(user_id, cost)
        if balance_after is None:
            raise InsufficientPointsError(
                user_id=str(user_id),
                balance=await self._referrals.get_balance(user_id) or 0,
                required=cost,
            )

        subscription = await self._activation.activate(
            user_id=user_id,
            tier=tier,
            billing_cycle=BillingCycle.MONTHLY,
            is_recurring=False,
            payment_provider=self._settings.points_payment_provider,
            selected_grade_id=grade_id,
            selected_subject_ids=subject_ids,
            period_months=tier.duration_months,
        )

        await self._referrals.add_transaction(
            ReferralTransaction(
                user_id=as_uuid(user_id),
                transaction_type=PointsTransactionType.REDEEMED.value,
                points=-cost,
                balance_after=balance_after,
                subscription_id=subscription.id,
                description=f"Redeemed for {tier.display_name} ({tier.duration_months} months)",
            )
        )
        logger.info(f"User {user_id} redeemed {cost} points for {tier.name}")

        return RedeemPointsResponse(
            subscription_id=str(subscription.id),
            points_spent=cost,
            balance_after=balance_after,
        )
