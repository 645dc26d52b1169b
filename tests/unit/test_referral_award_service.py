"""
Unit tests for the referral award engine.

Activations go through the real event bus, so these exercise the whole
path from payment completion to the referrer's ledger.
"""

from uuid import uuid4

import pytest
from sqlalchemy import func, select

from app.domain.referral import AwardOutcome, AwardReason
from app.infrastructure.db.database import rollback_keeping_award_audit
from app.infrastructure.db.models import (
    Referral,
    ReferralPointsLog,
    ReferralTransaction,
    UserReferralPoints,
)
from app.infrastructure.db.repositories.referral_repository import ReferralRepository
from app.infrastructure.exceptions import ReferralAwardError
from app.infrastructure.services.activation_service import SubscriptionActivationService
from app.infrastructure.services.referral_award_service import ReferralAwardService
from app.infrastructure.services.referral_service import ReferralService


async def _logs(session, **filters):
    stmt = select(ReferralPointsLog).order_by(ReferralPointsLog.created_at)
    for column, value in filters.items():
        stmt = stmt.where(getattr(ReferralPointsLog, column) == value)
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def _referral(session, referred_id) -> Referral:
    result = await session.execute(
        select(Referral)
        .where(Referral.referred_id == referred_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one()


@pytest.fixture
def activation(session):
    return SubscriptionActivationService(session)


@pytest.fixture
def referrals(session):
    return ReferralService(session)


@pytest.fixture
async def referred_pair(referrals):
    """A referrer with a code and a referred user who signed up with it."""
    referrer_id, referred_id = uuid4(), uuid4()
    code = await referrals.get_or_create_code(referrer_id)
    assert await referrals.apply_referral_code(referred_id, code) is True
    return referrer_id, referred_id


class TestAward:

    @pytest.mark.asyncio
    async def test_referred_purchase_awards_referrer(
        self, session, activation, referrals, referred_pair, make_payment, pro_tier
    ):
        referrer_id, referred_id = referred_pair
        payment = await make_payment(referred_id, pro_tier)

        result = await activation.handle_payment_status(payment.id, "completed")
        assert result.activated is True

        summary = await referrals.get_summary(referrer_id)
        assert summary.points_balance == 250
        assert summary.total_earned == 250
        assert summary.total_referrals == 1
        assert summary.successful_referrals == 1

        referral = await _referral(session, referred_id)
        assert referral.status == "completed"
        assert referral.points_awarded == 250
        assert referral.subscription_tier_id == pro_tier.id
        assert referral.completed_at is not None

        [entry] = await referrals.list_transactions(referrer_id)
        assert entry.points == 250
        assert entry.balance_after == 250

        [log] = await _logs(session, referrer_id=referrer_id)
        assert str(log.subscription_id) == result.subscription_id
        assert log.outcome == AwardOutcome.SUCCESS.value
        assert log.reason == AwardReason.AWARDED.value
        assert log.referrer_id == referrer_id
        assert log.tier_name == "pro"

    @pytest.mark.asyncio
    async def test_balance_after_builds_on_previous_balance(
        self, session, activation, referrals, referred_pair, pro_tier
    ):
        referrer_id, referred_id = referred_pair
        repo = ReferralRepository(session)
        await repo.add_points(referrer_id, 40)

        await activation.activate(referred_id, pro_tier)

        [entry] = await referrals.list_transactions(referrer_id)
        assert entry.balance_after == 290

    @pytest.mark.asyncio
    async def test_second_activation_is_skipped(
        self, session, activation, referrals, referred_pair, pro_tier
    ):
        referrer_id, referred_id = referred_pair

        subscription = await activation.activate(referred_id, pro_tier)
        await activation.activate(referred_id, pro_tier)

        summary = await referrals.get_summary(referrer_id)
        assert summary.points_balance == 250
        assert summary.successful_referrals == 1

        logs = await _logs(session, subscription_id=subscription.id)
        assert [(log.outcome, log.reason) for log in logs] == [
            ("success", "awarded"),
            ("skipped", "no_pending_referral"),
        ]
        assert len(await referrals.list_transactions(referrer_id)) == 1

    @pytest.mark.asyncio
    async def test_free_tier_never_awards(
        self, session, activation, referrals, referred_pair, free_tier
    ):
        referrer_id, referred_id = referred_pair

        subscription = await activation.ensure_subscription(referred_id)

        [log] = await _logs(session, subscription_id=subscription.id)
        assert log.outcome == "skipped"
        assert log.reason == AwardReason.FREE_TIER.value
        assert (await referrals.get_summary(referrer_id)).points_balance == 0
        assert (await _referral(session, referred_id)).status == "pending"

    @pytest.mark.asyncio
    async def test_free_tier_then_paid_upgrade_awards(
        self, activation, referrals, referred_pair, free_tier, pro_tier
    ):
        referrer_id, referred_id = referred_pair

        await activation.ensure_subscription(referred_id)
        await activation.activate(referred_id, pro_tier)

        assert (await referrals.get_summary(referrer_id)).points_balance == 250

    @pytest.mark.asyncio
    async def test_tier_without_points(self, session, activation, referred_pair, make_tier):
        _, referred_id = referred_pair
        plain = await make_tier("plain", referral_points_awarded=0)

        subscription = await activation.activate(referred_id, plain)

        [log] = await _logs(session, subscription_id=subscription.id)
        assert log.reason == AwardReason.NO_POINTS_CONFIGURED.value
        assert (await _referral(session, referred_id)).status == "pending"

    @pytest.mark.asyncio
    async def test_unreferred_user(self, session, activation, pro_tier):
        subscription = await activation.activate(uuid4(), pro_tier)

        [log] = await _logs(session, subscription_id=subscription.id)
        assert log.outcome == "skipped"
        assert log.reason == AwardReason.NO_PENDING_REFERRAL.value

    @pytest.mark.asyncio
    async def test_missing_subscription(self, session):
        subscription_id = uuid4()

        decision = await ReferralAwardService(session).award_for_subscription(subscription_id)

        assert decision.outcome == AwardOutcome.SKIPPED
        assert decision.reason == AwardReason.SUBSCRIPTION_NOT_FOUND
        [log] = await _logs(session, subscription_id=subscription_id)
        assert log.user_id is None


class TestAwardFailure:

    @pytest.mark.asyncio
    async def test_failure_aborts_activation_and_is_logged(
        self, session, referrals, referred_pair, make_payment, pro_tier, monkeypatch
    ):
        referrer_id, referred_id = referred_pair
        payment = await make_payment(referred_id, pro_tier)
        payment_id = payment.id
        await session.commit()

        async def broken_add_points(self, user_id, points, count_successful_referral=False):
            raise RuntimeError("ledger unavailable")

        monkeypatch.setattr(ReferralRepository, "add_points", broken_add_points)

        activation = SubscriptionActivationService(session)
        with pytest.raises(ReferralAwardError) as excinfo:
            await activation.handle_payment_status(payment_id, "completed")

        await rollback_keeping_award_audit(session, excinfo.value)

        [log] = await _logs(session, outcome="error")
        assert log.reason == AwardReason.UNEXPECTED_ERROR.value
        assert "ledger unavailable" in log.detail
        assert log.referrer_id == referrer_id

        assert (await _referral(session, referred_id)).status == "pending"
        points = await session.execute(
            select(UserReferralPoints.points_balance).where(UserReferralPoints.user_id == referrer_id)
        )
        assert points.scalar_one() == 0
        transactions = await session.execute(select(func.count()).select_from(ReferralTransaction))
        assert transactions.scalar_one() == 0
        # The activation was rolled back with it
        assert await activation._subscriptions.get_by_user_id(referred_id) is None
