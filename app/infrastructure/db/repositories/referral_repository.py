"""
Referral Repository

Data access for the referral points ledger: codes, referral
relationships, balances, the transaction log and the award audit log.

Balances are changed only through additive UPDATE statements, and a
referral leaves "pending" only through a compare-and-swap update.
"""

import logging
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.referral import ReferralStatus
from app.infrastructure.db.models.referral import (
    Referral,
    ReferralCode,
    ReferralPointsLog,
    ReferralTransaction,
    UserReferralPoints,
)
from app.infrastructure.db.repositories.base_repository import as_uuid


logger = logging.getLogger(__name__)


class ReferralRepository:
    """Repository for the referral points ledger."""

    def __init__(self, session: AsyncSession):
        self._session = session

    # =========================================================================
    # Referral Codes
    # =========================================================================

    async def get_code_for_user(self, user_id: UUID) -> Optional[ReferralCode]:
        stmt = select(ReferralCode).where(ReferralCode.user_id == as_uuid(user_id))
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_code(self, code: str) -> Optional[ReferralCode]:
        stmt = select(ReferralCode).where(ReferralCode.code == code)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def try_insert_code(self, user_id: UUID, code: str) -> Optional[ReferralCode]:
        """
        Insert a code inside a savepoint.

        Returns:
            The new row, or None if the code or the user already has one
        """
        row = ReferralCode(user_id=as_uuid(user_id), code=code)
        try:
            async with self._session.begin_nested():
                self._session.add(row)
        except IntegrityError:
            return None
        return row

    # =========================================================================
    # Referrals
    # =========================================================================

    async def get_referral_for_referred(self, referred_id: UUID) -> Optional[Referral]:
        stmt = select(Referral).where(Referral.referred_id == as_uuid(referred_id))
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_pending_for_referred(self, referred_id: UUID) -> Optional[Referral]:
        """Pending referral of a user, locked until the transaction ends."""
        stmt = (
            select(Referral)
            .where(
                Referral.referred_id == as_uuid(referred_id),
                Referral.status == ReferralStatus.PENDING.value,
            )
            .with_for_update()
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def add_referral(self, referral: Referral) -> Referral:
        self._session.add(referral)
        await self._session.flush()
        return referral

    async def complete_referral(
        self,
        referral_id: UUID,
        points: int,
        tier_id: UUID,
        completed_at: datetime,
    ) -> bool:
        """
        Flip a referral from pending to completed.

        Returns:
            False if another transaction completed it first
        """
        stmt = (
            update(Referral)
            .where(
                Referral.id == as_uuid(referral_id),
                Referral.status == ReferralStatus.PENDING.value,
            )
            .values(
                status=ReferralStatus.COMPLETED.value,
                points_awarded=points,
                subscription_tier_id=as_uuid(tier_id),
                completed_at=completed_at,
                updated_at=completed_at,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return result.rowcount == 1

    # =========================================================================
    # Points Balance
    # =========================================================================

    async def get_points(self, user_id: UUID) -> Optional[UserReferralPoints]:
        stmt = (
            select(UserReferralPoints)
            .where(UserReferralPoints.user_id == as_uuid(user_id))
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_balance(self, user_id: UUID) -> Optional[int]:
        stmt = select(UserReferralPoints.points_balance).where(
            UserReferralPoints.user_id == as_uuid(user_id)
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def ensure_points_row(self, user_id: UUID) -> None:
        """Create a zero balance row if the user has none."""
        if await self.get_balance(user_id) is not None:
            return
        try:
            async with self._session.begin_nested():
                self._session.add(UserReferralPoints(user_id=as_uuid(user_id)))
        except IntegrityError:
            # Created concurrently; the existing row is just as good
            logger.debug(f"Points row for {user_id} already exists")

    async def add_points(
        self,
        user_id: UUID,
        points: int,
        count_successful_referral: bool = False,
    ) -> int:
        """
        Credit points and return the balance after the credit.

        Raises:
            LookupError: if the user has no balance row
        """
        values = {
            "points_balance": UserReferralPoints.points_balance + points,
            "total_earned": UserReferralPoints.total_earned + points,
        }
        if count_successful_referral:
            values["successful_referrals"] = UserReferralPoints.successful_referrals + 1
        return await self._apply_balance_update(user_id, values)

    async def deduct_points(self, user_id: UUID, points: int) -> Optional[int]:
        """
        Debit points if the balance covers them.

        Returns:
            The balance after the debit, or None if the balance was too low
        """
        stmt = (
            update(UserReferralPoints)
            .where(
                UserReferralPoints.user_id == as_uuid(user_id),
                UserReferralPoints.points_balance >= points,
            )
            .values(
                points_balance=UserReferralPoints.points_balance - points,
                total_spent=UserReferralPoints.total_spent + points,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        if result.rowcount != 1:
            return None
        return await self.get_balance(user_id)

    async def increment_total_referrals(self, user_id: UUID) -> int:
        return await self._apply_balance_update(
            user_id,
            {"total_referrals": UserReferralPoints.total_referrals + 1},
        )

    async def _apply_balance_update(self, user_id: UUID, values: dict) -> int:
        stmt = (
            update(UserReferralPoints)
            .where(UserReferralPoints.user_id == as_uuid(user_id))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        if result.rowcount != 1:
            raise LookupError(f"No points balance row for user {user_id}")
        return await self.get_balance(user_id)

    # =========================================================================
    # Ledger and Audit Log
    # =========================================================================

    async def add_transaction(self, entry: ReferralTransaction) -> ReferralTransaction:
        self._session.add(entry)
        await self._session.flush()
        return entry

    async def list_transactions(self, user_id: UUID, limit: int = 100) -> List[ReferralTransaction]:
        stmt = (
            select(ReferralTransaction)
            .where(ReferralTransaction.user_id == as_uuid(user_id))
            .order_by(ReferralTransaction.created_at.desc())
            .limit(limit)
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def sum_transaction_points(self, user_id: UUID) -> int:
        """Signed sum of all ledger entries for a user."""
        stmt = select(func.coalesce(func.sum(ReferralTransaction.points), 0)).where(
            ReferralTransaction.user_id == as_uuid(user_id)
        )
        result = await self._session.execute(stmt)
        return int(result.scalar_one())

    async def add_log(self, entry: ReferralPointsLog) -> ReferralPointsLog:
        self._session.add(entry)
        await self._session.flush()
        return entry
