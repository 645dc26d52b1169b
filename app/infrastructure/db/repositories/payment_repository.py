"""
Payment Repository

Access to payment transactions and payment methods.
"""

from typing import Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.infrastructure.db.models.payment import PaymentMethod, PaymentTransaction
from app.infrastructure.db.repositories.base_repository import BaseRepository, as_uuid


class PaymentRepository(BaseRepository[PaymentTransaction]):
    """Repository for payment transactions."""

    def __init__(self, session: AsyncSession):
        super().__init__(PaymentTransaction, session)

    async def get_method_name(self, payment_method_id: Optional[UUID]) -> Optional[str]:
        """Name of a payment method, recorded as the subscription's provider."""
        if payment_method_id is None:
            return None
        method = await self._session.get(PaymentMethod, as_uuid(payment_method_id))
        return method.name if method else None
