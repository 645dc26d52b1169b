"""
Base Repository for Study Subscriptions

Generic async repository bound to a caller-owned session. Repositories
never commit: the session owner (a request or a scheduled job) decides
when the unit of work ends, so several repositories can take part in one
transaction.
"""

from typing import Generic, Optional, Type, TypeVar
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import SQLModel


ModelType = TypeVar("ModelType", bound=SQLModel)


def as_uuid(value) -> UUID:
    """Accept UUIDs or their string form."""
    return value if isinstance(value, UUID) else UUID(str(value))


class BaseRepository(Generic[ModelType]):
    """
    Generic async repository with the operations every table needs.

    Args:
        model: The SQLModel class to operate on
        session: Async database session
    """

    def __init__(self, model: Type[ModelType], session: AsyncSession):
        self._model = model
        self._session = session

    async def get_by_id(self, id: UUID) -> Optional[ModelType]:
        """
        Get a single record by its primary key.

        Args:
            id: UUID primary key

        Returns:
            Model instance or None if not found
        """
        return await self._session.get(self._model, as_uuid(id))

    async def get_by_id_for_update(self, id: UUID) -> Optional[ModelType]:
        """Get a record and lock its row until the transaction ends."""
        stmt = (
            select(self._model)
            .where(self._model.id == as_uuid(id))
            .with_for_update()
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()
