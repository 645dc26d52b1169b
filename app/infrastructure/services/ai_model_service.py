"""
AI Model Service

Resolves which AI model serves a user: their own preference, then the
model assigned to their subscription tier, then the catalog default.
Inactive models are skipped at every level.
"""

import logging
from typing import List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.ai_model import AIModelDescriptor, AIProvider, ModelSource, ResolvedAIModel
from app.infrastructure.db.models.ai_model import AIModel
from app.infrastructure.db.repositories.ai_model_repository import AIModelRepository
from app.infrastructure.exceptions import ConfigurationError, NotFoundError


logger = logging.getLogger(__name__)


def to_descriptor(model: AIModel) -> AIModelDescriptor:
    return AIModelDescriptor(
        id=str(model.id),
        provider=AIProvider(model.provider),
        model_name=model.model_name,
        display_name=model.display_name,
        description=model.description,
        supports_vision=model.supports_vision,
        supports_caching=model.supports_caching,
        max_context_tokens=model.max_context_tokens,
        max_output_tokens=model.max_output_tokens,
        input_token_cost_per_million=model.input_token_cost_per_million,
        output_token_cost_per_million=model.output_token_cost_per_million,
        token_multiplier=model.token_multiplier,
        temperature_default=model.temperature_default,
        is_default=model.is_default,
    )


class AIModelService:
    """Service for AI model resolution and user model preferences."""

    def __init__(self, session: AsyncSession):
        self._session = session
        self._models = AIModelRepository(session)

    async def resolve_for_user(self, user_id: UUID) -> ResolvedAIModel:
        """
        Pick the model for a user's request.

        Raises:
            ConfigurationError: if no active model is available at any level
        """
        model = await self._models.get_user_preferred_model(user_id)
        if model is not None:
            return ResolvedAIModel(model=to_descriptor(model), source=ModelSource.USER_PREFERENCE)

        model = await self._models.get_tier_model_for_user(user_id)
        if model is not None:
            return ResolvedAIModel(model=to_descriptor(model), source=ModelSource.TIER_DEFAULT)

        model = await self._models.get_default_model()
        if model is not None:
            return ResolvedAIModel(model=to_descriptor(model), source=ModelSource.SYSTEM_DEFAULT)

        logger.error(f"No active AI model available for user {user_id}")
        raise ConfigurationError("No active default AI model configured")

    async def list_active(self) -> List[AIModelDescriptor]:
        return [to_descriptor(model) for model in await self._models.list_active()]

    async def set_preference(self, user_id: UUID, model_id: Optional[UUID]) -> Optional[AIModelDescriptor]:
        """
        Choose a personal model, or clear the choice with None.

        Raises:
            NotFoundError: if the model does not exist or is inactive
        """
        if model_id is None:
            await self._models.delete_preference(user_id)
            logger.info(f"Cleared AI model preference for user {user_id}")
            return None

        model = await self._models.get_active(model_id)
        if model is None:
            raise NotFoundError(
                f"AI model {model_id} not found or inactive",
                operation="set_preference",
                table="ai_models",
            )
        await self._models.save_preference(user_id, model.id)
        logger.info(f"User {user_id} prefers AI model {model.model_name}")
        return to_descriptor(model)
