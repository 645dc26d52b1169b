"""
AI Model SQLModels

Registry of AI models with capabilities and pricing, plus the per-user
model preference. Consulted, never mutated, by the ledger engine.
"""

from typing import Optional
from uuid import UUID

from sqlmodel import Field

from app.infrastructure.db.models.base import BaseModel


class AIModel(BaseModel, table=True):
    """AI model catalog entry."""

    __tablename__ = "ai_models"

    provider: str = Field(..., max_length=20, index=True)
    model_name: str = Field(..., max_length=100, unique=True)
    display_name: str = Field(..., max_length=100)
    description: Optional[str] = Field(default=None)

    # Capabilities
    supports_vision: bool = Field(default=True)
    supports_caching: bool = Field(default=False)
    max_context_tokens: int = Field(...)
    max_output_tokens: int = Field(...)

    # Pricing (USD per 1M tokens)
    input_token_cost_per_million: float = Field(...)
    output_token_cost_per_million: float = Field(...)
    token_multiplier: float = Field(default=1.0, description="Multiplier relative to the default model")

    temperature_default: float = Field(default=0.7)
    is_default: bool = Field(default=False)
    is_active: bool = Field(default=True, index=True)


class UserAIPreference(BaseModel, table=True):
    """A user's personally chosen model."""

    __tablename__ = "user_ai_preferences"

    user_id: UUID = Field(..., unique=True, index=True, nullable=False)
    ai_model_id: UUID = Field(..., foreign_key="ai_models.id", nullable=False)
