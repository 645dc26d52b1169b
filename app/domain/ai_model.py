"""
AI Model Domain Models

Descriptors for the model catalog and the result of resolving which
model serves a given user.
"""

from enum import Enum
from typing import Optional
from uuid import UUID
from pydantic import BaseModel, Field


class AIProvider(str, Enum):
    """Supported AI providers."""
    GEMINI = "gemini"
    CLAUDE = "claude"
    OPENAI = "openai"


class ModelSource(str, Enum):
    """Which level of the cascade produced the resolved model."""
    USER_PREFERENCE = "user_preference"
    TIER_DEFAULT = "tier_default"
    SYSTEM_DEFAULT = "system_default"


class AIModelDescriptor(BaseModel):
    """Model catalog entry as exposed to the AI invocation component."""
    id: str
    provider: AIProvider
    model_name: str
    display_name: str
    description: Optional[str] = None
    supports_vision: bool = True
    supports_caching: bool = False
    max_context_tokens: int
    max_output_tokens: int
    input_token_cost_per_million: float
    output_token_cost_per_million: float
    token_multiplier: float = 1.0
    temperature_default: float = 0.7
    is_default: bool = False


class ResolvedAIModel(BaseModel):
    """The model to use for a user's request and where it came from."""
    model: AIModelDescriptor
    source: ModelSource


class SetPreferenceRequest(BaseModel):
    """Request DTO for choosing a personal model. None clears the preference."""
    ai_model_id: Optional[UUID] = Field(default=None, description="Active AI model ID")
