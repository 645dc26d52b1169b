"""
AI Model API Routes

Model catalog, the resolved model for the caller and personal preference.
"""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends

from app.api.dependencies import AIModelServiceDep, get_current_user_id
from app.domain.ai_model import AIModelDescriptor, ResolvedAIModel, SetPreferenceRequest


router = APIRouter()


@router.get("/ai-models", response_model=List[AIModelDescriptor])
async def list_models(service: AIModelServiceDep):
    """Active models users can choose from."""
    return await service.list_active()


@router.get("/ai-models/resolved", response_model=ResolvedAIModel)
async def get_resolved_model(
    service: AIModelServiceDep,
    user_id: UUID = Depends(get_current_user_id),
):
    return await service.resolve_for_user(user_id)


@router.put("/ai-models/preference", response_model=Optional[AIModelDescriptor])
async def set_preference(
    request: SetPreferenceRequest,
    service: AIModelServiceDep,
    user_id: UUID = Depends(get_current_user_id),
):
    """Choose a personal model; a null id clears the choice."""
    return await service.set_preference(user_id, request.ai_model_id)
