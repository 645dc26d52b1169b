"""
Dependency Injection Providers for Study Subscriptions

Provides FastAPI dependencies for database sessions and the lifecycle
services. Every service built for a request shares the request's session,
so one request is one transaction.
"""

from typing import Annotated, AsyncGenerator

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.infrastructure.db.database import get_session
from app.infrastructure.services.activation_service import SubscriptionActivationService
from app.infrastructure.services.ai_model_service import AIModelService
from app.infrastructure.services.referral_service import ReferralService
from app.infrastructure.services.selection_service import SelectionService


# Type alias for session dependency
SessionDep = Annotated[AsyncSession, Depends(get_session)]


async def get_activation_service(
    session: SessionDep,
) -> AsyncGenerator[SubscriptionActivationService, None]:
    """
    Dependency provider for SubscriptionActivationService.

    Usage:
        @router.get("/subscriptions/entitlement")
        async def get_entitlement(service: ActivationServiceDep):
            ...
    """
    yield SubscriptionActivationService(session)


async def get_referral_service(
    session: SessionDep,
) -> AsyncGenerator[ReferralService, None]:
    yield ReferralService(session)


async def get_selection_service(
    session: SessionDep,
) -> AsyncGenerator[SelectionService, None]:
    yield SelectionService(session)


async def get_ai_model_service(
    session: SessionDep,
) -> AsyncGenerator[AIModelService, None]:
    yield AIModelService(session)


# Type aliases for service dependencies
ActivationServiceDep = Annotated[
    SubscriptionActivationService,
    Depends(get_activation_service)
]
ReferralServiceDep = Annotated[
    ReferralService,
    Depends(get_referral_service)
]
SelectionServiceDep = Annotated[
    SelectionService,
    Depends(get_selection_service)
]
AIModelServiceDep = Annotated[
    AIModelService,
    Depends(get_ai_model_service)
]
