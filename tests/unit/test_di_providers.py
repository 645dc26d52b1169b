"""
Unit tests for Dependency Injection providers.

Validates that:
- the event bus provider returns one cached instance
- every service built for a request shares the request's session
- services can be independently instantiated for testing
"""

import inspect
from unittest.mock import MagicMock

import pytest

from app.domain.events import SubscriptionActivated
from app.infrastructure.db.dependencies import (
    get_activation_service,
    get_ai_model_service,
    get_referral_service,
    get_selection_service,
)
from app.infrastructure.services.activation_service import SubscriptionActivationService
from app.infrastructure.services.event_bus import get_event_bus


class TestDIProviders:
    """Tests for the provider functions."""

    def test_event_bus_provider_is_cached(self):
        get_event_bus.cache_clear()

        assert get_event_bus() is get_event_bus()
        assert len(get_event_bus().handlers_for(SubscriptionActivated)) == 1

        get_event_bus.cache_clear()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("provider", [
        get_activation_service,
        get_referral_service,
        get_selection_service,
        get_ai_model_service,
    ])
    async def test_services_share_request_session(self, provider):
        session = MagicMock()

        service = await provider(session).__anext__()

        assert service._session is session

    @pytest.mark.asyncio
    async def test_activation_service_uses_process_bus(self):
        service = await get_activation_service(MagicMock()).__anext__()
        assert service._event_bus is get_event_bus()


class TestDIOverrides:
    """Tests validating DI override pattern for testing."""

    def test_activation_service_accepts_bus_and_settings(self):
        sig = inspect.signature(SubscriptionActivationService.__init__)
        params = [name for name in sig.parameters if name != "self"]
        assert params == ["session", "event_bus", "settings"]
