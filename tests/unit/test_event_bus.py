"""
Unit tests for the in-process event bus.
"""

from uuid import uuid4

import pytest

from app.domain.events import EventBus, SubscriptionActivated
from app.infrastructure.services.event_bus import award_referral_points, build_event_bus


def _event(**overrides):
    values = {
        "subscription_id": uuid4(),
        "user_id": uuid4(),
        "tier_id": uuid4(),
        "previous_status": None,
        "previous_tier_id": None,
        "created": True,
    }
    values.update(overrides)
    return SubscriptionActivated(**values)


class TestEventBus:

    @pytest.mark.asyncio
    async def test_handlers_run_in_order_with_session(self):
        bus = EventBus()
        calls = []

        async def first(event, session):
            calls.append(("first", session))

        async def second(event, session):
            calls.append(("second", session))

        bus.subscribe(SubscriptionActivated, first)
        bus.subscribe(SubscriptionActivated, second)

        await bus.publish(_event(), "session")

        assert calls == [("first", "session"), ("second", "session")]

    @pytest.mark.asyncio
    async def test_handler_errors_propagate(self):
        bus = EventBus()

        async def failing(event, session):
            raise RuntimeError("boom")

        bus.subscribe(SubscriptionActivated, failing)

        with pytest.raises(RuntimeError, match="boom"):
            await bus.publish(_event(), None)

    @pytest.mark.asyncio
    async def test_publish_without_handlers_is_noop(self):
        await EventBus().publish(_event(), None)

    def test_events_are_immutable(self):
        event = _event()
        with pytest.raises(AttributeError):
            event.created = False

    def test_default_bus_awards_referral_points(self):
        bus = build_event_bus()
        assert bus.handlers_for(SubscriptionActivated) == [award_referral_points]
