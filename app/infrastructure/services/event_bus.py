"""
Event Bus Wiring

Registers the lifecycle's event handlers on the process-wide bus.
"""

from functools import lru_cache

from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.events import EventBus, SubscriptionActivated
from app.infrastructure.services.referral_award_service import ReferralAwardService


async def award_referral_points(event: SubscriptionActivated, session: AsyncSession) -> None:
    """Run the referral award engine for an activation."""
    await ReferralAwardService(session).handle_subscription_activated(event)


def build_event_bus() -> EventBus:
    """Create a bus with every lifecycle handler subscribed."""
    bus = EventBus()
    bus.subscribe(SubscriptionActivated, award_referral_points)
    return bus


@lru_cache
def get_event_bus() -> EventBus:
    """Get the cached process-wide event bus."""
    return build_event_bus()
