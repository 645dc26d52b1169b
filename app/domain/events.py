"""
Domain Events

Explicit events published by the lifecycle use cases. Handlers are called
synchronously, in registration order, with the publisher's database
session, so every side effect commits or rolls back together with the
state transition that caused it.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, DefaultDict, List, Optional, Type
from uuid import UUID


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DomainEvent:
    """Base class for all domain events."""
    occurred_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc),
        kw_only=True,
    )


@dataclass(frozen=True)
class SubscriptionActivated(DomainEvent):
    """A subscription row was created, reactivated, renewed or changed tier."""
    subscription_id: UUID
    user_id: UUID
    tier_id: UUID
    previous_status: Optional[str]
    previous_tier_id: Optional[UUID]
    created: bool


Handler = Callable[[Any, Any], Awaitable[Any]]


class EventBus:
    """
    In-process synchronous dispatcher.

    Exceptions raised by a handler propagate to the publisher, which lets
    a failed side effect abort the enclosing transaction.
    """

    def __init__(self) -> None:
        self._handlers: DefaultDict[Type[DomainEvent], List[Handler]] = defaultdict(list)

    def subscribe(self, event_type: Type[DomainEvent], handler: Handler) -> None:
        """Register a handler for an event type."""
        self._handlers[event_type].append(handler)

    def handlers_for(self, event_type: Type[DomainEvent]) -> List[Handler]:
        return list(self._handlers.get(event_type, []))

    async def publish(self, event: DomainEvent, session: Any) -> None:
        """Dispatch an event to every handler registered for its type."""
        handlers = self.handlers_for(type(event))
        logger.debug(f"Publishing {type(event).__name__} to {len(handlers)} handler(s)")
        for handler in handlers:
            await handler(event, session)
