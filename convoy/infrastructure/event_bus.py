"""
Event Bus Infrastructure

Architectural Intent:
- In-memory delivery of service lifecycle events to async observers
- Handlers run in subscription order on the publisher's task, so the
  scheduler sees events delivered before it starts the next service
- A subscription to a base class receives every subclass event

Design Decisions:
- A failing handler is logged and the remaining handlers still run; observers
  never change the outcome of a run
"""

import logging
from convoy.domain.events.event_base import DomainEvent
from convoy.domain.ports.event_bus_port import EventHandler

logger = logging.getLogger(__name__)


class EventBus:
    def __init__(self) -> None:
        self._subscriptions: list[tuple[type[DomainEvent], EventHandler]] = []

    async def publish(self, events: list[DomainEvent]) -> None:
        for event in events:
            for event_type, handler in list(self._subscriptions):
                if isinstance(event, event_type):
                    await self._deliver(event, handler)

    async def _deliver(self, event: DomainEvent, handler: EventHandler) -> None:
        try:
            await handler(event)
        except Exception:
            logger.exception(
                "Handler %s failed on %s",
                getattr(handler, "__qualname__", handler),
                type(event).__name__,
                extra={"service": event.aggregate_id},
            )

    def subscribe(self, event_type: type[DomainEvent], handler: EventHandler) -> None:
        self._subscriptions.append((event_type, handler))
        logger.debug(
            "Subscribed %s to %s", getattr(handler, "__qualname__", handler), event_type.__name__
        )

    def unsubscribe(self, event_type: type[DomainEvent], handler: EventHandler) -> None:
        self._subscriptions = [
            (t, h) for t, h in self._subscriptions if not (t is event_type and h == handler)
        ]

    def subscriber_count(self, event_type: type[DomainEvent]) -> int:
        return sum(1 for t, _ in self._subscriptions if t is event_type)
