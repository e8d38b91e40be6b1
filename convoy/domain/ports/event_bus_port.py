"""
Event Bus Port

Architectural Intent:
- How the scheduler announces service lifecycle events without knowing who
  listens (telemetry, tests)
"""

from typing import Protocol, Callable, Awaitable, runtime_checkable
from convoy.domain.events.event_base import DomainEvent

EventHandler = Callable[[DomainEvent], Awaitable[None]]


@runtime_checkable
class EventBusPort(Protocol):
    async def publish(self, events: list[DomainEvent]) -> None: ...

    def subscribe(self, event_type: type[DomainEvent], handler: EventHandler) -> None: ...

    def unsubscribe(self, event_type: type[DomainEvent], handler: EventHandler) -> None: ...
