"""
Domain Events Package

Architectural Intent:
- Contains the service lifecycle events raised during a run
- Events are the only channel between the scheduler and its observers
"""

from convoy.domain.events.event_base import DomainEvent
from convoy.domain.events.service_events import (
    ServiceEvent,
    ServiceStarted,
    ServiceSucceeded,
    ServiceFailed,
    ServiceSkipped,
)

__all__ = [
    "DomainEvent",
    "ServiceEvent",
    "ServiceStarted",
    "ServiceSucceeded",
    "ServiceFailed",
    "ServiceSkipped",
]
