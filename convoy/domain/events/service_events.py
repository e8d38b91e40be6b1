"""
Service Lifecycle Events

Published by the GraphScheduler as each node changes state. The
aggregate_id of every event is the service name and direction is the
Direction name ("UP" or "DOWN").
"""

from dataclasses import dataclass

from convoy.domain.events.event_base import DomainEvent


@dataclass(frozen=True)
class ServiceEvent(DomainEvent):
    direction: str = ""

    @property
    def service(self) -> str:
        return self.aggregate_id


@dataclass(frozen=True)
class ServiceStarted(ServiceEvent):
    pass


@dataclass(frozen=True)
class ServiceSucceeded(ServiceEvent):
    duration_ms: float = 0.0


@dataclass(frozen=True)
class ServiceFailed(ServiceEvent):
    duration_ms: float = 0.0
    error: str = ""


@dataclass(frozen=True)
class ServiceSkipped(ServiceEvent):
    reason: str = ""
