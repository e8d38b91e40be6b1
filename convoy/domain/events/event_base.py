"""
Domain Events Module

Architectural Intent:
- Immutable records of what happened to one service during a run
- aggregate_id is the service name; observers subscribe through the
  EventBusPort and never reach into the scheduler
"""

from dataclasses import dataclass, field, fields
from datetime import datetime, UTC
from typing import Any


@dataclass(frozen=True)
class DomainEvent:
    occurred_at: str = field(
        default_factory=lambda: datetime.now(UTC).isoformat(), init=False, repr=False
    )
    aggregate_id: str = ""

    def to_dict(self) -> dict[str, Any]:
        data = {f.name: getattr(self, f.name) for f in fields(self)}
        data["event_type"] = type(self).__name__
        return data
