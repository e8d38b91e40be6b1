"""
Output Port

Architectural Intent:
- The per-service output sink that pipelines and adapters write to
- Keeps the domain independent of how lines reach the terminal

Design Decisions:
- Uses Protocol for structural typing; the infrastructure NodeOutput
  satisfies it without inheriting from it
"""

from typing import ContextManager, Protocol, runtime_checkable


@runtime_checkable
class OutputPort(Protocol):
    name: str

    def write(self, data: str) -> int: ...

    def flush(self) -> None: ...

    def info(self, message: str) -> None: ...

    def warning(self, message: str) -> None: ...

    def success(self, message: str) -> None: ...

    def step(self, title: str) -> ContextManager[None]: ...
