"""
Domain Errors

Architectural Intent:
- Single taxonomy for every failure the orchestrator can report
- Graph errors are raised before any service task runs and abort the run
- All other errors are scoped to one service; the scheduler records them
  against the failing node and keeps unrelated branches running

Design Decisions:
- Every error derives from ConvoyError so the CLI can render them uniformly
- UserCancelledError is a deliberate operator decision, not a failure
- DeployTimeoutError also derives from the builtin TimeoutError so callers
  catching TimeoutError keep working
"""

from __future__ import annotations
from typing import Optional, Sequence

OUTPUT_TAIL_CHARS = 4000


class ConvoyError(Exception):
    """Base class for all convoy errors."""


class GraphError(ConvoyError):
    """The service dependency graph is structurally invalid."""


class CycleError(GraphError):
    def __init__(self, cycle: Sequence[str]) -> None:
        self.cycle = list(cycle)
        path = " -> ".join(self.cycle + self.cycle[:1])
        super().__init__(f"dependency cycle detected: {path}")


class UnknownDependencyError(GraphError):
    def __init__(self, service: str, missing: str) -> None:
        self.service = service
        self.missing = missing
        super().__init__(
            f"service '{service}' depends on unknown service '{missing}'"
        )


class DuplicateServiceError(GraphError):
    def __init__(self, names: Sequence[str]) -> None:
        self.names = sorted(names)
        super().__init__(f"duplicate service names: {self.names}")


class ValidationError(ConvoyError):
    def __init__(self, field: str, message: Optional[str] = None) -> None:
        self.field = field
        super().__init__(message or f"{field} must be specified")


class NotFoundError(ConvoyError):
    def __init__(self, resource: str, name: str = "", message: Optional[str] = None) -> None:
        self.resource = resource
        self.name = name
        if message is None:
            message = f"{resource} {name} not found" if name else f"{resource} not found"
        super().__init__(message)


class SubprocessError(ConvoyError):
    def __init__(self, command: Sequence[str] | str, returncode: int, output: str = "") -> None:
        self.command = command if isinstance(command, str) else " ".join(command)
        self.returncode = returncode
        self.output = output[-OUTPUT_TAIL_CHARS:]
        super().__init__(self._render())

    def _render(self) -> str:
        message = f"command failed (exit={self.returncode}): {self.command}"
        if self.output.strip():
            message += f"\n{self.output.rstrip()}"
        return message


class DeployTimeoutError(ConvoyError, TimeoutError):
    def __init__(self, service: str, timeout: float) -> None:
        self.service = service
        self.timeout = timeout
        super().__init__(
            f"service {service} did not become stable within {timeout:g}s"
        )


class UserCancelledError(ConvoyError):
    def __init__(self, service: str = "") -> None:
        self.service = service
        suffix = f" for {service}" if service else ""
        super().__init__(f"destroying was cancelled by the operator{suffix}")


class UpstreamAPIError(ConvoyError):
    def __init__(
        self,
        operation: str,
        code: str,
        message: str,
        service: Optional[str] = None,
    ) -> None:
        self.operation = operation
        self.code = code
        self.message = message
        self.service = service
        prefix = f"[{service}] " if service else ""
        super().__init__(f"{prefix}{operation} failed ({code}): {message}")

    def with_service(self, service: str) -> "UpstreamAPIError":
        return UpstreamAPIError(self.operation, self.code, self.message, service)


class RunCancelledError(ConvoyError):
    def __init__(self, service: str) -> None:
        self.service = service
        super().__init__(f"{service}: cancelled before completion")
