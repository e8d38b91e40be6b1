"""
Run Report DTO

Architectural Intent:
- Immutable outcome of one scheduler run, handed back to use cases and CLI
- Decouples the scheduler's internal bookkeeping from what callers see
"""

from dataclasses import dataclass, field

from convoy.domain.entities.service import Direction, PipelineState
from convoy.domain.errors import RunCancelledError


@dataclass(frozen=True)
class RunReport:
    direction: Direction
    states: dict[str, PipelineState]
    failures: dict[str, BaseException] = field(default_factory=dict)
    declined: tuple[str, ...] = ()
    cancelled: bool = False

    @property
    def succeeded(self) -> bool:
        return not self.failures

    def names_in(self, state: PipelineState) -> list[str]:
        return sorted(name for name, s in self.states.items() if s is state)

    def failure_lines(self, include_cancelled: bool = True) -> list[str]:
        """One line per failed service, in completion order."""
        lines = []
        for name, error in self.failures.items():
            if not include_cancelled and isinstance(error, RunCancelledError):
                continue
            first_line = str(error).splitlines()[0] if str(error) else type(error).__name__
            lines.append(f"{name}: {first_line}")
        return lines
