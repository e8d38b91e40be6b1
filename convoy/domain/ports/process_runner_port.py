"""
Process Runner Port

Architectural Intent:
- Port interface for running local tools to completion
- Cancelling the awaiting task must terminate the child
"""

from dataclasses import dataclass
from typing import Mapping, Optional, Protocol, Sequence, runtime_checkable

from convoy.domain.ports.output_port import OutputPort


@dataclass(frozen=True)
class ProcessResult:
    args: tuple[str, ...]
    returncode: int
    output: str = ""


@runtime_checkable
class ProcessRunnerPort(Protocol):
    async def run(
        self,
        args: Sequence[str],
        output: Optional[OutputPort] = None,
        *,
        cwd: Optional[str] = None,
        env: Optional[Mapping[str, str]] = None,
        stdin_data: Optional[bytes] = None,
        check: bool = True,
    ) -> ProcessResult:
        """Run to completion; raises SubprocessError on failure when check is set."""
        ...
