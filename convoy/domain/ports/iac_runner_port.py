"""
Infrastructure-as-Code Runner Port

Architectural Intent:
- Port interface for running the IaC tool against one stack
- Adapters decide whether the tool runs natively or in a container
"""

from typing import Protocol, Sequence, runtime_checkable

from convoy.domain.ports.output_port import OutputPort


@runtime_checkable
class IacRunnerPort(Protocol):
    async def run(self, args: Sequence[str], output: OutputPort) -> None:
        """Run one tool subcommand, e.g. ["apply", "-auto-approve"]."""
        ...
