"""
Service Pipeline Port

Architectural Intent:
- Uniform lifecycle contract for every deployable kind of service
- The PipelineDriver drives nodes only through this interface, so adding a
  kind means adding a variant, not touching the scheduler

Design Decisions:
- ABC rather than Protocol: variants share no state but must implement
  every stage, and a missing stage should fail at construction
- Every stage is async; explain() is synchronous and side-effect free
"""

from abc import ABC, abstractmethod

from convoy.domain.ports.output_port import OutputPort


class ServicePipeline(ABC):
    """Build, push, deploy and destroy stages of one service."""

    name: str

    @abstractmethod
    async def build(self, output: OutputPort) -> None:
        """Produce the deployable artifact."""
        pass

    @abstractmethod
    async def push(self, output: OutputPort) -> None:
        """Publish the artifact to where the deploy stage reads it."""
        pass

    @abstractmethod
    async def deploy(self, output: OutputPort) -> None:
        """Roll the published artifact out."""
        pass

    @abstractmethod
    async def destroy(self, output: OutputPort, auto_approve: bool) -> None:
        """Remove the service. May raise UserCancelledError when declined."""
        pass

    @abstractmethod
    def explain(self) -> str:
        """Shell-like description of what the stages would do."""
        pass
