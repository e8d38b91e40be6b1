"""
Container Platform Port

Architectural Intent:
- Port interface for the container control plane (ECS + ECR + STS)
- Every call may block on the network; adapters run them off the event loop

Design Decisions:
- Uses Protocol for structural typing (no inheritance needed)
- Lookups that can legitimately miss return None; a missing cluster raises
  NotFoundError because no caller can recover from it
"""

from typing import Any, Optional, Protocol, Sequence, runtime_checkable

from convoy.domain.value_objects.registry_credentials import RegistryCredentials


@runtime_checkable
class ContainerPlatformPort(Protocol):
    """Port for container platform operations."""

    region: str

    async def get_account_id(self) -> str:
        """Account that owns the current credentials."""
        ...

    async def ensure_repository(self, name: str) -> str:
        """Create the image repository if absent. Returns its URI."""
        ...

    async def get_registry_credentials(self) -> RegistryCredentials:
        """Short-lived registry login."""
        ...

    async def describe_task_definition(self, task_definition: str) -> dict[str, Any]:
        """Task definition by family or ARN."""
        ...

    async def list_task_definitions(self, family_prefix: str) -> list[str]:
        """Task definition ARNs for a family prefix, newest first."""
        ...

    async def deregister_task_definition(self, arn: str) -> None:
        ...

    async def find_service(self, cluster: str, candidates: Sequence[str]) -> Optional[str]:
        """First candidate service name that exists in the cluster."""
        ...

    async def find_running_task(self, cluster: str, service: str) -> Optional[str]:
        """ARN of one running task of the service, if any."""
        ...

    async def execute_command(
        self, cluster: str, task: str, container: str, command: str
    ) -> dict[str, Any]:
        """Start an interactive command; returns the session descriptor."""
        ...
