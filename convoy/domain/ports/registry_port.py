"""
Registry Port

Architectural Intent:
- Port interface for publishing built images to a registry
"""

from typing import Protocol, Sequence, runtime_checkable

from convoy.domain.ports.output_port import OutputPort
from convoy.domain.value_objects.registry_credentials import RegistryCredentials


@runtime_checkable
class RegistryPort(Protocol):
    async def push(
        self,
        repository_uri: str,
        credentials: RegistryCredentials,
        image_uri: str,
        tags: Sequence[str],
        output: OutputPort,
    ) -> None:
        """Log in to the registry and push image_uri:tag for every tag."""
        ...
