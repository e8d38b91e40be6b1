"""
Deployment Driver Port

Architectural Intent:
- Port interface for rolling a container service onto a new image
- Owns the wait-until-stable loop so pipelines only state intent
"""

from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from convoy.domain.ports.output_port import OutputPort


@dataclass(frozen=True)
class DeploymentRequest:
    cluster: str
    service: str
    task_definition_arn: str
    image: str
    container_name: str
    timeout: int = 300
    unsafe: bool = False


@runtime_checkable
class DeploymentDriverPort(Protocol):
    async def deploy(self, request: DeploymentRequest, output: OutputPort) -> str:
        """
        Registers a revision with the new image, updates the service and waits
        for it to stabilise. Returns the new task definition ARN.
        Raises DeployTimeoutError past request.timeout.
        """
        ...
