"""
Exec Command Use Case

Architectural Intent:
- Runs a command inside a running container of an ECS service and attaches
  the operator's terminal to it through a session bridge
"""

import logging

from convoy.domain.errors import NotFoundError
from convoy.domain.ports.container_platform_port import ContainerPlatformPort
from convoy.domain.ports.session_bridge_port import SessionBridgePort

logger = logging.getLogger(__name__)


class ExecCommand:
    def __init__(
        self,
        platform: ContainerPlatformPort,
        bridge: SessionBridgePort,
        env: str,
    ) -> None:
        self.platform = platform
        self.bridge = bridge
        self.env = env

    async def execute(self, service: str, cluster: str, command: str) -> int:
        service_name = f"{self.env}-{service}"
        logger.info("service name: %s, cluster name: %s", service_name, cluster)

        task = await self.platform.find_running_task(cluster, service_name)
        if task is None:
            raise NotFoundError("running task", message="running task not found")

        session = await self.platform.execute_command(cluster, task, service, command)
        return await self.bridge.start(session)
