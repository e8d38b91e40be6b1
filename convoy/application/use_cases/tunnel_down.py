"""
Tunnel Down Use Case

Closes the bastion SSH tunnel through its control socket in the
environment directory.
"""

import logging
import os

from convoy.domain.errors import NotFoundError, SubprocessError
from convoy.domain.ports.output_port import OutputPort
from convoy.domain.ports.process_runner_port import ProcessRunnerPort

logger = logging.getLogger(__name__)

CONTROL_SOCKET = "bastion.sock"
SSH_NOT_CONNECTED = 255


class TunnelDown:
    def __init__(self, runner: ProcessRunnerPort, env_dir: str) -> None:
        self.runner = runner
        self.env_dir = env_dir

    def command(self) -> list[str]:
        return ["ssh", "-S", CONTROL_SOCKET, "-O", "exit", ""]

    async def execute(self, output: OutputPort) -> None:
        if not os.path.isdir(self.env_dir):
            raise NotFoundError(
                "environment directory",
                message=f"unable to access folder '{self.env_dir}'",
            )

        result = await self.runner.run(self.command(), cwd=self.env_dir, check=False)
        if result.returncode == SSH_NOT_CONNECTED:
            logger.debug(result.output)
            raise NotFoundError(
                "tunnel", message="unable to bring the tunnel down: tunnel is not active"
            )
        if result.returncode != 0:
            raise SubprocessError(result.args, result.returncode, result.output)
        output.success("tunnel is down")
