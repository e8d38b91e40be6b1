"""
SSM Session Adapter

Architectural Intent:
- Implements SessionBridgePort with the AWS session-manager-plugin
- The plugin takes over the operator's terminal until the remote command
  exits
"""

import json
import logging
import shutil
from typing import Any

from convoy.domain.errors import NotFoundError
from convoy.infrastructure.process import ProcessRunner

logger = logging.getLogger(__name__)

SSM_PLUGIN = "session-manager-plugin"
START_SESSION = "StartSession"


class SsmSessionAdapter:
    def __init__(self, runner: ProcessRunner, region: str, plugin: str = SSM_PLUGIN) -> None:
        self._runner = runner
        self._region = region
        self._plugin = plugin

    async def start(self, session: dict[str, Any]) -> int:
        if shutil.which(self._plugin) is None:
            raise NotFoundError(
                self._plugin,
                message=f"{self._plugin} not found on PATH; install the AWS Session Manager plugin",
            )
        logger.info("Starting session %s", session.get("SessionId", ""))
        return await self._runner.interactive(
            [self._plugin, json.dumps(session), self._region, START_SESSION]
        )
