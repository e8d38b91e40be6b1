"""
nvm Toolchain

Architectural Intent:
- Makes sure the pinned nvm release is installed before any serverless
  service runs
- Shared by every serverless pipeline in a run

Design Decisions:
- ensure() is guarded by an asyncio.Lock and remembers success, so
  concurrently starting services install at most once
- The Node version of an app comes from its .nvmrc when present
"""

import asyncio
import logging
import os
import shlex
from pathlib import Path
from typing import Optional

from convoy.domain.ports.output_port import OutputPort
from convoy.infrastructure.process import ProcessRunner

logger = logging.getLogger(__name__)

NVM_INSTALL_URL = "https://raw.githubusercontent.com/nvm-sh/nvm/v{version}/install.sh"


def node_version_for(app_path: str, default: str) -> str:
    nvmrc = Path(app_path) / ".nvmrc"
    if nvmrc.is_file():
        version = nvmrc.read_text().strip()
        if version:
            return version
    return default


class NvmToolchain:
    def __init__(
        self,
        runner: ProcessRunner,
        nvm_version: str,
        root_dir: str,
        nvm_dir: Optional[str] = None,
    ) -> None:
        self._runner = runner
        self.nvm_version = nvm_version
        self._root_dir = root_dir
        self.nvm_dir = nvm_dir or os.environ.get("NVM_DIR") or str(Path.home() / ".nvm")
        self._lock = asyncio.Lock()
        self._ready = False

    @property
    def nvm_sh(self) -> str:
        return os.path.join(self.nvm_dir, "nvm.sh")

    async def ensure(self, output: Optional[OutputPort] = None) -> str:
        """Install nvm unless the pinned version is already present. Returns NVM_DIR."""
        async with self._lock:
            if self._ready:
                return self.nvm_dir
            if await self._installed_version() == self.nvm_version:
                logger.debug("nvm %s found in %s", self.nvm_version, self.nvm_dir)
            else:
                await self._install(output)
            self._ready = True
            return self.nvm_dir

    async def _installed_version(self) -> str:
        if not os.path.isfile(self.nvm_sh):
            return ""
        result = await self._runner.run(
            ["bash", "-c", f"source {shlex.quote(self.nvm_sh)} && nvm --version"],
            cwd=self._root_dir,
            check=False,
        )
        if result.returncode != 0:
            logger.debug("Checking nvm version failed: %s", result.output)
            return ""
        lines = result.output.strip().splitlines()
        return lines[-1].strip() if lines else ""

    async def _install(self, output: Optional[OutputPort]) -> None:
        logger.info("Installing nvm %s into %s", self.nvm_version, self.nvm_dir)
        os.makedirs(self.nvm_dir, exist_ok=True)
        url = NVM_INSTALL_URL.format(version=self.nvm_version)
        await self._runner.run(
            ["bash", "-c", f"curl -o- {shlex.quote(url)} | bash"],
            output,
            cwd=self._root_dir,
            env={"NVM_DIR": self.nvm_dir},
        )
