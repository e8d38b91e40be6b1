"""
Terraform Adapter

Architectural Intent:
- Implements IacRunnerPort for one terraform stack
- Runs the pinned terraform natively, or inside the official
  hashicorp/terraform image when the project prefers a docker runtime

Design Decisions:
- Credentials and TF_LOG settings travel as environment variables; in the
  docker runtime they are passed by name (-e KEY) so secrets stay off argv
- The working directory is the environment directory in both runtimes
"""

import logging
import os
from typing import Mapping, Optional, Sequence

from convoy.domain.ports.output_port import OutputPort
from convoy.infrastructure.config import ProjectConfig, TerraformStackConfig
from convoy.infrastructure.process import ProcessRunner

logger = logging.getLogger(__name__)

TERRAFORM_IMAGE = "hashicorp/terraform"


class TerraformAdapter:
    def __init__(
        self,
        config: ProjectConfig,
        stack: TerraformStackConfig,
        runner: ProcessRunner,
        credentials_env: Optional[Mapping[str, str]] = None,
    ) -> None:
        self._config = config
        self._stack = stack
        self._runner = runner
        self._credentials_env = dict(credentials_env or {})

    def environment(self) -> dict[str, str]:
        env = {
            "ENV": self._config.env,
            "AWS_PROFILE": self._stack.aws_profile,
            "AWS_REGION": self._stack.aws_region,
            "TF_LOG": self._config.tf_log,
            "TF_LOG_PATH": self._config.tf_log_path,
        }
        env.update(self._credentials_env)
        return {k: v for k, v in env.items() if v}

    def command(self, args: Sequence[str]) -> list[str]:
        if self._config.prefer_runtime == "native":
            return ["terraform", *args]

        config = self._config
        command = [
            "docker", "run", "--rm",
            "-v", f"{config.infra_dir}:{config.infra_dir}",
            "-v", f"{config.env_dir}:{config.env_dir}",
            "-v", f"{os.path.join(config.home, '.aws')}:/root/.aws:ro",
            "-w", config.env_dir,
        ]
        if config.prefer_runtime == "docker-arm64":
            command += ["--platform", "linux/arm64"]
        for key in sorted(self.environment()):
            command += ["-e", key]
        command += [f"{TERRAFORM_IMAGE}:{self._stack.version}", *args]
        return command

    async def run(self, args: Sequence[str], output: OutputPort) -> None:
        logger.info("terraform %s (runtime=%s)", " ".join(args), self._config.prefer_runtime)
        await self._runner.run(
            self.command(args),
            output,
            cwd=self._config.env_dir,
            env=self.environment(),
        )
