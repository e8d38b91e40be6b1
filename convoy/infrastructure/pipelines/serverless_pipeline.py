"""
Serverless Function Pipeline

Architectural Intent:
- ServicePipeline for function stacks deployed with the Serverless framework
- Packaging happens inside `serverless deploy`, so build and push are no-ops
- Every command runs under nvm with the app's Node version

Design Decisions:
- Commands are bash scripts built as strings, because nvm is a shell
  function that only exists after sourcing nvm.sh
- Serverless v3 changed its flag syntax; both spellings are supported
- use_yarn rewrites the npm/npx part of a command only, never the nvm
  prefix
"""

from __future__ import annotations
import logging
import os
import shlex
from dataclasses import dataclass, field

from convoy.domain.entities.service import FunctionSettings, ServiceNode
from convoy.domain.ports.output_port import OutputPort
from convoy.domain.ports.service_pipeline_port import ServicePipeline
from convoy.infrastructure.adapters.nvm_toolchain import NvmToolchain, node_version_for
from convoy.infrastructure.config import ProjectConfig
from convoy.infrastructure.process import ProcessRunner

logger = logging.getLogger(__name__)


def npm_to_yarn(command: str) -> str:
    return command.replace("npm", "yarn").replace("npx", "yarn")


@dataclass(frozen=True)
class ResolvedFunctionApp:
    name: str
    env: str
    path: str
    file: str
    node_version: str
    serverless_version: str
    aws_region: str
    aws_profile: str
    use_yarn: bool = False
    force: bool = False
    create_domain: bool = False
    extra_env: dict[str, str] = field(default_factory=dict)

    @classmethod
    def resolve(cls, node: ServiceNode, config: ProjectConfig) -> "ResolvedFunctionApp":
        settings: FunctionSettings = node.settings
        if settings.path:
            path = settings.path
            if not os.path.isabs(path):
                path = os.path.join(config.root_dir, path)
        else:
            apps_path = config.apps_path
            if not os.path.isabs(apps_path):
                apps_path = os.path.join(config.root_dir, apps_path)
            path = os.path.join(apps_path, node.name)
        path = os.path.normpath(path)

        return cls(
            name=node.name,
            env=config.env,
            path=path,
            file=settings.file,
            node_version=node_version_for(path, settings.node_version),
            serverless_version=str(settings.serverless_version),
            aws_region=settings.aws_region or config.aws_region,
            aws_profile=settings.aws_profile or config.aws_profile,
            use_yarn=settings.use_yarn,
            force=settings.force,
            create_domain=settings.create_domain,
            extra_env=dict(settings.env),
        )


class ServerlessPipeline(ServicePipeline):
    def __init__(
        self,
        node: ServiceNode,
        config: ProjectConfig,
        toolchain: NvmToolchain,
        runner: ProcessRunner,
    ) -> None:
        self.name = node.name
        self.app = ResolvedFunctionApp.resolve(node, config)
        self._toolchain = toolchain
        self._runner = runner
        self._debug = config.log_level.lower() in ("debug", "trace")

    async def build(self, output: OutputPort) -> None:
        pass

    async def push(self, output: OutputPort) -> None:
        pass

    async def deploy(self, output: OutputPort) -> None:
        await self._toolchain.ensure(output)
        with output.step(f"installing node {self.app.node_version}"):
            await self._bash(self._nvm_install_script(), output)
        with output.step("installing dependencies"):
            await self._bash(self._tool_script("npm install --save-dev"), output)
        if self.app.create_domain:
            await self.create_domain(output)
        with output.step("running serverless deploy"):
            await self._bash(self._tool_script(self._serverless_command("deploy")), output)
        output.success("deployment completed")

    async def destroy(self, output: OutputPort, auto_approve: bool) -> None:
        await self._toolchain.ensure(output)
        with output.step("running serverless remove"):
            await self._bash(self._tool_script(self._serverless_command("remove")), output)
        if self.app.create_domain:
            await self.remove_domain(output)
        output.success("destroying completed")

    async def create_domain(self, output: OutputPort) -> None:
        with output.step("creating custom domain"):
            await self._bash(self._tool_script(self._domain_command("create_domain")), output)

    async def remove_domain(self, output: OutputPort) -> None:
        with output.step("removing custom domain"):
            await self._bash(self._tool_script(self._domain_command("delete_domain")), output)

    def explain(self) -> str:
        lines = [
            f"# {self.app.name}: serverless v{self.app.serverless_version} in {self.app.path}",
            f"cd {shlex.quote(self.app.path)}",
            self._nvm_install_script(),
            self._tool_script("npm install --save-dev"),
        ]
        if self.app.create_domain:
            lines.append(self._tool_script(self._domain_command("create_domain")))
        lines.append(self._tool_script(self._serverless_command("deploy")))
        return "\n".join(lines)

    def _nvm_source(self) -> str:
        return f"source {shlex.quote(os.path.join(self._toolchain.nvm_dir, 'nvm.sh'))}"

    def _nvm_install_script(self) -> str:
        return f"{self._nvm_source()} && nvm install {shlex.quote(self.app.node_version)}"

    def _tool_script(self, command: str) -> str:
        if self.app.use_yarn:
            command = npm_to_yarn(command)
        return f"{self._nvm_source()} && nvm use {shlex.quote(self.app.node_version)} && {command}"

    def _serverless_command(self, action: str) -> str:
        app = self.app
        if app.serverless_version == "3":
            flags = [
                f"--config={shlex.quote(app.file)}",
                f"--param={shlex.quote('service=' + app.name)}",
                f"--region={shlex.quote(app.aws_region)}",
                f"--aws-profile={shlex.quote(app.aws_profile)}",
                f"--stage={shlex.quote(app.env)}",
                "--verbose",
            ]
        else:
            flags = [
                "--config", shlex.quote(app.file),
                "--service", shlex.quote(app.name),
                "--verbose",
                "--region", shlex.quote(app.aws_region),
                "--aws-profile", shlex.quote(app.aws_profile),
                "--stage", shlex.quote(app.env),
            ]
        if action == "deploy" and app.force:
            flags.append("--force")
        return " ".join(["npx", "serverless", action, *flags])

    def _domain_command(self, action: str) -> str:
        app = self.app
        return " ".join([
            "npx", "serverless", action,
            "--verbose",
            "--region", shlex.quote(app.aws_region),
            "--aws-profile", shlex.quote(app.aws_profile),
            "--stage", shlex.quote(app.env),
        ])

    async def _bash(self, script: str, output: OutputPort) -> None:
        logger.debug("%s: %s", self.name, script)
        await self._runner.run(
            ["bash", "-xvc" if self._debug else "-c", script],
            output,
            cwd=self.app.path,
            env=self.app.extra_env,
        )
