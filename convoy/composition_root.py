"""
Composition Root

Architectural Intent:
- Dependency injection composition root for convoy
- Single place where adapters, pipelines and use cases are wired together
- No adapter instantiation should occur outside this module (except CLI)

Design Decisions:
- Uses a simple dataclass container instead of a DI framework
- Shared adapters are built eagerly; use cases are built per command because
  each one needs a graph for the apps it touches
- The AWS adapter, registry host and terraform credentials are resolved
  lazily, so commands that never touch AWS work without a valid profile
- Telemetry is attached to the event bus only when an endpoint is configured
"""

import logging
from dataclasses import dataclass, replace
from typing import Optional, TextIO

from convoy.application.orchestration.graph_scheduler import GraphScheduler
from convoy.application.orchestration.pipeline_driver import PipelineDriver
from convoy.application.use_cases.deploy_service import DeployService
from convoy.application.use_cases.down_apps import DownApps
from convoy.application.use_cases.exec_command import ExecCommand
from convoy.application.use_cases.manage_infra import ManageInfra
from convoy.application.use_cases.tunnel_down import TunnelDown
from convoy.application.use_cases.up_apps import UpApps
from convoy.domain.entities.dependency_graph import DependencyGraph
from convoy.infrastructure.adapters.aws_adapter import AwsAdapter, create_aws_session
from convoy.infrastructure.adapters.console_prompt import ConsolePrompt
from convoy.infrastructure.adapters.docker_adapter import DockerAdapter
from convoy.infrastructure.adapters.nvm_toolchain import NvmToolchain
from convoy.infrastructure.adapters.ssm_session_adapter import SsmSessionAdapter
from convoy.infrastructure.adapters.terraform_adapter import TerraformAdapter
from convoy.infrastructure.config import ProjectConfig
from convoy.infrastructure.event_bus import EventBus
from convoy.infrastructure.output import OutputAggregator
from convoy.infrastructure.pipelines.pipeline_factory import PipelineFactory
from convoy.infrastructure.process import ProcessRunner
from convoy.infrastructure.telemetry.otel_exporter import OTELExporter, create_exporter

logger = logging.getLogger(__name__)

REGISTRY_HOST = "{account}.dkr.ecr.{region}.amazonaws.com"


@dataclass
class ConvoyContainer:
    """DI container holding all wired dependencies."""

    config: ProjectConfig
    outputs: OutputAggregator
    runner: ProcessRunner
    docker: DockerAdapter
    prompt: ConsolePrompt
    toolchain: NvmToolchain
    event_bus: EventBus
    scheduler: GraphScheduler
    telemetry: Optional[OTELExporter] = None
    aws_adapter: Optional[AwsAdapter] = None

    @property
    def aws(self) -> AwsAdapter:
        """Adapter for the project region/profile, created on first use."""
        if self.aws_adapter is None:
            self.aws_adapter = self.aws_for(self.config.aws_region, self.config.aws_profile)
        return self.aws_adapter

    def aws_for(self, region: str, profile: str) -> AwsAdapter:
        return AwsAdapter(create_aws_session(region, profile), self.config.endpoint_url)

    def pipeline_factory(self, config: Optional[ProjectConfig] = None) -> PipelineFactory:
        return PipelineFactory(
            config or self.config,
            self.aws,
            self.docker,
            self.docker,
            self.prompt,
            self.runner,
            self.toolchain,
            aws_factory=self.aws_for,
        )

    def graph(self, names: Optional[list[str]] = None) -> DependencyGraph:
        """Graph of every app, or of `names` only with edges to other apps dropped."""
        if names is None:
            return DependencyGraph.build(self.config.service_nodes())
        keep = set(names)
        return DependencyGraph.build(
            replace(node, depends_on=tuple(d for d in node.depends_on if d in keep))
            for node in (self.config.node_for(name) for name in sorted(keep))
        )

    async def resolve_registry(self, lookup_account: bool = True) -> str:
        """
        Default the registry host from the caller's account. Without
        lookup_account the account id is left as a placeholder.
        """
        if self.config.docker_registry:
            return self.config.docker_registry
        account = await self.aws.get_account_id() if lookup_account else "<account>"
        region = self.aws.region or self.config.aws_region
        registry = REGISTRY_HOST.format(account=account, region=region)
        if lookup_account:
            logger.info("Using registry %s", registry)
            self.config = replace(self.config, docker_registry=registry)
        return registry

    def _driver(self, graph: DependencyGraph, config: Optional[ProjectConfig] = None) -> PipelineDriver:
        return PipelineDriver(graph, self.pipeline_factory(config), self.outputs)

    def up_apps(self, registry: str = "") -> UpApps:
        config = replace(self.config, docker_registry=registry) if registry else self.config
        graph = self.graph()
        return UpApps(graph, self.scheduler, self._driver(graph, config), self.outputs)

    def deploy_service(
        self,
        name: str,
        image: str = "",
        cluster: str = "",
        task_definition_arn: str = "",
    ) -> DeployService:
        config = self.config.with_ecs_overrides(
            name, image=image, cluster=cluster, task_definition_arn=task_definition_arn
        )
        node = config.node_for(name)
        graph = DependencyGraph.build([replace(node, depends_on=())])
        return DeployService(graph, self.scheduler, self._driver(graph, config), self.outputs)

    async def manage_infra(self) -> ManageInfra:
        stack = self.config.infra
        aws = self.aws
        if (stack.aws_region, stack.aws_profile) != (aws.region, aws.profile):
            aws = self.aws_for(stack.aws_region, stack.aws_profile)
        credentials = await aws.get_credentials_env()
        iac = TerraformAdapter(self.config, stack, self.runner, credentials)
        return ManageInfra(iac, self.outputs)

    async def down_apps(self, app: Optional[str] = None) -> DownApps:
        if app is not None:
            graph = self.graph([app])
            return DownApps(graph, self.scheduler, self._driver(graph), self.outputs)
        graph = self.graph()
        return DownApps(
            graph, self.scheduler, self._driver(graph), self.outputs,
            infra=await self.manage_infra(),
        )

    def exec_command(self) -> ExecCommand:
        bridge = SsmSessionAdapter(self.runner, self.aws.region or self.config.aws_region)
        return ExecCommand(self.aws, bridge, self.config.env)

    def tunnel_down(self) -> TunnelDown:
        return TunnelDown(self.runner, self.config.env_dir)

    async def shutdown(self) -> None:
        if self.telemetry is not None:
            await self.telemetry.shutdown()


async def create_container(
    config: ProjectConfig,
    stream: Optional[TextIO] = None,
    aws: Optional[AwsAdapter] = None,
) -> ConvoyContainer:
    """Create and wire all dependencies."""
    outputs = OutputAggregator(stream=stream, plain_text=config.plain_text)
    runner = ProcessRunner()
    docker = DockerAdapter(runner)
    prompt = ConsolePrompt()
    toolchain = NvmToolchain(runner, config.nvm_version, config.root_dir)
    event_bus = EventBus()
    scheduler = GraphScheduler(event_bus)

    telemetry = None
    if config.telemetry.endpoint:
        telemetry = await create_exporter(
            endpoint=config.telemetry.endpoint,
            service_name=config.telemetry.service_name,
            environment=config.env or "development",
            insecure=config.telemetry.insecure,
        )
        telemetry.attach(event_bus)

    return ConvoyContainer(
        config=config,
        outputs=outputs,
        runner=runner,
        docker=docker,
        prompt=prompt,
        toolchain=toolchain,
        event_bus=event_bus,
        scheduler=scheduler,
        telemetry=telemetry,
        aws_adapter=aws,
    )
