"""
Pipeline Factory

Architectural Intent:
- Maps a ServiceNode to its ServicePipeline variant by kind
- Owns the collaborators pipelines share, so per-app AWS overrides are
  built here, before any service starts running

Design Decisions:
- Container apps that override region or profile get their own AwsAdapter
  and EcsDeployer, cached per (region, profile)
"""

from __future__ import annotations
import logging
from typing import Callable, Optional

from convoy.domain.entities.service import ContainerSettings, ServiceKind, ServiceNode
from convoy.domain.ports.confirmation_port import ConfirmationPort
from convoy.domain.ports.image_builder_port import ImageBuilderPort
from convoy.domain.ports.registry_port import RegistryPort
from convoy.domain.ports.service_pipeline_port import ServicePipeline
from convoy.infrastructure.adapters.aws_adapter import AwsAdapter
from convoy.infrastructure.adapters.ecs_deployer import EcsDeployer
from convoy.infrastructure.adapters.nvm_toolchain import NvmToolchain
from convoy.infrastructure.config import ProjectConfig
from convoy.infrastructure.pipelines.alias_pipeline import AliasPipeline
from convoy.infrastructure.pipelines.ecs_pipeline import EcsPipeline
from convoy.infrastructure.pipelines.serverless_pipeline import ServerlessPipeline
from convoy.infrastructure.process import ProcessRunner

logger = logging.getLogger(__name__)

AwsAdapterFactory = Callable[[str, str], AwsAdapter]


class PipelineFactory:
    def __init__(
        self,
        config: ProjectConfig,
        aws: AwsAdapter,
        builder: ImageBuilderPort,
        registry: RegistryPort,
        prompt: ConfirmationPort,
        runner: ProcessRunner,
        toolchain: NvmToolchain,
        aws_factory: Optional[AwsAdapterFactory] = None,
        deployer_factory: Callable[[AwsAdapter], EcsDeployer] = EcsDeployer,
    ) -> None:
        self._config = config
        self._builder = builder
        self._registry = registry
        self._prompt = prompt
        self._runner = runner
        self._toolchain = toolchain
        self._aws_factory = aws_factory
        self._deployer_factory = deployer_factory
        self._platforms: dict[tuple[str, str], tuple[AwsAdapter, EcsDeployer]] = {
            (config.aws_region, config.aws_profile): (aws, deployer_factory(aws)),
        }

    def for_node(self, node: ServiceNode) -> ServicePipeline:
        if node.kind is ServiceKind.CONTAINER:
            platform, deployer = self._platform_for(node.settings)
            return EcsPipeline(
                node, self._config, platform, deployer,
                self._builder, self._registry, self._prompt,
            )
        if node.kind is ServiceKind.FUNCTION:
            return ServerlessPipeline(node, self._config, self._toolchain, self._runner)
        if node.kind is ServiceKind.ALIAS:
            return AliasPipeline(node)
        raise ValueError(f"Unsupported service kind: {node.kind}")

    def _platform_for(self, settings: ContainerSettings) -> tuple[AwsAdapter, EcsDeployer]:
        key = (
            settings.aws_region or self._config.aws_region,
            settings.aws_profile or self._config.aws_profile,
        )
        if key not in self._platforms:
            if self._aws_factory is None:
                raise ValueError(f"No AWS adapter for region={key[0]} profile={key[1]}")
            logger.info("Using AWS region=%s profile=%s", *key)
            aws = self._aws_factory(*key)
            self._platforms[key] = (aws, self._deployer_factory(aws))
        return self._platforms[key]
