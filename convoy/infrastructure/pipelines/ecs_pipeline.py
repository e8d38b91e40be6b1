"""
ECS Container Pipeline

Architectural Intent:
- ServicePipeline for container services on ECS
- build: docker image from the app directory, tagged for the registry
- push: create the ECR repository on first use, log in, push release and
  environment tags
- deploy: new task definition revision with the image, rolled out to the
  service and waited on
- destroy: deregister every task definition revision of the app

Design Decisions:
- Path, cluster, registry and timeout defaults are resolved once into a
  ResolvedContainerApp; resolution is pure so explain() can use it
- An explicit image means "already built": build and push are skipped and
  deploy uses that exact reference; its tag becomes the release tag
"""

from __future__ import annotations
import logging
import os
import shlex
from dataclasses import dataclass

from convoy.domain.entities.service import ContainerSettings, ServiceNode
from convoy.domain.errors import NotFoundError, UserCancelledError
from convoy.domain.ports.confirmation_port import ConfirmationPort
from convoy.domain.ports.container_platform_port import ContainerPlatformPort
from convoy.domain.ports.deployment_driver_port import DeploymentDriverPort, DeploymentRequest
from convoy.domain.ports.image_builder_port import BuildRequest, ImageBuilderPort
from convoy.domain.ports.output_port import OutputPort
from convoy.domain.ports.registry_port import RegistryPort
from convoy.domain.ports.service_pipeline_port import ServicePipeline
from convoy.domain.value_objects.image_reference import ImageReference
from convoy.infrastructure.adapters.docker_adapter import build_command
from convoy.infrastructure.config import ProjectConfig

logger = logging.getLogger(__name__)

UNSAFE_WARNING = """deployment will be accelerated (unsafe):
- Health Check Interval: 5s
- Health Check Timeout: 2s
- Healthy Threshold Count: 2
- Unhealthy Threshold Count: 2"""


@dataclass(frozen=True)
class ResolvedContainerApp:
    name: str
    env: str
    namespace: str
    tag: str
    root_dir: str
    path: str
    cluster: str
    docker_registry: str
    timeout: int
    image: str = ""
    service_name: str = ""
    task_definition_arn: str = ""
    skip_deploy: bool = False
    unsafe: bool = False
    platform: str = "linux/amd64"

    @classmethod
    def resolve(cls, node: ServiceNode, config: ProjectConfig) -> "ResolvedContainerApp":
        settings: ContainerSettings = node.settings
        if settings.path:
            path = settings.path
            if not os.path.isabs(path):
                path = os.path.join(config.root_dir, path)
        else:
            apps_path = config.apps_path
            if not os.path.isabs(apps_path):
                apps_path = os.path.join(config.root_dir, apps_path)
            path = os.path.join(apps_path, node.name)

        return cls(
            name=node.name,
            env=config.env,
            namespace=config.namespace,
            tag=ImageReference.parse(settings.image).tag if settings.image else config.tag,
            root_dir=config.root_dir,
            path=os.path.normpath(path),
            cluster=settings.cluster or f"{config.env}-{config.namespace}",
            docker_registry=settings.docker_registry or config.docker_registry,
            timeout=settings.timeout or 300,
            image=settings.image,
            service_name=settings.service_name,
            task_definition_arn=settings.task_definition_arn,
            skip_deploy=settings.skip_deploy,
            unsafe=settings.unsafe,
            platform="linux/arm64" if config.prefer_runtime == "docker-arm64" else "linux/amd64",
        )

    @property
    def image_name(self) -> str:
        return f"{self.namespace}-{self.name}"

    @property
    def image_uri(self) -> str:
        return f"{self.docker_registry}/{self.image_name}"

    @property
    def latest_tag(self) -> str:
        return f"{self.env}-latest"

    @property
    def deploy_image(self) -> str:
        return self.image or f"{self.image_uri}:{self.latest_tag}"

    @property
    def task_definition_family(self) -> str:
        return f"{self.env}-{self.name}"

    @property
    def service_candidates(self) -> list[str]:
        return [
            f"{self.env}-{self.namespace}-{self.name}",
            f"{self.env}-{self.name}",
            self.name,
        ]

    def build_request(self) -> BuildRequest:
        relative_path = os.path.relpath(self.path, self.root_dir)
        cache_image = f"{self.image_uri}:{self.latest_tag}"
        return BuildRequest(
            context=self.root_dir,
            dockerfile=os.path.join(self.path, "Dockerfile"),
            tags=(self.image_name, f"{self.image_uri}:{self.tag}", cache_image),
            build_args={
                "PROJECT_PATH": relative_path,
                "APP_PATH": relative_path,
                "APP_NAME": self.name,
                "CACHE_IMAGE": cache_image,
                "TAG": self.tag,
            },
            cache_from=(cache_image,),
            platform=self.platform,
        )


class EcsPipeline(ServicePipeline):
    def __init__(
        self,
        node: ServiceNode,
        config: ProjectConfig,
        platform: ContainerPlatformPort,
        deployer: DeploymentDriverPort,
        builder: ImageBuilderPort,
        registry: RegistryPort,
        prompt: ConfirmationPort,
    ) -> None:
        self.name = node.name
        self.app = ResolvedContainerApp.resolve(node, config)
        self._platform = platform
        self._deployer = deployer
        self._builder = builder
        self._registry = registry
        self._prompt = prompt

    async def build(self, output: OutputPort) -> None:
        if self.app.image:
            output.info(f"building docker image... skipped, using {self.app.image}")
            return
        request = self.app.build_request()
        if not os.path.isfile(request.dockerfile):
            raise NotFoundError("Dockerfile", message=f"no Dockerfile at {request.dockerfile}")
        with output.step("building docker image"):
            await self._builder.build(request, output)

    async def push(self, output: OutputPort) -> None:
        app = self.app
        if app.image:
            output.info(f"pushing docker image... skipped, using {app.image}")
            return
        with output.step("pushing docker image"):
            repository_uri = await self._platform.ensure_repository(app.image_name)
            credentials = await self._platform.get_registry_credentials()
            await self._registry.push(
                repository_uri, credentials, app.image_uri, [app.tag, app.latest_tag], output
            )

    async def deploy(self, output: OutputPort) -> None:
        app = self.app
        if app.skip_deploy:
            output.info("deploy is skipped")
            return

        if app.unsafe:
            output.warning(UNSAFE_WARNING)
            logger.warning("%s: deploying with accelerated (unsafe) health checks", app.name)

        with output.step(f"deploying to ECS cluster {app.cluster}"):
            task_definition_arn = app.task_definition_arn
            if not task_definition_arn:
                current = await self._platform.describe_task_definition(app.task_definition_family)
                task_definition_arn = current["taskDefinitionArn"]

            service = app.service_name or await self._platform.find_service(
                app.cluster, app.service_candidates
            )
            if not service:
                raise NotFoundError(
                    "ECS service",
                    message=f"no ECS service for {app.name} in cluster {app.cluster} "
                    f"(tried {', '.join(app.service_candidates)})",
                )

            await self._deployer.deploy(
                DeploymentRequest(
                    cluster=app.cluster,
                    service=service,
                    task_definition_arn=task_definition_arn,
                    image=app.deploy_image,
                    container_name=app.name,
                    timeout=app.timeout,
                    unsafe=app.unsafe,
                ),
                output,
            )
        output.success("deployment completed")

    async def destroy(self, output: OutputPort, auto_approve: bool) -> None:
        family = self.app.task_definition_family
        arns = await self._platform.list_task_definitions(family)
        if not arns:
            output.info(f"no task definitions with prefix {family}, nothing to destroy")
            return

        if not auto_approve:
            details = [f"{self.name}: this will destroy the following:"]
            details += [f"{self.name}:   - {arn}" for arn in arns]
            if not await self._prompt.confirm(f"{self.name}: continue?", details=details):
                raise UserCancelledError(self.name)

        with output.step(f"deregistering {len(arns)} task definitions"):
            for arn in arns:
                await self._platform.deregister_task_definition(arn)
        output.success("destroying completed")

    def explain(self) -> str:
        app = self.app
        lines = [f"# {app.name}: ECS service in cluster {app.cluster}"]
        if app.image:
            lines.append(f"# build and push skipped, using {app.image}")
        else:
            registry = app.image_uri.split("/", 1)[0]
            lines += [
                "# build",
                shlex.join(build_command(app.build_request())),
                "# push",
                f"aws ecr describe-repositories --repository-names {app.image_name} "
                f"|| aws ecr create-repository --repository-name {app.image_name}",
                f"aws ecr get-login-password | docker login --username AWS --password-stdin {registry}",
                f"docker push {app.image_uri}:{app.tag}",
                f"docker push {app.image_uri}:{app.latest_tag}",
            ]
        if app.skip_deploy:
            lines.append("# deploy skipped")
        else:
            service = app.service_name or f"<first of {', '.join(app.service_candidates)}>"
            task_definition = app.task_definition_arn or app.task_definition_family
            lines += [
                "# deploy",
                f"aws ecs register-task-definition  # {task_definition} with image {app.deploy_image}",
                f"aws ecs update-service --cluster {app.cluster} --service {service} "
                f"--task-definition <new revision>",
                f"aws ecs wait services-stable --cluster {app.cluster} --services {service}"
                f"  # timeout {app.timeout}s",
            ]
        return "\n".join(lines)
