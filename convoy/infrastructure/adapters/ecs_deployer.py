"""
ECS Deployer

Architectural Intent:
- Implements DeploymentDriverPort: roll an ECS service onto a new image
- Registers a new task definition revision derived from the current one,
  points the service at it and waits until ECS reports it stable

Design Decisions:
- Reuses AwsAdapter.call so SDK errors are translated in one place
- The stability wait polls with asyncio.sleep; a cancelled run stops
  between API calls instead of blocking a worker thread for minutes
- Unsafe mode shortens target group health checks before the update so new
  tasks pass health checks faster
"""

import asyncio
import logging
from typing import Any

from convoy.domain.errors import DeployTimeoutError, NotFoundError
from convoy.domain.ports.deployment_driver_port import DeploymentRequest
from convoy.domain.ports.output_port import OutputPort
from convoy.infrastructure.adapters.aws_adapter import AwsAdapter

logger = logging.getLogger(__name__)

# Keys of describe_task_definition output accepted by register_task_definition.
_REGISTRABLE_KEYS = (
    "family",
    "taskRoleArn",
    "executionRoleArn",
    "networkMode",
    "containerDefinitions",
    "volumes",
    "placementConstraints",
    "requiresCompatibilities",
    "cpu",
    "memory",
    "pidMode",
    "ipcMode",
    "proxyConfiguration",
    "inferenceAccelerators",
    "ephemeralStorage",
    "runtimePlatform",
)

UNSAFE_HEALTH_CHECK = {
    "HealthCheckIntervalSeconds": 5,
    "HealthCheckTimeoutSeconds": 2,
    "HealthyThresholdCount": 2,
    "UnhealthyThresholdCount": 2,
}


class EcsDeployer:
    def __init__(self, aws: AwsAdapter, poll_interval: float = 10.0) -> None:
        self._aws = aws
        self.poll_interval = poll_interval

    async def deploy(self, request: DeploymentRequest, output: OutputPort) -> str:
        current = await self._aws.describe_task_definition(request.task_definition_arn)
        new_arn = await self._register_revision(current, request, output)

        if request.unsafe:
            await self._accelerate_health_checks(request, output)

        output.info(f"updating service {request.service} to {new_arn}")
        await self._aws.call(
            "ecs", "update_service",
            cluster=request.cluster,
            service=request.service,
            taskDefinition=new_arn,
        )
        await self._wait_until_stable(request, new_arn, output)
        return new_arn

    async def _register_revision(
        self, current: dict[str, Any], request: DeploymentRequest, output: OutputPort
    ) -> str:
        definition = {k: current[k] for k in _REGISTRABLE_KEYS if current.get(k) is not None}
        containers = [dict(c) for c in definition.get("containerDefinitions", [])]
        if not containers:
            raise NotFoundError(
                "container definition", message=f"task definition {request.task_definition_arn} has no containers"
            )

        target = next(
            (c for c in containers if c.get("name") == request.container_name),
            containers[0],
        )
        logger.debug("Replacing image of container %s: %s -> %s", target.get("name"), target.get("image"), request.image)
        target["image"] = request.image
        definition["containerDefinitions"] = containers

        response = await self._aws.call("ecs", "register_task_definition", **definition)
        new_arn = response["taskDefinition"]["taskDefinitionArn"]
        output.info(f"registered task definition {new_arn}")
        return new_arn

    async def _accelerate_health_checks(self, request: DeploymentRequest, output: OutputPort) -> None:
        service = await self._describe_service(request)
        for balancer in service.get("loadBalancers", []):
            target_group = balancer.get("targetGroupArn")
            if not target_group:
                continue
            output.info(f"accelerating health checks of {target_group}")
            await self._aws.call(
                "elbv2", "modify_target_group", TargetGroupArn=target_group, **UNSAFE_HEALTH_CHECK
            )

    async def _describe_service(self, request: DeploymentRequest) -> dict[str, Any]:
        response = await self._aws.call(
            "ecs", "describe_services", cluster=request.cluster, services=[request.service]
        )
        services = response.get("services", [])
        if not services:
            raise NotFoundError("ECS service", request.service)
        return services[0]

    async def _wait_until_stable(
        self, request: DeploymentRequest, new_arn: str, output: OutputPort
    ) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + request.timeout
        output.info(f"waiting up to {request.timeout}s for {request.service} to become stable")
        while True:
            service = await self._describe_service(request)
            deployments = service.get("deployments", [])
            primary = next((d for d in deployments if d.get("status") == "PRIMARY"), None)
            running = service.get("runningCount", 0)
            desired = service.get("desiredCount", 0)
            logger.debug(
                "%s: deployments=%d running=%d desired=%d",
                request.service, len(deployments), running, desired,
            )
            if (
                len(deployments) == 1
                and running == desired
                and primary is not None
                and primary.get("taskDefinition") == new_arn
            ):
                output.info(f"{request.service} is stable ({running}/{desired} tasks)")
                return
            remaining = deadline - loop.time()
            if remaining <= 0:
                raise DeployTimeoutError(request.service, request.timeout)
            await asyncio.sleep(min(self.poll_interval, remaining))
