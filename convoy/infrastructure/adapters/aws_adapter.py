"""
AWS Container Platform Adapter

Architectural Intent:
- Implements ContainerPlatformPort on top of boto3 (ecs, ecr, sts)
- Each blocking SDK call runs in a worker thread via asyncio.to_thread, so
  independent services make progress in parallel
- botocore ClientErrors are translated into the domain error taxonomy at
  this boundary; nothing above the adapter sees botocore types

Design Decisions:
- One adapter per (region, profile); clients are created lazily and cached
  under a lock because boto3 sessions are not thread-safe
- endpoint_url is applied to every client so a local AWS emulator can
  stand in for the real control plane
- Missing clusters, services and repositories become NotFoundError; every
  other API failure becomes UpstreamAPIError
"""

import asyncio
import logging
import threading
from typing import Any, Optional, Sequence

import boto3
from botocore.exceptions import BotoCoreError, ClientError, ProfileNotFound

from convoy.domain.errors import NotFoundError, UpstreamAPIError, ValidationError
from convoy.domain.value_objects.registry_credentials import RegistryCredentials

logger = logging.getLogger(__name__)

_NOT_FOUND_CODES = {
    "ClusterNotFoundException": "ECS cluster",
    "ServiceNotFoundException": "ECS service",
    "RepositoryNotFoundException": "ECR repository",
}


def create_aws_session(region: str = "", profile: str = "") -> boto3.Session:
    """Session for the given region/profile; empty values use the SDK defaults."""
    try:
        return boto3.Session(region_name=region or None, profile_name=profile or None)
    except ProfileNotFound as e:
        raise ValidationError("aws_profile", str(e)) from e


def translate_client_error(operation: str, error: ClientError) -> Exception:
    details = error.response.get("Error", {})
    code = details.get("Code", "Unknown")
    message = details.get("Message", str(error))
    if code in _NOT_FOUND_CODES:
        return NotFoundError(_NOT_FOUND_CODES[code], message=f"{_NOT_FOUND_CODES[code]} not found: {message}")
    return UpstreamAPIError(operation, code, message)


class AwsAdapter:
    """AWS ECS/ECR/STS adapter."""

    def __init__(self, session: Any, endpoint_url: str = "") -> None:
        self._session = session
        self._endpoint_url = endpoint_url or None
        self.region: str = getattr(session, "region_name", None) or ""
        self.profile: str = getattr(session, "profile_name", None) or ""
        self._clients: dict[str, Any] = {}
        self._clients_lock = threading.Lock()

    def client(self, service: str) -> Any:
        with self._clients_lock:
            if service not in self._clients:
                logger.debug("Creating %s client (region=%s)", service, self.region)
                self._clients[service] = self._session.client(
                    service, endpoint_url=self._endpoint_url
                )
            return self._clients[service]

    async def call(self, service: str, operation: str, **kwargs: Any) -> dict[str, Any]:
        """Invoke one SDK operation off the event loop, translating errors."""
        try:
            return await self._invoke(service, operation, **kwargs)
        except ClientError as e:
            raise translate_client_error(f"{service}.{operation}", e) from e
        except BotoCoreError as e:
            raise UpstreamAPIError(f"{service}.{operation}", type(e).__name__, str(e)) from e

    async def _invoke(self, service: str, operation: str, **kwargs: Any) -> dict[str, Any]:
        logger.debug("AWS %s.%s %s", service, operation, kwargs)
        method = getattr(self.client(service), operation)
        return await asyncio.to_thread(method, **kwargs)

    async def get_account_id(self) -> str:
        response = await self.call("sts", "get_caller_identity")
        return response["Account"]

    async def get_credentials_env(self) -> dict[str, str]:
        """Resolved credentials as AWS_* environment variables for child tools."""
        credentials = await asyncio.to_thread(self._session.get_credentials)
        if credentials is None:
            raise ValidationError("aws_profile", "no AWS credentials could be resolved")
        frozen = await asyncio.to_thread(credentials.get_frozen_credentials)
        env = {
            "AWS_ACCESS_KEY_ID": frozen.access_key,
            "AWS_SECRET_ACCESS_KEY": frozen.secret_key,
        }
        if frozen.token:
            env["AWS_SESSION_TOKEN"] = frozen.token
        return env

    async def ensure_repository(self, name: str) -> str:
        try:
            response = await self._invoke("ecr", "describe_repositories", repositoryNames=[name])
            repositories = response.get("repositories", [])
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") != "RepositoryNotFoundException":
                raise translate_client_error("ecr.describe_repositories", e) from e
            repositories = []

        if repositories:
            uri = repositories[0]["repositoryUri"]
            logger.debug("Using ECR repository: %s", uri)
            return uri

        logger.info("No ECR repository detected, creating %s", name)
        response = await self.call("ecr", "create_repository", repositoryName=name)
        return response["repository"]["repositoryUri"]

    async def get_registry_credentials(self) -> RegistryCredentials:
        response = await self.call("ecr", "get_authorization_token")
        data = response.get("authorizationData", [])
        if not data:
            raise NotFoundError("registry authorization token")
        return RegistryCredentials.from_token(
            data[0]["authorizationToken"], data[0].get("proxyEndpoint", "")
        )

    async def describe_task_definition(self, task_definition: str) -> dict[str, Any]:
        response = await self.call(
            "ecs", "describe_task_definition", taskDefinition=task_definition
        )
        return response["taskDefinition"]

    async def list_task_definitions(self, family_prefix: str) -> list[str]:
        def _list() -> list[str]:
            paginator = self.client("ecs").get_paginator("list_task_definitions")
            arns: list[str] = []
            for page in paginator.paginate(familyPrefix=family_prefix, sort="DESC"):
                arns.extend(page.get("taskDefinitionArns", []))
            return arns

        try:
            return await asyncio.to_thread(_list)
        except ClientError as e:
            raise translate_client_error("ecs.list_task_definitions", e) from e

    async def deregister_task_definition(self, arn: str) -> None:
        await self.call("ecs", "deregister_task_definition", taskDefinition=arn)

    async def find_service(self, cluster: str, candidates: Sequence[str]) -> Optional[str]:
        for candidate in candidates:
            logger.debug("Checking if ECS service %s exists in cluster %s", candidate, cluster)
            try:
                await self._invoke(
                    "ecs", "list_tasks",
                    cluster=cluster, desiredStatus="RUNNING", serviceName=candidate,
                )
            except ClientError as e:
                code = e.response.get("Error", {}).get("Code")
                if code == "ClusterNotFoundException":
                    raise NotFoundError("ECS cluster", cluster) from e
                if code == "ServiceNotFoundException":
                    logger.info("ECS service %s not found in cluster %s", candidate, cluster)
                    continue
                raise translate_client_error("ecs.list_tasks", e) from e
            return candidate
        return None

    async def find_running_task(self, cluster: str, service: str) -> Optional[str]:
        response = await self.call(
            "ecs", "list_tasks", cluster=cluster, desiredStatus="RUNNING", serviceName=service
        )
        arns = response.get("taskArns", [])
        return arns[0] if arns else None

    async def execute_command(
        self, cluster: str, task: str, container: str, command: str
    ) -> dict[str, Any]:
        response = await self.call(
            "ecs", "execute_command",
            cluster=cluster, task=task, container=container,
            interactive=True, command=command,
        )
        session = response["session"]
        return {
            "SessionId": session["sessionId"],
            "StreamUrl": session["streamUrl"],
            "TokenValue": session["tokenValue"],
        }
