"""
Docker Adapter

Architectural Intent:
- Implements ImageBuilderPort and RegistryPort with the docker CLI
- All output streams into the calling service's output scope

Design Decisions:
- The registry password is fed through --password-stdin, never argv
- BuildKit is enabled so --cache-from works against registry images
"""

import logging
from typing import Sequence

from convoy.domain.ports.image_builder_port import BuildRequest
from convoy.domain.ports.output_port import OutputPort
from convoy.domain.value_objects.registry_credentials import RegistryCredentials
from convoy.infrastructure.process import ProcessRunner

logger = logging.getLogger(__name__)


def build_command(request: BuildRequest, docker: str = "docker") -> list[str]:
    args = [docker, "build", "--platform", request.platform, "-f", request.dockerfile]
    for key in sorted(request.build_args):
        args += ["--build-arg", f"{key}={request.build_args[key]}"]
    for cache in request.cache_from:
        args += ["--cache-from", cache]
    for tag in request.tags:
        args += ["-t", tag]
    args.append(request.context)
    return args


def registry_host(repository_uri: str, credentials: RegistryCredentials) -> str:
    endpoint = credentials.endpoint
    if endpoint:
        return endpoint.split("://", 1)[-1].rstrip("/")
    return repository_uri.split("/", 1)[0]


class DockerAdapter:
    def __init__(self, runner: ProcessRunner, docker: str = "docker") -> None:
        self._runner = runner
        self._docker = docker

    async def build(self, request: BuildRequest, output: OutputPort) -> None:
        logger.info("Building %s", request.tags[0] if request.tags else request.context)
        await self._runner.run(
            build_command(request, self._docker),
            output,
            cwd=request.context,
            env={"DOCKER_BUILDKIT": "1"},
        )

    async def push(
        self,
        repository_uri: str,
        credentials: RegistryCredentials,
        image_uri: str,
        tags: Sequence[str],
        output: OutputPort,
    ) -> None:
        host = registry_host(repository_uri, credentials)
        await self._runner.run(
            [self._docker, "login", "--username", credentials.username, "--password-stdin", host],
            output,
            stdin_data=credentials.password.encode("utf-8"),
        )
        for tag in tags:
            logger.info("Pushing %s:%s", image_uri, tag)
            await self._runner.run([self._docker, "push", f"{image_uri}:{tag}"], output)
