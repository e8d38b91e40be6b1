"""In-memory stand-ins for AWS and docker, shared by the integration tests."""

import pytest
from unittest.mock import AsyncMock, MagicMock

from convoy.domain.ports.process_runner_port import ProcessResult
from convoy.domain.value_objects.registry_credentials import RegistryCredentials
from convoy.infrastructure.config import AliasAppConfig, EcsAppConfig, TerraformStackConfig

REGISTRY = "123456789012.dkr.ecr.eu-west-1.amazonaws.com"


class FakeAws:
    """Enough of the ECS/ECR control plane for a full up/down run."""

    region = "eu-west-1"
    profile = "acme-staging"

    def __init__(self, missing_services=()):
        self.missing_services = set(missing_services)
        self.calls = []
        self.current = {}
        self.deregistered = []

    async def get_account_id(self):
        return "123456789012"

    async def get_credentials_env(self):
        return {"AWS_ACCESS_KEY_ID": "AKIA", "AWS_SECRET_ACCESS_KEY": "secret"}

    async def ensure_repository(self, name):
        return f"{REGISTRY}/{name}"

    async def get_registry_credentials(self):
        return RegistryCredentials("AWS", "password")

    async def describe_task_definition(self, task_definition):
        family = task_definition.split(":")[0]
        return {
            "family": family,
            "taskDefinitionArn": f"{family}:1",
            "containerDefinitions": [{"name": family.split("-", 1)[1], "image": "old"}],
        }

    async def find_service(self, cluster, candidates):
        if candidates[-1] in self.missing_services:
            return None
        return candidates[0]

    async def list_task_definitions(self, family_prefix):
        return [f"{family_prefix}:2", f"{family_prefix}:1"]

    async def deregister_task_definition(self, arn):
        self.deregistered.append(arn)

    async def call(self, service, operation, **kwargs):
        self.calls.append((operation, kwargs))
        if operation == "register_task_definition":
            return {"taskDefinition": {"taskDefinitionArn": f"{kwargs['family']}:2"}}
        if operation == "update_service":
            self.current[kwargs["service"]] = kwargs["taskDefinition"]
            return {}
        if operation == "describe_services":
            name = kwargs["services"][0]
            return {
                "services": [
                    {
                        "deployments": [{"status": "PRIMARY", "taskDefinition": self.current[name]}],
                        "runningCount": 1,
                        "desiredCount": 1,
                    }
                ]
            }
        return {}

    def updated_services(self):
        return [kwargs["service"] for operation, kwargs in self.calls if operation == "update_service"]


@pytest.fixture
def make_aws():
    return FakeAws


@pytest.fixture
def fake_docker():
    docker = MagicMock()
    docker.build = AsyncMock()
    docker.push = AsyncMock()
    return docker


@pytest.fixture
def fake_runner():
    runner = MagicMock()
    runner.run = AsyncMock(return_value=ProcessResult(args=(), returncode=0, output=""))
    return runner


@pytest.fixture
def app_config(make_config, tmp_path):
    """db <- web <- worker, with the backend alias over web and worker."""
    for name in ("db", "web", "worker"):
        app_dir = tmp_path / "apps" / name
        app_dir.mkdir(parents=True)
        (app_dir / "Dockerfile").write_text("FROM scratch\n")
    return make_config(
        ecs={
            "db": EcsAppConfig(),
            "web": EcsAppConfig(depends_on=("db",)),
            "worker": EcsAppConfig(depends_on=("web",)),
        },
        alias={"backend": AliasAppConfig(depends_on=("web", "worker"))},
        terraform={
            "infra": TerraformStackConfig(
                version="1.1.3", aws_region="eu-west-1", aws_profile="acme-staging"
            )
        },
    )
