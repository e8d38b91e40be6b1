"""Tests for the boto3-backed container platform adapter."""

import base64
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from convoy.domain.errors import NotFoundError, UpstreamAPIError, ValidationError
from convoy.infrastructure.adapters.aws_adapter import AwsAdapter, translate_client_error


def client_error(code: str, operation: str = "Op", message: str = "nope") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": message}}, operation)


class FakeSession:
    region_name = "eu-west-1"
    profile_name = "acme"

    def __init__(self):
        self.clients = {}
        self.endpoints = []

    def client(self, service, endpoint_url=None):
        self.endpoints.append(endpoint_url)
        return self.clients.setdefault(service, MagicMock(name=service))


@pytest.fixture
def session():
    return FakeSession()


@pytest.fixture
def adapter(session):
    return AwsAdapter(session)


class TestClients:
    def test_region_and_profile_from_session(self, adapter):
        assert adapter.region == "eu-west-1"
        assert adapter.profile == "acme"

    def test_clients_are_cached(self, adapter, session):
        assert adapter.client("ecs") is adapter.client("ecs")
        assert len(session.endpoints) == 1

    def test_endpoint_url_applied(self, session):
        AwsAdapter(session, "http://127.0.0.1:4566").client("ecr")
        assert session.endpoints == ["http://127.0.0.1:4566"]


class TestErrorTranslation:
    def test_not_found_codes(self):
        error = translate_client_error("ecs.list_tasks", client_error("ClusterNotFoundException"))
        assert isinstance(error, NotFoundError)
        assert error.resource == "ECS cluster"

    def test_other_codes(self):
        error = translate_client_error("ecs.update_service", client_error("AccessDenied", message="denied"))
        assert isinstance(error, UpstreamAPIError)
        assert error.code == "AccessDenied"
        assert str(error) == "ecs.update_service failed (AccessDenied): denied"

    @pytest.mark.asyncio
    async def test_call_translates(self, adapter, session):
        adapter.client("ecs").update_service.side_effect = client_error("Throttling")
        with pytest.raises(UpstreamAPIError, match="Throttling"):
            await adapter.call("ecs", "update_service", cluster="c")

    @pytest.mark.asyncio
    async def test_call_translates_botocore_errors(self, adapter):
        adapter.client("sts").get_caller_identity.side_effect = EndpointConnectionError(
            endpoint_url="https://sts"
        )
        with pytest.raises(UpstreamAPIError, match="EndpointConnectionError"):
            await adapter.get_account_id()


class TestRegistry:
    @pytest.mark.asyncio
    async def test_existing_repository(self, adapter):
        ecr = adapter.client("ecr")
        ecr.describe_repositories.return_value = {
            "repositories": [{"repositoryUri": "123.dkr.ecr/acme-web"}]
        }
        assert await adapter.ensure_repository("acme-web") == "123.dkr.ecr/acme-web"
        ecr.create_repository.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_repository_is_created(self, adapter):
        ecr = adapter.client("ecr")
        ecr.describe_repositories.side_effect = client_error("RepositoryNotFoundException")
        ecr.create_repository.return_value = {"repository": {"repositoryUri": "123.dkr.ecr/acme-web"}}
        assert await adapter.ensure_repository("acme-web") == "123.dkr.ecr/acme-web"
        ecr.create_repository.assert_called_once_with(repositoryName="acme-web")

    @pytest.mark.asyncio
    async def test_describe_failure_is_not_swallowed(self, adapter):
        adapter.client("ecr").describe_repositories.side_effect = client_error("AccessDenied")
        with pytest.raises(UpstreamAPIError):
            await adapter.ensure_repository("acme-web")

    @pytest.mark.asyncio
    async def test_registry_credentials(self, adapter):
        token = base64.b64encode(b"AWS:hunter2").decode()
        adapter.client("ecr").get_authorization_token.return_value = {
            "authorizationData": [{"authorizationToken": token, "proxyEndpoint": "https://123.dkr.ecr"}]
        }
        credentials = await adapter.get_registry_credentials()
        assert credentials.username == "AWS"
        assert credentials.password == "hunter2"

    @pytest.mark.asyncio
    async def test_missing_authorization_data(self, adapter):
        adapter.client("ecr").get_authorization_token.return_value = {"authorizationData": []}
        with pytest.raises(NotFoundError):
            await adapter.get_registry_credentials()


class TestEcs:
    @pytest.mark.asyncio
    async def test_find_service_skips_missing_candidates(self, adapter):
        ecs = adapter.client("ecs")
        ecs.list_tasks.side_effect = [client_error("ServiceNotFoundException"), {"taskArns": []}]
        found = await adapter.find_service("staging-acme", ["staging-acme-web", "staging-web", "web"])
        assert found == "staging-web"
        assert ecs.list_tasks.call_count == 2

    @pytest.mark.asyncio
    async def test_find_service_none(self, adapter):
        adapter.client("ecs").list_tasks.side_effect = client_error("ServiceNotFoundException")
        assert await adapter.find_service("staging-acme", ["a", "b"]) is None

    @pytest.mark.asyncio
    async def test_find_service_missing_cluster(self, adapter):
        adapter.client("ecs").list_tasks.side_effect = client_error("ClusterNotFoundException")
        with pytest.raises(NotFoundError, match="ECS cluster staging-acme not found"):
            await adapter.find_service("staging-acme", ["web"])

    @pytest.mark.asyncio
    async def test_list_task_definitions_paginates(self, adapter):
        paginator = MagicMock()
        paginator.paginate.return_value = [
            {"taskDefinitionArns": ["arn:3", "arn:2"]},
            {"taskDefinitionArns": ["arn:1"]},
        ]
        adapter.client("ecs").get_paginator.return_value = paginator
        assert await adapter.list_task_definitions("staging-web") == ["arn:3", "arn:2", "arn:1"]
        paginator.paginate.assert_called_once_with(familyPrefix="staging-web", sort="DESC")

    @pytest.mark.asyncio
    async def test_find_running_task(self, adapter):
        adapter.client("ecs").list_tasks.return_value = {"taskArns": ["arn:task/1", "arn:task/2"]}
        assert await adapter.find_running_task("c", "staging-web") == "arn:task/1"

    @pytest.mark.asyncio
    async def test_find_running_task_none(self, adapter):
        adapter.client("ecs").list_tasks.return_value = {"taskArns": []}
        assert await adapter.find_running_task("c", "staging-web") is None

    @pytest.mark.asyncio
    async def test_execute_command_session(self, adapter):
        ecs = adapter.client("ecs")
        ecs.execute_command.return_value = {
            "session": {"sessionId": "s-1", "streamUrl": "wss://x", "tokenValue": "tok"}
        }
        session = await adapter.execute_command("c", "arn:task/1", "web", "ls -la")
        assert session == {"SessionId": "s-1", "StreamUrl": "wss://x", "TokenValue": "tok"}
        assert ecs.execute_command.call_args.kwargs["interactive"] is True


class TestCredentials:
    @pytest.mark.asyncio
    async def test_credentials_env(self):
        session = MagicMock()
        frozen = MagicMock(access_key="AKIA", secret_key="secret", token="session-token")
        session.get_credentials.return_value.get_frozen_credentials.return_value = frozen
        env = await AwsAdapter(session).get_credentials_env()
        assert env == {
            "AWS_ACCESS_KEY_ID": "AKIA",
            "AWS_SECRET_ACCESS_KEY": "secret",
            "AWS_SESSION_TOKEN": "session-token",
        }

    @pytest.mark.asyncio
    async def test_no_credentials(self):
        session = MagicMock()
        session.get_credentials.return_value = None
        with pytest.raises(ValidationError, match="no AWS credentials"):
            await AwsAdapter(session).get_credentials_env()
