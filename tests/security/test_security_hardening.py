"""
Security Hardening Tests

Tests for:
- Secrets kept off child process argv
- Credentials file permissions
- Shell injection prevention in exec and serverless scripts
- OTEL config validation
"""

import stat
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from convoy.application.use_cases.configure_aws_profile import ConfigureAwsProfile
from convoy.domain.entities.service import ServiceNode
from convoy.domain.ports.process_runner_port import ProcessResult
from convoy.domain.value_objects.registry_credentials import RegistryCredentials
from convoy.infrastructure.adapters.docker_adapter import DockerAdapter
from convoy.infrastructure.pipelines.serverless_pipeline import ServerlessPipeline
from convoy.infrastructure.telemetry.otel_exporter import OTELConfig
from convoy.presentation.cli.cli import async_main

ENVIRON = {
    "AWS_ACCESS_KEY_ID": "AKIA",
    "AWS_SECRET_ACCESS_KEY": "secret",
    "AWS_REGION": "eu-west-1",
    "AWS_PROFILE": "ci",
}


@pytest.fixture
def runner():
    runner = MagicMock()
    runner.run = AsyncMock(return_value=ProcessResult(args=(), returncode=0, output=""))
    return runner


class TestSecretsOffArgv:
    @pytest.mark.asyncio
    async def test_registry_password_via_stdin(self, runner, outputs):
        credentials = RegistryCredentials("AWS", "p@ss; rm -rf /")
        await DockerAdapter(runner).push("reg.io/web", credentials, "reg.io/web", ["v1"], outputs.scope("web"))
        for call in runner.run.call_args_list:
            assert not any("p@ss" in arg for arg in call.args[0])

    def test_credentials_repr(self):
        assert "hunter2" not in repr(RegistryCredentials("AWS", "hunter2"))


class TestCredentialsFile:
    def test_file_is_private(self, tmp_path):
        path = ConfigureAwsProfile(ENVIRON, str(tmp_path)).execute()
        assert stat.S_IMODE(path.stat().st_mode) == 0o600

    def test_other_profiles_survive(self, tmp_path):
        ConfigureAwsProfile({**ENVIRON, "AWS_PROFILE": "other"}, str(tmp_path)).execute()
        path = ConfigureAwsProfile(ENVIRON, str(tmp_path)).execute()
        text = path.read_text()
        assert "[other]" in text and "[ci]" in text


class TestShellInjection:
    @pytest.mark.asyncio
    async def test_exec_command_is_quoted(self, project_config, capsys):
        container = MagicMock()
        container.config = project_config
        container.shutdown = AsyncMock()
        container.exec_command.return_value.execute = AsyncMock(return_value=0)
        with patch("convoy.infrastructure.config.load_config", return_value=project_config), \
             patch("convoy.composition_root.create_container", AsyncMock(return_value=container)):
            await async_main(["exec", "web", "--", "echo", "$(whoami); reboot"])
        command = container.exec_command.return_value.execute.call_args.args[2]
        assert command == "echo '$(whoami); reboot'"

    @pytest.mark.parametrize(
        "version,expected",
        [("2", "--service 'api; reboot'"), ("3", "--param='service=api; reboot'")],
    )
    def test_serverless_service_name_is_quoted(self, project_config, runner, version, expected):
        node = ServiceNode.function("api; reboot", serverless_version=version)
        pipeline = ServerlessPipeline(node, project_config, MagicMock(nvm_dir="/opt/nvm"), runner)
        assert expected in pipeline.explain()


class TestOTELConfigValidation:
    """Tests for OTEL config security validation."""

    def test_empty_endpoint_allowed(self):
        config = OTELConfig(endpoint="")
        assert config.endpoint == ""

    def test_localhost_127_allowed(self):
        config = OTELConfig(endpoint="http://127.0.0.1:4317")
        assert config.endpoint == "http://127.0.0.1:4317"

    def test_remote_http_rejected_without_insecure(self):
        with pytest.raises(ValueError, match="insecure=True"):
            OTELConfig(endpoint="http://otel.example.com:4317")

    def test_remote_http_allowed_with_insecure(self):
        config = OTELConfig(
            endpoint="http://otel.example.com:4317", insecure=True
        )
        assert config.endpoint == "http://otel.example.com:4317"
