"""Global test configuration.

Shared fixtures for building configs, graphs and output scopes without
touching AWS, docker or the network.
"""

import io
from dataclasses import replace

import pytest

from convoy.domain.entities.dependency_graph import DependencyGraph
from convoy.domain.entities.service import ServiceNode
from convoy.infrastructure.config import ProjectConfig
from convoy.infrastructure.output import OutputAggregator


@pytest.fixture
def stream():
    return io.StringIO()


@pytest.fixture
def outputs(stream):
    return OutputAggregator(stream=stream, plain_text=True)


@pytest.fixture
def project_config(tmp_path):
    """A fully resolved config rooted in a temporary directory."""
    return ProjectConfig(
        env="staging",
        namespace="acme",
        aws_region="eu-west-1",
        aws_profile="acme-staging",
        tag="abc1234",
        docker_registry="123456789012.dkr.ecr.eu-west-1.amazonaws.com",
        root_dir=str(tmp_path),
        env_dir=str(tmp_path / ".convoy" / "env" / "staging"),
        infra_dir=str(tmp_path / ".infra"),
        home=str(tmp_path / "home"),
    )


@pytest.fixture
def make_config(project_config):
    def _make(**overrides):
        return replace(project_config, **overrides)

    return _make


@pytest.fixture
def db_web_worker():
    """web and worker both depend on db."""
    return DependencyGraph.build(
        [
            ServiceNode.container("db"),
            ServiceNode.container("web", depends_on=["db"]),
            ServiceNode.container("worker", depends_on=["db"]),
        ]
    )
