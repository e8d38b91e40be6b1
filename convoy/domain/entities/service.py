"""
Service Module

Architectural Intent:
- ServiceNode is the unit of scheduling: a named service, its kind and the
  names of the services it depends on
- The kind is a closed set of variants attached at construction time, so
  dispatch never depends on which configuration table a name was found in
- Kind-specific settings are immutable value holders owned by the node

Design Decisions:
- Settings are frozen dataclasses with the same defaults the config file uses
- Construction rejects a settings object that does not match the kind
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Union


class ServiceKind(Enum):
    CONTAINER = auto()
    FUNCTION = auto()
    ALIAS = auto()


class Direction(Enum):
    UP = auto()
    DOWN = auto()


class PipelineState(Enum):
    PENDING = auto()
    RUNNING = auto()
    SUCCEEDED = auto()
    FAILED = auto()
    SKIPPED = auto()

    @property
    def is_terminal(self) -> bool:
        return self in (
            PipelineState.SUCCEEDED,
            PipelineState.FAILED,
            PipelineState.SKIPPED,
        )


@dataclass(frozen=True)
class ContainerSettings:
    """ECS container service settings."""
    path: str = ""
    image: str = ""
    cluster: str = ""
    service_name: str = ""
    task_definition_arn: str = ""
    docker_registry: str = ""
    timeout: int = 300
    skip_deploy: bool = False
    unsafe: bool = False
    aws_region: str = ""
    aws_profile: str = ""


@dataclass(frozen=True)
class FunctionSettings:
    """Serverless framework service settings."""
    path: str = ""
    file: str = "serverless.yml"
    node_version: str = "16"
    serverless_version: str = "2"
    use_yarn: bool = False
    force: bool = False
    create_domain: bool = False
    aws_region: str = ""
    aws_profile: str = ""
    env: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class AliasSettings:
    """Alias services carry no settings; they exist only as dependency targets."""


ServiceSettings = Union[ContainerSettings, FunctionSettings, AliasSettings]

_SETTINGS_BY_KIND: dict[ServiceKind, type] = {
    ServiceKind.CONTAINER: ContainerSettings,
    ServiceKind.FUNCTION: FunctionSettings,
    ServiceKind.ALIAS: AliasSettings,
}


@dataclass(frozen=True)
class ServiceNode:
    name: str
    kind: ServiceKind = ServiceKind.CONTAINER
    depends_on: tuple[str, ...] = ()
    settings: ServiceSettings = field(default_factory=ContainerSettings)

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Service name cannot be empty")
        if not isinstance(self.depends_on, tuple):
            object.__setattr__(self, "depends_on", tuple(self.depends_on))
        expected = _SETTINGS_BY_KIND[self.kind]
        if not isinstance(self.settings, expected):
            raise ValueError(
                f"Service {self.name!r} of kind {self.kind.name} requires "
                f"{expected.__name__}, got {type(self.settings).__name__}"
            )

    @classmethod
    def container(cls, name: str, depends_on=(), **settings) -> "ServiceNode":
        return cls(name, ServiceKind.CONTAINER, tuple(depends_on), ContainerSettings(**settings))

    @classmethod
    def function(cls, name: str, depends_on=(), **settings) -> "ServiceNode":
        return cls(name, ServiceKind.FUNCTION, tuple(depends_on), FunctionSettings(**settings))

    @classmethod
    def alias(cls, name: str, depends_on=()) -> "ServiceNode":
        return cls(name, ServiceKind.ALIAS, tuple(depends_on), AliasSettings())
