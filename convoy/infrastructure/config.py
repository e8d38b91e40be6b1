"""
Configuration Module

Architectural Intent:
- Centralized configuration loading from a TOML project file
- Provides typed access to every project, app and stack setting
- Falls back to sensible defaults when config file is absent
- Environment variables and CLI flags override file-based config

Design Decisions:
- Uses stdlib tomllib (Python 3.11+) for TOML
- Config is a frozen dataclass for immutability after load; late-bound
  fallbacks (profile, region, terraform version) are resolved here, once,
  before any service runs
- Nested config sections map to sub-dataclasses
- App kind is decided here when nodes are built: serverless, then alias,
  then ecs; anything undeclared is a container service
"""

from __future__ import annotations
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Mapping, Optional
import dataclasses
import logging
import os
import subprocess
import tomllib

from convoy.domain.entities.service import (
    ContainerSettings,
    FunctionSettings,
    ServiceKind,
    ServiceNode,
)
from convoy.domain.errors import ValidationError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "convoy.toml"
DEFAULT_TERRAFORM_VERSION = "1.1.3"
DEFAULT_NVM_VERSION = "0.39.7"
RUNTIMES = ("native", "docker", "docker-arm64")
RESERVED_APP_NAMES = frozenset({"infra"})
APP_SECTIONS = ("ecs", "serverless", "alias", "terraform")


@dataclass(frozen=True)
class EcsAppConfig:
    """ECS container app configuration."""
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
    depends_on: tuple[str, ...] = ()

    def to_node(self, name: str) -> ServiceNode:
        return ServiceNode(
            name, ServiceKind.CONTAINER, self.depends_on,
            ContainerSettings(**_shared_fields(self, ContainerSettings)),
        )


@dataclass(frozen=True)
class ServerlessAppConfig:
    """Serverless framework app configuration."""
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
    depends_on: tuple[str, ...] = ()

    def to_node(self, name: str) -> ServiceNode:
        return ServiceNode(
            name, ServiceKind.FUNCTION, self.depends_on,
            FunctionSettings(**_shared_fields(self, FunctionSettings)),
        )


@dataclass(frozen=True)
class AliasAppConfig:
    """Alias app: a named dependency target with no deployable artifact."""
    depends_on: tuple[str, ...] = ()

    def to_node(self, name: str) -> ServiceNode:
        return ServiceNode.alias(name, self.depends_on)


@dataclass(frozen=True)
class TerraformStackConfig:
    """Terraform stack configuration."""
    version: str = ""
    aws_region: str = ""
    aws_profile: str = ""
    state_bucket_name: str = ""
    state_bucket_region: str = ""


@dataclass(frozen=True)
class TelemetryConfig:
    """OpenTelemetry configuration."""
    endpoint: str = ""
    insecure: bool = False
    service_name: str = "convoy"


@dataclass(frozen=True)
class ProjectConfig:
    """Root configuration for one convoy invocation."""
    env: str = ""
    namespace: str = ""
    aws_region: str = ""
    aws_profile: str = ""
    tag: str = ""
    docker_registry: str = ""
    prefer_runtime: str = "native"
    root_dir: str = ""
    apps_path: str = "apps"
    env_dir: str = ""
    infra_dir: str = ""
    home: str = ""
    terraform_version: str = DEFAULT_TERRAFORM_VERSION
    nvm_version: str = DEFAULT_NVM_VERSION
    endpoint_url: str = ""
    plain_text: bool = False
    log_level: str = "warning"
    tf_log: str = ""
    tf_log_path: str = ""
    ecs: dict[str, EcsAppConfig] = field(default_factory=dict)
    serverless: dict[str, ServerlessAppConfig] = field(default_factory=dict)
    alias: dict[str, AliasAppConfig] = field(default_factory=dict)
    terraform: dict[str, TerraformStackConfig] = field(default_factory=dict)
    telemetry: TelemetryConfig = field(default_factory=TelemetryConfig)

    def require(self, *names: str) -> None:
        """Raise ValidationError for the first named field that is empty."""
        for name in names:
            if not getattr(self, name):
                raise ValidationError(name)

    @property
    def infra(self) -> TerraformStackConfig:
        return self.terraform.get("infra", TerraformStackConfig())

    @property
    def app_names(self) -> list[str]:
        return sorted(set(self.ecs) | set(self.serverless) | set(self.alias))

    def node_for(self, name: str) -> ServiceNode:
        """
        Resolve the kind of one app. Serverless wins over alias, alias over
        ecs; an app declared nowhere is a container with default settings.
        """
        if name in RESERVED_APP_NAMES:
            raise ValidationError("app", f"'{name}' is a reserved name and cannot be an app")

        candidates = [
            (section, table[name])
            for section, table in (
                ("serverless", self.serverless),
                ("alias", self.alias),
                ("ecs", self.ecs),
            )
            if name in table
        ]
        if not candidates:
            return EcsAppConfig().to_node(name)
        if len(candidates) > 1:
            logger.warning(
                "App %s is declared in %s; using %s",
                name,
                ", ".join(section for section, _ in candidates),
                candidates[0][0],
            )
        return candidates[0][1].to_node(name)

    def service_nodes(self) -> list[ServiceNode]:
        return [self.node_for(name) for name in self.app_names]

    def with_ecs_overrides(self, name: str, **overrides: Any) -> "ProjectConfig":
        """Copy with one ECS app's settings overridden; empty values are ignored."""
        values = {k: v for k, v in overrides.items() if v}
        if not values:
            return self
        app = replace(self.ecs.get(name, EcsAppConfig()), **values)
        return replace(self, ecs={**self.ecs, name: app})


def _shared_fields(source: Any, target_cls: type) -> dict[str, Any]:
    return {f.name: getattr(source, f.name) for f in fields(target_cls)}


def _env_override(data: dict, prefix: str = "CONVOY") -> dict:
    """Override config values with environment variables.

    Environment variables follow the pattern CONVOY_KEY for top-level keys,
    CONVOY_SECTION_KEY for sections and CONVOY_SECTION_APP_KEY for app
    sections. For example: CONVOY_AWS_PROFILE=dev, CONVOY_TELEMETRY_ENDPOINT=...,
    CONVOY_TERRAFORM_INFRA_VERSION=1.5.0
    """
    top_level = {f.name for f in fields(ProjectConfig)} - set(APP_SECTIONS) - {"telemetry"}
    for key, value in os.environ.items():
        if not key.startswith(f"{prefix}_"):
            continue
        name = key[len(prefix) + 1:].lower()
        if name in top_level:
            data[name] = value
            continue
        parts = name.split("_", 1)
        if len(parts) != 2:
            continue
        section, rest = parts
        if section == "telemetry":
            data.setdefault(section, {})[rest] = value
        elif section in APP_SECTIONS:
            app_parts = rest.split("_", 1)
            if len(app_parts) == 2:
                app, field_name = app_parts
                data.setdefault(section, {}).setdefault(app, {})[field_name] = value
    return data


def _parse_config_file(path: Path) -> dict:
    """Parse a TOML config file. Returns empty dict on failure."""
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except FileNotFoundError:
        logger.debug("Config file not found: %s", path)
        return {}
    except tomllib.TOMLDecodeError as e:
        logger.warning("Invalid config file %s: %s", path, e)
        return {}


def _build_sub_config(cls, data: Mapping[str, Any]):
    """Build a sub-config dataclass from a dict, ignoring unknown keys."""
    valid_fields = {f.name for f in dataclasses.fields(cls)}
    filtered = {k: v for k, v in data.items() if k in valid_fields}

    for f in dataclasses.fields(cls):
        if f.name not in filtered:
            continue
        val = filtered[f.name]

        # Convert comma-separated strings to tuples for tuple fields
        if f.type == "tuple[str, ...]":
            if isinstance(val, str):
                filtered[f.name] = tuple(v.strip() for v in val.split(",") if v.strip())
            elif isinstance(val, list):
                filtered[f.name] = tuple(val)
        elif f.type == "dict[str, str]":
            if not isinstance(val, dict):
                logger.warning("Ignoring %s.%s: expected a table", cls.__name__, f.name)
                del filtered[f.name]
            else:
                filtered[f.name] = {str(k): str(v) for k, v in val.items()}

        # Convert string numbers to int/bool
        elif isinstance(val, str):
            if f.type == "int":
                try:
                    filtered[f.name] = int(val)
                except ValueError:
                    raise ValidationError(
                        f.name, f"{f.name} must be an integer, got {val!r}"
                    ) from None
            elif f.type == "bool":
                filtered[f.name] = val.lower() in ("true", "1", "yes")
        elif f.type == "str" and not isinstance(val, str):
            filtered[f.name] = str(val)

    return cls(**filtered)


def _build_app_table(cls, data: Any) -> dict:
    if not isinstance(data, Mapping):
        return {}
    return {
        name: _build_sub_config(cls, section if isinstance(section, Mapping) else {})
        for name, section in data.items()
    }


def _git_short_sha(cwd: str) -> str:
    try:
        result = subprocess.run(
            ["git", "rev-parse", "--short", "HEAD"],
            capture_output=True,
            text=True,
            check=True,
            cwd=cwd,
        )
    except (FileNotFoundError, subprocess.CalledProcessError):
        return ""
    return result.stdout.strip()


def _resolve_fallbacks(config: ProjectConfig) -> ProjectConfig:
    infra = config.infra
    aws_profile = config.aws_profile or infra.aws_profile
    aws_region = config.aws_region or infra.aws_region
    infra = replace(
        infra,
        version=infra.version or config.terraform_version,
        aws_profile=infra.aws_profile or aws_profile,
        aws_region=infra.aws_region or aws_region,
    )

    root_dir = config.root_dir or os.getcwd()
    return replace(
        config,
        aws_profile=aws_profile,
        aws_region=aws_region,
        root_dir=root_dir,
        env_dir=config.env_dir or os.path.join(root_dir, ".convoy", "env", config.env),
        infra_dir=config.infra_dir or os.path.join(root_dir, ".infra"),
        home=config.home or str(Path.home()),
        tag=config.tag or _git_short_sha(root_dir) or "latest",
        terraform={**config.terraform, "infra": infra},
    )


def load_config(
    path: Optional[str] = None,
    env_prefix: str = "CONVOY",
    overrides: Optional[Mapping[str, Any]] = None,
) -> ProjectConfig:
    """Load configuration from file, environment variables and CLI flags.

    Priority (highest to lowest):
    1. CLI overrides (None values are ignored)
    2. Environment variables (CONVOY_KEY, CONVOY_SECTION_KEY)
    3. AWS_PROFILE / AWS_REGION
    4. Config file values
    5. Defaults

    Args:
        path: Path to config file (TOML). Defaults to convoy.toml in CWD.
        env_prefix: Environment variable prefix. Defaults to CONVOY.
        overrides: Top-level values from the command line.
    """
    config_path = Path(path) if path else Path(DEFAULT_CONFIG_FILE)
    data = _parse_config_file(config_path)

    for key in ("aws_profile", "aws_region"):
        value = os.environ.get(key.upper())
        if value:
            data[key] = value

    data = _env_override(data, env_prefix)

    for key, value in (overrides or {}).items():
        if value is not None:
            data[key] = value

    scalars = {
        k: v for k, v in data.items()
        if k not in APP_SECTIONS and k != "telemetry"
    }
    base = _build_sub_config(ProjectConfig, scalars)
    if base.prefer_runtime not in RUNTIMES:
        raise ValidationError(
            "prefer_runtime",
            f"prefer_runtime must be one of {', '.join(RUNTIMES)}, got {base.prefer_runtime!r}",
        )

    config = replace(
        base,
        ecs=_build_app_table(EcsAppConfig, data.get("ecs", {})),
        serverless=_build_app_table(ServerlessAppConfig, data.get("serverless", {})),
        alias=_build_app_table(AliasAppConfig, data.get("alias", {})),
        terraform=_build_app_table(TerraformStackConfig, data.get("terraform", {})),
        telemetry=_build_sub_config(TelemetryConfig, data.get("telemetry", {})),
    )
    config = _resolve_fallbacks(config)
    logger.debug(
        "Loaded config from %s: env=%s namespace=%s region=%s profile=%s tag=%s",
        config_path, config.env, config.namespace, config.aws_region,
        config.aws_profile, config.tag,
    )
    return config
