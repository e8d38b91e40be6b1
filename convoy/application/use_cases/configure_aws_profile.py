"""
Configure AWS Profile Use Case

Architectural Intent:
- Writes a credentials profile from AWS_* environment variables, for CI
  runners that receive keys as secrets
- Optionally points the profile at a local AWS emulator

Design Decisions:
- configparser keeps other profiles in the file intact; the target
  profile's section is replaced
- The credentials file is created 0600 inside a 0755 ~/.aws
"""

import configparser
import logging
import os
from pathlib import Path
from typing import Mapping, Optional

from convoy.domain.errors import ValidationError

logger = logging.getLogger(__name__)

REQUIRED_VARIABLES = ("AWS_ACCESS_KEY_ID", "AWS_SECRET_ACCESS_KEY", "AWS_REGION", "AWS_PROFILE")
DEFAULT_LOCALSTACK_ENDPOINT = "http://127.0.0.1:4566"


def _truthy(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in ("1", "true", "yes", "on")


class ConfigureAwsProfile:
    def __init__(self, environ: Mapping[str, str], home: str) -> None:
        self.environ = environ
        self.home = home

    @property
    def credentials_path(self) -> Path:
        return Path(self.home) / ".aws" / "credentials"

    def execute(self) -> Path:
        missing = [name for name in REQUIRED_VARIABLES if not self.environ.get(name)]
        if missing:
            raise ValidationError(
                missing[0], f"{', '.join(REQUIRED_VARIABLES)} must be set (missing: {', '.join(missing)})"
            )

        profile = self.environ["AWS_PROFILE"]
        section = {
            "aws_access_key_id": self.environ["AWS_ACCESS_KEY_ID"],
            "aws_secret_access_key": self.environ["AWS_SECRET_ACCESS_KEY"],
            "region": self.environ["AWS_REGION"],
        }
        if _truthy(self.environ.get("LOCALSTACK")):
            section["endpoint_url"] = (
                self.environ.get("LOCALSTACK_ENDPOINT") or DEFAULT_LOCALSTACK_ENDPOINT
            )

        path = self.credentials_path
        path.parent.mkdir(mode=0o755, parents=True, exist_ok=True)

        parser = configparser.ConfigParser()
        parser.read(path)
        if parser.has_section(profile):
            parser.remove_section(profile)
        parser[profile] = section

        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w") as f:
            parser.write(f)
        os.chmod(path, 0o600)

        logger.info("Wrote profile %s to %s", profile, path)
        return path
