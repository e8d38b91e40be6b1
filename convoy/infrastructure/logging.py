"""
Centralized Logging

Architectural Intent:
- Diagnostics for every convoy component go to stderr under the "convoy" logger
- Operator-facing progress goes through the OutputAggregator on stdout, so the
  two never interleave mid-line
- Records about one service carry `service` and `direction` extras; both
  formatters render them

Design Decisions:
- AWS SDK and urllib3 loggers stay at WARNING unless --debug is given
"""

import json
import logging
import sys
from datetime import datetime, UTC
from typing import Optional, TextIO

NOISY_LOGGERS = ("boto3", "botocore", "urllib3", "s3transfer")
HUMAN_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def _service_fields(record: logging.LogRecord) -> dict[str, str]:
    fields = {}
    for key in ("service", "direction"):
        value = getattr(record, key, None)
        if value:
            fields[key] = value
    return fields


class JSONFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        log_entry.update(_service_fields(record))
        if record.exc_info and record.exc_info[1]:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry)


class ServiceFormatter(logging.Formatter):
    """Human-readable lines, tagged with the service when the record has one."""

    def __init__(self) -> None:
        super().__init__(HUMAN_FORMAT)

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        fields = _service_fields(record)
        if "service" not in fields:
            return line
        tag = fields["service"]
        if "direction" in fields:
            tag = f"{tag} {fields['direction'].lower()}"
        return f"{line} [{tag}]"


def level_from_flags(verbose: bool = False, debug: bool = False) -> int:
    if debug:
        return logging.DEBUG
    if verbose:
        return logging.INFO
    return logging.WARNING


def configure_logging(
    level: int = logging.INFO,
    json_format: bool = False,
    stream: Optional[TextIO] = None,
) -> None:
    """Configure logging for a convoy run.

    Args:
        level: Level for the "convoy" logger and its handler.
        json_format: Emit JSON records instead of human-readable lines.
        stream: Destination stream. Defaults to stderr.
    """
    root = logging.getLogger("convoy")
    root.setLevel(level)
    root.handlers.clear()

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(JSONFormatter() if json_format else ServiceFormatter())
    root.addHandler(handler)

    sdk_level = logging.DEBUG if level <= logging.DEBUG else logging.WARNING
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(sdk_level)
