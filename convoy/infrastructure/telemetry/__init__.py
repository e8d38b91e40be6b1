"""
convoy Telemetry

Optional OTLP export of per-service spans, durations and results, fed by
scheduler lifecycle events. Disabled unless an endpoint is configured.
"""

from convoy.infrastructure.telemetry.otel_exporter import (
    DURATION_METRIC,
    RESULT_METRIC,
    OTELConfig,
    OTELExporter,
    create_exporter,
)

__all__ = [
    "DURATION_METRIC",
    "RESULT_METRIC",
    "OTELConfig",
    "OTELExporter",
    "create_exporter",
]
