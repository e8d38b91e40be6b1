"""
OpenTelemetry Exporter for convoy

Architectural Intent:
- Exports per-service run telemetry to OTLP-compatible backends
- Observes the scheduler only through lifecycle events on the EventBus; the
  scheduler never calls telemetry directly
- One span per service run, plus duration and result metrics

Security:
- Endpoint defaults to empty string (must be explicitly configured)
- Non-localhost http:// endpoints rejected unless insecure=True
- Validation in __post_init__ prevents accidental plaintext export
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, Any
from urllib.parse import urlparse
import logging
from datetime import datetime, UTC

from convoy.domain.events.service_events import (
    ServiceEvent,
    ServiceFailed,
    ServiceSkipped,
    ServiceStarted,
    ServiceSucceeded,
)
from convoy.domain.ports.event_bus_port import EventBusPort

logger = logging.getLogger(__name__)

DURATION_METRIC = "convoy.service.duration_ms"
RESULT_METRIC = "convoy.service.result"


@dataclass
class OTELConfig:
    endpoint: str = ""
    service_name: str = "convoy"
    environment: str = "development"
    enable_traces: bool = True
    enable_metrics: bool = True
    insecure: bool = False

    def __post_init__(self) -> None:
        if self.endpoint:
            parsed = urlparse(self.endpoint)
            is_localhost = parsed.hostname in ("localhost", "127.0.0.1", "::1")
            if parsed.scheme == "http" and not is_localhost and not self.insecure:
                raise ValueError(
                    f"Non-localhost HTTP endpoint '{self.endpoint}' requires "
                    "insecure=True or use https://. "
                    "Set insecure=True to explicitly allow plaintext export."
                )


class OTELExporter:
    """
    OpenTelemetry exporter for service runs.

    Supports:
    - OTLP gRPC export of traces and metrics
    - A local buffer of recorded metrics, kept even when export is disabled
    """

    def __init__(self, config: OTELConfig):
        self.config = config
        self._initialized = False
        self._metrics_buffer: list[dict[str, Any]] = []
        self._meter: Any = None
        self._instruments: dict[str, Any] = {}
        self._spans: dict[str, Any] = {}
        self._providers: list[Any] = []
        self._event_bus: Optional[EventBusPort] = None

    @property
    def enabled(self) -> bool:
        return self._initialized

    async def initialize(self) -> None:
        """Initialize OpenTelemetry SDK and exporters."""
        if not self.config.endpoint:
            logger.info("OTEL endpoint not configured, telemetry disabled")
            return

        try:
            from opentelemetry import trace
            from opentelemetry.sdk.trace import TracerProvider
            from opentelemetry.sdk.trace.export import BatchSpanProcessor
            from opentelemetry.sdk.resources import Resource, SERVICE_NAME
            from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import (
                OTLPSpanExporter,
            )
            from opentelemetry import metrics
            from opentelemetry.sdk.metrics import MeterProvider
            from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
            from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import (
                OTLPMetricExporter,
            )

            resource = Resource(
                attributes={
                    SERVICE_NAME: self.config.service_name,
                    "environment": self.config.environment,
                }
            )

            if self.config.enable_traces:
                tracer_provider = TracerProvider(resource=resource)
                tracer_provider.add_span_processor(
                    BatchSpanProcessor(
                        OTLPSpanExporter(
                            endpoint=self.config.endpoint, insecure=self.config.insecure
                        )
                    )
                )
                trace.set_tracer_provider(tracer_provider)
                self._providers.append(tracer_provider)

            if self.config.enable_metrics:
                metric_reader = PeriodicExportingMetricReader(
                    OTLPMetricExporter(
                        endpoint=self.config.endpoint, insecure=self.config.insecure
                    )
                )
                meter_provider = MeterProvider(
                    resource=resource, metric_readers=[metric_reader]
                )
                metrics.set_meter_provider(meter_provider)
                self._providers.append(meter_provider)
                self._meter = metrics.get_meter(__name__)

            self._initialized = True

        except ImportError:
            logger.warning("OpenTelemetry SDK not installed, telemetry disabled")
            self._initialized = False
        except Exception as e:
            logger.error("Failed to initialize OTEL: %s", e)
            self._initialized = False

    def _subscriptions(self) -> list[tuple[type, Any]]:
        return [
            (ServiceStarted, self._on_started),
            (ServiceSucceeded, self._on_finished),
            (ServiceFailed, self._on_finished),
            (ServiceSkipped, self._on_skipped),
        ]

    def attach(self, event_bus: EventBusPort) -> None:
        """Subscribe to the service lifecycle events."""
        for event_type, handler in self._subscriptions():
            event_bus.subscribe(event_type, handler)
        self._event_bus = event_bus

    def detach(self) -> None:
        if self._event_bus is None:
            return
        for event_type, handler in self._subscriptions():
            self._event_bus.unsubscribe(event_type, handler)
        self._event_bus = None

    def _instrument(self, name: str, unit: str = "") -> Any:
        if name not in self._instruments and self._meter:
            if name == DURATION_METRIC:
                self._instruments[name] = self._meter.create_histogram(name, unit=unit)
            else:
                self._instruments[name] = self._meter.create_counter(name, unit=unit)
        return self._instruments.get(name)

    def record_metric(
        self,
        name: str,
        value: float,
        unit: str = "",
        attributes: Optional[dict[str, str]] = None,
    ) -> None:
        """Record a metric value."""
        self._metrics_buffer.append(
            {
                "name": name,
                "value": value,
                "unit": unit,
                "attributes": attributes or {},
                "timestamp": datetime.now(UTC).isoformat(),
            }
        )

        if self._initialized:
            instrument = self._instrument(name, unit)
            if instrument is None:
                return
            if name == DURATION_METRIC:
                instrument.record(value, attributes=attributes or {})
            else:
                instrument.add(value, attributes=attributes or {})

    def start_span(
        self,
        name: str,
        attributes: Optional[dict[str, str]] = None,
    ) -> Optional[Any]:
        """Start a tracing span."""
        if not self._initialized:
            return None

        from opentelemetry import trace

        tracer = trace.get_tracer(__name__)
        return tracer.start_span(name, attributes=attributes or {})

    def end_span(self, span: Any, error: str = "") -> None:
        """End a tracing span."""
        if not span:
            return
        if error:
            from opentelemetry.trace import Status, StatusCode

            span.set_status(Status(StatusCode.ERROR, error))
        span.end()

    async def _on_started(self, event: ServiceEvent) -> None:
        span = self.start_span(
            f"convoy.service.{event.direction.lower()}",
            attributes={"service": event.aggregate_id, "direction": event.direction},
        )
        if span is not None:
            self._spans[event.aggregate_id] = span

    async def _on_finished(self, event: ServiceEvent) -> None:
        failed = isinstance(event, ServiceFailed)
        result = "failed" if failed else "succeeded"
        attributes = {
            "service": event.aggregate_id,
            "direction": event.direction,
            "result": result,
        }
        self.record_metric(DURATION_METRIC, event.duration_ms, "ms", attributes)
        self.record_metric(RESULT_METRIC, 1.0, attributes=attributes)
        self.end_span(
            self._spans.pop(event.aggregate_id, None),
            error=event.error if failed else "",
        )

    async def _on_skipped(self, event: ServiceEvent) -> None:
        self.record_metric(
            RESULT_METRIC,
            1.0,
            attributes={
                "service": event.aggregate_id,
                "direction": event.direction,
                "result": "skipped",
            },
        )

    async def export(self) -> None:
        """Flush exporters at the end of a run."""
        if not self._initialized:
            return

        exported_count = len(self._metrics_buffer)
        self._metrics_buffer.clear()
        for provider in self._providers:
            provider.force_flush()
        if exported_count:
            logger.debug("Flushed %d buffered metrics", exported_count)

    async def shutdown(self) -> None:
        self.detach()
        await self.export()
        for provider in self._providers:
            provider.shutdown()
        self._providers.clear()
        self._initialized = False


async def create_exporter(
    endpoint: Optional[str] = None,
    service_name: str = "convoy",
    environment: str = "development",
    insecure: bool = False,
) -> OTELExporter:
    """Factory function to create OTEL exporter."""
    config = OTELConfig(
        endpoint=endpoint or "",
        service_name=service_name,
        environment=environment,
        insecure=insecure,
    )
    exporter = OTELExporter(config)
    await exporter.initialize()
    return exporter
