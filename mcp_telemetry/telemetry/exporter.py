"""Exporter collaborator: where finished spans and metric points go.

The pipeline only talks to the :class:`TelemetryExporter` protocol.
:class:`OTelExporter` implements it on top of the OpenTelemetry SDK with
providers that belong to the exporter instance (nothing is installed
globally), so several pipelines and test cases can coexist.
"""

from __future__ import annotations

import base64
import logging
from typing import Any, Dict, Mapping, Optional, Protocol

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.metric_exporter import OTLPMetricExporter
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import (
    ConsoleMetricExporter,
    MetricReader,
    PeriodicExportingMetricReader,
)
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    ConsoleSpanExporter,
    SimpleSpanProcessor,
    SpanExporter,
)
from opentelemetry.sdk.trace.sampling import ParentBased, TraceIdRatioBased
from opentelemetry.trace import Status, StatusCode

from mcp_telemetry.config.schema import (
    ApiKeyAuthConfig,
    BasicAuthConfig,
    BearerAuthConfig,
    TelemetryConfig,
)
from mcp_telemetry.constants import (
    EXPORT_TIMEOUT,
    INSTRUMENTATION_NAME,
    OTLP_METRICS_PATH,
    OTLP_TRACES_PATH,
    PACKAGE_VERSION,
    SHUTDOWN_TIMEOUT_MILLIS,
)

logger = logging.getLogger(__name__)

Attributes = Mapping[str, Any]


class TelemetryExporter(Protocol):
    """What the pipeline needs from a telemetry backend."""

    def start_span(self, name: str, attributes: Optional[Attributes] = None) -> Any: ...

    def emit_span(
        self, name: str, attributes: Optional[Attributes] = None, status: str = "ok"
    ) -> None: ...

    def emit_histogram(
        self,
        name: str,
        value: float,
        attributes: Optional[Attributes] = None,
        *,
        description: str = "",
        unit: str = "",
    ) -> None: ...

    def emit_increment(
        self,
        name: str,
        value: float = 1,
        attributes: Optional[Attributes] = None,
        *,
        description: str = "",
        unit: str = "",
    ) -> None: ...

    def flush_and_close(self) -> None: ...


def build_auth_headers(auth: Any) -> Dict[str, str]:
    """Translate an exporter auth config into HTTP headers."""
    if auth is None:
        return {}
    if isinstance(auth, BearerAuthConfig):
        return {"Authorization": f"Bearer {auth.token}"}
    if isinstance(auth, ApiKeyAuthConfig):
        return {auth.header: auth.api_key}
    if isinstance(auth, BasicAuthConfig):
        raw = f"{auth.username}:{auth.password}".encode("utf-8")
        return {"Authorization": f"Basic {base64.b64encode(raw).decode('ascii')}"}
    raise ValueError(f"Unsupported exporter auth type: {type(auth).__name__}")


class OTelExporter:
    """:class:`TelemetryExporter` backed by the OpenTelemetry SDK.

    Parameters
    ----------
    service_name, service_version:
        Reported as resource attributes.
    span_exporter:
        Destination for finished spans. ``None`` disables span export.
    metric_reader:
        Reader that collects metric points. ``None`` keeps metrics in-process.
    sampling_rate:
        Trace-id ratio for root spans.
    batch_spans:
        Use a :class:`BatchSpanProcessor`; otherwise spans are exported
        synchronously as they end.
    """

    def __init__(
        self,
        *,
        service_name: str,
        service_version: str = "0.0.0",
        span_exporter: Optional[SpanExporter] = None,
        metric_reader: Optional[MetricReader] = None,
        sampling_rate: float = 1.0,
        batch_spans: bool = True,
    ) -> None:
        resource = Resource.create(
            {"service.name": service_name, "service.version": service_version}
        )

        self._tracer_provider = TracerProvider(
            resource=resource,
            sampler=ParentBased(TraceIdRatioBased(sampling_rate)),
        )
        if span_exporter is not None:
            processor_cls = BatchSpanProcessor if batch_spans else SimpleSpanProcessor
            self._tracer_provider.add_span_processor(processor_cls(span_exporter))
        self._tracer = self._tracer_provider.get_tracer(INSTRUMENTATION_NAME, PACKAGE_VERSION)

        readers = [metric_reader] if metric_reader is not None else []
        self._meter_provider = MeterProvider(resource=resource, metric_readers=readers)
        self._meter = self._meter_provider.get_meter(INSTRUMENTATION_NAME, PACKAGE_VERSION)

        self._histograms: Dict[str, Any] = {}
        self._counters: Dict[str, Any] = {}
        self._closed = False

    # ── Spans ────────────────────────────────────────────────────────

    def start_span(self, name: str, attributes: Optional[Attributes] = None) -> trace.Span:
        """Start a span the caller is responsible for ending."""
        return self._tracer.start_span(name, attributes=dict(attributes or {}))

    def emit_span(
        self, name: str, attributes: Optional[Attributes] = None, status: str = "ok"
    ) -> None:
        """Record a complete span in one call."""
        span = self.start_span(name, attributes)
        if status == "error":
            span.set_status(Status(StatusCode.ERROR))
        else:
            span.set_status(Status(StatusCode.OK))
        span.end()

    # ── Metrics ──────────────────────────────────────────────────────

    def emit_histogram(
        self,
        name: str,
        value: float,
        attributes: Optional[Attributes] = None,
        *,
        description: str = "",
        unit: str = "",
    ) -> None:
        histogram = self._histograms.get(name)
        if histogram is None:
            histogram = self._meter.create_histogram(name, unit=unit, description=description)
            self._histograms[name] = histogram
        histogram.record(value, attributes=dict(attributes or {}))

    def emit_increment(
        self,
        name: str,
        value: float = 1,
        attributes: Optional[Attributes] = None,
        *,
        description: str = "",
        unit: str = "",
    ) -> None:
        counter = self._counters.get(name)
        if counter is None:
            counter = self._meter.create_counter(name, unit=unit, description=description)
            self._counters[name] = counter
        counter.add(value, attributes=dict(attributes or {}))

    # ── Lifecycle ────────────────────────────────────────────────────

    def flush_and_close(self) -> None:
        """Flush pending data and shut both providers down. Never raises."""
        if self._closed:
            return
        self._closed = True
        try:
            self._tracer_provider.force_flush(timeout_millis=SHUTDOWN_TIMEOUT_MILLIS)
            self._tracer_provider.shutdown()
        except Exception:
            logger.warning("Failed to flush trace exporter", exc_info=True)
        try:
            self._meter_provider.shutdown(timeout_millis=SHUTDOWN_TIMEOUT_MILLIS)
        except Exception:
            logger.warning("Failed to flush metric exporter", exc_info=True)


def build_exporter(config: TelemetryConfig) -> OTelExporter:
    """Create the exporter selected by ``config.exporter_type``."""
    if config.exporter_type == "console":
        span_exporter: SpanExporter = ConsoleSpanExporter()
        metric_reader: MetricReader = PeriodicExportingMetricReader(ConsoleMetricExporter())
        batch = False
    else:
        headers = build_auth_headers(config.exporter_auth)
        span_exporter = OTLPSpanExporter(
            endpoint=config.exporter_endpoint + OTLP_TRACES_PATH,
            headers=headers,
            timeout=EXPORT_TIMEOUT,
        )
        metric_reader = PeriodicExportingMetricReader(
            OTLPMetricExporter(
                endpoint=config.exporter_endpoint + OTLP_METRICS_PATH,
                headers=headers,
                timeout=EXPORT_TIMEOUT,
            )
        )
        batch = True

    logger.info(
        "Telemetry exporter configured: type=%s endpoint=%s auth=%s",
        config.exporter_type,
        config.exporter_endpoint,
        config.exporter_auth.type if config.exporter_auth else "none",
    )
    return OTelExporter(
        service_name=config.server_name,
        service_version=config.server_version,
        span_exporter=span_exporter,
        metric_reader=metric_reader,
        sampling_rate=config.sampling_rate,
        batch_spans=batch,
    )
