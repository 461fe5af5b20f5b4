"""Shared fixtures: pipelines wired to in-memory OpenTelemetry sinks."""

from __future__ import annotations

from typing import Any, Dict, List

import pytest
from opentelemetry.sdk.metrics.export import InMemoryMetricReader
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

from mcp_telemetry.telemetry.exporter import OTelExporter
from mcp_telemetry.telemetry.pipeline import TelemetryPipeline

BASE_CONFIG: Dict[str, Any] = {
    "server_name": "test-service",
    "server_version": "1.0.0",
    "exporter_endpoint": "http://localhost:4318",
    "enable_tracing": True,
    "enable_metrics": True,
    "enable_pii_sanitization": True,
    "sampling_rate": 1.0,
}


class Sinks:
    """In-memory span exporter and metric reader behind one OTelExporter."""

    def __init__(self) -> None:
        self.spans = InMemorySpanExporter()
        self.metrics = InMemoryMetricReader()
        self.exporter = OTelExporter(
            service_name="test-service",
            service_version="1.0.0",
            span_exporter=self.spans,
            metric_reader=self.metrics,
            batch_spans=False,
        )

    def finished_spans(self) -> list:
        return list(self.spans.get_finished_spans())

    def points(self, name: str) -> List[Any]:
        """Return the data points recorded for metric *name*."""
        data = self.metrics.get_metrics_data()
        if data is None:
            return []
        found: List[Any] = []
        for resource_metrics in data.resource_metrics:
            for scope_metrics in resource_metrics.scope_metrics:
                for metric in scope_metrics.metrics:
                    if metric.name == name:
                        found.extend(metric.data.data_points)
        return found


@pytest.fixture
def sinks() -> Sinks:
    return Sinks()


@pytest.fixture
def base_config() -> Dict[str, Any]:
    return dict(BASE_CONFIG)


@pytest.fixture
def make_pipeline(sinks: Sinks):
    """Factory building pipelines on the shared in-memory sinks."""
    created: List[TelemetryPipeline] = []

    def _make(**overrides: Any) -> TelemetryPipeline:
        kwargs = {key: overrides.pop(key) for key in ("consent_store", "consent_source", "consent_timeout") if key in overrides}
        config = {**BASE_CONFIG, **overrides}
        pipeline = TelemetryPipeline(config, exporter=sinks.exporter, **kwargs)
        created.append(pipeline)
        return pipeline

    yield _make
    for pipeline in created:
        pipeline.shutdown()
