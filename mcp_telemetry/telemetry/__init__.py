"""OpenTelemetry integration: pipeline, exporter and request hook."""

from mcp_telemetry.telemetry.exporter import (
    OTelExporter,
    TelemetryExporter,
    build_auth_headers,
    build_exporter,
)
from mcp_telemetry.telemetry.middleware import (
    RequestContext,
    TelemetryMiddleware,
    build_chain,
)
from mcp_telemetry.telemetry.pipeline import TelemetryPipeline, TelemetryRecord
from mcp_telemetry.telemetry.server import instrument_mcp_server, instrument_server

__all__ = [
    "OTelExporter",
    "RequestContext",
    "TelemetryExporter",
    "TelemetryMiddleware",
    "TelemetryPipeline",
    "TelemetryRecord",
    "build_auth_headers",
    "build_chain",
    "build_exporter",
    "instrument_mcp_server",
    "instrument_server",
]
