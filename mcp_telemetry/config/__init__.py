"""Configuration models and validation."""

from mcp_telemetry.config.schema import (
    ApiKeyAuthConfig,
    BasicAuthConfig,
    BearerAuthConfig,
    DataProcessor,
    ElicitationConfig,
    ExporterAuthConfig,
    TelemetryConfig,
    load_config,
)

__all__ = [
    "ApiKeyAuthConfig",
    "BasicAuthConfig",
    "BearerAuthConfig",
    "DataProcessor",
    "ElicitationConfig",
    "ExporterAuthConfig",
    "TelemetryConfig",
    "load_config",
]
