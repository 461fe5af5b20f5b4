"""Shared constants for MCP Telemetry."""

PACKAGE_NAME = "mcp-telemetry"
PACKAGE_VERSION = "0.1.0"

# Instrumentation scope reported to the OTel SDK
INSTRUMENTATION_NAME = "mcp_telemetry"

# Exporter defaults
DEFAULT_EXPORTER_TYPE = "otlp-http"
DEFAULT_SAMPLING_RATE = 1.0
DEFAULT_API_KEY_HEADER = "X-API-Key"
OTLP_TRACES_PATH = "/v1/traces"
OTLP_METRICS_PATH = "/v1/metrics"
EXPORT_TIMEOUT = 10  # seconds per OTLP export call
SHUTDOWN_TIMEOUT_MILLIS = 3000

# Attribute assembly
DEFAULT_ARGUMENT_PREFIX = "mcp.request.argument"
REDACTION_MARKER = "[REDACTED]"

# Consent negotiation
CONSENT_REQUEST_TIMEOUT = 30.0  # seconds to wait for an elicitation answer

# Logging defaults
DEFAULT_LOG_LEVEL = "INFO"
