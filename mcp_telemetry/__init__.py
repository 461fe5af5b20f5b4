"""
MCP Telemetry - consent-gated telemetry for MCP tool servers.

Decides whether and what to collect, redacts sensitive request data before
emission, and hands spans and metrics to an OpenTelemetry exporter.
"""

from mcp_telemetry.config import ElicitationConfig, TelemetryConfig, load_config
from mcp_telemetry.consent import (
    ConsentDecision,
    ConsentNegotiator,
    ConsentPolicy,
    ConsentPreferences,
    ConsentStore,
    FeedbackLog,
)
from mcp_telemetry.constants import PACKAGE_NAME, PACKAGE_VERSION
from mcp_telemetry.errors import (
    ConfigurationError,
    NotInitializedError,
    SessionNotFoundError,
    TelemetryBaseError,
    ToolCallError,
)
from mcp_telemetry.privacy import flatten, sanitize
from mcp_telemetry.telemetry import TelemetryPipeline, instrument_mcp_server, instrument_server

__version__ = PACKAGE_VERSION
__app_name__ = PACKAGE_NAME

__all__ = [
    "ConfigurationError",
    "ConsentDecision",
    "ConsentNegotiator",
    "ConsentPolicy",
    "ConsentPreferences",
    "ConsentStore",
    "ElicitationConfig",
    "FeedbackLog",
    "NotInitializedError",
    "SessionNotFoundError",
    "TelemetryBaseError",
    "TelemetryConfig",
    "TelemetryPipeline",
    "ToolCallError",
    "__version__",
    "flatten",
    "instrument_mcp_server",
    "instrument_server",
    "load_config",
    "sanitize",
]
