"""Custom exception classes for MCP Telemetry."""

from typing import Any, Optional


class TelemetryBaseError(Exception):
    """Base class for all custom exceptions in MCP Telemetry."""

    pass


class ConfigurationError(TelemetryBaseError):
    """Raised when the telemetry configuration is missing or invalid."""

    pass


class NotInitializedError(TelemetryBaseError):
    """Raised when an emission call reaches a pipeline that skipped setup."""

    def __init__(self, message: str = "Telemetry not initialized"):
        super().__init__(message)


class SessionNotFoundError(TelemetryBaseError):
    """Raised when feedback targets a session that was never started or already ended."""

    def __init__(self, session_id: str, detail: Optional[str] = None):
        self.session_id = session_id
        message = f"Session {session_id} not found"
        if detail:
            message += f": {detail}"
        super().__init__(message)


class ToolCallError(TelemetryBaseError):
    """Raised inside the request chain when a tool reports ``isError``.

    Carries the SDK result so it can still be returned to the client.
    """

    def __init__(self, result: Any, message: str = "Tool call returned an error result"):
        self.result = result
        super().__init__(message)
