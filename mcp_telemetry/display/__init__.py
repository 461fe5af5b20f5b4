"""Logging setup for processes that embed MCP Telemetry."""

from mcp_telemetry.display.logging_config import PIIRedactionFilter, setup_logging

__all__ = ["PIIRedactionFilter", "setup_logging"]
