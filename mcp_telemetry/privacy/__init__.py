"""Privacy transforms applied before anything leaves the process."""

from mcp_telemetry.privacy.flatten import flatten
from mcp_telemetry.privacy.sanitizer import (
    is_sensitive_key,
    is_sensitive_value,
    redact_text,
    sanitize,
    sanitize_attributes,
)

__all__ = [
    "flatten",
    "is_sensitive_key",
    "is_sensitive_value",
    "redact_text",
    "sanitize",
    "sanitize_attributes",
]
