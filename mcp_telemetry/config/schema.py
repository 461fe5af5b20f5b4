"""Pydantic configuration models for MCP Telemetry.

Covers the exporter connection (endpoint, type, authentication), the
collection switches, custom data processors, and the consent elicitation
policy.
"""

from __future__ import annotations

import os
from typing import Annotated, Any, Callable, Dict, List, Literal, Mapping, Optional, Union

from pydantic import BaseModel, Field, ValidationError, field_validator

from mcp_telemetry.consent.models import ConsentPolicy
from mcp_telemetry.constants import (
    DEFAULT_API_KEY_HEADER,
    DEFAULT_EXPORTER_TYPE,
    DEFAULT_SAMPLING_RATE,
)
from mcp_telemetry.errors import ConfigurationError

# ── Exporter authentication ──────────────────────────────────────────────


class BearerAuthConfig(BaseModel):
    """Bearer token sent as ``Authorization: Bearer <token>``."""

    type: Literal["bearer"]
    token: str = Field(..., min_length=1)


class ApiKeyAuthConfig(BaseModel):
    """API key sent in a dedicated header."""

    type: Literal["api_key"]
    api_key: str = Field(..., min_length=1)
    header: str = Field(default=DEFAULT_API_KEY_HEADER, min_length=1)


class BasicAuthConfig(BaseModel):
    """HTTP basic authentication."""

    type: Literal["basic"]
    username: str = Field(..., min_length=1)
    password: str


ExporterAuthConfig = Annotated[
    Union[BearerAuthConfig, ApiKeyAuthConfig, BasicAuthConfig],
    Field(discriminator="type"),
]


# ── Consent elicitation ──────────────────────────────────────────────────


class ElicitationConfig(BaseModel):
    """When and how telemetry consent is requested."""

    enabled: bool = False
    mode: Literal["startup", "first-request", "disabled"] = "startup"
    fallback_behavior: Literal["deny-all", "allow-basic", "use-defaults"] = "use-defaults"
    reconsent_interval_days: Optional[int] = Field(
        default=None,
        ge=0,
        description="Days after which a stored decision must be renewed.",
    )

    def to_policy(self) -> ConsentPolicy:
        return ConsentPolicy(
            enabled=self.enabled,
            mode=self.mode,
            fallback_behavior=self.fallback_behavior,
            reconsent_interval_days=self.reconsent_interval_days,
        )


# ── Top-level config ─────────────────────────────────────────────────────

DataProcessor = Callable[[Dict[str, Any]], Dict[str, Any]]


class TelemetryConfig(BaseModel):
    """Telemetry configuration for one instrumented server."""

    server_name: str = Field(default="mcp-server", min_length=1)
    server_version: str = Field(default="0.0.0")
    exporter_endpoint: str = Field(..., min_length=1, description="Collector base URL.")
    exporter_type: Literal["otlp-http", "console"] = DEFAULT_EXPORTER_TYPE
    exporter_auth: Optional[ExporterAuthConfig] = None
    sampling_rate: float = Field(default=DEFAULT_SAMPLING_RATE, ge=0.0, le=1.0)
    enable_tracing: bool = True
    enable_metrics: bool = True
    enable_pii_sanitization: bool = True
    enable_argument_collection: bool = False
    data_processors: List[DataProcessor] = Field(
        default_factory=list,
        description="Record transforms applied in order after sanitization.",
    )
    elicitation: Optional[ElicitationConfig] = None

    @field_validator("exporter_endpoint")
    @classmethod
    def _validate_endpoint(cls, v: str) -> str:
        v = v.strip()
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"URL '{v}' must start with http:// or https://")
        return v.rstrip("/")

    @classmethod
    def from_env(cls, **overrides: Any) -> "TelemetryConfig":
        """Build a config from the standard ``OTEL_*`` environment variables.

        Explicit keyword *overrides* win over the environment.
        """
        data: Dict[str, Any] = {}
        endpoint = os.environ.get("OTEL_EXPORTER_OTLP_ENDPOINT")
        if endpoint:
            data["exporter_endpoint"] = endpoint
        service = os.environ.get("OTEL_SERVICE_NAME")
        if service:
            data["server_name"] = service
        token = os.environ.get("OTEL_AUTH_TOKEN")
        if token:
            data["exporter_auth"] = {"type": "bearer", "token": token}
        rate = os.environ.get("OTEL_SAMPLING_RATE")
        if rate:
            try:
                data["sampling_rate"] = float(rate)
            except ValueError as exc:
                raise ConfigurationError(
                    f"OTEL_SAMPLING_RATE must be a number, got '{rate}'"
                ) from exc
        data.update(overrides)
        return load_config(data)


def _format_validation_errors(exc: ValidationError) -> str:
    """Format Pydantic validation errors into a readable multi-line string."""
    lines: List[str] = []
    for err in exc.errors():
        loc = " → ".join(str(part) for part in err["loc"])
        lines.append(f"  • {loc}: {err['msg']}")
    return "\n".join(lines)


def load_config(data: Union[TelemetryConfig, Mapping[str, Any]]) -> TelemetryConfig:
    """Validate *data* into a :class:`TelemetryConfig`.

    Raises :class:`ConfigurationError` listing every invalid field.
    """
    if isinstance(data, TelemetryConfig):
        return data
    if not isinstance(data, Mapping):
        raise ConfigurationError(
            f"Telemetry configuration must be a mapping, got {type(data).__name__}"
        )
    if not data.get("exporter_endpoint"):
        raise ConfigurationError("exporter_endpoint is required")
    try:
        return TelemetryConfig.model_validate(dict(data))
    except ValidationError as exc:
        error_summary = _format_validation_errors(exc)
        raise ConfigurationError(
            f"Configuration validation failed ({len(exc.errors())} error(s)):\n" f"{error_summary}"
        ) from exc
