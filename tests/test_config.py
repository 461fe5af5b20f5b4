"""Tests for configuration validation."""

from __future__ import annotations

import pytest

from mcp_telemetry.config.schema import (
    ApiKeyAuthConfig,
    BasicAuthConfig,
    BearerAuthConfig,
    ElicitationConfig,
    TelemetryConfig,
    load_config,
)
from mcp_telemetry.consent.models import ConsentPolicy
from mcp_telemetry.errors import ConfigurationError


class TestLoadConfig:
    def test_defaults_merged(self):
        cfg = load_config(
            {"server_name": "test", "server_version": "1.0.0", "exporter_endpoint": "http://localhost:4318"}
        )
        assert cfg.enable_pii_sanitization is True
        assert cfg.enable_tracing is True
        assert cfg.enable_metrics is True
        assert cfg.enable_argument_collection is False
        assert cfg.sampling_rate == 1.0
        assert cfg.exporter_type == "otlp-http"
        assert cfg.data_processors == []
        assert cfg.elicitation is None

    def test_missing_endpoint(self):
        with pytest.raises(ConfigurationError, match="exporter_endpoint"):
            load_config({"server_name": "test"})

    def test_empty_endpoint(self):
        with pytest.raises(ConfigurationError, match="exporter_endpoint"):
            load_config({"exporter_endpoint": ""})

    def test_bad_endpoint_scheme(self):
        with pytest.raises(ConfigurationError, match="http"):
            load_config({"exporter_endpoint": "localhost:4318"})

    def test_trailing_slash_stripped(self):
        cfg = load_config({"exporter_endpoint": "http://collector:4318/"})
        assert cfg.exporter_endpoint == "http://collector:4318"

    def test_sampling_rate_range(self):
        with pytest.raises(ConfigurationError, match="sampling_rate"):
            load_config({"exporter_endpoint": "http://x", "sampling_rate": 1.5})

    def test_not_a_mapping(self):
        with pytest.raises(ConfigurationError):
            load_config(["exporter_endpoint"])  # type: ignore[arg-type]

    def test_model_passthrough(self):
        cfg = TelemetryConfig(exporter_endpoint="http://x")
        assert load_config(cfg) is cfg

    def test_unknown_exporter_type(self):
        with pytest.raises(ConfigurationError):
            load_config({"exporter_endpoint": "http://x", "exporter_type": "zipkin"})

    def test_data_processors_must_be_callable(self):
        with pytest.raises(ConfigurationError):
            load_config({"exporter_endpoint": "http://x", "data_processors": ["nope"]})


class TestExporterAuth:
    def test_bearer(self):
        cfg = load_config(
            {"exporter_endpoint": "http://x", "exporter_auth": {"type": "bearer", "token": "t"}}
        )
        assert isinstance(cfg.exporter_auth, BearerAuthConfig)

    def test_api_key(self):
        cfg = load_config(
            {"exporter_endpoint": "http://x", "exporter_auth": {"type": "api_key", "api_key": "k"}}
        )
        assert isinstance(cfg.exporter_auth, ApiKeyAuthConfig)
        assert cfg.exporter_auth.header == "X-API-Key"

    def test_basic(self):
        cfg = load_config(
            {
                "exporter_endpoint": "http://x",
                "exporter_auth": {"type": "basic", "username": "u", "password": "p"},
            }
        )
        assert isinstance(cfg.exporter_auth, BasicAuthConfig)

    def test_unknown_type(self):
        with pytest.raises(ConfigurationError):
            load_config({"exporter_endpoint": "http://x", "exporter_auth": {"type": "magic"}})

    def test_bearer_requires_token(self):
        with pytest.raises(ConfigurationError):
            load_config({"exporter_endpoint": "http://x", "exporter_auth": {"type": "bearer"}})


class TestElicitationConfig:
    def test_defaults(self):
        cfg = ElicitationConfig(enabled=True)
        assert cfg.mode == "startup"
        assert cfg.fallback_behavior == "use-defaults"
        assert cfg.reconsent_interval_days is None

    def test_to_policy(self):
        policy = ElicitationConfig(
            enabled=True, mode="first-request", fallback_behavior="deny-all", reconsent_interval_days=30
        ).to_policy()
        assert policy == ConsentPolicy(
            enabled=True, mode="first-request", fallback_behavior="deny-all", reconsent_interval_days=30
        )

    def test_invalid_mode(self):
        with pytest.raises(ConfigurationError):
            load_config({"exporter_endpoint": "http://x", "elicitation": {"enabled": True, "mode": "later"}})


class TestFromEnv:
    def test_reads_otel_variables(self, monkeypatch):
        monkeypatch.setenv("OTEL_EXPORTER_OTLP_ENDPOINT", "https://otel.example.com")
        monkeypatch.setenv("OTEL_AUTH_TOKEN", "secret-token")
        monkeypatch.setenv("OTEL_SAMPLING_RATE", "0.25")
        monkeypatch.setenv("OTEL_SERVICE_NAME", "svc")
        cfg = TelemetryConfig.from_env()
        assert cfg.exporter_endpoint == "https://otel.example.com"
        assert cfg.server_name == "svc"
        assert cfg.sampling_rate == 0.25
        assert isinstance(cfg.exporter_auth, BearerAuthConfig)
        assert cfg.exporter_auth.token == "secret-token"

    def test_overrides_win(self, monkeypatch):
        monkeypatch.setenv("OTEL_EXPORTER_OTLP_ENDPOINT", "https://otel.example.com")
        cfg = TelemetryConfig.from_env(exporter_endpoint="http://local:4318", enable_argument_collection=True)
        assert cfg.exporter_endpoint == "http://local:4318"
        assert cfg.enable_argument_collection is True

    def test_missing_endpoint(self, monkeypatch):
        monkeypatch.delenv("OTEL_EXPORTER_OTLP_ENDPOINT", raising=False)
        with pytest.raises(ConfigurationError):
            TelemetryConfig.from_env()

    def test_bad_sampling_rate(self, monkeypatch):
        monkeypatch.setenv("OTEL_EXPORTER_OTLP_ENDPOINT", "http://x")
        monkeypatch.setenv("OTEL_SAMPLING_RATE", "often")
        with pytest.raises(ConfigurationError, match="OTEL_SAMPLING_RATE"):
            TelemetryConfig.from_env()
