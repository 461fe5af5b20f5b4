"""Telemetry pipeline, the entry point an instrumented server talks to.

The pipeline owns the consent store, the negotiator and the exporter.
Every emission is gated on the *effective* preferences: the configured
switches intersected with the stored consent decision. Attributes are
sanitized (when PII sanitization is in effect) and flattened before they
reach the exporter.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, Mapping, Optional, TypedDict, Union
from uuid import uuid4

from opentelemetry import trace

from mcp_telemetry.config.schema import TelemetryConfig, load_config
from mcp_telemetry.consent.models import ConsentDecision, ConsentPreferences
from mcp_telemetry.consent.negotiator import ConsentNegotiator, deny_all_preferences
from mcp_telemetry.consent.sources import ConsentSource
from mcp_telemetry.consent.store import ConsentStore
from mcp_telemetry.constants import CONSENT_REQUEST_TIMEOUT, DEFAULT_ARGUMENT_PREFIX
from mcp_telemetry.errors import NotInitializedError
from mcp_telemetry.privacy.flatten import AttributeValue, flatten
from mcp_telemetry.privacy.sanitizer import sanitize
from mcp_telemetry.telemetry.exporter import TelemetryExporter, build_exporter

logger = logging.getLogger(__name__)

Recorder = Callable[..., None]


class TelemetryRecord(TypedDict, total=False):
    """Request-shaped record handed to :meth:`TelemetryPipeline.process_attributes`."""

    timestamp: float
    session_id: str
    method_name: str
    parameters: Any


class TelemetryPipeline:
    """Consent-gated span and metric emission for one server.

    Parameters
    ----------
    config:
        A :class:`TelemetryConfig` or a mapping validated into one.
    exporter:
        Exporter to use instead of the one built from *config*.
    consent_store:
        Store to share; a private store is created when omitted.
    consent_source:
        The collaborator that asks for consent.
    consent_timeout:
        Seconds to wait for *consent_source*.

    Raises
    ------
    ConfigurationError
        If *config* is invalid (e.g. ``exporter_endpoint`` is missing).
    """

    def __init__(
        self,
        config: Union[TelemetryConfig, Mapping[str, Any]],
        *,
        exporter: Optional[TelemetryExporter] = None,
        consent_store: Optional[ConsentStore] = None,
        consent_source: Optional[ConsentSource] = None,
        consent_timeout: float = CONSENT_REQUEST_TIMEOUT,
    ) -> None:
        self._initialized = False
        self.config = load_config(config)
        self.session_id = uuid4().hex

        self._store = consent_store or ConsentStore()
        if self.config.elicitation is not None:
            self._store.initialize(self.config.elicitation.to_policy())
        self._negotiator = ConsentNegotiator(
            self._store, consent_source, timeout=consent_timeout
        )
        self._negotiation_lock: Optional[asyncio.Lock] = None
        self._lock_loop: Optional[asyncio.AbstractEventLoop] = None

        self._exporter: Optional[TelemetryExporter] = (
            exporter if exporter is not None else build_exporter(self.config)
        )
        self._initialized = True
        logger.info(
            "Telemetry pipeline ready: server=%s version=%s tracing=%s metrics=%s arguments=%s",
            self.config.server_name,
            self.config.server_version,
            self.config.enable_tracing,
            self.config.enable_metrics,
            self.config.enable_argument_collection,
        )

    # ── Properties ───────────────────────────────────────────────────

    @property
    def initialized(self) -> bool:
        return getattr(self, "_initialized", False)

    @property
    def consent_store(self) -> ConsentStore:
        return self._store

    @property
    def negotiator(self) -> ConsentNegotiator:
        return self._negotiator

    # ── Consent ──────────────────────────────────────────────────────

    async def start(self) -> None:
        """Run startup-mode consent negotiation."""
        policy = self._store.current_policy()
        if policy.enabled and policy.mode == "startup":
            await self.ensure_consent()

    async def ensure_consent(self) -> Optional[ConsentDecision]:
        async with self._lock_for_running_loop():
            return await self._negotiator.ensure_consent()

    async def on_request(self) -> None:
        """Negotiate before a request if no usable decision is in place.

        Covers first-request mode and decisions that went stale while the
        process was running. A rejected (``valid=False``) decision is kept
        until consent is updated or cleared.
        """
        if self._needs_negotiation():
            await self.ensure_consent()

    def get_consent_status(self) -> Optional[ConsentDecision]:
        return self._store.current_decision()

    def update_consent(
        self, preferences: Union[ConsentPreferences, Mapping[str, Any]]
    ) -> ConsentDecision:
        return self._negotiator.process_consent(preferences)

    def effective_preferences(self) -> ConsentPreferences:
        """Configured switches combined with the stored consent decision.

        Tracing, metrics and argument collection need both the config and
        the decision to allow them. PII sanitization applies if either
        asks for it. With elicitation enabled and nothing decided yet, the
        deny-all preferences apply.
        """
        cfg = self.config
        policy, decision = self._store.snapshot()
        if decision is None:
            if not policy.enabled:
                return ConsentPreferences(
                    enable_tracing=cfg.enable_tracing,
                    enable_metrics=cfg.enable_metrics,
                    enable_argument_collection=cfg.enable_argument_collection,
                    enable_pii_sanitization=cfg.enable_pii_sanitization,
                    sampling_rate=cfg.sampling_rate,
                )
            consent = deny_all_preferences()
        elif not decision.valid:
            consent = deny_all_preferences()
        else:
            consent = decision.preferences.clamped()

        return ConsentPreferences(
            enable_tracing=cfg.enable_tracing and consent.enable_tracing,
            enable_metrics=cfg.enable_metrics and consent.enable_metrics,
            enable_argument_collection=(
                cfg.enable_argument_collection and consent.enable_argument_collection
            ),
            enable_pii_sanitization=(
                cfg.enable_pii_sanitization or consent.enable_pii_sanitization
            ),
            sampling_rate=min(cfg.sampling_rate, consent.sampling_rate),
        )

    # ── Spans & metrics ──────────────────────────────────────────────

    def create_span(self, name: str, attributes: Optional[Mapping[str, Any]] = None) -> Any:
        """Start a span; the caller ends it.

        Returns a non-recording span when tracing is not in effect.
        """
        self._require_initialized()
        prefs = self.effective_preferences()
        if not prefs.enable_tracing:
            return trace.INVALID_SPAN
        return self._exporter.start_span(name, self._prepare(attributes, prefs))

    @contextmanager
    def start_active_span(
        self, name: str, attributes: Optional[Mapping[str, Any]] = None
    ) -> Iterator[Any]:
        """Context manager that starts a span and makes it current.

        Spans created inside the block become its children. The span is
        ended on exit; an escaping exception is recorded on it and marks
        it as an error before propagating.
        """
        span = self.create_span(name, attributes)
        with trace.use_span(
            span, end_on_exit=True, record_exception=True, set_status_on_exception=True
        ):
            yield span

    def record_span(
        self,
        name: str,
        attributes: Optional[Mapping[str, Any]] = None,
        status: str = "ok",
    ) -> None:
        """Emit a complete span in one call."""
        self._require_initialized()
        prefs = self.effective_preferences()
        if prefs.enable_tracing:
            self._exporter.emit_span(name, self._prepare(attributes, prefs), status)

    def get_histogram(self, name: str, description: str = "", unit: str = "") -> Recorder:
        """Return ``record(value, attributes=None)`` for histogram *name*."""
        self._require_initialized()

        def record(value: float, attributes: Optional[Mapping[str, Any]] = None) -> None:
            prefs = self.effective_preferences()
            if not prefs.enable_metrics:
                return
            self._exporter.emit_histogram(
                name,
                value,
                self._prepare(attributes, prefs),
                description=description,
                unit=unit,
            )

        return record

    def get_increment_counter(self, name: str, description: str = "", unit: str = "") -> Recorder:
        """Return ``add(value=1, attributes=None)`` for counter *name*."""
        self._require_initialized()

        def add(value: float = 1, attributes: Optional[Mapping[str, Any]] = None) -> None:
            prefs = self.effective_preferences()
            if not prefs.enable_metrics:
                return
            self._exporter.emit_increment(
                name,
                value,
                self._prepare(attributes, prefs),
                description=description,
                unit=unit,
            )

        return add

    # ── Attribute assembly ───────────────────────────────────────────

    def process_attributes(self, record: Mapping[str, Any]) -> Dict[str, Any]:
        """Sanitize ``parameters`` and run the configured data processors.

        Processors run in order, each receiving the previous one's output.
        The first sees already-sanitized data; later ones may change
        anything, including redacted fields.
        """
        processed: Dict[str, Any] = dict(record)
        if (
            processed.get("parameters") is not None
            and self.effective_preferences().enable_pii_sanitization
        ):
            processed["parameters"] = sanitize(processed["parameters"])
        for processor in self.config.data_processors:
            processed = processor(processed)
        return processed

    def get_argument_attributes(
        self, params: Any, prefix: Optional[str] = None
    ) -> Dict[str, AttributeValue]:
        """Flatten tool arguments into span attributes.

        Empty unless argument collection is in effect.
        """
        if not self.effective_preferences().enable_argument_collection:
            return {}
        return flatten(params, prefix if prefix is not None else DEFAULT_ARGUMENT_PREFIX)

    # ── Lifecycle ────────────────────────────────────────────────────

    def shutdown(self) -> None:
        """Flush and close the exporter. Safe on a pipeline that never set up."""
        exporter = getattr(self, "_exporter", None)
        if exporter is None:
            return
        self._exporter = None
        try:
            exporter.flush_and_close()
        except Exception:
            logger.warning("Telemetry exporter failed to shut down cleanly", exc_info=True)
        else:
            logger.info("Telemetry pipeline shut down")

    # ── Internal ─────────────────────────────────────────────────────

    def _lock_for_running_loop(self) -> asyncio.Lock:
        # asyncio.Lock binds to one loop; a pipeline may outlive several.
        loop = asyncio.get_running_loop()
        if self._negotiation_lock is None or self._lock_loop is not loop:
            self._negotiation_lock = asyncio.Lock()
            self._lock_loop = loop
        return self._negotiation_lock

    def _require_initialized(self) -> None:
        if not self.initialized or getattr(self, "_exporter", None) is None:
            raise NotInitializedError()

    def _needs_negotiation(self) -> bool:
        policy, decision = self._store.snapshot()
        if not policy.enabled or policy.mode == "disabled":
            return False
        if decision is None:
            return True
        return decision.valid and not self._store.is_decision_fresh(decision)

    @staticmethod
    def _prepare(
        attributes: Optional[Mapping[str, Any]], prefs: ConsentPreferences
    ) -> Dict[str, AttributeValue]:
        if not attributes:
            return {}
        if prefs.enable_pii_sanitization:
            attributes = sanitize(attributes)
        return flatten(attributes, prefix="")

