"""Consent negotiation.

Flow::

    ensure_consent() → policy disabled?         → done
                     → fresh valid decision?    → done
                     → consent source (timeout) → process_consent()
                                     ↳ refusal / timeout / error → fallback decision

Negotiation never raises to the host: whatever goes wrong, a fallback
decision matching ``policy.fallback_behavior`` is stored.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Mapping, Optional, Union

from pydantic import ValidationError

from mcp_telemetry.consent.feedback import FeedbackLog
from mcp_telemetry.consent.models import ConsentDecision, ConsentPreferences
from mcp_telemetry.consent.sources import ConsentSource, StaticConsentSource
from mcp_telemetry.consent.store import ConsentStore
from mcp_telemetry.constants import CONSENT_REQUEST_TIMEOUT

logger = logging.getLogger(__name__)


def default_preferences() -> ConsentPreferences:
    """Metrics only, 10% sampling."""
    return ConsentPreferences(
        enable_tracing=False,
        enable_metrics=True,
        enable_argument_collection=False,
        enable_pii_sanitization=True,
        sampling_rate=0.1,
    )


def deny_all_preferences() -> ConsentPreferences:
    return ConsentPreferences(
        enable_tracing=False,
        enable_metrics=False,
        enable_argument_collection=False,
        enable_pii_sanitization=True,
        sampling_rate=0.0,
    )


def allow_basic_preferences() -> ConsentPreferences:
    """Metrics only, unsampled."""
    return ConsentPreferences(
        enable_tracing=False,
        enable_metrics=True,
        enable_argument_collection=False,
        enable_pii_sanitization=True,
        sampling_rate=1.0,
    )


_FALLBACKS = {
    "use-defaults": default_preferences,
    "deny-all": deny_all_preferences,
    "allow-basic": allow_basic_preferences,
}


def fallback_preferences(behavior: str) -> ConsentPreferences:
    """Return the fixed preference set for a ``fallback_behavior`` value."""
    try:
        return _FALLBACKS[behavior]()
    except KeyError:
        raise ValueError(f"Unknown fallback behavior '{behavior}'") from None


class ConsentNegotiator:
    """Obtains consent and records the outcome in a :class:`ConsentStore`.

    Parameters
    ----------
    store:
        Store shared with the pipeline.
    source:
        The ``requestConsent`` collaborator. Defaults to a source that
        answers with :func:`default_preferences`.
    timeout:
        Seconds to wait for *source* before falling back.
    feedback:
        Audit trail for decisions; a private log is created when omitted.
    """

    def __init__(
        self,
        store: ConsentStore,
        source: Optional[ConsentSource] = None,
        *,
        timeout: float = CONSENT_REQUEST_TIMEOUT,
        feedback: Optional[FeedbackLog] = None,
    ) -> None:
        self._store = store
        self._source: ConsentSource = source or StaticConsentSource(default_preferences())
        self._timeout = timeout
        self.feedback = feedback or FeedbackLog()

    @property
    def store(self) -> ConsentStore:
        return self._store

    # ── Negotiation ──────────────────────────────────────────────────

    async def ensure_consent(self) -> Optional[ConsentDecision]:
        """Make sure a consent decision is in place.

        Returns the decision in effect afterwards, or ``None`` when the
        policy is disabled and no decision is stored.
        """
        policy = self._store.current_policy()
        if not policy.enabled:
            return self._store.current_decision()
        if self._store.is_consent_resolved():
            logger.debug("Consent already resolved; skipping elicitation")
            return self._store.current_decision()

        logger.info("Requesting user consent for telemetry...")
        preferences = await self.request_consent()
        if preferences is None:
            return self._apply_fallback(policy.fallback_behavior)
        return self.process_consent(preferences)

    async def request_consent(self) -> Optional[ConsentPreferences]:
        """Ask the source, bounded by the timeout.

        Returns ``None`` on refusal, timeout, an invalid answer, or any
        error raised by the source.
        """
        try:
            answer = await asyncio.wait_for(self._source(), timeout=self._timeout)
        except asyncio.TimeoutError:
            logger.warning("Consent request timed out after %.1fs", self._timeout)
            return None
        except Exception:
            logger.warning("Consent source failed", exc_info=True)
            return None

        if answer is None:
            logger.info("Consent request was refused")
            return None
        return self._coerce(answer)

    def process_consent(
        self, preferences: Union[ConsentPreferences, Mapping[str, Any]]
    ) -> ConsentDecision:
        """Store a fresh, valid decision for *preferences*."""
        if not isinstance(preferences, ConsentPreferences):
            preferences = ConsentPreferences.model_validate(dict(preferences))
        decision = ConsentDecision(preferences=preferences, valid=True)
        self._replace_decision(decision, "granted")
        logger.info(
            "Telemetry consent recorded: session=%s tracing=%s metrics=%s arguments=%s",
            decision.session_id,
            preferences.enable_tracing,
            preferences.enable_metrics,
            preferences.enable_argument_collection,
        )
        return decision

    # ── Internal ─────────────────────────────────────────────────────

    def _apply_fallback(self, behavior: str) -> ConsentDecision:
        decision = ConsentDecision(
            preferences=fallback_preferences(behavior),
            valid=behavior != "deny-all",
        )
        self._replace_decision(decision, f"fallback:{behavior}")
        logger.warning("Telemetry consent not obtained; applied '%s' fallback", behavior)
        return decision

    def _replace_decision(self, decision: ConsentDecision, outcome: str) -> None:
        # The feedback log only keeps the session of the decision in effect.
        previous = self._store.current_decision()
        self._store.set_decision(decision)
        self.feedback.start_session(decision.session_id)
        self.feedback.record_feedback(decision.session_id, "outcome", outcome)
        if previous is not None and previous.session_id != decision.session_id:
            self.feedback.end_session(previous.session_id)

    @staticmethod
    def _coerce(answer: Any) -> Optional[ConsentPreferences]:
        if isinstance(answer, ConsentPreferences):
            return answer
        if not isinstance(answer, Mapping):
            logger.warning("Ignoring consent answer of type %s", type(answer).__name__)
            return None
        try:
            return ConsentPreferences.model_validate(dict(answer))
        except ValidationError as exc:
            logger.warning("Ignoring invalid consent answer: %d error(s)", len(exc.errors()))
            return None
