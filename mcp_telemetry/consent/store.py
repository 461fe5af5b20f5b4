"""Process state for the current consent policy and decision."""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Tuple

from mcp_telemetry.consent.models import ConsentDecision, ConsentPolicy

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ConsentStore:
    """Holds the active :class:`ConsentPolicy` and at most one decision.

    The pipeline owns one store and hands it to the negotiator. Policy and
    decision are guarded by a single lock so readers always see a
    consistent pair (see :meth:`snapshot`).

    Parameters
    ----------
    policy:
        Initial policy. Defaults to a disabled policy.
    clock:
        Returns the current timezone-aware time. Used for freshness checks.
    """

    def __init__(
        self,
        policy: Optional[ConsentPolicy] = None,
        *,
        clock: Clock = _utcnow,
    ) -> None:
        self._lock = threading.Lock()
        self._policy = policy or ConsentPolicy()
        self._decision: Optional[ConsentDecision] = None
        self._clock = clock

    # ── Policy ───────────────────────────────────────────────────────

    def initialize(self, policy: ConsentPolicy) -> None:
        """Set the active policy. Last write wins."""
        with self._lock:
            self._policy = policy
        logger.debug(
            "Consent policy set: enabled=%s mode=%s fallback=%s reconsent_days=%s",
            policy.enabled,
            policy.mode,
            policy.fallback_behavior,
            policy.reconsent_interval_days,
        )

    def current_policy(self) -> ConsentPolicy:
        with self._lock:
            return self._policy

    def is_elicitation_enabled(self) -> bool:
        return self.current_policy().enabled

    @property
    def mode(self) -> str:
        return self.current_policy().mode

    @property
    def fallback_behavior(self) -> str:
        return self.current_policy().fallback_behavior

    # ── Decision ─────────────────────────────────────────────────────

    def set_decision(self, decision: ConsentDecision) -> None:
        """Replace the stored decision."""
        with self._lock:
            self._decision = decision
        logger.debug("Consent decision stored: session=%s valid=%s", decision.session_id, decision.valid)

    def clear_decision(self) -> None:
        """Forget the stored decision. No-op when there is none."""
        with self._lock:
            self._decision = None

    def current_decision(self) -> Optional[ConsentDecision]:
        with self._lock:
            return self._decision

    def snapshot(self) -> Tuple[ConsentPolicy, Optional[ConsentDecision]]:
        """Return ``(policy, decision)`` read under one lock acquisition."""
        with self._lock:
            return self._policy, self._decision

    # ── Queries ──────────────────────────────────────────────────────

    def is_decision_fresh(self, decision: ConsentDecision) -> bool:
        """``True`` unless the policy's re-consent interval has elapsed.

        Computed on every call, so decisions expire as time passes.
        """
        return self._is_fresh(self.current_policy(), decision)

    def is_consent_resolved(self) -> bool:
        """``True`` iff a valid, fresh decision is stored."""
        policy, decision = self.snapshot()
        if decision is None or not decision.valid:
            return False
        return self._is_fresh(policy, decision)

    def _is_fresh(self, policy: ConsentPolicy, decision: ConsentDecision) -> bool:
        if policy.reconsent_interval_days is None:
            return True
        age = self._clock() - decision.timestamp
        return age < timedelta(days=policy.reconsent_interval_days)
