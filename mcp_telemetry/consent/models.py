"""Consent value objects.

A :class:`ConsentDecision` is the durable record of what telemetry the
operator or end user authorised. Decisions are frozen; a renegotiation
replaces the stored decision instead of editing it.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

ConsentMode = Literal["startup", "first-request", "disabled"]
FallbackBehavior = Literal["deny-all", "allow-basic", "use-defaults"]


class ConsentPolicy(BaseModel):
    """When consent is negotiated and what happens if negotiation fails."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = False
    mode: ConsentMode = "disabled"
    fallback_behavior: FallbackBehavior = "use-defaults"
    reconsent_interval_days: Optional[int] = Field(default=None, ge=0)


class ConsentPreferences(BaseModel):
    """What the user agreed to collect.

    Any combination of switches is valid. ``sampling_rate`` is not range
    checked here; use :meth:`clamped` where a bounded value is required.
    """

    model_config = ConfigDict(frozen=True)

    enable_tracing: bool
    enable_metrics: bool
    enable_argument_collection: bool
    enable_pii_sanitization: bool
    sampling_rate: float

    def clamped(self) -> ConsentPreferences:
        """Return a copy with ``sampling_rate`` clamped to ``[0, 1]``."""
        rate = min(1.0, max(0.0, self.sampling_rate))
        if rate == self.sampling_rate:
            return self
        return self.model_copy(update={"sampling_rate": rate})


class ConsentDecision(BaseModel):
    """A negotiated (or fallback) consent outcome.

    ``valid=False`` marks a decision that negotiation rejected, which is
    different from having no decision at all.
    """

    model_config = ConfigDict(frozen=True)

    session_id: str = Field(default_factory=lambda: uuid4().hex)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    preferences: ConsentPreferences
    valid: bool = True

    @field_validator("timestamp")
    @classmethod
    def _assume_utc(cls, v: datetime) -> datetime:
        # Naive timestamps are treated as UTC so freshness math never mixes kinds.
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v
