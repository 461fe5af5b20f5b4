"""Consent lifecycle: policy, decisions, negotiation and the audit trail."""

from mcp_telemetry.consent.feedback import FeedbackLog, FeedbackSession, UserFeedback
from mcp_telemetry.consent.models import ConsentDecision, ConsentPolicy, ConsentPreferences
from mcp_telemetry.consent.negotiator import (
    ConsentNegotiator,
    allow_basic_preferences,
    default_preferences,
    deny_all_preferences,
    fallback_preferences,
)
from mcp_telemetry.consent.sources import (
    CallbackConsentSource,
    ConsentSource,
    McpElicitationConsentSource,
    StaticConsentSource,
)
from mcp_telemetry.consent.store import ConsentStore

__all__ = [
    "CallbackConsentSource",
    "ConsentDecision",
    "ConsentNegotiator",
    "ConsentPolicy",
    "ConsentPreferences",
    "ConsentSource",
    "ConsentStore",
    "FeedbackLog",
    "FeedbackSession",
    "McpElicitationConsentSource",
    "StaticConsentSource",
    "UserFeedback",
    "allow_basic_preferences",
    "default_preferences",
    "deny_all_preferences",
    "fallback_preferences",
]
