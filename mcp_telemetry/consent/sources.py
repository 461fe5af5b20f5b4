"""Consent sources: the collaborators that actually ask for consent.

A source is an async callable returning :class:`ConsentPreferences`, a
mapping that validates into one, or ``None`` for a refusal. The
negotiator bounds every call with a timeout and falls back on failure,
so sources may raise freely.
"""

from __future__ import annotations

import inspect
import logging
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Protocol, Union

from mcp.server.session import ServerSession

from mcp_telemetry.consent.models import ConsentPreferences

logger = logging.getLogger(__name__)

ConsentAnswer = Union[ConsentPreferences, Mapping[str, Any], None]

CONSENT_MESSAGE = (
    "This server can send anonymised telemetry (traces and metrics) to help "
    "its operators diagnose problems. Choose what you are willing to share."
)

# Flat JSON schema accepted by MCP ``elicitation/create``.
CONSENT_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "enable_tracing": {
            "type": "boolean",
            "description": "Enable request tracing",
            "default": False,
        },
        "enable_metrics": {
            "type": "boolean",
            "description": "Enable performance metrics",
            "default": True,
        },
        "enable_argument_collection": {
            "type": "boolean",
            "description": "Include tool arguments in traces",
            "default": False,
        },
        "enable_pii_sanitization": {
            "type": "boolean",
            "description": "Redact personal data before export",
            "default": True,
        },
        "sampling_rate": {
            "type": "number",
            "description": "Fraction of requests to trace (0-1)",
            "minimum": 0,
            "maximum": 1,
            "default": 0.1,
        },
    },
    "required": ["enable_tracing", "enable_metrics"],
}


class ConsentSource(Protocol):
    """Async callable that obtains consent preferences or refuses."""

    async def __call__(self) -> ConsentAnswer: ...


class StaticConsentSource:
    """Always answers with the same preferences (or always refuses)."""

    def __init__(self, preferences: Optional[ConsentPreferences]) -> None:
        self._preferences = preferences

    async def __call__(self) -> Optional[ConsentPreferences]:
        return self._preferences


class CallbackConsentSource:
    """Adapts a plain sync or async callable into a :class:`ConsentSource`."""

    def __init__(self, callback: Callable[[], Union[ConsentAnswer, Awaitable[ConsentAnswer]]]) -> None:
        self._callback = callback

    async def __call__(self) -> ConsentAnswer:
        result = self._callback()
        if inspect.isawaitable(result):
            result = await result
        return result


class McpElicitationConsentSource:
    """Asks the connected MCP client through ``elicitation/create``.

    Parameters
    ----------
    session:
        The MCP server session of the client being asked.
    message:
        Prompt shown to the user.
    """

    def __init__(self, session: ServerSession, message: str = CONSENT_MESSAGE) -> None:
        self._session = session
        self._message = message

    async def __call__(self) -> Optional[Dict[str, Any]]:
        result = await self._session.elicit(
            message=self._message,
            requestedSchema=CONSENT_SCHEMA,
        )
        if result.action != "accept" or not result.content:
            logger.info("Client answered consent elicitation with '%s'", result.action)
            return None
        return _fill_defaults(result.content)


def _fill_defaults(content: Mapping[str, Any]) -> Dict[str, Any]:
    """Complete a partial form answer with the schema defaults."""
    answer = {
        name: prop["default"] for name, prop in CONSENT_SCHEMA["properties"].items()
    }
    answer.update({k: v for k, v in content.items() if k in answer})
    return answer
