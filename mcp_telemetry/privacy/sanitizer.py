"""PII redaction for arbitrary request data.

Walks nested mappings and sequences and replaces sensitive leaves with a
fixed marker, keeping keys, nesting and sequence order intact. A leaf is
sensitive when either:

* its field name is a known-sensitive name (``email``, ``password``,
  ``apiKey``, ``credit_card_number``, ``token``, ``secret``, ...), or
* its text looks like an email address, a 13 to 19 digit card number, a
  bearer token or a JWT, whatever the field is called.

Input is never mutated; a new structure is returned.
"""

from __future__ import annotations

import re
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple, Union

from mcp_telemetry.constants import REDACTION_MARKER

JsonScalar = Union[None, bool, int, float, str]
JsonValue = Union[JsonScalar, Sequence["JsonValue"], Mapping[str, "JsonValue"]]

# Names compared after lowercasing and dropping "_", "-", "." and spaces.
SENSITIVE_NAMES = frozenset(
    {
        "email",
        "emailaddress",
        "mail",
        "password",
        "passwd",
        "pwd",
        "passphrase",
        "apikey",
        "apisecret",
        "secret",
        "secretkey",
        "clientsecret",
        "privatekey",
        "token",
        "accesstoken",
        "refreshtoken",
        "idtoken",
        "authtoken",
        "bearertoken",
        "sessiontoken",
        "authorization",
        "auth",
        "cookie",
        "creditcard",
        "creditcardnumber",
        "cardnumber",
        "ccnumber",
        "cvv",
        "cvc",
        "ssn",
        "socialsecuritynumber",
    }
)

# Compound names such as ``userEmail`` or ``db_password``.
SENSITIVE_SUFFIXES = ("email", "password", "passwd", "secret", "apikey", "accesstoken", "authtoken")

_NAME_SEPARATORS = re.compile(r"[\s_\-.]+")

EMAIL_RE = re.compile(r"[A-Za-z0-9._%+\-]+@[A-Za-z0-9.\-]+\.[A-Za-z]{2,}")
CARD_NUMBER_RE = re.compile(r"(?<!\d)\d(?:[ \-]?\d){12,18}(?!\d)")
BEARER_RE = re.compile(r"\bbearer\s+[A-Za-z0-9\-._~+/]+=*", re.IGNORECASE)
JWT_RE = re.compile(r"\beyJ[A-Za-z0-9_\-]+\.[A-Za-z0-9_\-]+\.[A-Za-z0-9_\-]*")

VALUE_PATTERNS: Tuple[re.Pattern[str], ...] = (EMAIL_RE, CARD_NUMBER_RE, BEARER_RE, JWT_RE)


def _normalise_name(name: str) -> str:
    # The last non-index segment of a dotted attribute key names the field,
    # so "args.password.0" is judged as "password".
    segments = name.split(".")
    while len(segments) > 1 and segments[-1].isdigit():
        segments.pop()
    return _NAME_SEPARATORS.sub("", segments[-1]).lower()


def is_sensitive_key(name: Optional[str]) -> bool:
    """Return ``True`` if a field called *name* holds sensitive data."""
    if not name:
        return False
    normalised = _normalise_name(name)
    if normalised in SENSITIVE_NAMES:
        return True
    return any(
        normalised.endswith(suffix) and normalised != suffix for suffix in SENSITIVE_SUFFIXES
    )


def is_sensitive_value(value: Any) -> bool:
    """Return ``True`` if the textual form of *value* looks like PII.

    Only strings and integers are inspected; booleans and floats never
    match.
    """
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        text = str(value)
    elif isinstance(value, str):
        text = value
    else:
        return False
    return any(pattern.search(text) for pattern in VALUE_PATTERNS)


def redact_text(text: str, marker: str = REDACTION_MARKER) -> str:
    """Replace every PII-shaped substring of *text* with *marker*."""
    for pattern in VALUE_PATTERNS:
        text = pattern.sub(marker, text)
    return text


def sanitize(value: JsonValue, *, marker: str = REDACTION_MARKER) -> JsonValue:
    """Return a redacted copy of *value*.

    Mappings and sequences are rebuilt with the same keys and order;
    sequence items are judged under the name of their enclosing field.
    Leaves that are not sensitive keep their original object and type.
    """
    return _sanitize(value, None, marker)


def sanitize_attributes(
    attributes: Optional[Mapping[str, Any]], *, marker: str = REDACTION_MARKER
) -> Dict[str, Any]:
    """Sanitize a flat telemetry attribute mapping (dotted keys)."""
    if not attributes:
        return {}
    return {key: _sanitize(val, key, marker) for key, val in attributes.items()}


class _Frame:
    """One container being rebuilt during the walk."""

    __slots__ = ("source", "slot", "entries", "out")

    def __init__(self, source: Any, key: Optional[str], slot: Any = None) -> None:
        self.source = source
        self.slot = slot
        if isinstance(source, Mapping):
            self.entries = ((k, str(k), v) for k, v in source.items())
            self.out: Any = {}
        else:
            # Sequence items are judged under the enclosing field's name.
            self.entries = ((None, key, v) for v in source)
            self.out = []

    def add(self, slot: Any, value: Any) -> None:
        if isinstance(self.out, dict):
            self.out[slot] = value
        else:
            self.out.append(value)

    def finish(self) -> Any:
        return tuple(self.out) if isinstance(self.source, tuple) else self.out


def _is_container(value: Any) -> bool:
    return isinstance(value, (Mapping, list, tuple))


def _sanitize_leaf(value: Any, key: Optional[str], marker: str) -> Any:
    if value is None:
        return None
    if is_sensitive_key(key) or is_sensitive_value(value):
        return marker
    return value


def _sanitize(value: Any, key: Optional[str], marker: str) -> Any:
    # Explicit stack instead of recursion: nesting depth is unbounded.
    if not _is_container(value):
        return _sanitize_leaf(value, key, marker)

    stack = [_Frame(value, key)]
    while True:
        frame = stack[-1]
        entry = next(frame.entries, None)
        if entry is None:
            stack.pop()
            done = frame.finish()
            if not stack:
                return done
            stack[-1].add(frame.slot, done)
            continue
        slot, child_key, child = entry
        if _is_container(child):
            stack.append(_Frame(child, child_key, slot))
        else:
            frame.add(slot, _sanitize_leaf(child, child_key, marker))
