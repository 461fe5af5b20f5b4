"""Tests for PII sanitization."""

from __future__ import annotations

import copy
import sys

import pytest

from mcp_telemetry.privacy.sanitizer import (
    is_sensitive_key,
    is_sensitive_value,
    redact_text,
    sanitize,
    sanitize_attributes,
)

# ── Field names ──────────────────────────────────────────────────────────


class TestSensitiveKeys:
    @pytest.mark.parametrize(
        "name",
        [
            "email",
            "Email",
            "EMAIL",
            "password",
            "apiKey",
            "api_key",
            "API-KEY",
            "token",
            "access_token",
            "secret",
            "client_secret",
            "creditCardNumber",
            "credit_card_number",
            "userEmail",
            "db_password",
            "mcp.request.argument.email",
            "mcp.request.argument.password.0",
            "mcp.request.argument.api_key.2.1",
        ],
    )
    def test_sensitive(self, name):
        assert is_sensitive_key(name) is True

    @pytest.mark.parametrize(
        "name",
        ["name", "operation", "max_tokens", "token_count", "session", "format", "tags.0", "0", "", None],
    )
    def test_not_sensitive(self, name):
        assert is_sensitive_key(name) is False


# ── Values ───────────────────────────────────────────────────────────────


class TestSensitiveValues:
    @pytest.mark.parametrize(
        "value",
        [
            "a@b.com",
            "contact me at jane.doe@example.org please",
            "4111111111111111",
            "4111 1111 1111 1111",
            "4111-1111-1111-1111",
            4111111111111111,
            "Bearer abc.def-123",
            "bearer sk_live_abcdef",
            "eyJhbGciOiJIUzI1NiJ9.eyJzdWIiOiIxIn0.sig",
        ],
    )
    def test_sensitive(self, value):
        assert is_sensitive_value(value) is True

    @pytest.mark.parametrize(
        "value",
        ["hello", "John Doe", "123456", 42, 3.14, True, False, None, "not an @ email"],
    )
    def test_not_sensitive(self, value):
        assert is_sensitive_value(value) is False

    def test_redact_text_replaces_substrings(self):
        out = redact_text("user a@b.com sent Bearer tok123")
        assert "a@b.com" not in out
        assert "tok123" not in out
        assert out.startswith("user [REDACTED]")


# ── sanitize ─────────────────────────────────────────────────────────────


class TestSanitize:
    def test_email_redacted_name_kept(self):
        assert sanitize({"email": "a@b.com", "name": "X"}) == {"email": "[REDACTED]", "name": "X"}

    def test_nested_redaction_preserves_structure(self):
        data = {"user": {"email": "a@b.com", "settings": {"apiKey": "k", "theme": "dark"}}}
        out = sanitize(data)
        assert out == {
            "user": {"email": "[REDACTED]", "settings": {"apiKey": "[REDACTED]", "theme": "dark"}}
        }

    def test_value_pattern_regardless_of_name(self):
        out = sanitize({"note": "reach me at a@b.com", "card": "4111 1111 1111 1111"})
        assert out == {"note": "[REDACTED]", "card": "[REDACTED]"}

    def test_types_preserved(self):
        data = {"count": 3, "ratio": 0.5, "flag": True, "missing": None, "name": "ok"}
        out = sanitize(data)
        assert out == data
        assert out["count"] is data["count"]
        assert type(out["ratio"]) is float
        assert out["flag"] is True
        assert out["missing"] is None

    def test_sequences_keep_order_and_length(self):
        data = {"items": ["a", "b@c.io", 7], "emails": ["x", "y"]}
        out = sanitize(data)
        assert out["items"] == ["a", "[REDACTED]", 7]
        assert out["emails"] == ["x", "y"]

    def test_list_under_sensitive_name(self):
        assert sanitize({"password": ["one", "two"]}) == {"password": ["[REDACTED]", "[REDACTED]"]}

    def test_tuple_stays_tuple(self):
        out = sanitize({"pair": ("a@b.com", "b")})
        assert out == {"pair": ("[REDACTED]", "b")}

    def test_top_level_scalars(self):
        assert sanitize("plain") == "plain"
        assert sanitize("a@b.com") == "[REDACTED]"
        assert sanitize(5) == 5
        assert sanitize(None) is None

    def test_input_not_mutated(self):
        data = {"user": {"email": "a@b.com", "tags": ["x", "a@b.com"]}}
        before = copy.deepcopy(data)
        out = sanitize(data)
        assert data == before
        assert out is not data
        assert out["user"] is not data["user"]

    def test_deep_nesting(self):
        data: dict = {"email": "a@b.com"}
        for i in range(200):
            data = {f"level{i}": data, "list": [i]}
        out = sanitize(data)
        node = out
        for i in reversed(range(200)):
            node = node[f"level{i}"]
        assert node == {"email": "[REDACTED]"}

    def test_nesting_deeper_than_recursion_limit(self):
        depth = sys.getrecursionlimit() + 500
        data: dict = {"email": "a@b.com", "tags": ("x",)}
        for _ in range(depth):
            data = {"child": [data]}
        node = sanitize(data)
        for _ in range(depth):
            node = node["child"][0]
        assert node == {"email": "[REDACTED]", "tags": ("x",)}

    def test_custom_marker(self):
        assert sanitize({"token": "t"}, marker="***") == {"token": "***"}

    def test_shape_preserved_everywhere(self):
        data = {
            "a": [1, {"b": "x", "password": "p"}, ["c", "d@e.fr"]],
            "f": {"g": {"h": None, "secret": 1}},
        }
        out = sanitize(data)

        def shape(node):
            if isinstance(node, dict):
                return {k: shape(v) for k, v in node.items()}
            if isinstance(node, list):
                return [shape(v) for v in node]
            return "leaf"

        assert shape(out) == shape(data)


class TestSanitizeAttributes:
    def test_dotted_keys_use_last_segment(self):
        attrs = {
            "mcp.request.argument.email": "x",
            "mcp.request.argument.operation": "add",
            "mcp.method": "call_tool",
        }
        out = sanitize_attributes(attrs)
        assert out == {
            "mcp.request.argument.email": "[REDACTED]",
            "mcp.request.argument.operation": "add",
            "mcp.method": "call_tool",
        }

    def test_empty(self):
        assert sanitize_attributes(None) == {}
        assert sanitize_attributes({}) == {}

    def test_flattened_list_items_use_enclosing_name(self):
        attrs = {
            "mcp.request.argument.password.0": "hunter2",
            "mcp.request.argument.api_key.0": "sk-123",
            "mcp.request.argument.tags.0": "blue",
        }
        assert sanitize_attributes(attrs) == {
            "mcp.request.argument.password.0": "[REDACTED]",
            "mcp.request.argument.api_key.0": "[REDACTED]",
            "mcp.request.argument.tags.0": "blue",
        }
