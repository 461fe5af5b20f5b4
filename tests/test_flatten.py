"""Tests for argument flattening."""

from __future__ import annotations

import sys

from mcp_telemetry.privacy.flatten import flatten


class TestFlatten:
    def test_nested_objects(self):
        assert flatten({"a": 1, "b": {"c": 2}}, "p") == {"p.a": 1, "p.b.c": 2}

    def test_none_input(self):
        assert flatten(None, "p") == {}

    def test_default_prefix(self):
        assert flatten({"operation": "add", "a": 5, "b": 10}) == {
            "mcp.request.argument.operation": "add",
            "mcp.request.argument.a": 5,
            "mcp.request.argument.b": 10,
        }

    def test_sequences_use_index(self):
        assert flatten({"tags": ["x", "y"], "pts": [{"v": 1}]}, "p") == {
            "p.tags.0": "x",
            "p.tags.1": "y",
            "p.pts.0.v": 1,
        }

    def test_none_leaves_and_empty_containers_dropped(self):
        assert flatten({"a": None, "b": {}, "c": [], "d": False}, "p") == {"p.d": False}

    def test_scalar_root(self):
        assert flatten(5, "p") == {"p": 5}

    def test_order_follows_input(self):
        out = flatten({"z": 1, "a": {"y": 2, "b": 3}}, "p")
        assert list(out) == ["p.z", "p.a.y", "p.a.b"]

    def test_non_json_leaf_stringified(self):
        class Thing:
            def __str__(self) -> str:
                return "thing"

        assert flatten({"obj": Thing()}, "p") == {"p.obj": "thing"}

    def test_empty_prefix(self):
        assert flatten({"mcp.method": "call_tool", "x": {"y": 1}}, "") == {
            "mcp.method": "call_tool",
            "x.y": 1,
        }

    def test_types_preserved(self):
        out = flatten({"i": 1, "f": 1.5, "b": True, "s": "s"}, "p")
        assert out == {"p.i": 1, "p.f": 1.5, "p.b": True, "p.s": "s"}
        assert out["p.b"] is True

    def test_nesting_deeper_than_recursion_limit(self):
        depth = sys.getrecursionlimit() + 500
        data: dict = {"leaf": 1}
        for _ in range(depth):
            data = {"n": data}
        out = flatten(data, "p")
        assert out == {"p" + ".n" * depth + ".leaf": 1}
