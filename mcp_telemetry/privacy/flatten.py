"""Flatten structured tool arguments into telemetry attributes.

``{"a": 1, "b": {"c": 2}}`` with prefix ``p`` becomes
``{"p.a": 1, "p.b.c": 2}``. Sequence items use their index as the path
segment (``p.tags.0``). ``None`` leaves are dropped because span
attributes cannot carry them, and empty containers produce no entries.
"""

from __future__ import annotations

from typing import Any, Dict, Iterator, List, Mapping, Tuple, Union

from mcp_telemetry.constants import DEFAULT_ARGUMENT_PREFIX

AttributeValue = Union[str, bool, int, float]


def flatten(value: Any, prefix: str = DEFAULT_ARGUMENT_PREFIX) -> Dict[str, AttributeValue]:
    """Return the dotted-key attributes for *value* under *prefix*."""
    out: Dict[str, AttributeValue] = {}
    if value is None:
        return out
    stack: List[Iterator[Tuple[str, Any]]] = [iter([(prefix, value)])]
    while stack:
        entry = next(stack[-1], None)
        if entry is None:
            stack.pop()
            continue
        path, child = entry
        if child is None:
            continue
        if isinstance(child, Mapping):
            stack.append(iter([(_join(path, key), v) for key, v in child.items()]))
        elif isinstance(child, (list, tuple)):
            stack.append(iter([(_join(path, index), v) for index, v in enumerate(child)]))
        elif isinstance(child, (str, bool, int, float)):
            out[path] = child
        else:
            out[path] = str(child)
    return out


def _join(path: str, segment: Any) -> str:
    return f"{path}.{segment}" if path else str(segment)
