"""
Path resolution over the JSON-like context tree.

Grammar: dot-separated segments, each one of

    name            → object key
    3               → list index (or the key "3" on an object)
    name[2]         → key, then list index (several [i] may follow)

A leading ``extractedData.`` is stripped before resolution, so callers may
address document fields with or without that prefix.

``get_value_by_path`` never raises: any missing, null or out-of-range hop
yields ``None``.  ``set_value_by_path`` auto-vivifies: missing objects
become ``{}`` and missing lists grow with ``{}`` up to the needed index.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

from app.core.constants import EXTRACTED_DATA_KEY

_SEGMENT_RE = re.compile(r"^(?P<name>[^\[\]]*)(?P<indexes>(?:\[\s*-?\d+\s*\])*)$")
_INDEX_RE = re.compile(r"\[\s*(-?\d+)\s*\]")
_PREFIX = f"{EXTRACTED_DATA_KEY}."


class PathError(ValueError):
    """A path cannot be written (e.g. it runs through a scalar)."""


@dataclass(frozen=True)
class Hop:
    """One navigation step: an object key or a list index."""

    key: str | int

    @property
    def is_index(self) -> bool:
        return isinstance(self.key, int)


def strip_prefix(path: str) -> str:
    path = path.strip()
    if path.startswith(_PREFIX):
        return path[len(_PREFIX):]
    return path


def parse_path(path: str) -> list[Hop]:
    """Split a path into hops.  ``orders[0].id`` → [orders, 0, id]."""
    hops: list[Hop] = []
    for segment in strip_prefix(path).split("."):
        segment = segment.strip()
        match = _SEGMENT_RE.match(segment)
        if match is None:
            # Unbalanced brackets: the whole segment is a key
            hops.append(Hop(segment))
            continue

        name = match.group("name")
        indexes = [int(i) for i in _INDEX_RE.findall(match.group("indexes"))]

        if name.isdigit() and not indexes:
            hops.append(Hop(int(name)))
            continue
        if name:
            hops.append(Hop(name))
        hops.extend(Hop(i) for i in indexes)
    return hops


def _step_into(current: Any, hop: Hop) -> Any:
    if isinstance(current, list):
        if not hop.is_index:
            return None
        index = hop.key
        if 0 <= index < len(current):
            return current[index]
        return None
    if isinstance(current, dict):
        # Numeric hops on objects address string keys ("0")
        return current.get(str(hop.key) if hop.is_index else hop.key)
    return None


def get_value_by_path(obj: Any, path: str) -> Any:
    """Resolve ``path`` against ``obj``; ``None`` for anything unresolvable."""
    if not path or obj is None:
        return None

    current = obj
    for hop in parse_path(path):
        current = _step_into(current, hop)
        if current is None:
            return None
    return current


def set_value_by_path(obj: dict[str, Any], path: str, value: Any) -> None:
    """Write ``value`` at ``path``, creating intermediate containers."""
    hops = parse_path(path)
    if not hops:
        raise PathError(f"Empty path: {path!r}")

    current: Any = obj
    for position, hop in enumerate(hops):
        is_last = position == len(hops) - 1
        next_is_index = not is_last and hops[position + 1].is_index

        if isinstance(current, list):
            if not hop.is_index or hop.key < 0:
                raise PathError(f"Cannot use key {hop.key!r} on a list in path {path!r}")
            while len(current) <= hop.key:
                current.append({})
            if is_last:
                current[hop.key] = value
                return
            if not isinstance(current[hop.key], (dict, list)):
                current[hop.key] = [] if next_is_index else {}
            current = current[hop.key]
            continue

        if not isinstance(current, dict):
            raise PathError(f"Cannot descend into {type(current).__name__} in path {path!r}")

        key = str(hop.key) if hop.is_index else hop.key
        if is_last:
            current[key] = value
            return

        child = current.get(key)
        if child is None:
            child = [] if next_is_index else {}
            current[key] = child
        elif not isinstance(child, (dict, list)):
            raise PathError(f"Cannot descend into {type(child).__name__} at {key!r} in path {path!r}")
        current = child
