"""
gNMI path codec — slash-delimited strings <-> structured paths.

    /interfaces/interface[name=Gi0/0/0/0]/config
    /network-instances/network-instance[name=default][type=DEFAULT]

Predicate keys are emitted sorted so equal paths always print the same way.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterable, Optional

from errors import MalformedPath

_KEY_RE = re.compile(r'\[([^=\]]+)=([^\]]+)\]')


@dataclass
class PathElem:
    name: str
    keys: dict[str, str] = field(default_factory=dict)


@dataclass
class GnmiPath:
    elems: list[PathElem] = field(default_factory=list)

    def __str__(self) -> str:
        return path_to_string(self)


def _split_segments(clean: str) -> list[str]:
    """Split on '/' outside of [...] so key values may carry slashes.

    Unbalanced brackets fall back to a plain split on every '/'.
    """
    segments: list[str] = []
    current: list[str] = []
    depth = 0
    for ch in clean:
        if ch == '[':
            depth += 1
        elif ch == ']' and depth:
            depth -= 1
        elif ch == '/' and depth == 0:
            segments.append(''.join(current))
            current = []
            continue
        current.append(ch)
    if depth:
        return clean.split('/')
    segments.append(''.join(current))
    return segments


def parse_path(raw: str) -> GnmiPath:
    """Parse a path string. Raises MalformedPath on an empty element name."""
    clean = raw.strip()
    if clean in ("", "/"):
        return GnmiPath()

    if clean.startswith("/"):
        clean = clean[1:]

    elems: list[PathElem] = []
    for seg in _split_segments(clean):
        if not seg:
            continue
        name = seg
        keys: dict[str, str] = {}
        idx = seg.find("[")
        if idx >= 0:
            name = seg[:idx]
            for key, value in _KEY_RE.findall(seg[idx:]):
                keys[key] = value
        if not name:
            raise MalformedPath(f"invalid path segment: {seg!r}")
        elems.append(PathElem(name=name, keys=keys))

    return GnmiPath(elems=elems)


def path_to_string(path: Optional[GnmiPath]) -> str:
    if path is None or not path.elems:
        return "/"

    parts: list[str] = []
    for elem in path.elems:
        if elem is None:
            continue
        parts.append("/")
        parts.append(elem.name)
        for key in sorted(elem.keys):
            parts.append(f"[{key}={elem.keys[key]}]")

    return "".join(parts) or "/"


def build_paths(raw_paths: Iterable[str]) -> list[GnmiPath]:
    """Parse every configured request path; the first bad one aborts."""
    return [parse_path(raw) for raw in raw_paths]


def path_from_proto(pb) -> GnmiPath:
    """Convert a protobuf gnmi.Path (structured or legacy element form)."""
    if pb is None:
        return GnmiPath()

    elems = [PathElem(name=e.name, keys=dict(e.key)) for e in pb.elem]
    if not elems:
        # Deprecated pre-0.4 string elements
        elems = [PathElem(name=name) for name in getattr(pb, "element", [])]
    return GnmiPath(elems=elems)


def path_to_proto(path: GnmiPath, gnmi_pb2, target: str = ""):
    """Build a protobuf gnmi.Path from a GnmiPath using the given module."""
    return gnmi_pb2.Path(
        target=target,
        elem=[gnmi_pb2.PathElem(name=e.name, key=e.keys) for e in path.elems],
    )
