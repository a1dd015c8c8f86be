"""Field path addressing into nested form models.

A field path names one value inside a nested record, e.g. ``customer.name``
or ``items[2].unit_price``. Paths are parsed into key and index segments and
evaluated against plain dict/list trees. Lookups never raise for missing
data (they return ``NOT_FOUND``); writes never mutate their input.
"""

import json
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any, Union

_SEGMENT_RE = re.compile(r"^(?P<name>[^\[\]]*)(?P<indexes>(?:\[[^\[\]]*\])*)$")
_INDEX_RE = re.compile(r"\[([^\[\]]*)\]")
_DIGITS_RE = re.compile(r"[0-9]+")
_PLAIN_KEY_RE = re.compile(r"[^.\[\]]+")


class PathSyntaxError(ValueError):
    """A field path string could not be parsed."""

    def __init__(self, path: str, segment: str, reason: str):
        self.path = path
        self.segment = segment
        self.reason = reason
        super().__init__(f"Invalid field path {path!r}: {reason} (segment {segment!r})")


@dataclass(frozen=True)
class Key:
    name: str


@dataclass(frozen=True)
class Index:
    position: int


Segment = Union[Key, Index]


@dataclass(frozen=True)
class FieldPath:
    """Parsed field path: a non-empty tuple of key and index segments."""

    segments: tuple[Segment, ...]

    def __post_init__(self):
        if not self.segments:
            raise ValueError("FieldPath requires at least one segment")

    def __str__(self) -> str:
        """Dotted rendering. Keys that the parser cannot read back, such as
        ``unit_price (Rs.)`` or an empty key, are shown quoted in brackets:
        ``items[0]["unit_price (Rs.)"]``. Such keys never match a score path.
        """
        parts: list[str] = []
        for segment in self.segments:
            if isinstance(segment, Index):
                parts.append(f"[{segment.position}]")
            elif not _PLAIN_KEY_RE.fullmatch(segment.name):
                parts.append(f"[{json.dumps(segment.name, ensure_ascii=False)}]")
            elif parts:
                parts.append(f".{segment.name}")
            else:
                parts.append(segment.name)
        return "".join(parts)

    def __len__(self) -> int:
        return len(self.segments)


class _Missing(Enum):
    NOT_FOUND = "NOT_FOUND"

    def __repr__(self) -> str:
        return "NOT_FOUND"


NOT_FOUND = _Missing.NOT_FOUND

PathLike = Union[FieldPath, str]


def parse(path: str) -> FieldPath:
    """Parse ``customer.name`` / ``items[2].sku`` style strings into a FieldPath.

    Raises PathSyntaxError on an empty path, empty segments (leading,
    trailing or doubled dots), unbalanced brackets, and non-numeric or
    negative indexes.
    """
    if not isinstance(path, str):
        raise TypeError(f"field path must be a string, got {type(path).__name__}")
    if not path.strip():
        raise PathSyntaxError(path, path, "empty path")

    segments: list[Segment] = []
    for position, part in enumerate(path.split(".")):
        if not part:
            raise PathSyntaxError(path, part, "empty segment")

        match = _SEGMENT_RE.match(part)
        if match is None:
            raise PathSyntaxError(path, part, "unbalanced or misplaced brackets")

        name = match.group("name")
        if name:
            segments.append(Key(name))
        elif position > 0:
            raise PathSyntaxError(path, part, "index without a key")

        for content in _INDEX_RE.findall(match.group("indexes")):
            if not _DIGITS_RE.fullmatch(content):
                raise PathSyntaxError(path, part, f"non-numeric index {content!r}")
            segments.append(Index(int(content)))

    return FieldPath(tuple(segments))


def as_path(path: PathLike) -> FieldPath:
    """Parse strings; pass FieldPath instances through unchanged."""
    return path if isinstance(path, FieldPath) else parse(path)


def canonical(path: PathLike) -> str:
    """Normalize a path string (e.g. ``items[02].sku`` -> ``items[2].sku``)."""
    return str(as_path(path))


def _is_sequence(node: Any) -> bool:
    return isinstance(node, Sequence) and not isinstance(node, (str, bytes, bytearray))


def get_value(model: Any, path: PathLike) -> Any:
    """Return the value at ``path`` or NOT_FOUND when any step is missing."""
    node = model
    for segment in as_path(path).segments:
        if isinstance(segment, Key):
            if not isinstance(node, Mapping) or segment.name not in node:
                return NOT_FOUND
            node = node[segment.name]
        else:
            if not _is_sequence(node) or segment.position >= len(node):
                return NOT_FOUND
            node = node[segment.position]
    return node


def set_value(model: Any, path: PathLike, value: Any) -> Any:
    """Return a copy of ``model`` with ``value`` written at ``path``.

    Every node along the path is copied; untouched siblings are shared with
    the input. Missing intermediates are created: a dict for key segments,
    a list padded with empty dicts for index segments.
    """
    return _set(model, as_path(path).segments, value)


def _set(node: Any, segments: tuple[Segment, ...], value: Any) -> Any:
    segment, rest = segments[0], segments[1:]

    if isinstance(segment, Key):
        copied = dict(node) if isinstance(node, Mapping) else {}
        if rest:
            copied[segment.name] = _set(copied.get(segment.name, NOT_FOUND), rest, value)
        else:
            copied[segment.name] = value
        return copied

    copied_list = list(node) if _is_sequence(node) else []
    while len(copied_list) <= segment.position:
        copied_list.append({})
    if rest:
        copied_list[segment.position] = _set(copied_list[segment.position], rest, value)
    else:
        copied_list[segment.position] = value
    return copied_list


def leaf_paths(model: Any) -> list[FieldPath]:
    """List the paths of every scalar leaf (and empty container) in document order."""
    paths: list[FieldPath] = []
    _collect_leaves(model, (), paths)
    return paths


def _collect_leaves(node: Any, prefix: tuple[Segment, ...], out: list[FieldPath]) -> None:
    if isinstance(node, Mapping) and node:
        for key, child in node.items():
            _collect_leaves(child, prefix + (Key(str(key)),), out)
    elif _is_sequence(node) and node:
        for position, child in enumerate(node):
            _collect_leaves(child, prefix + (Index(position),), out)
    elif prefix:
        out.append(FieldPath(prefix))
