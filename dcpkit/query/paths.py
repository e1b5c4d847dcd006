"""Dot-path globbing and namespace-tree traversal helpers."""

from __future__ import annotations

import re
from typing import Any, Dict, Mapping, Pattern

_SEGMENT_WILDCARD = r"[^.]*"
_DEEP_WILDCARD = r".*"

LEAF_KEY = "value"


def path_to_regex(pattern: str) -> Pattern[str]:
    """Translate a dot-path glob into an anchored regular expression.

    ``*`` matches within a single segment, ``**`` matches across segments.
    Every other character is literal, so the translation never fails.
    """
    pieces = []
    for deep_part in pattern.split("**"):
        literals = (re.escape(part) for part in deep_part.split("*"))
        pieces.append(_SEGMENT_WILDCARD.join(literals))
    return re.compile("^" + _DEEP_WILDCARD.join(pieces) + "$")


def is_leaf(node: Any) -> bool:
    """A token node is a leaf when it is a mapping holding a ``value`` key."""
    return isinstance(node, Mapping) and LEAF_KEY in node


def flatten_tree(node: Mapping[str, Any], prefix: str = "") -> Dict[str, Any]:
    """Flatten a namespace tree into ``{dot.path: leaf}``.

    Leaves keep their identity; a leaf's child keys are not visited. Scalars and
    lists are wrapped as ``{"value": child}``.
    """
    flat: Dict[str, Any] = {}
    for key, child in node.items():
        path = f"{prefix}.{key}" if prefix else str(key)
        if is_leaf(child):
            flat[path] = child
        elif isinstance(child, Mapping):
            flat.update(flatten_tree(child, path))
        else:
            flat[path] = {LEAF_KEY: child}
    return flat


def unflatten_tree(flat: Mapping[str, Any]) -> Dict[str, Any]:
    """Rebuild a namespace tree from the output of :func:`flatten_tree`."""
    tree: Dict[str, Any] = {}
    for path, leaf in flat.items():
        parts = path.split(".")
        current = tree
        for part in parts[:-1]:
            current = current.setdefault(part, {})
        current[parts[-1]] = leaf
    return tree


def filter_tree_by_path(
    tree: Mapping[str, Any], regex: Pattern[str], prefix: str = ""
) -> Dict[str, Any]:
    """Keep the subtrees whose dot path matches ``regex``.

    A matching node is copied verbatim with everything below it. A non-matching
    mapping is kept only when something beneath it matches.
    """
    result: Dict[str, Any] = {}
    for key, child in tree.items():
        path = f"{prefix}.{key}" if prefix else str(key)
        if regex.match(path):
            result[key] = child
        elif isinstance(child, Mapping):
            nested = filter_tree_by_path(child, regex, path)
            if nested:
                result[key] = nested
    return result


def resolve_property(obj: Any, dotted: str) -> Any:
    """Follow ``a.b.c`` through mappings (and list indices); ``None`` when missing."""
    current = obj
    for part in dotted.split("."):
        if isinstance(current, Mapping) and part in current:
            current = current[part]
        elif isinstance(current, list) and part.isdigit() and int(part) < len(current):
            current = current[int(part)]
        else:
            return None
    return current


__all__ = [
    "filter_tree_by_path",
    "flatten_tree",
    "is_leaf",
    "path_to_regex",
    "resolve_property",
    "unflatten_tree",
]
