"""Rendering of query results as json, table, list, count or coloured text."""

from __future__ import annotations

import json
from typing import Any, Dict, List, Mapping, Sequence

from ..models import COMPONENTS, TOKENS, QueryResult
from ..terminal import colorize as _colorize
from .executor import component_name
from .paths import flatten_tree

_DESCRIPTION_WIDTH = 50


def format_result(
    result: QueryResult,
    fmt: str = "default",
    *,
    pretty: bool = False,
    colorize: bool = True,
) -> str:
    """Render ``result``; unknown formats fall back to the default text view."""
    if fmt == "json":
        return _format_json(result, pretty=pretty)
    if fmt == "table":
        return format_table(result)
    if fmt == "list":
        return format_list(result)
    if fmt == "count":
        return f"{result.count} {result.type} found"
    return format_default(result, colorize=colorize)


def _format_json(result: QueryResult, *, pretty: bool) -> str:
    if pretty:
        return json.dumps(result.to_dict(), indent=2, ensure_ascii=False)
    return json.dumps(result.to_dict(), separators=(",", ":"), ensure_ascii=False)


def format_table(result: QueryResult) -> str:
    if result.type == TOKENS:
        rows = [
            {
                "Token": token_path,
                "Value": _display_value(leaf),
                "Type": str(leaf.get("type") or "unknown"),
            }
            for token_path, leaf in flatten_tree(result.data).items()
        ]
        return create_table(rows)

    if result.type == COMPONENTS:
        rows = [
            {
                "Name": component_name(component),
                "Props": str(_count(component.get("props"))),
                "Variants": str(_count(component.get("variants"))),
                "Description": str(component.get("description") or "")[:_DESCRIPTION_WIDTH],
            }
            for component in result.data
            if isinstance(component, Mapping)
        ]
        return create_table(rows)

    return json.dumps(result.to_dict(), indent=2, ensure_ascii=False)


def format_list(result: QueryResult) -> str:
    if result.type == TOKENS:
        return "\n".join(flatten_tree(result.data))
    if result.type == COMPONENTS:
        return "\n".join(component_name(component) for component in result.data)
    return json.dumps(result.to_dict(), indent=2, ensure_ascii=False)


def format_default(result: QueryResult, *, colorize: bool = True) -> str:
    lines = [
        _colorize(f"Query Results ({result.type})", "blue", enabled=colorize),
        _colorize(f"Found {result.count} matches", "gray", enabled=colorize),
        "",
    ]

    if result.type == TOKENS:
        for token_path, leaf in flatten_tree(result.data).items():
            lines.append(
                _colorize(f"{token_path}: ", "green", enabled=colorize) + _display_value(leaf)
            )
    elif result.type == COMPONENTS:
        for component in result.data:
            lines.append(_colorize(component_name(component), "green", enabled=colorize))
            props = component.get("props") if isinstance(component, Mapping) else None
            names = _prop_names(props)
            if names:
                lines.append(_colorize(f"  Props: {', '.join(names)}", "gray", enabled=colorize))
    else:
        lines.append(json.dumps(result.data, indent=2, ensure_ascii=False))

    return "\n".join(lines)


def create_table(rows: Sequence[Dict[str, str]]) -> str:
    """Draw ``rows`` as a box table; column widths fit the widest cell."""
    if not rows:
        return "No results found"

    headers = list(rows[0].keys())
    widths = [
        max([len(header)] + [len(row.get(header, "")) for row in rows]) for header in headers
    ]

    def _border(left: str, middle: str, right: str) -> str:
        return left + middle.join("─" * (width + 2) for width in widths) + right

    def _line(cells: Sequence[str]) -> str:
        padded = (f" {cell.ljust(width)} " for cell, width in zip(cells, widths))
        return "│" + "│".join(padded) + "│"

    output: List[str] = [
        _border("┌", "┬", "┐"),
        _line(headers),
        _border("├", "┼", "┤"),
    ]
    for row in rows:
        output.append(_line([row.get(header, "") for header in headers]))
    output.append(_border("└", "┴", "┘"))
    return "\n".join(output)


def _display_value(leaf: Any) -> str:
    value = leaf.get("value") if isinstance(leaf, Mapping) else leaf
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False)
    if value is None:
        return ""
    return str(value)


def _count(value: Any) -> int:
    return len(value) if isinstance(value, (list, dict)) else 0


def _prop_names(props: Any) -> List[str]:
    if isinstance(props, dict):
        return [str(name) for name in props]
    if isinstance(props, list):
        return [str(prop.get("name")) for prop in props if isinstance(prop, Mapping) and prop.get("name")]
    return []


__all__ = ["create_table", "format_default", "format_list", "format_result", "format_table"]
