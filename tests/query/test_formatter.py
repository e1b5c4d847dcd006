"""Tests for query result rendering."""

from __future__ import annotations

import json
from typing import Any, Dict

from dcpkit.models import QueryResult
from dcpkit.query.executor import QueryExecutor
from dcpkit.query.formatter import create_table, format_result
from dcpkit.query.parser import SelectorParser


def _result(selector: str, registry: Dict[str, Any]) -> QueryResult:
    return QueryExecutor().execute(SelectorParser().parse(selector), registry)


def test_json_is_compact_unless_pretty(registry: Dict[str, Any]) -> None:
    result = _result("tokens.color.*", registry)
    compact = format_result(result, "json")
    pretty = format_result(result, "json", pretty=True)
    assert "\n" not in compact
    assert ": " not in compact
    assert pretty.startswith("{\n  ")
    assert json.loads(compact) == json.loads(pretty)
    assert json.loads(compact)["count"] == 2


def test_count_format(registry: Dict[str, Any]) -> None:
    assert format_result(_result("components", registry), "count") == "4 components found"


def test_list_format_for_tokens_and_components(registry: Dict[str, Any]) -> None:
    assert format_result(_result("tokens.spacing.*", registry), "list") == "spacing.small\nspacing.large"
    assert format_result(_result("components.Icon*", registry), "list") == "IconButton\nIconLink"


def test_token_table_layout(registry: Dict[str, Any]) -> None:
    table = format_result(_result("tokens.spacing.*", registry), "table")
    lines = table.splitlines()
    assert lines[0] == "┌───────────────┬───────┬───────────┐"
    assert lines[1] == "│ Token         │ Value │ Type      │"
    assert lines[2] == "├───────────────┼───────┼───────────┤"
    assert lines[3] == "│ spacing.small │ 8px   │ dimension │"
    assert lines[-1] == "└───────────────┴───────┴───────────┘"


def test_component_table_counts_props_and_variants(registry: Dict[str, Any]) -> None:
    table = format_result(_result("components where name = 'Card'", registry), "table")
    header, row = table.splitlines()[1], table.splitlines()[3]
    assert [cell.strip() for cell in header.strip("│").split("│")] == [
        "Name",
        "Props",
        "Variants",
        "Description",
    ]
    assert [cell.strip() for cell in row.strip("│").split("│")] == [
        "Card",
        "0",
        "1",
        "Surface grouping related content",
    ]


def test_component_description_is_truncated() -> None:
    registry = {"components": [{"name": "Long", "description": "x" * 80}]}
    table = format_result(_result("components", registry), "table")
    assert "x" * 50 in table
    assert "x" * 51 not in table


def test_token_type_defaults_to_unknown() -> None:
    registry = {"tokens": {"radius": {"value": "4px"}}}
    assert "unknown" in format_result(_result("tokens", registry), "table")


def test_empty_table() -> None:
    assert create_table([]) == "No results found"
    assert format_result(_result("components where name = 'Nope'", {"components": []}), "table") == "No results found"


def test_default_format_without_colour(registry: Dict[str, Any]) -> None:
    text = format_result(_result("components.Button", registry), "default", colorize=False)
    assert text.splitlines() == [
        "Query Results (components)",
        "Found 1 matches",
        "",
        "Button",
        "  Props: label, size",
    ]


def test_default_format_colours_tokens(registry: Dict[str, Any]) -> None:
    text = format_result(_result("tokens.color.primary", registry), "default")
    assert "\033[" in text
    assert "color.primary: " in text
    assert "#112233" in text


def test_unknown_format_falls_back_to_default(registry: Dict[str, Any]) -> None:
    result = _result("components", registry)
    assert format_result(result, "yaml", colorize=False) == format_result(result, "default", colorize=False)


def test_themes_fall_back_to_json_for_table_and_list(registry: Dict[str, Any]) -> None:
    result = _result("themes", registry)
    assert json.loads(format_result(result, "table"))["type"] == "themes"
    assert json.loads(format_result(result, "list"))["count"] == 2
