"""Execution of parsed queries against a registry document."""

from __future__ import annotations

import json
import math
import re
from typing import Any, Callable, Dict, List, Mapping

from ..errors import QueryError
from ..logging import get_logger
from ..models import COMPONENTS, THEMES, TOKENS, Condition, Query, QueryResult
from .paths import filter_tree_by_path, flatten_tree, path_to_regex, resolve_property, unflatten_tree

# Known CSS units are stripped before numeric comparison so "24px" > "16px" holds.
_NUMBER_WITH_UNIT = re.compile(
    r"^([+-]?(?:\d+\.?\d*|\.\d+)(?:e[+-]?\d+)?)\s*"
    r"(px|rem|em|%|ms|s|vh|vw|vmin|vmax|pt|ch|ex|deg|fr)?$",
    re.IGNORECASE,
)


def to_number(value: Any) -> float:
    """Coerce ``value`` to a float, ``nan`` when it is not numeric."""
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        match = _NUMBER_WITH_UNIT.match(value.strip())
        if match:
            return float(match.group(1))
    return math.nan


def _as_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value, sort_keys=True)
    return str(value)


def _contains(actual: Any, expected: str) -> bool:
    return actual is not None and expected in _as_text(actual)


def _starts_with(actual: Any, expected: str) -> bool:
    return actual is not None and _as_text(actual).startswith(expected)


def _ends_with(actual: Any, expected: str) -> bool:
    return actual is not None and _as_text(actual).endswith(expected)


OPERATORS: Dict[str, Callable[[Any, str], bool]] = {
    "=": lambda actual, expected: actual == expected,
    "!=": lambda actual, expected: actual != expected,
    "*=": _contains,
    "^=": _starts_with,
    "$=": _ends_with,
    # NaN compares false in both directions.
    ">": lambda actual, expected: to_number(actual) > to_number(expected),
    "<": lambda actual, expected: to_number(actual) < to_number(expected),
}


def evaluate(condition: Condition, record: Any) -> bool:
    """Return True when ``record`` satisfies ``condition``."""
    try:
        operator = OPERATORS[condition.operator]
    except KeyError:
        raise QueryError(f"Unsupported operator: {condition.operator}") from None
    return operator(resolve_property(record, condition.property), condition.value)


class QueryExecutor:
    """Runs :class:`Query` objects against an in-memory registry document.

    The executor keeps no state between calls and never mutates the document.
    """

    def __init__(self) -> None:
        self.logger = get_logger("query.executor")

    def execute(self, query: Query, registry: Mapping[str, Any]) -> QueryResult:
        if query.type == TOKENS:
            return self._query_tokens(registry, query)
        if query.type == COMPONENTS:
            return self._query_components(registry, query)
        if query.type == THEMES:
            return self._query_themes(registry, query)
        raise QueryError(f"Unknown query type: {query.type}")

    # ------------------------------------------------------------------
    # Query types

    def _query_tokens(self, registry: Mapping[str, Any], query: Query) -> QueryResult:
        tokens: Mapping[str, Any] = _as_mapping(registry.get("tokens"))
        if query.path:
            tokens = filter_tree_by_path(tokens, path_to_regex(query.path))

        if query.filters:
            survivors: Dict[str, Any] = {}
            for token_path, leaf in flatten_tree(tokens).items():
                record = {"path": token_path, "value": leaf.get("value", leaf)}
                record.update(leaf)
                if all(evaluate(condition, record) for condition in query.filters):
                    survivors[token_path] = leaf
            tokens = unflatten_tree(survivors)

        count = len(flatten_tree(tokens))
        self.logger.debug("Token query matched %d token(s)", count)
        return QueryResult(
            type=TOKENS,
            count=count,
            data=dict(tokens),
            metadata={
                "query": query.to_dict(),
                "source": registry.get("metadata") or {},
                "themeContext": registry.get("themeContext") or None,
            },
        )

    def _query_components(self, registry: Mapping[str, Any], query: Query) -> QueryResult:
        components: List[Any] = list(registry.get("components") or [])

        if query.filters:
            components = [
                component
                for component in components
                if all(evaluate(condition, component) for condition in query.filters)
            ]

        if query.path:
            # Components are a flat list, so the path glob matches names.
            pattern = path_to_regex(query.path)
            components = [
                component
                for component in components
                if pattern.match(component_name(component))
            ]

        self.logger.debug("Component query matched %d component(s)", len(components))
        return QueryResult(
            type=COMPONENTS,
            count=len(components),
            data=components,
            metadata={
                "query": query.to_dict(),
                "source": registry.get("metadata") or {},
            },
        )

    def _query_themes(self, registry: Mapping[str, Any], query: Query) -> QueryResult:
        context = _as_mapping(registry.get("themeContext"))
        themes: Dict[str, Any] = {
            "config": context.get("config"),
            "cssVariables": context.get("cssVariables") or {},
        }
        if query.path:
            themes = filter_tree_by_path(themes, path_to_regex(query.path))
        if query.filters:
            self.logger.debug("Filters are not supported for theme queries; ignoring %d", len(query.filters))

        return QueryResult(
            type=THEMES,
            count=len(themes),
            data=themes,
            metadata={
                "query": query.to_dict(),
                "source": registry.get("metadata") or {},
            },
        )


def _as_mapping(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}


def component_name(component: Any) -> str:
    """Display name of a component descriptor, empty when it has none."""
    if not isinstance(component, Mapping):
        return ""
    name = component.get("name") or component.get("displayName") or ""
    return str(name)


__all__ = ["OPERATORS", "QueryExecutor", "component_name", "evaluate", "to_number"]
