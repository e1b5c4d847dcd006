"""Selector parsing for the registry query language.

Grammar::

    selector  := type ['.' path] ['where' condition (' and ' condition)*]
    condition := property operator value

The parser is permissive. Conditions that do not parse are dropped and an
unknown type falls back to ``tokens``; both outcomes are reported as
:class:`~dcpkit.models.Diagnostic` entries rather than raised.
"""

from __future__ import annotations

import re
from typing import List, Optional, Tuple

from ..logging import get_logger
from ..models import QUERY_TYPES, TOKENS, Condition, Diagnostic, Query

_WHERE_SPLIT = re.compile(r"\s+where\s+", re.IGNORECASE)
_AND_SPLIT = re.compile(r"\s+and\s+", re.IGNORECASE)
# Operator characters are forbidden in the property so the longest operator wins.
_CONDITION = re.compile(r"^([^=!<>*^$]+)(!=|\*=|\^=|\$=|=|>|<)(.*)$", re.DOTALL)

_TYPE_PREFIXES = QUERY_TYPES


class SelectorParser:
    """Turns selector strings into :class:`Query` objects."""

    def __init__(self) -> None:
        self.logger = get_logger("query.parser")

    def parse(self, selector: str) -> Query:
        query, _ = self.parse_with_diagnostics(selector)
        return query

    def parse_with_diagnostics(self, selector: str) -> Tuple[Query, List[Diagnostic]]:
        diagnostics: List[Diagnostic] = []
        text = selector.strip()
        query = Query()

        parts = _WHERE_SPLIT.split(text, maxsplit=1)
        if len(parts) == 2 and parts[1].strip():
            base, where_clause = parts
            query.type = self._type_from_prefix(base, diagnostics)
            _, dot, rest = base.strip().partition(".")
            if dot and rest.strip():
                query.path = rest.strip()
            query.filters = self._parse_where(where_clause, diagnostics)
        else:
            segments = text.split(".")
            query.type = self._normalise_type(segments[0], diagnostics)
            if len(segments) > 1:
                query.path = ".".join(segments[1:])

        for diagnostic in diagnostics:
            self.logger.debug("Selector %r: %s", selector, diagnostic.message)
        return query, diagnostics

    def parse_condition(self, condition: str) -> Optional[Condition]:
        """Parse ``property operator value``; ``None`` when it does not match."""
        match = _CONDITION.match(condition.strip())
        if not match:
            return None
        prop, operator, raw_value = match.groups()
        prop = prop.strip()
        value = _unquote(raw_value.strip())
        if not prop or not value:
            return None
        return Condition(property=prop, operator=operator, value=value)

    # ------------------------------------------------------------------
    # Internals

    def _parse_where(self, clause: str, diagnostics: List[Diagnostic]) -> List[Condition]:
        filters: List[Condition] = []
        for fragment in _AND_SPLIT.split(clause.strip()):
            condition = self.parse_condition(fragment)
            if condition is None:
                diagnostics.append(
                    Diagnostic(
                        code="condition_dropped",
                        message=f"Ignoring unparsable condition {fragment.strip()!r}",
                        fragment=fragment.strip(),
                    )
                )
                continue
            filters.append(condition)
        return filters

    @staticmethod
    def _type_from_prefix(base: str, diagnostics: List[Diagnostic]) -> str:
        cleaned = base.strip().lower()
        for name in _TYPE_PREFIXES:
            if cleaned.startswith(name):
                return name
        diagnostics.append(
            Diagnostic(
                code="type_defaulted",
                message=f"Unknown query type in {base.strip()!r}; using '{TOKENS}'",
                fragment=base.strip(),
            )
        )
        return TOKENS

    @staticmethod
    def _normalise_type(segment: str, diagnostics: List[Diagnostic]) -> str:
        name = segment.strip().lower()
        if name in QUERY_TYPES:
            return name
        diagnostics.append(
            Diagnostic(
                code="type_defaulted",
                message=f"Unknown query type {segment.strip()!r}; using '{TOKENS}'",
                fragment=segment.strip(),
            )
        )
        return TOKENS


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in {"'", '"'}:
        return value[1:-1]
    return value.strip("'\"")


def parse_selector(selector: str) -> Tuple[Query, List[Diagnostic]]:
    """Parse ``selector`` and return the query plus anything that was dropped."""
    return SelectorParser().parse_with_diagnostics(selector)


EXAMPLE_SELECTORS = (
    "tokens.color.*",
    'tokens where tokenSet != "system"',
    'components where name = "Button"',
    'tokens.spacing.* where value > "16px"',
    "components",
    "themes.cssVariables.*",
)


__all__ = ["EXAMPLE_SELECTORS", "SelectorParser", "parse_selector"]
