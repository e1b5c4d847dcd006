"""Registry query language: selector parsing, execution and formatting."""

from __future__ import annotations

from .executor import QueryExecutor
from .formatter import format_result
from .parser import EXAMPLE_SELECTORS, SelectorParser, parse_selector

__all__ = [
    "EXAMPLE_SELECTORS",
    "QueryExecutor",
    "SelectorParser",
    "format_result",
    "parse_selector",
]
