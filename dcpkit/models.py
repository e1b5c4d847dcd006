"""Core data models shared across dcpkit components."""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

TOKENS = "tokens"
COMPONENTS = "components"
THEMES = "themes"
VARIANTS = "variants"

QUERY_TYPES = (TOKENS, COMPONENTS, THEMES, VARIANTS)


@dataclass
class Condition:
    """A single `property operator value` filter from a where clause."""

    property: str
    operator: str
    value: str


@dataclass
class Query:
    """Structured form of a selector string."""

    type: str = TOKENS
    path: Optional[str] = None
    filters: List[Condition] = field(default_factory=list)
    output: str = "*"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class Diagnostic:
    """Something the permissive parser dropped or defaulted."""

    code: str
    message: str
    fragment: str = ""


@dataclass
class QueryResult:
    """Outcome of executing a query against a registry document."""

    type: str
    count: int
    data: Any
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "count": self.count,
            "data": self.data,
            "metadata": self.metadata,
        }
