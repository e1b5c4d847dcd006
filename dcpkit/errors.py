"""Exception types raised on the strict side of dcpkit."""

from __future__ import annotations

from pathlib import Path


class DcpkitError(RuntimeError):
    """Base class for errors surfaced to callers and the CLI."""


class RegistryLoadError(DcpkitError):
    """Raised when a registry or JSON document cannot be read or parsed."""

    def __init__(self, path: Path, cause: str) -> None:
        super().__init__(f"Failed to load {path}: {cause}")
        self.path = path
        self.cause = cause


class OutputWriteError(DcpkitError):
    """Raised when rendered output cannot be written to disk."""

    def __init__(self, path: Path, cause: str) -> None:
        super().__init__(f"Failed to write {path}: {cause}")
        self.path = path
        self.cause = cause


class QueryError(DcpkitError):
    """Raised when a parsed query cannot be executed."""


class MutationError(DcpkitError):
    """Raised when a patch batch cannot be applied or rolled back."""


__all__ = [
    "DcpkitError",
    "MutationError",
    "OutputWriteError",
    "QueryError",
    "RegistryLoadError",
]
