"""Loading and writing of registry documents."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from .errors import OutputWriteError, RegistryLoadError
from .logging import get_logger

REGISTRY_FILENAME = "registry.json"

_LOGGER = get_logger("registry")


def resolve_registry_file(path: str | Path) -> Path:
    """Return the registry file for ``path``; directories hold ``registry.json``."""
    candidate = Path(path).expanduser()
    if candidate.is_dir():
        return candidate / REGISTRY_FILENAME
    return candidate


def load_json_document(path: str | Path, what: str = "document") -> Any:
    """Read and decode a JSON file, raising :class:`RegistryLoadError` on failure."""
    file_path = Path(path).expanduser()
    try:
        text = file_path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise RegistryLoadError(file_path, f"{what} not found") from None
    except OSError as exc:
        raise RegistryLoadError(file_path, str(exc)) from exc
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise RegistryLoadError(file_path, f"invalid JSON ({exc})") from exc


def normalize_registry(document: Dict[str, Any]) -> Dict[str, Any]:
    """Fill absent top-level keys with empty values, leaving the rest untouched."""
    normalised = dict(document)
    if not isinstance(normalised.get("components"), list):
        normalised["components"] = []
    if not isinstance(normalised.get("tokens"), dict):
        normalised["tokens"] = {}
    if not isinstance(normalised.get("themeContext"), dict):
        normalised["themeContext"] = {}
    if not isinstance(normalised.get("metadata"), dict):
        normalised["metadata"] = {}
    return normalised


def read_registry_document(path: str | Path) -> Dict[str, Any]:
    """Load a registry document exactly as stored, without filling absent keys."""
    registry_file = resolve_registry_file(path)
    document = load_json_document(registry_file, what="registry")
    if not isinstance(document, dict):
        raise RegistryLoadError(registry_file, "registry root must be a JSON object")
    _LOGGER.debug("Loaded registry from %s", registry_file)
    return document


def load_registry(path: str | Path) -> Dict[str, Any]:
    """Load a registry document from a file or a directory containing one."""
    return normalize_registry(read_registry_document(path))


def write_output(path: str | Path, text: str) -> Path:
    """Write ``text`` to ``path``, creating parent directories as needed."""
    target = Path(path).expanduser()
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(text, encoding="utf-8")
    except OSError as exc:
        raise OutputWriteError(target, str(exc)) from exc
    _LOGGER.debug("Wrote %d characters to %s", len(text), target)
    return target


class RegistryCache:
    """Caller-owned memo of loaded registries keyed by resolved path.

    An entry is reused while the file's modification time is unchanged, so a
    long-lived process can hold several registries without reloading them.
    """

    def __init__(self) -> None:
        self._entries: Dict[Path, Tuple[Optional[int], Dict[str, Any]]] = {}

    def get(self, path: str | Path) -> Dict[str, Any]:
        registry_file = resolve_registry_file(path).resolve()
        stamp = _mtime(registry_file)
        entry = self._entries.get(registry_file)
        if entry is not None and stamp is not None and entry[0] == stamp:
            _LOGGER.debug("Using cached registry for %s", registry_file)
            return entry[1]
        document = load_registry(registry_file)
        self._entries[registry_file] = (stamp, document)
        return document

    def invalidate(self, path: str | Path | None = None) -> None:
        if path is None:
            self._entries.clear()
            return
        self._entries.pop(resolve_registry_file(path).resolve(), None)


def _mtime(path: Path) -> Optional[int]:
    try:
        return path.stat().st_mtime_ns
    except OSError:
        return None


__all__ = [
    "REGISTRY_FILENAME",
    "RegistryCache",
    "load_json_document",
    "load_registry",
    "normalize_registry",
    "read_registry_document",
    "resolve_registry_file",
    "write_output",
]
