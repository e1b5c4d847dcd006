"""Configuration loading for dcpkit (.dcpkit.yml)."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .errors import DcpkitError

CONFIG_FILENAME = ".dcpkit.yml"

QUERY_FORMATS = ("json", "table", "list", "count", "default")
PREVIEW_FORMATS = ("terminal", "html", "json")


class ConfigError(DcpkitError):
    """Raised when the configuration file cannot be parsed."""


@dataclass
class QueryConfig:
    """Default output settings for `dcpkit query`."""

    format: str = "default"
    pretty: bool = False


@dataclass
class PreviewConfig:
    """Default rendering settings for diff previews."""

    format: str = "terminal"
    colorize: bool = True


@dataclass
class MutateConfig:
    """Backup behaviour for `dcpkit mutate`."""

    backup: bool = True
    backup_dir: Optional[Path] = None


@dataclass
class DcpkitConfig:
    """Represents the settings defined in .dcpkit.yml."""

    root: Path
    registry_path: Optional[Path] = None
    query: QueryConfig = field(default_factory=QueryConfig)
    preview: PreviewConfig = field(default_factory=PreviewConfig)
    mutate: MutateConfig = field(default_factory=MutateConfig)

    def resolve_registry(self, override: str | Path | None = None) -> Path:
        """Return the registry location, preferring an explicit override."""
        if override is not None:
            return Path(override).expanduser()
        if self.registry_path is not None:
            return self.registry_path
        return self.root / "registry"

    def resolve_backup_dir(self) -> Path:
        return self.mutate.backup_dir or (self.root / ".dcpkit" / "backups")


def load_config(config_path: Path) -> DcpkitConfig:
    """Load configuration from a directory holding .dcpkit.yml or from a config file."""
    config_file = _resolve_config_path(config_path)
    root = config_file.parent.resolve()

    if not config_file.exists():
        if config_file.name != CONFIG_FILENAME:
            raise ConfigError(f"Config file not found: {config_file}")
        return DcpkitConfig(root=root)

    data = _read_config(config_file)
    if not isinstance(data, dict):
        raise ConfigError(f"{config_file.name} must contain a mapping at the root")

    registry_data = _as_dict(data.get("registry"))
    registry_str = _as_str(registry_data.get("path")) if registry_data else None
    registry_path = root / registry_str if registry_str else None

    query = QueryConfig()
    query_data = _as_dict(data.get("query"))
    if query_data:
        query.format = _as_choice(query_data.get("format"), QUERY_FORMATS, query.format)
        query.pretty = _as_bool(query_data.get("pretty")) or False

    preview = PreviewConfig()
    preview_data = _as_dict(data.get("preview"))
    if preview_data:
        preview.format = _as_choice(preview_data.get("format"), PREVIEW_FORMATS, preview.format)
        colorize = _as_bool(preview_data.get("colorize"))
        if colorize is not None:
            preview.colorize = colorize

    mutate = MutateConfig()
    mutate_data = _as_dict(data.get("mutate"))
    if mutate_data:
        backup = _as_bool(mutate_data.get("backup"))
        if backup is not None:
            mutate.backup = backup
        backup_dir = _as_str(mutate_data.get("backup_dir"))
        mutate.backup_dir = root / backup_dir if backup_dir else None

    return DcpkitConfig(
        root=root,
        registry_path=registry_path,
        query=query,
        preview=preview,
        mutate=mutate,
    )


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return loaded or {}


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float, bool)) else None


def _as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "yes", "1"}:
            return True
        if lowered in {"false", "no", "0"}:
            return False
    return None


def _as_choice(value: Any, choices: tuple[str, ...], default: str) -> str:
    text = _as_str(value)
    if text is None:
        return default
    lowered = text.strip().lower()
    return lowered if lowered in choices else default
