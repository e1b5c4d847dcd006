"""Batch application of JSON Patch operations to registry documents."""

from __future__ import annotations

import copy
import json
import re
import shutil
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

import jsonpatch
import jsonpointer

from ..errors import MutationError, OutputWriteError, RegistryLoadError
from ..logging import get_logger
from ..registry import load_json_document, write_output

PATCH_OPS = ("add", "remove", "replace", "move", "copy", "test")

BACKUP_PREFIX = "registry-backup"
ROLLBACK_PREFIX = "rollback-backup"

_BACKUP_NAME = re.compile(r"^(?P<prefix>[a-z]+-backup)-(?P<stamp>\d{8}T\d{12}Z)\.json$")


@dataclass
class MutationFailure:
    """A patch operation that could not be applied."""

    index: int
    patch: Any
    error: str


@dataclass
class MutationResult:
    """Outcome of applying a batch of patch operations to a copy of a document."""

    document: Dict[str, Any]
    total: int
    applied: List[Dict[str, Any]] = field(default_factory=list)
    failed: List[MutationFailure] = field(default_factory=list)
    changed: bool = False
    dry_run: bool = False
    backup_path: Optional[Path] = None
    output_path: Optional[Path] = None

    @property
    def successful(self) -> int:
        return len(self.applied)


@dataclass
class RollbackPoint:
    """A backup file that a registry can be restored from."""

    path: Path
    kind: str
    created: datetime
    size: int


def is_valid_patch(patch: Any) -> bool:
    """Return True when ``patch`` looks like a single RFC 6902 operation."""
    return (
        isinstance(patch, Mapping)
        and patch.get("op") in PATCH_OPS
        and isinstance(patch.get("path"), str)
    )


def load_patches(path: str | Path) -> List[Dict[str, Any]]:
    """Load a JSON patch list; a single operation object is accepted as a list of one."""
    payload = load_json_document(path, what="patch file")
    if isinstance(payload, dict):
        payload = [payload]
    if not isinstance(payload, list):
        raise RegistryLoadError(Path(path), "patch file must contain a list of operations")
    return payload


class BatchMutator:
    """Applies patch operations one by one without touching the input document."""

    def __init__(self, backup_dir: Path | None = None) -> None:
        self.backup_dir = backup_dir
        self.logger = get_logger("mutate")

    def apply(
        self,
        document: Mapping[str, Any],
        patches: Sequence[Any],
        *,
        dry_run: bool = False,
        atomic: bool = False,
    ) -> MutationResult:
        """Apply ``patches`` to a deep copy of ``document``.

        Failing operations are recorded and skipped. With ``atomic`` the first
        failure raises :class:`MutationError` instead.
        """
        original = copy.deepcopy(dict(document))
        working: Dict[str, Any] = copy.deepcopy(original)
        result = MutationResult(document=working, total=len(patches), dry_run=dry_run)

        for index, patch in enumerate(patches):
            try:
                working = self._apply_one(working, patch)
            except MutationError as exc:
                if atomic:
                    raise MutationError(f"Patch {index + 1} failed: {exc}") from exc
                self.logger.debug("Failed patch %d: %s", index + 1, exc)
                result.failed.append(MutationFailure(index=index, patch=patch, error=str(exc)))
                continue
            result.applied.append(dict(patch))
            self.logger.debug("Applied patch %d: %s %s", index + 1, patch["op"], patch["path"])

        result.document = working
        result.changed = working != original
        self.logger.info(
            "Applied %d of %d patch operation(s)%s",
            result.successful,
            result.total,
            " (dry-run)" if dry_run else "",
        )
        return result

    @staticmethod
    def _apply_one(document: Dict[str, Any], patch: Any) -> Dict[str, Any]:
        if not is_valid_patch(patch):
            raise MutationError(f"Invalid patch structure: {json.dumps(patch, default=str)}")
        try:
            return jsonpatch.JsonPatch([dict(patch)]).apply(document, in_place=False)
        except jsonpatch.JsonPatchTestFailed as exc:
            raise MutationError(f"test failed at {patch['path']}: {exc}") from exc
        except (jsonpatch.JsonPatchException, jsonpointer.JsonPointerException) as exc:
            raise MutationError(f"{patch['op']} {patch['path']}: {exc}") from exc

    def create_backup(self, source: Path, *, prefix: str = BACKUP_PREFIX) -> Path:
        """Copy the registry file at ``source`` unchanged into the backup directory."""
        backup_dir = self._require_backup_dir()
        if not source.is_file():
            raise MutationError(f"Cannot back up missing file: {source}")
        stamp = datetime.now(UTC).strftime("%Y%m%dT%H%M%S%fZ")
        backup_path = backup_dir / f"{prefix}-{stamp}.json"
        try:
            backup_dir.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(source, backup_path)
        except OSError as exc:
            raise OutputWriteError(backup_path, str(exc)) from exc
        self.logger.info("Backup created at %s", backup_path)
        return backup_path

    def list_backups(self) -> List[RollbackPoint]:
        """Return the backups in the backup directory, newest first."""
        if self.backup_dir is None or not self.backup_dir.is_dir():
            return []
        points: List[RollbackPoint] = []
        for candidate in self.backup_dir.iterdir():
            match = _BACKUP_NAME.match(candidate.name)
            if match is None or not candidate.is_file():
                continue
            created = datetime.strptime(match.group("stamp"), "%Y%m%dT%H%M%S%fZ").replace(tzinfo=UTC)
            points.append(
                RollbackPoint(
                    path=candidate,
                    kind=match.group("prefix"),
                    created=created,
                    size=candidate.stat().st_size,
                )
            )
        points.sort(key=lambda point: point.created, reverse=True)
        return points

    def latest_backup(self, prefix: str = BACKUP_PREFIX) -> Optional[Path]:
        """Most recent backup written with ``prefix``, if any."""
        for point in self.list_backups():
            if point.kind == prefix:
                return point.path
        return None

    def rollback(self, backup_path: Path, target_path: Path) -> Path:
        """Restore ``target_path`` from a backup file."""
        if not backup_path.exists():
            raise MutationError(f"Backup file not found: {backup_path}")
        try:
            document = load_json_document(backup_path, what="backup")
        except RegistryLoadError as exc:
            raise MutationError(f"Backup is not a readable registry: {exc}") from exc
        if not isinstance(document, dict):
            raise MutationError(f"Backup is not a registry document: {backup_path}")
        try:
            target_path.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(backup_path, target_path)
        except OSError as exc:
            raise OutputWriteError(target_path, str(exc)) from exc
        self.logger.info("Rolled back %s from %s", target_path, backup_path)
        return target_path

    def cleanup_backups(self, keep: int = 10) -> List[Path]:
        """Delete all but the ``keep`` newest backups and return the removed paths."""
        if keep < 0:
            raise MutationError("keep must be zero or more")
        removed: List[Path] = []
        for point in self.list_backups()[keep:]:
            try:
                point.path.unlink()
            except OSError as exc:
                raise MutationError(f"Could not delete backup {point.path}: {exc}") from exc
            removed.append(point.path)
        if removed:
            self.logger.info("Removed %d old backup(s)", len(removed))
        return removed

    def _require_backup_dir(self) -> Path:
        if self.backup_dir is None:
            raise MutationError("No backup directory configured")
        return self.backup_dir


def save_document(document: Mapping[str, Any], path: str | Path) -> Path:
    """Write ``document`` as pretty JSON."""
    return write_output(path, json.dumps(document, indent=2, ensure_ascii=False) + "\n")


__all__ = [
    "BACKUP_PREFIX",
    "BatchMutator",
    "MutationFailure",
    "MutationResult",
    "PATCH_OPS",
    "ROLLBACK_PREFIX",
    "RollbackPoint",
    "is_valid_patch",
    "load_patches",
    "save_document",
]
