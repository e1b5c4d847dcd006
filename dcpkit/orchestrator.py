"""Command workflows tying configuration, loading, the engines and output together."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from .config import DcpkitConfig, load_config
from .errors import MutationError
from .logging import get_logger
from .models import Diagnostic, QueryResult
from .mutate.patches import (
    ROLLBACK_PREFIX,
    BatchMutator,
    MutationResult,
    RollbackPoint,
    load_patches,
    save_document,
)
from .mutate.preview import DiffPreview, PreviewBuilder, render_preview, save_preview
from .query.executor import QueryExecutor
from .query.formatter import format_result
from .query.parser import SelectorParser
from .registry import (
    RegistryCache,
    load_registry,
    read_registry_document,
    resolve_registry_file,
    write_output,
)


@dataclass
class QueryRun:
    """Rendered output of a query together with what produced it."""

    text: str
    result: QueryResult
    diagnostics: List[Diagnostic] = field(default_factory=list)
    output_path: Optional[Path] = None


@dataclass
class PreviewRun:
    text: str
    preview: DiffPreview
    output_path: Optional[Path] = None


@dataclass
class MutationRun:
    text: str
    result: MutationResult
    preview: DiffPreview


@dataclass
class RollbackRun:
    restored_path: Path
    source_backup: Path
    safety_backup: Optional[Path] = None


class Orchestrator:
    """Coordinates the query, preview, mutate and rollback commands."""

    def __init__(
        self,
        config: DcpkitConfig | None = None,
        *,
        cache: RegistryCache | None = None,
        parser: SelectorParser | None = None,
        executor: QueryExecutor | None = None,
        mutator: BatchMutator | None = None,
    ) -> None:
        self.config = config or load_config(Path.cwd())
        self.cache = cache or RegistryCache()
        self.parser = parser or SelectorParser()
        self.executor = executor or QueryExecutor()
        self.mutator = mutator or BatchMutator(backup_dir=self.config.resolve_backup_dir())
        self.logger = get_logger("orchestrator")

    def run_query(
        self,
        selector: str,
        registry: str | Path | None = None,
        *,
        fmt: str | None = None,
        pretty: bool | None = None,
        output: str | Path | None = None,
        colorize: bool = True,
    ) -> QueryRun:
        """Parse ``selector``, run it against the registry and render the result."""
        query, diagnostics = self.parser.parse_with_diagnostics(selector)
        for diagnostic in diagnostics:
            self.logger.warning("%s", diagnostic.message)
        self.logger.debug("Parsed query: %s", query.to_dict())

        registry_path = self.config.resolve_registry(registry)
        self.logger.debug("Querying registry at %s", registry_path)
        document = self.cache.get(registry_path)
        result = self.executor.execute(query, document)

        text = format_result(
            result,
            fmt or self.config.query.format,
            pretty=self.config.query.pretty if pretty is None else pretty,
            colorize=colorize and output is None,
        )
        run = QueryRun(text=text, result=result, diagnostics=diagnostics)
        if output is not None:
            run.output_path = write_output(output, text)
            self.logger.info("Results written to %s", run.output_path)
        return run

    def run_preview(
        self,
        original_path: str | Path,
        mutated_path: str | Path,
        *,
        patches_path: str | Path | None = None,
        fmt: str | None = None,
        output: str | Path | None = None,
        colorize: bool | None = None,
    ) -> PreviewRun:
        """Compare two registry snapshots, optionally attributing the patch list."""
        original = load_registry(original_path)
        mutated = load_registry(mutated_path)
        patches = load_patches(patches_path) if patches_path is not None else []

        use_color = self.config.preview.colorize if colorize is None else colorize
        fmt = fmt or self.config.preview.format
        preview = PreviewBuilder(colorize=use_color).build(original, mutated, patches)
        run = PreviewRun(text=render_preview(preview, fmt, colorize=use_color), preview=preview)
        if output is not None:
            run.output_path = save_preview(preview, output, fmt)
        self.logger.info(
            "Preview: %d change(s), risk %s",
            preview.summary.total_changes,
            preview.summary.risk_level,
        )
        return run

    def run_mutate(
        self,
        registry: str | Path | None,
        patches_path: str | Path,
        *,
        output: str | Path | None = None,
        dry_run: bool = False,
        atomic: bool = False,
        backup: bool | None = None,
        fmt: str | None = None,
        colorize: bool | None = None,
    ) -> MutationRun:
        """Apply a patch file to a copy of the registry and preview the result.

        Unless ``dry_run`` is set, the mutated document is written to ``output``
        (or back over the registry file) after an optional backup.
        """
        registry_file = resolve_registry_file(self.config.resolve_registry(registry))
        self.logger.info("Starting mutation run for %s", registry_file)
        original = read_registry_document(registry_file)
        patches = load_patches(patches_path)

        result = self.mutator.apply(original, patches, dry_run=dry_run, atomic=atomic)
        for failure in result.failed:
            self.logger.warning("Patch %d skipped: %s", failure.index + 1, failure.error)

        use_color = self.config.preview.colorize if colorize is None else colorize
        preview = PreviewBuilder(colorize=use_color).build(original, result.document, result.applied)

        if dry_run:
            self.logger.info("Dry-run completed; registry not written")
        elif not result.changed:
            self.logger.info("Patches produced no changes; skipping write")
        else:
            target = Path(output) if output is not None else registry_file
            do_backup = self.config.mutate.backup if backup is None else backup
            if do_backup and target.is_file():
                result.backup_path = self.mutator.create_backup(target)
            result.output_path = save_document(result.document, target)
            self.cache.invalidate(target)
            self.logger.info("Registry written to %s", result.output_path)

        text = render_preview(preview, fmt or self.config.preview.format, colorize=use_color)
        return MutationRun(text=text, result=result, preview=preview)

    def run_rollback(
        self,
        registry: str | Path | None = None,
        *,
        backup_path: str | Path | None = None,
        last: bool = False,
        backup: bool | None = None,
    ) -> RollbackRun:
        """Restore the registry from ``backup_path`` or from the newest mutation backup.

        The current registry file is itself backed up first unless backups are
        disabled, so a rollback can be undone the same way.
        """
        registry_file = resolve_registry_file(self.config.resolve_registry(registry))
        if backup_path is not None:
            source = Path(backup_path).expanduser()
        elif last:
            latest = self.mutator.latest_backup()
            if latest is None:
                raise MutationError(f"No backups found in {self.mutator.backup_dir}")
            source = latest
        else:
            raise MutationError("Choose a backup file or the latest backup to roll back to")

        self.logger.info("Rolling back %s from %s", registry_file, source)
        run = RollbackRun(restored_path=registry_file, source_backup=source)
        do_backup = self.config.mutate.backup if backup is None else backup
        if do_backup and registry_file.is_file():
            run.safety_backup = self.mutator.create_backup(registry_file, prefix=ROLLBACK_PREFIX)
        self.mutator.rollback(source, registry_file)
        self.cache.invalidate(registry_file)
        return run

    def list_rollback_points(self) -> List[RollbackPoint]:
        return self.mutator.list_backups()

    def cleanup_backups(self, keep: int = 10) -> List[Path]:
        return self.mutator.cleanup_backups(keep)

    def log_exception(self, message: str, exc: Exception) -> None:
        if self.logger.isEnabledFor(logging.DEBUG):
            self.logger.exception("%s: %s", message, exc)
        else:
            self.logger.error("%s: %s", message, exc)
