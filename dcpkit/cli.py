"""CLI entrypoints for dcpkit commands."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from .config import PREVIEW_FORMATS, QUERY_FORMATS, ConfigError, load_config
from .errors import DcpkitError
from .logging import configure_logging
from .orchestrator import Orchestrator
from .query.parser import EXAMPLE_SELECTORS


def _add_verbose_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    kwargs: dict[str, object] = {
        "action": "store_true",
        "help": "Increase log verbosity for troubleshooting.",
    }
    if suppress_default:
        kwargs["default"] = argparse.SUPPRESS
    else:
        kwargs["default"] = False
    parser.add_argument(
        "-v",
        "--verbose",
        **kwargs,
    )


def _add_preview_format_option(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--format",
        dest="fmt",
        choices=PREVIEW_FORMATS,
        default=None,
        help="Preview rendering (defaults to the configured preview format).",
    )
    parser.add_argument(
        "--no-color",
        action="store_true",
        help="Disable ANSI colours in terminal output.",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dcpkit",
        description="Query, diff and safely mutate component & design-token registries.",
    )
    _add_verbose_option(parser)
    parser.add_argument(
        "--config",
        default=None,
        help="Path to .dcpkit.yml or the directory holding it (defaults to the current directory).",
    )
    parser.add_argument(
        "--log-file",
        default=None,
        help="Also write log records to this file.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    query_parser = subparsers.add_parser(
        "query",
        help="Run a selector such as \"tokens.color.*\" against a registry.",
    )
    _add_verbose_option(query_parser, suppress_default=True)
    query_parser.add_argument("selector", help="Selector to evaluate.")
    query_parser.add_argument(
        "--registry",
        default=None,
        help="Registry file or directory containing registry.json.",
    )
    query_parser.add_argument(
        "--format",
        dest="fmt",
        choices=QUERY_FORMATS,
        default=None,
        help="Output format (defaults to the configured query format).",
    )
    query_parser.add_argument(
        "--pretty",
        action="store_true",
        default=None,
        help="Indent JSON output.",
    )
    query_parser.add_argument("--output", default=None, help="Write results to this file.")
    query_parser.add_argument(
        "--no-color",
        action="store_true",
        help="Disable ANSI colours in the default output.",
    )

    preview_parser = subparsers.add_parser(
        "preview",
        help="Show the difference between two registry snapshots.",
    )
    _add_verbose_option(preview_parser, suppress_default=True)
    preview_parser.add_argument("original", help="Registry before mutation.")
    preview_parser.add_argument("mutated", help="Registry after mutation.")
    preview_parser.add_argument(
        "--patches",
        default=None,
        help="JSON patch file that produced the mutated registry.",
    )
    preview_parser.add_argument("--output", default=None, help="Save the preview to this path.")
    _add_preview_format_option(preview_parser)

    mutate_parser = subparsers.add_parser(
        "mutate",
        help="Apply a JSON patch file to a copy of a registry and preview the result.",
    )
    _add_verbose_option(mutate_parser, suppress_default=True)
    mutate_parser.add_argument("registry", help="Registry file or directory containing registry.json.")
    mutate_parser.add_argument("patches", help="JSON file holding a list of patch operations.")
    mutate_parser.add_argument(
        "--output",
        default=None,
        help="Write the mutated registry here instead of overwriting the input.",
    )
    mutate_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Preview changes without writing the registry.",
    )
    mutate_parser.add_argument(
        "--atomic",
        action="store_true",
        help="Abort on the first failing patch instead of skipping it.",
    )
    mutate_parser.add_argument(
        "--no-backup",
        action="store_true",
        help="Do not back up the registry before writing.",
    )
    _add_preview_format_option(mutate_parser)

    rollback_parser = subparsers.add_parser(
        "rollback",
        help="Restore a registry from a backup taken by mutate.",
    )
    _add_verbose_option(rollback_parser, suppress_default=True)
    rollback_parser.add_argument(
        "registry",
        nargs="?",
        default=None,
        help="Registry file or directory to restore (defaults to the configured registry).",
    )
    action = rollback_parser.add_mutually_exclusive_group(required=True)
    action.add_argument("--backup", default=None, help="Backup file to restore.")
    action.add_argument(
        "--last",
        action="store_true",
        help="Restore the most recent backup written by mutate.",
    )
    action.add_argument(
        "--list",
        dest="list_points",
        action="store_true",
        help="List the available backups, newest first.",
    )
    action.add_argument(
        "--cleanup",
        action="store_true",
        help="Delete old backups, keeping the newest --keep files.",
    )
    rollback_parser.add_argument(
        "--keep",
        type=int,
        default=10,
        help="Number of backups kept by --cleanup (default: 10).",
    )
    rollback_parser.add_argument(
        "--no-backup",
        action="store_true",
        help="Do not back up the current registry before restoring.",
    )

    examples_parser = subparsers.add_parser("examples", help="List example selectors.")
    _add_verbose_option(examples_parser, suppress_default=True)

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for dcpkit commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(
        verbose=bool(args.verbose),
        log_file=Path(args.log_file) if args.log_file else None,
    )

    if args.command == "examples":
        print("\n".join(EXAMPLE_SELECTORS))
        return

    try:
        config = load_config(Path(args.config) if args.config else Path.cwd())
    except ConfigError as exc:
        parser.exit(1, f"{exc}\n")
    orchestrator = Orchestrator(config)

    if args.command == "query":
        try:
            run = orchestrator.run_query(
                args.selector,
                args.registry,
                fmt=args.fmt,
                pretty=args.pretty,
                output=args.output,
                colorize=not args.no_color and _stdout_is_tty(),
            )
        except DcpkitError as exc:
            orchestrator.log_exception("Query failed", exc)
            parser.exit(1, f"dcpkit query failed: {exc}\nRun with --verbose for more details.\n")
        if run.output_path is not None:
            print(f"Results written to {_relativize(run.output_path)}")
        else:
            print(run.text)
    elif args.command == "preview":
        try:
            preview_run = orchestrator.run_preview(
                args.original,
                args.mutated,
                patches_path=args.patches,
                fmt=args.fmt,
                output=args.output,
                colorize=False if args.no_color or not _stdout_is_tty() else None,
            )
        except DcpkitError as exc:
            orchestrator.log_exception("Preview failed", exc)
            parser.exit(1, f"dcpkit preview failed: {exc}\nRun with --verbose for more details.\n")
        print(preview_run.text)
        if preview_run.output_path is not None:
            print(f"Preview saved to {_relativize(preview_run.output_path)}")
    elif args.command == "mutate":
        try:
            mutation_run = orchestrator.run_mutate(
                args.registry,
                args.patches,
                output=args.output,
                dry_run=bool(args.dry_run),
                atomic=bool(args.atomic),
                backup=False if args.no_backup else None,
                fmt=args.fmt,
                colorize=False if args.no_color or not _stdout_is_tty() else None,
            )
        except DcpkitError as exc:
            orchestrator.log_exception("Mutation failed", exc)
            parser.exit(1, f"dcpkit mutate failed: {exc}\nRun with --verbose for more details.\n")
        result = mutation_run.result
        print(mutation_run.text)
        print(f"Applied {result.successful} of {result.total} patch operation(s); {len(result.failed)} failed")
        if result.dry_run:
            print("Dry run: registry not written")
        elif result.output_path is not None:
            print(f"Registry updated at {_relativize(result.output_path)}")
        else:
            print("Registry already up to date")
    elif args.command == "rollback":
        try:
            if args.list_points:
                points = orchestrator.list_rollback_points()
                if not points:
                    print(f"No backups found in {_relativize(config.resolve_backup_dir())}")
                for point in points:
                    print(
                        f"{point.created.strftime('%Y-%m-%d %H:%M:%S')}  {point.kind:<16} "
                        f"{point.size:>8} B  {_relativize(point.path)}"
                    )
            elif args.cleanup:
                removed = orchestrator.cleanup_backups(args.keep)
                print(f"Removed {len(removed)} backup(s); kept the newest {args.keep}")
            else:
                rollback_run = orchestrator.run_rollback(
                    args.registry,
                    backup_path=args.backup,
                    last=bool(args.last),
                    backup=False if args.no_backup else None,
                )
                print(
                    f"Restored {_relativize(rollback_run.restored_path)} "
                    f"from {_relativize(rollback_run.source_backup)}"
                )
                if rollback_run.safety_backup is not None:
                    print(f"Previous state saved to {_relativize(rollback_run.safety_backup)}")
        except DcpkitError as exc:
            orchestrator.log_exception("Rollback failed", exc)
            parser.exit(1, f"dcpkit rollback failed: {exc}\nRun with --verbose for more details.\n")
    else:  # pragma: no cover - argparse enforces choices
        parser.exit(1, "Unknown command\n")


def _stdout_is_tty() -> bool:
    return sys.stdout.isatty()


def _relativize(path: Path) -> str:
    try:
        return str(path.relative_to(Path.cwd()))
    except ValueError:
        return str(path)


if __name__ == "__main__":
    main(sys.argv[1:])
