"""Command line entry point for reposhelf."""
from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Optional, Sequence, TextIO

from bundles.api import BackupService
from bundles.errors import BackupError, BulkPruneError, InputError
from bundles.types import BulkPruneSummary, NoActionNeeded, Pruned, PruneOutcome, Skipped
from shelfcore.config import Config, ConfigError, load_config
from shelfcore.logging_utils import configure_logging
from shelfcore.paths import get_default_config_path, resolve_store_root

__version__ = "0.3.0"


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="reposhelf",
        description="Shelve dormant git projects: back up their local files, prune and restore them.",
    )
    parser.add_argument("--config", type=Path, default=None, help="Config file (default ~/.config/reposhelf/config.yml)")
    parser.add_argument("--store", type=Path, default=None, help="Override the backup store directory")
    parser.add_argument("--verbose", "-v", action="store_true", help="Log every backup event to stderr")
    parser.add_argument("--log-json", action="store_true", help="Render log lines as JSON")
    parser.add_argument("--version", action="version", version=f"reposhelf {__version__}")
    sub = parser.add_subparsers(dest="command", required=True)

    backup = sub.add_parser("backup", help="Archive a project's backup paths from the current directory")
    backup.add_argument("--project", "-p", default="", help="Project name")

    prune = sub.add_parser("prune", help="Delete old backups beyond the retention count")
    prune.add_argument("--project", "-p", default="", help="Project name")
    prune.add_argument("--all", action="store_true", dest="all_projects", help="Prune every configured project")
    prune.add_argument("--keep", "-k", type=int, default=None, help="Number of backups to keep (overrides backup_retention)")

    restore = sub.add_parser("restore", help="Extract a backup into the current directory")
    restore.add_argument("--project", "-p", default="", help="Project name")
    restore.add_argument("--backup", "-b", type=int, default=1, help="Backup number, 1 = most recent")
    restore.add_argument("--force", "-f", action="store_true", help="Overwrite without asking")

    listing = sub.add_parser("list", help="List projects, or the backups of one project")
    listing.add_argument("--project", "-p", default="", help="Show the backup history of this project")
    return parser


def _load(args: argparse.Namespace) -> Config:
    path = args.config or get_default_config_path()
    return load_config(path)


def _require_project(name: str) -> str:
    name = name.strip()
    if not name:
        raise InputError("--project is required")
    return name


def _run_backup(service: BackupService, args: argparse.Namespace, out: TextIO) -> None:
    name = _require_project(args.project)
    print(f"Creating backup for project '{name}'...", file=out)
    result = service.backup(name)
    if result.prune_error:
        print(f"Warning: failed to prune old backups: {result.prune_error}", file=sys.stderr)
    elif isinstance(result.pruned, Pruned) and result.pruned.count:
        print(f"Removed {result.pruned.count} old backup(s)", file=out)
    print(f"Backed up {len(result.record.files)} path(s) to {result.bundle_path}", file=out)


def _describe_outcome(outcome: PruneOutcome) -> str:
    if isinstance(outcome, Pruned):
        return f"deleted {outcome.count} backup(s)"
    if isinstance(outcome, NoActionNeeded):
        return f"no prune needed ({outcome.count} backup(s), keeping {outcome.keep})"
    if isinstance(outcome, Skipped):
        return f"skipped: {outcome.reason}"
    return str(outcome)


def _print_summary(summary: BulkPruneSummary, out: TextIO) -> None:
    for result in summary.results:
        if result.error is not None:
            print(f"  {result.project}: error: {result.error}", file=out)
        elif result.outcome is not None:
            print(f"  {result.project}: {_describe_outcome(result.outcome)}", file=out)
    print(
        f"Summary: {summary.succeeded} pruned, {summary.skipped} skipped, {summary.failed} failed",
        file=out,
    )


def _run_prune(service: BackupService, args: argparse.Namespace, out: TextIO) -> None:
    name = args.project.strip()
    if name and args.all_projects:
        raise InputError("--project and --all cannot be used together")
    if not name and not args.all_projects:
        raise InputError("either --project or --all is required")
    keep_explicit = args.keep is not None
    keep = args.keep if keep_explicit else 0
    if keep < 0:
        raise InputError(f"--keep must be zero or positive, got {keep}")
    if not service.config.projects:
        raise InputError("no projects are configured")

    if args.all_projects:
        print("Pruning backups for all projects...", file=out)
        try:
            summary = service.prune_all(keep, keep_explicit)
        except BulkPruneError as exc:
            if exc.summary is not None:
                _print_summary(exc.summary, out)
            raise
        _print_summary(summary, out)
        return

    outcome = service.prune(name, keep, keep_explicit)
    if isinstance(outcome, Skipped):
        print(
            f"Warning: project '{name}' has no backup_retention and --keep was not given; nothing deleted",
            file=sys.stderr,
        )
        return
    print(f"{name}: {_describe_outcome(outcome)}", file=out)


def _run_restore(service: BackupService, args: argparse.Namespace, out: TextIO) -> None:
    name = _require_project(args.project)
    result = service.restore(name, args.backup, args.force)
    if result.cancelled:
        print("Restore cancelled.", file=out)
        return
    print(f"Restored {result.extracted} file(s) from {result.record.filename}", file=out)


def _run_list(service: BackupService, args: argparse.Namespace, out: TextIO) -> None:
    name = args.project.strip()
    if name:
        summaries = service.list_backups(name)
        if not summaries:
            print(f"No backups for project '{name}'.", file=out)
            return
        for item in summaries:
            marker = "" if item.present else " (missing)"
            stamp = item.timestamp.strftime("%Y-%m-%d %H:%M:%S")
            print(f"  {item.index}. {item.filename}  {stamp}  {item.size_bytes} bytes{marker}", file=out)
            for path in item.files:
                print(f"       - {path}", file=out)
        return

    projects = service.config.projects
    if not projects:
        print("No projects configured.", file=out)
        return
    for project in projects:
        print(f"  * {project.name}", file=out)
        print(f"    repo: {project.repo}", file=out)
        print(f"    branch: {project.branch}", file=out)
        if project.backup_paths:
            print("    backup paths:", file=out)
            for path in project.backup_paths:
                print(f"      - {path}", file=out)
        if project.backup_retention > 0:
            print(f"    retention: {project.backup_retention}", file=out)
    print(f"Total: {len(projects)} project(s)", file=out)


_COMMANDS = {
    "backup": _run_backup,
    "prune": _run_prune,
    "restore": _run_restore,
    "list": _run_list,
}


def main(argv: Optional[Sequence[str]] = None, *, out: Optional[TextIO] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    stream = out or sys.stdout
    configure_logging(verbose=args.verbose, json_output=args.log_json)
    try:
        config = _load(args)
        service = BackupService(config, store_root=resolve_store_root(args.store))
        _COMMANDS[args.command](service, args, stream)
    except (BackupError, ConfigError, OSError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
