"""Retention resolution and pruning for one or all projects."""
from __future__ import annotations

from pathlib import Path
from typing import Iterable

from shelfcore.config import Project

from .create import project_backup_dir
from .errors import BackupError, BackupNotFoundError, InputError
from .ledger import LEDGER_FILENAME, load_ledger, prune_to_keep
from .logs import BackupLogger
from .types import (
    BulkPruneSummary,
    NoActionNeeded,
    ProjectPruneResult,
    Pruned,
    PruneOutcome,
    RetentionDecision,
    Skipped,
)


def validate_keep(keep: int) -> None:
    if keep < 0:
        raise InputError(f"--keep must be zero or positive, got {keep}")


def determine_retention(project: Project, keep: int, keep_explicit: bool) -> RetentionDecision:
    """Pick the keep count for *project*.

    An explicit flag always wins, zero included. Otherwise a positive
    ``backup_retention`` applies; with neither the project is skipped.
    """

    if keep_explicit:
        return RetentionDecision(retention=keep, skip=False)
    if project.backup_retention > 0:
        return RetentionDecision(retention=project.backup_retention, skip=False)
    return RetentionDecision(retention=0, skip=True)


def prune_project(
    project: Project,
    *,
    store_root: Path,
    keep: int,
    keep_explicit: bool,
    logger: BackupLogger,
) -> PruneOutcome:
    decision = determine_retention(project, keep, keep_explicit)
    if decision.skip:
        logger.warning("retention_skipped", project=project.name, reason="no_retention")
        return Skipped(reason="no retention configured and --keep not given")

    backup_dir = project_backup_dir(store_root, project.name)
    if not backup_dir.is_dir():
        raise BackupNotFoundError(f"backup directory not found for project {project.name!r}")
    ledger_path = backup_dir / LEDGER_FILENAME
    if not ledger_path.is_file():
        raise BackupNotFoundError(f"backup metadata not found for project {project.name!r}")
    ledger = load_ledger(ledger_path)
    if not ledger.backups:
        raise BackupNotFoundError(f"no backups recorded for project {project.name!r}")

    outcome = prune_to_keep(ledger_path, decision.retention, logger=logger)
    if isinstance(outcome, Pruned):
        logger.event(
            event="retention_applied",
            phase="retention",
            ok=True,
            project=project.name,
            removed=outcome.count,
            kept=decision.retention,
        )
    return outcome


def prune_all(
    projects: Iterable[Project],
    *,
    store_root: Path,
    keep: int,
    keep_explicit: bool,
    logger: BackupLogger,
) -> BulkPruneSummary:
    """Prune every project in turn; failures are recorded, never fatal here."""

    summary = BulkPruneSummary()
    for project in projects:
        result = ProjectPruneResult(project=project.name)
        try:
            result.outcome = prune_project(
                project,
                store_root=store_root,
                keep=keep,
                keep_explicit=keep_explicit,
                logger=logger,
            )
        except (BackupError, OSError) as exc:
            result.error = str(exc)
            summary.failed += 1
            logger.error("prune_failed", project=project.name, error=str(exc))
        else:
            if isinstance(result.outcome, (Skipped, NoActionNeeded)):
                summary.skipped += 1
            else:
                summary.succeeded += 1
        summary.results.append(result)
    return summary


__all__ = ["determine_retention", "prune_all", "prune_project", "validate_keep"]
