"""Create a backup bundle for one project and record it in the ledger."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Optional, Tuple

import yaml

from shelfcore.config import Project
from shelfcore.paths import get_project_backup_dir

from .archive import pack_paths
from .errors import BackupError, InputError
from .ledger import LEDGER_FILENAME, load_ledger, prune_to_keep, save_ledger
from .logs import BackupLogger
from .types import BackupRecord, BackupResult

Clock = Callable[[], datetime]

BUNDLE_PREFIX = "backup_"
BUNDLE_SUFFIX = ".tar.gz"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def bundle_filename(timestamp: datetime) -> str:
    """Return the bundle name for *timestamp*, down to the microsecond."""
    return f"{BUNDLE_PREFIX}{timestamp.astimezone(timezone.utc).strftime('%Y%m%d_%H%M%S_%f')}{BUNDLE_SUFFIX}"


def project_backup_dir(store_root: Path, name: str) -> Path:
    """Return ``<store_root>/<name>``, rejecting names that would escape it."""
    try:
        return get_project_backup_dir(store_root, name)
    except ValueError as exc:
        raise InputError(str(exc)) from exc


def _unique_bundle_path(backup_dir: Path, timestamp: datetime) -> Tuple[Path, datetime]:
    candidate = backup_dir / bundle_filename(timestamp)
    while candidate.exists():
        timestamp = timestamp + timedelta(microseconds=1)
        candidate = backup_dir / bundle_filename(timestamp)
    return candidate, timestamp


def create_backup(
    project: Project,
    *,
    store_root: Path,
    source_dir: Path,
    logger: BackupLogger,
    clock: Optional[Clock] = None,
) -> BackupResult:
    if not project.backup_paths:
        raise BackupError(f"project {project.name!r} has no backup_paths configured")

    backup_dir = project_backup_dir(store_root, project.name)
    try:
        backup_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise BackupError(f"cannot create backup directory {backup_dir}: {exc}") from exc

    ledger_path = backup_dir / LEDGER_FILENAME
    ledger = load_ledger(ledger_path)

    timestamp = (clock or _utcnow)()
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    bundle_path, timestamp = _unique_bundle_path(backup_dir, timestamp)

    logger.event(event="backup_start", phase="create", ok=True, project=project.name, file=bundle_path.name)
    captured = pack_paths(project.backup_paths, Path(source_dir), bundle_path, logger=logger)
    if not captured:
        logger.warning("backup_empty", project=project.name, file=bundle_path.name)

    record = BackupRecord(filename=bundle_path.name, timestamp=timestamp, files=captured)
    ledger.project = project.name
    ledger.append_and_resort(record)
    try:
        save_ledger(ledger_path, ledger)
    except (OSError, yaml.YAMLError) as exc:
        raise BackupError(f"failed to update {LEDGER_FILENAME}: {exc}") from exc

    result = BackupResult(
        project=project.name,
        record=record,
        directory=backup_dir,
        bundle_path=bundle_path,
    )

    if project.backup_retention > 0:
        try:
            result.pruned = prune_to_keep(ledger_path, project.backup_retention, logger=logger)
        except BackupError as exc:
            result.prune_error = str(exc)
            logger.warning("retention_failed", project=project.name, error=str(exc))

    logger.event(
        event="backup_complete",
        phase="create",
        ok=True,
        project=project.name,
        file=bundle_path.name,
        files=len(captured),
    )
    return result


__all__ = ["bundle_filename", "create_backup", "project_backup_dir"]
