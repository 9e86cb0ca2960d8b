"""Restore a recorded bundle into a working directory."""
from __future__ import annotations

import sys
from pathlib import Path
from typing import Callable, Optional, TextIO

from shelfcore.config import Project

from .archive import extract_bundle
from .create import project_backup_dir
from .errors import ArchiveError, BackupNotFoundError, BackupRestoreError, SelectorOutOfRangeError
from .ledger import LEDGER_FILENAME, load_ledger
from .logs import BackupLogger
from .types import BackupLedger, BackupRecord, RestoreResult

Confirm = Callable[[BackupRecord], bool]


def select_backup(ledger: BackupLedger, selector: int) -> BackupRecord:
    """Return the *selector*-th newest record (1 = most recent)."""
    count = len(ledger.backups)
    if selector < 1 or selector > count:
        raise SelectorOutOfRangeError(selector, count)
    return ledger.backups[selector - 1]


def prompt_confirm(
    record: BackupRecord,
    *,
    input_fn: Callable[[str], str] = input,
    output: Optional[TextIO] = None,
) -> bool:
    stream = output or sys.stdout
    stream.write(f"Existing files in the current directory will be overwritten by {record.filename}.\n")
    stream.flush()
    try:
        answer = input_fn("Continue? [y/N]: ")
    except EOFError as exc:
        raise BackupRestoreError("failed to read confirmation") from exc
    return answer.strip().lower() in {"y", "yes"}


def restore_backup(
    project: Project,
    selector: int,
    *,
    store_root: Path,
    dest_dir: Path,
    logger: BackupLogger,
    force: bool = False,
    confirm: Optional[Confirm] = None,
) -> RestoreResult:
    backup_dir = project_backup_dir(store_root, project.name)
    if not backup_dir.is_dir():
        raise BackupNotFoundError(f"no backups found for project {project.name!r}")
    ledger_path = backup_dir / LEDGER_FILENAME
    if not ledger_path.is_file():
        raise BackupNotFoundError(f"backup metadata not found for project {project.name!r}")
    ledger = load_ledger(ledger_path)
    if not ledger.backups:
        raise BackupNotFoundError(f"backup history is empty for project {project.name!r}")

    record = select_backup(ledger, selector)
    bundle_path = backup_dir / record.filename
    if not bundle_path.is_file():
        raise BackupNotFoundError(f"backup file not found: {record.filename}")

    if not force:
        ask = confirm or prompt_confirm
        if not ask(record):
            logger.info("restore_cancelled", project=project.name, file=record.filename)
            return RestoreResult(project=project.name, record=record, cancelled=True)

    logger.event(event="restore_start", phase="restore", ok=True, project=project.name, file=record.filename)
    try:
        extracted = extract_bundle(bundle_path, Path(dest_dir), logger=logger)
    except ArchiveError as exc:
        logger.error("restore_failed", project=project.name, file=record.filename, error=str(exc))
        raise BackupRestoreError(str(exc)) from exc
    logger.event(
        event="backup_restored",
        phase="restore",
        ok=True,
        project=project.name,
        file=record.filename,
        extracted=extracted,
    )
    return RestoreResult(project=project.name, record=record, extracted=extracted)


__all__ = ["prompt_confirm", "restore_backup", "select_backup"]
