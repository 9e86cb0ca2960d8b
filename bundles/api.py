"""Public API for backup operations."""
from __future__ import annotations

import os
from pathlib import Path
from typing import List, Optional

from shelfcore.config import Config, Project
from shelfcore.paths import resolve_store_root

from .create import Clock, create_backup, project_backup_dir
from .errors import BulkPruneError, ProjectNotFoundError
from .ledger import LEDGER_FILENAME, load_ledger
from .logs import BackupLogger
from .restore import Confirm, restore_backup
from .retention import prune_all, prune_project, validate_keep
from .types import BackupResult, BackupSummary, BulkPruneSummary, PruneOutcome, RestoreResult


class BackupService:
    """Coordinate backup, retention, and restore workflows for configured projects.

    ``source_dir`` is where backup paths are read from and where restores are
    written; it defaults to the current working directory at call time.
    """

    def __init__(
        self,
        config: Config,
        *,
        store_root: Optional[Path] = None,
        source_dir: Optional[Path] = None,
        confirm: Optional[Confirm] = None,
        clock: Optional[Clock] = None,
        logger: Optional[BackupLogger] = None,
    ) -> None:
        self._config = config
        self._store_root = Path(store_root) if store_root is not None else resolve_store_root()
        self._source_dir = Path(source_dir) if source_dir is not None else None
        self._confirm = confirm
        self._clock = clock
        self._logger = logger or BackupLogger(self._store_root, store=str(self._store_root))

    # ------------------------------------------------------------------
    @property
    def store_root(self) -> Path:
        return self._store_root

    @property
    def config(self) -> Config:
        return self._config

    def _working_dir(self) -> Path:
        return self._source_dir if self._source_dir is not None else Path(os.getcwd())

    def _project(self, name: str) -> Project:
        project = self._config.find_project(name)
        if project is None:
            raise ProjectNotFoundError(name)
        return project

    # ------------------------------------------------------------------
    def backup(self, project_name: str) -> BackupResult:
        project = self._project(project_name)
        return create_backup(
            project,
            store_root=self._store_root,
            source_dir=self._working_dir(),
            logger=self._logger,
            clock=self._clock,
        )

    # ------------------------------------------------------------------
    def prune(self, project_name: str, keep: int = 0, keep_explicit: bool = False) -> PruneOutcome:
        validate_keep(keep)
        project = self._project(project_name)
        return prune_project(
            project,
            store_root=self._store_root,
            keep=keep,
            keep_explicit=keep_explicit,
            logger=self._logger,
        )

    def prune_all(self, keep: int = 0, keep_explicit: bool = False) -> BulkPruneSummary:
        """Prune every configured project; raise :class:`BulkPruneError` afterwards if any failed."""
        validate_keep(keep)
        summary = prune_all(
            self._config.projects,
            store_root=self._store_root,
            keep=keep,
            keep_explicit=keep_explicit,
            logger=self._logger,
        )
        if summary.failed:
            raise BulkPruneError(summary.failed, summary)
        return summary

    # ------------------------------------------------------------------
    def restore(self, project_name: str, selector: int = 1, force: bool = False) -> RestoreResult:
        project = self._project(project_name)
        return restore_backup(
            project,
            selector,
            store_root=self._store_root,
            dest_dir=self._working_dir(),
            logger=self._logger,
            force=force,
            confirm=self._confirm,
        )

    # ------------------------------------------------------------------
    def list_backups(self, project_name: str) -> List[BackupSummary]:
        project = self._project(project_name)
        backup_dir = project_backup_dir(self._store_root, project.name)
        ledger = load_ledger(backup_dir / LEDGER_FILENAME)
        summaries: List[BackupSummary] = []
        for index, record in enumerate(ledger.backups, start=1):
            path = backup_dir / record.filename
            present = path.is_file()
            summaries.append(
                BackupSummary(
                    index=index,
                    filename=record.filename,
                    timestamp=record.timestamp,
                    files=list(record.files),
                    size_bytes=path.stat().st_size if present else 0,
                    path=path,
                    present=present,
                )
            )
        return summaries


__all__ = ["BackupService"]
