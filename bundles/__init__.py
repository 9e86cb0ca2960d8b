"""Backup bundles, ledger, retention and restore for reposhelf projects."""
from __future__ import annotations

from .api import BackupService
from .errors import BackupError
from .types import (
    BackupRecord,
    BackupResult,
    BulkPruneSummary,
    NoActionNeeded,
    Pruned,
    PruneOutcome,
    RestoreResult,
    Skipped,
)

__all__ = [
    "BackupError",
    "BackupRecord",
    "BackupResult",
    "BackupService",
    "BulkPruneSummary",
    "NoActionNeeded",
    "PruneOutcome",
    "Pruned",
    "RestoreResult",
    "Skipped",
]
