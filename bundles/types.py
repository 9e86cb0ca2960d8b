"""Common dataclasses shared across backup modules."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Union


@dataclass(slots=True)
class BackupRecord:
    """Single bundle entry in a project's ledger."""

    filename: str
    timestamp: datetime
    files: List[str] = field(default_factory=list)


@dataclass(slots=True)
class BackupLedger:
    """Backup history of one project, newest first."""

    project: str = ""
    backups: List[BackupRecord] = field(default_factory=list)

    def append_and_resort(self, record: BackupRecord) -> None:
        self.backups.append(record)
        # list.sort is stable, so equal timestamps keep insertion order
        self.backups.sort(key=lambda item: item.timestamp, reverse=True)


@dataclass(slots=True)
class BackupResult:
    project: str
    record: BackupRecord
    directory: Path
    bundle_path: Path
    pruned: Optional["PruneOutcome"] = None
    prune_error: Optional[str] = None


@dataclass(slots=True)
class RestoreResult:
    project: str
    record: Optional[BackupRecord]
    extracted: int = 0
    cancelled: bool = False


@dataclass(slots=True)
class BackupSummary:
    index: int
    filename: str
    timestamp: datetime
    files: List[str]
    size_bytes: int
    path: Path
    present: bool


@dataclass(frozen=True, slots=True)
class RetentionDecision:
    retention: int
    skip: bool


@dataclass(frozen=True, slots=True)
class Pruned:
    count: int
    removed: List[str] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class Skipped:
    reason: str


@dataclass(frozen=True, slots=True)
class NoActionNeeded:
    count: int
    keep: int


PruneOutcome = Union[Pruned, Skipped, NoActionNeeded]


@dataclass(slots=True)
class ProjectPruneResult:
    project: str
    outcome: Optional[PruneOutcome] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(slots=True)
class BulkPruneSummary:
    succeeded: int = 0
    skipped: int = 0
    failed: int = 0
    results: List[ProjectPruneResult] = field(default_factory=list)


__all__ = [
    "BackupLedger",
    "BackupRecord",
    "BackupResult",
    "BackupSummary",
    "BulkPruneSummary",
    "NoActionNeeded",
    "ProjectPruneResult",
    "PruneOutcome",
    "Pruned",
    "RestoreResult",
    "RetentionDecision",
    "Skipped",
]
