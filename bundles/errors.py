"""Error hierarchy for backup operations."""
from __future__ import annotations

from typing import Any


class BackupError(RuntimeError):
    """Base exception for backup related failures."""


class InputError(BackupError):
    """Raised for invalid command input such as a negative keep count."""


class ProjectNotFoundError(InputError):
    def __init__(self, name: str) -> None:
        super().__init__(f"project {name!r} not found in configuration")
        self.name = name


class BackupNotFoundError(BackupError):
    """Raised when a backup directory, ledger, or archive is missing."""


class SelectorOutOfRangeError(BackupNotFoundError):
    def __init__(self, selector: int, count: int) -> None:
        super().__init__(
            f"invalid backup number {selector}: choose between 1 and {count}"
        )
        self.selector = selector
        self.count = count


class ArchiveError(BackupError):
    """Raised when a bundle cannot be written or read."""


class LedgerParseError(BackupError):
    """Raised when a ledger file exists but cannot be parsed."""


class LedgerReadError(BackupError):
    """Raised when a ledger path exists but cannot be read."""


class BackupPruneError(BackupError):
    """Raised when deleting old bundles fails."""


class BulkPruneError(BackupError):
    def __init__(self, failed: int, summary: Any = None) -> None:
        super().__init__(f"prune failed for {failed} project(s)")
        self.failed = failed
        self.summary = summary


class BackupRestoreError(BackupError):
    """Raised when restoring a snapshot fails."""


__all__ = [
    "ArchiveError",
    "BackupError",
    "BackupNotFoundError",
    "BackupPruneError",
    "BackupRestoreError",
    "BulkPruneError",
    "InputError",
    "LedgerParseError",
    "LedgerReadError",
    "ProjectNotFoundError",
    "SelectorOutOfRangeError",
]
