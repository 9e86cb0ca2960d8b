"""Structured logging helpers for backup operations."""
from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from shelfcore.paths import get_logs_dir

from .errors import BackupError

LOGGER = logging.getLogger("reposhelf.backup")


class BackupLogger:
    """Write structured JSONL entries for backup related events.

    Every entry is appended to ``<store_root>/.logs/backup.jsonl`` and mirrored
    to the ``reposhelf.backup`` logger so console handlers see it as well.
    Passing ``store_root=None`` keeps the mirror but skips the file. Keyword
    *context* fields (for example ``command="prune"``) are stamped on every
    entry unless the call overrides them.
    """

    def __init__(self, store_root: Optional[Path], **context: Any) -> None:
        self._log_path: Optional[Path] = None
        self._context: Dict[str, Any] = dict(context)
        if store_root is not None:
            self._log_path = get_logs_dir(Path(store_root)) / "backup.jsonl"
            try:
                self._log_path.parent.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                raise BackupError(f"cannot use backup store {store_root}: {exc}") from exc

    @property
    def log_path(self) -> Optional[Path]:
        return self._log_path

    # ------------------------------------------------------------------
    def _emit(self, event: str, *, ok: bool, level: int, fields: Dict[str, Any]) -> None:
        payload: Dict[str, Any] = {**self._context, **fields, "event": event, "ok": bool(ok)}
        payload.setdefault("ts", datetime.now(timezone.utc).isoformat(timespec="milliseconds"))
        line = json.dumps(payload, sort_keys=True, default=str)
        if self._log_path is not None:
            try:
                with self._log_path.open("a", encoding="utf-8") as handle:
                    handle.write(line + "\n")
            except OSError as exc:
                raise BackupError(f"cannot write {self._log_path}: {exc}") from exc
        LOGGER.log(level, "%s", line)

    def event(self, *, event: str, phase: str, ok: bool, **extra: Any) -> None:
        level = logging.INFO if ok else logging.ERROR
        self._emit(event, ok=ok, level=level, fields={"phase": phase, **extra})

    def info(self, event: str, **extra: Any) -> None:
        self._emit(event, ok=True, level=logging.INFO, fields=extra)

    def warning(self, event: str, **extra: Any) -> None:
        self._emit(event, ok=False, level=logging.WARNING, fields=extra)

    def error(self, event: str, **extra: Any) -> None:
        self._emit(event, ok=False, level=logging.ERROR, fields=extra)


__all__ = ["BackupLogger"]
