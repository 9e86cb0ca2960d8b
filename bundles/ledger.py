"""Read, write and prune the per-project backup ledger (``backups.yaml``)."""
from __future__ import annotations

import os
import re
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .errors import BackupPruneError, LedgerParseError, LedgerReadError
from .logs import BackupLogger
from .types import BackupLedger, BackupRecord, NoActionNeeded, Pruned, PruneOutcome

LEDGER_FILENAME = "backups.yaml"

_FRACTION_RE = re.compile(r"(\.\d{6})\d+")


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        text = _FRACTION_RE.sub(r"\1", text)
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError as exc:
            raise LedgerParseError(f"invalid timestamp {value!r}") from exc
    else:
        raise LedgerParseError(f"invalid timestamp {value!r}")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_timestamp(value: datetime) -> str:
    """Render *value* as RFC3339 with microseconds."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat(timespec="microseconds")


def _record_from_dict(raw: Any) -> BackupRecord:
    if not isinstance(raw, dict):
        raise LedgerParseError("invalid ledger entry")
    filename = raw.get("filename")
    if not isinstance(filename, str) or not filename:
        raise LedgerParseError("ledger entry missing filename")
    files = raw.get("files") or []
    if not isinstance(files, list):
        raise LedgerParseError(f"invalid file list for {filename}")
    return BackupRecord(
        filename=filename,
        timestamp=_parse_timestamp(raw.get("timestamp")),
        files=[str(item) for item in files],
    )


def _record_to_dict(record: BackupRecord) -> Dict[str, Any]:
    return {
        "filename": record.filename,
        "timestamp": format_timestamp(record.timestamp),
        "files": list(record.files),
    }


def load_ledger(path: Path) -> BackupLedger:
    """Load the ledger at *path*; a missing file yields an empty ledger.

    Unreadable paths raise :class:`LedgerReadError`, malformed content
    :class:`LedgerParseError`.
    """
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return BackupLedger()
    except OSError as exc:
        raise LedgerReadError(f"cannot read {path}: {exc}") from exc
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise LedgerParseError(f"cannot parse {path.name}: {exc}") from exc
    if data is None:
        return BackupLedger()
    if not isinstance(data, dict):
        raise LedgerParseError(f"cannot parse {path.name}: expected a mapping")
    raw_backups = data.get("backups") or []
    if not isinstance(raw_backups, list):
        raise LedgerParseError(f"cannot parse {path.name}: backups must be a list")
    project = data.get("project") or ""
    return BackupLedger(
        project=str(project),
        backups=[_record_from_dict(item) for item in raw_backups],
    )


def save_ledger(path: Path, ledger: BackupLedger) -> None:
    """Serialize *ledger* to *path* through a temp file and rename."""
    path = Path(path)
    payload = {
        "project": ledger.project,
        "backups": [_record_to_dict(record) for record in ledger.backups],
    }
    text = yaml.safe_dump(payload, sort_keys=False, allow_unicode=True)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=".backups-", suffix=".yaml", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(text)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def prune_to_keep(
    ledger_path: Path,
    keep: int,
    *,
    logger: Optional[BackupLogger] = None,
) -> PruneOutcome:
    """Delete bundles beyond the *keep* newest entries and rewrite the ledger.

    Archives that are already gone are ignored. Any other filesystem error
    stops the prune before the ledger is rewritten.
    """

    ledger_path = Path(ledger_path)
    ledger = load_ledger(ledger_path)
    total = len(ledger.backups)
    if total <= keep:
        return NoActionNeeded(count=total, keep=keep)

    backup_dir = ledger_path.parent
    removed: List[str] = []
    for record in ledger.backups[keep:]:
        archive_path = backup_dir / record.filename
        try:
            archive_path.unlink()
        except FileNotFoundError:
            pass
        except OSError as exc:
            raise BackupPruneError(f"failed to delete {record.filename}: {exc}") from exc
        removed.append(record.filename)
        if logger is not None:
            logger.warning("backup_removed", file=record.filename, reason="retention")

    ledger.backups = ledger.backups[:keep]
    try:
        save_ledger(ledger_path, ledger)
    except (OSError, yaml.YAMLError) as exc:
        raise BackupPruneError(f"failed to write {ledger_path.name}: {exc}") from exc
    return Pruned(count=len(removed), removed=removed)


__all__ = [
    "LEDGER_FILENAME",
    "format_timestamp",
    "load_ledger",
    "prune_to_keep",
    "save_ledger",
]
