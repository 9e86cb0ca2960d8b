from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from bundles.errors import BackupPruneError, LedgerParseError
from bundles.ledger import LEDGER_FILENAME, load_ledger, prune_to_keep, save_ledger
from bundles.types import BackupLedger, BackupRecord, NoActionNeeded, Pruned

BASE = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


def _seed(backup_dir: Path, count: int) -> BackupLedger:
    backup_dir.mkdir(parents=True, exist_ok=True)
    ledger = BackupLedger(project="demo")
    for index in range(count):
        filename = f"backup_{index:02d}.tar.gz"
        (backup_dir / filename).write_bytes(b"bundle")
        ledger.append_and_resort(
            BackupRecord(filename=filename, timestamp=BASE + timedelta(minutes=index), files=[".env"])
        )
    save_ledger(backup_dir / LEDGER_FILENAME, ledger)
    return ledger


def test_load_missing_ledger_returns_empty(tmp_path):
    ledger = load_ledger(tmp_path / LEDGER_FILENAME)
    assert ledger.project == ""
    assert ledger.backups == []


def test_load_unparsable_ledger_raises(tmp_path):
    path = tmp_path / LEDGER_FILENAME
    path.write_text("project: [unterminated\n", encoding="utf-8")
    with pytest.raises(LedgerParseError):
        load_ledger(path)


def test_load_rejects_bad_timestamp(tmp_path):
    path = tmp_path / LEDGER_FILENAME
    path.write_text(
        "project: demo\nbackups:\n  - filename: a.tar.gz\n    timestamp: yesterday\n    files: []\n",
        encoding="utf-8",
    )
    with pytest.raises(LedgerParseError):
        load_ledger(path)


def test_load_accepts_unquoted_nanosecond_timestamps(tmp_path):
    path = tmp_path / LEDGER_FILENAME
    path.write_text(
        "project: demo\n"
        "backups:\n"
        "  - filename: backup_20240501_120000.tar.gz\n"
        "    timestamp: 2024-05-01T12:00:00.123456789+09:00\n"
        "    files:\n"
        "      - .env\n",
        encoding="utf-8",
    )
    ledger = load_ledger(path)
    record = ledger.backups[0]
    assert record.timestamp.tzinfo is not None
    assert record.timestamp.utcoffset() == timedelta(hours=9)
    assert record.files == [".env"]


def test_append_and_resort_keeps_newest_first_and_is_stable():
    ledger = BackupLedger(project="demo")
    ledger.append_and_resort(BackupRecord("old.tar.gz", BASE))
    ledger.append_and_resort(BackupRecord("new.tar.gz", BASE + timedelta(hours=1)))
    ledger.append_and_resort(BackupRecord("tie-a.tar.gz", BASE + timedelta(minutes=30)))
    ledger.append_and_resort(BackupRecord("tie-b.tar.gz", BASE + timedelta(minutes=30)))

    assert [record.filename for record in ledger.backups] == [
        "new.tar.gz",
        "tie-a.tar.gz",
        "tie-b.tar.gz",
        "old.tar.gz",
    ]


def test_saved_ledger_uses_documented_fields(tmp_path):
    backup_dir = tmp_path / "demo"
    _seed(backup_dir, 2)

    text = (backup_dir / LEDGER_FILENAME).read_text(encoding="utf-8")
    assert text.startswith("project: demo\n")
    assert "filename: backup_01.tar.gz" in text
    assert "2024-05-01T12:01:00.000000+00:00" in text
    loaded = load_ledger(backup_dir / LEDGER_FILENAME)
    assert [record.filename for record in loaded.backups] == ["backup_01.tar.gz", "backup_00.tar.gz"]


def test_prune_within_limit_is_a_no_op(tmp_path):
    backup_dir = tmp_path / "demo"
    _seed(backup_dir, 3)
    ledger_path = backup_dir / LEDGER_FILENAME
    before = ledger_path.read_text(encoding="utf-8")

    outcome = prune_to_keep(ledger_path, 3)

    assert outcome == NoActionNeeded(count=3, keep=3)
    assert ledger_path.read_text(encoding="utf-8") == before
    assert len(list(backup_dir.glob("*.tar.gz"))) == 3


def test_prune_keeps_the_newest_records(tmp_path):
    backup_dir = tmp_path / "demo"
    _seed(backup_dir, 5)
    ledger_path = backup_dir / LEDGER_FILENAME

    outcome = prune_to_keep(ledger_path, 2)

    assert isinstance(outcome, Pruned)
    assert outcome.count == 3
    assert sorted(outcome.removed) == ["backup_00.tar.gz", "backup_01.tar.gz", "backup_02.tar.gz"]
    remaining = load_ledger(ledger_path)
    assert [record.filename for record in remaining.backups] == ["backup_04.tar.gz", "backup_03.tar.gz"]
    assert sorted(path.name for path in backup_dir.glob("*.tar.gz")) == ["backup_03.tar.gz", "backup_04.tar.gz"]


def test_prune_to_zero_removes_everything(tmp_path):
    backup_dir = tmp_path / "demo"
    _seed(backup_dir, 2)

    outcome = prune_to_keep(backup_dir / LEDGER_FILENAME, 0)

    assert outcome.count == 2
    assert load_ledger(backup_dir / LEDGER_FILENAME).backups == []
    assert list(backup_dir.glob("*.tar.gz")) == []


def test_prune_tolerates_missing_archives(tmp_path):
    backup_dir = tmp_path / "demo"
    _seed(backup_dir, 3)
    (backup_dir / "backup_00.tar.gz").unlink()

    outcome = prune_to_keep(backup_dir / LEDGER_FILENAME, 1)

    assert outcome.count == 2
    assert len(load_ledger(backup_dir / LEDGER_FILENAME).backups) == 1


def test_prune_hard_error_leaves_ledger_untouched(tmp_path, monkeypatch):
    backup_dir = tmp_path / "demo"
    _seed(backup_dir, 4)
    ledger_path = backup_dir / LEDGER_FILENAME
    before = ledger_path.read_text(encoding="utf-8")
    original_unlink = Path.unlink

    def guarded_unlink(self, missing_ok=False):
        if self.name == "backup_01.tar.gz":
            raise PermissionError("read-only")
        return original_unlink(self, missing_ok=missing_ok)

    monkeypatch.setattr(Path, "unlink", guarded_unlink)

    with pytest.raises(BackupPruneError):
        prune_to_keep(ledger_path, 1)

    assert ledger_path.read_text(encoding="utf-8") == before
    assert (backup_dir / "backup_01.tar.gz").exists()
