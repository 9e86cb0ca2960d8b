import io
from pathlib import Path

import pytest

import reposhelf

CONFIG = """\
version: "1"
projects:
  - name: p
    repo: https://example.com/p.git
    branch: main
    backup_paths: [".env"]
  - name: q
    repo: https://example.com/q.git
    branch: main
    backup_paths: [".env"]
    backup_retention: 1
"""


@pytest.fixture()
def env(tmp_path, monkeypatch):
    config = tmp_path / "config.yml"
    config.write_text(CONFIG, encoding="utf-8")
    work = tmp_path / "work"
    work.mkdir()
    (work / ".env").write_text("KEY=1\n", encoding="utf-8")
    monkeypatch.chdir(work)
    store = tmp_path / "store"
    return ["--config", str(config), "--store", str(store)], work, store


def _run(args):
    out = io.StringIO()
    code = reposhelf.main(args, out=out)
    return code, out.getvalue()


def test_backup_restore_and_list(env):
    base, work, store = env

    code, output = _run(base + ["backup", "-p", "p"])
    assert code == 0
    assert "Backed up 1 path(s)" in output
    assert len(list((store / "p").glob("backup_*.tar.gz"))) == 1

    (work / ".env").write_text("KEY=2\n", encoding="utf-8")
    code, output = _run(base + ["restore", "-p", "p", "-f"])
    assert code == 0
    assert "Restored 1 file(s)" in output
    assert (work / ".env").read_text(encoding="utf-8") == "KEY=1\n"

    code, output = _run(base + ["list", "-p", "p"])
    assert code == 0
    assert "1. backup_" in output

    code, output = _run(base + ["list"])
    assert code == 0
    assert "Total: 2 project(s)" in output


def test_prune_flag_validation(env, capsys):
    base, _, _ = env

    assert _run(base + ["prune", "-p", "p", "--all"])[0] == 1
    assert "cannot be used together" in capsys.readouterr().err

    assert _run(base + ["prune"])[0] == 1
    assert "--project or --all" in capsys.readouterr().err

    assert _run(base + ["prune", "-p", "p", "-k", "-1"])[0] == 1
    assert "zero or positive" in capsys.readouterr().err


def test_prune_without_retention_warns_and_succeeds(env, capsys):
    base, _, store = env
    _run(base + ["backup", "-p", "p"])
    _run(base + ["backup", "-p", "p"])

    code, _ = _run(base + ["prune", "-p", "p"])

    assert code == 0
    assert "no backup_retention" in capsys.readouterr().err
    assert len(list((store / "p").glob("*.tar.gz"))) == 2


def test_prune_all_reports_failures_after_processing_everything(env, capsys):
    base, _, store = env
    _run(base + ["backup", "-p", "p"])
    _run(base + ["backup", "-p", "p"])

    code, output = _run(base + ["prune", "--all", "-k", "1"])

    assert code == 1
    assert "p: deleted 1 backup(s)" in output
    assert "q: error" in output
    assert "prune failed for 1 project(s)" in capsys.readouterr().err
    assert len(list((store / "p").glob("*.tar.gz"))) == 1


def test_unknown_project_and_missing_config(env, tmp_path, capsys):
    base, _, _ = env

    assert _run(base + ["backup", "-p", "ghost"])[0] == 1
    assert "ghost" in capsys.readouterr().err

    assert _run(["--config", str(tmp_path / "none.yml"), "list"])[0] == 1
    assert "configuration file not found" in capsys.readouterr().err


def test_restore_out_of_range(env, capsys):
    base, _, _ = env
    _run(base + ["backup", "-p", "p"])

    assert _run(base + ["restore", "-p", "p", "-b", "2", "-f"])[0] == 1
    assert "between 1 and 1" in capsys.readouterr().err


def test_store_that_is_a_regular_file_is_reported(env, tmp_path, capsys):
    base, _, _ = env
    blocker = tmp_path / "store-file"
    blocker.write_text("not a directory\n", encoding="utf-8")
    args = base[:2] + ["--store", str(blocker)]

    code, _ = _run(args + ["list"])

    assert code == 1
    err = capsys.readouterr().err
    assert err.startswith("Error:")
    assert "Traceback" not in err
