"""
Covers:
  - settings: JSON file, overrides, unknown keys, default secondary ledger
  - workflows: organize, single archive, archive folder, parent archive, merge
  - temporary folders removed when an archive fails to extract
  - CLI: dry run by default, --execute, exit status on fatal errors
"""
import json
import tempfile
from pathlib import Path

import pytest

from conftest import write_file, write_ledger, write_zip
from order_organizer import workflows
from order_organizer.cli import main
from order_organizer.config import ColumnNames, Settings, load_settings
from order_organizer.exceptions import (ArchiveNotFound, ConfigurationError, LedgerNotFound,
                                        PathTraversal, SourceRootNotFound)
from order_organizer.urgency import resolve_zone, today_in


# ═══════════════════════════════════════════════════════════════════════════
# Settings
# ═══════════════════════════════════════════════════════════════════════════

def test_load_settings_defaults():
    s = load_settings()
    assert s.dry_run is True
    assert s.overwrite_existing is True
    assert s.sheet_index == 0
    assert s.columns == ColumnNames("WORDER", "OTYPE", "DUEDATE")
    assert s.timezone == "America/Sao_Paulo"


def test_load_settings_file_and_overrides(tmp_path):
    cfg = tmp_path / "settings.json"
    cfg.write_text(json.dumps({
        "ledger_path": str(tmp_path / "l.xlsx"),
        "source_root": str(tmp_path / "in"),
        "dry_run": False,
        "columns": {"order_id": "Numero", "order_type": "Tipo"},
    }), encoding="utf-8")

    s = load_settings(cfg, source_root=str(tmp_path / "other"), dry_run=None,
                      due_date_column="Data")

    assert s.ledger_path == tmp_path / "l.xlsx"
    assert s.source_root == tmp_path / "other"
    assert s.dry_run is False
    assert s.columns == ColumnNames("Numero", "Tipo", "Data")
    assert s.normalized_ledger_path == tmp_path / "l-normalized.xlsx"


@pytest.mark.parametrize("content", ['{"bogus": 1}', '{"columns": {"bogus": "x"}}',
                                     "not json", "[1, 2]"])
def test_load_settings_rejects_bad_files(tmp_path, content):
    cfg = tmp_path / "settings.json"
    cfg.write_text(content, encoding="utf-8")
    with pytest.raises(ConfigurationError):
        load_settings(cfg)


def test_load_settings_missing_file(tmp_path):
    with pytest.raises(ConfigurationError):
        load_settings(tmp_path / "nope.json")


def test_require():
    with pytest.raises(ConfigurationError, match="dest_root"):
        Settings(ledger_path="x.xlsx").require("ledger_path", "dest_root")


# ═══════════════════════════════════════════════════════════════════════════
# Workflows
# ═══════════════════════════════════════════════════════════════════════════

def _settings(tmp_path, rows, **kw):
    ledger = write_ledger(tmp_path / "ledger.xlsx", rows)
    return Settings(ledger_path=ledger, source_root=tmp_path / "src", dest_root=tmp_path / "dest",
                    dry_run=False, **kw)


def test_organize_today_due(tmp_path):
    today = today_in(resolve_zone("America/Sao_Paulo"))
    s = _settings(tmp_path, [["350394452", "A", today.strftime("%m/%d/%Y")]],
                  report_path=tmp_path / "report.json")
    write_file(s.source_root / "350394452" / "f.txt", "x")

    workflows.organize(s)

    assert (s.dest_root / "A" / "350394452 A DUE_TODAY" / "f.txt").read_text() == "x"
    assert not (s.source_root / "350394452").exists()
    data = json.loads((tmp_path / "report.json").read_text(encoding="utf-8"))
    assert data["changes"][0]["action"] == "move_order"


def test_organize_validates_before_mutating(tmp_path):
    s = _settings(tmp_path, [])
    with pytest.raises(SourceRootNotFound):
        workflows.organize(s)
    assert not s.dest_root.exists()

    s.source_root.mkdir()
    s.ledger_path = tmp_path / "missing.xlsx"
    with pytest.raises(LedgerNotFound):
        workflows.organize(s)


def test_organize_archive(tmp_path):
    s = _settings(tmp_path, [["100", "A", ""]])
    zp = write_zip(tmp_path / "zips" / "0828-Geovane.zip", {"100/f.txt": "f", "200/g.txt": "g"})

    workflows.organize_archive(s, zp)

    assert (s.dest_root / "A" / "100 A NO_DATE" / "f.txt").exists()
    assert (tmp_path / "zips" / "0828-Geovane" / "unlisted" / "200" / "g.txt").exists()


def test_organize_archive_missing(tmp_path):
    s = _settings(tmp_path, [])
    with pytest.raises(ArchiveNotFound):
        workflows.organize_archive(s, tmp_path / "nope.zip")


def test_organize_archive_folder(tmp_path):
    s = _settings(tmp_path, [["100", "A", ""], ["200", "B", ""]],
                  archive_folder=tmp_path / "zips")
    write_zip(s.archive_folder / "0828-Geovane.zip", {"100/f.txt": "f"})
    write_zip(s.archive_folder / "0829-Maria.zip", {"0829-Maria/200/g.txt": "g"})

    report = workflows.organize_archive_folder(s)

    assert (s.dest_root / "A" / "100 A NO_DATE" / "f.txt").exists()
    assert (s.dest_root / "B" / "200 B NO_DATE" / "g.txt").exists()
    assert report.count("extract_archive") == 2


def test_organize_archive_folder_dry_run(tmp_path):
    s = _settings(tmp_path, [["100", "A", ""]], archive_folder=tmp_path / "zips")
    s.dry_run = True
    write_zip(s.archive_folder / "a.zip", {"100/f.txt": "f"})

    report = workflows.organize_archive_folder(s)

    assert sorted(p.name for p in s.archive_folder.iterdir()) == ["a.zip"]
    assert not s.dest_root.exists()
    assert report.count("move_order", "planned") == 1


@pytest.fixture
def temp_root(tmp_path, monkeypatch):
    root = tmp_path / "tmp"
    root.mkdir()
    monkeypatch.setattr(tempfile, "tempdir", str(root))
    return root


def test_organize_parent_archive_failure_leaves_no_temp(tmp_path, temp_root):
    inner = write_zip(tmp_path / "b" / "0828-Geovane.zip", {"../../evil": "bad"})
    parent = write_zip(tmp_path / "pai.zip", {"0828-Geovane.zip": inner.read_bytes()})
    s = _settings(tmp_path, [["350394452", "A", ""]], parent_archive=parent,
                  all_orders_root=tmp_path / "todas")

    with pytest.raises(PathTraversal):
        workflows.organize_parent_archive(s)

    assert list(temp_root.iterdir()) == []


def test_organize_archive_folder_failure_leaves_no_preview(tmp_path, temp_root):
    s = _settings(tmp_path, [["100", "A", ""]], archive_folder=tmp_path / "zips")
    s.dry_run = True
    write_zip(s.archive_folder / "a.zip", {"100/f.txt": "f"})
    write_zip(s.archive_folder / "b.zip", {"../../evil": "bad"})

    with pytest.raises(PathTraversal):
        workflows.organize_archive_folder(s)

    assert list(temp_root.iterdir()) == []


def test_organize_parent_archive(tmp_path, parent_zip):
    s = _settings(tmp_path, [["350394452", "A", ""]], parent_archive=parent_zip,
                  all_orders_root=tmp_path / "todas")

    report = workflows.organize_parent_archive(s)

    a = s.dest_root / "Geovane" / "0828-Geovane" / "350394452 A NO_DATE" / "data.txt"
    b = s.all_orders_root / "A" / "350394452 A NO_DATE" / "data.txt"
    assert a.read_text() == b.read_text() == "dados"
    for d in report.temp_dirs:
        assert not Path(d).exists()


def test_merge_secondary_ledger_uses_inspector_tree(tmp_path):
    ledger = write_ledger(tmp_path / "plan.xlsx", [
        ["789", "TipoX", "2024-01-01", "Joao", "Rua A", "Sao Paulo", "12345"],
    ])
    dest = tmp_path / "dest"
    (dest / "Geovane" / "0828-Geovane" / "789 TipoX NO_DATE").mkdir(parents=True)
    s = Settings(ledger_path=ledger, dest_root=dest, dry_run=False)

    report = workflows.merge_secondary_ledger(s)

    assert (tmp_path / "plan-normalized.xlsx").exists()
    assert "inspector=Geovane" in report.changes[0].reason


# ═══════════════════════════════════════════════════════════════════════════
# CLI
# ═══════════════════════════════════════════════════════════════════════════

def test_cli_dry_run_by_default(tmp_path, capsys):
    ledger = write_ledger(tmp_path / "ledger.xlsx", [["100", "A", ""]])
    write_file(tmp_path / "src" / "100" / "f.txt")

    code = main(["organize", "--ledger", str(ledger), "--source", str(tmp_path / "src"),
                 "--dest", str(tmp_path / "dest")])

    assert code == 0
    assert (tmp_path / "src" / "100" / "f.txt").exists()
    assert "DRY RUN complete" in capsys.readouterr().out


def test_cli_execute(tmp_path):
    ledger = write_ledger(tmp_path / "ledger.xlsx", [["100", "A", ""]])
    write_file(tmp_path / "src" / "100" / "f.txt")

    code = main(["organize", "--ledger", str(ledger), "--source", str(tmp_path / "src"),
                 "--dest", str(tmp_path / "dest"), "--execute"])

    assert code == 0
    assert (tmp_path / "dest" / "A" / "100 A NO_DATE" / "f.txt").exists()


def test_cli_fatal_error_exit_status(tmp_path, capsys):
    code = main(["organize", "--ledger", str(tmp_path / "nope.xlsx"),
                 "--source", str(tmp_path), "--dest", str(tmp_path / "dest")])
    assert code == 1
    assert "ERROR:" in capsys.readouterr().err


def test_cli_missing_setting(capsys):
    assert main(["merge-ledger"]) == 1
    assert "ledger_path" in capsys.readouterr().err
