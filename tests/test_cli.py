from __future__ import annotations

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from codebase_cleanup import __version__
from codebase_cleanup.cli import app
from codebase_cleanup.utils.env import (
    BACKUP_DIR_ENV_VAR,
    DISK_BUFFER_ENV_VAR,
    EXCLUDE_ENV_VAR,
    LOG_FILE_ENV_VAR,
)

runner = CliRunner()

CANDIDATES = {"debug_payment.php", "legacy.bak", "notes.md", "tests/FooTest.php"}


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (BACKUP_DIR_ENV_VAR, DISK_BUFFER_ENV_VAR, EXCLUDE_ENV_VAR, LOG_FILE_ENV_VAR):
        monkeypatch.delenv(name, raising=False)


def _moved(root: Path) -> dict:
    return json.loads((root / "backup/manifest.json").read_text())["moved_files"]


def test_version() -> None:
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert f"codebase-cleanup {__version__}" in result.output


def test_clean_missing_path_exits_with_error(tmp_path: Path) -> None:
    result = runner.invoke(app, ["clean", str(tmp_path / "missing")])
    assert result.exit_code == 1
    assert "Path not found" in result.output


def test_clean_empty_directory(tmp_path: Path) -> None:
    result = runner.invoke(app, ["clean", str(tmp_path)])
    assert result.exit_code == 0
    assert "No analyzable files" in result.output


def test_clean_dry_run_moves_nothing(php_project: Path) -> None:
    result = runner.invoke(app, ["clean", str(php_project), "--dry-run"])

    assert result.exit_code == 0, result.output
    assert "4 files would be moved" in result.output
    assert (php_project / "notes.md").exists()
    assert not (php_project / "backup").exists()


def test_clean_declined_moves_nothing(php_project: Path) -> None:
    result = runner.invoke(app, ["clean", str(php_project)], input="n\n")

    assert result.exit_code == 0
    assert "No changes applied" in result.output
    assert not (php_project / "backup").exists()


def test_clean_confirmed_moves_candidates(php_project: Path) -> None:
    result = runner.invoke(app, ["clean", str(php_project)], input="y\n")

    assert result.exit_code == 0, result.output
    assert "Moved 4 files" in result.output
    assert set(_moved(php_project)) == CANDIDATES
    for rel in CANDIDATES:
        assert not (php_project / rel).exists()
        assert (php_project / "backup/moved-files" / rel).exists()
    assert (php_project / "src/Domain/Pet/Pet.php").exists()
    assert (php_project / "public/assets/css/app.css").exists()
    assert (php_project / "backup/reports/move-log.csv").exists()


def test_clean_honours_backup_dir_option(php_project: Path) -> None:
    result = runner.invoke(app, ["clean", str(php_project), "--backup-dir", "archive"], input="y\n")

    assert result.exit_code == 0, result.output
    assert (php_project / "archive/moved-files/notes.md").exists()
    assert not (php_project / "backup").exists()


def test_clean_rejects_invalid_configuration(php_project: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv(DISK_BUFFER_ENV_VAR, "0.5")

    result = runner.invoke(app, ["clean", str(php_project), "--dry-run"])

    assert result.exit_code == 1
    assert "Invalid configuration" in result.output


def test_restore_without_backup(tmp_path: Path) -> None:
    result = runner.invoke(app, ["restore", str(tmp_path)])
    assert result.exit_code == 1
    assert "No backup found" in result.output


def test_restore_lists_backup_contents(php_project: Path) -> None:
    runner.invoke(app, ["clean", str(php_project)], input="y\n")

    result = runner.invoke(app, ["restore", str(php_project)])

    assert result.exit_code == 0, result.output
    assert "Files in backup: 4" in result.output
    assert "notes.md" in result.output
    assert "--all" in result.output


def test_restore_single_file(php_project: Path) -> None:
    runner.invoke(app, ["clean", str(php_project)], input="y\n")

    result = runner.invoke(app, ["restore", str(php_project), "--file", "notes.md"])

    assert result.exit_code == 0, result.output
    assert (php_project / "notes.md").read_text() == "# scratch notes\n"
    assert (php_project / "backup/moved-files/notes.md").exists()


def test_restore_unknown_file_is_skipped(php_project: Path) -> None:
    runner.invoke(app, ["clean", str(php_project)], input="y\n")

    result = runner.invoke(app, ["restore", str(php_project), "--file", "src/Nope.php"])

    assert result.exit_code == 0
    assert "skipped" in result.output


def test_restore_directory(php_project: Path) -> None:
    runner.invoke(app, ["clean", str(php_project)], input="y\n")

    result = runner.invoke(app, ["restore", str(php_project), "--directory", "tests"])

    assert result.exit_code == 0, result.output
    assert "Restored 1 of 1 files" in result.output
    assert (php_project / "tests/FooTest.php").exists()
    assert not (php_project / "notes.md").exists()


def test_restore_all_requires_confirmation(php_project: Path) -> None:
    runner.invoke(app, ["clean", str(php_project)], input="y\n")

    result = runner.invoke(app, ["restore", str(php_project), "--all"], input="n\n")

    assert result.exit_code == 0
    assert "Rollback cancelled" in result.output
    assert set(_moved(php_project)) == CANDIDATES


def test_restore_all_rolls_everything_back(php_project: Path) -> None:
    runner.invoke(app, ["clean", str(php_project)], input="y\n")

    result = runner.invoke(app, ["restore", str(php_project), "--all"], input="y\n")

    assert result.exit_code == 0, result.output
    assert "Restored 4 of 4 files" in result.output
    for rel in CANDIDATES:
        assert (php_project / rel).exists()
    assert _moved(php_project) == {}
