from __future__ import annotations

import json
from pathlib import Path

import pytest

from codebase_cleanup.core.backup import BackupManager
from codebase_cleanup.core.errors import FileMoveError, InsufficientDiskSpaceError, ManifestError
from codebase_cleanup.core.logger import read_move_log
from codebase_cleanup.core.models import Category
from codebase_cleanup.core.restoration import RestorationService

from conftest import (
    CorruptCopyFileSystem,
    FailingCopyFileSystem,
    LowDiskFileSystem,
    ReadOnlyManifestFileSystem,
    make_result,
    results_for,
)


def _write(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)


def test_moves_candidates_and_persists_artifacts(tmp_path: Path) -> None:
    _write(tmp_path / "notes.md", "notes")
    _write(tmp_path / "tests/FooTest.php", "<?php\n")
    _write(tmp_path / "src/App.php", "<?php\n")
    results = results_for("notes.md", "tests/FooTest.php")
    results["src/App.php"] = make_result("src/App.php", Category.ESSENTIAL)

    manager = BackupManager(tmp_path)
    manifest = manager.create_backup(results)

    assert manifest.moved_files == {
        "notes.md": "moved-files/notes.md",
        "tests/FooTest.php": "moved-files/tests/FooTest.php",
    }
    for original, backup in manifest.moved_files.items():
        assert not (tmp_path / original).exists()
        assert (tmp_path / "backup" / backup).exists()
    assert (tmp_path / "src/App.php").exists()

    assert (tmp_path / "backup/manifest.json").exists()
    assert (tmp_path / "backup/reports/backup-report.md").exists()
    assert manager.move_log_path == tmp_path / "backup/reports/move-log.csv"
    assert read_move_log(manager.move_log_path)["status"].tolist() == ["success", "success"]

    saved = json.loads((tmp_path / "backup/manifest.json").read_text())
    assert saved["moved_files"] == manifest.moved_files
    assert set(saved["analysis_results"]) == {"notes.md", "tests/FooTest.php", "src/App.php"}


def test_insufficient_disk_space_moves_nothing(tmp_path: Path) -> None:
    _write(tmp_path / "notes.md", "x" * 100)
    manager = BackupManager(tmp_path, fs=LowDiskFileSystem(free_bytes=119))

    with pytest.raises(InsufficientDiskSpaceError) as excinfo:
        manager.create_backup(results_for("notes.md"))

    assert excinfo.value.available == 119
    assert excinfo.value.required > excinfo.value.available
    assert (tmp_path / "notes.md").exists()
    assert not (tmp_path / "backup").exists()


def test_dry_run_does_not_touch_disk(tmp_path: Path) -> None:
    _write(tmp_path / "notes.md", "notes")

    manifest = BackupManager(tmp_path).create_backup(results_for("notes.md"), dry_run=True)

    assert manifest.statistics["planned_move_count"] == 1
    assert manifest.moved_files == {}
    assert (tmp_path / "notes.md").exists()
    assert not (tmp_path / "backup").exists()


def test_no_candidates_returns_empty_manifest(tmp_path: Path) -> None:
    _write(tmp_path / "src/App.php", "<?php\n")

    manifest = BackupManager(tmp_path).create_backup(
        {"src/App.php": make_result("src/App.php", Category.ESSENTIAL)}
    )

    assert manifest.moved_files == {}
    assert manifest.analysis_results == {}
    assert not (tmp_path / "backup").exists()


def test_per_file_failures_do_not_abort_the_batch(tmp_path: Path) -> None:
    _write(tmp_path / "a.md", "a")
    _write(tmp_path / "c.md", "c")
    progress = []

    manager = BackupManager(tmp_path)
    manifest = manager.create_backup(
        results_for("a.md", "b.md", "c.md"),
        progress=lambda done, total, path: progress.append((done, total)),
    )

    assert set(manifest.moved_files) == {"a.md", "c.md"}
    assert "Source file does not exist" in manifest.errors["b.md"]
    assert manifest.statistics["error_count"] == 1
    assert progress == [(1, 3), (2, 3), (3, 3)]
    statuses = read_move_log(manager.move_log_path)["status"].tolist()
    assert statuses[1].startswith("failed:")


def test_occupied_backup_destination_is_not_overwritten(tmp_path: Path) -> None:
    _write(tmp_path / "notes.md", "new")
    _write(tmp_path / "backup/moved-files/notes.md", "earlier run")

    with pytest.raises(FileMoveError):
        BackupManager(tmp_path).move_file_to_backup("notes.md")

    assert (tmp_path / "backup/moved-files/notes.md").read_text() == "earlier run"
    assert (tmp_path / "notes.md").read_text() == "new"


def test_custom_backup_dir(tmp_path: Path) -> None:
    _write(tmp_path / "notes.md", "notes")

    manager = BackupManager(tmp_path, backup_dir="archive")
    manager.create_backup(results_for("notes.md"))

    assert (tmp_path / "archive/moved-files/notes.md").exists()
    assert manager.has_backup()


def test_buffer_below_one_is_rejected(tmp_path: Path) -> None:
    with pytest.raises(ValueError):
        BackupManager(tmp_path, disk_space_buffer=0.9)


def test_manifest_is_loaded_from_disk(tmp_path: Path) -> None:
    _write(tmp_path / "notes.md", "notes")
    BackupManager(tmp_path).create_backup(results_for("notes.md"))

    fresh = BackupManager(tmp_path)

    assert fresh.has_backup()
    assert fresh.get_manifest().moved_files == {"notes.md": "moved-files/notes.md"}
    assert fresh.get_backup_statistics()["moved_count"] == 1


def test_missing_manifest(tmp_path: Path) -> None:
    manager = BackupManager(tmp_path)
    assert not manager.has_backup()
    assert manager.get_manifest() is None
    assert manager.get_backup_statistics() == {}


def test_corrupt_manifest_raises(tmp_path: Path) -> None:
    _write(tmp_path / "backup/manifest.json", "{truncated")

    with pytest.raises(ManifestError):
        BackupManager(tmp_path).get_manifest()


@pytest.mark.parametrize(
    "payload",
    [
        {"moved_files": ["a.php"]},
        {"analysis_results": ["x"]},
        {"errors": "disk full"},
        {"statistics": [1, 2]},
    ],
)
def test_wrongly_shaped_manifest_raises(tmp_path: Path, payload: dict) -> None:
    _write(tmp_path / "backup/manifest.json", json.dumps(payload))

    with pytest.raises(ManifestError, match="corrupt"):
        BackupManager(tmp_path).get_manifest()


def test_wrongly_shaped_manifest_is_a_prerequisite_issue(tmp_path: Path) -> None:
    _write(tmp_path / "backup/manifest.json", json.dumps({"analysis_results": ["x"]}))
    manager = BackupManager(tmp_path)

    issues = RestorationService(manager, tmp_path).validate_restoration_prerequisites()

    assert len(issues) == 1
    assert "corrupt" in issues[0]


def test_restore_file_copies_back_and_keeps_backup(tmp_path: Path) -> None:
    _write(tmp_path / "notes.md", "original")
    manager = BackupManager(tmp_path)
    manager.create_backup(results_for("notes.md"))
    _write(tmp_path / "notes.md", "someone recreated it")

    assert manager.restore_file("moved-files/notes.md", "notes.md")

    assert (tmp_path / "notes.md").read_text() == "original"
    assert (tmp_path / "backup/moved-files/notes.md").exists()
    conflicts = list(tmp_path.glob("notes.md.conflict.*"))
    assert len(conflicts) == 1
    assert conflicts[0].read_text() == "someone recreated it"


def test_restore_file_rejects_corrupt_copy(tmp_path: Path) -> None:
    _write(tmp_path / "notes.md", "original")
    BackupManager(tmp_path).create_backup(results_for("notes.md"))

    manager = BackupManager(tmp_path, fs=CorruptCopyFileSystem())

    assert not manager.restore_file("moved-files/notes.md", "notes.md")
    assert not (tmp_path / "notes.md").exists()


def test_restore_all_and_restore_files(tmp_path: Path) -> None:
    _write(tmp_path / "a.md", "a")
    _write(tmp_path / "b.md", "b")
    manager = BackupManager(tmp_path)
    manager.create_backup(results_for("a.md", "b.md"))

    assert manager.restore_files(["a.md", "unknown.md"]) == {"a.md": True, "unknown.md": False}
    assert manager.restore_all()
    assert (tmp_path / "b.md").read_text() == "b"


def test_second_backup_keeps_earlier_files_restorable(tmp_path: Path) -> None:
    _write(tmp_path / "first.bak", "one")
    BackupManager(tmp_path).create_backup(results_for("first.bak"))
    _write(tmp_path / "second.bak", "two")

    manifest = BackupManager(tmp_path).create_backup(results_for("second.bak"))

    assert manifest.moved_files == {
        "first.bak": "moved-files/first.bak",
        "second.bak": "moved-files/second.bak",
    }
    assert manifest.statistics["planned_move_count"] == 2
    assert manifest.statistics["success_rate"] == 100.0

    result = RestorationService(BackupManager(tmp_path), tmp_path).restore_file("first.bak")

    assert result.success
    assert (tmp_path / "first.bak").read_text() == "one"


def test_second_backup_skips_files_already_in_the_store(tmp_path: Path) -> None:
    _write(tmp_path / "notes.md", "notes")
    manager = BackupManager(tmp_path)
    manager.create_backup(results_for("notes.md"))
    assert manager.restore_file("moved-files/notes.md", "notes.md")

    manifest = BackupManager(tmp_path).create_backup(results_for("notes.md"))

    assert manifest.moved_files == {"notes.md": "moved-files/notes.md"}
    assert manifest.errors == {}
    assert (tmp_path / "notes.md").exists()
    assert (tmp_path / "backup/moved-files/notes.md").read_text() == "notes"


def test_corrupt_earlier_manifest_blocks_a_new_backup(tmp_path: Path) -> None:
    _write(tmp_path / "notes.md", "notes")
    _write(tmp_path / "backup/manifest.json", "{truncated")

    with pytest.raises(ManifestError):
        BackupManager(tmp_path).create_backup(results_for("notes.md"))

    assert (tmp_path / "notes.md").exists()
    assert (tmp_path / "backup/manifest.json").read_text() == "{truncated"


def test_failed_verification_puts_the_existing_file_back(tmp_path: Path) -> None:
    _write(tmp_path / "notes.md", "original")
    BackupManager(tmp_path).create_backup(results_for("notes.md"))
    _write(tmp_path / "notes.md", "local edit")

    manager = BackupManager(tmp_path, fs=CorruptCopyFileSystem())

    assert not manager.restore_file("moved-files/notes.md", "notes.md")
    assert (tmp_path / "notes.md").read_text() == "local edit"
    assert not list(tmp_path.glob("notes.md.conflict.*"))


def test_failed_copy_puts_the_existing_file_back(tmp_path: Path) -> None:
    _write(tmp_path / "notes.md", "original")
    BackupManager(tmp_path).create_backup(results_for("notes.md"))
    _write(tmp_path / "notes.md", "local edit")

    manager = BackupManager(tmp_path, fs=FailingCopyFileSystem())

    assert not manager.restore_file("moved-files/notes.md", "notes.md")
    assert (tmp_path / "notes.md").read_text() == "local edit"
    assert not list(tmp_path.glob("notes.md.conflict.*"))


def test_restore_all_records_restores_in_the_manifest(tmp_path: Path) -> None:
    _write(tmp_path / "a.md", "a")
    _write(tmp_path / "b.md", "b")
    BackupManager(tmp_path).create_backup(results_for("a.md", "b.md"))

    assert BackupManager(tmp_path).restore_all()

    manager = BackupManager(tmp_path)
    assert set(manager.get_manifest().restored_files) == {"a.md", "b.md"}
    assert RestorationService(manager, tmp_path).validate_restoration_prerequisites() == []


def test_restore_files_survives_an_unwritable_manifest(tmp_path: Path) -> None:
    _write(tmp_path / "a.md", "a")
    BackupManager(tmp_path).create_backup(results_for("a.md"))

    manager = BackupManager(tmp_path, fs=ReadOnlyManifestFileSystem())

    assert manager.restore_files(["a.md"]) == {"a.md": True}
    assert (tmp_path / "a.md").read_text() == "a"
