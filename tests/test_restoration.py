from __future__ import annotations

import os
from pathlib import Path

import pytest

from codebase_cleanup.core.backup import BackupManager
from codebase_cleanup.core.errors import NoBackupFoundError, RollbackNotConfirmedError
from codebase_cleanup.core.models import NOT_IN_MANIFEST, RestorationStatus
from codebase_cleanup.core.restoration import RestorationService, RestoreOptions

from conftest import CorruptCopyFileSystem, LowDiskFileSystem, ReadOnlyManifestFileSystem, results_for


def _write(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)


def _backed_up(root: Path, files: dict) -> RestorationService:
    for rel, content in files.items():
        _write(root / rel, content)
    manager = BackupManager(root)
    manager.create_backup(results_for(*files))
    return RestorationService(manager, root)


def test_restore_copies_back_and_records_restore(tmp_path: Path) -> None:
    service = _backed_up(tmp_path, {"src/old.php": "<?php // old\n"})

    result = service.restore_file("src/old.php")

    assert result.success
    assert result.status is RestorationStatus.RESTORED
    assert result.verification.success
    assert (tmp_path / "src/old.php").read_text() == "<?php // old\n"
    assert (tmp_path / "backup/moved-files/src/old.php").exists()

    reloaded = BackupManager(tmp_path).get_manifest()
    assert "src/old.php" in reloaded.restored_files
    assert "src/old.php" in reloaded.moved_files


def test_existing_target_is_backed_up_before_restore(tmp_path: Path) -> None:
    service = _backed_up(tmp_path, {"file.txt": "from backup"})
    _write(tmp_path / "file.txt", "newer local edit")

    result = service.restore_file("file.txt")

    assert result.success
    assert result.conflict_resolution.action == "backup_existing"
    assert (tmp_path / "file.txt").read_text() == "from backup"
    asides = list(tmp_path.glob("file.txt.conflict-backup.*"))
    assert len(asides) == 1
    assert asides[0].read_text() == "newer local edit"


def test_skip_strategy_leaves_existing_file(tmp_path: Path) -> None:
    service = _backed_up(tmp_path, {"file.txt": "from backup"})
    _write(tmp_path / "file.txt", "keep me")

    result = service.restore_file("file.txt", RestoreOptions(conflict_resolution="skip"))

    assert result.skipped
    assert not result.is_error
    assert (tmp_path / "file.txt").read_text() == "keep me"


def test_overwrite_strategy_replaces_existing_file(tmp_path: Path) -> None:
    service = _backed_up(tmp_path, {"file.txt": "from backup"})
    _write(tmp_path / "file.txt", "discard me")

    result = service.restore_file("file.txt", RestoreOptions(conflict_resolution="overwrite"))

    assert result.success
    assert (tmp_path / "file.txt").read_text() == "from backup"
    assert not list(tmp_path.glob("file.txt.conflict-backup.*"))


def test_compare_skips_identical_content(tmp_path: Path) -> None:
    service = _backed_up(tmp_path, {"file.txt": "same"})
    _write(tmp_path / "file.txt", "same")
    before = (tmp_path / "file.txt").stat().st_mtime_ns

    result = service.restore_file("file.txt", RestoreOptions(conflict_resolution="compare"))

    assert result.status is RestorationStatus.SKIPPED
    assert "identical" in result.message
    assert (tmp_path / "file.txt").stat().st_mtime_ns == before
    assert not list(tmp_path.glob("file.txt.conflict-backup.*"))


def test_compare_skips_newer_existing_file(tmp_path: Path) -> None:
    service = _backed_up(tmp_path, {"file.txt": "old"})
    _write(tmp_path / "file.txt", "edited later")
    backup_mtime = (tmp_path / "backup/moved-files/file.txt").stat().st_mtime
    os.utime(tmp_path / "file.txt", (backup_mtime + 60, backup_mtime + 60))

    result = service.restore_file("file.txt", RestoreOptions(conflict_resolution="compare"))

    assert result.skipped
    assert "newer" in result.message
    assert (tmp_path / "file.txt").read_text() == "edited later"


def test_compare_backs_up_older_differing_file(tmp_path: Path) -> None:
    service = _backed_up(tmp_path, {"file.txt": "backup version"})
    _write(tmp_path / "file.txt", "stale copy")
    backup_mtime = (tmp_path / "backup/moved-files/file.txt").stat().st_mtime
    os.utime(tmp_path / "file.txt", (backup_mtime - 60, backup_mtime - 60))

    result = service.restore_file("file.txt", RestoreOptions(conflict_resolution="compare"))

    assert result.success
    assert (tmp_path / "file.txt").read_text() == "backup version"
    assert len(list(tmp_path.glob("file.txt.conflict-backup.*"))) == 1


def test_file_not_in_manifest_is_skipped(tmp_path: Path) -> None:
    service = _backed_up(tmp_path, {"notes.md": "n"})

    result = service.restore_file("never-moved.php")

    assert result.status is RestorationStatus.SKIPPED
    assert result.message == NOT_IN_MANIFEST
    assert not result.is_error


def test_restore_without_manifest_fails(tmp_path: Path) -> None:
    service = RestorationService(BackupManager(tmp_path), tmp_path)

    result = service.restore_file("notes.md")

    assert result.is_error
    assert result.error == "No backup manifest found"


def test_failed_verification_leaves_no_file_behind(tmp_path: Path) -> None:
    _backed_up(tmp_path, {"notes.md": "original"})
    manager = BackupManager(tmp_path, fs=CorruptCopyFileSystem())
    service = RestorationService(manager, tmp_path)

    result = service.restore_file("notes.md")

    assert result.is_error
    assert "verification failed" in result.error
    assert not (tmp_path / "notes.md").exists()
    assert (tmp_path / "backup/moved-files/notes.md").read_text() == "original"
    assert "notes.md" not in manager.get_manifest().restored_files


def test_missing_backup_file_fails(tmp_path: Path) -> None:
    service = _backed_up(tmp_path, {"notes.md": "n"})
    (tmp_path / "backup/moved-files/notes.md").unlink()

    result = service.restore_file("notes.md")

    assert result.is_error
    assert "Backup file does not exist" in result.error


def test_move_method_drops_manifest_entry(tmp_path: Path) -> None:
    service = _backed_up(tmp_path, {"notes.md": "n", "legacy.bak": "b"})

    result = service.restore_file("notes.md", RestoreOptions(method="move"))

    assert result.success
    assert (tmp_path / "notes.md").read_text() == "n"
    assert not (tmp_path / "backup/moved-files/notes.md").exists()
    manifest = BackupManager(tmp_path).get_manifest()
    assert set(manifest.moved_files) == {"legacy.bak"}
    assert "notes.md" in manifest.restored_files


def test_symlink_method(tmp_path: Path) -> None:
    service = _backed_up(tmp_path, {"notes.md": "n"})

    result = service.restore_file("notes.md", RestoreOptions(method="symlink"))

    assert result.success
    assert (tmp_path / "notes.md").is_symlink()
    assert (tmp_path / "notes.md").read_text() == "n"


def test_unknown_options_are_rejected() -> None:
    with pytest.raises(ValueError):
        RestoreOptions(conflict_resolution="merge")
    with pytest.raises(ValueError):
        RestoreOptions(method="rsync")


def test_batch_counts_and_skips_do_not_count_as_errors(tmp_path: Path) -> None:
    service = _backed_up(tmp_path, {"a.md": "a", "b.md": "b"})
    (tmp_path / "backup/moved-files/b.md").unlink()

    batch = service.restore_files(["a.md", "unknown.md", "b.md"])

    assert batch.total_count == 3
    assert batch.success_count == 1
    assert batch.skipped_count == 1
    assert batch.error_count == 1
    assert set(batch.failed_files()) == {"b.md"}
    assert batch.skipped_files() == {"unknown.md": NOT_IN_MANIFEST}
    assert not batch.is_fully_successful()


def test_fail_fast_stops_at_first_failure(tmp_path: Path) -> None:
    service = _backed_up(tmp_path, {"a.md": "a", "b.md": "b", "c.md": "c"})
    (tmp_path / "backup/moved-files/a.md").unlink()

    batch = service.restore_files(["a.md", "b.md", "c.md"], RestoreOptions(fail_fast=True))

    assert list(batch.results) == ["a.md"]
    assert batch.error_count == 1
    assert batch.total_count == 3
    assert not (tmp_path / "b.md").exists()


def test_fail_fast_continues_past_skips(tmp_path: Path) -> None:
    service = _backed_up(tmp_path, {"a.md": "a"})

    batch = service.restore_files(["unknown.md", "a.md"], RestoreOptions(fail_fast=True))

    assert batch.skipped_count == 1
    assert batch.success_count == 1


def test_restore_directory_matches_whole_segments(tmp_path: Path) -> None:
    service = _backed_up(
        tmp_path,
        {"tests/FooTest.php": "t", "tests/unit/BarTest.php": "u", "tests-old/x.php": "x"},
    )

    batch = service.restore_directory("tests/")

    assert set(batch.results) == {"tests/FooTest.php", "tests/unit/BarTest.php"}
    assert batch.is_fully_successful()
    assert not (tmp_path / "tests-old/x.php").exists()


def test_restore_directory_with_no_matches(tmp_path: Path) -> None:
    service = _backed_up(tmp_path, {"notes.md": "n"})

    batch = service.restore_directory("docs")

    assert batch.total_count == 0
    assert batch.results == {}


def test_restore_directory_without_backup(tmp_path: Path) -> None:
    service = RestorationService(BackupManager(tmp_path), tmp_path)

    with pytest.raises(NoBackupFoundError):
        service.restore_directory("tests")


def test_rollback_requires_confirmation(tmp_path: Path) -> None:
    service = _backed_up(tmp_path, {"notes.md": "n"})

    with pytest.raises(RollbackNotConfirmedError):
        service.perform_complete_rollback()

    assert not (tmp_path / "notes.md").exists()
    assert (tmp_path / "backup/moved-files/notes.md").exists()


def test_confirmed_rollback_empties_the_store(tmp_path: Path) -> None:
    files = {"notes.md": "n", "legacy.bak": "b", "tests/FooTest.php": "t"}
    service = _backed_up(tmp_path, files)

    batch = service.perform_complete_rollback(RestoreOptions(confirm_rollback=True))

    assert batch.is_fully_successful()
    assert batch.success_count == 3
    for rel, content in files.items():
        assert (tmp_path / rel).read_text() == content
    assert not [p for p in (tmp_path / "backup/moved-files").rglob("*") if p.is_file()]
    manifest = BackupManager(tmp_path).get_manifest()
    assert manifest.moved_files == {}
    assert set(manifest.restored_files) == set(files)


def test_prerequisites_pass_after_clean_backup(tmp_path: Path) -> None:
    service = _backed_up(tmp_path, {"notes.md": "n"})

    assert service.validate_restoration_prerequisites() == []


def test_prerequisites_report_problems(tmp_path: Path) -> None:
    empty = RestorationService(BackupManager(tmp_path / "nothing"), tmp_path / "nothing")
    assert empty.validate_restoration_prerequisites() == ["No backup found"]

    _backed_up(tmp_path, {"notes.md": "note contents"})
    (tmp_path / "backup/moved-files/notes.md").unlink()
    manager = BackupManager(tmp_path, fs=LowDiskFileSystem(free_bytes=0))
    issues = RestorationService(manager, tmp_path).validate_restoration_prerequisites()

    assert "Backup file missing: moved-files/notes.md" in issues
    assert any(issue.startswith("Insufficient disk space for restoration") for issue in issues)


def test_prerequisites_report_corrupt_manifest(tmp_path: Path) -> None:
    _write(tmp_path / "backup/manifest.json", "[]")
    service = RestorationService(BackupManager(tmp_path), tmp_path)

    issues = service.validate_restoration_prerequisites()

    assert len(issues) == 1
    assert "corrupt" in issues[0]


def test_preview_does_not_touch_disk(tmp_path: Path) -> None:
    service = _backed_up(tmp_path, {"notes.md": "n", "legacy.bak": "b"})
    _write(tmp_path / "legacy.bak", "recreated")

    preview = service.get_restoration_preview(["notes.md", "legacy.bak", "other.php"])

    assert preview["notes.md"]["has_backup"]
    assert not preview["notes.md"]["will_conflict"]
    assert preview["legacy.bak"]["will_conflict"]
    assert preview["legacy.bak"]["analysis_result"]["category"] == "non-essential"
    assert preview["other.php"] == {
        "has_backup": False,
        "backup_path": None,
        "original_exists": False,
        "will_conflict": False,
        "analysis_result": None,
    }
    assert not (tmp_path / "notes.md").exists()


def test_unwritable_manifest_does_not_abort_a_rollback(tmp_path: Path) -> None:
    files = {"notes.md": "n", "legacy.bak": "b", "tests/FooTest.php": "t"}
    _backed_up(tmp_path, files)
    manager = BackupManager(tmp_path, fs=ReadOnlyManifestFileSystem())
    service = RestorationService(manager, tmp_path)

    batch = service.perform_complete_rollback(RestoreOptions(confirm_rollback=True))

    assert batch.success_count == 3
    assert batch.error_count == 0
    for rel, content in files.items():
        assert (tmp_path / rel).read_text() == content
    assert set(batch.warnings()) == set(files)
    assert all(w.startswith("Manifest not updated") for w in batch.warnings().values())


def test_repeated_conflicts_keep_every_aside_copy(tmp_path: Path) -> None:
    service = _backed_up(tmp_path, {"file.txt": "from backup"})
    backup = tmp_path / "backup/moved-files/file.txt"

    _write(tmp_path / "file.txt", "first edit")
    first = service.resolve_conflict(tmp_path / "file.txt", backup, "backup_existing")
    _write(tmp_path / "file.txt", "second edit")
    second = service.resolve_conflict(tmp_path / "file.txt", backup, "backup_existing")

    assert first.backup_path != second.backup_path
    asides = sorted(p.read_text() for p in tmp_path.glob("file.txt.conflict-backup.*"))
    assert asides == ["first edit", "second edit"]
