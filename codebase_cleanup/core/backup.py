"""
Backup manager for the codebase cleanup tool.

Responsibilities:
- Take the reconciled classification map and move every candidate
  (NON_ESSENTIAL) into ``<project>/<backup_dir>/moved-files/<rel path>``.
- Refuse to start when the backup volume cannot hold the candidates plus a
  safety buffer (InsufficientDiskSpaceError, raised before any mutation).
- Move each file with a single same-filesystem rename and verify it:
  destination present, source gone. A failed file is recorded in
  ``manifest.errors`` and the batch continues.
- Persist the manifest (manifest.json), a Markdown report and a CSV move
  log under ``reports/``. A later run merges into the existing manifest
  instead of replacing it.
- Provide basic restore primitives (copy back with sha256 verification);
  RestorationService builds the conflict-aware restore on top of these.

Layout of the backup store:

    <backup_dir>/
        manifest.json
        moved-files/<original relative paths>
        reports/backup-report.md
        reports/move-log.csv
"""

from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional

from .errors import (
    BackupError,
    FileMoveError,
    InsufficientDiskSpaceError,
    ManifestError,
)
from .fs import LocalFileSystem, format_bytes
from .logger import write_move_log
from .manifest import (
    MANIFEST_FILENAME,
    MOVED_FILES_DIR,
    REPORT_FILENAME,
    REPORTS_DIR,
    BackupManifest,
)
from .models import FileAnalysisResult, MoveRecord, ProgressCallback

logger = logging.getLogger(__name__)

DEFAULT_DISK_SPACE_BUFFER = 1.2


class BackupManager:
    """Moves candidates into the backup store and restores them back."""

    def __init__(
        self,
        project_root: Path,
        backup_dir: str = "backup",
        fs: Optional[LocalFileSystem] = None,
        disk_space_buffer: float = DEFAULT_DISK_SPACE_BUFFER,
    ) -> None:
        if disk_space_buffer < 1.0:
            raise ValueError("disk_space_buffer must be at least 1.0")
        self.project_root = Path(project_root)
        self.backup_dir = backup_dir.strip("/") or "backup"
        self.fs = fs or LocalFileSystem()
        self.disk_space_buffer = disk_space_buffer
        self.current_manifest: Optional[BackupManifest] = None
        self.move_log_path: Optional[Path] = None

    @property
    def backup_path(self) -> Path:
        return self.project_root / self.backup_dir

    @property
    def manifest_path(self) -> Path:
        return self.backup_path / MANIFEST_FILENAME

    @property
    def reports_path(self) -> Path:
        return self.backup_path / REPORTS_DIR

    # -----------------------------------------------------------------------
    # Backup
    # -----------------------------------------------------------------------

    def create_backup(
        self,
        analysis_results: Mapping[str, FileAnalysisResult],
        dry_run: bool = False,
        progress: Optional[ProgressCallback] = None,
    ) -> BackupManifest:
        """
        Move every move candidate into the backup store.

        Parameters
        ----------
        analysis_results : Mapping[str, FileAnalysisResult]
            Reconciled verdict per project-relative path.
        dry_run : bool
            Stop after the disk-space check and return the manifest skeleton;
            nothing on disk is touched.
        progress : callable, optional
            Called after each move attempt with (done, total, path).

        Returns
        -------
        BackupManifest
            Manifest with moved files and per-file errors. Empty when there
            are no candidates.

        Raises
        ------
        InsufficientDiskSpaceError
            If free space on the backup volume is below buffer x candidate size.
        ManifestError
            If an earlier manifest exists but cannot be loaded; nothing is moved.
        BackupError
            If the backup directories or the manifest cannot be written.

        Files recorded by an earlier run stay in the manifest (see
        BackupManifest.carry_over); a candidate already held in the store is
        left in place and logged as skipped.
        """
        logger.info(
            "Starting backup creation: %d files analyzed (dry_run=%s)",
            len(analysis_results),
            dry_run,
        )

        candidates = {p: r for p, r in analysis_results.items() if r.can_be_moved()}
        if not candidates:
            logger.info("No files to move - backup not needed")
            return BackupManifest({}, {}, self.project_root, self.backup_dir, self.fs)

        total_size = self.calculate_total_size(candidates)
        self.validate_disk_space(total_size)

        manifest = BackupManifest(candidates, analysis_results, self.project_root, self.backup_dir, self.fs)

        if dry_run:
            logger.info(
                "Dry run completed: %d files to move, estimated size %s",
                len(candidates),
                format_bytes(total_size),
            )
            return manifest

        previous = self.get_manifest()
        carried = set(manifest.carry_over(previous)) if previous is not None else set()

        self.create_backup_directories()

        records: List[MoveRecord] = []
        total = len(candidates)
        for done, (file_path, result) in enumerate(candidates.items(), start=1):
            if file_path in carried:
                # The store already holds this path; a second copy has nowhere to go.
                records.append(
                    MoveRecord(
                        file_path,
                        manifest.moved_files[file_path],
                        result.category.value,
                        result.confidence_score,
                        "skipped: already in backup",
                    )
                )
                logger.warning("Skipping %s: already held in the backup store", file_path)
                if progress is not None:
                    progress(done, total, file_path)
                continue
            try:
                backup_rel = self.move_file_to_backup(file_path)
            except FileMoveError as exc:
                manifest.record_error(file_path, str(exc))
                records.append(
                    MoveRecord(file_path, "", result.category.value, result.confidence_score, f"failed: {exc}")
                )
                logger.error("Failed to move %s to backup: %s", file_path, exc)
            else:
                manifest.record_moved(file_path, backup_rel)
                records.append(
                    MoveRecord(file_path, backup_rel, result.category.value, result.confidence_score, "success")
                )
                logger.debug("Moved %s -> %s", file_path, backup_rel)
            if progress is not None:
                progress(done, total, file_path)

        self.current_manifest = manifest
        self.save_manifest(manifest)
        self.move_log_path = write_move_log(records, self.reports_path)

        logger.info(
            "Backup creation completed: %d moved, %d errors, location %s",
            len(manifest.moved_files),
            len(manifest.errors),
            self.backup_path,
        )
        return manifest

    def calculate_total_size(self, files: Iterable[str]) -> int:
        total = 0
        for file_path in files:
            full_path = self.project_root / file_path
            if self.fs.is_file(full_path):
                total += self.fs.size(full_path)
        return total

    def validate_disk_space(self, total_size: int) -> None:
        """
        Check that the backup volume can hold ``total_size`` plus the buffer.

        Raises
        ------
        InsufficientDiskSpaceError
            With the required and available byte counts.
        """
        required = int(total_size * self.disk_space_buffer)
        try:
            available = int(self.fs.disk_free(self.backup_path))
        except OSError as exc:
            raise BackupError(f"Cannot determine available disk space: {exc}") from exc

        if available < required:
            raise InsufficientDiskSpaceError(required, available)

        logger.info(
            "Disk space validation passed: required %s, available %s",
            format_bytes(required),
            format_bytes(available),
        )

    def create_backup_directories(self) -> None:
        try:
            for directory in (self.backup_path, self.backup_path / MOVED_FILES_DIR, self.reports_path):
                self.fs.makedirs(directory)
        except OSError as exc:
            raise BackupError(f"Failed to create backup directory: {exc}") from exc

    def move_file_to_backup(self, file_path: str) -> str:
        """
        Atomically move one file into the store; return its backup-relative path.

        Raises
        ------
        FileMoveError
            When the source is missing, the destination is already taken, the
            rename fails, or the post-move check does not hold.
        """
        rel_path = file_path.lstrip("/")
        source = self.project_root / rel_path
        backup_rel = f"{MOVED_FILES_DIR}/{rel_path}"
        destination = self.backup_path / backup_rel

        if not self.fs.exists(source):
            raise FileMoveError(file_path, f"Source file does not exist: {source}")
        if self.fs.exists(destination):
            raise FileMoveError(file_path, f"Backup path already exists: {backup_rel}")

        try:
            self.fs.makedirs(destination.parent)
            self.fs.move(source, destination)
        except OSError as exc:
            raise FileMoveError(file_path, f"Failed to move file to backup: {exc}") from exc

        if not self.fs.exists(destination) or self.fs.exists(source):
            raise FileMoveError(file_path, f"File move verification failed: {file_path}")

        return backup_rel

    # -----------------------------------------------------------------------
    # Manifest persistence
    # -----------------------------------------------------------------------

    def has_backup(self) -> bool:
        return self.fs.exists(self.manifest_path)

    def get_manifest(self) -> Optional[BackupManifest]:
        """
        Return the cached manifest, loading it from disk on first use.

        Returns None when no backup exists.

        Raises
        ------
        ManifestError
            If manifest.json exists but cannot be read or parsed.
        """
        if self.current_manifest is not None:
            return self.current_manifest
        if not self.has_backup():
            return None
        self.current_manifest = self.load_manifest()
        return self.current_manifest

    def load_manifest(self) -> BackupManifest:
        try:
            data = json.loads(self.fs.read_text(self.manifest_path))
        except OSError as exc:
            raise ManifestError(f"Cannot read backup manifest {self.manifest_path}: {exc}") from exc
        except ValueError as exc:
            raise ManifestError(f"Backup manifest is corrupt ({self.manifest_path}): {exc}") from exc
        if not isinstance(data, dict):
            raise ManifestError(f"Backup manifest is corrupt ({self.manifest_path}): not a JSON object")

        try:
            return BackupManifest.from_dict(data, fs=self.fs, project_root=self.project_root)
        except (KeyError, TypeError, ValueError) as exc:
            raise ManifestError(f"Backup manifest is corrupt ({self.manifest_path}): {exc}") from exc

    def save_manifest(self, manifest: BackupManifest) -> None:
        try:
            self.fs.write_text(self.manifest_path, manifest.to_json())
            self.fs.write_text(self.reports_path / REPORT_FILENAME, manifest.generate_report())
        except OSError as exc:
            raise BackupError(f"Failed to save backup manifest: {exc}") from exc

    def get_backup_statistics(self) -> Dict[str, object]:
        manifest = self.get_manifest()
        return dict(manifest.statistics) if manifest else {}

    # -----------------------------------------------------------------------
    # Basic restore
    # -----------------------------------------------------------------------

    def restore_file(self, backup_rel_path: str, original_path: str) -> bool:
        """
        Copy one file back from the store, keeping the backup intact.

        An existing file at the target is renamed aside to
        ``<target>.conflict.<unix time>``. The copy is verified by sha256 and
        removed again on mismatch, in which case the renamed file is put back.
        """
        source = self.backup_path / backup_rel_path.lstrip("/")
        target = self.project_root / original_path.lstrip("/")

        if not self.fs.exists(source):
            logger.error("Backup file not found: %s (original %s)", source, original_path)
            return False

        conflict: Optional[Path] = None
        try:
            self.fs.makedirs(target.parent)

            if self.fs.exists(target):
                conflict = target.with_name(f"{target.name}.conflict.{int(time.time())}")
                self.fs.move(target, conflict)
                logger.info("Restore conflict resolved: %s moved aside to %s", original_path, conflict.name)

            self.fs.copy(source, target)

            if self.fs.sha256(source) != self.fs.sha256(target):
                logger.error("File integrity verification failed for %s", original_path)
                self._undo_restore(target, conflict)
                return False
        except OSError as exc:
            logger.error("Failed to restore %s from backup: %s", original_path, exc)
            self._undo_restore(target, conflict)
            return False

        logger.info("File restored from backup: %s", original_path)
        return True

    def _undo_restore(self, target: Path, conflict: Optional[Path]) -> None:
        """Drop a failed copy and move the file that was set aside back."""
        try:
            if self.fs.exists(target):
                self.fs.remove(target)
            if conflict is not None and self.fs.exists(conflict):
                self.fs.move(conflict, target)
        except OSError as exc:
            logger.error("Could not roll back failed restore of %s: %s", target, exc)

    def restore_files(self, file_paths: Iterable[str]) -> Dict[str, bool]:
        """
        Copy several files back and record the successful ones as restored.

        The manifest is saved once at the end; a failure to save it is logged
        and does not undo the restored files.
        """
        manifest = self.get_manifest()
        if manifest is None:
            logger.error("No backup manifest found")
            return {}

        results: Dict[str, bool] = {}
        for original_path in file_paths:
            backup_rel = manifest.get_backup_path(original_path)
            if backup_rel is None:
                logger.warning("File not found in backup manifest: %s", original_path)
                results[original_path] = False
                continue
            results[original_path] = self.restore_file(backup_rel, original_path)
            if results[original_path]:
                manifest.mark_restored(original_path)

        if any(results.values()):
            try:
                self.save_manifest(manifest)
            except BackupError as exc:
                logger.error("Files restored but the manifest could not be updated: %s", exc)
        return results

    def restore_all(self) -> bool:
        manifest = self.get_manifest()
        if manifest is None:
            logger.error("No backup manifest found for restoration")
            return False

        moved = list(manifest.moved_files)
        logger.info("Starting full restoration of %d files", len(moved))
        results = self.restore_files(moved)
        success_count = sum(1 for ok in results.values() if ok)
        success = success_count == len(moved)
        logger.info(
            "Full restoration completed: %d/%d restored (success=%s)",
            success_count,
            len(moved),
            success,
        )
        return success
