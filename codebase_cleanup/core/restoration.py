"""
Restoration service for the codebase cleanup tool.

Responsibilities:
- Restore one file from the backup store with a configurable conflict
  policy for an existing target:
  * backup_existing (default): copy the existing file aside to
    ``<path>.conflict-backup.<YYYY-mm-dd_HH-MM-SS>`` and proceed
  * overwrite: proceed without keeping the existing file
  * skip: leave the existing file alone
  * compare: identical content or a strictly newer existing file is left
    alone, anything else falls back to backup_existing
- Restore with the requested method (copy, move, link or symlink) and
  verify the result: the target exists, and its size and sha256 match the
  backup as measured before restoring. A failed verification never leaves
  a half-restored file at the original path.
- Restore a list of files, a directory prefix, or everything (complete
  rollback, which moves files out of the store and needs confirm_rollback).
- Check restore prerequisites and preview a restore without touching disk.

Skips ("not in manifest", "already identical", "existing is newer") are
reported with status SKIPPED and are never counted as errors.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from .backup import BackupManager
from .errors import (
    BackupError,
    FileRestoreError,
    IntegrityError,
    ManifestError,
    NoBackupFoundError,
    RollbackNotConfirmedError,
)
from .fs import LocalFileSystem, format_bytes
from .manifest import BackupManifest
from .models import (
    NOT_IN_MANIFEST,
    BatchRestorationResult,
    ConflictResolution,
    RestorationResult,
    RestorationStatus,
    VerificationResult,
)

logger = logging.getLogger(__name__)

CONFLICT_STRATEGIES = ("backup_existing", "overwrite", "skip", "compare")
RESTORE_METHODS = ("copy", "move", "link", "symlink")

CONFLICT_BACKUP_TIMESTAMP = "%Y-%m-%d_%H-%M-%S"


@dataclass(frozen=True)
class RestoreOptions:
    """
    Options for a restore call.

    - conflict_resolution: what to do with an existing file at the target
    - method: how the file leaves the backup store
    - update_manifest: record the restore in the manifest and re-save it
    - fail_fast: stop a batch at the first failure (skips never stop it)
    - confirm_rollback: required by perform_complete_rollback
    """

    conflict_resolution: str = "backup_existing"
    method: str = "copy"
    update_manifest: bool = True
    fail_fast: bool = False
    confirm_rollback: bool = False

    def __post_init__(self) -> None:
        if self.conflict_resolution not in CONFLICT_STRATEGIES:
            raise ValueError(f"Unknown conflict resolution strategy: {self.conflict_resolution}")
        if self.method not in RESTORE_METHODS:
            raise ValueError(f"Unknown restoration method: {self.method}")


class RestorationService:
    """Conflict-aware, verified restore on top of a BackupManager."""

    def __init__(
        self,
        backup_manager: BackupManager,
        project_root: Path,
        fs: Optional[LocalFileSystem] = None,
    ) -> None:
        self.backup_manager = backup_manager
        self.project_root = Path(project_root)
        self.fs = fs or backup_manager.fs

    # -----------------------------------------------------------------------
    # Single file
    # -----------------------------------------------------------------------

    def restore_file(
        self,
        original_path: str,
        options: Optional[RestoreOptions] = None,
    ) -> RestorationResult:
        """
        Restore one file recorded in the manifest.

        Parameters
        ----------
        original_path : str
            Project-relative path the file had before the backup.
        options : RestoreOptions, optional
            Defaults to copy with backup_existing.

        Returns
        -------
        RestorationResult
            RESTORED on success, SKIPPED when the file is not in the manifest
            or the conflict policy leaves the existing file alone, FAILED
            otherwise (with ``error`` set).

        Raises
        ------
        ManifestError
            If the manifest exists but cannot be loaded.
        """
        options = options or RestoreOptions()
        logger.info(
            "Starting file restoration: %s (method=%s, conflict=%s)",
            original_path,
            options.method,
            options.conflict_resolution,
        )

        manifest = self.backup_manager.get_manifest()
        if manifest is None:
            return RestorationResult(
                success=False,
                file_path=original_path,
                status=RestorationStatus.FAILED,
                error="No backup manifest found",
            )

        backup_rel = manifest.get_backup_path(original_path)
        if backup_rel is None:
            logger.info("Skipping %s: %s", original_path, NOT_IN_MANIFEST)
            return RestorationResult(
                success=False,
                file_path=original_path,
                status=RestorationStatus.SKIPPED,
                message=NOT_IN_MANIFEST,
            )

        source = self.backup_manager.backup_path / backup_rel.lstrip("/")
        target = self.project_root / original_path.lstrip("/")

        try:
            result = self._restore(original_path, backup_rel, source, target, options)
        except (FileRestoreError, OSError) as exc:
            logger.error("File restoration failed for %s: %s", original_path, exc)
            return RestorationResult(
                success=False,
                file_path=original_path,
                status=RestorationStatus.FAILED,
                backup_path=backup_rel,
                error=str(exc),
            )

        if result.success and options.update_manifest:
            try:
                self._update_manifest(manifest, original_path, options.method)
            except BackupError as exc:
                logger.error("Restored %s but could not update the manifest: %s", original_path, exc)
                result = replace(result, warning=f"Manifest not updated: {exc}")
        return result

    def _restore(
        self,
        original_path: str,
        backup_rel: str,
        source: Path,
        target: Path,
        options: RestoreOptions,
    ) -> RestorationResult:
        if not self.fs.exists(source):
            raise FileRestoreError(original_path, f"Backup file does not exist: {backup_rel}")

        resolution: Optional[ConflictResolution] = None
        if self.fs.exists(target):
            resolution = self.resolve_conflict(target, source, options.conflict_resolution)
            if not resolution.success:
                if resolution.error:
                    raise FileRestoreError(
                        original_path, f"Conflict resolution failed: {resolution.error}"
                    )
                logger.info("Restoration of %s skipped: %s", original_path, resolution.message)
                return RestorationResult(
                    success=False,
                    file_path=original_path,
                    status=RestorationStatus.SKIPPED,
                    backup_path=backup_rel,
                    message=resolution.message,
                    conflict_resolution=resolution,
                )

        # Measured up front: after a move the backup copy is gone.
        expected_size = self.fs.size(source)
        expected_hash = self.fs.sha256(source)

        try:
            self.fs.makedirs(target.parent)
        except OSError as exc:
            raise FileRestoreError(original_path, f"Failed to create directory: {target.parent}") from exc

        if self.fs.exists(target):
            self.fs.remove(target)

        self._perform(source, target, options.method)

        verification = self.verify_restoration(target, expected_size, expected_hash)
        if not verification.success:
            self._discard(source, target, options.method)
            raise IntegrityError(
                original_path, f"Restoration verification failed: {verification.error}"
            )

        logger.info(
            "File restoration completed: %s from %s%s",
            original_path,
            backup_rel,
            f" (conflict: {resolution.action})" if resolution else "",
        )
        return RestorationResult(
            success=True,
            file_path=original_path,
            status=RestorationStatus.RESTORED,
            backup_path=backup_rel,
            message=verification.message,
            conflict_resolution=resolution,
            verification=verification,
        )

    def _perform(self, source: Path, target: Path, method: str) -> None:
        operations = {
            "copy": self.fs.copy,
            "move": self.fs.move,
            "link": self.fs.link,
            "symlink": self.fs.symlink,
        }
        operations[method](source, target)

    def _discard(self, source: Path, target: Path, method: str) -> None:
        """Take a failed restore back out of the original location."""
        if not self.fs.exists(target):
            return
        if method == "move" and not self.fs.exists(source):
            self.fs.move(target, source)
        else:
            self.fs.remove(target)

    def _update_manifest(self, manifest: BackupManifest, original_path: str, method: str) -> None:
        manifest.mark_restored(original_path, remove_entry=method == "move")
        self.backup_manager.save_manifest(manifest)

    # -----------------------------------------------------------------------
    # Conflicts and verification
    # -----------------------------------------------------------------------

    def resolve_conflict(self, existing: Path, backup: Path, strategy: str) -> ConflictResolution:
        if strategy == "backup_existing":
            return self._backup_existing(existing)
        if strategy == "overwrite":
            return ConflictResolution(True, "overwrite", message="Existing file will be overwritten")
        if strategy == "skip":
            return ConflictResolution(False, "skip", message="Restoration skipped due to existing file")
        if strategy == "compare":
            return self._compare_and_decide(existing, backup)
        return ConflictResolution(
            False, "unknown", error=f"Unknown conflict resolution strategy: {strategy}"
        )

    def _backup_existing(self, existing: Path) -> ConflictResolution:
        stamp = datetime.now().strftime(CONFLICT_BACKUP_TIMESTAMP)
        aside = existing.with_name(f"{existing.name}.conflict-backup.{stamp}")
        counter = 1
        while self.fs.exists(aside):
            aside = existing.with_name(f"{existing.name}.conflict-backup.{stamp}.{counter}")
            counter += 1
        try:
            self.fs.copy(existing, aside)
        except OSError as exc:
            return ConflictResolution(
                False, "backup_existing", error=f"Failed to create backup of existing file: {exc}"
            )
        return ConflictResolution(
            True,
            "backup_existing",
            message=f"Existing file backed up to: {aside.name}",
            backup_path=str(aside),
        )

    def _compare_and_decide(self, existing: Path, backup: Path) -> ConflictResolution:
        if self.fs.sha256(existing) == self.fs.sha256(backup):
            return ConflictResolution(False, "skip", message="Files are identical - restoration not needed")
        if self.fs.mtime(existing) > self.fs.mtime(backup):
            return ConflictResolution(False, "skip", message="Existing file is newer - restoration skipped")
        return self._backup_existing(existing)

    def verify_restoration(self, restored: Path, expected_size: int, expected_hash: str) -> VerificationResult:
        if not self.fs.exists(restored):
            return VerificationResult(False, error="Restored file does not exist")

        size = self.fs.size(restored)
        if size != expected_size:
            return VerificationResult(
                False, error=f"File size mismatch: backup={expected_size}, restored={size}"
            )

        if self.fs.sha256(restored) != expected_hash:
            return VerificationResult(False, error="File content hash mismatch")

        return VerificationResult(True, message="File restoration verified successfully")

    # -----------------------------------------------------------------------
    # Batches
    # -----------------------------------------------------------------------

    def restore_files(
        self,
        file_paths: Iterable[str],
        options: Optional[RestoreOptions] = None,
    ) -> BatchRestorationResult:
        options = options or RestoreOptions()
        paths = list(file_paths)
        logger.info("Starting batch file restoration: %d files", len(paths))

        results: Dict[str, RestorationResult] = {}
        success_count = error_count = skipped_count = 0

        for file_path in paths:
            result = self.restore_file(file_path, options)
            results[file_path] = result

            if result.success:
                success_count += 1
            elif result.skipped:
                skipped_count += 1
            else:
                error_count += 1
                if options.fail_fast:
                    logger.warning(
                        "Batch restoration stopped by fail_fast at %s (%d processed)",
                        file_path,
                        len(results),
                    )
                    break

        batch = BatchRestorationResult(
            results=results,
            success_count=success_count,
            error_count=error_count,
            skipped_count=skipped_count,
            total_count=len(paths),
        )
        logger.info(
            "Batch file restoration completed: total=%d success=%d errors=%d skipped=%d",
            batch.total_count,
            batch.success_count,
            batch.error_count,
            batch.skipped_count,
        )
        return batch

    def restore_directory(
        self,
        directory: str,
        options: Optional[RestoreOptions] = None,
    ) -> BatchRestorationResult:
        """Restore every moved file under ``directory`` (a path prefix)."""
        manifest = self._require_manifest()

        prefix = directory.strip("/")
        files = [
            path
            for path in manifest.moved_files
            if not prefix or path == prefix or path.startswith(prefix + "/")
        ]
        if not files:
            logger.info("No files found in directory for restoration: %s", directory)
            return BatchRestorationResult({}, 0, 0, 0, 0)

        logger.info("Restoring directory %s: %d files", directory, len(files))
        return self.restore_files(files, options)

    def perform_complete_rollback(self, options: Optional[RestoreOptions] = None) -> BatchRestorationResult:
        """
        Move every backed-up file back to its original location.

        Raises
        ------
        RollbackNotConfirmedError
            Unless ``options.confirm_rollback`` is set; nothing is touched.
        NoBackupFoundError
            If there is no manifest to roll back.
        """
        options = options or RestoreOptions()
        if not options.confirm_rollback:
            raise RollbackNotConfirmedError(
                "Complete rollback requires explicit confirmation via confirm_rollback"
            )

        logger.info("Starting complete rollback")
        manifest = self._require_manifest()
        all_files = list(manifest.moved_files)

        result = self.restore_files(all_files, replace(options, method="move", update_manifest=True))

        if result.is_fully_successful():
            logger.info("Complete rollback successful - all %d files restored", result.success_count)
        else:
            logger.warning(
                "Complete rollback partially successful: %d restored, %d errors, %d skipped",
                result.success_count,
                result.error_count,
                result.skipped_count,
            )
        return result

    def _require_manifest(self) -> BackupManifest:
        manifest = self.backup_manager.get_manifest()
        if manifest is None:
            raise NoBackupFoundError(f"No backup manifest found in {self.backup_manager.backup_path}")
        return manifest

    # -----------------------------------------------------------------------
    # Read-only checks
    # -----------------------------------------------------------------------

    def validate_restoration_prerequisites(self) -> List[str]:
        """Return a list of problems that should block a restore; empty if none."""
        if not self.backup_manager.has_backup():
            return ["No backup found"]

        try:
            manifest = self.backup_manager.get_manifest()
        except ManifestError as exc:
            return [str(exc)]

        issues: List[str] = []
        if manifest is not None:
            issues.extend(manifest.validate_integrity())
            if manifest.has_project_drifted():
                logger.warning("Key project files changed since the backup was created")

        required = int(self.backup_manager.get_backup_statistics().get("total_size_moved", 0) or 0)
        try:
            available = self.fs.disk_free(self.project_root)
        except OSError as exc:
            logger.warning("Cannot determine available disk space: %s", exc)
        else:
            if available < required:
                issues.append(
                    "Insufficient disk space for restoration. "
                    f"Required: {format_bytes(required)}, Available: {format_bytes(available)}"
                )

        return issues

    def get_restoration_preview(self, file_paths: Iterable[str]) -> Dict[str, Dict[str, Any]]:
        manifest = self.backup_manager.get_manifest()
        if manifest is None:
            return {}

        preview: Dict[str, Dict[str, Any]] = {}
        for file_path in file_paths:
            backup_rel = manifest.get_backup_path(file_path)
            original_exists = self.fs.exists(self.project_root / file_path.lstrip("/"))
            analysis = manifest.get_analysis_result(file_path)
            preview[file_path] = {
                "has_backup": backup_rel is not None,
                "backup_path": backup_rel,
                "original_exists": original_exists,
                "will_conflict": backup_rel is not None and original_exists,
                "analysis_result": analysis.to_dict() if analysis else None,
            }
        return preview
