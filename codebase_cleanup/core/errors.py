"""
Domain-specific exception hierarchy for the codebase cleanup tool.

All predictable, user-facing failures should raise subclasses of CleanupError.
The CLI layer will catch CleanupError and print friendly messages instead of
raw stack traces.

Three kinds of failure are distinguished:

- Precondition errors (PreconditionError subclasses) are fatal to the current
  operation and are always raised before any file is touched.
- Per-file errors (FileMoveError, FileRestoreError, IntegrityError) are
  recorded against a single file and never abort a batch on their own.
- Conflict outcomes such as "skip" or "already identical" are not errors at
  all and never raise.
"""

from __future__ import annotations

from typing import Optional


class CleanupError(Exception):
    """Base class for all known, user-facing errors in the cleanup domain.

    Any exception that should result in a friendly CLI message (rather than
    a full stack trace) should inherit from this.
    """


# ---------------------------------------------------------------------------
# Path / filesystem related errors
# ---------------------------------------------------------------------------

class PathError(CleanupError):
    """Base class for errors related to input paths and filesystem layout."""


class PathNotFoundError(PathError):
    """Raised when the provided project root does not exist."""


class PathNotDirectoryError(PathError):
    """Raised when the provided project root exists but is not a directory."""


class NoFilesFoundError(PathError):
    """Raised when the scan completes successfully but finds no files.

    The CLI treats this as a soft error and exits with code 0.
    """


# ---------------------------------------------------------------------------
# Configuration errors
# ---------------------------------------------------------------------------

class ConfigError(CleanupError):
    """Raised when a setting from the environment or .env file is invalid.

    Example: CLEANUP_DISK_BUFFER is not a number or is below 1.0.
    """


# ---------------------------------------------------------------------------
# Analysis errors
# ---------------------------------------------------------------------------

class AnalysisError(CleanupError):
    """Raised when an analyzer cannot produce a verdict for a file.

    The classification engine logs these and carries on with the remaining
    analyzers.
    """


# ---------------------------------------------------------------------------
# Backup / restore errors
# ---------------------------------------------------------------------------

class BackupError(CleanupError):
    """Base class for errors raised by the backup and restore subsystem."""


class PreconditionError(BackupError):
    """Base class for errors detected before any filesystem mutation."""


class InsufficientDiskSpaceError(PreconditionError):
    """Raised when the backup volume cannot hold the files to be moved.

    Carries the required and available byte counts so callers can report
    them without parsing the message.
    """

    def __init__(self, required: int, available: int, message: Optional[str] = None) -> None:
        self.required = int(required)
        self.available = int(available)
        super().__init__(
            message
            or f"Insufficient disk space. Required: {self.required} bytes, "
            f"Available: {self.available} bytes"
        )


class NoBackupFoundError(PreconditionError):
    """Raised when a restore is requested but no manifest exists."""


class ManifestError(PreconditionError):
    """Raised when the manifest file exists but cannot be read or parsed."""


class RollbackNotConfirmedError(PreconditionError):
    """Raised when a complete rollback is requested without confirm_rollback."""


class FileMoveError(BackupError):
    """Raised when a single file cannot be moved into the backup store.

    BackupManager records these in the manifest's ``errors`` mapping; they
    never abort the batch.
    """

    def __init__(self, path: str, message: str) -> None:
        self.path = path
        super().__init__(message)


class FileRestoreError(BackupError):
    """Raised when a single file cannot be restored from the backup store."""

    def __init__(self, path: str, message: str) -> None:
        self.path = path
        super().__init__(message)


class IntegrityError(FileRestoreError):
    """Raised when a restored file does not match its backup byte for byte."""


class LoggingError(BackupError):
    """Raised when the tool fails to write its CSV move log."""
