"""
Environment helper utilities for the codebase cleanup tool.

Responsible for:
- Loading environment variables from a .env file.
- Exposing the tool's settings in one typed object, so the rest of the
  code never reads os.environ directly.

Recognised variables:

    CLEANUP_BACKUP_DIR   backup store directory, relative to the project (default "backup")
    CLEANUP_DISK_BUFFER  free-space safety factor for backups (default 1.2, must be >= 1.0)
    CLEANUP_EXCLUDE      comma-separated extra paths to leave out of the scan
    CLEANUP_LOG_FILE     optional file that receives a copy of the log

CLI flags override these values.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import List, Optional

from dotenv import load_dotenv

from ..core.errors import ConfigError

BACKUP_DIR_ENV_VAR = "CLEANUP_BACKUP_DIR"
DISK_BUFFER_ENV_VAR = "CLEANUP_DISK_BUFFER"
EXCLUDE_ENV_VAR = "CLEANUP_EXCLUDE"
LOG_FILE_ENV_VAR = "CLEANUP_LOG_FILE"

DEFAULT_BACKUP_DIR = "backup"
DEFAULT_DISK_BUFFER = 1.2

# Load from a .env in the current working directory or its parents.
# Variables already set in the environment win.
load_dotenv()


@dataclass(frozen=True)
class Settings:
    backup_dir: str = DEFAULT_BACKUP_DIR
    disk_buffer: float = DEFAULT_DISK_BUFFER
    extra_excludes: List[str] = field(default_factory=list)
    log_file: Optional[str] = None


def get_settings() -> Settings:
    """
    Read the settings from the environment.

    Raises ConfigError if CLEANUP_DISK_BUFFER is not a number or is below 1.0,
    or if CLEANUP_BACKUP_DIR is blank.
    """
    backup_dir = os.getenv(BACKUP_DIR_ENV_VAR, DEFAULT_BACKUP_DIR).strip().strip("/")
    if not backup_dir:
        raise ConfigError(f"{BACKUP_DIR_ENV_VAR} must not be empty.")

    raw_buffer = os.getenv(DISK_BUFFER_ENV_VAR)
    if raw_buffer is None or not raw_buffer.strip():
        disk_buffer = DEFAULT_DISK_BUFFER
    else:
        try:
            disk_buffer = float(raw_buffer)
        except ValueError as exc:
            raise ConfigError(f"{DISK_BUFFER_ENV_VAR} must be a number, got {raw_buffer!r}.") from exc
        if disk_buffer < 1.0:
            raise ConfigError(f"{DISK_BUFFER_ENV_VAR} must be at least 1.0, got {disk_buffer}.")

    excludes = [
        part.strip().strip("/")
        for part in os.getenv(EXCLUDE_ENV_VAR, "").split(",")
        if part.strip().strip("/")
    ]

    log_file = os.getenv(LOG_FILE_ENV_VAR) or None

    return Settings(
        backup_dir=backup_dir,
        disk_buffer=disk_buffer,
        extra_excludes=excludes,
        log_file=log_file,
    )
