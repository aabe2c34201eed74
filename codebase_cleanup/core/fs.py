"""
Filesystem and hashing abstraction for the codebase cleanup tool.

Responsibilities:
- Wrap every filesystem call made by the analyzers, BackupManager and
  RestorationService behind one small class, so tests can inject a subclass
  that simulates low disk space, failed renames or corrupt copies.
- Provide whole-file content hashing (sha256 for integrity, md5 for the
  project-state fingerprint).
- Measure free disk space on the nearest existing ancestor of a path, since
  the backup root usually does not exist yet when space is checked.

All paths are absolute ``Path`` objects; callers resolve project-relative
paths themselves.
"""

from __future__ import annotations

import hashlib
import os
import shutil
from pathlib import Path
from typing import Union

PathLike = Union[str, Path]

_CHUNK_SIZE = 1024 * 1024


class LocalFileSystem:
    """Thin wrapper over ``os`` / ``shutil`` / ``pathlib`` for the local disk."""

    # -----------------------------------------------------------------------
    # Queries
    # -----------------------------------------------------------------------

    def exists(self, path: PathLike) -> bool:
        return os.path.lexists(path)

    def is_file(self, path: PathLike) -> bool:
        return Path(path).is_file()

    def is_dir(self, path: PathLike) -> bool:
        return Path(path).is_dir()

    def size(self, path: PathLike) -> int:
        return Path(path).stat().st_size

    def mtime(self, path: PathLike) -> float:
        return Path(path).stat().st_mtime

    def read_text(self, path: PathLike) -> str:
        return Path(path).read_text(encoding="utf-8", errors="replace")

    def sha256(self, path: PathLike) -> str:
        return self._digest(path, hashlib.sha256())

    def md5(self, path: PathLike) -> str:
        return self._digest(path, hashlib.md5())

    def disk_free(self, path: PathLike) -> int:
        """
        Return free bytes on the volume that holds ``path``.

        ``path`` need not exist; the nearest existing ancestor is measured.
        """
        existing = Path(path).absolute()
        while not existing.exists() and existing != existing.parent:
            existing = existing.parent
        return shutil.disk_usage(existing).free

    # -----------------------------------------------------------------------
    # Mutations
    # -----------------------------------------------------------------------

    def makedirs(self, path: PathLike) -> None:
        Path(path).mkdir(parents=True, exist_ok=True)

    def move(self, src: PathLike, dst: PathLike) -> None:
        """Atomic same-filesystem rename; never falls back to copy + delete."""
        os.rename(src, dst)

    def copy(self, src: PathLike, dst: PathLike) -> None:
        shutil.copy2(src, dst)

    def link(self, src: PathLike, dst: PathLike) -> None:
        os.link(src, dst)

    def symlink(self, src: PathLike, dst: PathLike) -> None:
        os.symlink(Path(src).absolute(), dst)

    def remove(self, path: PathLike) -> None:
        os.unlink(path)

    def write_text(self, path: PathLike, content: str) -> None:
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")

    # -----------------------------------------------------------------------
    # Internals
    # -----------------------------------------------------------------------

    @staticmethod
    def _digest(path: PathLike, hasher) -> str:
        with open(path, "rb") as fh:
            for chunk in iter(lambda: fh.read(_CHUNK_SIZE), b""):
                hasher.update(chunk)
        return hasher.hexdigest()


def format_bytes(size: float, precision: int = 2) -> str:
    """Format a byte count for humans, e.g. ``1536 -> '1.5 KB'``."""
    units = ["B", "KB", "MB", "GB", "TB"]
    value = float(max(size, 0))
    index = 0
    while value >= 1024 and index < len(units) - 1:
        value /= 1024
        index += 1
    text = f"{value:.{precision}f}".rstrip("0").rstrip(".")
    return f"{text} {units[index]}"
