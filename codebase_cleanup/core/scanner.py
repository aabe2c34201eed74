"""
Project scanner for the codebase cleanup tool.

Responsibilities:

- Recursively walk a project root.
- Skip excluded top-level trees (.git, vendor, node_modules, .kiro, the
  backup store and any extra prefixes from settings).
- For each remaining file, collect:
  - rel_path (project-relative, forward slashes; the identity key)
  - file_name
  - extension
  - full_path
  - size_bytes
  - modified_time
- Return a Pandas DataFrame with those columns, sorted by rel_path.
- If the project root does not exist, raise PathNotFoundError.
- If it exists but is not a directory, raise PathNotDirectoryError.
- If no analyzable files remain, raise NoFilesFoundError.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Sequence

import pandas as pd

from .errors import NoFilesFoundError, PathNotDirectoryError, PathNotFoundError
from .models import FileRecord

logger = logging.getLogger(__name__)

DEFAULT_EXCLUDES: Sequence[str] = (".git", "vendor", "node_modules", ".kiro")

SCAN_COLUMNS = [
    "rel_path",
    "file_name",
    "extension",
    "full_path",
    "size_bytes",
    "modified_time",
]


def to_rel_path(path: Path, root: Path) -> str:
    """Project-relative POSIX path for ``path`` under ``root``."""
    return path.relative_to(root).as_posix()


def is_excluded(rel_path: str, excludes: Iterable[str]) -> bool:
    for pattern in excludes:
        pattern = pattern.strip().strip("/")
        if not pattern:
            continue
        if rel_path == pattern or rel_path.startswith(pattern + "/"):
            return True
    return False


def iter_project_files(
    root: Path,
    excludes: Optional[Iterable[str]] = None,
    extensions: Optional[Iterable[str]] = None,
) -> Iterator[str]:
    """
    Yield project-relative paths of every non-excluded file under ``root``.

    Parameters
    ----------
    root : Path
        Project root.
    excludes : iterable of str, optional
        Path prefixes to skip; defaults to DEFAULT_EXCLUDES.
    extensions : iterable of str, optional
        Lowercase extensions without the dot (e.g. ``{"php"}``); when given,
        only files with one of these extensions are yielded.
    """
    exclude_list = list(DEFAULT_EXCLUDES if excludes is None else excludes)
    wanted = {e.lower().lstrip(".") for e in extensions} if extensions else None

    for dirpath, dirnames, filenames in os.walk(root):
        dir_path = Path(dirpath)
        rel_dir = "" if dir_path == root else to_rel_path(dir_path, root)

        # Prune excluded directories in place so os.walk never descends.
        dirnames[:] = sorted(
            d for d in dirnames
            if not is_excluded(f"{rel_dir}/{d}" if rel_dir else d, exclude_list)
        )

        for name in sorted(filenames):
            rel_path = f"{rel_dir}/{name}" if rel_dir else name
            if is_excluded(rel_path, exclude_list):
                continue
            if wanted is not None and Path(name).suffix.lower().lstrip(".") not in wanted:
                continue
            yield rel_path


def scan_project(
    root: Path,
    backup_dir: str = "backup",
    extra_excludes: Optional[Iterable[str]] = None,
) -> pd.DataFrame:
    """
    Recursively scan the project root and return a DataFrame of files.

    Parameters
    ----------
    root : Path
        Project root (typically already resolved via utils.paths.resolve_root).
    backup_dir : str
        Backup store directory relative to root; always excluded.
    extra_excludes : iterable of str, optional
        Additional path prefixes to exclude (CLEANUP_EXCLUDE).

    Returns
    -------
    pd.DataFrame
        One row per discovered file with the columns in SCAN_COLUMNS.

    Raises
    ------
    PathNotFoundError
        If the path does not exist.
    PathNotDirectoryError
        If the path is not a directory.
    NoFilesFoundError
        If no analyzable files remain after exclusions.
    """
    if not root.exists():
        raise PathNotFoundError(f"Path not found: {root}")

    if not root.is_dir():
        raise PathNotDirectoryError(f"Provided path is not a directory: {root}")

    excludes: List[str] = list(DEFAULT_EXCLUDES)
    if backup_dir:
        excludes.append(backup_dir)
    if extra_excludes:
        excludes.extend(e for e in extra_excludes if e.strip())

    records: List[FileRecord] = []

    for rel_path in iter_project_files(root, excludes):
        full_path = root / rel_path

        # A file may disappear or be unreadable between walk and stat; skip it.
        try:
            stat = full_path.stat()
        except OSError as exc:
            logger.debug("Skipping unreadable file %s: %s", rel_path, exc)
            continue

        records.append(
            FileRecord(
                rel_path=rel_path,
                file_name=full_path.name,
                extension=full_path.suffix.lower(),
                full_path=full_path,
                size_bytes=stat.st_size,
                modified_time=stat.st_mtime,
            )
        )

    if not records:
        raise NoFilesFoundError(f"No analyzable files found under '{root}'.")

    logger.info("Scanned %d files under %s", len(records), root)

    data = [
        {
            "rel_path": r.rel_path,
            "file_name": r.file_name,
            "extension": r.extension,
            "full_path": str(r.full_path),
            "size_bytes": r.size_bytes,
            "modified_time": r.modified_time,
        }
        for r in records
    ]

    df = pd.DataFrame(data, columns=SCAN_COLUMNS)
    return df.sort_values("rel_path", kind="stable").reset_index(drop=True)
