"""
Path utilities for the codebase cleanup tool.

All user-specified project roots should be passed through resolve_root()
before being used elsewhere; the core works on absolute paths only.
"""

from __future__ import annotations

from pathlib import Path

from ..core.errors import PathNotDirectoryError, PathNotFoundError


def resolve_root(path_str: str) -> Path:
    """
    Resolve a user-provided path string into an absolute directory Path.

    Steps:
    - Expand '~'.
    - Resolve to an absolute path.
    - Ensure the path exists.
    - Ensure the path is a directory (not a file).

    Raises:
    - PathNotFoundError: if the resolved path does not exist.
    - PathNotDirectoryError: if the path exists but is not a directory.
    """
    root = Path(path_str).expanduser().resolve()

    if not root.exists():
        raise PathNotFoundError(f"Path not found: {root}")

    if not root.is_dir():
        raise PathNotDirectoryError(f"Provided path is not a directory: {root}")

    return root


def normalize_rel_path(path_str: str, root: Path) -> str:
    """
    Turn a user-supplied file or directory argument into a project-relative
    POSIX path, as used for manifest keys.

    Absolute paths inside ``root`` are made relative; anything else is taken
    as already relative to the project.
    """
    candidate = Path(path_str).expanduser()
    if candidate.is_absolute():
        try:
            candidate = candidate.resolve().relative_to(root)
        except ValueError:
            pass
    return candidate.as_posix().lstrip("/").removeprefix("./")
