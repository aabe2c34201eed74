"""
Pure helpers shared by the analyzers.

Nothing here touches the filesystem except through the LocalFileSystem
instance a caller passes in.
"""

from __future__ import annotations

import logging
import posixpath
import re
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from ..fs import LocalFileSystem
from ..scanner import DEFAULT_EXCLUDES, iter_project_files

logger = logging.getLogger(__name__)

# include 'x'; require_once "x"; include('x'); require_once ( "x" )
INCLUDE_RE = re.compile(r"""(?:include|require)(?:_once)?\s*\(?\s*['"]([^'"]+)['"]""")


def is_php_file(file_path: str) -> bool:
    return file_path.lower().endswith(".php")


def resolve_include_path(include_path: str, current_file: str) -> str:
    """
    Resolve an include/require target relative to the including file.

    Absolute targets are taken as project-relative. ``.`` and ``..`` segments
    are collapsed; ``..`` above the root is dropped.

    >>> resolve_include_path("../config/app.php", "public/index.php")
    'config/app.php'
    """
    if include_path.startswith("/"):
        return include_path.lstrip("/")

    joined = f"{posixpath.dirname(current_file)}/{include_path}"
    normalized: List[str] = []
    for part in joined.split("/"):
        if part in ("", "."):
            continue
        if part == "..":
            if normalized:
                normalized.pop()
            continue
        normalized.append(part)
    return "/".join(normalized)


class SourceIndex:
    """
    Lazily loaded text of project files, keyed by project-relative path.

    Analyzers that scan the whole tree share this so each file is read at
    most once per run.
    """

    def __init__(
        self,
        project_root: Path,
        fs: Optional[LocalFileSystem] = None,
        excludes: Optional[Iterable[str]] = None,
    ) -> None:
        self.project_root = Path(project_root)
        self.fs = fs or LocalFileSystem()
        self.excludes = list(DEFAULT_EXCLUDES if excludes is None else excludes)
        self._contents: Dict[str, Optional[str]] = {}

    def find_files(self, extensions: Iterable[str], directory: str = "") -> List[str]:
        """Project-relative paths with one of ``extensions``, optionally under ``directory``."""
        if not self.project_root.is_dir():
            return []
        prefix = directory.strip("/")
        files = iter_project_files(self.project_root, self.excludes, extensions)
        if not prefix:
            return list(files)
        return [f for f in files if f.startswith(prefix + "/")]

    def content(self, rel_path: str) -> Optional[str]:
        """File text, or None when it cannot be read."""
        if rel_path not in self._contents:
            absolute = self.project_root / rel_path.lstrip("/")
            try:
                self._contents[rel_path] = self.fs.read_text(absolute)
            except OSError as exc:
                logger.debug("Cannot read %s: %s", rel_path, exc)
                self._contents[rel_path] = None
        return self._contents[rel_path]
