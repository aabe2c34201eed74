"""
Dependency analyzer.

Responsibilities:
- Read the PSR-4 namespace -> directory map from composer.json
  (``autoload`` and ``autoload-dev``).
- Build a static dependency graph over every PHP file in the project from
  ``use`` statements, include/require targets, ``new X`` and ``X::`` tokens.
  Edges point at project files only; a token that does not resolve to a
  file inside the project (vendor classes, builtins) is dropped.
- Derive ``references`` for any path as the reverse edges of that graph.
- Flag autoload members, tooling-required files, core configuration and
  database migrations.

Category rule: ESSENTIAL if any flag is set, the file has more than 3
dependencies or more than 2 references, or it is an entry point; otherwise
UNCERTAIN. This analyzer never votes NON_ESSENTIAL.
"""

from __future__ import annotations

import json
import logging
import posixpath
import re
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set

from ..fs import LocalFileSystem
from ..models import Category, FileAnalysisResult, derive_result
from .common import INCLUDE_RE, SourceIndex, is_php_file, resolve_include_path

logger = logging.getLogger(__name__)

TOOLING_FILES = frozenset({
    "composer.json",
    "composer.lock",
    ".env",
    ".env.example",
    "docker-compose.yml",
    "Dockerfile",
    "phpunit.xml",
    "phpstan.neon",
    "phpcs.xml",
})

CORE_CONFIG_MARKERS = (
    "config/",
    "bootstrap/",
    ".env",
    "docker-compose",
    "Dockerfile",
    "nginx.conf",
    "apache.conf",
)

USE_RE = re.compile(r"^use\s+([^;]+);", re.MULTILINE)
CLASS_RE = re.compile(r"new\s+([A-Za-z_][A-Za-z0-9_\\]*)|([A-Za-z_][A-Za-z0-9_\\]*)::")
IGNORED_CLASS_TOKENS = frozenset({"self", "static", "parent"})

# Confidence weights
W_AUTOLOAD = 30
W_TOOLING = 40
W_CORE_CONFIG = 35
W_MIGRATION = 35


class DependencyAnalyzer:
    name = "dependency"

    def __init__(
        self,
        project_root: Path,
        fs: Optional[LocalFileSystem] = None,
        excludes: Optional[Iterable[str]] = None,
    ) -> None:
        self.project_root = Path(project_root)
        self.fs = fs or LocalFileSystem()
        self.sources = SourceIndex(self.project_root, self.fs, excludes)
        self.psr4: Dict[str, str] = self._load_psr4()
        self._graph: Optional[Dict[str, Set[str]]] = None
        self._reverse: Dict[str, Set[str]] = {}

    # -----------------------------------------------------------------------
    # Contract
    # -----------------------------------------------------------------------

    def priority(self) -> int:
        return 90

    def can_analyze(self, file_path: str) -> bool:
        return True

    def analyze(self, file_path: str) -> FileAnalysisResult:
        graph = self.dependency_graph()
        reasons: List[str] = []

        is_autoload = self.is_autoload_file(file_path)
        if is_autoload:
            reasons.append("Part of PSR-4 autoload structure")

        is_tooling = self.is_tooling_file(file_path)
        if is_tooling:
            reasons.append("Required by composer configuration")

        dependencies = set(graph.get(file_path, ()))
        references = set(self._reverse.get(file_path, ()))
        if dependencies:
            reasons.append(f"Has {len(dependencies)} dependencies")
        if references:
            reasons.append(f"Referenced by {len(references)} files")

        is_core_config = self.is_core_config(file_path)
        if is_core_config:
            reasons.append("Core configuration file")

        is_migration = self.is_migration(file_path)
        if is_migration:
            reasons.append("Database migration file")

        is_entry = self.is_entry_point(file_path)

        essential = (
            is_autoload
            or is_tooling
            or is_core_config
            or is_migration
            or len(dependencies) > 3
            or len(references) > 2
            or is_entry
        )
        if is_entry:
            reasons.append("Application entry point")

        confidence = 0
        if is_autoload:
            confidence += W_AUTOLOAD
        if is_tooling:
            confidence += W_TOOLING
        if is_core_config:
            confidence += W_CORE_CONFIG
        if is_migration:
            confidence += W_MIGRATION
        confidence += min(20, len(dependencies) * 3)
        confidence += min(15, len(references) * 5)

        if not reasons:
            reasons.append("No dependency relationships found")

        return derive_result(
            file_path,
            Category.ESSENTIAL if essential else Category.UNCERTAIN,
            min(100, confidence),
            reasons,
            dependencies=dependencies,
            references=references,
            metadata={
                "is_autoload_file": is_autoload,
                "is_composer_required": is_tooling,
                "is_core_config": is_core_config,
                "is_migration": is_migration,
                "dependency_count": len(dependencies),
                "reference_count": len(references),
            },
        )

    # -----------------------------------------------------------------------
    # Path flags
    # -----------------------------------------------------------------------

    def is_autoload_file(self, file_path: str) -> bool:
        if not file_path.endswith(".php"):
            return False
        for directory in self.psr4.values():
            base = directory.strip().removeprefix("./").strip("/")
            if not base:
                # Namespace mapped onto the project root: top-level files only.
                if "/" not in file_path:
                    return True
                continue
            if file_path.startswith(base + "/"):
                return True
        return False

    @staticmethod
    def is_tooling_file(file_path: str) -> bool:
        return file_path in TOOLING_FILES or file_path.startswith("vendor/")

    @staticmethod
    def is_core_config(file_path: str) -> bool:
        return any(marker in file_path for marker in CORE_CONFIG_MARKERS)

    @staticmethod
    def is_migration(file_path: str) -> bool:
        return (
            "database/migrations/" in file_path
            or "migrations/" in file_path
            or ("database/" in file_path and "migration" in file_path)
        )

    @staticmethod
    def is_entry_point(file_path: str) -> bool:
        return (
            "public/index.php" in file_path
            or "public/api.php" in file_path
            or posixpath.basename(file_path) == "index.php"
        )

    # -----------------------------------------------------------------------
    # Graph
    # -----------------------------------------------------------------------

    def dependency_graph(self) -> Dict[str, Set[str]]:
        """Forward edges for every PHP file; built once, on first use."""
        if self._graph is None:
            php_files = self.sources.find_files(["php"])
            known = set(php_files)
            graph: Dict[str, Set[str]] = {}
            reverse: Dict[str, Set[str]] = {}
            for rel_path in php_files:
                edges = self.scan_dependencies(rel_path, known)
                graph[rel_path] = edges
                for target in edges:
                    reverse.setdefault(target, set()).add(rel_path)
            self._graph = graph
            self._reverse = reverse
            logger.debug(
                "Dependency graph built: %d files, %d edges",
                len(graph),
                sum(len(e) for e in graph.values()),
            )
        return self._graph

    def scan_dependencies(self, file_path: str, known: Optional[Set[str]] = None) -> Set[str]:
        """
        Statically extract the project files ``file_path`` depends on.

        ``known`` is the set of project PHP files; targets outside it are kept
        only when they exist on disk (e.g. included templates).
        """
        if not is_php_file(file_path):
            return set()
        content = self.sources.content(file_path)
        if content is None:
            return set()

        candidates: Set[str] = set()

        for match in USE_RE.finditer(content):
            statement = match.group(1).strip()
            # use function Foo\bar; use Foo\Bar as Baz;
            statement = re.sub(r"^(function|const)\s+", "", statement)
            statement = re.split(r"\s+as\s+", statement, flags=re.IGNORECASE)[0]
            if "{" in statement:
                continue
            candidates.add(self.namespace_to_path(statement))

        for match in INCLUDE_RE.finditer(content):
            candidates.add(resolve_include_path(match.group(1), file_path))

        for match in CLASS_RE.finditer(content):
            class_name = match.group(1) or match.group(2)
            if class_name and class_name.lower() not in IGNORED_CLASS_TOKENS:
                candidates.add(self.namespace_to_path(class_name))

        candidates.discard(file_path)
        return {c for c in candidates if c and self._is_project_file(c, known)}

    def namespace_to_path(self, namespace: str) -> str:
        namespace = namespace.strip().lstrip("\\")
        for prefix, directory in self.psr4.items():
            prefix = prefix.rstrip("\\") + "\\"
            if namespace.startswith(prefix):
                relative = namespace[len(prefix):].replace("\\", "/")
                base = directory.rstrip("/")
                path = f"{base}/{relative}.php" if base else f"{relative}.php"
                return path.lstrip("/")
        return namespace.replace("\\", "/") + ".php"

    def _is_project_file(self, rel_path: str, known: Optional[Set[str]]) -> bool:
        if known is not None and rel_path in known:
            return True
        return self.fs.is_file(self.project_root / rel_path)

    def _load_psr4(self) -> Dict[str, str]:
        composer_path = self.project_root / "composer.json"
        if not self.fs.exists(composer_path):
            return {}
        try:
            config = json.loads(self.fs.read_text(composer_path))
        except (OSError, ValueError) as exc:
            logger.warning("Cannot read composer.json: %s", exc)
            return {}
        if not isinstance(config, dict):
            return {}

        namespaces: Dict[str, str] = {}
        for section in ("autoload", "autoload-dev"):
            block = config.get(section)
            psr4 = block.get("psr-4") if isinstance(block, dict) else None
            if not isinstance(psr4, dict):
                continue
            for prefix, directory in psr4.items():
                # A namespace may map to several directories; the first one wins.
                if isinstance(directory, list):
                    directory = directory[0] if directory else ""
                namespaces[str(prefix)] = str(directory)
        return namespaces
