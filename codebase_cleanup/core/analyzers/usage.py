"""
Usage analyzer.

Responsibilities:
- On first use, scan the tree once and cache:
  * asset references: which PHP/HTML files mention each CSS/JS/image path;
  * migration ordering: 3-digit filename prefix and ``Schema::table``
    dependencies of every file under database/migrations/;
  * API endpoints: superglobal access and ``case 'x'`` literals in files
    under public/api/;
  * include references: resolved include/require targets of every PHP file.
- Per file, combine those with template and entry-point checks, and flag a
  file as potentially unused when nothing refers to it and its name looks
  orphaned.

Category rule: ESSENTIAL for entry points, migrations, API definers, files
with at least one asset reference or more than one include reference, and
referenced page templates; NON_ESSENTIAL when potentially unused;
UNCERTAIN otherwise.
"""

from __future__ import annotations

import logging
import posixpath
import re
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set

from ..fs import LocalFileSystem
from ..models import Category, FileAnalysisResult, derive_result
from .common import INCLUDE_RE, SourceIndex, resolve_include_path

logger = logging.getLogger(__name__)

ASSET_PATTERNS = (
    re.compile(r"""href=["']([^"']+\.css)["']"""),
    re.compile(r"""src=["']([^"']+\.js)["']"""),
    re.compile(r"""src=["']([^"']+\.(?:png|jpg|jpeg|gif|svg))["']"""),
    re.compile(r"""background-image:\s*url\(["']?([^"')]+\.(?:png|jpg|jpeg|gif|svg))["']?\)"""),
)

MIGRATION_ORDER_RE = re.compile(r"(\d{3})_")
SCHEMA_TABLE_RE = re.compile(r"""Schema::table\(['"]([^'"]+)['"]""")
SUPERGLOBAL_RE = re.compile(r"\$_(?:GET|POST|PUT|DELETE)\[")
CASE_RE = re.compile(r"""case\s+["']([^"']+)["']""")

ENTRY_POINTS: Dict[str, str] = {
    "public/index.php": "main_entry",
    "public/api.php": "api_entry",
    "public/login.php": "auth_entry",
    "public/register.php": "auth_entry",
    "public/admin.php": "admin_entry",
    "index.php": "main_entry",
}

NEVER_UNUSED = frozenset({"composer.json", ".env", "docker-compose.yml", "phpunit.xml"})

UNUSED_PATTERNS = tuple(
    re.compile(p)
    for p in (
        r"test[_-].*\.php$",
        r".*[_-]test\.php$",
        r"debug.*\.php$",
        r".*debug\.php$",
        r"backup.*\.(php|html|js|css)$",
        r".*backup\.(php|html|js|css)$",
        r"old.*\.(php|html|js|css)$",
        r".*\.old$",
        r".*\.bak$",
    )
)

TEMPLATE_MARKERS = ("template", "view", "partial", "component")
PAGE_TEMPLATES = ("dashboard.php", "landing.php")


def normalize_asset_path(path: str) -> str:
    """Strip the leading slash and any query string from an asset URL."""
    path = path.lstrip("/")
    return path.split("?", 1)[0]


class UsageAnalyzer:
    name = "usage"

    def __init__(
        self,
        project_root: Path,
        fs: Optional[LocalFileSystem] = None,
        excludes: Optional[Iterable[str]] = None,
    ) -> None:
        self.project_root = Path(project_root)
        self.fs = fs or LocalFileSystem()
        self.sources = SourceIndex(self.project_root, self.fs, excludes)

        self.asset_references: Dict[str, List[str]] = {}
        self.migrations: Dict[str, Dict[str, object]] = {}
        self.api_endpoints: Dict[str, List[str]] = {}
        self.include_references: Dict[str, List[str]] = {}
        self._php_files: List[str] = []
        self._cache_built = False

    def priority(self) -> int:
        return 80

    def can_analyze(self, file_path: str) -> bool:
        return True

    # -----------------------------------------------------------------------
    # Analysis
    # -----------------------------------------------------------------------

    def analyze(self, file_path: str) -> FileAnalysisResult:
        self.build_cache()

        reasons: List[str] = []
        references: Set[str] = set()
        metadata: Dict[str, object] = {}
        confidence = 0

        asset_refs = self.asset_usage(file_path)
        if asset_refs:
            reasons.append(f"Referenced in {len(asset_refs)} files as asset")
            references.update(asset_refs)
            metadata["asset_references"] = asset_refs
            confidence += min(25, len(asset_refs) * 5)

        migration = self.migrations.get(file_path)
        if migration is not None:
            reasons.append("Active database migration")
            metadata["migration_order"] = migration["order"]
            metadata["migration_dependencies"] = migration["dependencies"]
            confidence += 35

        endpoints = self.api_endpoints.get(file_path)
        if endpoints:
            reasons.append(f"Defines {len(endpoints)} API endpoints")
            metadata["api_endpoints"] = endpoints
            confidence += 30

        include_refs = self.include_references.get(file_path, [])
        if include_refs:
            reasons.append(f"Included/required by {len(include_refs)} files")
            references.update(include_refs)
            metadata["include_references"] = include_refs
            confidence += min(20, len(include_refs) * 3)

        template_type, template_refs = self.template_usage(file_path)
        if template_type:
            reasons.append("Used as template or view")
            references.update(template_refs)
            metadata["template_usage"] = template_type
            confidence += 25

        entry_type = ENTRY_POINTS.get(file_path)
        if entry_type:
            reasons.append("Application entry point")
            metadata["entry_point_type"] = entry_type
            confidence += 40

        unused = self.is_potentially_unused(file_path, references)
        if unused:
            reasons.append("No references found - potentially unused")
            metadata["potentially_unused"] = True
            confidence += 30

        if entry_type or migration is not None or endpoints:
            category = Category.ESSENTIAL
        elif asset_refs or len(include_refs) > 1 or template_refs:
            category = Category.ESSENTIAL
        elif unused:
            category = Category.NON_ESSENTIAL
        else:
            category = Category.UNCERTAIN

        if not reasons:
            reasons.append("No specific usage patterns detected")

        return derive_result(
            file_path,
            category,
            min(100, max(10, confidence)),
            reasons,
            references=references,
            metadata=metadata,
        )

    def asset_usage(self, file_path: str) -> List[str]:
        variations = [
            file_path,
            "assets/" + file_path,
            "public/" + file_path,
            "public/assets/" + file_path,
            file_path.lstrip("/"),
        ]
        # Assets under public/ are usually referenced relative to the web root.
        if file_path.startswith("public/"):
            variations.append(file_path[len("public/"):])
        for candidate in variations:
            if candidate in self.asset_references:
                return sorted(set(self.asset_references[candidate]))
        return []

    def template_usage(self, file_path: str):
        """Return ``(usage_type, referencing files)``; usage_type is None for non-templates."""
        usage_type: Optional[str] = None
        references: List[str] = []

        if file_path.endswith(".php") and any(m in file_path for m in TEMPLATE_MARKERS):
            usage_type = "template"

        if any(page in file_path for page in PAGE_TEMPLATES):
            usage_type = "page_template"
            base_name = posixpath.basename(file_path)
            for php_file in self._php_files:
                if php_file == file_path:
                    continue
                content = self.sources.content(php_file)
                if content and base_name in content:
                    references.append(php_file)

        return usage_type, references

    @staticmethod
    def is_potentially_unused(file_path: str, references: Iterable[str]) -> bool:
        if any(True for _ in references):
            return False
        if file_path in ENTRY_POINTS or file_path in NEVER_UNUSED:
            return False
        # src/ is PSR-4 autoloaded and assumed used.
        if file_path.startswith("src/"):
            return False
        return any(p.search(file_path) for p in UNUSED_PATTERNS)

    # -----------------------------------------------------------------------
    # Cache
    # -----------------------------------------------------------------------

    def build_cache(self) -> None:
        if self._cache_built:
            return
        self._php_files = self.sources.find_files(["php"])
        self._build_asset_references()
        self._build_migrations()
        self._build_api_endpoints()
        self._build_include_references()
        self._cache_built = True
        logger.debug(
            "Usage cache built: %d assets, %d migrations, %d API files, %d included files",
            len(self.asset_references),
            len(self.migrations),
            len(self.api_endpoints),
            len(self.include_references),
        )

    def _build_asset_references(self) -> None:
        for rel_path in self.sources.find_files(["php", "html"]):
            content = self.sources.content(rel_path)
            if content is None:
                continue
            for pattern in ASSET_PATTERNS:
                for match in pattern.finditer(content):
                    asset = normalize_asset_path(match.group(1))
                    self.asset_references.setdefault(asset, []).append(rel_path)

    def _build_migrations(self) -> None:
        for rel_path in self.sources.find_files(["php"], "database/migrations/"):
            content = self.sources.content(rel_path)
            if content is None:
                continue
            match = MIGRATION_ORDER_RE.search(posixpath.basename(rel_path))
            if not match:
                continue
            self.migrations[rel_path] = {
                "order": int(match.group(1)),
                "dependencies": sorted(set(SCHEMA_TABLE_RE.findall(content))),
            }

    def _build_api_endpoints(self) -> None:
        for rel_path in self.sources.find_files(["php"], "public/api/"):
            content = self.sources.content(rel_path)
            if content is None:
                continue
            endpoints: List[str] = []
            if SUPERGLOBAL_RE.search(content):
                endpoints.append(posixpath.splitext(posixpath.basename(rel_path))[0])
            endpoints.extend(CASE_RE.findall(content))
            if endpoints:
                self.api_endpoints[rel_path] = endpoints

    def _build_include_references(self) -> None:
        for rel_path in self._php_files:
            content = self.sources.content(rel_path)
            if content is None:
                continue
            for match in INCLUDE_RE.finditer(content):
                target = resolve_include_path(match.group(1), rel_path)
                if target == rel_path:
                    continue
                refs = self.include_references.setdefault(target, [])
                if rel_path not in refs:
                    refs.append(rel_path)
