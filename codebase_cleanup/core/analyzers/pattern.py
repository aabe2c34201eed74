"""
Naming-convention analyzer.

Responsibilities:
- Match the project-relative path against curated regex families (test,
  debug, backup, documentation, temporary, development script and
  project-specific report names).
- Look the file extension and top-level directory up in hint tables.
- Combine them into one verdict:
  * any non-essential family match -> NON_ESSENTIAL at the highest family
    confidence; otherwise the essential whitelist may force ESSENTIAL (85);
  * an extension or directory hint that is not UNCERTAIN sets the category
    and can only raise the confidence;
  * nothing matched -> UNCERTAIN at 10.

The tables are plain data so they can be tested and extended on their own.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Pattern, Sequence, Tuple

from ..models import Category, FileAnalysisResult, derive_result

NO_MATCH_CONFIDENCE = 10
ESSENTIAL_CONFIDENCE = 85
FALLBACK_FAMILY_CONFIDENCE = 50

# ---------------------------------------------------------------------------
# Tables
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PatternFamily:
    name: str
    reason: str
    confidence: int
    patterns: Tuple[Pattern[str], ...]

    def matches(self, file_path: str) -> bool:
        return any(p.search(file_path) for p in self.patterns)


@dataclass(frozen=True)
class PathHint:
    """Extension or directory hint: (type, category hint, confidence, reason)."""
    type: str
    category: Category
    confidence: int
    reason: str


def _compile(*patterns: str, ignore_case: bool = False) -> Tuple[Pattern[str], ...]:
    flags = re.IGNORECASE if ignore_case else 0
    return tuple(re.compile(p, flags) for p in patterns)


def _family(name: str, reason: str, confidence: int, *groups: Tuple[Pattern[str], ...]) -> PatternFamily:
    return PatternFamily(name, reason, confidence, tuple(p for group in groups for p in group))


PATTERN_FAMILIES: Sequence[PatternFamily] = (
    _family(
        "test", "Matches test file pattern", 85,
        _compile(r"^test[_-].*\.php$", r".*[_-]test\.php$", r"^.*test.*\.html$", r"^test[_-].*\.html$", ignore_case=True),
        _compile(r".*Test\.php$", r"^tests/", r"/tests/", r"^test/", r"/test/"),
    ),
    _family(
        "debug", "Matches debug file pattern", 90,
        _compile(r"^debug[_-].*\.(php|html|js)$", r".*[_-]debug\.(php|html|js)$", r"^.*debug.*\.html$",
                 r"\.debug\.(php|html|js)$", ignore_case=True),
        _compile(r"^debug/", r"/debug/"),
    ),
    _family(
        "backup", "Matches backup file pattern", 95,
        _compile(r".*[_-]backup\.(php|html|js|css)$", r".*\.backup$", r".*\.bak$", r".*\.old$", r".*~$",
                 r".*\.orig$", r".*[_-]copy\.(php|html|js|css)$", ignore_case=True),
        _compile(r"^backup/", r"/backup/", r"^backups/", r"/backups/", r"^old/", r"/old/"),
    ),
    _family(
        "documentation", "Matches documentation file pattern", 80,
        _compile(r".*\.md$", r".*\.txt$", r".*\.docx?$", r".*\.pdf$", r"^readme", r"^changelog", r"^license",
                 r"^contributing", r".*report.*\.(md|docx?|pdf)$", r".*artifact.*\.(md|docx?|pdf)$",
                 r"^anms.*report.*\.(md|docx?)$", r"^anms.*artifact.*\.(md|docx?)$", ignore_case=True),
        _compile(r"^docs/", r"/docs/", r"^documentation/", r"/documentation/", r"^doc/", r"/doc/"),
    ),
    _family(
        "temporary", "Matches temporary file pattern", 95,
        _compile(r".*\.tmp$", r".*\.temp$", r".*\.cache$", r".*\.log$", r".*\.swp$", r".*\.swo$",
                 r"\.DS_Store$", r"Thumbs\.db$", ignore_case=True),
        _compile(r"^tmp/", r"/tmp/", r"^temp/", r"/temp/", r"^cache/", r"/cache/"),
    ),
    _family(
        "development", "Matches development script pattern", 75,
        _compile(r"^setup[_-].*\.(php|sh)$", r"^install[_-].*\.(php|sh)$", r"^build[_-].*\.(php|sh)$",
                 r"^deploy[_-].*\.(php|sh)$", r"^reset[_-].*\.(php|sh)$", r"^check[_-].*\.(php|sh)$",
                 r"^validate[_-].*\.(php|sh)$", r"^troubleshoot.*\.(php|sh)$", r".*\.sh$", ignore_case=True),
        _compile(r"^scripts/", r"/scripts/", r"^tools/", r"/tools/", r"^utils/", r"/utils/"),
    ),
    _family(
        "project_specific", "Matches project-specific pattern", 85,
        _compile(r"^anms[_-].*report.*\.(md|docx?)$", r"^anms[_-].*artifact.*\.(md|docx?)$",
                 r"^artifact[_-]report.*\.(md|docx?)$", r"^complete[_-]system[_-]status\.(md|txt)$",
                 r"^final[_-]website[_-]status\.(md|txt)$", r"^database[_-]integration[_-]status\.(md|txt)$",
                 r"^backend[_-]performance[_-]optimizations\.(md|txt)$", r"^fixes[_-]and[_-]solutions\.(md|txt)$",
                 r"^project[_-]setup\.(md|txt)$", r"^setup[_-]instructions\.(md|txt)$",
                 r".*cookies.*\.txt$", r".*\.log$", r"server.*\.log$", ignore_case=True),
        _compile(r"^z-project-knowledge/", r"^second_major review-info/", r"^Office-Word-MCP-Server/"),
    ),
)

ESSENTIAL_PATTERNS: Tuple[Pattern[str], ...] = _compile(
    r"^src/",
    r"^public/index\.php$",
    r"^public/api\.php$",
    r"^database/migrations/",
    r"^database/seeds/",
    r"^composer\.json$",
    r"^composer\.lock$",
    r"^\.env$",
    r"^\.env\.example$",
    r"^docker-compose\.yml$",
    r"^Dockerfile$",
    r"^phpunit\.xml$",
    r"^phpstan\.neon$",
    r"^phpcs\.xml$",
)

_U = Category.UNCERTAIN
_N = Category.NON_ESSENTIAL
_E = Category.ESSENTIAL

EXTENSION_HINTS: Dict[str, PathHint] = {
    "php": PathHint("php_source", _U, 30, "PHP source file"),
    "js": PathHint("javascript", _U, 30, "JavaScript file"),
    "css": PathHint("stylesheet", _U, 30, "CSS stylesheet"),
    "html": PathHint("html", _U, 30, "HTML file"),
    "json": PathHint("json", _U, 40, "JSON configuration file"),
    "yml": PathHint("yaml", _U, 40, "YAML configuration file"),
    "yaml": PathHint("yaml", _U, 40, "YAML configuration file"),
    "xml": PathHint("xml", _U, 40, "XML configuration file"),
    "md": PathHint("markdown", _N, 70, "Markdown documentation"),
    "txt": PathHint("text", _N, 60, "Text file"),
    "doc": PathHint("document", _N, 80, "Word document"),
    "docx": PathHint("document", _N, 80, "Word document"),
    "pdf": PathHint("document", _N, 80, "PDF document"),
    "log": PathHint("log", _N, 85, "Log file"),
    "tmp": PathHint("temporary", _N, 95, "Temporary file"),
    "temp": PathHint("temporary", _N, 95, "Temporary file"),
    "cache": PathHint("cache", _N, 90, "Cache file"),
    "bak": PathHint("backup", _N, 95, "Backup file"),
    "backup": PathHint("backup", _N, 95, "Backup file"),
    "old": PathHint("backup", _N, 90, "Old/backup file"),
    "orig": PathHint("backup", _N, 90, "Original backup file"),
    "sh": PathHint("shell_script", _N, 70, "Shell script"),
    "png": PathHint("image", _U, 20, "Image file"),
    "jpg": PathHint("image", _U, 20, "Image file"),
    "jpeg": PathHint("image", _U, 20, "Image file"),
    "gif": PathHint("image", _U, 20, "Image file"),
    "svg": PathHint("image", _U, 30, "SVG image file"),
}

# First matching prefix wins; order matters.
DIRECTORY_HINTS: List[Tuple[str, PathHint]] = [
    ("src/", PathHint("source", _E, 90, "In source code directory")),
    ("public/", PathHint("public", _E, 85, "In public web directory")),
    ("database/migrations/", PathHint("migration", _E, 95, "Database migration")),
    ("database/seeds/", PathHint("seed", _E, 85, "Database seed")),
    ("config/", PathHint("config", _E, 85, "Configuration directory")),
    ("bootstrap/", PathHint("bootstrap", _E, 85, "Bootstrap directory")),
    ("tests/", PathHint("test", _N, 80, "In test directory")),
    ("test/", PathHint("test", _N, 80, "In test directory")),
    ("docs/", PathHint("documentation", _N, 85, "In documentation directory")),
    ("documentation/", PathHint("documentation", _N, 85, "In documentation directory")),
    ("backup/", PathHint("backup", _N, 95, "In backup directory")),
    ("backups/", PathHint("backup", _N, 95, "In backup directory")),
    ("tmp/", PathHint("temporary", _N, 95, "In temporary directory")),
    ("temp/", PathHint("temporary", _N, 95, "In temporary directory")),
    ("cache/", PathHint("cache", _N, 90, "In cache directory")),
    ("logs/", PathHint("logs", _N, 85, "In logs directory")),
    ("z-project-knowledge/", PathHint("project_docs", _N, 90, "In project knowledge directory")),
    ("second_major review-info/", PathHint("project_docs", _N, 90, "In review info directory")),
    ("Office-Word-MCP-Server/", PathHint("external_project", _N, 95, "External project directory")),
]


# ---------------------------------------------------------------------------
# Analyzer
# ---------------------------------------------------------------------------

class PatternAnalyzer:
    """Classifies files from naming conventions alone; needs no project access."""

    name = "pattern"

    def __init__(
        self,
        families: Sequence[PatternFamily] = PATTERN_FAMILIES,
        essential_patterns: Sequence[Pattern[str]] = ESSENTIAL_PATTERNS,
        extension_hints: Optional[Dict[str, PathHint]] = None,
        directory_hints: Optional[List[Tuple[str, PathHint]]] = None,
    ) -> None:
        self.families = tuple(families)
        self.essential_patterns = tuple(essential_patterns)
        self.extension_hints = EXTENSION_HINTS if extension_hints is None else extension_hints
        self.directory_hints = DIRECTORY_HINTS if directory_hints is None else directory_hints

    def priority(self) -> int:
        return 70

    def can_analyze(self, file_path: str) -> bool:
        return True

    def matched_families(self, file_path: str) -> List[PatternFamily]:
        return [f for f in self.families if f.matches(file_path)]

    def is_essential_path(self, file_path: str) -> bool:
        return any(p.search(file_path) for p in self.essential_patterns)

    def extension_hint(self, file_path: str) -> Optional[PathHint]:
        name = file_path.rsplit("/", 1)[-1]
        if "." not in name:
            return None
        return self.extension_hints.get(name.rsplit(".", 1)[-1].lower())

    def directory_hint(self, file_path: str) -> Optional[PathHint]:
        for prefix, hint in self.directory_hints:
            if file_path.startswith(prefix):
                return hint
        return None

    def analyze(self, file_path: str) -> FileAnalysisResult:
        reasons: List[str] = []
        metadata: Dict[str, object] = {}
        category = Category.UNCERTAIN
        confidence = 0

        matched = self.matched_families(file_path)
        if matched:
            reasons.extend(f.reason for f in matched)
            # The last matching family names the pattern type.
            metadata["pattern_type"] = matched[-1].name
            metadata["pattern_families"] = [f.name for f in matched]
            category = Category.NON_ESSENTIAL
            confidence = max(f.confidence for f in matched) or FALLBACK_FAMILY_CONFIDENCE
        elif self.is_essential_path(file_path):
            category = Category.ESSENTIAL
            confidence = ESSENTIAL_CONFIDENCE
            reasons.append("Matches essential file pattern")

        for key, hint in (
            ("file_type", self.extension_hint(file_path)),
            ("directory_type", self.directory_hint(file_path)),
        ):
            if hint is None:
                continue
            reasons.append(hint.reason)
            metadata[key] = hint.type
            if hint.category is not Category.UNCERTAIN:
                category = hint.category
                confidence = max(confidence, hint.confidence)

        if not reasons:
            reasons.append("No specific patterns matched")
            confidence = NO_MATCH_CONFIDENCE

        return derive_result(file_path, category, confidence, reasons, metadata=metadata)
