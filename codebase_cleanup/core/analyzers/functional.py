"""
Functional-role analyzer.

Responsibilities:
- Infer a file's structural role purely from its path (domain entity,
  application service, controller, migration, stylesheet, test, ...).
- Infer its environment from two disjoint keyword lists (development,
  production, or both).
- Detect configuration files and utility/tool scripts by name.

Category rule: ESSENTIAL for entry points, core roles, always-essential
configuration types and production files; NON_ESSENTIAL for development
files, tests, documentation and debug/test/troubleshooting utilities;
UNCERTAIN otherwise. Confidence is a weighted sum, floor 10, ceiling 100.
"""

from __future__ import annotations

import posixpath
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from ..fs import LocalFileSystem
from ..models import Category, FileAnalysisResult, derive_result

ENTRY_POINTS = frozenset({
    "public/index.php",
    "public/api.php",
    "public/login.php",
    "public/register.php",
    "public/admin.php",
    "index.php",
    "api.php",
})

CONFIG_TYPES: Dict[str, str] = {
    "composer.json": "dependency_management",
    "composer.lock": "dependency_lock",
    ".env": "environment",
    ".env.example": "environment_template",
    "docker-compose.yml": "container_orchestration",
    "Dockerfile": "container_definition",
    "phpunit.xml": "testing_framework",
    "phpstan.neon": "static_analysis",
    "phpcs.xml": "code_standards",
    ".gitignore": "version_control",
    "README.md": "project_documentation",
    "nginx.conf": "web_server",
    "apache.conf": "web_server",
}

ESSENTIAL_CONFIG_TYPES = frozenset({
    "dependency_management",
    "dependency_lock",
    "environment",
    "container_orchestration",
    "container_definition",
})

# Matched against "/" + path so top-level directories and names count too.
DEVELOPMENT_MARKERS = (
    "/test/",
    "/tests/",
    "/debug/",
    "phpunit.xml",
    "phpstan.neon",
    "phpcs.xml",
    ".env.example",
    "/setup",
    "/install",
    "/build",
    "/deploy",
    "troubleshoot",
    "validate",
    "check_status",
    "reset_",
    "quick-start",
)

PRODUCTION_MARKERS = (
    "src/",
    "public/index.php",
    "public/api.php",
    "database/migrations/",
    "composer.json",
    "composer.lock",
    ".env",
    "docker-compose.yml",
    "Dockerfile",
)

# Substring -> utility subtype; first match wins.
UTILITY_TYPES: List[Tuple[str, str]] = [
    ("setup", "setup_script"),
    ("install", "installation_script"),
    ("build", "build_script"),
    ("deploy", "deployment_script"),
    ("reset", "reset_script"),
    ("check", "health_check"),
    ("validate", "validation_script"),
    ("troubleshoot", "troubleshooting_tool"),
    ("migrate", "migration_runner"),
    ("seed", "data_seeder"),
    ("test_", "test_utility"),
    ("debug", "debug_utility"),
]

NON_ESSENTIAL_UTILITIES = frozenset({"test_utility", "debug_utility", "troubleshooting_tool"})

CORE_ROLES = frozenset({"domain_entity", "application_service", "infrastructure", "controller", "migration"})

# role -> (reason, layer, importance)
ROLE_DESCRIPTIONS: Dict[str, Tuple[str, Optional[str], str]] = {
    "domain_entity": ("Core domain entity - essential for business logic", "domain", "critical"),
    "application_service": ("Application service - coordinates business operations", "application", "high"),
    "infrastructure": ("Infrastructure component - handles external concerns", "infrastructure", "high"),
    "controller": ("Controller - handles HTTP requests", "presentation", "high"),
    "migration": ("Database migration - essential for schema management", None, "critical"),
    "seed": ("Database seed - provides initial data", None, "medium"),
    "template": ("HTML template - part of user interface", None, "medium"),
    "web_entry": ("Web entry point - accessible via HTTP", None, "high"),
    "test": ("Test file - for quality assurance", None, "low"),
    "configuration": ("Configuration file - defines application settings", None, "high"),
    "documentation": ("Documentation file - for reference", None, "low"),
}

ROLE_CONFIDENCE: Dict[str, int] = {
    "domain_entity": 30,
    "migration": 30,
    "application_service": 25,
    "infrastructure": 25,
    "controller": 25,
    "stylesheet": 15,
    "javascript": 15,
    "template": 15,
    "test": 25,
    "documentation": 25,
    "script": 20,
}

CONFIG_CONFIDENCE: Dict[str, int] = {
    "dependency_management": 35,
    "dependency_lock": 35,
    "environment": 30,
    "container_orchestration": 30,
    "testing_framework": 25,
    "static_analysis": 25,
}

MAIN_PAGES = ("public/index.php", "public/dashboard.php", "public/landing.php")


def config_type(file_path: str) -> Optional[str]:
    if file_path in CONFIG_TYPES:
        return CONFIG_TYPES[file_path]
    if file_path.startswith("config/"):
        return "application_config"
    if file_path.startswith("bootstrap/"):
        return "bootstrap"
    return None


def functional_role(file_path: str) -> str:
    if "src/Domain/" in file_path:
        return "domain_entity"
    if "src/Application/" in file_path:
        return "application_service"
    if "src/Infrastructure/" in file_path:
        return "infrastructure"
    if "Controller" in file_path or "public/api/" in file_path:
        return "controller"
    if "database/migrations/" in file_path:
        return "migration"
    if "database/seeds/" in file_path:
        return "seed"
    if file_path.endswith(".css"):
        return "stylesheet"
    if file_path.endswith(".js"):
        return "javascript"
    if file_path.endswith(".html"):
        return "template"
    if file_path.startswith("public/") and file_path.endswith(".php"):
        return "web_entry"
    if "test" in file_path or "Test" in file_path:
        return "test"
    if config_type(file_path):
        return "configuration"
    if file_path.endswith((".md", ".txt", ".docx")):
        return "documentation"
    if file_path.endswith(".sh") or "script" in file_path:
        return "script"
    return "unknown"


def environment(file_path: str) -> str:
    padded = "/" + file_path
    if any(marker in padded for marker in DEVELOPMENT_MARKERS):
        return "development"
    if any(marker in file_path for marker in PRODUCTION_MARKERS):
        return "production"
    return "both"


def utility_type(file_path: str) -> Optional[str]:
    lowered = file_path.lower()
    for marker, kind in UTILITY_TYPES:
        if marker in lowered:
            return kind
    return None


def script_type(file_path: str) -> str:
    if "setup" in file_path or "install" in file_path:
        return "setup"
    if "deploy" in file_path or "build" in file_path:
        return "deployment"
    if "test" in file_path or "check" in file_path:
        return "testing"
    if "reset" in file_path or "clean" in file_path:
        return "maintenance"
    if "start" in file_path or "run" in file_path:
        return "execution"
    return "utility"


class FunctionalAnalyzer:
    name = "functional"

    def __init__(self, project_root: Path, fs: Optional[LocalFileSystem] = None) -> None:
        self.project_root = Path(project_root)
        self.fs = fs or LocalFileSystem()
        self._main_pages: Optional[List[str]] = None

    def priority(self) -> int:
        return 75

    def can_analyze(self, file_path: str) -> bool:
        return True

    def analyze(self, file_path: str) -> FileAnalysisResult:
        reasons: List[str] = []
        role = functional_role(file_path)
        metadata: Dict[str, object] = {"functional_role": role}

        role_reason, role_metadata = self._describe_role(file_path, role)
        reasons.append(role_reason)
        metadata.update(role_metadata)

        is_entry = file_path in ENTRY_POINTS
        if is_entry:
            reasons.append("Core application entry point")
            metadata["entry_point"] = True

        config = config_type(file_path)
        if config:
            reasons.append(f"Configuration file ({config})")
            metadata["config_type"] = config

        env = environment(file_path)
        metadata["environment"] = env
        if env == "development":
            reasons.append("Development-only file")
        elif env == "production":
            reasons.append("Production-required file")

        utility = utility_type(file_path)
        if utility:
            reasons.append(f"Utility/tool file ({utility})")
            metadata["utility_type"] = utility

        return derive_result(
            file_path,
            self._category(role, is_entry, config, env, utility),
            self._confidence(role, is_entry, config, env),
            reasons,
            metadata=metadata,
        )

    # -----------------------------------------------------------------------
    # Internals
    # -----------------------------------------------------------------------

    def _describe_role(self, file_path: str, role: str) -> Tuple[str, Dict[str, object]]:
        metadata: Dict[str, object] = {}

        if role in ("stylesheet", "javascript"):
            active = self._asset_is_active(file_path)
            metadata["importance"] = "medium" if active else "low"
            if role == "stylesheet":
                reason = "Active stylesheet - used in application UI" if active else "Stylesheet - may be unused"
            else:
                reason = "Active JavaScript - provides UI functionality" if active else "JavaScript file - may be unused"
            return reason, metadata

        if role == "script":
            kind = script_type(file_path)
            metadata["script_type"] = kind
            metadata["importance"] = "medium" if kind == "deployment" else "low"
            return f"Script file ({kind})", metadata

        if role not in ROLE_DESCRIPTIONS:
            metadata["importance"] = "unknown"
            return "Unknown functional role", metadata

        reason, layer, importance = ROLE_DESCRIPTIONS[role]
        if layer:
            metadata["layer"] = layer
        metadata["importance"] = importance
        if role in ("migration", "seed"):
            metadata["database_related"] = True
        elif role == "web_entry":
            metadata["entry_point"] = True
        elif role == "test":
            metadata["development_only"] = True
        return reason, metadata

    def _asset_is_active(self, file_path: str) -> bool:
        if file_path.startswith("public/assets/"):
            return True
        base_name = posixpath.basename(file_path)
        return any(base_name in page for page in self._load_main_pages())

    def _load_main_pages(self) -> List[str]:
        if self._main_pages is None:
            pages: List[str] = []
            for rel_path in MAIN_PAGES:
                absolute = self.project_root / rel_path
                if not self.fs.is_file(absolute):
                    continue
                try:
                    pages.append(self.fs.read_text(absolute))
                except OSError:
                    continue
            self._main_pages = pages
        return self._main_pages

    @staticmethod
    def _category(
        role: str,
        is_entry: bool,
        config: Optional[str],
        env: str,
        utility: Optional[str],
    ) -> Category:
        if is_entry or role in CORE_ROLES:
            return Category.ESSENTIAL
        if config in ESSENTIAL_CONFIG_TYPES:
            return Category.ESSENTIAL
        if env == "production":
            return Category.ESSENTIAL
        if env == "development" or role in ("test", "documentation"):
            return Category.NON_ESSENTIAL
        if utility in NON_ESSENTIAL_UTILITIES:
            return Category.NON_ESSENTIAL
        return Category.UNCERTAIN

    @staticmethod
    def _confidence(role: str, is_entry: bool, config: Optional[str], env: str) -> int:
        confidence = 0
        if is_entry:
            confidence += 40
        if role in ("domain_entity", "migration"):
            confidence += 35
        elif role in ("application_service", "infrastructure", "controller"):
            confidence += 30
        if config:
            confidence += CONFIG_CONFIDENCE.get(config, 20)
        if env == "production":
            confidence += 25
        elif env == "development":
            confidence += 20
        confidence += ROLE_CONFIDENCE.get(role, 10)
        return min(100, max(10, confidence))
