"""
Backup manifest for the codebase cleanup tool.

A BackupManifest is the durable record of one backup run:

- created_at: when the run started (timezone-aware, set once)
- moved_files: original path -> backup-relative path, for files that were
  physically moved
- analysis_results: the full classification snapshot used to pick the
  candidates, kept for audit even for files that stayed
- project_state: sha256 fingerprint over size, mtime and md5 of a fixed set
  of key project files
- statistics: derived counts, recomputed after every update
- errors: original path -> message, for files that failed to move
- restored_files: original path -> ISO timestamp of an explicit restore

A path never appears in both ``moved_files`` and ``errors``. The manifest
is persisted as JSON (to_dict / from_dict) and rendered as a Markdown
report (generate_report).
"""

from __future__ import annotations

import hashlib
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from .fs import LocalFileSystem, format_bytes
from .models import Action, Category, FileAnalysisResult

logger = logging.getLogger(__name__)

MOVED_FILES_DIR = "moved-files"
REPORTS_DIR = "reports"
MANIFEST_FILENAME = "manifest.json"
REPORT_FILENAME = "backup-report.md"

PROJECT_STATE_FILES = (
    "composer.json",
    "composer.lock",
    ".env",
    "docker-compose.yml",
    "phpunit.xml",
)

CATEGORY_TITLES = {
    Category.ESSENTIAL: "Essential Files (Kept)",
    Category.NON_ESSENTIAL: "Non-Essential Files (Moved)",
    Category.UNCERTAIN: "Uncertain Files (Review Required)",
}

REPORT_LIST_LIMIT = 5


def compute_project_state(project_root: Path, fs: Optional[LocalFileSystem] = None) -> str:
    """Fingerprint the key project files; missing files are left out."""
    fs = fs or LocalFileSystem()
    state: Dict[str, Dict[str, Any]] = {}
    for name in PROJECT_STATE_FILES:
        path = Path(project_root) / name
        if not fs.is_file(path):
            continue
        state[name] = {
            "size": fs.size(path),
            "mtime": int(fs.mtime(path)),
            "hash": fs.md5(path),
        }
    payload = json.dumps(state, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


class BackupManifest:
    """Record of a single backup transaction."""

    def __init__(
        self,
        files_to_move: Mapping[str, FileAnalysisResult],
        analysis_results: Mapping[str, FileAnalysisResult],
        project_root: Path,
        backup_dir: str = "backup",
        fs: Optional[LocalFileSystem] = None,
    ) -> None:
        self.fs = fs or LocalFileSystem()
        self.created_at: datetime = datetime.now(timezone.utc)
        self.project_root = Path(project_root)
        self.backup_dir = backup_dir.strip("/") or "backup"
        self.analysis_results: Dict[str, FileAnalysisResult] = dict(analysis_results)
        self.moved_files: Dict[str, str] = {}
        self.errors: Dict[str, str] = {}
        self.restored_files: Dict[str, str] = {}
        self.project_state = compute_project_state(self.project_root, self.fs)
        self.statistics: Dict[str, Any] = self._initial_statistics(files_to_move)
        self._update_statistics()

    @property
    def backup_root(self) -> Path:
        return self.project_root / self.backup_dir

    # -----------------------------------------------------------------------
    # Updates
    # -----------------------------------------------------------------------

    def record_moved(self, original_path: str, backup_path: str) -> None:
        self.errors.pop(original_path, None)
        self.moved_files[original_path] = backup_path
        self._update_statistics()

    def record_error(self, original_path: str, message: str) -> None:
        self.moved_files.pop(original_path, None)
        self.errors[original_path] = message
        self._update_statistics()

    def set_moved_files(self, moved_files: Mapping[str, str]) -> None:
        self.moved_files = dict(moved_files)
        for path in self.moved_files:
            self.errors.pop(path, None)
        self._update_statistics()

    def set_errors(self, errors: Mapping[str, str]) -> None:
        self.errors = dict(errors)
        for path in self.errors:
            self.moved_files.pop(path, None)
        self._update_statistics()

    def mark_restored(self, original_path: str, remove_entry: bool = False) -> None:
        """
        Record an explicit restore of ``original_path``.

        With ``remove_entry`` the file has left the backup store (restored by
        move) and its ``moved_files`` entry is dropped.
        """
        self.restored_files[original_path] = datetime.now(timezone.utc).isoformat()
        if remove_entry:
            self.moved_files.pop(original_path, None)
        self._update_statistics()
        logger.info(
            "Manifest updated: %s restored%s",
            original_path,
            " (removed from backup)" if remove_entry else "",
        )

    def carry_over(self, previous: "BackupManifest") -> List[str]:
        """
        Keep the files an earlier run left in the backup store.

        Their ``moved_files`` entries, restore records and analysis results
        are copied in, unless this manifest already accounts for the path.
        Carried files that were not candidates of this run count as planned
        moves, so the success rate stays a share of what the store holds.

        Returns the carried paths.
        """
        carried: List[str] = []
        for path, backup in previous.moved_files.items():
            if path in self.moved_files or path in self.errors:
                continue
            current = self.analysis_results.get(path)
            if current is None or not current.can_be_moved():
                self.statistics["planned_move_count"] = self.statistics.get("planned_move_count", 0) + 1
            if current is None and path in previous.analysis_results:
                self.analysis_results[path] = previous.analysis_results[path]
            if path in previous.restored_files:
                self.restored_files[path] = previous.restored_files[path]
            self.moved_files[path] = backup
            carried.append(path)

        self._update_statistics()
        if carried:
            logger.info("Carried %d files over from the previous backup", len(carried))
        return carried

    # -----------------------------------------------------------------------
    # Queries
    # -----------------------------------------------------------------------

    def get_backup_path(self, original_path: str) -> Optional[str]:
        return self.moved_files.get(original_path)

    def get_original_path(self, backup_path: str) -> Optional[str]:
        for original, backup in self.moved_files.items():
            if backup == backup_path:
                return original
        return None

    def is_file_moved(self, original_path: str) -> bool:
        return original_path in self.moved_files

    def get_analysis_result(self, file_path: str) -> Optional[FileAnalysisResult]:
        return self.analysis_results.get(file_path)

    def files_by_category(self, category: Category) -> Dict[str, FileAnalysisResult]:
        return {p: r for p, r in self.analysis_results.items() if r.category is category}

    def files_by_action(self, action: Action) -> Dict[str, FileAnalysisResult]:
        return {p: r for p, r in self.analysis_results.items() if r.recommended_action is action}

    def is_successful(self) -> bool:
        return not self.errors

    def summary(self) -> Dict[str, Any]:
        return {
            "created_at": self.created_at.strftime("%Y-%m-%d %H:%M:%S"),
            "total_files_analyzed": self.statistics.get("total_analyzed", 0),
            "files_moved": len(self.moved_files),
            "files_with_errors": len(self.errors),
            "success_rate": self.statistics.get("success_rate", 0),
            "total_size_moved": format_bytes(self.statistics.get("total_size_moved", 0)),
            "is_successful": self.is_successful(),
        }

    def validate_integrity(self) -> List[str]:
        """
        Check the manifest against the filesystem.

        Every moved file must still be in the backup store, and its original
        location must be empty unless the file was explicitly restored.
        """
        issues: List[str] = []
        for original, backup in self.moved_files.items():
            if not self.fs.exists(self.backup_root / backup):
                issues.append(f"Backup file missing: {backup}")
        for original in self.moved_files:
            if original in self.restored_files:
                continue
            if self.fs.exists(self.project_root / original):
                issues.append(f"Original file still exists: {original}")
        return issues

    def has_project_drifted(self) -> bool:
        """True when the key project files changed since the backup."""
        if not self.project_state:
            return False
        return compute_project_state(self.project_root, self.fs) != self.project_state

    # -----------------------------------------------------------------------
    # Statistics
    # -----------------------------------------------------------------------

    def _initial_statistics(self, files_to_move: Mapping[str, FileAnalysisResult]) -> Dict[str, Any]:
        stats: Dict[str, Any] = {
            "total_analyzed": len(self.analysis_results),
            "planned_move_count": len(files_to_move),
            "moved_count": 0,
            "kept_count": 0,
            "review_count": 0,
            "error_count": 0,
            "total_size_planned": 0,
            "total_size_moved": 0,
            "by_category": {},
            "by_action": {},
            "by_confidence": {"high": 0, "medium": 0, "low": 0},
            "success_rate": 100.0,
        }

        for path in files_to_move:
            full_path = self.project_root / path
            if self.fs.is_file(full_path):
                stats["total_size_planned"] += self.fs.size(full_path)

        for result in self.analysis_results.values():
            category = result.category.value
            action = result.recommended_action.value
            stats["by_category"][category] = stats["by_category"].get(category, 0) + 1
            stats["by_action"][action] = stats["by_action"].get(action, 0) + 1

            if result.confidence_score >= 80:
                stats["by_confidence"]["high"] += 1
            elif result.confidence_score >= 50:
                stats["by_confidence"]["medium"] += 1
            else:
                stats["by_confidence"]["low"] += 1

            if result.recommended_action is Action.KEEP:
                stats["kept_count"] += 1
            elif result.recommended_action is Action.REVIEW:
                stats["review_count"] += 1

        return stats

    def _update_statistics(self) -> None:
        stats = self.statistics
        stats["moved_count"] = len(self.moved_files)
        stats["error_count"] = len(self.errors)

        total_moved = 0
        for backup in self.moved_files.values():
            full_path = self.backup_root / backup
            if self.fs.is_file(full_path):
                total_moved += self.fs.size(full_path)
        stats["total_size_moved"] = total_moved

        planned = stats.get("planned_move_count", 0)
        stats["success_rate"] = round(stats["moved_count"] / planned * 100, 2) if planned else 100.0

    # -----------------------------------------------------------------------
    # Serialization
    # -----------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        return {
            "created_at": self.created_at.isoformat(),
            "moved_files": dict(self.moved_files),
            "analysis_results": {p: r.to_dict() for p, r in self.analysis_results.items()},
            "project_state": self.project_state,
            "statistics": json.loads(json.dumps(self.statistics)),
            "errors": dict(self.errors),
            "project_root": str(self.project_root),
            "backup_dir": self.backup_dir,
            "restored_files": dict(self.restored_files),
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2, sort_keys=False)

    @classmethod
    def from_dict(
        cls,
        data: Mapping[str, Any],
        fs: Optional[LocalFileSystem] = None,
        project_root: Optional[Path] = None,
    ) -> "BackupManifest":
        """
        Rebuild a manifest from ``to_dict`` output.

        ``project_root`` overrides the stored root, e.g. when the project was
        relocated after the backup. Statistics are taken as stored.

        Raises ValueError when a section that must be a JSON object is not.
        """
        analysis_results = {
            str(path): FileAnalysisResult.from_dict(result)
            for path, result in _section(data, "analysis_results").items()
            if isinstance(result, Mapping)
        }

        manifest = cls.__new__(cls)
        manifest.fs = fs or LocalFileSystem()
        manifest.project_root = Path(project_root or data.get("project_root") or ".")
        manifest.backup_dir = str(data.get("backup_dir") or "backup")
        manifest.analysis_results = analysis_results
        manifest.moved_files = {str(k): str(v) for k, v in _section(data, "moved_files").items()}
        manifest.errors = {str(k): str(v) for k, v in _section(data, "errors").items()}
        manifest.restored_files = {str(k): str(v) for k, v in _section(data, "restored_files").items()}
        manifest.project_state = str(data.get("project_state") or "")
        manifest.statistics = dict(_section(data, "statistics"))

        created_at = data.get("created_at")
        try:
            parsed = datetime.fromisoformat(str(created_at)) if created_at else datetime.now(timezone.utc)
        except ValueError:
            parsed = datetime.now(timezone.utc)
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        manifest.created_at = parsed
        return manifest

    # -----------------------------------------------------------------------
    # Report
    # -----------------------------------------------------------------------

    def generate_report(self) -> str:
        stats = self.statistics
        lines: List[str] = [
            "# Codebase Cleanup Backup Report",
            "",
            f"**Created:** {self.created_at.strftime('%Y-%m-%d %H:%M:%S')}",
            f"**Project Root:** {self.project_root}",
            f"**Project State Hash:** {self.project_state}",
            "",
            "## Summary",
            "",
            f"- **Total Files Analyzed:** {stats.get('total_analyzed', 0)}",
            f"- **Files Moved to Backup:** {stats.get('moved_count', 0)}",
            f"- **Files Kept in Place:** {stats.get('kept_count', 0)}",
            f"- **Files Requiring Review:** {stats.get('review_count', 0)}",
            f"- **Errors:** {stats.get('error_count', 0)}",
            f"- **Total Size Moved:** {format_bytes(stats.get('total_size_moved', 0))}",
            f"- **Success Rate:** {stats.get('success_rate', 0)}%",
            "",
            "## Files by Category",
            "",
        ]
        for category, count in (stats.get("by_category") or {}).items():
            lines.append(f"- **{_title(category)}:** {count}")
        lines += ["", "## Files by Action", ""]
        for action, count in (stats.get("by_action") or {}).items():
            lines.append(f"- **{_title(action)}:** {count}")
        lines.append("")

        if self.moved_files:
            lines += [
                "## Moved Files",
                "",
                "| Original Path | Backup Path | Category | Confidence |",
                "|---------------|-------------|----------|------------|",
            ]
            for original, backup in self.moved_files.items():
                result = self.get_analysis_result(original)
                category = result.category.value if result else "unknown"
                confidence = f"{result.confidence_score}%" if result else "unknown"
                lines.append(f"| `{original}` | `{backup}` | {category} | {confidence} |")
            lines.append("")

        if self.errors:
            lines += ["## Errors", ""]
            for path, message in self.errors.items():
                lines.append(f"- **{path}:** {message}")
            lines.append("")

        lines += [
            "## Restoration Instructions",
            "",
            "To restore files from this backup:",
            "",
            "### Restore Individual Files",
            "```bash",
            f"codebase-cleanup restore {self.project_root} --file path/to/file.php",
            "```",
            "",
            "### Restore a Directory",
            "```bash",
            f"codebase-cleanup restore {self.project_root} --directory tests/",
            "```",
            "",
            "### Restore All Files (Complete Rollback)",
            "```bash",
            f"codebase-cleanup restore {self.project_root} --all",
            "```",
            "",
            "## Analysis Details",
            "",
        ]

        for category, title in CATEGORY_TITLES.items():
            files = self.files_by_category(category)
            if not files:
                continue
            lines += [f"### {title}", ""]
            for path, result in files.items():
                lines += [
                    f"#### `{path}`",
                    "",
                    f"- **Confidence:** {result.confidence_score}%",
                    f"- **Recommended Action:** {result.recommended_action.value}",
                    "- **Reasons:**",
                ]
                lines += [f"  - {reason}" for reason in result.reasons]
                lines += _limited_list("Dependencies", sorted(result.dependencies))
                lines += _limited_list("Referenced by", sorted(result.references))
                lines.append("")

        return "\n".join(lines)


def _title(key: str) -> str:
    text = key.replace("_", " ").replace("-", " ")
    return text[:1].upper() + text[1:]


def _limited_list(label: str, items: List[str]) -> List[str]:
    if not items:
        return []
    lines = [f"- **{label}:** " + ", ".join(items[:REPORT_LIST_LIMIT])]
    if len(items) > REPORT_LIST_LIMIT:
        lines.append(f"  (and {len(items) - REPORT_LIST_LIMIT} more)")
    return lines


def _section(data: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    value = data.get(key)
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ValueError(f"'{key}' must be an object, got {type(value).__name__}")
    return value
