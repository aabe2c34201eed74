"""
Core domain models for the codebase cleanup tool.

These dataclasses define the structured data passed between:
- scanner -> analyzers -> classifier -> planner -> backup -> restoration -> CLI
and allow the console layer (Rich output) to render summaries without
knowing internal implementation details.

FileAnalysisResult is the one verdict type shared by every analyzer and by
the classification engine. It is frozen: a verdict is created once and never
changed, and its recommended action is always derived from its category.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Mapping, Optional, Tuple, Union

import pandas as pd

# ---------------------------------------------------------------------------
# Basic types
# ---------------------------------------------------------------------------

MetadataValue = Union[str, int, float, bool, None, List[str]]

# Called after each file with (files done, total files, current path).
ProgressCallback = Callable[[int, int, str], None]


class Category(str, Enum):
    ESSENTIAL = "essential"
    NON_ESSENTIAL = "non-essential"
    UNCERTAIN = "uncertain"


class Action(str, Enum):
    KEEP = "keep"
    MOVE = "move"
    REVIEW = "review"


CATEGORY_ACTIONS: Dict[Category, Action] = {
    Category.ESSENTIAL: Action.KEEP,
    Category.NON_ESSENTIAL: Action.MOVE,
    Category.UNCERTAIN: Action.REVIEW,
}


def _normalize_metadata(metadata: Mapping[str, Any]) -> Dict[str, MetadataValue]:
    normalized: Dict[str, MetadataValue] = {}
    for key, value in metadata.items():
        if isinstance(value, (list, tuple, set, frozenset)):
            items = [str(v) for v in value]
            normalized[str(key)] = sorted(items) if isinstance(value, (set, frozenset)) else items
        elif value is None or isinstance(value, (str, int, float, bool)):
            normalized[str(key)] = value
        else:
            normalized[str(key)] = str(value)
    return normalized


# ---------------------------------------------------------------------------
# Scanning models
# ---------------------------------------------------------------------------

@dataclass
class FileRecord:
    """
    Metadata for a single file discovered during scanning.

    ``rel_path`` is relative to the project root and always uses forward
    slashes; it is the identity key used by every analyzer.
    """
    rel_path: str
    file_name: str
    extension: str
    full_path: Path
    size_bytes: int
    modified_time: float  # POSIX timestamp (stat.st_mtime)


# ---------------------------------------------------------------------------
# Analysis verdict
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FileAnalysisResult:
    """
    One analyzer's (or the reconciled) verdict for one file.

    - file_path: project-relative path, identity key
    - category: ESSENTIAL / NON_ESSENTIAL / UNCERTAIN
    - confidence_score: 0-100, strength of evidence
    - reasons: ordered, human-readable justifications
    - dependencies: paths this file statically depends on
    - references: paths that depend on this file
    - metadata: analyzer-specific facts, advisory only

    ``recommended_action`` is not a field: it is derived from ``category``.
    """

    file_path: str
    category: Category
    confidence_score: int
    reasons: Tuple[str, ...] = ()
    dependencies: FrozenSet[str] = frozenset()
    references: FrozenSet[str] = frozenset()
    metadata: Dict[str, MetadataValue] = field(default_factory=dict, hash=False, compare=False)

    def __post_init__(self) -> None:
        try:
            category = Category(self.category)
        except ValueError as exc:
            raise ValueError(f"Invalid category: {self.category!r}") from exc

        if isinstance(self.confidence_score, bool) or not isinstance(self.confidence_score, int):
            raise ValueError(
                f"Confidence score must be an integer, got {type(self.confidence_score).__name__}"
            )
        if self.confidence_score < 0 or self.confidence_score > 100:
            raise ValueError("Confidence score must be between 0 and 100")

        object.__setattr__(self, "category", category)
        object.__setattr__(self, "reasons", tuple(str(r) for r in self.reasons))
        object.__setattr__(self, "dependencies", frozenset(self.dependencies))
        object.__setattr__(self, "references", frozenset(self.references))
        object.__setattr__(self, "metadata", _normalize_metadata(self.metadata))

    @property
    def recommended_action(self) -> Action:
        return CATEGORY_ACTIONS[self.category]

    def is_essential(self) -> bool:
        return self.category is Category.ESSENTIAL

    def can_be_moved(self) -> bool:
        """True for move candidates (reconciled category NON_ESSENTIAL)."""
        return self.category is Category.NON_ESSENTIAL

    def requires_review(self) -> bool:
        return self.category is Category.UNCERTAIN

    def is_safe_to_move(self) -> bool:
        return self.can_be_moved() and self.confidence_score >= 70

    def requires_immediate_attention(self) -> bool:
        return self.category is Category.UNCERTAIN and self.confidence_score < 50

    def priority_level(self) -> str:
        if self.is_essential():
            return "critical"
        if self.requires_immediate_attention():
            return "high"
        if self.is_safe_to_move():
            return "low"
        return "medium"

    def summary(self) -> str:
        return (
            f"File: {self.file_path} | Category: {self.category.value} | "
            f"Confidence: {self.confidence_score}% | "
            f"Action: {self.recommended_action.value} | "
            f"Reasons: {', '.join(self.reasons)}"
        )

    def detailed_reasoning(self) -> Dict[str, Any]:
        """
        Explain the verdict for audit purposes.

        Returns a dict with ``category_explanation``, ``confidence_factors``,
        ``action_justification`` and ``risk_assessment`` (``level`` plus
        ``factors``).
        """
        category_explanation = {
            Category.ESSENTIAL: "This file is essential to the project's core functionality and should be preserved.",
            Category.NON_ESSENTIAL: "This file is not essential to core functionality and can be safely moved to backup.",
            Category.UNCERTAIN: "This file's importance is uncertain and requires manual review before action.",
        }[self.category]

        if self.confidence_score >= 80:
            factors = ["High confidence based on multiple strong indicators"]
        elif self.confidence_score >= 60:
            factors = ["Medium confidence with some clear indicators"]
        elif self.confidence_score >= 40:
            factors = ["Low-medium confidence with limited indicators"]
        else:
            factors = ["Low confidence - requires careful review"]

        if self.metadata.get("is_autoload_file"):
            factors.append("Part of the autoload structure")
        dependency_count = self.metadata.get("dependency_count")
        if isinstance(dependency_count, int) and dependency_count > 0:
            factors.append(f"Has {dependency_count} dependencies")
        reference_count = self.metadata.get("reference_count")
        if isinstance(reference_count, int) and reference_count > 0:
            factors.append(f"Referenced by {reference_count} files")

        action_justification = {
            Action.KEEP: "Keep in place - file is essential or actively used",
            Action.MOVE: "Move to backup - file is not essential to core functionality",
            Action.REVIEW: "Manual review required - uncertain classification",
        }[self.recommended_action]

        return {
            "category_explanation": category_explanation,
            "confidence_factors": factors,
            "action_justification": action_justification,
            "risk_assessment": self._risk_assessment(),
        }

    def _risk_assessment(self) -> Dict[str, Any]:
        action = self.recommended_action
        if action is Action.KEEP:
            level = "low"
            factors = ["File will remain in original location", "No disruption to functionality"]
        elif action is Action.MOVE:
            if self.confidence_score >= 80:
                level = "low"
                factors = ["High confidence in non-essential classification", "Can be restored if needed"]
            elif self.confidence_score >= 60:
                level = "medium"
                factors = ["Medium confidence - monitor for issues", "Backup available for restoration"]
            else:
                level = "high"
                factors = ["Low confidence - may cause issues", "Requires careful testing after move"]
        else:
            level = "medium"
            factors = ["Manual review required", "Action depends on review outcome"]

        if self.dependencies:
            factors.append(f"File has {len(self.dependencies)} dependencies that may be affected")
        if self.references:
            factors.append(f"File is referenced by {len(self.references)} other files")
        return {"level": level, "factors": factors}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "file_path": self.file_path,
            "category": self.category.value,
            "confidence_score": self.confidence_score,
            "reasons": list(self.reasons),
            "dependencies": sorted(self.dependencies),
            "references": sorted(self.references),
            "recommended_action": self.recommended_action.value,
            "metadata": dict(self.metadata),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "FileAnalysisResult":
        # recommended_action is derived; a stored value is informational only.
        return cls(
            file_path=str(data["file_path"]),
            category=Category(data["category"]),
            confidence_score=int(data["confidence_score"]),
            reasons=tuple(data.get("reasons") or ()),
            dependencies=frozenset(data.get("dependencies") or ()),
            references=frozenset(data.get("references") or ()),
            metadata=data.get("metadata") or {},
        )


def derive_result(
    file_path: str,
    category: Category,
    confidence: int,
    reasons: Iterable[str],
    dependencies: Iterable[str] = (),
    references: Iterable[str] = (),
    metadata: Optional[Mapping[str, Any]] = None,
) -> FileAnalysisResult:
    """Build a result with the confidence clamped into [0, 100]."""
    return FileAnalysisResult(
        file_path=file_path,
        category=category,
        confidence_score=max(0, min(100, int(confidence))),
        reasons=tuple(reasons),
        dependencies=frozenset(d for d in dependencies if d),
        references=frozenset(r for r in references if r),
        metadata=dict(metadata or {}),
    )


# ---------------------------------------------------------------------------
# Planning / summary models
# ---------------------------------------------------------------------------

@dataclass
class PlanCategorySummary:
    """
    Aggregated summary for a single category in the cleanup plan.

    - Category
    - Number of files
    - Total size in MB
    - Average confidence
    - Sample file paths
    """

    category: str
    file_count: int
    total_size_mb: float
    avg_confidence: Optional[float]
    sample_files: List[str]


@dataclass
class PlanSummary:
    """
    Full cleanup plan summary for a single run.

    Produced by the planner after classification. It is the main object
    consumed by the console helpers to render Rich tables.
    """

    root_path: Path
    # One row per analyzed file with columns:
    # - file_path, category, action, confidence, size_bytes, reasons
    df: pd.DataFrame

    categories: List[PlanCategorySummary]

    total_files: int
    total_size_mb: float
    move_candidates: List[str]
    review_files: List[str]
    confidence_buckets: Dict[str, int]
    candidate_size_bytes: int


# ---------------------------------------------------------------------------
# Move logging models
# ---------------------------------------------------------------------------

@dataclass
class MoveRecord:
    """
    Outcome of moving a single candidate into the backup store.

    - original_path (project-relative)
    - backup_path (backup-relative, empty on failure)
    - category
    - confidence
    - status ('success' or 'failed: <reason>')
    """

    original_path: str
    backup_path: str
    category: str
    confidence: Optional[int]
    status: str


# ---------------------------------------------------------------------------
# Restoration outcome records (transient, never persisted)
# ---------------------------------------------------------------------------

class RestorationStatus(str, Enum):
    RESTORED = "restored"
    SKIPPED = "skipped"
    FAILED = "failed"


NOT_IN_MANIFEST = "File not found in backup manifest"


@dataclass(frozen=True)
class ConflictResolution:
    """
    Result of resolving an existing file at a restore target.

    ``success`` means restoration may proceed. A non-success with no
    ``error`` is a deliberate skip, not a failure.
    """
    success: bool
    action: str
    message: Optional[str] = None
    error: Optional[str] = None
    backup_path: Optional[str] = None


@dataclass(frozen=True)
class VerificationResult:
    success: bool
    message: Optional[str] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class RestorationResult:
    """Outcome of restoring one file."""
    success: bool
    file_path: str
    status: RestorationStatus
    backup_path: Optional[str] = None
    error: Optional[str] = None
    message: Optional[str] = None
    conflict_resolution: Optional[ConflictResolution] = None
    verification: Optional[VerificationResult] = None
    # Set when the file was restored but the manifest could not record it.
    warning: Optional[str] = None

    @property
    def skipped(self) -> bool:
        return self.status is RestorationStatus.SKIPPED

    @property
    def is_error(self) -> bool:
        return self.status is RestorationStatus.FAILED


@dataclass(frozen=True)
class BatchRestorationResult:
    """Outcome of restoring several files in sequence."""
    results: Dict[str, RestorationResult]
    success_count: int
    error_count: int
    skipped_count: int
    total_count: int

    def is_fully_successful(self) -> bool:
        return self.error_count == 0 and self.success_count == self.total_count

    def success_rate(self) -> float:
        if self.total_count == 0:
            return 0.0
        return self.success_count / self.total_count * 100

    def failed_files(self) -> Dict[str, str]:
        return {
            path: result.error or "unknown error"
            for path, result in self.results.items()
            if result.is_error
        }

    def skipped_files(self) -> Dict[str, str]:
        return {
            path: result.message or ""
            for path, result in self.results.items()
            if result.skipped
        }

    def warnings(self) -> Dict[str, str]:
        return {
            path: result.warning
            for path, result in self.results.items()
            if result.warning
        }
