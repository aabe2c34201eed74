"""
Classification engine for the codebase cleanup tool.

Responsibilities:

- Build the default analyzer set for a project (default_analyzers).
- Run every applicable analyzer on a file and reconcile their verdicts
  into one FileAnalysisResult (ClassificationEngine.analyze_file):
  * the category comes from the highest-priority analyzer whose verdict is
    not UNCERTAIN, ties broken by higher confidence; all UNCERTAIN stays
    UNCERTAIN;
  * the confidence is the maximum across analyzers that agree with the
    winning category;
  * reasons are merged in priority order without duplicates, dependencies
    and references are unioned, metadata is merged with higher priority
    winning;
  * ``winning_analyzer``, ``analyzer_verdicts`` and ``has_conflicts`` are
    added to the metadata for the report.
- Provide classify_files(df, engine) for a whole scan:
  * returns a ``path -> FileAnalysisResult`` mapping in scan order;
  * logs progress every 50 files and category counts at the end.

An analyzer that raises is logged and skipped; it never aborts the run.
A move candidate is a file whose reconciled category is NON_ESSENTIAL.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import pandas as pd

from .analyzers import (
    DependencyAnalyzer,
    FileAnalyzer,
    FunctionalAnalyzer,
    PatternAnalyzer,
    UsageAnalyzer,
)
from .errors import AnalysisError
from .fs import LocalFileSystem
from .models import Category, FileAnalysisResult, ProgressCallback
from .scanner import DEFAULT_EXCLUDES

logger = logging.getLogger(__name__)

PROGRESS_LOG_INTERVAL = 50


def default_analyzers(
    project_root: Path,
    fs: Optional[LocalFileSystem] = None,
    backup_dir: Optional[str] = "backup",
    extra_excludes: Optional[Iterable[str]] = None,
) -> List[FileAnalyzer]:
    """
    Build the four analyzers for ``project_root``, highest priority first.

    The backup store and extra exclusions are hidden from the analyzers'
    whole-tree scans so moved files never count as references.
    """
    fs = fs or LocalFileSystem()
    excludes = list(DEFAULT_EXCLUDES)
    if backup_dir:
        excludes.append(backup_dir)
    if extra_excludes:
        excludes.extend(e for e in extra_excludes if e.strip())

    analyzers: List[FileAnalyzer] = [
        DependencyAnalyzer(project_root, fs, excludes),
        UsageAnalyzer(project_root, fs, excludes),
        FunctionalAnalyzer(project_root, fs),
        PatternAnalyzer(),
    ]
    return sorted(analyzers, key=lambda a: a.priority(), reverse=True)


class ClassificationEngine:
    """Runs analyzers per file and reconciles their verdicts by priority."""

    def __init__(
        self,
        project_root: Path,
        analyzers: Sequence[FileAnalyzer],
        fs: Optional[LocalFileSystem] = None,
    ) -> None:
        self.project_root = Path(project_root)
        self.fs = fs or LocalFileSystem()
        self.analyzers: List[FileAnalyzer] = sorted(analyzers, key=lambda a: a.priority(), reverse=True)

    def analyze_file(self, file_path: str) -> FileAnalysisResult:
        if not self.fs.exists(self.project_root / file_path):
            return FileAnalysisResult(file_path, Category.UNCERTAIN, 0, ("File does not exist",))

        verdicts: List[Tuple[FileAnalyzer, FileAnalysisResult]] = []
        for analyzer in self.analyzers:
            if not analyzer.can_analyze(file_path):
                continue
            try:
                result = analyzer.analyze(file_path)
            except Exception as exc:
                logger.warning("Analyzer %s failed on %s: %s", analyzer.name, file_path, exc)
                continue
            logger.debug(
                "Analyzer %s: %s -> %s (%d%%)",
                analyzer.name,
                file_path,
                result.category.value,
                result.confidence_score,
            )
            verdicts.append((analyzer, result))

        if not verdicts:
            return FileAnalysisResult(file_path, Category.UNCERTAIN, 0, ("No applicable analyzers found",))

        return reconcile(file_path, verdicts)


def reconcile(
    file_path: str,
    verdicts: Sequence[Tuple[FileAnalyzer, FileAnalysisResult]],
) -> FileAnalysisResult:
    """
    Combine several analyzers' verdicts for one file.

    Parameters
    ----------
    file_path : str
        Project-relative path every verdict refers to.
    verdicts : sequence of (analyzer, result)
        At least one entry. Order does not matter.

    Returns
    -------
    FileAnalysisResult
        The reconciled verdict.
    """
    ordered = sorted(verdicts, key=lambda v: v[0].priority(), reverse=True)

    decisive = [v for v in ordered if v[1].category is not Category.UNCERTAIN]
    if decisive:
        top_priority = decisive[0][0].priority()
        tied = [v for v in decisive if v[0].priority() == top_priority]
        winner = max(tied, key=lambda v: v[1].confidence_score)
    else:
        winner = max(ordered, key=lambda v: (v[1].confidence_score, v[0].priority()))

    category = winner[1].category
    confidence = max(r.confidence_score for _, r in ordered if r.category is category)

    reasons: List[str] = []
    dependencies = set()
    references = set()
    for _, result in ordered:
        for reason in result.reasons:
            if reason not in reasons:
                reasons.append(reason)
        dependencies.update(result.dependencies)
        references.update(result.references)

    metadata: Dict[str, object] = {}
    # Lowest priority first so higher priority overwrites.
    for _, result in reversed(ordered):
        metadata.update(result.metadata)

    categories = {r.category for _, r in ordered}
    metadata["winning_analyzer"] = winner[0].name
    metadata["analyzer_verdicts"] = [
        f"{a.name}:{r.category.value}:{r.confidence_score}" for a, r in ordered
    ]
    metadata["has_conflicts"] = Category.ESSENTIAL in categories and Category.NON_ESSENTIAL in categories

    return FileAnalysisResult(
        file_path=file_path,
        category=category,
        confidence_score=confidence,
        reasons=tuple(reasons),
        dependencies=frozenset(dependencies),
        references=frozenset(references),
        metadata=metadata,
    )


def classify_files(
    df: pd.DataFrame,
    engine: ClassificationEngine,
    progress: Optional[ProgressCallback] = None,
) -> Dict[str, FileAnalysisResult]:
    """
    Classify every file of a scan.

    Parameters
    ----------
    df : pd.DataFrame
        Scan result from scanner.scan_project; must have a ``rel_path`` column.
    engine : ClassificationEngine
        Engine holding the analyzers to run.
    progress : callable, optional
        Called after each file with (done, total, path).

    Returns
    -------
    Dict[str, FileAnalysisResult]
        Reconciled verdict per project-relative path, in scan order.

    Raises
    ------
    AnalysisError
        If the DataFrame has no ``rel_path`` column.
    """
    if "rel_path" not in df.columns:
        raise AnalysisError("Scan DataFrame is missing required column 'rel_path'.")

    paths = df["rel_path"].astype(str).tolist()
    total = len(paths)
    logger.info("Starting classification of %d files in %s", total, engine.project_root)

    results: Dict[str, FileAnalysisResult] = {}
    for done, rel_path in enumerate(paths, start=1):
        results[rel_path] = engine.analyze_file(rel_path)
        if progress is not None:
            progress(done, total, rel_path)
        if done % PROGRESS_LOG_INTERVAL == 0:
            logger.info("Progress: %d/%d files analyzed", done, total)

    counts = count_by_category(results.values())
    logger.info(
        "Classification complete: %d files (essential=%d, non-essential=%d, uncertain=%d)",
        total,
        counts[Category.ESSENTIAL],
        counts[Category.NON_ESSENTIAL],
        counts[Category.UNCERTAIN],
    )
    return results


def count_by_category(results: Iterable[FileAnalysisResult]) -> Dict[Category, int]:
    counts = {category: 0 for category in Category}
    for result in results:
        counts[result.category] += 1
    return counts


def move_candidates(results: Dict[str, FileAnalysisResult]) -> Dict[str, FileAnalysisResult]:
    return {path: r for path, r in results.items() if r.can_be_moved()}
