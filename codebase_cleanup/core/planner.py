"""
Planner for the codebase cleanup tool.

Responsibilities:

- Join the reconciled classification map with the scan DataFrame.
- Compute aggregate stats per category:
  * file_count
  * total_size_mb
  * avg_confidence
  * 2-3 sample paths
- Compute global stats:
  * total_files, total_size_mb
  * move candidates (NON_ESSENTIAL) and their combined size
  * files requiring review (UNCERTAIN)
  * confidence buckets (high >= 80, medium >= 50, low)
- Return a PlanSummary dataclass that the CLI renders before asking to
  proceed with the backup.
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Mapping, Optional

import numpy as np
import pandas as pd

from .errors import AnalysisError
from .models import Category, FileAnalysisResult, PlanCategorySummary, PlanSummary

PLAN_COLUMNS = [
    "file_path",
    "file_name",
    "category",
    "action",
    "confidence",
    "size_bytes",
    "reasons",
]

# np.histogram bins: [0, 50) low, [50, 80) medium, [80, 100] high
CONFIDENCE_BINS = [0, 50, 80, 101]
CONFIDENCE_LABELS = ["low", "medium", "high"]


def build_plan(
    results: Mapping[str, FileAnalysisResult],
    files_df: pd.DataFrame,
    root_path: Path,
) -> PlanSummary:
    """
    Build a PlanSummary from classification results and the scan DataFrame.

    Parameters
    ----------
    results : Mapping[str, FileAnalysisResult]
        Reconciled verdict per project-relative path.
    files_df : pd.DataFrame
        Scan result; must include ``rel_path`` and ``size_bytes``.
    root_path : Path
        Project root for this plan.

    Returns
    -------
    PlanSummary
        Structured summary with per-category aggregates and global stats.

    Raises
    ------
    AnalysisError
        If the scan DataFrame is missing required columns.
    """
    missing = {"rel_path", "size_bytes"}.difference(files_df.columns)
    if missing:
        raise AnalysisError(f"Scan DataFrame is missing required columns for planning: {sorted(missing)}")

    sizes: Dict[str, int] = dict(
        zip(files_df["rel_path"].astype(str), files_df["size_bytes"].fillna(0).astype(int))
    )

    rows = [
        {
            "file_path": path,
            "file_name": path.rsplit("/", 1)[-1],
            "category": result.category.value,
            "action": result.recommended_action.value,
            "confidence": result.confidence_score,
            "size_bytes": sizes.get(path, 0),
            "reasons": "; ".join(result.reasons),
        }
        for path, result in results.items()
    ]
    df = pd.DataFrame(rows, columns=PLAN_COLUMNS)
    df["size_bytes"] = df["size_bytes"].astype(float)
    df["confidence"] = pd.to_numeric(df["confidence"], errors="coerce")

    total_files = int(len(df))
    total_size_mb = float(df["size_bytes"].sum() / (1024 * 1024))

    categories: List[PlanCategorySummary] = []
    grouped = df.groupby("category", sort=False)
    for category in Category:
        if category.value not in grouped.groups:
            continue
        group = grouped.get_group(category.value)
        confidences = group["confidence"].dropna()
        avg_confidence: Optional[float] = None if len(confidences) == 0 else float(confidences.mean())
        categories.append(
            PlanCategorySummary(
                category=category.value,
                file_count=int(len(group)),
                total_size_mb=float(group["size_bytes"].sum() / (1024 * 1024)),
                avg_confidence=avg_confidence,
                sample_files=group.sort_values("file_path")["file_path"].head(3).astype(str).tolist(),
            )
        )

    candidates = df[df["category"] == Category.NON_ESSENTIAL.value]
    review = df[df["category"] == Category.UNCERTAIN.value]

    return PlanSummary(
        root_path=root_path,
        df=df,
        categories=categories,
        total_files=total_files,
        total_size_mb=total_size_mb,
        move_candidates=candidates["file_path"].astype(str).tolist(),
        review_files=review["file_path"].astype(str).tolist(),
        confidence_buckets=confidence_buckets(df["confidence"].dropna().to_numpy()),
        candidate_size_bytes=int(candidates["size_bytes"].sum()),
    )


def confidence_buckets(confidences: np.ndarray) -> Dict[str, int]:
    """Count confidences into low / medium / high buckets."""
    counts, _ = np.histogram(np.asarray(confidences, dtype=float), bins=CONFIDENCE_BINS)
    return {label: int(count) for label, count in zip(CONFIDENCE_LABELS, counts)}
