"""
File analyzers for the codebase cleanup tool.

Each analyzer looks at a project file from one angle of evidence and
returns a FileAnalysisResult. They share a contract but no base class; the
classification engine (core.classifier) runs all of them and reconciles
their verdicts by priority.

| Analyzer            | Priority | Evidence                                   |
|---------------------|----------|--------------------------------------------|
| DependencyAnalyzer  | 90       | composer autoload, static dependency graph |
| UsageAnalyzer       | 80       | asset / include / API / template usage     |
| FunctionalAnalyzer  | 75       | structural role and environment            |
| PatternAnalyzer     | 70       | naming, extension and directory patterns   |
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from ..models import FileAnalysisResult
from .dependency import DependencyAnalyzer
from .functional import FunctionalAnalyzer
from .pattern import PatternAnalyzer
from .usage import UsageAnalyzer


@runtime_checkable
class FileAnalyzer(Protocol):
    """Capability shared by every analyzer."""

    name: str

    def analyze(self, file_path: str) -> FileAnalysisResult:
        """Return this analyzer's verdict for a project-relative path."""
        ...

    def priority(self) -> int:
        """Higher wins when verdicts disagree."""
        ...

    def can_analyze(self, file_path: str) -> bool:
        ...


__all__ = [
    "FileAnalyzer",
    "DependencyAnalyzer",
    "FunctionalAnalyzer",
    "PatternAnalyzer",
    "UsageAnalyzer",
]
