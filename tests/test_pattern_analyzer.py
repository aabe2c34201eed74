from __future__ import annotations

import pytest

from codebase_cleanup.core.analyzers import FileAnalyzer, PatternAnalyzer
from codebase_cleanup.core.models import Category


def test_test_file_is_non_essential() -> None:
    result = PatternAnalyzer().analyze("tests/FooTest.php")

    assert result.category is Category.NON_ESSENTIAL
    assert result.confidence_score >= 80
    assert any("test file pattern" in r for r in result.reasons)
    assert result.metadata["directory_type"] == "test"


def test_source_file_is_essential() -> None:
    result = PatternAnalyzer().analyze("src/Domain/Pet/Pet.php")

    assert result.category is Category.ESSENTIAL
    assert result.confidence_score == 90
    assert "Matches essential file pattern" in result.reasons


@pytest.mark.parametrize(
    "path, family",
    [
        ("debug_payment.php", "debug"),
        ("legacy.bak", "backup"),
        ("notes.md", "documentation"),
        ("server.log", "project_specific"),
        ("deploy.sh", "development"),
    ],
)
def test_family_matches(path: str, family: str) -> None:
    result = PatternAnalyzer().analyze(path)

    assert result.category is Category.NON_ESSENTIAL
    assert family in result.metadata["pattern_families"]


def test_last_matching_family_names_the_pattern_type() -> None:
    # .log matches both the temporary and the project-specific family
    result = PatternAnalyzer().analyze("server.log")
    assert result.metadata["pattern_type"] == "project_specific"
    assert result.confidence_score == 95


def test_unmatched_file_is_uncertain() -> None:
    result = PatternAnalyzer().analyze("Makefile")

    assert result.category is Category.UNCERTAIN
    assert result.confidence_score == 10
    assert result.reasons == ("No specific patterns matched",)


def test_uncertain_extension_hint_does_not_change_category() -> None:
    result = PatternAnalyzer().analyze("lib/helpers.php")

    assert result.category is Category.UNCERTAIN
    assert "PHP source file" in result.reasons


def test_satisfies_analyzer_contract() -> None:
    analyzer = PatternAnalyzer()
    assert isinstance(analyzer, FileAnalyzer)
    assert analyzer.priority() == 70
    assert analyzer.can_analyze("anything")
