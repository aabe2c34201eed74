from __future__ import annotations

import json
from pathlib import Path
from typing import Dict

import pytest

from codebase_cleanup.core.fs import LocalFileSystem
from codebase_cleanup.core.models import Category, FileAnalysisResult


def _write(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)


class LowDiskFileSystem(LocalFileSystem):
    """Reports almost no free space on any volume."""

    def __init__(self, free_bytes: int = 10) -> None:
        self.free_bytes = free_bytes

    def disk_free(self, path) -> int:
        return self.free_bytes


class CorruptCopyFileSystem(LocalFileSystem):
    """Copies files but garbles the content on the way."""

    def copy(self, src, dst) -> None:
        Path(dst).write_text("corrupted")


class FailingCopyFileSystem(LocalFileSystem):
    """Copies fail as if the disk filled up halfway."""

    def copy(self, src, dst) -> None:
        Path(dst).write_text("partial")
        raise OSError(28, "No space left on device")


class ReadOnlyManifestFileSystem(LocalFileSystem):
    """Every file operation works except writing text files."""

    def write_text(self, path, content: str) -> None:
        raise OSError(30, "Read-only file system")


@pytest.fixture
def php_project(tmp_path: Path) -> Path:
    """A small PHP project with a mix of essential and disposable files."""
    _write(
        tmp_path / "composer.json",
        json.dumps({"autoload": {"psr-4": {"App\\": "src/"}}}),
    )
    _write(
        tmp_path / "src/Domain/Pet/Pet.php",
        "<?php\nnamespace App\\Domain\\Pet;\n\nclass Pet\n{\n}\n",
    )
    _write(
        tmp_path / "src/Application/PetService.php",
        "<?php\nnamespace App\\Application;\n\nuse App\\Domain\\Pet\\Pet;\n\n"
        "class PetService\n{\n    public function create(): Pet { return new Pet(); }\n}\n",
    )
    _write(
        tmp_path / "public/index.php",
        "<?php\nrequire_once __DIR__ . '/../vendor/autoload.php';\ninclude 'partials/header.php';\n",
    )
    _write(
        tmp_path / "public/partials/header.php",
        '<link href="/assets/css/app.css" rel="stylesheet">\n',
    )
    _write(tmp_path / "public/assets/css/app.css", "body { margin: 0; }\n")
    _write(
        tmp_path / "tests/FooTest.php",
        "<?php\nclass FooTest extends TestCase\n{\n    public function testIt(): void {}\n}\n",
    )
    _write(tmp_path / "debug_payment.php", "<?php\nvar_dump($_POST);\n")
    _write(tmp_path / "notes.md", "# scratch notes\n")
    _write(tmp_path / "legacy.bak", "old content\n")
    _write(tmp_path / "vendor/autoload.php", "<?php\n")
    return tmp_path


def make_result(path: str, category: Category = Category.NON_ESSENTIAL, confidence: int = 90) -> FileAnalysisResult:
    return FileAnalysisResult(path, category, confidence, (f"{category.value} for testing",))


def results_for(*paths: str) -> Dict[str, FileAnalysisResult]:
    return {p: make_result(p) for p in paths}
