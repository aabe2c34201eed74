"""
Console utilities for the `codebase-cleanup` CLI.

This module centralizes **all** user-facing terminal output and uses Rich
for styling and tables. Typer command handlers should call these helpers
instead of printing directly. Diagnostic detail goes through ``logging``
(see utils/log.py), not through this module.
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Optional, Union

from rich.console import Console
from rich.table import Table

from ..core.fs import format_bytes
from ..core.manifest import BackupManifest
from ..core.models import BatchRestorationResult, PlanSummary, RestorationResult

# Single shared console instance
console = Console()

BACKUP_LIST_LIMIT = 20

# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _path_str(path: Union[Path, str]) -> str:
    return str(path)


def _format_confidence(value: Optional[float]) -> str:
    if value is None:
        return "-"
    return f"{value:.1f}%"


# ---------------------------------------------------------------------------
# Generic helpers (errors, warnings, success)
# ---------------------------------------------------------------------------


def print_error(message: str) -> None:
    """Print a generic error message in bold red."""
    console.print(f"[bold red]{message}[/bold red]")


def print_warning(message: str) -> None:
    """Print a generic warning message in yellow."""
    console.print(f"[bold yellow]Warning:[/bold yellow] {message}")


def print_success(message: str) -> None:
    """Print a generic success/completion message in green."""
    console.print(f"[green]{message}[/green]")


def print_info(message: str) -> None:
    console.print(message)


def print_no_files_were_moved() -> None:
    console.print("No files were moved.")


# ---------------------------------------------------------------------------
# Command: codebase-cleanup clean PATH
# ---------------------------------------------------------------------------


def print_clean_start(path: Union[Path, str], dry_run: bool) -> None:
    mode = " (dry run)" if dry_run else ""
    console.print(f"[bold]Analyzing codebase under '{_path_str(path)}'{mode}...[/bold]")


def print_scanning() -> None:
    console.print("Scanning project files...")


def print_classifying(file_count: int) -> None:
    console.print(f"Classifying {file_count} files (dependency, usage, functional and pattern analysis)...")


def print_building_plan() -> None:
    console.print("Building cleanup plan...")


def print_empty_directory(path: Union[Path, str]) -> None:
    console.print(f"No analyzable files found under '{_path_str(path)}'.")


def print_plan_summary(plan: PlanSummary) -> None:
    """
    Print the classification summary for `clean`.

    Shows totals, a per-category table, sample files per category, the
    confidence distribution and the files that need manual review.
    """
    console.print(f"[bold]Cleanup plan for: {_path_str(plan.root_path)}[/bold]")
    console.print(
        f"Total files: {plan.total_files} | "
        f"Total size: {plan.total_size_mb:.2f} MB | "
        f"Move candidates: {len(plan.move_candidates)} "
        f"({format_bytes(plan.candidate_size_bytes)}) | "
        f"Review required: {len(plan.review_files)}"
    )

    table = Table("Category", "Files", "Size (MB)", "Avg confidence")
    for cat in plan.categories:
        table.add_row(
            cat.category,
            str(cat.file_count),
            f"{cat.total_size_mb:.2f}",
            _format_confidence(cat.avg_confidence),
        )
    console.print(table)

    for cat in plan.categories:
        if not cat.sample_files:
            continue
        console.print()
        console.print(f"[bold]{cat.category}[/bold]")
        console.print("Sample files:")
        for name in cat.sample_files:
            console.print(f" - {name}")

    buckets = plan.confidence_buckets
    console.print()
    console.print(
        "Confidence: "
        f"high {buckets.get('high', 0)} | "
        f"medium {buckets.get('medium', 0)} | "
        f"low {buckets.get('low', 0)}"
    )

    if plan.review_files:
        console.print(
            "Note: 'uncertain' files are never moved. Review them manually before deleting anything."
        )


def print_dry_run_complete(candidate_count: int) -> None:
    console.print(
        f"[green]Dry run complete. {candidate_count} files would be moved to backup. "
        "No files were moved.[/green]"
    )


def print_no_candidates() -> None:
    console.print("[green]No non-essential files found. Nothing to back up.[/green]")


def print_move_prompt(candidate_count: int) -> None:
    """
    Print the confirmation prompt:
    'Proceed with moving {N} files to backup? (y/n): '

    This function only prints; command code is responsible for reading input.
    """
    console.print(f"Proceed with moving {candidate_count} files to backup? (y/n): ", end="")


def print_no_changes_applied() -> None:
    console.print("No changes applied.")
    print_no_files_were_moved()


def print_backing_up(backup_path: Union[Path, str]) -> None:
    console.print(f"Moving files to backup at '{_path_str(backup_path)}'...")


def print_move_warning(file_path: Union[Path, str], error_reason: str) -> None:
    """
    Per-file warning during the move phase.

    Text: "Warning: failed to move '{file_path}': {error_reason}"
    """
    print_warning(f"failed to move '{_path_str(file_path)}': {error_reason}")


def print_insufficient_disk_space(required: int, available: int) -> None:
    print_error(
        f"Error: Insufficient disk space for backup. "
        f"Required: {format_bytes(required)}, Available: {format_bytes(available)}"
    )
    print_no_files_were_moved()


def print_backup_summary(manifest: BackupManifest) -> None:
    """
    End-of-run summary for `clean`:

    - "Moved {n} files to backup ({size})."
    - "Failed to move {n} files (see warnings above)."
    - location of manifest and report
    """
    stats = manifest.statistics
    console.print(
        f"Moved {len(manifest.moved_files)} files to backup "
        f"({format_bytes(stats.get('total_size_moved', 0))})."
    )
    if manifest.errors:
        console.print(f"Failed to move {len(manifest.errors)} files (see warnings above).")
    console.print(f"Success rate: {stats.get('success_rate', 0)}%")
    console.print(f"Backup location: '{_path_str(manifest.backup_root)}'")
    console.print(f"Report: '{_path_str(manifest.backup_root / 'reports' / 'backup-report.md')}'")


def print_move_log_written(log_path: Union[Path, str], had_moves: bool) -> None:
    """
    Print log path summary:

    - "Move log written to '{log_path}'."
    - or "Move log written to '{log_path}' (no moves recorded)."
    """
    path_str = _path_str(log_path)
    if had_moves:
        console.print(f"Move log written to '{path_str}'.")
    else:
        console.print(f"Move log written to '{path_str}' (no moves recorded).")


# ---------------------------------------------------------------------------
# Command: codebase-cleanup restore PATH
# ---------------------------------------------------------------------------


def print_no_backup(path: Union[Path, str]) -> None:
    print_error(f"Error: No backup found for '{_path_str(path)}'.")


def print_prerequisite_issues(issues: Iterable[str]) -> None:
    print_error("Error: Restoration prerequisites not met:")
    for issue in issues:
        console.print(f" - {issue}")


def print_backup_contents(manifest: BackupManifest, limit: int = BACKUP_LIST_LIMIT) -> None:
    """List what the backup holds."""
    summary = manifest.summary()
    console.print(f"[bold]Backup created {summary['created_at']}[/bold]")
    console.print(
        f"Files in backup: {len(manifest.moved_files)} | "
        f"Size: {format_bytes(manifest.statistics.get('total_size_moved', 0))} | "
        f"Restored so far: {len(manifest.restored_files)}"
    )

    if not manifest.moved_files:
        console.print("The backup store is empty.")
        return

    table = Table("Original path", "Category", "Confidence")
    for original in list(manifest.moved_files)[:limit]:
        result = manifest.get_analysis_result(original)
        table.add_row(
            original,
            result.category.value if result else "unknown",
            f"{result.confidence_score}%" if result else "-",
        )
    console.print(table)

    remaining = len(manifest.moved_files) - limit
    if remaining > 0:
        console.print(f"... and {remaining} more (see the backup report for the full list)")


def print_restore_usage() -> None:
    console.print()
    console.print("[bold]Usage:[/bold]")
    console.print("  codebase-cleanup restore PATH --file path/to/file.php")
    console.print("  codebase-cleanup restore PATH --directory tests/")
    console.print("  codebase-cleanup restore PATH --all")


def print_rollback_prompt(file_count: int) -> None:
    """
    Print the rollback confirmation prompt.

    This function only prints; command code is responsible for reading input.
    """
    console.print(
        f"Restore all {file_count} files and empty the backup store? (y/n): ",
        end="",
    )


def print_rollback_cancelled() -> None:
    console.print("Rollback cancelled. No files were restored.")


def print_restore_result(result: RestorationResult) -> None:
    if result.success:
        print_success(f"Restored '{result.file_path}'.")
        if result.conflict_resolution and result.conflict_resolution.message:
            console.print(f"  {result.conflict_resolution.message}")
        if result.warning:
            print_warning(result.warning)
    elif result.skipped:
        print_warning(f"skipped '{result.file_path}': {result.message}")
    else:
        print_error(f"Error: Failed to restore '{result.file_path}': {result.error}")


def print_batch_result(batch: BatchRestorationResult) -> None:
    console.print(
        f"Restored {batch.success_count} of {batch.total_count} files "
        f"({batch.skipped_count} skipped, {batch.error_count} failed)."
    )
    for path, reason in batch.failed_files().items():
        print_warning(f"failed to restore '{path}': {reason}")
    for path, warning in batch.warnings().items():
        print_warning(f"'{path}': {warning}")
    for path, reason in batch.skipped_files().items():
        console.print(f" - skipped '{path}': {reason}")


# ---------------------------------------------------------------------------
# Command: codebase-cleanup version
# ---------------------------------------------------------------------------


def print_version(version: str, python_version: str, backup_dir: str) -> None:
    """
    Print version information:

    - "codebase-cleanup {version}"
    - "Python {python_version}"
    - "Backup directory: {backup_dir}"
    """
    console.print(f"[bold]codebase-cleanup {version}[/bold]")
    console.print(f"Python {python_version}")
    console.print(f"Backup directory: {backup_dir}")
