from __future__ import annotations

import platform
from pathlib import Path
from typing import Dict, Optional

import typer
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn

from .. import __version__
from ..core import classifier, planner, scanner
from ..core.backup import BackupManager
from ..core.errors import (
    AnalysisError,
    BackupError,
    CleanupError,
    ConfigError,
    InsufficientDiskSpaceError,
    LoggingError,
    NoBackupFoundError,
    NoFilesFoundError,
    PathNotDirectoryError,
    PathNotFoundError,
)
from ..core.models import FileAnalysisResult
from ..core.restoration import RestorationService, RestoreOptions
from ..utils.console import (
    # clean
    print_backing_up,
    print_backup_summary,
    print_building_plan,
    print_classifying,
    print_clean_start,
    print_dry_run_complete,
    print_empty_directory,
    print_insufficient_disk_space,
    print_move_log_written,
    print_move_prompt,
    print_move_warning,
    print_no_candidates,
    print_no_changes_applied,
    print_no_files_were_moved,
    print_plan_summary,
    print_scanning,
    # restore
    print_backup_contents,
    print_batch_result,
    print_no_backup,
    print_prerequisite_issues,
    print_restore_result,
    print_restore_usage,
    print_rollback_cancelled,
    print_rollback_prompt,
    # version
    print_version,
    # generic
    print_error,
    print_info,
    print_success,
)
from ..utils.env import Settings, get_settings
from ..utils.log import setup_logging
from ..utils.paths import normalize_rel_path, resolve_root

app = typer.Typer(no_args_is_help=True, help="Codebase cleanup - classify project files and back up the non-essential ones.")


def _load_settings(verbose: bool) -> Settings:
    try:
        settings = get_settings()
        setup_logging(verbose=verbose, log_file=settings.log_file)
    except ConfigError as exc:
        print_error(f"Error: Invalid configuration: {exc}")
        raise typer.Exit(code=1)
    return settings


def _resolve(path: str) -> Path:
    try:
        return resolve_root(path)
    except PathNotFoundError:
        print_error(f"Error: Path not found: {path}")
        raise typer.Exit(code=1)
    except PathNotDirectoryError:
        print_error(f"Error: Provided path is not a directory: {path}")
        raise typer.Exit(code=1)


@app.command()
def version() -> None:
    """Display version information."""
    try:
        backup_dir = get_settings().backup_dir
    except ConfigError as exc:
        backup_dir = f"invalid ({exc})"
    print_version(__version__, platform.python_version(), backup_dir)


@app.command()
def clean(
    path: str = typer.Argument(
        ".",
        metavar="PATH",
        help="Project root to analyze.",
    ),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        help="Classify and report only; do not move anything.",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable debug logging.",
    ),
    backup_dir: Optional[str] = typer.Option(
        None,
        "--backup-dir",
        help="Backup directory relative to PATH (default: CLEANUP_BACKUP_DIR or 'backup').",
    ),
) -> None:
    """
    Classify every file under PATH and move the non-essential ones to backup.

    Pipeline:
      - resolve PATH
      - scan project -> DataFrame
      - classify (dependency, usage, functional, pattern analyzers)
      - build a plan + print summary
      - prompt user (unless --dry-run)
      - move candidates to backup + write manifest, report and CSV move log
    """
    settings = _load_settings(verbose)
    backup_name = (backup_dir or settings.backup_dir).strip("/") or settings.backup_dir

    # 1) Resolve root path
    root = _resolve(path)
    print_clean_start(root, dry_run)

    # 2) Scan project
    print_scanning()
    try:
        df = scanner.scan_project(root, backup_dir=backup_name, extra_excludes=settings.extra_excludes)
    except NoFilesFoundError:
        print_empty_directory(root)
        raise typer.Exit(code=0)

    # 3) Classify files
    print_classifying(len(df))
    analyzers = classifier.default_analyzers(
        root, backup_dir=backup_name, extra_excludes=settings.extra_excludes
    )
    engine = classifier.ClassificationEngine(root, analyzers)

    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TextColumn("{task.completed}/{task.total}"),
            transient=True,
        ) as progress:
            task = progress.add_task(description="Classifying files...", total=len(df))
            results: Dict[str, FileAnalysisResult] = classifier.classify_files(
                df,
                engine,
                progress=lambda done, total, _path: progress.update(task, completed=done),
            )
    except AnalysisError as exc:
        print_error(f"Error: Classification failed: {exc}")
        print_no_files_were_moved()
        raise typer.Exit(code=1)

    # 4) Build plan summary
    print_building_plan()
    try:
        plan = planner.build_plan(results, df, root_path=root)
    except AnalysisError as exc:
        print_error(f"Error: Failed to build cleanup plan: {exc}")
        print_no_files_were_moved()
        raise typer.Exit(code=1)

    print_plan_summary(plan)

    candidate_count = len(plan.move_candidates)
    if candidate_count == 0:
        print_no_candidates()
        raise typer.Exit(code=0)

    manager = BackupManager(root, backup_dir=backup_name, disk_space_buffer=settings.disk_buffer)

    # 5) Dry run: check disk space, report, stop
    if dry_run:
        try:
            manager.create_backup(results, dry_run=True)
        except InsufficientDiskSpaceError as exc:
            print_insufficient_disk_space(exc.required, exc.available)
            raise typer.Exit(code=1)
        except BackupError as exc:
            print_error(f"Error: {exc}")
            raise typer.Exit(code=1)
        print_dry_run_complete(candidate_count)
        raise typer.Exit(code=0)

    # 6) Confirm
    print_move_prompt(candidate_count)
    choice = input().strip().lower()
    if choice not in ("y", "yes"):
        print_no_changes_applied()
        raise typer.Exit(code=0)

    # 7) Move candidates to backup
    print_backing_up(manager.backup_path)
    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            transient=True,
        ) as progress:
            task = progress.add_task(description="Moving files to backup...", total=candidate_count)
            manifest = manager.create_backup(
                results,
                progress=lambda done, total, _path: progress.update(task, completed=done),
            )
    except InsufficientDiskSpaceError as exc:
        print_insufficient_disk_space(exc.required, exc.available)
        raise typer.Exit(code=1)
    except LoggingError as exc:
        # Files were moved and the manifest saved; only the CSV log failed.
        print_error(f"Error: Failed to write move log: {exc}")
        raise typer.Exit(code=1)
    except BackupError as exc:
        print_error(f"Error: Backup failed: {exc}")
        raise typer.Exit(code=1)

    # 8) Per-file warnings and summary
    for file_path, reason in manifest.errors.items():
        print_move_warning(file_path, reason)

    print_backup_summary(manifest)
    if manager.move_log_path is not None:
        print_move_log_written(manager.move_log_path, had_moves=bool(manifest.moved_files))


@app.command()
def restore(
    path: str = typer.Argument(
        ".",
        metavar="PATH",
        help="Project root that holds the backup.",
    ),
    restore_all: bool = typer.Option(
        False,
        "--all",
        help="Restore every file (complete rollback, empties the backup store).",
    ),
    file: Optional[str] = typer.Option(
        None,
        "--file",
        help="Restore a single file (path relative to PATH).",
    ),
    directory: Optional[str] = typer.Option(
        None,
        "--directory",
        help="Restore every backed-up file under this directory.",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable debug logging.",
    ),
    backup_dir: Optional[str] = typer.Option(
        None,
        "--backup-dir",
        help="Backup directory relative to PATH (default: CLEANUP_BACKUP_DIR or 'backup').",
    ),
) -> None:
    """
    Restore files from the backup under PATH.

    Without --all, --file or --directory, lists the backup contents.
    """
    settings = _load_settings(verbose)
    backup_name = (backup_dir or settings.backup_dir).strip("/") or settings.backup_dir

    root = _resolve(path)
    manager = BackupManager(root, backup_dir=backup_name, disk_space_buffer=settings.disk_buffer)
    service = RestorationService(manager, root)

    if not manager.has_backup():
        print_no_backup(root)
        raise typer.Exit(code=1)

    try:
        issues = service.validate_restoration_prerequisites()
        if issues:
            print_prerequisite_issues(issues)
            raise typer.Exit(code=1)

        manifest = manager.get_manifest()
        if manifest is None:
            print_no_backup(root)
            raise typer.Exit(code=1)

        if not (restore_all or file or directory):
            print_backup_contents(manifest)
            print_restore_usage()
            raise typer.Exit(code=0)

        if restore_all:
            print_rollback_prompt(len(manifest.moved_files))
            choice = input().strip().lower()
            if choice not in ("y", "yes"):
                print_rollback_cancelled()
                raise typer.Exit(code=0)

            batch = service.perform_complete_rollback(RestoreOptions(confirm_rollback=True))
            print_batch_result(batch)
            if batch.is_fully_successful():
                print_success("Complete rollback successful.")

        elif file:
            result = service.restore_file(normalize_rel_path(file, root))
            print_restore_result(result)
            if result.is_error:
                raise typer.Exit(code=1)

        else:
            rel_dir = normalize_rel_path(directory or "", root)
            batch = service.restore_directory(rel_dir)
            if batch.total_count == 0:
                print_info(f"No backed-up files found under '{rel_dir}'.")
            else:
                print_batch_result(batch)

    except NoBackupFoundError:
        print_no_backup(root)
        raise typer.Exit(code=1)
    except CleanupError as exc:
        print_error(f"Error: {exc}")
        raise typer.Exit(code=1)
