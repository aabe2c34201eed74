"""
Move log writer for the codebase cleanup tool.

Responsibilities:
- Write a CSV log with one row per move attempt of a backup run.

Expected usage:
- BackupManager builds a list[MoveRecord] while moving candidates.
- After the batch it calls write_move_log(records, reports_dir), next to the
  Markdown report, and the CLI prints the path with
  console.print_move_log_written(...).
"""

from __future__ import annotations

from dataclasses import asdict
from pathlib import Path
from typing import Iterable, List, Sequence, Union

import pandas as pd

from .errors import LoggingError
from .models import MoveRecord

# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------

DEFAULT_LOG_FILENAME = "move-log.csv"

MOVE_LOG_COLUMNS = [
    "original_path",
    "backup_path",
    "category",
    "confidence",
    "status",
]


def write_move_log(
    records: Union[Sequence[MoveRecord], Iterable[MoveRecord]],
    log_dir: Path,
    *,
    filename: str = DEFAULT_LOG_FILENAME,
) -> Path:
    """
    Write a CSV move log and return the written file path.

    Always writes a file (even with 0 records) so the CLI can reliably
    report a log path.

    Parameters
    ----------
    records:
        Iterable of MoveRecord entries (can be empty).
    log_dir:
        Directory the log is written to, normally ``<backup>/reports``.
    filename:
        Log file name (default: "move-log.csv").

    Returns
    -------
    Path
        The path to the written CSV file.

    Raises
    ------
    LoggingError
        If the log directory cannot be created or the file cannot be written.
    """
    log_dir = Path(log_dir)
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise LoggingError(f"Failed to create log directory: {log_dir}") from exc

    log_path = log_dir / filename

    record_list: List[MoveRecord] = list(records)
    rows = [asdict(r) for r in record_list]

    # Confidence can be None; pandas writes it as a blank cell.
    df = pd.DataFrame(rows, columns=MOVE_LOG_COLUMNS)

    try:
        df.to_csv(log_path, index=False)
    except OSError as exc:
        raise LoggingError(f"Failed to write move log to '{log_path}'.") from exc

    return log_path


def read_move_log(log_path: Path) -> pd.DataFrame:
    """Load a move log written by write_move_log."""
    try:
        return pd.read_csv(log_path, dtype={"original_path": str, "backup_path": str, "status": str})
    except (OSError, ValueError) as exc:
        raise LoggingError(f"Failed to read move log '{log_path}'.") from exc
