from __future__ import annotations

from pathlib import Path

from codebase_cleanup.core.logger import MOVE_LOG_COLUMNS, read_move_log, write_move_log
from codebase_cleanup.core.models import MoveRecord


def test_writes_one_row_per_record(tmp_path: Path) -> None:
    records = [
        MoveRecord("notes.md", "moved-files/notes.md", "non-essential", 80, "success"),
        MoveRecord("gone.php", "", "non-essential", 90, "failed: Source file does not exist"),
    ]

    log_path = write_move_log(records, tmp_path / "reports")

    assert log_path == tmp_path / "reports" / "move-log.csv"
    df = read_move_log(log_path)
    assert list(df.columns) == MOVE_LOG_COLUMNS
    assert df["status"].tolist() == ["success", "failed: Source file does not exist"]


def test_empty_log_still_has_header(tmp_path: Path) -> None:
    log_path = write_move_log([], tmp_path)

    assert log_path.read_text().strip() == ",".join(MOVE_LOG_COLUMNS)
