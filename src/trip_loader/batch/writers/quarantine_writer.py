"""
Duplicate quarantine writer.

Exports rows excluded as duplicates to a flat text file. The file is
reset (header only) at the start of every run and appended to after
every batch.
"""

from datetime import datetime
from pathlib import Path
from typing import Any, Iterable

from trip_loader.core.models import TRIP_COLUMNS
from trip_loader.warehouse.store import StagedRow

QUARANTINE_HEADER = ",".join(TRIP_COLUMNS)


def format_value(value: Any) -> str:
    """
    Text form of one exported value.

    Literal commas are replaced by periods so every line keeps
    exactly one comma between columns.
    """
    if value is None:
        text = ""
    elif isinstance(value, datetime):
        text = value.strftime("%Y-%m-%d %H:%M:%S")
    else:
        text = str(value)
    return text.replace(",", ".")


def format_line(values: Iterable[Any]) -> str:
    return ",".join(format_value(v) for v in values)


class DuplicateQuarantineWriter:
    """
    Append-only quarantine file for duplicate rows.
    """

    def __init__(self, file_path: str | Path):
        """
        Initialize quarantine writer.

        Args:
            file_path: Path of the duplicates file
        """
        self.file_path = Path(file_path)
        self.total_written = 0

    def reset(self) -> None:
        """Truncate the file and write the header line."""
        self.file_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.file_path, "w", encoding="utf-8", newline="") as f:
            f.write(QUARANTINE_HEADER + "\n")
        self.total_written = 0

    def write_rows(self, rows: Iterable[StagedRow]) -> int:
        """
        Append duplicate rows, one line each, in TRIP_COLUMNS order.

        Returns:
            Number of lines written
        """
        lines = [format_line(row.values) for row in rows]
        if not lines:
            return 0

        with open(self.file_path, "a", encoding="utf-8", newline="") as f:
            f.write("\n".join(lines) + "\n")

        self.total_written += len(lines)
        return len(lines)

    def count_lines(self) -> int:
        """Data lines currently in the file (header excluded)."""
        if not self.file_path.exists():
            return 0
        with open(self.file_path, encoding="utf-8") as f:
            return max(sum(1 for _ in f) - 1, 0)
