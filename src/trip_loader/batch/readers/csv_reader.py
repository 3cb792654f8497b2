"""
Streaming CSV field extractor.

Reads one line at a time so arbitrarily large trip files never sit in
memory as a whole.
"""

import csv
from pathlib import Path
from typing import Iterator, TextIO

from trip_loader.core.exceptions import SourceUnavailableError
from trip_loader.core.models import RawRecord


class CsvFieldExtractor:
    """
    Yields the header map and a lazy sequence of RawRecords.

    Usage:
        with CsvFieldExtractor("trips.csv") as extractor:
            header_map = extractor.header_map
            for raw in extractor:
                ...
    """

    def __init__(self, file_path: str | Path, delimiter: str = ",", encoding: str = "utf-8-sig"):
        """
        Initialize CSV extractor.

        Args:
            file_path: Path to the delimited source file
            delimiter: Field delimiter
            encoding: File encoding (the default strips a UTF-8 BOM)
        """
        self.file_path = Path(file_path)
        self.delimiter = delimiter
        self.encoding = encoding
        self.header_map: dict[str, int] = {}
        self._handle: TextIO | None = None
        self._reader = None

    def open(self) -> dict[str, int]:
        """
        Open the source and read its header row.

        Returns:
            Column name -> index map

        Raises:
            SourceUnavailableError: If the file cannot be opened or has no header
        """
        try:
            self._handle = open(self.file_path, newline="", encoding=self.encoding)
        except OSError as e:
            raise SourceUnavailableError(
                f"Error while reading file: {self.file_path}",
                context={"path": str(self.file_path), "reason": str(e)},
            ) from e

        self._reader = csv.reader(self._handle, delimiter=self.delimiter)
        try:
            header = next(self._reader, None)
        except (csv.Error, UnicodeDecodeError) as e:
            self.close()
            raise SourceUnavailableError(f"Unreadable header in {self.file_path}: {e}") from e

        if not header or not any(name.strip() for name in header):
            self.close()
            raise SourceUnavailableError(f"Header row is empty: {self.file_path}")

        self.header_map = {name: index for index, name in enumerate(header)}
        return self.header_map

    def __iter__(self) -> Iterator[RawRecord]:
        if self._reader is None:
            raise RuntimeError("Extractor is not open. Call open() first.")

        try:
            for fields in self._reader:
                # Blank lines carry no record
                if not fields:
                    continue
                yield RawRecord(
                    fields=tuple(fields),
                    header_map=self.header_map,
                    line_number=self._reader.line_num,
                )
        except (csv.Error, OSError, UnicodeDecodeError) as e:
            raise SourceUnavailableError(
                f"Error while reading file: {self.file_path} (line {self._reader.line_num}): {e}"
            ) from e
        finally:
            self.close()

    def close(self) -> None:
        if self._handle is not None:
            self._handle.close()
            self._handle = None

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
