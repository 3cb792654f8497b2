"""
RawRecord: one source line as produced by the field extractor.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class RawRecord:
    """
    Ordered string fields of one source line (ephemeral).

    Attributes:
        fields: Field values in file order
        header_map: Column name -> index map shared by every record of the file
        line_number: 1-based line number in the source (header is line 1)
    """

    fields: tuple[str, ...]
    header_map: dict[str, int]
    line_number: int = 0

    def get(self, column: str) -> str | None:
        """Return the raw value for a column, or None if the column or value is missing."""
        index = self.header_map.get(column)
        if index is None or index >= len(self.fields):
            return None
        return self.fields[index]

    def joined(self) -> str:
        """Fields joined with commas, for log messages."""
        return ",".join(self.fields)
