"""
Batch data source readers.
"""

from .csv_reader import CsvFieldExtractor

__all__ = [
    "CsvFieldExtractor",
]
