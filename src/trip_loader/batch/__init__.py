"""
Batch loading module.
"""

from .accumulator import DEFAULT_BATCH_SIZE, BatchAccumulator
from .loader import DuplicateAwareLoader, LoadResult
from .pipeline import RunSummary, TripPipeline
from .readers import CsvFieldExtractor
from .writers import DuplicateQuarantineWriter

__all__ = [
    "BatchAccumulator",
    "DEFAULT_BATCH_SIZE",
    "CsvFieldExtractor",
    "DuplicateAwareLoader",
    "DuplicateQuarantineWriter",
    "LoadResult",
    "RunSummary",
    "TripPipeline",
]
