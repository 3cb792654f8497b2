"""
Batch data sink writers.
"""

from .quarantine_writer import QUARANTINE_HEADER, DuplicateQuarantineWriter

__all__ = [
    "DuplicateQuarantineWriter",
    "QUARANTINE_HEADER",
]
