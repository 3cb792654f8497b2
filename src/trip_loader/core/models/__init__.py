"""
Core data models for the trip loading pipeline.
"""

from .outcome import RecordOutcome
from .raw_record import RawRecord
from .trip_record import (
    DUPLICATE_KEY_COLUMNS,
    TRIP_COLUMNS,
    StoreAndForwardFlag,
    TripRecord,
)

__all__ = [
    "RawRecord",
    "TripRecord",
    "StoreAndForwardFlag",
    "RecordOutcome",
    "TRIP_COLUMNS",
    "DUPLICATE_KEY_COLUMNS",
]
