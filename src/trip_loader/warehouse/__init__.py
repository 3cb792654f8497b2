"""
Destination store: committed trip table and staging areas.
"""

from .memory_store import InMemoryTripStore
from .store import (
    DEFAULT_COMMITTED_TABLE,
    DEFAULT_STAGING_TABLE,
    StagedRow,
    StagingArea,
    StagingSession,
    TripStore,
)

__all__ = [
    "TripStore",
    "StagingArea",
    "StagingSession",
    "StagedRow",
    "InMemoryTripStore",
    "DEFAULT_COMMITTED_TABLE",
    "DEFAULT_STAGING_TABLE",
]
