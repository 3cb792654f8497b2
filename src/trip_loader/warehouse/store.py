"""
Store interfaces used by the duplicate-aware loader.

A TripStore owns the committed table and hands out StagingArea handles.
A StagingArea has an explicit lifecycle (create, use, drop) and runs
each batch inside a unit of work: every StagingSession call made inside
``unit_of_work()`` commits together or not at all.
"""

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from dataclasses import dataclass
from typing import Any, Iterable

DEFAULT_COMMITTED_TABLE = "taxi_trips"
DEFAULT_STAGING_TABLE = "staging_taxi_trips"


@dataclass(frozen=True)
class StagedRow:
    """
    A row as it sits in the staging table.

    Attributes:
        row_id: Synthetic staging identifier, increasing in arrival order
        values: Column values in TRIP_COLUMNS order
    """

    row_id: int
    values: tuple[Any, ...]

    @property
    def key(self) -> tuple[Any, ...]:
        """(PickupDateTime, DropoffDateTime, PassengerCount)"""
        return self.values[:3]


class StagingSession(ABC):
    """Operations on the staging table inside one unit of work."""

    @abstractmethod
    def append(self, rows: Iterable[tuple[Any, ...]]) -> int:
        """Bulk-append rows in arrival order. Returns the number appended."""

    @abstractmethod
    def count(self) -> int:
        """Number of rows currently staged."""

    @abstractmethod
    def clear(self) -> int:
        """Delete every staged row. Returns the number deleted."""

    @abstractmethod
    def find_duplicates_in_batch(self) -> list[StagedRow]:
        """
        Staged rows that share a duplicate key with an earlier staged row.

        The row with the lowest row_id per key is the keeper and is never
        returned. Result is ordered by row_id.
        """

    @abstractmethod
    def find_duplicates_in_store(self) -> list[StagedRow]:
        """Staged rows whose duplicate key exists in the committed table, by row_id."""

    @abstractmethod
    def discard(self, row_ids: list[int]) -> int:
        """Delete staged rows by id. Returns the number deleted."""

    @abstractmethod
    def promote(self) -> int:
        """
        Insert every staged row into the committed table (row_id order),
        then empty the staging table. Returns the number promoted.
        """


class StagingArea(ABC):
    """Handle on one staging table for the lifetime of a pipeline run."""

    def __init__(self, table_name: str):
        self.table_name = table_name

    @abstractmethod
    def create(self) -> None:
        """Create the staging table, replacing any existing one with an empty table."""

    @abstractmethod
    def drop(self) -> None:
        """Drop the staging table if it exists."""

    @abstractmethod
    def unit_of_work(self) -> AbstractContextManager[StagingSession]:
        """Context manager yielding a session; all its changes commit atomically."""


class TripStore(ABC):
    """The destination store: committed table plus staging areas."""

    def __init__(self, committed_table: str = DEFAULT_COMMITTED_TABLE):
        self.committed_table = committed_table

    @abstractmethod
    def ensure_schema(self) -> None:
        """Create the committed table and its indexes if missing."""

    @abstractmethod
    def staging_area(self, table_name: str = DEFAULT_STAGING_TABLE) -> StagingArea:
        """Return a staging handle bound to this store's committed table."""

    @abstractmethod
    def count_committed(self) -> int:
        """Number of rows in the committed table."""

    @abstractmethod
    def fetch_committed(self) -> list[tuple[Any, ...]]:
        """All committed rows in TRIP_COLUMNS order, oldest first."""
