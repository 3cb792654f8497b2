"""
In-memory implementation of the trip store.

Used for dry runs and tests. Without SQL window functions the
reconciliation is expressed directly over the ordered staging rows:
the first row seen per duplicate key is the keeper, every later row
with the same key is a duplicate.
"""

from contextlib import contextmanager
from typing import Any, Iterable, Iterator

from .store import (
    DEFAULT_COMMITTED_TABLE,
    DEFAULT_STAGING_TABLE,
    StagedRow,
    StagingArea,
    StagingSession,
    TripStore,
)


class InMemoryStagingSession(StagingSession):
    def __init__(self, area: "InMemoryStagingArea"):
        self.area = area

    def _ordered(self) -> list[StagedRow]:
        return sorted(self.area.rows, key=lambda r: r.row_id)

    def append(self, rows: Iterable[tuple[Any, ...]]) -> int:
        appended = 0
        for values in rows:
            self.area.rows.append(StagedRow(self.area.next_id, tuple(values)))
            self.area.next_id += 1
            appended += 1
        return appended

    def count(self) -> int:
        return len(self.area.rows)

    def clear(self) -> int:
        cleared = len(self.area.rows)
        self.area.rows.clear()
        return cleared

    def find_duplicates_in_batch(self) -> list[StagedRow]:
        seen: set[tuple[Any, ...]] = set()
        duplicates = []
        for row in self._ordered():
            if row.key in seen:
                duplicates.append(row)
            else:
                seen.add(row.key)
        return duplicates

    def find_duplicates_in_store(self) -> list[StagedRow]:
        committed_keys = {values[:3] for values in self.area.store.committed}
        return [row for row in self._ordered() if row.key in committed_keys]

    def discard(self, row_ids: list[int]) -> int:
        doomed = set(row_ids)
        before = len(self.area.rows)
        self.area.rows = [row for row in self.area.rows if row.row_id not in doomed]
        return before - len(self.area.rows)

    def promote(self) -> int:
        ordered = self._ordered()
        self.area.store.committed.extend(row.values for row in ordered)
        self.area.rows.clear()
        return len(ordered)


class InMemoryStagingArea(StagingArea):
    """
    Staging table held in a list.

    A unit of work snapshots staging and the committed table length;
    any exception restores both.
    """

    def __init__(self, store: "InMemoryTripStore", table_name: str):
        super().__init__(table_name)
        self.store = store
        self.rows: list[StagedRow] = []
        self.next_id = 1
        self.exists = False

    def create(self) -> None:
        self.rows = []
        self.next_id = 1
        self.exists = True

    def drop(self) -> None:
        self.rows = []
        self.exists = False

    @contextmanager
    def unit_of_work(self) -> Iterator[InMemoryStagingSession]:
        if not self.exists:
            raise RuntimeError(f'staging table "{self.table_name}" does not exist')

        staged = list(self.rows)
        next_id = self.next_id
        committed = len(self.store.committed)
        try:
            yield InMemoryStagingSession(self)
        except BaseException:
            self.rows = staged
            self.next_id = next_id
            del self.store.committed[committed:]
            raise


class InMemoryTripStore(TripStore):
    """Committed rows kept in insertion order."""

    def __init__(self, committed_table: str = DEFAULT_COMMITTED_TABLE):
        super().__init__(committed_table)
        self.committed: list[tuple[Any, ...]] = []
        self._staging: dict[str, InMemoryStagingArea] = {}

    def ensure_schema(self) -> None:
        pass

    def staging_area(self, table_name: str = DEFAULT_STAGING_TABLE) -> InMemoryStagingArea:
        if table_name not in self._staging:
            self._staging[table_name] = InMemoryStagingArea(self, table_name)
        return self._staging[table_name]

    def count_committed(self) -> int:
        return len(self.committed)

    def fetch_committed(self) -> list[tuple[Any, ...]]:
        return list(self.committed)
