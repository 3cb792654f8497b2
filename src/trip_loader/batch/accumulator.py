"""
Fixed-capacity batch of validated trip records.
"""

from trip_loader.core.models import TripRecord

DEFAULT_BATCH_SIZE = 5000


class BatchAccumulator:
    """
    Collects validated records until the batch reaches capacity.

    The orchestrator owns the single accumulator of a run, lends
    ``records`` to the loader and calls ``clear()`` after every load
    attempt.
    """

    def __init__(self, capacity: int = DEFAULT_BATCH_SIZE):
        if capacity < 1:
            raise ValueError(f"Batch capacity must be at least 1, got {capacity}")
        self.capacity = capacity
        self._records: list[TripRecord] = []

    def add(self, record: TripRecord) -> bool:
        """
        Append a record.

        Returns:
            True when the batch is full and should be loaded
        """
        if self.is_full:
            raise OverflowError("Batch is full; load and clear it before adding more records")
        self._records.append(record)
        return self.is_full

    @property
    def is_full(self) -> bool:
        return len(self._records) >= self.capacity

    @property
    def records(self) -> list[TripRecord]:
        return self._records

    def clear(self) -> None:
        self._records.clear()

    def __len__(self) -> int:
        return len(self._records)

    def __bool__(self) -> bool:
        return bool(self._records)
