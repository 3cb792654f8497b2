"""
RecordOutcome: explicit success/failure result for per-record stages.
"""

from dataclasses import dataclass
from typing import Generic, TypeVar

from trip_loader.core.exceptions import TripLoaderError

T = TypeVar("T")


@dataclass(frozen=True)
class RecordOutcome(Generic[T]):
    """
    Outcome of transforming or validating one record.

    Exactly one of ``value`` and ``error`` is set.
    """

    value: T | None = None
    error: TripLoaderError | None = None

    def __post_init__(self) -> None:
        if (self.value is None) == (self.error is None):
            raise ValueError("RecordOutcome needs exactly one of value or error")

    @classmethod
    def success(cls, value: T) -> "RecordOutcome[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: TripLoaderError) -> "RecordOutcome[T]":
        return cls(error=error)

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def reason(self) -> str:
        """Failure message, empty on success."""
        return str(self.error) if self.error is not None else ""
