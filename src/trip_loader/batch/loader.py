"""
Duplicate-aware batch loader.

Moves one batch of trip records into the committed table through a
staging area:

1. Stage:   bulk-append the batch into staging
2. Reconcile within staging: keep the earliest row per duplicate key
3. Reconcile against the committed table: drop staged rows whose key
   is already committed
4. Promote: move what is left into the committed table

Steps 1-4 run in one unit of work, so a failure leaves staging exactly
as it was before the batch. Duplicates are written to the quarantine
file once the unit of work has committed.
"""

import threading
from dataclasses import dataclass
from typing import Sequence

from trip_loader.core.exceptions import DuplicateExportError, LoadFailure
from trip_loader.core.models import TripRecord
from trip_loader.observability import metrics
from trip_loader.observability.logger import get_logger, log_operation
from trip_loader.warehouse.store import DEFAULT_STAGING_TABLE, StagedRow, TripStore

from .writers import DuplicateQuarantineWriter

logger = get_logger(__name__)

# Serializes the staging protocol; one file is loaded per run, so a
# single process-wide lock is enough.
STAGING_LOCK = threading.Lock()


@dataclass
class LoadResult:
    """Counts for one loader call."""

    staged: int = 0
    duplicates_in_batch: int = 0
    duplicates_in_store: int = 0
    committed: int = 0

    @property
    def duplicates(self) -> int:
        return self.duplicates_in_batch + self.duplicates_in_store


class DuplicateAwareLoader:
    """
    Loads batches into a TripStore, quarantining duplicates.

    Duplicate identity is (pickup time, dropoff time, passenger count).
    Among staged rows sharing a key the first one staged is kept; a
    staged row whose key is already committed is never promoted.
    Committed rows are never modified.

    Lifecycle:
        loader.open()         # empty staging, reset quarantine file
        loader.load(batch)    # any number of times
        loader.close()        # drop staging
    """

    def __init__(
        self,
        store: TripStore,
        quarantine: DuplicateQuarantineWriter,
        staging_table: str = DEFAULT_STAGING_TABLE,
    ):
        """
        Initialize loader.

        Args:
            store: Destination store
            quarantine: Writer for duplicate rows
            staging_table: Name of the staging table owned by this loader
        """
        self.store = store
        self.quarantine = quarantine
        self.staging = store.staging_area(staging_table)

    def open(self) -> None:
        """
        Prepare a run: reset the quarantine file and recreate staging empty.

        Raises:
            LoadFailure: If either cannot be prepared
        """
        try:
            self.quarantine.reset()
            self.staging.create()
        except Exception as e:
            raise LoadFailure(f"Could not prepare staging area {self.staging.table_name}: {e}") from e
        logger.info(f"Staging area {self.staging.table_name} ready")

    def close(self) -> None:
        """Drop the staging area."""
        self.staging.drop()
        logger.info(f"Staging area {self.staging.table_name} dropped")

    def load(self, records: Sequence[TripRecord]) -> LoadResult:
        """
        Stage, reconcile and promote one batch.

        Args:
            records: Validated records in arrival order

        Returns:
            LoadResult with staged, duplicate and committed counts

        Raises:
            LoadFailure: If any step fails; nothing from the batch is committed
            DuplicateExportError: If the batch was committed but its duplicates
                could not be written; carries the batch's LoadResult
        """
        if not records:
            return LoadResult()

        with STAGING_LOCK:
            try:
                with log_operation("Loading batch", logger=logger, rows=len(records)):
                    with metrics.load_duration_seconds.time():
                        result, duplicates = self._run_protocol(records)
            except Exception as e:
                metrics.record_batch_load(success=False)
                raise LoadFailure(
                    f"Failed to load batch of {len(records)} rows: {e}",
                    context={"rows": len(records)},
                ) from e

            metrics.record_batch_load(
                success=True,
                committed=result.committed,
                duplicates_in_batch=result.duplicates_in_batch,
                duplicates_in_store=result.duplicates_in_store,
            )

            try:
                self.quarantine.write_rows(duplicates)
            except OSError as e:
                raise DuplicateExportError(
                    f"Batch committed but {len(duplicates)} duplicates could not be exported "
                    f"to {self.quarantine.file_path}: {e}",
                    result,
                    context={"duplicates": len(duplicates)},
                ) from e

        if result.duplicates:
            logger.info(
                f"Quarantined {result.duplicates} duplicate rows "
                f"({result.duplicates_in_batch} in batch, {result.duplicates_in_store} already committed)"
            )
        return result

    def _run_protocol(self, records: Sequence[TripRecord]) -> tuple[LoadResult, list[StagedRow]]:
        result = LoadResult()

        with self.staging.unit_of_work() as session:
            leftover = session.count()
            if leftover:
                logger.warning(
                    f"Staging area {self.staging.table_name} held {leftover} rows from an "
                    "earlier batch; discarding them"
                )
                session.clear()

            result.staged = session.append(record.as_row() for record in records)

            in_batch = session.find_duplicates_in_batch()
            session.discard([row.row_id for row in in_batch])
            result.duplicates_in_batch = len(in_batch)

            in_store = session.find_duplicates_in_store()
            session.discard([row.row_id for row in in_store])
            result.duplicates_in_store = len(in_store)

            result.committed = session.promote()

        return result, in_batch + in_store
