"""
Trip pipeline orchestration.

Coordinates the flow: extract → transform → validate → accumulate → load
"""

from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Callable, Optional

from trip_loader.core.exceptions import DuplicateExportError, LoadFailure, SourceUnavailableError
from trip_loader.core.models import RawRecord
from trip_loader.core.transformer import RecordTransformer
from trip_loader.core.validators import RecordValidator
from trip_loader.observability import metrics
from trip_loader.observability.logger import get_logger

from .accumulator import DEFAULT_BATCH_SIZE, BatchAccumulator
from .loader import DuplicateAwareLoader, LoadResult
from .readers import CsvFieldExtractor

logger = get_logger(__name__)

STATUS_COMPLETED = "completed"
STATUS_ABORTED = "aborted"


@dataclass
class RunSummary:
    """
    Counts for one pipeline run.

    ``processed`` is the number of records that passed transform and
    validation and were handed to the loader, duplicates included.
    """

    processed: int = 0
    malformed: int = 0
    rejected: int = 0
    batches_loaded: int = 0
    batches_failed: int = 0
    committed: int = 0
    duplicates_in_batch: int = 0
    duplicates_in_store: int = 0
    status: str = STATUS_COMPLETED
    error: Optional[str] = None

    @property
    def completed(self) -> bool:
        return self.status == STATUS_COMPLETED

    @property
    def duplicates(self) -> int:
        return self.duplicates_in_batch + self.duplicates_in_store

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class TripPipeline:
    """
    Orchestrates one load of a trip file.

    Flow:
    1. Prepare the loader (quarantine file, staging), then open the source
    2. Transform each raw row; malformed rows are logged and dropped
    3. Validate each record; rule violations are logged and dropped
    4. Accumulate records; load every full batch and the final partial one
    5. Tear down the staging area, whatever happened before

    A failed batch is logged and skipped. A source that cannot be opened
    or read, or a staging area that cannot be created, ends the run as
    aborted. ``run`` never raises.
    """

    def __init__(
        self,
        loader: DuplicateAwareLoader,
        transformer: Optional[RecordTransformer] = None,
        validator: Optional[RecordValidator] = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        extractor_factory: Callable[[str | Path], CsvFieldExtractor] = CsvFieldExtractor,
    ):
        """
        Initialize trip pipeline.

        Args:
            loader: Duplicate-aware loader owning the staging area
            transformer: Raw-row transformer (defaults to New York source time)
            validator: Business-rule validator (defaults to the standard rules)
            batch_size: Records per loader call
            extractor_factory: Builds a field extractor for a source path
        """
        self.loader = loader
        self.transformer = transformer or RecordTransformer()
        self.validator = validator or RecordValidator()
        self.batch_size = batch_size
        self.extractor_factory = extractor_factory

    def run(self, source: str | Path) -> RunSummary:
        """
        Run the pipeline over one source file.

        Args:
            source: Path of the delimited trip file

        Returns:
            RunSummary with record, batch and duplicate counts
        """
        summary = RunSummary()
        batch = BatchAccumulator(self.batch_size)
        extractor = None

        logger.info(f"Starting ETL for file: {source}")
        try:
            # The duplicates file is reset even when the source cannot be read
            self.loader.open()
            extractor = self.extractor_factory(source)
            extractor.open()

            for raw in extractor:
                self._accept(raw, batch, summary)
                if batch.is_full:
                    self._flush(batch, summary)

            if batch:
                self._flush(batch, summary)

        except SourceUnavailableError as e:
            logger.error(f"Source unavailable, aborting run: {e}", exc_info=True)
            summary.status = STATUS_ABORTED
            summary.error = str(e)
        except LoadFailure as e:
            logger.error(f"Could not prepare loader, aborting run: {e}", exc_info=True)
            summary.status = STATUS_ABORTED
            summary.error = str(e)
        except Exception as e:
            logger.error(f"Unexpected error, aborting run: {e}", exc_info=True)
            summary.status = STATUS_ABORTED
            summary.error = str(e)
        finally:
            if extractor is not None:
                extractor.close()
            try:
                self.loader.close()
            except Exception as e:
                logger.error(f"Failed to drop staging area: {e}", exc_info=True)

        logger.info(f"ETL completed! Processed {summary.processed} rows.")
        return summary

    def _accept(self, raw: RawRecord, batch: BatchAccumulator, summary: RunSummary) -> None:
        transformed = self.transformer.transform(raw)
        if not transformed.ok:
            logger.warning(f"Parsing error: {transformed.reason}\t fields: {raw.joined()}")
            summary.malformed += 1
            metrics.record_outcome("malformed")
            return

        validated = self.validator.evaluate(transformed.value)
        if not validated.ok:
            logger.warning(f"Failed to validate row: {validated.reason}\t fields: {raw.joined()}")
            summary.rejected += 1
            metrics.record_outcome("rejected")
            return

        metrics.record_outcome("accepted")
        batch.add(validated.value)

    def _flush(self, batch: BatchAccumulator, summary: RunSummary) -> None:
        size = len(batch)
        logger.info(f"Inserting {size} rows into db")
        summary.processed += size
        try:
            result = self.loader.load(batch.records)
        except DuplicateExportError as e:
            logger.error(f"Error while exporting duplicates of batch of {size} rows: {e}", exc_info=True)
            self._count_loaded(e.result, summary)
        except LoadFailure as e:
            logger.error(f"Error while inserting batch of {size} rows: {e}", exc_info=True)
            summary.batches_failed += 1
        else:
            self._count_loaded(result, summary)
        finally:
            batch.clear()

    @staticmethod
    def _count_loaded(result: LoadResult, summary: RunSummary) -> None:
        summary.batches_loaded += 1
        summary.committed += result.committed
        summary.duplicates_in_batch += result.duplicates_in_batch
        summary.duplicates_in_store += result.duplicates_in_store
