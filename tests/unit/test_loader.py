"""
Unit tests for DuplicateAwareLoader against the in-memory store.
"""

import logging
from decimal import Decimal

import pytest

from trip_loader.batch.loader import DuplicateAwareLoader, LoadResult
from trip_loader.batch.writers import QUARANTINE_HEADER, DuplicateQuarantineWriter
from trip_loader.core.exceptions import DuplicateExportError, LoadFailure
from trip_loader.observability.metrics import REGISTRY
from trip_loader.warehouse.memory_store import InMemoryStagingSession


@pytest.fixture
def quarantine(tmp_path) -> DuplicateQuarantineWriter:
    return DuplicateQuarantineWriter(tmp_path / "duplicates.csv")


@pytest.fixture
def loader(memory_store, quarantine) -> DuplicateAwareLoader:
    loader = DuplicateAwareLoader(memory_store, quarantine)
    loader.open()
    yield loader
    loader.close()


def committed_keys(store) -> list[tuple]:
    return [values[:3] for values in store.fetch_committed()]


def sample(name: str, labels: dict | None = None) -> float:
    return REGISTRY.get_sample_value(name, labels or {}) or 0.0


@pytest.mark.unit
class TestLifecycle:
    """Tests for open/close"""

    def test_open_resets_quarantine_and_creates_staging(self, memory_store, quarantine):
        quarantine.file_path.write_text("stale\n", encoding="utf-8")
        loader = DuplicateAwareLoader(memory_store, quarantine)
        loader.open()

        assert quarantine.file_path.read_text(encoding="utf-8") == QUARANTINE_HEADER + "\n"
        assert loader.staging.exists

    def test_close_drops_staging(self, memory_store, quarantine):
        loader = DuplicateAwareLoader(memory_store, quarantine, staging_table="my_staging")
        loader.open()
        loader.close()

        assert loader.staging.table_name == "my_staging"
        assert not loader.staging.exists

    def test_open_failure_wrapped(self, memory_store, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("x", encoding="utf-8")
        loader = DuplicateAwareLoader(memory_store, DuplicateQuarantineWriter(blocker / "duplicates.csv"))

        with pytest.raises(LoadFailure):
            loader.open()

    def test_load_before_open_fails(self, memory_store, quarantine, trip_factory):
        loader = DuplicateAwareLoader(memory_store, quarantine)
        with pytest.raises(LoadFailure):
            loader.load([trip_factory()])


@pytest.mark.unit
class TestReconciliation:
    """Tests for the two-tier duplicate reconciliation"""

    def test_empty_batch(self, loader):
        assert loader.load([]) == LoadResult()

    def test_clean_batch(self, loader, memory_store, quarantine, trip_factory):
        records = [trip_factory(pickup_minute=m) for m in range(5)]
        result = loader.load(records)

        assert result == LoadResult(staged=5, committed=5)
        assert memory_store.fetch_committed() == [r.as_row() for r in records]
        assert quarantine.count_lines() == 0

    def test_in_batch_duplicates_keep_first(self, loader, memory_store, quarantine, trip_factory):
        """Exactly one keeper per key: the first staged row"""
        records = [
            trip_factory(pickup_minute=1, fare="1.00"),
            trip_factory(pickup_minute=2),
            trip_factory(pickup_minute=1, fare="2.00"),
            trip_factory(pickup_minute=1, fare="3.00"),
        ]
        result = loader.load(records)

        assert result.committed == 2
        assert result.duplicates_in_batch == 2
        assert result.duplicates_in_store == 0
        committed = memory_store.fetch_committed()
        assert [values[7] for values in committed] == [Decimal("1.00"), Decimal("6.00")]
        assert len(set(committed_keys(memory_store))) == len(committed)

        lines = quarantine.file_path.read_text(encoding="utf-8").splitlines()
        assert lines[1].endswith(",2.00,1.00")
        assert lines[2].endswith(",3.00,1.00")

    def test_cross_store_duplicates_excluded(self, loader, memory_store, quarantine, trip_factory):
        """A key already committed is never committed again"""
        loader.load([trip_factory(pickup_minute=1, fare="1.00")])
        result = loader.load([
            trip_factory(pickup_minute=1, fare="9.00"),
            trip_factory(pickup_minute=3),
        ])

        assert result.duplicates_in_store == 1
        assert result.committed == 1
        assert memory_store.count_committed() == 2
        assert memory_store.fetch_committed()[0][7] == Decimal("1.00")
        assert quarantine.count_lines() == 1

    def test_both_tiers_export_each_row_once(self, loader, memory_store, quarantine, trip_factory):
        loader.load([trip_factory(pickup_minute=1)])
        result = loader.load([
            trip_factory(pickup_minute=1, fare="2.00"),
            trip_factory(pickup_minute=1, fare="3.00"),
        ])

        assert result.duplicates_in_batch == 1
        assert result.duplicates_in_store == 1
        assert result.duplicates == 2
        assert result.committed == 0
        assert quarantine.count_lines() == 2

    def test_passenger_count_distinguishes(self, loader, trip_factory):
        result = loader.load([
            trip_factory(pickup_minute=1, passengers=1),
            trip_factory(pickup_minute=1, passengers=2),
        ])
        assert result.committed == 2
        assert result.duplicates == 0

    def test_key_closure_across_batches(self, loader, memory_store, trip_factory):
        """After any sequence of loads, committed keys are unique"""
        for minutes in ([1, 2, 1], [2, 3, 3], [1, 4], [4, 4, 5]):
            loader.load([trip_factory(pickup_minute=m) for m in minutes])

        keys = committed_keys(memory_store)
        assert len(keys) == len(set(keys)) == 5

    def test_staging_drained_after_batch(self, loader, trip_factory):
        loader.load([trip_factory(pickup_minute=1), trip_factory(pickup_minute=1)])
        assert loader.staging.rows == []


@pytest.mark.unit
class TestFailures:
    """Tests for failed batches"""

    def test_failed_promote_rolls_back(self, loader, memory_store, quarantine, trip_factory, monkeypatch):
        loader.load([trip_factory(pickup_minute=1)])

        def broken_promote(self):
            raise RuntimeError("disk full")

        monkeypatch.setattr(InMemoryStagingSession, "promote", broken_promote)
        with pytest.raises(LoadFailure) as exc_info:
            loader.load([trip_factory(pickup_minute=1), trip_factory(pickup_minute=2)])

        assert "disk full" in str(exc_info.value)
        assert memory_store.count_committed() == 1
        assert loader.staging.rows == []
        assert quarantine.count_lines() == 0

    def test_next_batch_after_failure(self, loader, memory_store, trip_factory, monkeypatch):
        real_promote = InMemoryStagingSession.promote
        calls = []

        def flaky_promote(self):
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("transient")
            return real_promote(self)

        monkeypatch.setattr(InMemoryStagingSession, "promote", flaky_promote)
        with pytest.raises(LoadFailure):
            loader.load([trip_factory(pickup_minute=1)])

        result = loader.load([trip_factory(pickup_minute=2)])
        assert result.committed == 1
        assert memory_store.count_committed() == 1

    def test_leftover_staging_rows_discarded(self, loader, memory_store, trip_factory, pipeline_caplog):
        with loader.staging.unit_of_work() as session:
            session.append([trip_factory(pickup_minute=30).as_row()])

        result = loader.load([trip_factory(pickup_minute=1)])

        assert result.committed == 1
        assert committed_keys(memory_store) == [trip_factory(pickup_minute=1).as_row()[:3]]
        warnings = [r for r in pipeline_caplog.records if r.levelno == logging.WARNING]
        assert any("held 1 rows" in r.getMessage() for r in warnings)

    def test_quarantine_write_failure(self, memory_store, tmp_path, trip_factory):
        quarantine = DuplicateQuarantineWriter(tmp_path / "duplicates.csv")
        loader = DuplicateAwareLoader(memory_store, quarantine)
        loader.open()
        quarantine.file_path.unlink()
        quarantine.file_path.mkdir()

        with pytest.raises(DuplicateExportError) as exc_info:
            loader.load([trip_factory(pickup_minute=1), trip_factory(pickup_minute=1)])

        assert isinstance(exc_info.value, LoadFailure)
        assert "could not be exported" in str(exc_info.value)
        assert memory_store.count_committed() == 1
        assert exc_info.value.result.committed == 1
        assert exc_info.value.result.duplicates_in_batch == 1


@pytest.mark.unit
class TestMetrics:
    """Tests for load metrics"""

    def test_counters(self, loader, trip_factory):
        success = sample("pipeline_batches_total", {"status": "success"})
        committed = sample("pipeline_committed_rows_total")
        in_batch = sample("pipeline_duplicates_total", {"scope": "batch"})

        loader.load([trip_factory(pickup_minute=1), trip_factory(pickup_minute=1)])

        assert sample("pipeline_batches_total", {"status": "success"}) == success + 1
        assert sample("pipeline_committed_rows_total") == committed + 1
        assert sample("pipeline_duplicates_total", {"scope": "batch"}) == in_batch + 1

    def test_failure_counter(self, memory_store, quarantine, trip_factory):
        failures = sample("pipeline_batches_total", {"status": "failure"})
        loader = DuplicateAwareLoader(memory_store, quarantine)

        with pytest.raises(LoadFailure):
            loader.load([trip_factory()])

        assert sample("pipeline_batches_total", {"status": "failure"}) == failures + 1
