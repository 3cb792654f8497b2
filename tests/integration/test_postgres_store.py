"""
Integration tests for the PostgreSQL trip store.

Runs the staging protocol against a real PostgreSQL in a testcontainer.
"""

from datetime import datetime
from decimal import Decimal

import pytest

from trip_loader.batch.loader import DuplicateAwareLoader
from trip_loader.batch.writers import DuplicateQuarantineWriter
from trip_loader.core.exceptions import LoadFailure
from trip_loader.warehouse.postgres_store import PostgresStagingSession
from trip_loader.warehouse.schema_mgmt import SchemaManager


@pytest.fixture
def quarantine(tmp_path) -> DuplicateQuarantineWriter:
    return DuplicateQuarantineWriter(tmp_path / "duplicates.csv")


@pytest.fixture
def pg_loader(pg_store, quarantine):
    loader = DuplicateAwareLoader(pg_store, quarantine)
    loader.open()
    yield loader
    loader.close()


@pytest.mark.integration
class TestSchema:
    """Tests for table management"""

    def test_committed_table_created_with_indexes(self, pg_store, db_pool):
        assert SchemaManager(db_pool).table_exists("taxi_trips")

        rows = db_pool.execute_query(
            "SELECT indexname FROM pg_indexes WHERE tablename = %s", ("taxi_trips",)
        )
        names = {row["indexname"] for row in rows}
        assert {
            "ix_taxi_trips_pulocationid_tipamount",
            "ix_taxi_trips_tripdistance",
            "ix_taxi_trips_pickup_dropoff",
            "ix_taxi_trips_pulocationid",
        } <= names

    def test_ensure_schema_is_idempotent(self, pg_store):
        pg_store.ensure_schema()
        assert pg_store.count_committed() == 0

    def test_staging_lifecycle(self, pg_store, db_pool):
        schema = SchemaManager(db_pool)
        area = pg_store.staging_area("staging_taxi_trips")

        area.create()
        assert schema.table_exists("staging_taxi_trips")

        with area.unit_of_work() as session:
            session.append([(datetime(2020, 1, 1, 5), datetime(2020, 1, 1, 6), 1,
                             Decimal("1.00"), "No", 1, 2, Decimal("5.00"), Decimal("0.00"))])
        area.create()
        with area.unit_of_work() as session:
            assert session.count() == 0

        area.drop()
        assert not schema.table_exists("staging_taxi_trips")
        area.drop()


@pytest.mark.integration
class TestPostgresLoader:
    """Tests for the loader protocol on PostgreSQL"""

    def test_values_round_trip(self, pg_loader, pg_store, trip_factory):
        record = trip_factory(pickup_minute=28, fare="6.00", tip="1.47", distance="1.20")
        pg_loader.load([record])

        assert pg_store.fetch_committed() == [record.as_row()]

    def test_in_batch_keeps_first(self, pg_loader, pg_store, quarantine, trip_factory):
        result = pg_loader.load([
            trip_factory(pickup_minute=1, fare="1.00"),
            trip_factory(pickup_minute=2),
            trip_factory(pickup_minute=1, fare="2.00"),
            trip_factory(pickup_minute=1, fare="3.00"),
        ])

        assert result.committed == 2
        assert result.duplicates_in_batch == 2
        assert [row[7] for row in pg_store.fetch_committed()] == [Decimal("1.00"), Decimal("6.00")]

        lines = quarantine.file_path.read_text(encoding="utf-8").splitlines()
        assert lines[1] == "2020-01-01 05:01:00,2020-01-01 05:11:00,1,1.20,No,238,239,2.00,1.00"
        assert lines[2] == "2020-01-01 05:01:00,2020-01-01 05:11:00,1,1.20,No,238,239,3.00,1.00"

    def test_cross_store(self, pg_loader, pg_store, trip_factory):
        pg_loader.load([trip_factory(pickup_minute=1, fare="1.00")])
        result = pg_loader.load([
            trip_factory(pickup_minute=1, fare="9.00"),
            trip_factory(pickup_minute=1, fare="8.00"),
            trip_factory(pickup_minute=4),
        ])

        assert result.duplicates_in_batch == 1
        assert result.duplicates_in_store == 1
        assert result.committed == 1
        assert pg_store.count_committed() == 2
        assert pg_store.fetch_committed()[0][7] == Decimal("1.00")

    def test_committed_keys_unique(self, pg_loader, pg_store, db_pool, trip_factory):
        for minutes in ([1, 2, 1], [2, 3, 3], [1, 4], [4, 4, 5]):
            pg_loader.load([trip_factory(pickup_minute=m) for m in minutes])

        rows = db_pool.execute_query(
            'SELECT COUNT(*) AS n FROM (SELECT 1 FROM taxi_trips '
            'GROUP BY "PickupDateTime", "DropoffDateTime", "PassengerCount" HAVING COUNT(*) > 1) d'
        )
        assert rows[0]["n"] == 0
        assert pg_store.count_committed() == 5

    def test_staging_empty_between_batches(self, pg_loader, db_pool, trip_factory):
        pg_loader.load([trip_factory(pickup_minute=1), trip_factory(pickup_minute=1)])
        rows = db_pool.execute_query("SELECT COUNT(*) AS n FROM staging_taxi_trips")
        assert rows[0]["n"] == 0

    def test_failure_rolls_back(self, pg_loader, pg_store, db_pool, quarantine, trip_factory, monkeypatch):
        pg_loader.load([trip_factory(pickup_minute=1)])

        def broken_promote(self):
            raise RuntimeError("promote failed")

        monkeypatch.setattr(PostgresStagingSession, "promote", broken_promote)
        with pytest.raises(LoadFailure):
            pg_loader.load([trip_factory(pickup_minute=1), trip_factory(pickup_minute=7)])

        assert pg_store.count_committed() == 1
        assert db_pool.execute_query("SELECT COUNT(*) AS n FROM staging_taxi_trips")[0]["n"] == 0
        assert quarantine.count_lines() == 0

    def test_large_batch(self, pg_loader, pg_store, trip_factory):
        records = [trip_factory(pickup_minute=m % 60, passengers=m // 60) for m in range(600)]
        result = pg_loader.load(records + records[:50])

        assert result.committed == 600
        assert result.duplicates_in_batch == 50
        assert pg_store.count_committed() == 600
