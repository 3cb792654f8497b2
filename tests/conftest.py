"""
Pytest configuration and fixtures for trip-loader tests

This module provides shared fixtures for unit, integration, and E2E tests.
"""
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Generator

import pytest
from testcontainers.postgres import PostgresContainer

from trip_loader.core.models import RawRecord, StoreAndForwardFlag, TripRecord
from trip_loader.observability.logger import ROOT_LOGGER_NAME
from trip_loader.warehouse import InMemoryTripStore
from trip_loader.warehouse.connection import DatabaseConnectionPool
from trip_loader.warehouse.postgres_store import PostgresTripStore
from trip_loader.warehouse.schema_mgmt import SchemaManager

# Header of a TLC yellow taxi trip file
SOURCE_HEADER = [
    "VendorID",
    "tpep_pickup_datetime",
    "tpep_dropoff_datetime",
    "passenger_count",
    "trip_distance",
    "RatecodeID",
    "store_and_fwd_flag",
    "PULocationID",
    "DOLocationID",
    "payment_type",
    "fare_amount",
    "extra",
    "mta_tax",
    "tip_amount",
    "tolls_amount",
    "improvement_surcharge",
    "total_amount",
    "congestion_surcharge",
]

SOURCE_DEFAULTS = {
    "VendorID": "1",
    "tpep_pickup_datetime": "01/01/2020 12:28:15 AM",
    "tpep_dropoff_datetime": "01/01/2020 12:33:03 AM",
    "passenger_count": "1",
    "trip_distance": "1.20",
    "RatecodeID": "1",
    "store_and_fwd_flag": "N",
    "PULocationID": "238",
    "DOLocationID": "239",
    "payment_type": "1",
    "fare_amount": "6.00",
    "extra": "3.00",
    "mta_tax": "0.50",
    "tip_amount": "1.47",
    "tolls_amount": "0",
    "improvement_surcharge": "0.30",
    "total_amount": "11.27",
    "congestion_surcharge": "2.50",
}

HEADER_MAP = {name: index for index, name in enumerate(SOURCE_HEADER)}


# =======================
# PYTEST CONFIGURATION
# =======================

def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line(
        "markers", "unit: Unit tests that don't require external services"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests that require Docker containers"
    )
    config.addinivalue_line(
        "markers", "e2e: End-to-end tests that test the full pipeline"
    )
    config.addinivalue_line(
        "markers", "slow: Tests that take more than 5 seconds to run"
    )


# =======================
# RECORD FIXTURES
# =======================

def source_fields(**overrides: str) -> list[str]:
    """One source line as a list of strings, in SOURCE_HEADER order."""
    values = {**SOURCE_DEFAULTS, **overrides}
    return [values[name] for name in SOURCE_HEADER]


@pytest.fixture(scope="session")
def fields_factory():
    """Source lines as lists of strings; see source_fields"""
    return source_fields


@pytest.fixture(scope="session")
def header_map() -> dict[str, int]:
    return dict(HEADER_MAP)


@pytest.fixture(scope="session")
def raw_factory():
    """
    Build RawRecords from the default trip, overriding source columns

    Usage:
        raw_factory(store_and_fwd_flag="X")
    """
    def make(line_number: int = 2, **overrides: str) -> RawRecord:
        return RawRecord(
            fields=tuple(source_fields(**overrides)),
            header_map=HEADER_MAP,
            line_number=line_number,
        )
    return make


@pytest.fixture(scope="session")
def trip_factory():
    """
    Build TripRecords directly, bypassing the transformer

    Usage:
        trip_factory(pickup_minute=5, fare="7.50")
    """
    def make(
        pickup_minute: int = 0,
        duration_minutes: int = 10,
        passengers: int = 1,
        fare: str = "6.00",
        tip: str = "1.00",
        distance: str = "1.20",
        flag: StoreAndForwardFlag = StoreAndForwardFlag.NO,
    ) -> TripRecord:
        pickup = datetime(2020, 1, 1, 5, pickup_minute, tzinfo=timezone.utc)
        dropoff = datetime(2020, 1, 1, 5 + (pickup_minute + duration_minutes) // 60,
                           (pickup_minute + duration_minutes) % 60, tzinfo=timezone.utc)
        return TripRecord(
            pickup_time=pickup,
            dropoff_time=dropoff,
            passenger_count=passengers,
            trip_distance=Decimal(distance),
            store_and_forward_flag=flag,
            pickup_location_id=238,
            dropoff_location_id=239,
            fare_amount=Decimal(fare),
            tip_amount=Decimal(tip),
        )
    return make


@pytest.fixture(scope="session")
def csv_writer():
    """
    Write a trip file with the TLC header

    Usage:
        path = csv_writer(tmp_path / "trips.csv", [source_fields(), ...])
    """
    def write(path, rows: list[list[str]], header: list[str] | None = None):
        lines = [",".join(header or SOURCE_HEADER)]
        lines.extend(",".join(row) for row in rows)
        path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return path
    return write


# =======================
# STORE FIXTURES
# =======================

@pytest.fixture(scope="function")
def memory_store() -> InMemoryTripStore:
    return InMemoryTripStore()


# =======================
# LOGGING FIXTURES
# =======================

@pytest.fixture(scope="function")
def pipeline_caplog(caplog):
    """
    caplog attached to the package logger

    The package logger does not propagate to the root logger, so the
    capture handler is attached to it directly.
    """
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.addHandler(caplog.handler)
    caplog.set_level(logging.DEBUG, logger=ROOT_LOGGER_NAME)
    yield caplog
    logger.removeHandler(caplog.handler)


# =======================
# DATABASE FIXTURES (Testcontainers)
# =======================

@pytest.fixture(scope="session")
def postgres_container() -> Generator[PostgresContainer, None, None]:
    """
    Start PostgreSQL container for integration tests

    Skips the requesting tests when Docker is not available.

    Yields:
        PostgresContainer instance
    """
    container = PostgresContainer(
        image="postgres:16.2-alpine",
        username="test_pipeline",
        password="test_password",
        dbname="test_taxitrips"
    )
    try:
        container.start()
    except Exception as e:
        pytest.skip(f"Docker is not available: {e}")

    try:
        yield container
    finally:
        container.stop()


@pytest.fixture(scope="function")
def db_pool(postgres_container) -> Generator[DatabaseConnectionPool, None, None]:
    """
    Open connection pool against the test container

    Yields:
        DatabaseConnectionPool, closed after the test
    """
    pool = DatabaseConnectionPool(
        host=postgres_container.get_container_host_ip(),
        port=int(postgres_container.get_exposed_port(5432)),
        database="test_taxitrips",
        user="test_pipeline",
        password="test_password",
    )
    pool.open()
    yield pool
    pool.close()


@pytest.fixture(scope="function")
def pg_store(db_pool) -> PostgresTripStore:
    """
    PostgresTripStore over freshly created tables

    Drops the committed and staging tables before each test.
    """
    schema = SchemaManager(db_pool)
    schema.drop_table("staging_taxi_trips")
    schema.drop_table("taxi_trips")

    store = PostgresTripStore(db_pool)
    store.ensure_schema()
    return store


@pytest.fixture(scope="function")
def db_args(postgres_container) -> list[str]:
    """--db-* command-line flags for the test container"""
    return [
        "--db-host", postgres_container.get_container_host_ip(),
        "--db-port", str(postgres_container.get_exposed_port(5432)),
        "--db-name", "test_taxitrips",
        "--db-user", "test_pipeline",
        "--db-password", "test_password",
    ]
