"""
Admin CLI for managing the trip store.

Usage:
    trip-loader-admin init-db [options]
    trip-loader-admin drop-staging [--staging-table <name>] [options]
    trip-loader-admin stats [--duplicates <path>] [options]
"""

import argparse
import sys

from psycopg import Error as DatabaseError

from trip_loader.batch.writers import DuplicateQuarantineWriter
from trip_loader.core.exceptions import ConfigurationError
from trip_loader.observability.logger import get_logger
from trip_loader.warehouse.connection import DatabaseConnectionPool
from trip_loader.warehouse.postgres_store import PostgresTripStore

from .common import add_config_argument, add_database_arguments, resolve_settings

logger = get_logger(__name__)


def _open_store(settings) -> tuple[DatabaseConnectionPool, PostgresTripStore]:
    pool = DatabaseConnectionPool.from_settings(settings.database)
    pool.open()
    return pool, PostgresTripStore(pool, settings.pipeline.committed_table)


def init_db_command(args) -> int:
    """
    Create the committed table and its indexes if missing.

    Args:
        args: Command line arguments
    """
    settings = resolve_settings(args)
    pool, store = _open_store(settings)
    try:
        store.ensure_schema()
        print(f"Committed table ready: {store.committed_table}")
        return 0
    finally:
        pool.close()


def drop_staging_command(args) -> int:
    """
    Drop a staging table left behind by an interrupted run.

    Args:
        args: Command line arguments
    """
    settings = resolve_settings(args, staging_table=args.staging_table)
    pool, store = _open_store(settings)
    try:
        store.staging_area(settings.pipeline.staging_table).drop()
        print(f"Staging table dropped: {settings.pipeline.staging_table}")
        return 0
    finally:
        pool.close()


def stats_command(args) -> int:
    """
    Show committed row count and quarantined duplicate count.

    Args:
        args: Command line arguments
    """
    settings = resolve_settings(args, duplicates_path=args.duplicates)
    duplicates = DuplicateQuarantineWriter(settings.pipeline.duplicates_path)

    pool, store = _open_store(settings)
    try:
        committed = store.count_committed()
    finally:
        pool.close()

    print(f"\n{'=' * 60}")
    print("TRIP STORE STATISTICS")
    print(f"{'=' * 60}\n")
    print(f"  Committed table:        {store.committed_table}")
    print(f"  Committed rows:         {committed:>12}")
    print(f"  Duplicates file:        {duplicates.file_path}")
    print(f"  Quarantined duplicates: {duplicates.count_lines():>12}")
    print(f"\n{'=' * 60}\n")
    return 0


COMMANDS = {
    "init-db": init_db_command,
    "drop-staging": drop_staging_command,
    "stats": stats_command,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="trip-loader-admin",
        description="Admin CLI for the trip store",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    init_parser = subparsers.add_parser("init-db", help="Create the committed table and indexes")
    add_config_argument(init_parser)
    add_database_arguments(init_parser)

    drop_parser = subparsers.add_parser("drop-staging", help="Drop a leftover staging table")
    drop_parser.add_argument("--staging-table", help="Staging table name (default: staging_taxi_trips)")
    add_config_argument(drop_parser)
    add_database_arguments(drop_parser)

    stats_parser = subparsers.add_parser("stats", help="Show committed and quarantined counts")
    stats_parser.add_argument("--duplicates", help="Path of the duplicates file (default: duplicates.csv)")
    add_config_argument(stats_parser)
    add_database_arguments(stats_parser)

    return parser


def main(argv=None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    try:
        return COMMANDS[args.command](args)
    except ConfigurationError as e:
        logger.error(f"Invalid configuration: {e}")
        print(f"\nError: {e}")
        return 1
    except (DatabaseError, ValueError) as e:
        logger.error(f"Error running {args.command}: {e}", exc_info=True)
        print(f"\nError: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
