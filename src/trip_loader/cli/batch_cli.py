"""
Command-line interface for loading a trip file.

Usage:
    trip-loader load --input <file_path> [options]
    python -m trip_loader.cli.batch_cli load --input <file_path> [options]
"""

import argparse
import sys

from psycopg import OperationalError

from trip_loader.batch import DuplicateAwareLoader, DuplicateQuarantineWriter, TripPipeline
from trip_loader.core.exceptions import ConfigurationError
from trip_loader.core.transformer import RecordTransformer
from trip_loader.core.validators import RecordValidator
from trip_loader.observability.logger import ROOT_LOGGER_NAME, get_logger, setup_logger
from trip_loader.observability.metrics import start_metrics_server
from trip_loader.warehouse import InMemoryTripStore
from trip_loader.warehouse.connection import DatabaseConnectionPool
from trip_loader.warehouse.postgres_store import PostgresTripStore

from .common import add_config_argument, add_database_arguments, resolve_settings

logger = get_logger(__name__)


def load_command(args) -> int:
    """
    Execute one pipeline run.

    Args:
        args: Command-line arguments

    Returns:
        Process exit code: 0 when the run completed, 1 otherwise
    """
    try:
        settings = resolve_settings(
            args,
            source_path=args.input,
            duplicates_path=args.duplicates,
            log_path=args.log_file,
            log_level=args.log_level,
            log_format=args.log_format,
            batch_size=args.batch_size,
            metrics_port=args.metrics_port,
        )
    except ConfigurationError as e:
        logger.error(f"Invalid configuration: {e}")
        return 1

    cfg = settings.pipeline
    setup_logger(
        ROOT_LOGGER_NAME,
        level=cfg.log_level,
        format_type=cfg.log_format,
        log_file=str(cfg.log_path) if cfg.log_path else None,
    )

    if cfg.source_path is None:
        logger.error("No input file given. Pass --input or set pipeline.source_path.")
        return 1

    if cfg.metrics_port:
        start_metrics_server(cfg.metrics_port)
        logger.info(f"Serving metrics on port {cfg.metrics_port}")

    pool = None
    try:
        if args.dry_run:
            logger.info("DRY RUN MODE: No data will be written to database")
            store = InMemoryTripStore(cfg.committed_table)
        else:
            logger.info("Initializing database connection...")
            pool = DatabaseConnectionPool.from_settings(settings.database)
            pool.open()
            store = PostgresTripStore(pool, cfg.committed_table)
            store.ensure_schema()

        loader = DuplicateAwareLoader(
            store,
            DuplicateQuarantineWriter(cfg.duplicates_path),
            staging_table=cfg.staging_table,
        )
        pipeline = TripPipeline(
            loader,
            transformer=RecordTransformer(cfg.source_timezone, cfg.require_all_fields),
            validator=RecordValidator(),
            batch_size=cfg.batch_size,
        )

        summary = pipeline.run(cfg.source_path)

    except (OperationalError, ValueError) as e:
        logger.error(f"Could not connect to database: {e}", exc_info=True)
        return 1
    finally:
        if pool is not None:
            pool.close()

    # Display results
    logger.info("=" * 60)
    logger.info(f"LOAD {summary.status.upper()}")
    logger.info("=" * 60)
    logger.info(f"Records processed: {summary.processed}")
    logger.info(f"Malformed records dropped: {summary.malformed}")
    logger.info(f"Invalid records dropped: {summary.rejected}")
    logger.info(f"Batches loaded / failed: {summary.batches_loaded} / {summary.batches_failed}")
    logger.info(f"Rows committed: {summary.committed}")
    logger.info(
        f"Duplicates quarantined: {summary.duplicates} "
        f"(in batch: {summary.duplicates_in_batch}, already stored: {summary.duplicates_in_store})"
    )
    logger.info(f"Duplicates file: {cfg.duplicates_path}")
    if summary.error:
        logger.info(f"Error: {summary.error}")
    logger.info("=" * 60)

    if args.dry_run:
        logger.info("DRY RUN: No data was written to the database")

    return 0 if summary.completed else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="trip-loader",
        description="Load a taxi trip file, quarantining duplicate trips",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Load a trip file
  trip-loader load --input data/yellow_tripdata.csv --duplicates output/duplicates.csv

  # Use a settings file, overriding the batch size
  trip-loader load --config config/pipeline.yaml --batch-size 10000

  # Dry run (reconcile in memory, don't write)
  trip-loader load --input data/yellow_tripdata.csv --dry-run
        """
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    load_parser = subparsers.add_parser("load", help="Load a trip file")
    load_parser.add_argument("--input", help="Path to input file (default: pipeline.source_path)")
    load_parser.add_argument("--duplicates", help="Path of the duplicates file (default: duplicates.csv)")
    add_config_argument(load_parser)
    load_parser.add_argument("--batch-size", type=int, help="Records per batch (default: 5000)")
    load_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Reconcile in memory without writing to the database"
    )
    load_parser.add_argument("--log-file", help="Log file, truncated at start")
    load_parser.add_argument("--log-level", help="Log level (default: INFO)")
    load_parser.add_argument("--log-format", choices=["json", "text"], help="Log format (default: json)")
    load_parser.add_argument("--metrics-port", type=int, help="Serve Prometheus metrics on this port")
    add_database_arguments(load_parser)

    return parser


def main(argv=None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    if args.command == "load":
        return load_command(args)
    return 1


if __name__ == "__main__":
    sys.exit(main())
