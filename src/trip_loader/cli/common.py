"""
Arguments and settings resolution shared by the command-line tools.
"""

import argparse

from trip_loader.config import Settings, load_settings


def add_database_arguments(parser: argparse.ArgumentParser) -> None:
    """Add --db-* connection flags. Unset flags keep the settings file / env value."""
    parser.add_argument("--db-host", help="Database host (default: $DB_HOST or localhost)")
    parser.add_argument("--db-port", type=int, help="Database port (default: $DB_PORT or 5432)")
    parser.add_argument("--db-name", help="Database name (default: $DB_NAME or taxitrips)")
    parser.add_argument("--db-user", help="Database user (default: $DB_USER or pipeline)")
    parser.add_argument("--db-password", help="Database password (default: $DB_PASSWORD)")


def add_config_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--config", help="Path to YAML settings file")


def resolve_settings(args: argparse.Namespace, **pipeline_overrides) -> Settings:
    """
    Load the settings file named by --config and apply command-line overrides.

    Raises:
        ConfigurationError: If the file or any override is invalid
    """
    settings = load_settings(args.config)
    return settings.with_overrides(
        pipeline=pipeline_overrides,
        database={
            "host": args.db_host,
            "port": args.db_port,
            "name": args.db_name,
            "user": args.db_user,
            "password": args.db_password,
        },
    )
