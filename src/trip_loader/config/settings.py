"""
Pipeline settings.

Settings come from a YAML file with two sections, ``pipeline`` and
``database``. Database defaults fall back to the DB_* environment
variables; command-line flags override both.

Expected YAML format:
```yaml
pipeline:
  source_path: data/yellow_tripdata.csv
  duplicates_path: output/duplicates.csv
  log_path: output/etl.log
  batch_size: 5000

database:
  host: localhost
  port: 5432
  name: taxitrips
  user: pipeline
```
"""

import os
from pathlib import Path
from typing import Any, Literal, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from trip_loader.batch.accumulator import DEFAULT_BATCH_SIZE
from trip_loader.core.exceptions import ConfigurationError
from trip_loader.core.transformer import DEFAULT_SOURCE_TIMEZONE
from trip_loader.warehouse.store import DEFAULT_COMMITTED_TABLE, DEFAULT_STAGING_TABLE


class DatabaseSettings(BaseModel):
    """
    Connection settings for the destination PostgreSQL database.

    Attributes:
        host: Database host (env DB_HOST)
        port: Database port (env DB_PORT)
        name: Database name (env DB_NAME)
        user: Database user (env DB_USER)
        password: Database password (env DB_PASSWORD), never read from defaults
        min_pool_size: Minimum pooled connections
        max_pool_size: Maximum pooled connections
        timeout: Connection timeout in seconds
    """

    host: str = Field(default_factory=lambda: os.getenv("DB_HOST", "localhost"))
    port: int = Field(default_factory=lambda: int(os.getenv("DB_PORT", "5432")), gt=0, lt=65536)
    name: str = Field(default_factory=lambda: os.getenv("DB_NAME", "taxitrips"))
    user: str = Field(default_factory=lambda: os.getenv("DB_USER", "pipeline"))
    password: Optional[str] = Field(default_factory=lambda: os.getenv("DB_PASSWORD"), repr=False)
    min_pool_size: int = Field(default=1, ge=1)
    max_pool_size: int = Field(default=4, ge=1)
    timeout: float = Field(default=30.0, gt=0)

    class Config:
        json_schema_extra = {
            "example": {
                "host": "localhost",
                "port": 5432,
                "name": "taxitrips",
                "user": "pipeline",
                "min_pool_size": 1,
                "max_pool_size": 4,
                "timeout": 30.0,
            }
        }


class PipelineSettings(BaseModel):
    """
    Settings for one pipeline run.

    Attributes:
        source_path: Delimited trip file to load
        duplicates_path: Quarantine file for duplicate rows (reset every run)
        log_path: Optional log file (truncated every run)
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL
        log_format: "json" or "text"
        batch_size: Records per loader call
        source_timezone: IANA zone the source timestamps are recorded in
        committed_table: Destination table
        staging_table: Staging table owned by the run
        require_all_fields: Reject rows with any blank field, not only blank required columns
        metrics_port: Serve Prometheus metrics on this port when set
    """

    source_path: Optional[Path] = None
    duplicates_path: Path = Path("duplicates.csv")
    log_path: Optional[Path] = None
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    log_format: Literal["json", "text"] = "json"
    batch_size: int = Field(default=DEFAULT_BATCH_SIZE, ge=1)
    source_timezone: str = DEFAULT_SOURCE_TIMEZONE
    committed_table: str = Field(default=DEFAULT_COMMITTED_TABLE, min_length=1, max_length=63)
    staging_table: str = Field(default=DEFAULT_STAGING_TABLE, min_length=1, max_length=63)
    require_all_fields: bool = True
    metrics_port: Optional[int] = Field(default=None, gt=0, lt=65536)

    @field_validator("log_level", mode="before")
    @classmethod
    def upper_log_level(cls, v):
        return v.upper() if isinstance(v, str) else v

    @field_validator("source_timezone")
    @classmethod
    def known_timezone(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown time zone: {v}") from e
        return v


class Settings(BaseModel):
    """Top-level settings file."""

    pipeline: PipelineSettings = Field(default_factory=PipelineSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)

    def with_overrides(self, pipeline: dict[str, Any] | None = None,
                       database: dict[str, Any] | None = None) -> "Settings":
        """
        Return new settings with the given values replaced.

        None values are ignored so unset command-line flags keep the file value.

        Raises:
            ConfigurationError: If an override is invalid
        """
        pipeline_values = self.pipeline.model_dump()
        pipeline_values.update({k: v for k, v in (pipeline or {}).items() if v is not None})
        database_values = self.database.model_dump()
        database_values.update({k: v for k, v in (database or {}).items() if v is not None})
        try:
            return Settings(
                pipeline=PipelineSettings(**pipeline_values),
                database=DatabaseSettings(**database_values),
            )
        except ValidationError as e:
            raise ConfigurationError(f"Invalid settings: {e}") from e


def load_settings(path: str | Path | None = None) -> Settings:
    """
    Load settings from a YAML file, or defaults when no path is given.

    Args:
        path: Path to the YAML settings file

    Returns:
        Validated Settings

    Raises:
        ConfigurationError: If the file is missing, unreadable or invalid
    """
    if path is None:
        try:
            return Settings()
        except ValidationError as e:
            raise ConfigurationError(f"Invalid settings: {e}") from e

    config_path = Path(path)
    if not config_path.exists():
        raise ConfigurationError(f"Settings file not found: {config_path}")

    try:
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Could not read settings file {config_path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"Settings file must contain a mapping: {config_path}")

    unknown = set(data) - {"pipeline", "database"}
    if unknown:
        raise ConfigurationError(f"Unknown settings sections: {', '.join(sorted(unknown))}")

    try:
        return Settings(
            pipeline=PipelineSettings(**(data.get("pipeline") or {})),
            database=DatabaseSettings(**(data.get("database") or {})),
        )
    except (ValidationError, TypeError) as e:
        raise ConfigurationError(f"Invalid settings in {config_path}: {e}") from e
