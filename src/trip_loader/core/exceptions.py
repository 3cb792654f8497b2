"""
Exception hierarchy for the trip loading pipeline.

    TripLoaderError (base)
    ├── MalformedFieldError      transform stage, field present but unusable
    │   └── EmptyFieldError      transform stage, field blank or missing
    ├── BusinessRuleViolation    validate stage
    ├── LoadFailure              staging / reconciliation / promotion
    │   └── DuplicateExportError batch committed, quarantine write failed
    ├── SourceUnavailableError   fatal to the run
    └── ConfigurationError
"""

from typing import Any


class TripLoaderError(Exception):
    """
    Base exception for all pipeline errors.

    Attributes:
        message: Human-readable error message
        context: Additional context (field name, raw value, batch size, ...)
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        self.message = message
        self.context = context or {}
        super().__init__(message)


class MalformedFieldError(TripLoaderError):
    """Raised when a source field cannot be parsed into its typed value."""

    def __init__(self, field_name: str, value: str | None, message: str):
        self.field_name = field_name
        self.value = value
        super().__init__(
            f"{field_name}: {message}",
            context={"field_name": field_name, "value": value},
        )


class EmptyFieldError(MalformedFieldError):
    """Raised when a required source field is blank or missing."""

    def __init__(self, field_name: str, value: str | None = None):
        super().__init__(field_name, value, "Empty field content.")


class BusinessRuleViolation(TripLoaderError):
    """Raised when a typed record breaks a business rule."""

    def __init__(self, rule_name: str, field_name: str, message: str):
        self.rule_name = rule_name
        self.field_name = field_name
        super().__init__(
            f"[{rule_name}] {field_name}: {message}",
            context={"rule_name": rule_name, "field_name": field_name},
        )


class LoadFailure(TripLoaderError):
    """Raised when a batch could not be staged, reconciled or promoted."""


class SourceUnavailableError(TripLoaderError):
    """Raised when the source file cannot be opened or read."""


class ConfigurationError(TripLoaderError):
    """Raised when pipeline settings are missing or invalid."""


class DuplicateExportError(LoadFailure):
    """
    Raised when a batch was committed but its duplicates could not be
    written to the quarantine file.

    Attributes:
        result: Counts of the committed batch
    """

    def __init__(self, message: str, result: Any, context: dict[str, Any] | None = None):
        self.result = result
        super().__init__(message, context)
