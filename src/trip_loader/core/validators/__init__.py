"""
Business-rule validation for trip records.
"""

from .base_validator import BaseRule
from .chronology_validator import ChronologyRule
from .range_validator import NonNegativeRule
from .record_validator import RecordValidator, default_rules

__all__ = [
    "BaseRule",
    "ChronologyRule",
    "NonNegativeRule",
    "RecordValidator",
    "default_rules",
]
