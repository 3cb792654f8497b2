"""
Base rule interface for business-rule validation of trip records.

All rules inherit from BaseRule and implement check().
"""

from abc import ABC, abstractmethod

from trip_loader.core.models import TripRecord


class BaseRule(ABC):
    """
    Abstract base class for all business rules.

    Each rule is an independent predicate over one TripRecord.
    """

    def __init__(self, field_name: str):
        """
        Initialize rule.

        Args:
            field_name: Name of the TripRecord attribute the rule inspects
        """
        self.field_name = field_name

    @abstractmethod
    def check(self, record: TripRecord) -> None:
        """
        Check a record against this rule.

        Args:
            record: The record to check

        Raises:
            BusinessRuleViolation: If the rule is broken
        """
        pass

    @property
    @abstractmethod
    def rule_name(self) -> str:
        """Return the rule identifier."""
        pass

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(field={self.field_name})"
