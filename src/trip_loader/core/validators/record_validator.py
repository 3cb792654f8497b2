"""
RecordValidator - applies business rules to transformed trip records.
"""

from trip_loader.core.exceptions import BusinessRuleViolation
from trip_loader.core.models import RecordOutcome, TripRecord

from .base_validator import BaseRule
from .chronology_validator import ChronologyRule
from .range_validator import NonNegativeRule


def default_rules() -> list[BaseRule]:
    """Rules every record must pass before it can join a batch."""
    return [
        ChronologyRule("pickup_time", "dropoff_time"),
        NonNegativeRule("passenger_count"),
        NonNegativeRule("fare_amount"),
        NonNegativeRule("tip_amount"),
    ]


class RecordValidator:
    """
    Runs a fixed list of independent rules over a record.

    Rules are independent predicates, so order only decides which
    violation is reported first; validation stops at the first one.
    """

    def __init__(self, rules: list[BaseRule] | None = None):
        self.rules = rules if rules is not None else default_rules()

    def validate(self, record: TripRecord) -> None:
        """
        Raises:
            BusinessRuleViolation: For the first rule the record breaks
        """
        for rule in self.rules:
            rule.check(record)

    def evaluate(self, record: TripRecord) -> RecordOutcome[TripRecord]:
        """Validate a record and return the outcome instead of raising."""
        try:
            self.validate(record)
        except BusinessRuleViolation as e:
            return RecordOutcome.failure(e)
        return RecordOutcome.success(record)

    @property
    def rule_names(self) -> list[str]:
        return [rule.rule_name for rule in self.rules]
