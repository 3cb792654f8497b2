"""
NonNegativeRule - numeric attributes must not be below zero.
"""

from trip_loader.core.exceptions import BusinessRuleViolation
from trip_loader.core.models import TripRecord

from .base_validator import BaseRule

_LABELS = {
    "passenger_count": "Passenger count",
    "fare_amount": "Fare amount",
    "tip_amount": "Tip amount",
}


class NonNegativeRule(BaseRule):
    """Rejects records whose numeric attribute is negative."""

    def check(self, record: TripRecord) -> None:
        value = getattr(record, self.field_name)
        if value < 0:
            label = _LABELS.get(self.field_name, self.field_name)
            raise BusinessRuleViolation(
                rule_name=self.rule_name,
                field_name=self.field_name,
                message=f"{label} is negative.",
            )

    @property
    def rule_name(self) -> str:
        return f"{self.field_name}_non_negative"
