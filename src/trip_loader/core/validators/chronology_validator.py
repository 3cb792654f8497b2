"""
ChronologyRule - a trip cannot end before it starts.
"""

from trip_loader.core.exceptions import BusinessRuleViolation
from trip_loader.core.models import TripRecord

from .base_validator import BaseRule


class ChronologyRule(BaseRule):
    """
    Requires ``start_field <= end_field``.

    Equal instants are allowed (zero-length trips exist in the feed).
    """

    def __init__(self, field_name: str = "pickup_time", end_field: str = "dropoff_time"):
        super().__init__(field_name)
        self.end_field = end_field

    def check(self, record: TripRecord) -> None:
        if getattr(record, self.field_name) > getattr(record, self.end_field):
            raise BusinessRuleViolation(
                rule_name=self.rule_name,
                field_name=self.field_name,
                message="Pickup date is later than dropoff date.",
            )

    @property
    def rule_name(self) -> str:
        return "pickup_before_dropoff"
