"""
TripRecord model representing one normalized trip (immutable).
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel, field_validator

# Canonical column order for the committed table, the staging table
# and the quarantine export.
TRIP_COLUMNS: tuple[str, ...] = (
    "PickupDateTime",
    "DropoffDateTime",
    "PassengerCount",
    "TripDistance",
    "StoreAndFwdFlag",
    "PULocationID",
    "DOLocationID",
    "FareAmount",
    "TipAmount",
)

# Columns two rows must agree on to be considered duplicates
DUPLICATE_KEY_COLUMNS: tuple[str, ...] = (
    "PickupDateTime",
    "DropoffDateTime",
    "PassengerCount",
)


class StoreAndForwardFlag(str, Enum):
    """Whether the trip was held in vehicle memory before reaching the vendor."""

    YES = "Yes"
    NO = "No"

    @classmethod
    def from_code(cls, code: str) -> "StoreAndForwardFlag":
        """
        Decode the single-letter source code.

        Raises:
            ValueError: If the code is neither "Y" nor "N"
        """
        if code == "Y":
            return cls.YES
        if code == "N":
            return cls.NO
        raise ValueError(f"Invalid StoreAndFwdFlag: {code}")


class TripRecord(BaseModel):
    """
    A single trip after transformation (ephemeral, not stored as a model).

    Only created by the RecordTransformer. Timestamps are always UTC;
    decimals are already quantized to the store's fixed precision.

    Attributes:
        pickup_time: Pickup instant (UTC)
        dropoff_time: Dropoff instant (UTC)
        passenger_count: Number of passengers
        trip_distance: Trip distance in miles
        store_and_forward_flag: Decoded store-and-forward flag
        pickup_location_id: TLC taxi zone of the pickup
        dropoff_location_id: TLC taxi zone of the dropoff
        fare_amount: Metered fare
        tip_amount: Tip amount
    """

    pickup_time: datetime
    dropoff_time: datetime
    passenger_count: int
    trip_distance: Decimal
    store_and_forward_flag: StoreAndForwardFlag
    pickup_location_id: int
    dropoff_location_id: int
    fare_amount: Decimal
    tip_amount: Decimal

    @field_validator("pickup_time", "dropoff_time")
    @classmethod
    def check_utc(cls, v: datetime) -> datetime:
        """Require timezone-aware instants and normalize them to UTC."""
        if v.tzinfo is None:
            raise ValueError("timestamps must be timezone-aware")
        return v.astimezone(timezone.utc)

    @property
    def duplicate_key(self) -> tuple[datetime, datetime, int]:
        """Identity used for duplicate detection."""
        return (self.pickup_time, self.dropoff_time, self.passenger_count)

    def as_row(self) -> tuple[Any, ...]:
        """
        Convert to a store row in TRIP_COLUMNS order.

        Timestamps are written without zone information; the store
        treats them as UTC.
        """
        return (
            self.pickup_time.replace(tzinfo=None),
            self.dropoff_time.replace(tzinfo=None),
            self.passenger_count,
            self.trip_distance,
            self.store_and_forward_flag.value,
            self.pickup_location_id,
            self.dropoff_location_id,
            self.fare_amount,
            self.tip_amount,
        )

    class Config:
        frozen = True
        json_schema_extra = {
            "example": {
                "pickup_time": "2020-01-01T05:28:15Z",
                "dropoff_time": "2020-01-01T05:33:03Z",
                "passenger_count": 1,
                "trip_distance": "1.20",
                "store_and_forward_flag": "No",
                "pickup_location_id": 238,
                "dropoff_location_id": 239,
                "fare_amount": "6.00",
                "tip_amount": "1.47",
            }
        }
