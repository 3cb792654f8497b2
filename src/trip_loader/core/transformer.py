"""
RecordTransformer - converts raw source fields into a TripRecord.

Parsing is locale-independent: timestamps, integers and decimals are
matched against fixed grammars instead of relying on strptime or the
process locale.
"""

import re
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from trip_loader.core.exceptions import (
    ConfigurationError,
    EmptyFieldError,
    MalformedFieldError,
    TripLoaderError,
)
from trip_loader.core.models import RawRecord, RecordOutcome, StoreAndForwardFlag, TripRecord

# Source column names (TLC yellow taxi trip records)
PICKUP_COLUMN = "tpep_pickup_datetime"
DROPOFF_COLUMN = "tpep_dropoff_datetime"
PASSENGER_COUNT_COLUMN = "passenger_count"
TRIP_DISTANCE_COLUMN = "trip_distance"
FLAG_COLUMN = "store_and_fwd_flag"
PICKUP_LOCATION_COLUMN = "PULocationID"
DROPOFF_LOCATION_COLUMN = "DOLocationID"
FARE_AMOUNT_COLUMN = "fare_amount"
TIP_AMOUNT_COLUMN = "tip_amount"

REQUIRED_COLUMNS: tuple[str, ...] = (
    PICKUP_COLUMN,
    DROPOFF_COLUMN,
    PASSENGER_COUNT_COLUMN,
    TRIP_DISTANCE_COLUMN,
    FLAG_COLUMN,
    PICKUP_LOCATION_COLUMN,
    DROPOFF_LOCATION_COLUMN,
    FARE_AMOUNT_COLUMN,
    TIP_AMOUNT_COLUMN,
)

DEFAULT_SOURCE_TIMEZONE = "America/New_York"

# 2020-01-01 00:28:15, 2020-01-01T00:28:15.000
_ISO_TIMESTAMP = re.compile(
    r"^(\d{4})-(\d{2})-(\d{2})[ T](\d{2}):(\d{2}):(\d{2})(?:\.\d+)?$"
)
# 01/01/2020 12:28:15 AM, 1/1/2020 00:28:15
_US_TIMESTAMP = re.compile(
    r"^(\d{1,2})/(\d{1,2})/(\d{4}) (\d{1,2}):(\d{2}):(\d{2})(?: ?([AaPp][Mm]))?$"
)
_INTEGER = re.compile(r"^[+-]?\d+$")
_DECIMAL = re.compile(r"^[+-]?(?:\d+(?:\.\d*)?|\.\d+)$")

_CENTS = Decimal("0.01")
# NUMERIC(10,2) holds at most 8 integer digits
_DECIMAL_LIMIT = Decimal("100000000")
_INT32_MIN = -(2**31)
_INT32_MAX = 2**31 - 1
_INT32_MAX_DIGITS = len(str(_INT32_MAX))


class RecordTransformer:
    """
    Converts a RawRecord into a typed, normalized TripRecord.

    - Blank fields are rejected (EmptyFieldError), never defaulted
    - Timestamps are read as wall-clock time in the source time zone
      and converted to UTC
    - Numbers use a period as decimal separator
    - The store-and-forward code must be exactly "Y" or "N"
    """

    def __init__(
        self,
        source_timezone: str = DEFAULT_SOURCE_TIMEZONE,
        require_all_fields: bool = True,
    ):
        """
        Initialize transformer.

        Args:
            source_timezone: IANA zone the source timestamps are recorded in
            require_all_fields: Reject rows with any blank field, not only
                blank required columns
        """
        try:
            self.source_zone = ZoneInfo(source_timezone)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ConfigurationError(f"Unknown time zone: {source_timezone}") from e
        self.require_all_fields = require_all_fields

    def transform(self, raw: RawRecord) -> RecordOutcome[TripRecord]:
        """
        Transform a raw record, capturing parse failures in the outcome.

        Args:
            raw: Raw source record

        Returns:
            RecordOutcome holding the TripRecord or the parse error
        """
        try:
            return RecordOutcome.success(self.parse(raw))
        except TripLoaderError as e:
            return RecordOutcome.failure(e)

    def parse(self, raw: RawRecord) -> TripRecord:
        """
        Transform a raw record into a TripRecord.

        Raises:
            EmptyFieldError: If a field is blank or a required column is missing
            MalformedFieldError: If a field cannot be parsed
        """
        self._check_empty_fields(raw)

        try:
            flag = StoreAndForwardFlag.from_code(raw.get(FLAG_COLUMN).strip())
        except ValueError as e:
            raise MalformedFieldError(FLAG_COLUMN, raw.get(FLAG_COLUMN), str(e)) from e

        return TripRecord(
            pickup_time=self.parse_timestamp(PICKUP_COLUMN, raw.get(PICKUP_COLUMN)),
            dropoff_time=self.parse_timestamp(DROPOFF_COLUMN, raw.get(DROPOFF_COLUMN)),
            passenger_count=self.parse_int(PASSENGER_COUNT_COLUMN, raw.get(PASSENGER_COUNT_COLUMN)),
            trip_distance=self.parse_decimal(TRIP_DISTANCE_COLUMN, raw.get(TRIP_DISTANCE_COLUMN)),
            store_and_forward_flag=flag,
            pickup_location_id=self.parse_int(PICKUP_LOCATION_COLUMN, raw.get(PICKUP_LOCATION_COLUMN)),
            dropoff_location_id=self.parse_int(DROPOFF_LOCATION_COLUMN, raw.get(DROPOFF_LOCATION_COLUMN)),
            fare_amount=self.parse_decimal(FARE_AMOUNT_COLUMN, raw.get(FARE_AMOUNT_COLUMN)),
            tip_amount=self.parse_decimal(TIP_AMOUNT_COLUMN, raw.get(TIP_AMOUNT_COLUMN)),
        )

    def _check_empty_fields(self, raw: RawRecord) -> None:
        for column in REQUIRED_COLUMNS:
            value = raw.get(column)
            if value is None or not value.strip():
                raise EmptyFieldError(column, value)

        if self.require_all_fields:
            by_index = {index: name for name, index in raw.header_map.items()}
            for index, value in enumerate(raw.fields):
                if not value.strip():
                    raise EmptyFieldError(by_index.get(index, f"field_{index}"), value)
            # Short rows are missing trailing fields
            if len(raw.fields) < len(raw.header_map):
                missing = by_index.get(len(raw.fields), f"field_{len(raw.fields)}")
                raise EmptyFieldError(missing)

    def parse_timestamp(self, field_name: str, value: str) -> datetime:
        """
        Parse a source timestamp and convert it to UTC.

        Ambiguous wall-clock times (the repeated hour when daylight saving
        ends) resolve to standard time. Times skipped when daylight saving
        starts do not exist and are rejected.
        """
        text = value.strip()
        parts = self._match_timestamp(text)
        if parts is None:
            raise MalformedFieldError(field_name, value, f"Unrecognized timestamp format: '{value}'")

        try:
            local = datetime(*parts, tzinfo=self.source_zone, fold=1)
        except ValueError as e:
            raise MalformedFieldError(field_name, value, f"Invalid timestamp: {e}") from e

        try:
            utc = local.astimezone(timezone.utc)
            round_trip = utc.astimezone(self.source_zone)
        except OverflowError as e:
            raise MalformedFieldError(field_name, value, f"Timestamp out of range: {e}") from e
        if round_trip.replace(tzinfo=None) != local.replace(tzinfo=None):
            raise MalformedFieldError(
                field_name, value, f"Timestamp does not exist in {self.source_zone.key}"
            )
        return utc

    @staticmethod
    def _match_timestamp(text: str) -> tuple[int, ...] | None:
        m = _ISO_TIMESTAMP.match(text)
        if m:
            return tuple(int(g) for g in m.groups())

        m = _US_TIMESTAMP.match(text)
        if not m:
            return None

        month, day, year, hour, minute, second = (int(g) for g in m.groups()[:6])
        meridiem = m.group(7)
        if meridiem:
            if not 1 <= hour <= 12:
                return None
            hour = hour % 12
            if meridiem.upper() == "PM":
                hour += 12
        return (year, month, day, hour, minute, second)

    @staticmethod
    def parse_int(field_name: str, value: str) -> int:
        text = value.strip()
        if not _INTEGER.match(text):
            raise MalformedFieldError(field_name, value, f"Not an integer: '{value}'")
        # Checked before int(), which refuses very long digit strings
        if len(text.lstrip("+-").lstrip("0")) > _INT32_MAX_DIGITS:
            raise MalformedFieldError(field_name, value, "Integer out of range")
        number = int(text)
        if not _INT32_MIN <= number <= _INT32_MAX:
            raise MalformedFieldError(field_name, value, "Integer out of range")
        return number

    @staticmethod
    def parse_decimal(field_name: str, value: str) -> Decimal:
        """Parse a decimal and quantize it to two places (half away from zero)."""
        text = value.strip()
        if not _DECIMAL.match(text):
            raise MalformedFieldError(field_name, value, f"Not a decimal number: '{value}'")
        try:
            number = Decimal(text).quantize(_CENTS, rounding=ROUND_HALF_UP)
        except InvalidOperation as e:
            raise MalformedFieldError(field_name, value, f"Not a decimal number: '{value}'") from e
        if abs(number) >= _DECIMAL_LIMIT:
            raise MalformedFieldError(field_name, value, "Decimal out of range for NUMERIC(10,2)")
        return number
