"""
Value conversion for query results

Turns native driver values into the scalar kinds the wire protocol
carries: null, boolean, integer, float and string.
"""

from datetime import date, datetime, timezone
from typing import Any

from .schemas import Scalar

PASSTHROUGH_TYPES = (bool, int, float, str)


def format_timestamp(value: datetime) -> str:
    """Format as UTC with whole-second precision, e.g. 2025-02-13T14:30:00Z"""
    if value.tzinfo is None:
        # Naive timestamps are taken as UTC
        value = value.replace(tzinfo=timezone.utc)
    try:
        value = value.astimezone(timezone.utc)
    except OverflowError:
        # UTC instant falls outside year 1..9999; keep the local offset
        return value.replace(microsecond=0).isoformat()
    return value.replace(microsecond=0, tzinfo=None).isoformat() + "Z"


def convert_value(value: Any) -> Scalar:
    """
    Convert one native column value into a transport-safe scalar

    Bytes are decoded as text and timestamps formatted as RFC3339
    strings, in UTC unless the UTC instant falls outside the datetime
    range. Booleans, numbers and text pass through unchanged. Anything
    else falls back to its string form.
    """
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).decode("utf-8", errors="replace")
    if isinstance(value, datetime):
        return format_timestamp(value)
    if isinstance(value, date):
        return format_timestamp(datetime(value.year, value.month, value.day))
    if value is None:
        return None
    if isinstance(value, PASSTHROUGH_TYPES):
        return value
    # Decimal, UUID, time and driver-specific types
    return str(value)


def convert_row(row) -> list:
    """Convert every cell of a result row"""
    return [convert_value(value) for value in row]
