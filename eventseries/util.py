"""Utility constants and helpers for eventseries.

Time unit constants represent durations in seconds. Expansion caps and the
default recurrence horizon live here so every caller sees the same bounds.
"""

from datetime import datetime, timezone
from typing import Literal, TypeAlias

# Time unit constants (all values in seconds)
MINUTE = 60
HOUR = 3600

# Hard ceilings on instances produced by one expansion
DAILY_CAP = 180
WEEKLY_CAP = 52
MONTHLY_CAP = 12

# Used when a rule has no recurrence_end
DEFAULT_HORIZON_MONTHS = 6

Day: TypeAlias = Literal[
    "monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"
]

# Python's datetime.weekday() numbering (Monday=0)
DAY_NAMES: tuple[Day, ...] = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)


def to_utc(dt: datetime) -> datetime:
    """Naive datetimes are taken as UTC; aware ones are converted."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def day_to_platform(day: Day) -> int:
    """Stored rules number weekdays from Sunday=0 to Saturday=6."""
    return (DAY_NAMES.index(day) + 1) % 7


def day_from_platform(number: int) -> Day:
    if not 0 <= number <= 6:
        raise ValueError(f"day_of_week must be in 0..6 (Sunday=0), got {number}")
    return DAY_NAMES[(number - 1) % 7]
