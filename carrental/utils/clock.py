"""Injectable time source. Services never read the wall clock directly."""
from datetime import date, datetime, time
from typing import Protocol

import pytz


class Clock(Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    """Wall clock, timezone-aware in the configured zone."""

    def __init__(self, tz_name: str = "UTC"):
        self.tz = pytz.timezone(tz_name)

    def now(self) -> datetime:
        return datetime.now(self.tz)


def localize(d: date, t: time, tz_name: str = "UTC") -> datetime:
    """
    Attach the configured zone to a wall-clock date and time.
    pytz requires localize() rather than tzinfo= to pick the right DST offset.
    """
    return pytz.timezone(tz_name).localize(datetime.combine(d, t))


def to_zone(dt: datetime, tz_name: str = "UTC") -> datetime:
    """Convert an aware datetime into the zone; naive values are assumed UTC."""
    if dt.tzinfo is None:
        dt = pytz.utc.localize(dt)
    return dt.astimezone(pytz.timezone(tz_name))
