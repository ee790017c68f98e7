"""Shared service helpers: date parsing, interval math and rounding."""

from datetime import date, datetime, time
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from carrental.utils.constants import DATE_FMT, TIME_FMT


# -------- date & math helpers --------
def as_date(x) -> date:
    """Coerce any date-like to a naive date (supports 'YYYY-MM-DD' or ISO with T)."""
    if isinstance(x, datetime):
        return x.date()
    if isinstance(x, date):
        return x
    if isinstance(x, str):
        base = x.split("T", 1)[0].strip()
        return datetime.strptime(base, DATE_FMT).date()
    raise ValueError(f"Unsupported date: {x!r}")


def as_time(x) -> time:
    """Coerce 'HH:MM' or a time object to a time; raise ValueError on bad input."""
    if isinstance(x, time):
        return x
    if isinstance(x, str):
        return datetime.strptime(x.strip(), TIME_FMT).time()
    raise ValueError(f"Unsupported time: {x!r}")


def fmt_time(t: time) -> str:
    return t.strftime(TIME_FMT)


def overlap(a_start: date, a_end: date, b_start: date, b_end: date) -> bool:
    """
    Check overlap between [a_start, a_end) and [b_start, b_end).
    End date is exclusive: booking 2025-10-22 -> 2025-10-23 occupies the day of the 22nd only.
    """
    return a_start < b_end and b_start < a_end


def rental_days(start: date, end: date) -> int:
    """Calendar-day difference, at least one day."""
    return max(1, (end - start).days)


def round2(x) -> float:
    """Round currency half-up to cents. Decimal avoids 288.145 -> 288.14 float artifacts."""
    return float(Decimal(str(x)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def round1(x) -> float:
    return float(Decimal(str(x)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def to_float_safe(value) -> Optional[float]:
    """Safely convert to float; return None if invalid."""
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def is_blank(value) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())
