"""Booking price and refund rules."""

from dataclasses import dataclass
from typing import Iterable

from carrental.models.booking import Extra
from carrental.services.common import round2

FULL_REFUND_HOURS = 48
PARTIAL_REFUND_HOURS = 24


@dataclass(frozen=True)
class Quote:
    days: int
    base: float
    extras: float
    subtotal: float
    tax: float
    service_fee: float
    total: float


def quote(price_per_day: float, days: int, extras: Iterable[Extra] = (), tax_rate: float = 0.08,
          service_fee_rate: float = 0.05) -> Quote:
    """
    subtotal = days * price + extras; tax and service fee are both charged on
    the subtotal. Every amount is rounded to cents as it is introduced.
    """
    base = round2(days * price_per_day)
    extras_total = round2(sum(e.price for e in extras))
    subtotal = round2(base + extras_total)
    tax = round2(subtotal * tax_rate)
    fee = round2(subtotal * service_fee_rate)
    return Quote(
        days=days,
        base=base,
        extras=extras_total,
        subtotal=subtotal,
        tax=tax,
        service_fee=fee,
        total=round2(subtotal + tax + fee),
    )


def refund_policy(hours_until_start: float) -> tuple[int, str]:
    """Refund percentage by notice given. Each tier includes its lower bound."""
    if hours_until_start >= FULL_REFUND_HOURS:
        return 100, "Full refund (48+ hours notice)"
    if hours_until_start >= PARTIAL_REFUND_HOURS:
        return 50, "Partial refund (24-48 hours notice)"
    return 0, "No refund (less than 24 hours notice)"
