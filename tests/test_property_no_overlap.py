"""
Seeded random operation sequences against the ledger. After every step,
held bookings of a car never overlap and the availability index agrees with
the bookings it is derived from.
"""

import random
from datetime import date, timedelta

import pytest

from carrental.services.common import overlap
from carrental.utils.constants import BookingStatus

CARS = ("car-1", "car-2")
BASE = date(2025, 8, 10)


def _check_invariants(ledger):
    for car_id in CARS:
        bookings = ledger.bookings_for_car(car_id).value
        blocking = [b for b in bookings if b.status not in BookingStatus.RELEASED]
        for i, a in enumerate(blocking):
            for b in blocking[i + 1:]:
                assert not overlap(a.start_date, a.end_date, b.start_date, b.end_date), (a, b)
        held = any(b.status in BookingStatus.HOLDING for b in bookings)
        assert ledger.car_availability(car_id).value is (not held)


@pytest.mark.parametrize("seed", range(8))
def test_random_sequences_keep_calendar_consistent(ledger, seed):
    rng = random.Random(seed)
    ids = []
    for _ in range(150):
        op = rng.random()
        if op < 0.45 or not ids:
            start = BASE + timedelta(days=rng.randint(0, 40))
            end = start + timedelta(days=rng.randint(1, 6))
            res = ledger.create_booking(rng.choice(CARS), f"cust{rng.randint(1, 5)}", start.isoformat(),
                                        end.isoformat(), "10:00", "10:00", "Downtown")
            assert res.ok or res.code == "CONFLICT"
            if res.ok:
                ids.append(res.value.booking_id)
        elif op < 0.75:
            target = rng.choice(BookingStatus.ALL)
            res = ledger.transition_status(rng.choice(ids), target)
            assert res.ok or res.code == "ILLEGAL_TRANSITION"
        elif op < 0.85:
            res = ledger.cancel_booking(rng.choice(ids), "random")
            assert res.ok or res.code == "ILLEGAL_TRANSITION"
        else:
            booking_id = rng.choice(ids)
            current = ledger.get_booking(booking_id).value
            new_end = current.end_date + timedelta(days=rng.randint(1, 4))
            res = ledger.extend_booking(booking_id, new_end.isoformat(), "10:00")
            assert res.ok or res.code in ("CONFLICT", "VALIDATION_ERROR")
        _check_invariants(ledger)

    assert ledger.verify_integrity().value == []
