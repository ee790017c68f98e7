from datetime import datetime, timedelta

import pytest
import pytz

from carrental.utils.constants import BookingStatus, PaymentStatus

# car-2: $40/day, 3 days -> subtotal 120, tax 9.60, fee 6.00, total 135.60
STARTS_AT = datetime(2025, 8, 25, 10, 0, tzinfo=pytz.utc)
TOTAL = 135.60


@pytest.fixture
def paid_booking(make_booking, ledger):
    b = make_booking(car_id="car-2").value
    assert b.total_amount == TOTAL
    assert ledger.pay_booking(b.booking_id, "card").value.payment_status == PaymentStatus.PAID
    return b


@pytest.mark.parametrize("hours,pct,amount", [
    (50, 100, 135.60),
    (48, 100, 135.60),
    (30, 50, 67.80),
    (24, 50, 67.80),
    (10, 0, 0.0),
])
def test_refund_tiers(paid_booking, ledger, clock, processor, hours, pct, amount):
    clock.set(STARTS_AT - timedelta(hours=hours))
    res = ledger.cancel_booking(paid_booking.booking_id, "plans changed")
    assert res.ok, res.message
    r = res.value
    assert r.refund_percentage == pct
    assert r.refund_amount == amount
    assert r.booking.status == BookingStatus.CANCELLED
    assert r.booking.payment_status == PaymentStatus.REFUNDED
    assert r.booking.payment_details["refund_amount"] == amount
    # no processor call for a zero refund
    assert len(processor.refunds) == (1 if amount else 0)


def test_policy_text(paid_booking, ledger, clock):
    clock.set(STARTS_AT - timedelta(hours=30))
    assert ledger.cancel_booking(paid_booking.booking_id).value.policy == "Partial refund (24-48 hours notice)"


def test_unpaid_cancellation_moves_no_money(make_booking, ledger, processor):
    b = make_booking(car_id="car-2").value
    r = ledger.cancel_booking(b.booking_id, "changed").value
    assert r.refund_amount == 0.0
    assert r.refund_percentage == 100
    assert r.booking.payment_status == PaymentStatus.PENDING
    assert processor.refunds == []


def test_approved_booking_can_be_cancelled(paid_booking, ledger):
    ledger.approve(paid_booking.booking_id)
    assert ledger.car_availability("car-2").value is False
    assert ledger.cancel_booking(paid_booking.booking_id).ok
    assert ledger.car_availability("car-2").value is True


@pytest.mark.parametrize("steps", [["approve", "activate"], ["reject"], ["approve", "activate", "complete"]])
def test_only_pending_or_approved_can_be_cancelled(make_booking, ledger, steps):
    b = make_booking().value
    for step in steps:
        getattr(ledger, step)(b.booking_id)
    assert ledger.cancel_booking(b.booking_id).code == "ILLEGAL_TRANSITION"


def test_failed_refund_leaves_booking_untouched(paid_booking, ledger, processor):
    processor.refund_ok = False
    res = ledger.cancel_booking(paid_booking.booking_id, "plans changed")
    assert res.code == "SYSTEM_ERROR"
    b = ledger.get_booking(paid_booking.booking_id).value
    assert b.status == BookingStatus.PENDING
    assert b.payment_status == PaymentStatus.PAID


def test_start_time_counts_towards_notice(make_booking, ledger, clock):
    """Notice is measured to the booked pickup time, not midnight."""
    b = make_booking(car_id="car-2", start_time="18:00").value
    clock.set(datetime(2025, 8, 23, 19, 0, tzinfo=pytz.utc))  # 47h before 08-25 18:00
    assert ledger.cancel_booking(b.booking_id).value.refund_percentage == 50


def test_status_change_to_cancelled_refunds_paid_booking(paid_booking, ledger, processor):
    res = ledger.transition_status(paid_booking.booking_id, BookingStatus.CANCELLED, "host cancelled")
    assert res.ok, res.message
    b = res.value
    assert b.status == BookingStatus.CANCELLED
    assert b.payment_status == PaymentStatus.REFUNDED
    assert b.payment_details["refund_amount"] == TOTAL
    assert processor.refunds == [(TOTAL, "txn_test")]
    assert ledger.booking_stats().value["total_revenue"] == 0.0


def test_status_change_to_cancelled_from_active_is_illegal(make_booking, ledger):
    b = make_booking().value
    ledger.approve(b.booking_id)
    ledger.activate(b.booking_id)
    assert ledger.transition_status(b.booking_id, BookingStatus.CANCELLED).code == "ILLEGAL_TRANSITION"
