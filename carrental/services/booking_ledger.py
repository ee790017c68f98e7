"""
Booking ledger: the booking state machine and everything that depends on it.

The ledger is the single writer of booking status, payment status and
ratings, and of the availability index. Every write that touches a car runs
under that car's lock, so the conflict check and the insert/update it
guards are one step for concurrent callers.
"""

from __future__ import annotations

import calendar
import copy
import secrets
import string
import threading
import uuid
from collections import Counter, defaultdict
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Iterable, Optional

import structlog

from carrental.exceptions import (
    BookingNotFoundError,
    CarNotFoundError,
    ConflictError,
    IllegalTransitionError,
    InternalError,
    ValidationError,
    returns_result,
)
from carrental.models.booking import Booking, Extension, Extra
from carrental.models.car import Car
from carrental.services.availability_index import AvailabilityIndex
from carrental.services.common import (
    as_date,
    as_time,
    fmt_time,
    is_blank,
    overlap,
    rental_days,
    round1,
    round2,
    to_float_safe,
)
from carrental.services.payments import PaymentProcessor
from carrental.services.pricing import quote, refund_policy
from carrental.utils.clock import Clock, localize, to_zone
from carrental.utils.constants import (
    BOOKING_TRANSITIONS,
    TIME_SLOTS,
    BookingStatus,
    PaymentStatus,
    Role,
)

logger = structlog.get_logger(__name__)

_NUMBER_ALPHABET = string.ascii_uppercase + string.digits
_NUMBER_ATTEMPTS = 20
PERIODS = ("day", "week", "month", "year")
DATE_RANGES = ("all", "today", "week", "month")


@dataclass(frozen=True)
class CancellationResult:
    refund_amount: float
    refund_percentage: int
    policy: str
    booking: Booking


@dataclass(frozen=True)
class ExtensionResult:
    additional_days: int
    additional_cost: float
    new_total: float
    booking: Booking


@dataclass(frozen=True)
class RatingResult:
    booking: Booking
    car_rating: float
    review_count: int


def _months_back(dt: datetime, months: int) -> datetime:
    """Same wall-clock moment `months` earlier, clamped to the month's last day."""
    month_index = dt.year * 12 + (dt.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    day = min(dt.day, calendar.monthrange(year, month)[1])
    return dt.replace(year=year, month=month, day=day)


class BookingLedger:
    def __init__(
        self,
        catalog,
        index: AvailabilityIndex,
        clock: Clock,
        payments: PaymentProcessor,
        bookings: Optional[dict[str, Booking]] = None,
        tax_rate: float = 0.08,
        service_fee_rate: float = 0.05,
        tz_name: str = "UTC",
        number_prefix: str = "CR",
    ):
        # catalog: get_car(car_id) -> Car | None, update_car(car_id, **fields); optional all_cars()/save()/lock
        self.catalog = catalog
        self.index = index
        self.clock = clock
        self.payments = payments
        self.tax_rate = tax_rate
        self.service_fee_rate = service_fee_rate
        self.tz_name = tz_name
        self.number_prefix = number_prefix

        self._bookings: dict[str, Booking] = bookings if bookings is not None else {}
        self._numbers: set[str] = {b.booking_number for b in self._bookings.values()}
        # one lock for the bookings map and the catalog snapshot that pickles it
        self._registry = getattr(catalog, "lock", None) or threading.RLock()
        self._car_locks: defaultdict[str, threading.Lock] = defaultdict(threading.Lock)
        self._car_locks_guard = threading.Lock()
        self._quarantined: set[str] = set()

        self.reconcile_availability()

    # ------------------------------------------------------------------ #
    # internals
    # ------------------------------------------------------------------ #
    def _car_lock(self, car_id: str) -> threading.Lock:
        with self._car_locks_guard:
            return self._car_locks[str(car_id)]

    def _now(self) -> datetime:
        return self.clock.now()

    def _today(self) -> date:
        return to_zone(self._now(), self.tz_name).date()

    def _persist(self):
        save = getattr(self.catalog, "save", None)
        if callable(save):
            # bookings map is shared with the catalog snapshot
            with self._registry:
                save()

    def _get(self, booking_id: str) -> Booking:
        with self._registry:
            booking = self._bookings.get(str(booking_id))
        if booking is None:
            raise BookingNotFoundError(f"Error: booking with ID '{booking_id}' not found")
        return booking

    def _all(self) -> list[Booking]:
        with self._registry:
            return list(self._bookings.values())

    def _for_car(self, car_id: str) -> list[Booking]:
        car_id = str(car_id)
        return [b for b in self._all() if b.car_id == car_id]

    @staticmethod
    def _snapshot(booking: Booking) -> Booking:
        return copy.deepcopy(booking)

    def _require_car(self, car_id: str) -> Car:
        car = self.catalog.get_car(car_id)
        if car is None:
            raise CarNotFoundError(f"Error: car with ID '{car_id}' not found")
        return car

    def _ensure_writable(self, car_id: str):
        if car_id in self._quarantined:
            raise InternalError("Error: bookings for this car are temporarily locked")

    def _verify_integrity(self, car_id: str, blocking: list[Booking]):
        """
        Blocking bookings of one car must be pairwise disjoint. Sorted by start,
        any overlap shows up between neighbours.
        """
        ordered = sorted(blocking, key=lambda b: (b.start_date, b.end_date))
        for a, b in zip(ordered, ordered[1:]):
            if overlap(a.start_date, a.end_date, b.start_date, b.end_date):
                self._quarantined.add(car_id)
                logger.critical(
                    "booking_invariant_violation",
                    car_id=car_id,
                    bookings=[a.booking_id, b.booking_id],
                )
                raise InternalError("Error: bookings for this car are temporarily locked")

    def _blocking(self, car_id: str) -> list[Booking]:
        blocking = [b for b in self._for_car(car_id) if b.blocks_calendar]
        self._verify_integrity(car_id, blocking)
        return blocking

    def _conflicts(self, car_id: str, start: date, end: date, exclude_id: Optional[str] = None) -> list[Booking]:
        return [
            b for b in self._blocking(car_id)
            if b.booking_id != exclude_id and overlap(b.start_date, b.end_date, start, end)
        ]

    def _sync_availability(self, car_id: str):
        """Car is available unless some booking on it is approved or active."""
        held = any(b.holds_car for b in self._for_car(car_id))
        self.index.set_availability(car_id, not held)

    def _new_booking_number(self) -> str:
        # Caller holds the registry lock
        for _ in range(_NUMBER_ATTEMPTS):
            stamp = str(int(self._now().timestamp() * 1000))[-6:].rjust(6, "0")
            suffix = "".join(secrets.choice(_NUMBER_ALPHABET) for _ in range(3))
            number = f"{self.number_prefix}{stamp}{suffix}"
            if number not in self._numbers:
                self._numbers.add(number)
                return number
        raise InternalError("Error: could not allocate a booking number")

    @staticmethod
    def _parse_extras(extras) -> list[Extra]:
        out = []
        for i, e in enumerate(extras or []):
            if isinstance(e, Extra):
                item = e
            elif not isinstance(e, dict):
                raise ValidationError("Invalid extras", {f"extras[{i}]": "expected {name, price}"})
            else:
                price = to_float_safe(e.get("price"))
                if price is None or price < 0:
                    raise ValidationError("Invalid extras", {f"extras[{i}]": "price must be a non-negative number"})
                item = Extra(name=str(e.get("name") or "extra"), price=round2(price))
            out.append(item)
        return out

    def _apply_transition(self, booking: Booking, new_status: str, reason: str):
        """Move one booking through the state machine. Caller holds the car lock."""
        if new_status not in BookingStatus.ALL:
            raise ValidationError("Unknown booking status", {"status": f"'{new_status}' is not a booking status"})
        if new_status not in BOOKING_TRANSITIONS[booking.status]:
            raise IllegalTransitionError(
                f"Error: cannot move booking {booking.booking_number} from '{booking.status}' to '{new_status}'"
            )
        now = self._now()
        old = booking.status
        booking.status = new_status
        if new_status == BookingStatus.COMPLETED:
            booking.completed_at = now
        booking.record(new_status, reason, now)
        if new_status in BookingStatus.HOLDING or new_status in BookingStatus.TERMINAL:
            self._sync_availability(booking.car_id)
        logger.info(
            "booking_status_changed",
            booking_id=booking.booking_id,
            car_id=booking.car_id,
            old=old,
            new=new_status,
        )

    # ------------------------------------------------------------------ #
    # commands
    # ------------------------------------------------------------------ #
    @returns_result
    def create_booking(
        self,
        car_id: str,
        customer_id: str,
        start_date,
        end_date,
        start_time,
        end_time,
        pickup_location: str,
        extras: Optional[Iterable] = None,
    ) -> Booking:
        """
        Create a pending booking if the car is free on [start_date, end_date).
        The car is not marked unavailable until the booking is approved.
        """
        required = {
            "car_id": car_id,
            "customer_id": customer_id,
            "start_date": start_date,
            "end_date": end_date,
            "start_time": start_time,
            "end_time": end_time,
            "pickup_location": pickup_location,
        }
        missing = {k: f"{k} is required" for k, v in required.items() if is_blank(v)}
        if missing:
            raise ValidationError("Error: missing required fields", missing)

        try:
            d1 = as_date(start_date)
            d2 = as_date(end_date)
        except ValueError:
            raise ValidationError("Invalid dates (YYYY-MM-DD)", {"start_date": "expected YYYY-MM-DD",
                                                                 "end_date": "expected YYYY-MM-DD"})
        if d1 < self._today():
            raise ValidationError("Start date cannot be in the past", {"start_date": "must not be in the past"})
        if d2 <= d1:
            raise ValidationError("End date must be after start date", {"end_date": "must be after start_date"})
        try:
            t1 = as_time(start_time)
            t2 = as_time(end_time)
        except ValueError:
            raise ValidationError("Invalid times (HH:MM)", {"start_time": "expected HH:MM", "end_time": "expected HH:MM"})
        items = self._parse_extras(extras)

        car_id = str(car_id)
        car = self._require_car(car_id)
        if not car.is_bookable:
            raise ValidationError("Car is not available for booking", {"car_id": f"car status is '{car.status}'"})

        with self._car_lock(car_id):
            self._ensure_writable(car_id)
            if self._conflicts(car_id, d1, d2):
                logger.info("booking_conflict", car_id=car_id, start=d1.isoformat(), end=d2.isoformat())
                raise ConflictError()

            days = rental_days(d1, d2)
            q = quote(car.price_per_day, days, items, self.tax_rate, self.service_fee_rate)
            now = self._now()
            with self._registry:
                booking = Booking(
                    booking_id=str(uuid.uuid4()),
                    booking_number=self._new_booking_number(),
                    car_id=car_id,
                    customer_id=str(customer_id),
                    host_id=car.owner_id,
                    start_date=d1,
                    end_date=d2,
                    start_time=t1,
                    end_time=t2,
                    pickup_location=pickup_location.strip(),
                    car_price=car.price_per_day,
                    days=days,
                    subtotal=q.subtotal,
                    tax=q.tax,
                    service_fee=q.service_fee,
                    total_amount=q.total,
                    created_at=now,
                    updated_at=now,
                    extras=items,
                )
                booking.record(BookingStatus.PENDING, "Booking created", now)
                self._bookings[booking.booking_id] = booking
            if car_id not in self.index:
                self.index.register(car_id, True)

        self._persist()
        logger.info(
            "booking_created",
            booking_id=booking.booking_id,
            booking_number=booking.booking_number,
            car_id=car_id,
            total=booking.total_amount,
        )
        return self._snapshot(booking)

    @returns_result
    def transition_status(self, booking_id: str, new_status: str, reason: Optional[str] = None) -> Booking:
        """Moving to cancelled runs the same refund handling as cancel_booking."""
        if new_status == BookingStatus.CANCELLED:
            return self._cancel(booking_id, reason or "").booking
        booking = self._get(booking_id)
        with self._car_lock(booking.car_id):
            self._ensure_writable(booking.car_id)
            self._blocking(booking.car_id)
            self._apply_transition(booking, new_status, reason or "")
        self._persist()
        return self._snapshot(booking)

    def approve(self, booking_id: str, reason: str = ""):
        return self.transition_status(booking_id, BookingStatus.APPROVED, reason)

    def reject(self, booking_id: str, reason: str = ""):
        return self.transition_status(booking_id, BookingStatus.REJECTED, reason)

    def activate(self, booking_id: str, reason: str = ""):
        return self.transition_status(booking_id, BookingStatus.ACTIVE, reason)

    def complete(self, booking_id: str, reason: str = ""):
        return self.transition_status(booking_id, BookingStatus.COMPLETED, reason)

    @returns_result
    def advance_schedule(self) -> list[Booking]:
        """
        approved -> active once the start date arrives;
        active -> completed once the end date arrives.
        Quarantined cars are skipped.
        """
        today = self._today()
        moved = []
        for booking in self._all():
            if booking.status == BookingStatus.APPROVED and booking.start_date <= today:
                target, reason = BookingStatus.ACTIVE, "Start date reached"
            elif booking.status == BookingStatus.ACTIVE and booking.end_date <= today:
                target, reason = BookingStatus.COMPLETED, "End date reached"
            else:
                continue
            if booking.car_id in self._quarantined:
                continue
            with self._car_lock(booking.car_id):
                # status may have moved while we waited for the lock
                if target in BOOKING_TRANSITIONS[booking.status]:
                    self._apply_transition(booking, target, reason)
                    moved.append(self._snapshot(booking))
        if moved:
            self._persist()
        return moved

    @returns_result
    def cancel_booking(self, booking_id: str, reason: str = "") -> CancellationResult:
        return self._cancel(booking_id, reason)

    def _cancel(self, booking_id: str, reason: str) -> CancellationResult:
        """
        Cancel a pending or approved booking. Refund tier depends on the hours
        left until the booked start: >=48h full, >=24h half, otherwise nothing.
        Money only moves when the booking was paid.
        """
        booking = self._get(booking_id)
        with self._car_lock(booking.car_id):
            self._ensure_writable(booking.car_id)
            if booking.status not in (BookingStatus.PENDING, BookingStatus.APPROVED):
                raise IllegalTransitionError(
                    f"Error: only pending or approved bookings can be cancelled (status is '{booking.status}')"
                )

            now = self._now()
            starts_at = localize(booking.start_date, booking.start_time, self.tz_name)
            hours_left = (starts_at - now).total_seconds() / 3600
            percentage, policy = refund_policy(hours_left)

            refund_amount = 0.0
            if booking.payment_status == PaymentStatus.PAID:
                refund_amount = round2(booking.total_amount * percentage / 100)
                reference = None
                if refund_amount > 0:
                    outcome = self.payments.refund(refund_amount, booking.payment_details.get("transaction_id"))
                    if not outcome.success:
                        logger.error("refund_failed", booking_id=booking.booking_id, amount=refund_amount)
                        raise InternalError("Error: refund could not be processed, please retry")
                    reference = outcome.reference
                booking.payment_status = PaymentStatus.REFUNDED
                # rebind, a snapshot may be pickling the old dict
                booking.payment_details = {
                    **booking.payment_details,
                    "refund_amount": refund_amount,
                    "refund_reason": reason,
                    "refund_policy": policy,
                    "refund_reference": reference,
                    "refunded_at": now,
                }

            self._apply_transition(booking, BookingStatus.CANCELLED, reason)

        self._persist()
        logger.info(
            "booking_cancelled",
            booking_id=booking.booking_id,
            refund_amount=refund_amount,
            refund_percentage=percentage,
        )
        return CancellationResult(
            refund_amount=refund_amount,
            refund_percentage=percentage,
            policy=policy,
            booking=self._snapshot(booking),
        )

    @returns_result
    def pay_booking(self, booking_id: str, method: str) -> Booking:
        """
        Charge the booking total. Timeouts and processor errors leave the
        payment 'failed', never pending.
        """
        if is_blank(method):
            raise ValidationError("Payment method is required", {"method": "method is required"})
        booking = self._get(booking_id)
        with self._car_lock(booking.car_id):
            self._ensure_writable(booking.car_id)
            if booking.status in BookingStatus.RELEASED:
                raise IllegalTransitionError(f"Error: cannot pay a {booking.status} booking")
            if booking.payment_status != PaymentStatus.PENDING:
                raise IllegalTransitionError(f"Error: payment is already '{booking.payment_status}'")

            outcome = self.payments.charge(booking.total_amount, method)
            now = self._now()
            if outcome.success:
                booking.payment_status = PaymentStatus.PAID
                booking.payment_details = {**booking.payment_details, "method": method,
                                           "transaction_id": outcome.reference, "paid_at": now}
            else:
                booking.payment_status = PaymentStatus.FAILED
                booking.payment_details = {**booking.payment_details, "method": method,
                                           "failure": outcome.message, "failed_at": now}
            booking.updated_at = now

        self._persist()
        logger.info("booking_payment", booking_id=booking.booking_id, payment_status=booking.payment_status)
        return self._snapshot(booking)

    @returns_result
    def rate_booking(self, booking_id: str, rating, review: Optional[str] = None) -> RatingResult:
        if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
            raise ValidationError("Rating must be between 1 and 5", {"rating": "integer from 1 to 5"})
        booking = self._get(booking_id)
        with self._car_lock(booking.car_id):
            self._ensure_writable(booking.car_id)
            if booking.status != BookingStatus.COMPLETED:
                raise ValidationError("Can only rate completed bookings", {"status": f"booking is '{booking.status}'"})
            now = self._now()
            booking.rating = rating
            booking.review = review
            booking.rated_at = now
            booking.updated_at = now

            rated = [
                b for b in self._for_car(booking.car_id)
                if b.status == BookingStatus.COMPLETED and b.rating is not None
            ]
            average = round1(sum(b.rating for b in rated) / len(rated))
            self.catalog.update_car(booking.car_id, rating=average, review_count=len(rated))

        self._persist()
        logger.info("booking_rated", booking_id=booking.booking_id, car_id=booking.car_id, car_rating=average)
        return RatingResult(booking=self._snapshot(booking), car_rating=average, review_count=len(rated))

    @returns_result
    def extend_booking(self, booking_id: str, new_end_date, new_end_time) -> ExtensionResult:
        """
        Push the end date out. Only the added range [old_end, new_end) is
        checked for conflicts; extra days are charged at the booked daily price.
        """
        try:
            new_end = as_date(new_end_date)
            new_time = as_time(new_end_time)
        except (TypeError, ValueError):
            raise ValidationError("Invalid end date/time", {"new_end_date": "expected YYYY-MM-DD",
                                                            "new_end_time": "expected HH:MM"})
        booking = self._get(booking_id)
        with self._car_lock(booking.car_id):
            self._ensure_writable(booking.car_id)
            if booking.is_terminal:
                raise ValidationError("Only open bookings can be extended", {"status": f"booking is '{booking.status}'"})
            old_end = booking.end_date
            if new_end <= old_end:
                raise ValidationError(
                    "New end date must be after current end date",
                    {"new_end_date": f"must be after {old_end.isoformat()}"},
                )
            if self._conflicts(booking.car_id, old_end, new_end, exclude_id=booking.booking_id):
                raise ConflictError("Error: extension conflicts with another booking")

            additional_days = (new_end - old_end).days
            additional_cost = round2(additional_days * booking.car_price)
            now = self._now()
            booking.end_date = new_end
            booking.end_time = new_time
            booking.days += additional_days
            booking.total_amount = round2(booking.total_amount + additional_cost)
            booking.extension_history.append(Extension(
                original_end_date=old_end,
                new_end_date=new_end,
                additional_days=additional_days,
                additional_cost=additional_cost,
                at=now,
            ))
            booking.updated_at = now

        self._persist()
        logger.info("booking_extended", booking_id=booking.booking_id, additional_days=additional_days)
        return ExtensionResult(
            additional_days=additional_days,
            additional_cost=additional_cost,
            new_total=booking.total_amount,
            booking=self._snapshot(booking),
        )

    def reconcile_availability(self) -> None:
        """Rebuild the index from the catalog and the bookings held in the ledger."""
        all_cars = getattr(self.catalog, "all_cars", None)
        car_ids = {c.car_id for c in all_cars()} if callable(all_cars) else set()
        car_ids |= {b.car_id for b in self._all()}
        for car_id in car_ids:
            self.index.register(car_id)
            self._sync_availability(car_id)

    # ------------------------------------------------------------------ #
    # queries
    # ------------------------------------------------------------------ #
    @returns_result
    def get_booking(self, booking_id: str) -> Booking:
        return self._snapshot(self._get(booking_id))

    @returns_result
    def car_availability(self, car_id: str) -> bool:
        return self.index.is_available(car_id).unwrap()

    @returns_result
    def verify_integrity(self) -> list[str]:
        """Audit every car; returns the quarantined car ids."""
        by_car = defaultdict(list)
        for b in self._all():
            if b.blocks_calendar:
                by_car[b.car_id].append(b)
        for car_id, blocking in by_car.items():
            try:
                self._verify_integrity(car_id, blocking)
            except InternalError:
                continue
        return sorted(self._quarantined)

    @returns_result
    def bookings_for_user(self, user_id: str, role: str) -> list[Booking]:
        """Customers see what they booked, hosters what was booked on their cars, admins everything."""
        if role == Role.CUSTOMER:
            found = [b for b in self._all() if b.customer_id == user_id]
        elif role == Role.HOSTER:
            found = [b for b in self._all() if b.host_id == user_id]
        elif role == Role.ADMIN:
            found = self._all()
        else:
            found = []
        return [self._snapshot(b) for b in found]

    @returns_result
    def bookings_for_car(self, car_id: str) -> list[Booking]:
        return [self._snapshot(b) for b in sorted(self._for_car(car_id), key=lambda b: b.start_date)]

    @returns_result
    def bookings_by_status(self, status: str) -> list[Booking]:
        return [self._snapshot(b) for b in self._all() if b.status == status]

    @returns_result
    def bookings_by_date_range(self, start, end) -> list[Booking]:
        """Bookings lying entirely inside [start, end]."""
        try:
            d1, d2 = as_date(start), as_date(end)
        except (TypeError, ValueError):
            raise ValidationError("Invalid dates (YYYY-MM-DD)", {"start": "expected YYYY-MM-DD", "end": "expected YYYY-MM-DD"})
        return [self._snapshot(b) for b in self._all() if b.start_date >= d1 and b.end_date <= d2]

    def _range_start(self, date_range: str) -> Optional[datetime]:
        now = to_zone(self._now(), self.tz_name)
        if date_range == "today":
            return now.replace(hour=0, minute=0, second=0, microsecond=0)
        if date_range == "week":
            return now - timedelta(days=7)
        if date_range == "month":
            return _months_back(now, 1)
        return None

    @returns_result
    def filtered_bookings(
        self,
        status: str = "all",
        date_range: str = "all",
        host_id: Optional[str] = None,
        customer_id: Optional[str] = None,
    ) -> list[Booking]:
        """Dashboard list: filters combine, newest first by creation time."""
        if date_range not in DATE_RANGES:
            raise ValidationError("Unknown date range", {"date_range": f"one of {', '.join(DATE_RANGES)}"})
        res = self._all()
        if status and status != "all":
            res = [b for b in res if b.status == status]
        since = self._range_start(date_range)
        if since is not None:
            now = self._now()
            res = [b for b in res if since <= b.created_at <= now]
        if host_id:
            res = [b for b in res if b.host_id == host_id]
        if customer_id:
            res = [b for b in res if b.customer_id == customer_id]
        res.sort(key=lambda b: b.created_at, reverse=True)
        return [self._snapshot(b) for b in res]

    @returns_result
    def booking_stats(self) -> dict:
        bookings = self._all()
        counts = Counter(b.status for b in bookings)
        stats = {"total": len(bookings)}
        stats.update({s: counts.get(s, 0) for s in BookingStatus.ALL})
        stats["total_revenue"] = round2(sum(b.total_amount for b in bookings if b.payment_status == PaymentStatus.PAID))
        stats["pending_payments"] = round2(
            sum(b.total_amount for b in bookings if b.payment_status == PaymentStatus.PENDING)
        )
        return stats

    def _period_start(self, period: str) -> datetime:
        if period not in PERIODS:
            raise ValidationError("Unknown period", {"period": f"one of {', '.join(PERIODS)}"})
        now = self._now()
        if period == "day":
            return now - timedelta(days=1)
        if period == "week":
            return now - timedelta(days=7)
        if period == "month":
            return _months_back(now, 1)
        return _months_back(now, 12)

    @returns_result
    def revenue_by_period(self, period: str = "month") -> float:
        """Paid revenue whose completion (or creation) falls in the window ending now."""
        since = self._period_start(period)
        return round2(sum(
            b.total_amount for b in self._all()
            if b.payment_status == PaymentStatus.PAID and (b.completed_at or b.created_at) >= since
        ))

    @returns_result
    def booking_analytics(self, period: str = "month") -> dict:
        since = self._period_start(period)
        recent = [b for b in self._all() if b.created_at >= since]
        total = len(recent)
        completed = sum(1 for b in recent if b.status == BookingStatus.COMPLETED)
        return {
            "total_bookings": total,
            "completed_bookings": completed,
            "cancelled_bookings": sum(1 for b in recent if b.status == BookingStatus.CANCELLED),
            "revenue": round2(sum(b.total_amount for b in recent if b.payment_status == PaymentStatus.PAID)),
            "average_booking_value": round2(sum(b.total_amount for b in recent) / total) if total else 0.0,
            "conversion_rate": round2(completed / total * 100) if total else 0.0,
        }

    @returns_result
    def available_time_slots(self, car_id: str, on_date) -> list[str]:
        """
        Hourly pickup slots left on a day. A day strictly inside a booking has
        none; on a pickup day slots from the pickup time on are taken, on a
        return day slots up to the return time are taken.
        """
        try:
            day = as_date(on_date)
        except (TypeError, ValueError):
            raise ValidationError("Invalid date (YYYY-MM-DD)", {"date": "expected YYYY-MM-DD"})
        self._require_car(str(car_id))
        blocking = [b for b in self._for_car(car_id) if b.blocks_calendar]
        if any(b.start_date < day < b.end_date for b in blocking):
            return []
        taken = set()
        for b in blocking:
            for slot in TIME_SLOTS:
                if b.start_date == day and fmt_time(b.start_time) <= slot:
                    taken.add(slot)
                if b.end_date == day and fmt_time(b.end_time) >= slot:
                    taken.add(slot)
        return [s for s in TIME_SLOTS if s not in taken]
