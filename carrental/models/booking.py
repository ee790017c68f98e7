from dataclasses import dataclass, field, asdict
from datetime import date, datetime, time
from typing import Optional

from carrental.utils.constants import BookingStatus, PaymentStatus, TIME_FMT


@dataclass(frozen=True)
class StatusChange:
    status: str
    reason: str
    at: datetime


@dataclass(frozen=True)
class Extension:
    original_end_date: date
    new_end_date: date
    additional_days: int
    additional_cost: float
    at: datetime


@dataclass(frozen=True)
class Extra:
    """Itemized add-on priced per booking (GPS, child seat...)."""
    name: str
    price: float


@dataclass
class Booking:
    """
    A reservation of one car for a half-open date interval [start_date, end_date).
    Mutated only by the BookingLedger.
    """
    booking_id: str
    booking_number: str
    car_id: str
    customer_id: str
    host_id: str
    start_date: date
    end_date: date
    start_time: time
    end_time: time
    pickup_location: str
    car_price: float
    days: int
    subtotal: float
    tax: float
    service_fee: float
    total_amount: float
    created_at: datetime
    updated_at: datetime
    extras: list[Extra] = field(default_factory=list)
    status: str = BookingStatus.PENDING
    payment_status: str = PaymentStatus.PENDING
    payment_details: dict = field(default_factory=dict)
    rating: Optional[int] = None
    review: Optional[str] = None
    rated_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    status_history: list[StatusChange] = field(default_factory=list)
    extension_history: list[Extension] = field(default_factory=list)

    @property
    def is_terminal(self) -> bool:
        return self.status in BookingStatus.TERMINAL

    @property
    def blocks_calendar(self) -> bool:
        """Cancelled and rejected bookings free their dates."""
        return self.status not in BookingStatus.RELEASED

    @property
    def holds_car(self) -> bool:
        return self.status in BookingStatus.HOLDING

    def record(self, status: str, reason: str, at: datetime) -> None:
        self.status_history.append(StatusChange(status=status, reason=reason, at=at))
        self.updated_at = at

    def to_dict(self) -> dict:
        d = asdict(self)
        for k in ("start_date", "end_date", "created_at", "updated_at", "rated_at", "completed_at"):
            if d[k] is not None:
                d[k] = d[k].isoformat()
        d["start_time"] = self.start_time.strftime(TIME_FMT)
        d["end_time"] = self.end_time.strftime(TIME_FMT)
        d["status_history"] = [
            {"status": h.status, "reason": h.reason, "at": h.at.isoformat()} for h in self.status_history
        ]
        d["extension_history"] = [
            {
                "original_end_date": e.original_end_date.isoformat(),
                "new_end_date": e.new_end_date.isoformat(),
                "additional_days": e.additional_days,
                "additional_cost": e.additional_cost,
                "at": e.at.isoformat(),
            }
            for e in self.extension_history
        ]
        d["payment_details"] = {
            k: (v.isoformat() if isinstance(v, datetime) else v) for k, v in self.payment_details.items()
        }
        return d
