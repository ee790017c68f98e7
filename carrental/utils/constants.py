# carrental/utils/constants.py

"""
Global constants for roles, statuses, and access reason codes.
These constants are imported by both models and services.
"""

# Date/time formats (used for booking start/end)
DATE_FMT = "%Y-%m-%d"
TIME_FMT = "%H:%M"


class Role:
    ADMIN = "admin"
    HOSTER = "hoster"
    CUSTOMER = "customer"

    ALL = (ADMIN, HOSTER, CUSTOMER)


class BookingStatus:
    PENDING = "pending"
    APPROVED = "approved"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REJECTED = "rejected"

    ALL = (PENDING, APPROVED, ACTIVE, COMPLETED, CANCELLED, REJECTED)
    TERMINAL = frozenset({COMPLETED, CANCELLED, REJECTED})
    # Statuses that never block the calendar
    RELEASED = frozenset({CANCELLED, REJECTED})
    # Statuses that make the car unavailable in the index
    HOLDING = frozenset({APPROVED, ACTIVE})


class PaymentStatus:
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


class CarStatus:
    ACTIVE = "active"
    MAINTENANCE = "maintenance"
    INACTIVE = "inactive"


class DenyReason:
    NOT_AUTHENTICATED = "NOT_AUTHENTICATED"
    INSUFFICIENT_PRIVILEGES = "INSUFFICIENT_PRIVILEGES"
    INSUFFICIENT_PERMISSIONS = "INSUFFICIENT_PERMISSIONS"
    ROLE_NOT_ALLOWED = "ROLE_NOT_ALLOWED"
    ROUTE_FORBIDDEN = "ROUTE_FORBIDDEN"
    SYSTEM_ERROR = "SYSTEM_ERROR"


# Allowed state changes; anything else is an illegal transition
BOOKING_TRANSITIONS = {
    BookingStatus.PENDING: {BookingStatus.APPROVED, BookingStatus.REJECTED, BookingStatus.CANCELLED},
    BookingStatus.APPROVED: {BookingStatus.ACTIVE, BookingStatus.CANCELLED},
    BookingStatus.ACTIVE: {BookingStatus.COMPLETED},
    BookingStatus.COMPLETED: set(),
    BookingStatus.CANCELLED: set(),
    BookingStatus.REJECTED: set(),
}

# Hourly pickup/return slots offered per day
TIME_SLOTS = (
    "08:00", "09:00", "10:00", "11:00", "12:00",
    "13:00", "14:00", "15:00", "16:00", "17:00", "18:00",
)
