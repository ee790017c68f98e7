from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from carrental.config import Settings
from carrental.models.store import Store
from carrental.services.access_guard import AccessGuard, AccessPolicy
from carrental.services.availability_index import AvailabilityIndex
from carrental.services.booking_ledger import BookingLedger
from carrental.services.credentials import StoreCredentialVerifier
from carrental.services.payments import AcceptAllProcessor, PaymentProcessor, TimeoutPaymentGateway
from carrental.services.session_manager import SessionManager
from carrental.utils.clock import Clock, SystemClock


@dataclass
class Services:
    """Per-process service objects, handed by reference to request handlers."""
    store: Store
    clock: Clock
    credentials: StoreCredentialVerifier
    sessions: SessionManager
    guard: AccessGuard
    index: AvailabilityIndex
    ledger: BookingLedger
    payments: TimeoutPaymentGateway


def build_services(
    settings: Settings,
    store: Optional[Store] = None,
    clock: Optional[Clock] = None,
    payment_processor: Optional[PaymentProcessor] = None,
    policy: Optional[AccessPolicy] = None,
) -> Services:
    store = store if store is not None else Store(settings.data_path)
    clock = clock or SystemClock(settings.timezone)
    credentials = StoreCredentialVerifier(store)
    sessions = SessionManager(
        credentials,
        clock,
        ttl=timedelta(hours=settings.session_ttl_hours),
        warning_window=timedelta(minutes=settings.session_warning_minutes),
        sweep_interval=settings.session_sweep_interval_seconds,
    )
    guard = AccessGuard(policy, sessions)
    index = AvailabilityIndex(catalog=store)
    payments = TimeoutPaymentGateway(payment_processor or AcceptAllProcessor(), timeout=settings.payment_timeout_seconds)
    ledger = BookingLedger(
        store,
        index,
        clock,
        payments,
        bookings=store.bookings,
        tax_rate=settings.tax_rate,
        service_fee_rate=settings.service_fee_rate,
        tz_name=settings.timezone,
        number_prefix=settings.booking_number_prefix,
    )
    return Services(
        store=store,
        clock=clock,
        credentials=credentials,
        sessions=sessions,
        guard=guard,
        index=index,
        ledger=ledger,
        payments=payments,
    )


__all__ = [
    "Services",
    "build_services",
    "AccessGuard",
    "AccessPolicy",
    "AvailabilityIndex",
    "BookingLedger",
    "SessionManager",
]
