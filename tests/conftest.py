import sys, pathlib
from datetime import datetime, timedelta

ROOT = pathlib.Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

import pytest
import pytz

from carrental import create_app
from carrental.config import Settings
from carrental.models.store import Store
from carrental.services import build_services
from carrental.services.credentials import StoreCredentialVerifier
from carrental.services.payments import PaymentOutcome


class FakeClock:
    """Settable, timezone-aware clock."""

    def __init__(self, now: datetime):
        self.current = now

    def now(self) -> datetime:
        return self.current

    def set(self, now: datetime):
        self.current = now

    def advance(self, **kwargs):
        self.current = self.current + timedelta(**kwargs)


class FakeProcessor:
    """Records calls; `charge_ok` / `refund_ok` switch the answers."""

    def __init__(self):
        self.charge_ok = True
        self.refund_ok = True
        self.charges = []
        self.refunds = []

    def charge(self, amount, method):
        self.charges.append((amount, method))
        return PaymentOutcome(self.charge_ok, reference="txn_test" if self.charge_ok else None,
                              message="" if self.charge_ok else "declined")

    def refund(self, amount, reference):
        self.refunds.append((amount, reference))
        return PaymentOutcome(self.refund_ok, reference="rfd_test" if self.refund_ok else None)


START = datetime(2025, 8, 1, 9, 0, tzinfo=pytz.utc)


@pytest.fixture
def clock():
    return FakeClock(START)


@pytest.fixture
def settings():
    return Settings(data_path=None, timezone="UTC", payment_timeout_seconds=2)


@pytest.fixture
def store():
    """
    In-memory store with demo logins and three cars:
    car-1 ($85/day) and car-2 ($40/day) owned by 'hoster', car-3 in maintenance.
    """
    st = Store()
    verifier = StoreCredentialVerifier(st)
    for username, role in (("admin", "admin"), ("hoster", "hoster"), ("other-hoster", "hoster"),
                           ("customer", "customer"), ("customer2", "customer")):
        ok, msg, _ = verifier.register(username, role, "pw123")
        assert ok, msg
    st.create_car({"car_id": "car-1", "owner_id": "hoster", "price_per_day": 85, "name": "Model 3"})
    st.create_car({"car_id": "car-2", "owner_id": "hoster", "price_per_day": 40, "name": "Fit"})
    st.create_car({"car_id": "car-3", "owner_id": "other-hoster", "price_per_day": 60,
                   "name": "Transit", "status": "maintenance"})
    return st


@pytest.fixture
def processor():
    return FakeProcessor()


@pytest.fixture
def services(settings, store, clock, processor):
    svc = build_services(settings, store=store, clock=clock, payment_processor=processor)
    yield svc
    svc.payments.shutdown()


@pytest.fixture
def ledger(services):
    return services.ledger


@pytest.fixture
def make_booking(ledger):
    """Create a booking with sensible defaults; keyword overrides win. Returns the Result."""

    def _make(**overrides):
        data = {
            "car_id": "car-1",
            "customer_id": "customer",
            "start_date": "2025-08-25",
            "end_date": "2025-08-28",
            "start_time": "10:00",
            "end_time": "10:00",
            "pickup_location": "Downtown",
        }
        data.update(overrides)
        return ledger.create_booking(**data)

    return _make


@pytest.fixture
def app(settings, services):
    app = create_app(settings, services)
    app.config.update(TESTING=True)
    return app


@pytest.fixture
def client(app):
    with app.test_client() as c:
        yield c


@pytest.fixture
def login(client):
    """Log in over HTTP and return the Authorization header for the new session."""

    def _login(role, identifier, secret="pw123"):
        r = client.post("/login", json={"role": role, "identifier": identifier, "secret": secret})
        assert r.status_code == 200, r.get_json()
        return {"Authorization": f"Bearer {r.get_json()['session']['session_id']}"}

    return _login
