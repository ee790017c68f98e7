import os
import pickle
import threading
import uuid
from typing import Optional

import structlog

from carrental.models.booking import Booking
from carrental.models.car import Car

logger = structlog.get_logger(__name__)


class Store:
    """
    In-memory records for users, cars and bookings.
    Acts as the car catalog for the booking ledger. When `path` is set the
    whole payload is snapshotted to a pickle file with an atomic replace.
    """

    def __init__(self, path: str | os.PathLike | None = None):
        self.path = str(path) if path else None
        self.users: dict[str, dict] = {}
        self.cars: dict[str, Car] = {}
        self.bookings: dict[str, Booking] = {}
        self._rw = threading.RLock()

        if self.path:
            logger.info("store_open", path=self.path)
            self._load()

    @property
    def lock(self) -> threading.RLock:
        """Guards every record map and the snapshot; a ledger sharing `bookings` must insert under it."""
        return self._rw

    # ---------- Persistence ----------
    def _load(self):
        """Load data from the pickle file, or start empty if unavailable or invalid."""
        if not os.path.exists(self.path):
            return
        try:
            with open(self.path, "rb") as f:
                data = pickle.load(f)
        except (OSError, pickle.UnpicklingError, EOFError, AttributeError) as e:
            logger.warning("store_load_failed", path=self.path, error=str(e))
            return

        if isinstance(data, dict):
            self.users = data.get("users", {}) or {}
            self.cars = data.get("cars", {}) or {}
            self.bookings = data.get("bookings", {}) or {}
            logger.info("store_loaded", users=len(self.users), cars=len(self.cars), bookings=len(self.bookings))
        else:
            # Incompatible data format: back up the old file and start empty
            bak = self.path + ".bak"
            os.replace(self.path, bak)
            logger.warning("store_incompatible", found=type(data).__name__, backup=bak)

    def _dump(self):
        """Write the in-memory data to the pickle file safely (atomic replace)."""
        if not self.path:
            return
        os.makedirs(os.path.dirname(os.path.abspath(self.path)), exist_ok=True)
        tmp = self.path + ".tmp"
        payload = {
            "users": self.users,
            "cars": self.cars,
            "bookings": self.bookings,
        }
        with open(tmp, "wb") as f:
            pickle.dump(payload, f, protocol=pickle.HIGHEST_PROTOCOL)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, self.path)

    def save(self):
        """Thread-safe save method."""
        with self._rw:
            self._dump()

    def clear(self):
        with self._rw:
            self.users.clear()
            self.cars.clear()
            self.bookings.clear()
            self._dump()

    # ---------- Users ----------
    def user_exists(self, username: str) -> bool:
        """Return True if the given username already exists."""
        return any(u["username"] == username for u in self.users.values())

    def find_user(self, username: str) -> dict | None:
        """Find a user by username."""
        for u in self.users.values():
            if u["username"] == username:
                return u
        return None

    def create_user(self, username: str, password_hash: str, role: str) -> str:
        """Create a new user and return its ID."""
        with self._rw:
            if self.user_exists(username):
                raise ValueError("Username already exists")
            uid = str(uuid.uuid4())
            self.users[uid] = {
                "user_id": uid,
                "username": username,
                "password_hash": password_hash,
                "role": role,
            }
            self._dump()
            return uid

    # ---------- Cars (catalog) ----------
    def create_car(self, data: dict) -> str:
        """Create a new car record and return its ID."""
        with self._rw:
            cid = str(data.get("car_id") or uuid.uuid4())
            self.cars[cid] = Car(
                car_id=cid,
                owner_id=str(data.get("owner_id") or ""),
                price_per_day=float(data.get("price_per_day") or 0),
                location_tag=data.get("location_tag", ""),
                name=data.get("name", ""),
                status=data.get("status", "active"),
                available=bool(data.get("available", True)),
            )
            self._dump()
            return cid

    def get_car(self, car_id: str) -> Optional[Car]:
        return self.cars.get(str(car_id))

    def all_cars(self) -> list[Car]:
        return list(self.cars.values())

    def update_car(self, car_id: str, **updates) -> bool:
        """Update car attributes; return True if updated successfully."""
        with self._rw:
            car = self.cars.get(str(car_id))
            if car is None:
                return False
            for k, v in updates.items():
                if hasattr(car, k):
                    setattr(car, k, v)
            self._dump()
            return True
