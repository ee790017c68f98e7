from __future__ import annotations

import threading
from collections import defaultdict
from typing import Optional

import structlog

from carrental.exceptions import CarNotFoundError, returns_result

logger = structlog.get_logger(__name__)


class AvailabilityIndex:
    """
    Coarse "is this car held by an approved/active booking right now" flag,
    keyed by car id. Date-range conflicts are the ledger's business; this
    index only serves fast listing checks. The BookingLedger is its only writer.
    """

    def __init__(self, catalog=None):
        # catalog: optional object with update_car(car_id, **fields) to mirror the flag
        self.catalog = catalog
        self._flags: dict[str, bool] = {}
        self._locks: defaultdict[str, threading.Lock] = defaultdict(threading.Lock)
        self._guard = threading.Lock()

    def _lock_for(self, car_id: str) -> threading.Lock:
        with self._guard:
            return self._locks[car_id]

    def register(self, car_id: str, available: bool = True) -> None:
        car_id = str(car_id)
        with self._lock_for(car_id):
            self._flags.setdefault(car_id, bool(available))

    def forget(self, car_id: str) -> None:
        car_id = str(car_id)
        with self._lock_for(car_id):
            self._flags.pop(car_id, None)

    def __contains__(self, car_id) -> bool:
        return str(car_id) in self._flags

    @returns_result
    def is_available(self, car_id: str) -> bool:
        flag: Optional[bool] = self._flags.get(str(car_id))
        if flag is None:
            raise CarNotFoundError(f"Error: car with ID '{car_id}' not found")
        return flag

    def set_availability(self, car_id: str, available: bool) -> None:
        """Unconditional, idempotent set. Writes for one car are serialized."""
        car_id = str(car_id)
        available = bool(available)
        with self._lock_for(car_id):
            previous = self._flags.get(car_id)
            self._flags[car_id] = available
            if self.catalog is not None:
                self.catalog.update_car(car_id, available=available)
        if previous != available:
            logger.debug("car_availability_changed", car_id=car_id, available=available)

    def snapshot(self) -> dict[str, bool]:
        with self._guard:
            return dict(self._flags)
