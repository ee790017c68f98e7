from dataclasses import dataclass, asdict
from typing import Optional

from carrental.utils.constants import CarStatus


@dataclass
class Car:
    """
    Catalog record for a rentable car. Per-day price is the listed price
    before tax and service fee.
    `available` is a cache written only through the availability index.
    """
    car_id: str
    owner_id: str
    price_per_day: float
    location_tag: str = ""
    name: str = ""
    status: str = CarStatus.ACTIVE  # "active" | "maintenance" | "inactive"
    available: bool = True
    rating: Optional[float] = None
    review_count: int = 0

    @property
    def is_bookable(self) -> bool:
        return self.status == CarStatus.ACTIVE

    def to_dict(self) -> dict:
        return asdict(self)
