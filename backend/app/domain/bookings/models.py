"""Booking domain models."""
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class BookingType(str, Enum):
    HOTEL = "hotel"
    FLIGHT = "flight"
    RENTAL = "rental"
    EVENT = "event"


class BookingStatus(str, Enum):
    """Booking availability status, consumed by swaps."""
    AVAILABLE = "available"
    SWAP_IN_PROGRESS = "swap_in_progress"
    SALE_IN_PROGRESS = "sale_in_progress"
    SWAPPED = "swapped"
    CANCELLED = "cancelled"


@dataclass
class Booking:
    """Booking domain model."""
    id: str
    owner_id: str
    type: BookingType
    title: str
    description: Optional[str]
    city: str
    country: str
    check_in_date: datetime
    check_out_date: datetime
    original_price: float
    swap_value: float
    status: BookingStatus
    created_at: datetime
    updated_at: datetime

    @property
    def is_available(self) -> bool:
        return self.status == BookingStatus.AVAILABLE
