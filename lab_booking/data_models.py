# data_models.py
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import Enum
from typing import NamedTuple


class BookingType(str, Enum):
    TWO_HOUR = "2 Hour"
    HALF_DAY = "Half Day"
    FULL_DAY = "Full Day"


# Legal time slots per booking type, in day order
BOOKING_TYPE_TIME_SLOTS = {
    BookingType.TWO_HOUR: ("10-12", "12-14", "14-16", "16-18"),
    BookingType.HALF_DAY: ("10-14", "14-18"),
    BookingType.FULL_DAY: ("10-18",),
}


class HoldKey(NamedTuple):
    """Capacity-accounting key: one resource, one date, one time slot."""
    resource_id: int
    booking_date: date
    time_slot: str

    def __str__(self):
        return f"{self.resource_id}-{self.booking_date.isoformat()}-{self.time_slot}"


@dataclass
class Hold:
    """A temporary reservation of resource quantity for one user."""
    user_id: str
    key: HoldKey
    resource_qty: int
    start_time: datetime
    duration: timedelta

    @property
    def expiry_time(self) -> datetime:
        return self.start_time + self.duration

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expiry_time

    def remaining(self, now: datetime) -> timedelta:
        return max(self.expiry_time - now, timedelta(0))

    def describe(self, now: datetime) -> dict:
        return {
            "resourceId": self.key.resource_id,
            "bookingDate": self.key.booking_date.isoformat(),
            "timeSlot": self.key.time_slot,
            "resourceQty": self.resource_qty,
            "blockStartTime": self.start_time.isoformat(),
            "blockEndTime": self.expiry_time.isoformat(),
            "remainingSeconds": int(self.remaining(now).total_seconds()),
        }


@dataclass
class Resource:
    """Read-only view of a catalog row."""
    id: int
    name: str
    max_qty: int
    booking_type: str
    active: bool = True
