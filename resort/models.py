"""Domain models for the resort reservation service."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import date, datetime
from typing import Dict, Optional


DEFAULT_PROFILE_IMAGE = "/static/images/default-avatar.svg"
DEFAULT_SALES_CATEGORY = "accommodation"
MIN_GUESTS = 1
MAX_GUESTS = 20


class RoomType(str, enum.Enum):
    PREMIUM_ROOM = "premium-room"
    NATIVE_COTTAGE = "native-cottage"
    BASIC_COTTAGE = "basic-cottage"
    OPEN_AREA = "open-area"
    TENT_SITE = "tent-site"

    @property
    def label(self) -> str:
        return ROOM_LABELS[self]

    @property
    def rate(self) -> int:
        return ROOM_RATES[self]


ROOM_RATES: Dict[RoomType, int] = {
    RoomType.PREMIUM_ROOM: 3500,
    RoomType.NATIVE_COTTAGE: 1500,
    RoomType.BASIC_COTTAGE: 1200,
    RoomType.OPEN_AREA: 1000,
    RoomType.TENT_SITE: 500,
}

ROOM_LABELS: Dict[RoomType, str] = {
    RoomType.PREMIUM_ROOM: "Premium Room",
    RoomType.NATIVE_COTTAGE: "Native Cottage",
    RoomType.BASIC_COTTAGE: "Basic Cottage",
    RoomType.OPEN_AREA: "Open Area",
    RoomType.TENT_SITE: "Tent Site",
}


class BookingStatus(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"


@dataclass(frozen=True)
class User:
    """Represents a guest account. The password hash never leaves the database."""

    id: int
    fullname: str
    email: str
    created_at: datetime
    username: Optional[str] = None
    phone: Optional[str] = None
    profile_image: str = DEFAULT_PROFILE_IMAGE
    role: str = "user"

    @property
    def display_username(self) -> str:
        return self.username or self.email.split("@", 1)[0]


@dataclass(frozen=True)
class Booking:
    """A reservation request. Prices are derived, see ``prepare_for_persistence``."""

    user_id: int
    room: RoomType
    checkin: date
    checkout: date
    guests: int
    id: Optional[int] = None
    name: str = ""
    price_per_night: int = 0
    total_price: int = 0
    sales_category: str = DEFAULT_SALES_CATEGORY
    contact: Optional[str] = None
    special_requests: Optional[str] = None
    status: BookingStatus = BookingStatus.PENDING
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def nights(self) -> int:
        # Calendar dates, so the ceiling of the day difference is the difference.
        return max((self.checkout - self.checkin).days, 0)

    @property
    def room_label(self) -> str:
        return self.room.label


@dataclass(frozen=True)
class Notification:
    id: int
    user_id: int
    message: str
    type: str
    created_at: datetime


@dataclass(frozen=True)
class DashboardSummary:
    """Aggregate counters shown on administrative pages."""

    total_bookings: int = 0
    accepted_bookings: int = 0
    declined_bookings: int = 0
    pending_bookings: int = 0
    total_guests: int = 0
    total_revenue: int = 0


__all__ = [
    "Booking",
    "BookingStatus",
    "DashboardSummary",
    "DEFAULT_PROFILE_IMAGE",
    "DEFAULT_SALES_CATEGORY",
    "MAX_GUESTS",
    "MIN_GUESTS",
    "Notification",
    "ROOM_LABELS",
    "ROOM_RATES",
    "RoomType",
    "User",
]
