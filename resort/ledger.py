"""Booking lifecycle: validation, derived pricing and status transitions."""

from __future__ import annotations

import dataclasses
import logging
from datetime import date
from typing import Callable, List, Optional

from .database import Database
from .errors import (
    InvalidTransition,
    NotFoundError,
    PersistenceError,
    StaleBookingError,
    ValidationError,
)
from .models import (
    DEFAULT_SALES_CATEGORY,
    MAX_GUESTS,
    MIN_GUESTS,
    ROOM_RATES,
    Booking,
    BookingStatus,
    RoomType,
    User,
)
from .notifications import BOOKING_NOTIFICATION, NotificationOutbox


logger = logging.getLogger("resort.ledger")

DEFAULT_GUEST_NAME = "Guest"


def parse_room(value: object) -> RoomType:
    if isinstance(value, RoomType):
        return value
    try:
        return RoomType(str(value or "").strip())
    except ValueError as exc:
        raise ValidationError("Please choose one of the listed room types.") from exc


def validate_booking(booking: Booking, *, today: date) -> None:
    """Raise :class:`ValidationError` listing every rule ``booking`` breaks."""

    errors: List[str] = []
    if booking.checkin < today:
        errors.append("Check-in date cannot be in the past.")
    if booking.checkout <= booking.checkin:
        errors.append("Check-out date must be after check-in date.")
    if booking.guests < MIN_GUESTS:
        errors.append("At least one guest is required.")
    elif booking.guests > MAX_GUESTS:
        errors.append(f"Maximum {MAX_GUESTS} guests allowed.")
    if errors:
        raise ValidationError(errors)


def owner_display_name(owner: Optional[User]) -> str:
    if owner is None:
        return DEFAULT_GUEST_NAME
    return owner.fullname or owner.username or DEFAULT_GUEST_NAME


def prepare_for_persistence(booking: Booking, *, owner_name: str = DEFAULT_GUEST_NAME) -> Booking:
    """Return ``booking`` with every derived field and default applied.

    Runs before each write: prices come from the rate table and the night
    count, never from the caller.
    """

    price_per_night = ROOM_RATES.get(booking.room, 0)
    return dataclasses.replace(
        booking,
        name=(booking.name or "").strip() or owner_name,
        price_per_night=price_per_night,
        total_price=price_per_night * booking.nights,
        status=booking.status or BookingStatus.PENDING,
        sales_category=booking.sales_category or DEFAULT_SALES_CATEGORY,
    )


class BookingLedger:
    """Persisted bookings and the transitions allowed on them."""

    def __init__(
        self,
        database: Database,
        outbox: NotificationOutbox,
        *,
        today: Callable[[], date] = date.today,
    ) -> None:
        self._database = database
        self._outbox = outbox
        self._today = today

    def submit(
        self,
        user_id: int,
        room: RoomType | str,
        checkin: date,
        checkout: date,
        guests: int,
        *,
        contact: Optional[str] = None,
        special_requests: Optional[str] = None,
        name: Optional[str] = None,
    ) -> Booking:
        owner = self._database.get_user(user_id)
        if owner is None:
            raise NotFoundError(f"User {user_id} not found")

        booking = Booking(
            user_id=user_id,
            room=parse_room(room),
            checkin=checkin,
            checkout=checkout,
            guests=int(guests),
            name=(name or "").strip(),
            contact=(contact or "").strip() or None,
            special_requests=(special_requests or "").strip() or None,
            status=BookingStatus.PENDING,
        )
        validate_booking(booking, today=self._today())

        stored = self._database.insert_booking(
            prepare_for_persistence(booking, owner_name=owner_display_name(owner))
        )
        logger.info(
            "Booking %s submitted by user %s for %s (%s nights)",
            stored.id,
            user_id,
            stored.room.value,
            stored.nights,
        )
        self._notify(
            stored,
            f"Your booking request for {stored.room_label} has been submitted and is pending approval.",
        )
        return stored

    def accept(self, booking_id: int) -> Booking:
        return self._transition(
            booking_id,
            BookingStatus.ACCEPTED,
            "Your booking for {room} has been accepted!",
        )

    def decline(self, booking_id: int) -> Booking:
        return self._transition(
            booking_id,
            BookingStatus.DECLINED,
            "Your booking for {room} has been declined.",
        )

    def cancel(self, booking_id: int, requester_user_id: Optional[int] = None) -> None:
        """Delete a booking. ``requester_user_id=None`` means the administrator."""

        booking = self.get(booking_id)
        if requester_user_id is not None and booking.user_id != requester_user_id:
            raise PermissionError(f"User {requester_user_id} does not own booking {booking_id}")

        if not self._database.delete_booking(booking_id):
            raise NotFoundError(f"Booking {booking_id} not found")
        logger.info(
            "Booking %s cancelled by %s",
            booking_id,
            "administrator" if requester_user_id is None else f"user {requester_user_id}",
        )
        self._notify(booking, f"Your booking for {booking.room_label} has been cancelled.")

    def get(self, booking_id: int) -> Booking:
        booking = self._database.get_booking(booking_id)
        if booking is None:
            raise NotFoundError(f"Booking {booking_id} not found")
        return booking

    def list_for_user(self, user_id: int) -> List[Booking]:
        return self._database.list_bookings_for_user(user_id)

    def list_all(self) -> List[Booking]:
        return self._database.list_bookings()

    def save(self, booking: Booking, *, expected_status: Optional[BookingStatus] = None) -> Booking:
        """Persist changes to an existing booking, recomputing derived fields."""

        owner = self._database.get_user(booking.user_id)
        return self._database.update_booking(
            prepare_for_persistence(booking, owner_name=owner_display_name(owner)),
            expected_status=expected_status,
        )

    def _transition(self, booking_id: int, target: BookingStatus, message: str) -> Booking:
        booking = self.get(booking_id)
        if booking.status is not BookingStatus.PENDING:
            return self._settled(booking, target)

        try:
            updated = self.save(
                dataclasses.replace(booking, status=target),
                expected_status=BookingStatus.PENDING,
            )
        except StaleBookingError:
            # Another request decided the booking between our read and write.
            return self._settled(self.get(booking_id), target)

        logger.info("Booking %s %s", booking_id, target.value)
        self._notify(updated, message.format(room=updated.room_label))
        return updated

    def _settled(self, booking: Booking, target: BookingStatus) -> Booking:
        if booking.status is target:
            return booking
        raise InvalidTransition(
            f"Booking is already {booking.status.value} and cannot be {target.value}."
        )

    def _notify(self, booking: Booking, message: str) -> None:
        try:
            self._outbox.post(booking.user_id, message, BOOKING_NOTIFICATION)
        except (PersistenceError, NotFoundError):
            logger.exception("Failed to record notification for booking %s", booking.id)


__all__ = [
    "BookingLedger",
    "owner_display_name",
    "parse_room",
    "prepare_for_persistence",
    "validate_booking",
]
