from __future__ import annotations

import dataclasses
from datetime import date, timedelta
from pathlib import Path
from unittest import mock

import pytest

from resort.database import Database
from resort.errors import InvalidTransition, NotFoundError, ValidationError
from resort.ledger import BookingLedger, prepare_for_persistence
from resort.models import Booking, BookingStatus, RoomType
from resort.notifications import NotificationOutbox


TODAY = date(2030, 6, 1)


@pytest.fixture()
def database(tmp_path: Path) -> Database:
    db = Database(tmp_path / "resort.sqlite3")
    db.initialize()
    return db


@pytest.fixture()
def outbox(database: Database) -> NotificationOutbox:
    return NotificationOutbox(database)


@pytest.fixture()
def ledger(database: Database, outbox: NotificationOutbox) -> BookingLedger:
    return BookingLedger(database, outbox, today=lambda: TODAY)


@pytest.fixture()
def guest(database: Database):
    return database.create_user("Maria Santos", "maria@example.com", "correct-horse-battery")


def _submit(ledger: BookingLedger, user_id: int, **overrides) -> Booking:
    values = {
        "room": "native-cottage",
        "checkin": TODAY + timedelta(days=1),
        "checkout": TODAY + timedelta(days=3),
        "guests": 2,
    }
    values.update(overrides)
    return ledger.submit(user_id, **values)


def test_submit_derives_price_and_notifies_owner(ledger, outbox, guest) -> None:
    booking = _submit(ledger, guest.id)

    assert booking.nights == 2
    assert booking.price_per_night == 1500
    assert booking.total_price == 3000
    assert booking.status is BookingStatus.PENDING
    assert booking.name == "Maria Santos"
    assert booking.sales_category == "accommodation"

    notifications = outbox.list_for_user(guest.id)
    assert [item.message for item in notifications] == [
        "Your booking request for Native Cottage has been submitted and is pending approval."
    ]


@pytest.mark.parametrize(
    "overrides, message",
    [
        ({"checkin": TODAY - timedelta(days=1)}, "Check-in date cannot be in the past."),
        (
            {"checkin": TODAY + timedelta(days=3), "checkout": TODAY + timedelta(days=3)},
            "Check-out date must be after check-in date.",
        ),
        ({"guests": 0}, "At least one guest is required."),
        ({"guests": 21}, "Maximum 20 guests allowed."),
        ({"room": "penthouse"}, "Please choose one of the listed room types."),
    ],
)
def test_invalid_submissions_persist_nothing(ledger, database, outbox, guest, overrides, message) -> None:
    with pytest.raises(ValidationError) as excinfo:
        _submit(ledger, guest.id, **overrides)

    assert message in excinfo.value.messages
    assert database.count_bookings() == 0
    assert outbox.list_for_user(guest.id) == []


def test_checkin_today_is_allowed(ledger, guest) -> None:
    booking = _submit(ledger, guest.id, checkin=TODAY, checkout=TODAY + timedelta(days=1))
    assert booking.nights == 1


def test_submit_for_unknown_user(ledger, database) -> None:
    with pytest.raises(NotFoundError):
        _submit(ledger, 404)
    assert database.count_bookings() == 0


def test_accept_and_decline_each_notify_once(ledger, outbox, guest) -> None:
    first = _submit(ledger, guest.id)
    second = _submit(ledger, guest.id, room=RoomType.PREMIUM_ROOM)

    accepted = ledger.accept(first.id)
    declined = ledger.decline(second.id)

    assert accepted.status is BookingStatus.ACCEPTED
    assert accepted.total_price == 3000
    assert declined.status is BookingStatus.DECLINED
    messages = [item.message for item in outbox.list_for_user(guest.id)]
    assert messages.count("Your booking for Native Cottage has been accepted!") == 1
    assert messages.count("Your booking for Premium Room has been declined.") == 1
    assert len(messages) == 4


def test_accept_missing_booking_sends_nothing(ledger, outbox, guest) -> None:
    with pytest.raises(NotFoundError):
        ledger.accept(999)
    assert outbox.list_for_user(guest.id) == []


def test_repeated_accept_is_idempotent(ledger, outbox, guest) -> None:
    booking = _submit(ledger, guest.id)
    ledger.accept(booking.id)
    again = ledger.accept(booking.id)

    assert again.status is BookingStatus.ACCEPTED
    assert len(outbox.list_for_user(guest.id)) == 2


def test_decided_booking_cannot_flip(ledger, guest) -> None:
    booking = _submit(ledger, guest.id)
    ledger.accept(booking.id)

    with pytest.raises(InvalidTransition):
        ledger.decline(booking.id)
    assert ledger.get(booking.id).status is BookingStatus.ACCEPTED


def _stale_get(ledger: BookingLedger, snapshot: Booking):
    """Serve ``snapshot`` on the first read, then the stored row."""

    real_get = ledger.get
    calls = iter([snapshot])
    return lambda booking_id: next(calls, None) or real_get(booking_id)


def test_concurrent_accept_notifies_once(ledger, outbox, guest) -> None:
    booking = _submit(ledger, guest.id)
    ledger.accept(booking.id)

    with mock.patch.object(ledger, "get", side_effect=_stale_get(ledger, booking)):
        again = ledger.accept(booking.id)

    assert again.status is BookingStatus.ACCEPTED
    messages = [item.message for item in outbox.list_for_user(guest.id)]
    assert messages.count("Your booking for Native Cottage has been accepted!") == 1


def test_concurrent_decline_cannot_override_accept(ledger, outbox, guest) -> None:
    booking = _submit(ledger, guest.id)
    ledger.accept(booking.id)

    with mock.patch.object(ledger, "get", side_effect=_stale_get(ledger, booking)):
        with pytest.raises(InvalidTransition):
            ledger.decline(booking.id)

    assert ledger.get(booking.id).status is BookingStatus.ACCEPTED
    messages = [item.message for item in outbox.list_for_user(guest.id)]
    assert "Your booking for Native Cottage has been declined." not in messages


def test_listings_are_newest_first(ledger, database, guest) -> None:
    other = database.create_user("Juan Cruz", "juan@example.com", "another-password")
    first = _submit(ledger, guest.id)
    second = _submit(ledger, other.id, room=RoomType.TENT_SITE)
    third = _submit(ledger, guest.id, room=RoomType.PREMIUM_ROOM)

    assert [item.id for item in ledger.list_for_user(guest.id)] == [third.id, first.id]
    assert [item.id for item in ledger.list_all()] == [third.id, second.id, first.id]


def test_owner_can_cancel(ledger, outbox, guest) -> None:
    booking = _submit(ledger, guest.id)

    ledger.cancel(booking.id, requester_user_id=guest.id)

    with pytest.raises(NotFoundError):
        ledger.get(booking.id)
    assert outbox.list_for_user(guest.id)[0].message == "Your booking for Native Cottage has been cancelled."


def test_other_user_cannot_cancel(ledger, database, guest) -> None:
    booking = _submit(ledger, guest.id)
    intruder = database.create_user("Other", "other@example.com", "another-password")

    with pytest.raises(PermissionError):
        ledger.cancel(booking.id, requester_user_id=intruder.id)
    assert ledger.get(booking.id).id == booking.id


def test_admin_cancel_and_missing_booking(ledger, guest) -> None:
    booking = _submit(ledger, guest.id)

    ledger.cancel(booking.id)

    assert ledger.list_for_user(guest.id) == []
    with pytest.raises(NotFoundError):
        ledger.cancel(booking.id)


def test_save_recomputes_derived_fields(ledger, guest) -> None:
    booking = _submit(ledger, guest.id)
    tampered = dataclasses.replace(
        booking,
        room=RoomType.TENT_SITE,
        checkout=booking.checkin + timedelta(days=4),
        price_per_night=1,
        total_price=1,
    )

    saved = ledger.save(tampered)

    assert saved.price_per_night == 500
    assert saved.total_price == 2000


def test_prepare_for_persistence_fills_defaults() -> None:
    booking = Booking(
        user_id=1,
        room=RoomType.BASIC_COTTAGE,
        checkin=date(2030, 1, 1),
        checkout=date(2030, 1, 2),
        guests=3,
        sales_category="",
    )

    prepared = prepare_for_persistence(booking)

    assert prepared.name == "Guest"
    assert prepared.price_per_night == 1200
    assert prepared.total_price == 1200
    assert prepared.sales_category == "accommodation"
    assert prepared.status is BookingStatus.PENDING
