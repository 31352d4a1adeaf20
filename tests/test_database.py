from __future__ import annotations

import dataclasses
from datetime import date
from pathlib import Path
from unittest import mock

import pytest

from resort.database import Database
from resort.errors import (
    BadPasswordError,
    DuplicateEmailError,
    NotFoundError,
    StaleBookingError,
    UserNotFoundError,
    ValidationError,
)
from resort.models import DEFAULT_PROFILE_IMAGE, Booking, BookingStatus, RoomType


PASSWORD = "correct-horse-battery"


@pytest.fixture()
def database(tmp_path: Path) -> Database:
    db_path = tmp_path / "resort.sqlite3"
    db = Database(db_path)
    db.initialize()
    return db


def test_register_normalises_email_and_hides_password(database: Database) -> None:
    user = database.create_user("  Maria Santos ", "Maria@Example.COM", PASSWORD)

    assert user.fullname == "Maria Santos"
    assert user.email == "maria@example.com"
    assert user.profile_image == DEFAULT_PROFILE_IMAGE
    assert not hasattr(user, "password_hash")
    assert database.get_user_by_email("MARIA@example.com") == user


def test_register_rejects_duplicate_email_case_insensitively(database: Database) -> None:
    database.create_user("First", "guest@example.com", PASSWORD)

    with pytest.raises(DuplicateEmailError) as excinfo:
        database.create_user("Second", "GUEST@example.com", PASSWORD)

    assert str(excinfo.value) == "Email already registered. Please login instead."
    assert len(database.list_users()) == 1


def test_register_requires_name_email_and_password(database: Database) -> None:
    with pytest.raises(ValidationError) as excinfo:
        database.create_user(" ", "not-an-email", "")

    assert len(excinfo.value.messages) == 3
    assert database.list_users() == []


def test_authenticate_by_email_or_username(database: Database) -> None:
    user = database.create_user("Juan Cruz", "juan@example.com", PASSWORD, username="juanc")

    assert database.authenticate_user("JUAN@example.com", PASSWORD).id == user.id
    assert database.authenticate_user("juanc", PASSWORD).id == user.id


def test_authenticate_reports_missing_user_and_bad_password(database: Database) -> None:
    database.create_user("Juan Cruz", "juan@example.com", PASSWORD)

    with pytest.raises(UserNotFoundError):
        database.authenticate_user("nobody@example.com", PASSWORD)
    with pytest.raises(BadPasswordError):
        database.authenticate_user("juan@example.com", "wrong-password")


def test_missing_account_still_spends_a_hash_check(database: Database) -> None:
    database.create_user("Juan Cruz", "juan@example.com", PASSWORD)

    with mock.patch("resort.database.dummy_verify") as dummy:
        with pytest.raises(UserNotFoundError):
            database.authenticate_user("nobody@example.com", PASSWORD)
        with pytest.raises(UserNotFoundError):
            database.authenticate_user("   ", PASSWORD)
        assert dummy.call_count == 2

        with pytest.raises(BadPasswordError):
            database.authenticate_user("juan@example.com", "wrong-password")
        assert dummy.call_count == 2


def test_profile_update_leaves_password_untouched(database: Database) -> None:
    user = database.create_user("Ana Reyes", "ana@example.com", PASSWORD)

    updated = database.update_user_profile(user.id, fullname="Ana R. Reyes", phone=" 0917 000 0000 ", profile_image="")

    assert updated.fullname == "Ana R. Reyes"
    assert updated.phone == "0917 000 0000"
    assert updated.profile_image == DEFAULT_PROFILE_IMAGE
    assert database.verify_user_password(user.id, PASSWORD)


def test_profile_update_for_missing_user(database: Database) -> None:
    with pytest.raises(NotFoundError):
        database.update_user_profile(404, fullname="Ghost")


def test_set_password_replaces_hash(database: Database) -> None:
    user = database.create_user("Ana Reyes", "ana@example.com", PASSWORD)

    database.set_user_password(user.id, "a-brand-new-secret")

    assert database.verify_user_password(user.id, "a-brand-new-secret")
    assert not database.verify_user_password(user.id, PASSWORD)


def test_booking_rows_round_trip_and_count(database: Database) -> None:
    user = database.create_user("Ana Reyes", "ana@example.com", PASSWORD)
    stored = database.insert_booking(
        Booking(
            user_id=user.id,
            room=RoomType.TENT_SITE,
            checkin=date(2030, 1, 1),
            checkout=date(2030, 1, 4),
            guests=2,
            name="Ana Reyes",
            price_per_night=500,
            total_price=1500,
        )
    )

    assert stored.id is not None
    assert stored.status is BookingStatus.PENDING
    assert stored.created_at is not None
    assert database.count_bookings() == 1
    assert database.count_bookings(BookingStatus.ACCEPTED) == 0
    assert database.count_bookings_by_status()[BookingStatus.PENDING] == 1
    assert database.sum_guests() == 2
    assert database.list_bookings_for_user(user.id) == [stored]
    assert database.delete_booking(stored.id) is True
    assert database.delete_booking(stored.id) is False


def test_booking_for_unknown_user_is_rejected(database: Database) -> None:
    with pytest.raises(NotFoundError):
        database.insert_booking(
            Booking(
                user_id=99,
                room=RoomType.OPEN_AREA,
                checkin=date(2030, 1, 1),
                checkout=date(2030, 1, 2),
                guests=1,
            )
        )


def test_notifications_are_listed_newest_first(database: Database) -> None:
    user = database.create_user("Ana Reyes", "ana@example.com", PASSWORD)
    database.insert_notification(user.id, "first", "booking")
    database.insert_notification(user.id, "second", "booking")

    messages = [item.message for item in database.list_notifications_for_user(user.id)]
    assert messages == ["second", "first"]
    assert len(database.list_notifications_for_user(user.id, limit=1)) == 1


def test_conditional_update_rejects_stale_status(database: Database) -> None:
    user = database.create_user("Ana Reyes", "ana@example.com", PASSWORD)
    stored = database.insert_booking(
        Booking(
            user_id=user.id,
            room=RoomType.TENT_SITE,
            checkin=date(2030, 1, 1),
            checkout=date(2030, 1, 2),
            guests=1,
        )
    )
    accepted = database.update_booking(
        dataclasses.replace(stored, status=BookingStatus.ACCEPTED),
        expected_status=BookingStatus.PENDING,
    )
    assert accepted.status is BookingStatus.ACCEPTED

    with pytest.raises(StaleBookingError):
        database.update_booking(
            dataclasses.replace(stored, status=BookingStatus.DECLINED),
            expected_status=BookingStatus.PENDING,
        )
    assert database.get_booking(stored.id).status is BookingStatus.ACCEPTED

    with pytest.raises(NotFoundError):
        database.update_booking(
            dataclasses.replace(stored, id=999, status=BookingStatus.DECLINED),
            expected_status=BookingStatus.PENDING,
        )
