"""SQLite-backed persistence for users, bookings and notifications."""
from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Dict, Iterator, List, Optional

from .errors import (
    BadPasswordError,
    DuplicateEmailError,
    NotFoundError,
    PersistenceError,
    StaleBookingError,
    UserNotFoundError,
    ValidationError,
)
from .models import Booking, BookingStatus, Notification, RoomType, User
from .security import dummy_verify, hash_password, verify_password


def _ensure_directory(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def resolve_database_path(env_value: Optional[str]) -> Path:
    """Resolve the on-disk path for the application database."""

    if env_value:
        return Path(env_value).expanduser().resolve(strict=False)
    base_dir = Path(__file__).resolve().parent.parent / "data"
    return (base_dir / "resort.sqlite3").resolve(strict=False)


def _current_timestamp() -> datetime:
    return datetime.now(timezone.utc)


def _serialize_datetime(value: datetime) -> str:
    return value.isoformat()


def _parse_datetime(value: str) -> datetime:
    return datetime.fromisoformat(value)


def _normalize_email(email: str) -> str:
    return email.strip().lower()


def _clean_optional(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    cleaned = value.strip()
    return cleaned or None


class Database:
    """Simple wrapper around SQLite for persisting accounts and reservations."""

    def __init__(self, path: Path) -> None:
        _ensure_directory(path)
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    @contextmanager
    def _session(self) -> Iterator[sqlite3.Connection]:
        try:
            conn = self._connect()
        except sqlite3.Error as exc:
            raise PersistenceError(f"Could not open database at {self._path}") from exc
        try:
            with conn:
                yield conn
        except sqlite3.IntegrityError:
            raise
        except sqlite3.DatabaseError as exc:
            raise PersistenceError(str(exc)) from exc
        finally:
            conn.close()

    def initialize(self) -> None:
        """Create the required tables if they do not already exist."""

        with self._session() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS users (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    fullname TEXT NOT NULL,
                    username TEXT,
                    email TEXT NOT NULL UNIQUE,
                    password_hash TEXT NOT NULL,
                    phone TEXT,
                    profile_image TEXT,
                    role TEXT NOT NULL DEFAULT 'user',
                    created_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS bookings (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
                    name TEXT NOT NULL DEFAULT '',
                    room TEXT NOT NULL,
                    price_per_night INTEGER NOT NULL DEFAULT 0,
                    total_price INTEGER NOT NULL DEFAULT 0,
                    sales_category TEXT NOT NULL DEFAULT 'accommodation',
                    checkin TEXT NOT NULL,
                    checkout TEXT NOT NULL,
                    guests INTEGER NOT NULL,
                    contact TEXT,
                    special_requests TEXT,
                    status TEXT NOT NULL DEFAULT 'pending',
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS notifications (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
                    message TEXT NOT NULL,
                    type TEXT NOT NULL DEFAULT 'booking',
                    created_at TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_users_username ON users(username);
                CREATE INDEX IF NOT EXISTS idx_bookings_user_id ON bookings(user_id);
                CREATE INDEX IF NOT EXISTS idx_bookings_status ON bookings(status);
                CREATE INDEX IF NOT EXISTS idx_notifications_user_id ON notifications(user_id);
                """
            )

    # ------------------------------------------------------------------
    # User management
    # ------------------------------------------------------------------
    def create_user(
        self,
        fullname: str,
        email: str,
        password: str,
        *,
        username: Optional[str] = None,
        phone: Optional[str] = None,
    ) -> User:
        """Register a new account. Emails are stored lowercase and must be unique."""

        errors: List[str] = []
        cleaned_name = (fullname or "").strip()
        normalized_email = _normalize_email(email or "")
        if not cleaned_name:
            errors.append("Full name must not be empty.")
        if not normalized_email or "@" not in normalized_email:
            errors.append("A valid email address is required.")
        if not password:
            errors.append("Password must not be empty.")
        if errors:
            raise ValidationError(errors)

        created_at = _current_timestamp()
        password_hash = hash_password(password)

        with self._session() as conn:
            try:
                cursor = conn.execute(
                    """
                    INSERT INTO users (
                        fullname, username, email, password_hash, phone, profile_image, role, created_at
                    )
                    VALUES (?, ?, ?, ?, ?, NULL, 'user', ?)
                    """,
                    (
                        cleaned_name,
                        _clean_optional(username),
                        normalized_email,
                        password_hash,
                        _clean_optional(phone),
                        _serialize_datetime(created_at),
                    ),
                )
            except sqlite3.IntegrityError as exc:
                raise DuplicateEmailError(normalized_email) from exc
            user_id = cursor.lastrowid

        user = self.get_user(user_id)
        if user is None:
            raise PersistenceError("Failed to load user after creation")
        return user

    def get_user(self, user_id: int) -> Optional[User]:
        with self._session() as conn:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        if row is None:
            return None
        return self._row_to_user(row)

    def get_user_by_email(self, email: str) -> Optional[User]:
        with self._session() as conn:
            row = conn.execute(
                "SELECT * FROM users WHERE email = ?",
                (_normalize_email(email),),
            ).fetchone()
        if row is None:
            return None
        return self._row_to_user(row)

    def list_users(self) -> List[User]:
        with self._session() as conn:
            rows = conn.execute("SELECT * FROM users ORDER BY created_at DESC, id DESC").fetchall()
        return [self._row_to_user(row) for row in rows]

    def authenticate_user(self, identifier: str, password: str) -> User:
        """Return the account matching ``identifier`` (email or username) and ``password``.

        Raises :class:`UserNotFoundError` or :class:`BadPasswordError`. Callers
        showing the result to a visitor should not tell the two apart.
        """

        cleaned = (identifier or "").strip()
        if not cleaned:
            dummy_verify()
            raise UserNotFoundError("No identifier supplied")

        with self._session() as conn:
            row = conn.execute(
                "SELECT * FROM users WHERE email = ? OR username = ? ORDER BY id LIMIT 1",
                (cleaned.lower(), cleaned),
            ).fetchone()
        if row is None:
            dummy_verify()
            raise UserNotFoundError(f"No account for {cleaned!r}")
        if not verify_password(password, row["password_hash"]):
            raise BadPasswordError(f"Password mismatch for user {row['id']}")
        return self._row_to_user(row)

    def verify_user_password(self, user_id: int, password: str) -> bool:
        """Return ``True`` if the supplied password matches the stored hash."""

        with self._session() as conn:
            row = conn.execute(
                "SELECT password_hash FROM users WHERE id = ?",
                (user_id,),
            ).fetchone()

        if row is None:
            return False
        return verify_password(password, row["password_hash"])

    def update_user_profile(
        self,
        user_id: int,
        *,
        fullname: Optional[str] = None,
        phone: Optional[str] = None,
        profile_image: Optional[str] = None,
    ) -> User:
        """Apply the supplied, non-blank profile fields. The password hash is untouched."""

        fields: Dict[str, str] = {}
        for column, value in (
            ("fullname", fullname),
            ("phone", phone),
            ("profile_image", profile_image),
        ):
            cleaned = _clean_optional(value)
            if cleaned is not None:
                fields[column] = cleaned

        if fields:
            assignments = ", ".join(f"{column} = ?" for column in fields)
            with self._session() as conn:
                cursor = conn.execute(
                    f"UPDATE users SET {assignments} WHERE id = ?",
                    (*fields.values(), user_id),
                )
                if cursor.rowcount == 0:
                    raise NotFoundError(f"User {user_id} not found")

        refreshed = self.get_user(user_id)
        if refreshed is None:
            raise NotFoundError(f"User {user_id} not found")
        return refreshed

    def set_user_password(self, user_id: int, password: str) -> None:
        if not password:
            raise ValidationError("Password must not be empty.")
        password_hash = hash_password(password)
        with self._session() as conn:
            cursor = conn.execute(
                "UPDATE users SET password_hash = ? WHERE id = ?",
                (password_hash, user_id),
            )
            if cursor.rowcount == 0:
                raise NotFoundError(f"User {user_id} not found")

    # ------------------------------------------------------------------
    # Booking records
    # ------------------------------------------------------------------
    def insert_booking(self, booking: Booking) -> Booking:
        now = _current_timestamp()
        with self._session() as conn:
            try:
                cursor = conn.execute(
                    """
                    INSERT INTO bookings (
                        user_id, name, room, price_per_night, total_price, sales_category,
                        checkin, checkout, guests, contact, special_requests, status,
                        created_at, updated_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        booking.user_id,
                        booking.name,
                        booking.room.value,
                        booking.price_per_night,
                        booking.total_price,
                        booking.sales_category,
                        booking.checkin.isoformat(),
                        booking.checkout.isoformat(),
                        booking.guests,
                        booking.contact,
                        booking.special_requests,
                        booking.status.value,
                        _serialize_datetime(now),
                        _serialize_datetime(now),
                    ),
                )
            except sqlite3.IntegrityError as exc:
                raise NotFoundError(f"User {booking.user_id} not found") from exc
            booking_id = cursor.lastrowid

        stored = self.get_booking(booking_id)
        if stored is None:
            raise PersistenceError("Failed to load booking after creation")
        return stored

    def update_booking(self, booking: Booking, *, expected_status: Optional[BookingStatus] = None) -> Booking:
        """Write every column of ``booking`` in a single statement.

        With ``expected_status`` the row is only written while it still holds
        that status; otherwise :class:`StaleBookingError` is raised.
        """

        if booking.id is None:
            raise ValueError("Cannot update a booking without an id")
        query = """
            UPDATE bookings
               SET name = ?, room = ?, price_per_night = ?, total_price = ?, sales_category = ?,
                   checkin = ?, checkout = ?, guests = ?, contact = ?, special_requests = ?,
                   status = ?, updated_at = ?
             WHERE id = ?
        """
        params: list = [
            booking.name,
            booking.room.value,
            booking.price_per_night,
            booking.total_price,
            booking.sales_category,
            booking.checkin.isoformat(),
            booking.checkout.isoformat(),
            booking.guests,
            booking.contact,
            booking.special_requests,
            booking.status.value,
            _serialize_datetime(_current_timestamp()),
            booking.id,
        ]
        if expected_status is not None:
            query += " AND status = ?"
            params.append(expected_status.value)

        with self._session() as conn:
            cursor = conn.execute(query, params)
            if cursor.rowcount == 0:
                exists = conn.execute("SELECT 1 FROM bookings WHERE id = ?", (booking.id,)).fetchone()
                if exists is None:
                    raise NotFoundError(f"Booking {booking.id} not found")
                raise StaleBookingError(f"Booking {booking.id} is no longer {expected_status.value}")

        refreshed = self.get_booking(booking.id)
        if refreshed is None:
            raise NotFoundError(f"Booking {booking.id} not found")
        return refreshed

    def get_booking(self, booking_id: int) -> Optional[Booking]:
        with self._session() as conn:
            row = conn.execute("SELECT * FROM bookings WHERE id = ?", (booking_id,)).fetchone()
        if row is None:
            return None
        return self._row_to_booking(row)

    def delete_booking(self, booking_id: int) -> bool:
        with self._session() as conn:
            cursor = conn.execute("DELETE FROM bookings WHERE id = ?", (booking_id,))
            return cursor.rowcount > 0

    def list_bookings_for_user(self, user_id: int) -> List[Booking]:
        with self._session() as conn:
            rows = conn.execute(
                "SELECT * FROM bookings WHERE user_id = ? ORDER BY created_at DESC, id DESC",
                (user_id,),
            ).fetchall()
        return [self._row_to_booking(row) for row in rows]

    def list_bookings(self) -> List[Booking]:
        with self._session() as conn:
            rows = conn.execute("SELECT * FROM bookings ORDER BY created_at DESC, id DESC").fetchall()
        return [self._row_to_booking(row) for row in rows]

    def count_bookings(self, status: Optional[BookingStatus] = None) -> int:
        with self._session() as conn:
            if status is None:
                row = conn.execute("SELECT COUNT(*) AS total FROM bookings").fetchone()
            else:
                row = conn.execute(
                    "SELECT COUNT(*) AS total FROM bookings WHERE status = ?",
                    (status.value,),
                ).fetchone()
        return int(row["total"])

    def count_bookings_by_status(self) -> Dict[BookingStatus, int]:
        counts = {status: 0 for status in BookingStatus}
        with self._session() as conn:
            rows = conn.execute("SELECT status, COUNT(*) AS total FROM bookings GROUP BY status").fetchall()
        for row in rows:
            try:
                counts[BookingStatus(row["status"])] = int(row["total"])
            except ValueError:
                continue
        return counts

    def sum_guests(self) -> int:
        with self._session() as conn:
            row = conn.execute("SELECT COALESCE(SUM(guests), 0) AS total FROM bookings").fetchone()
        return int(row["total"])

    def sum_total_price(self, status: BookingStatus) -> int:
        with self._session() as conn:
            row = conn.execute(
                "SELECT COALESCE(SUM(total_price), 0) AS total FROM bookings WHERE status = ?",
                (status.value,),
            ).fetchone()
        return int(row["total"])

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------
    def insert_notification(self, user_id: int, message: str, type_: str) -> Notification:
        created_at = _current_timestamp()
        with self._session() as conn:
            try:
                cursor = conn.execute(
                    "INSERT INTO notifications (user_id, message, type, created_at) VALUES (?, ?, ?, ?)",
                    (user_id, message, type_, _serialize_datetime(created_at)),
                )
            except sqlite3.IntegrityError as exc:
                raise NotFoundError(f"User {user_id} not found") from exc
            notification_id = cursor.lastrowid
        return Notification(
            id=int(notification_id),
            user_id=user_id,
            message=message,
            type=type_,
            created_at=created_at,
        )

    def list_notifications_for_user(self, user_id: int, *, limit: Optional[int] = None) -> List[Notification]:
        query = "SELECT * FROM notifications WHERE user_id = ? ORDER BY created_at DESC, id DESC"
        params: tuple = (user_id,)
        if limit is not None:
            query += " LIMIT ?"
            params = (user_id, int(limit))
        with self._session() as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._row_to_notification(row) for row in rows]

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _row_to_user(self, row: sqlite3.Row) -> User:
        kwargs = {}
        if row["profile_image"]:
            kwargs["profile_image"] = str(row["profile_image"])
        return User(
            id=int(row["id"]),
            fullname=str(row["fullname"]),
            email=str(row["email"]),
            username=row["username"],
            phone=row["phone"],
            role=str(row["role"]),
            created_at=_parse_datetime(str(row["created_at"])),
            **kwargs,
        )

    def _row_to_booking(self, row: sqlite3.Row) -> Booking:
        return Booking(
            id=int(row["id"]),
            user_id=int(row["user_id"]),
            name=str(row["name"]),
            room=RoomType(row["room"]),
            price_per_night=int(row["price_per_night"]),
            total_price=int(row["total_price"]),
            sales_category=str(row["sales_category"]),
            checkin=date.fromisoformat(str(row["checkin"])),
            checkout=date.fromisoformat(str(row["checkout"])),
            guests=int(row["guests"]),
            contact=row["contact"],
            special_requests=row["special_requests"],
            status=BookingStatus(row["status"]),
            created_at=_parse_datetime(str(row["created_at"])),
            updated_at=_parse_datetime(str(row["updated_at"])),
        )

    def _row_to_notification(self, row: sqlite3.Row) -> Notification:
        return Notification(
            id=int(row["id"]),
            user_id=int(row["user_id"]),
            message=str(row["message"]),
            type=str(row["type"]),
            created_at=_parse_datetime(str(row["created_at"])),
        )


__all__ = ["Database", "resolve_database_path"]
