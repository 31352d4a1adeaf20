"""Append-only notification log read by the guest polling endpoint."""

from __future__ import annotations

from typing import List, Optional

from .database import Database
from .models import Notification


BOOKING_NOTIFICATION = "booking"


class NotificationOutbox:
    def __init__(self, database: Database) -> None:
        self._database = database

    def post(self, user_id: int, message: str, type_: str = BOOKING_NOTIFICATION) -> Notification:
        return self._database.insert_notification(user_id, message, type_)

    def list_for_user(self, user_id: int, *, limit: Optional[int] = None) -> List[Notification]:
        """Return the user's notifications, newest first."""

        return self._database.list_notifications_for_user(user_id, limit=limit)


__all__ = ["BOOKING_NOTIFICATION", "NotificationOutbox"]
