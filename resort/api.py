"""JSON endpoints polled by the guest profile page."""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Dict, List, Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .database import Database
from .errors import NotFoundError, PersistenceError
from .ledger import BookingLedger
from .models import Booking, Notification
from .notifications import NotificationOutbox
from .web import WebContext

logger = logging.getLogger("resort.api")


class BookingView(BaseModel):
    id: int
    user_id: int
    name: str
    room: str
    room_label: str
    price_per_night: int
    total_price: int
    sales_category: str
    checkin: date
    checkout: date
    nights: int
    guests: int
    contact: Optional[str] = None
    special_requests: Optional[str] = None
    status: str
    created_at: datetime
    updated_at: datetime


class NotificationView(BaseModel):
    id: int
    message: str
    type: str
    created_at: datetime


class UserUpdatesResponse(BaseModel):
    success: bool = True
    bookings: List[BookingView] = Field(default_factory=list)
    notifications: List[NotificationView] = Field(default_factory=list)


class CancelResponse(BaseModel):
    success: bool
    message: str


def booking_to_view(booking: Booking) -> BookingView:
    return BookingView(
        id=booking.id,
        user_id=booking.user_id,
        name=booking.name,
        room=booking.room.value,
        room_label=booking.room_label,
        price_per_night=booking.price_per_night,
        total_price=booking.total_price,
        sales_category=booking.sales_category,
        checkin=booking.checkin,
        checkout=booking.checkout,
        nights=booking.nights,
        guests=booking.guests,
        contact=booking.contact,
        special_requests=booking.special_requests,
        status=booking.status.value,
        created_at=booking.created_at,
        updated_at=booking.updated_at,
    )


def notification_to_view(notification: Notification) -> NotificationView:
    return NotificationView(
        id=notification.id,
        message=notification.message,
        type=notification.type,
        created_at=notification.created_at,
    )


def _json_error(status_code: int, error: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": error})


def register_api_routes(
    app: FastAPI,
    database: Database,
    ledger: BookingLedger,
    outbox: NotificationOutbox,
    *,
    ui: WebContext,
) -> None:
    """Expose the polling and cancellation endpoints on ``app``."""

    @app.get("/healthz")
    async def healthcheck() -> Dict[str, str]:
        return {"status": "ok"}

    @app.get("/user/updates", response_model=UserUpdatesResponse)
    async def user_updates(request: Request):
        try:
            user, _, _ = ui.load_user(request, database)
            if user is None:
                return _json_error(status.HTTP_401_UNAUTHORIZED, "Authentication required.")
            bookings = ledger.list_for_user(user.id)
            notifications = outbox.list_for_user(user.id)
        except PersistenceError:
            logger.exception("Polling failed")
            return _json_error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to load updates.")

        return UserUpdatesResponse(
            bookings=[booking_to_view(booking) for booking in bookings],
            notifications=[notification_to_view(item) for item in notifications],
        )

    @app.post("/booking/cancel/{booking_id}", response_model=CancelResponse)
    async def cancel_booking(request: Request, booking_id: int):
        try:
            user, _, _ = ui.load_user(request, database)
            if user is None:
                return JSONResponse(
                    status_code=status.HTTP_401_UNAUTHORIZED,
                    content={"success": False, "message": "Authentication required."},
                )
            ledger.cancel(booking_id, requester_user_id=user.id)
        except (NotFoundError, PermissionError):
            return JSONResponse(
                status_code=status.HTTP_404_NOT_FOUND,
                content={"success": False, "message": "Booking not found"},
            )
        except PersistenceError:
            logger.exception("Failed to cancel booking %s", booking_id)
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={"success": False, "message": "Failed to cancel booking."},
            )

        return CancelResponse(success=True, message="Booking cancelled successfully.")


__all__ = [
    "BookingView",
    "CancelResponse",
    "NotificationView",
    "UserUpdatesResponse",
    "booking_to_view",
    "register_api_routes",
]
