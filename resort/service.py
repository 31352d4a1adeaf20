"""Application factory for the resort reservation service."""

from __future__ import annotations

import logging
from datetime import date
from typing import Callable, Optional

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from .admin import register_admin_routes
from .api import register_api_routes
from .config import ResortSettings, load_settings
from .dashboard import DashboardAggregator
from .database import Database
from .ledger import BookingLedger
from .notifications import NotificationOutbox
from .security import AdminGate
from .sessions import SessionManager
from .web import STATIC_DIR, WebContext, register_ui_routes

logger = logging.getLogger("resort.service")


def create_app(
    *,
    settings: Optional[ResortSettings] = None,
    database: Optional[Database] = None,
    session_manager: Optional[SessionManager] = None,
    today: Callable[[], date] = date.today,
) -> FastAPI:
    """Instantiate the FastAPI application serving the resort site."""

    settings = settings or load_settings()
    db = database or Database(settings.database_path)
    db.initialize()

    if not settings.secure_cookies:
        logger.warning(
            "Session cookies are not marked as secure. Only disable secure cookies for"
            " local development."
        )

    sessions = session_manager or SessionManager(ttl=settings.session_ttl)
    outbox = NotificationOutbox(db)
    ledger = BookingLedger(db, outbox, today=today)
    dashboard = DashboardAggregator(db)
    admin_gate = AdminGate(settings.admin_username, settings.admin_password_hash)
    ui = WebContext(sessions, secure_cookies=settings.secure_cookies)

    app = FastAPI(
        title="Resort Reservations",
        version="0.1.0",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.settings = settings
    app.state.database = db
    app.state.session_manager = sessions
    app.state.ledger = ledger
    app.state.outbox = outbox
    app.state.dashboard = dashboard

    app.mount("/static", StaticFiles(directory=str(STATIC_DIR)), name="static")

    register_api_routes(app, db, ledger, outbox, ui=ui)
    register_admin_routes(app, db, ledger, dashboard, admin_gate, ui=ui, settings=settings)
    register_ui_routes(app, db, ledger, outbox, ui=ui)

    return app


__all__ = ["create_app"]
