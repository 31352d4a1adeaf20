"""Administration area: operator sign-in, booking decisions and reports."""

from __future__ import annotations

import logging
from typing import Callable, Optional, Tuple

from fastapi import APIRouter, FastAPI, Form, Request, status
from fastapi.responses import HTMLResponse, RedirectResponse

from .config import ResortSettings
from .dashboard import DashboardAggregator
from .database import Database
from .errors import InvalidTransition, NotFoundError, PersistenceError
from .ledger import BookingLedger
from .models import Booking
from .security import AdminGate
from .sessions import AdminScope, SessionState, require_admin_scope
from .web import SESSION_COOKIE_NAME, WebContext

logger = logging.getLogger("resort.admin")


def register_admin_routes(
    app: FastAPI,
    database: Database,
    ledger: BookingLedger,
    dashboard: DashboardAggregator,
    admin_gate: AdminGate,
    *,
    ui: WebContext,
    settings: ResortSettings,
) -> None:
    """Expose the operator pages under ``/admin``."""

    router = APIRouter(prefix="/admin", include_in_schema=False)

    def _load_admin(request: Request) -> Tuple[Optional[AdminScope], Optional[SessionState], Optional[str]]:
        state, token = ui.load_session(request)
        return require_admin_scope(state), state, token

    def _apply_decision(
        request: Request,
        booking_id: int,
        action: Callable[[int], Optional[Booking]],
        *,
        success: str,
        failure: str,
    ):
        admin, state, token = _load_admin(request)
        if admin is None:
            return ui.redirect(request, "admin_login", state=state, token=token)

        try:
            action(booking_id)
        except NotFoundError:
            ui.flash(state, "Booking not found.", category="error")
        except InvalidTransition as exc:
            ui.flash(state, str(exc), category="error")
        except PersistenceError:
            logger.exception("%s (booking %s)", failure, booking_id)
            ui.flash(state, failure, category="error")
        else:
            ui.flash(state, success, category="success")
        return ui.redirect(request, "admin_dashboard", state=state, token=token)

    @router.get("", name="admin_home")
    async def admin_home(request: Request):
        return RedirectResponse(request.url_for("admin_dashboard"), status_code=status.HTTP_303_SEE_OTHER)

    @router.get("/login", response_class=HTMLResponse, name="admin_login")
    async def admin_login_form(request: Request):
        admin, state, token = _load_admin(request)
        if admin is not None:
            return ui.redirect(request, "admin_dashboard", state=state, token=token)
        return ui.render(request, "admin/login.html", state=state, token=token, title="Admin Login", error=None)

    @router.post("/login", name="admin_process_login")
    async def admin_process_login(
        request: Request,
        username: str = Form(""),
        password: str = Form(""),
    ):
        state, token = ui.load_session(request)
        if not admin_gate.check(username, password):
            logger.warning("Failed admin login attempt for %s", username)
            return ui.render(
                request,
                "admin/login.html",
                state=state,
                token=token,
                status_code=status.HTTP_400_BAD_REQUEST,
                title="Admin Login",
                error="Invalid username or password",
            )

        new_token = ui.session_manager.start_admin_session(admin_gate.username, token=token if state else None)
        new_state = ui.session_manager.resolve(new_token)
        ui.flash(new_state, "Welcome back, Admin!", category="success")
        logger.info("Administrator signed in")
        return ui.redirect(request, "admin_dashboard", state=new_state, token=new_token)

    @router.get("/logout", name="admin_logout")
    async def admin_logout(request: Request):
        token = request.cookies.get(SESSION_COOKIE_NAME)
        ui.session_manager.end_session(token)
        response = RedirectResponse(request.url_for("admin_login"), status_code=status.HTTP_303_SEE_OTHER)
        ui.clear_cookie(response, token)
        return response

    def _failure_page(request: Request, state: Optional[SessionState], token: Optional[str], message: str):
        return ui.render(
            request,
            "error.html",
            state=state,
            token=token,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            title="Error",
            message=message,
        )

    @router.get("/dashboard", response_class=HTMLResponse, name="admin_dashboard")
    async def admin_dashboard(request: Request):
        admin, state, token = _load_admin(request)
        if admin is None:
            return ui.redirect(request, "admin_login", state=state, token=token)
        try:
            summary = dashboard.summary()
            bookings = ledger.list_all()
        except PersistenceError:
            logger.exception("Error loading dashboard")
            return _failure_page(request, state, token, "Failed to load dashboard.")
        return ui.render(
            request,
            "admin/dashboard.html",
            state=state,
            token=token,
            dashboard=summary,
            title="Dashboard",
            bookings=bookings,
        )

    @router.get("/analytics", response_class=HTMLResponse, name="admin_analytics")
    async def admin_analytics(request: Request):
        admin, state, token = _load_admin(request)
        if admin is None:
            return ui.redirect(request, "admin_login", state=state, token=token)
        try:
            summary = dashboard.summary()
        except PersistenceError:
            logger.exception("Error loading analytics")
            return _failure_page(request, state, token, "Failed to load analytics.")
        return ui.render(
            request,
            "admin/analytics.html",
            state=state,
            token=token,
            dashboard=summary,
            title="Analytics",
        )

    @router.get("/history", response_class=HTMLResponse, name="admin_history")
    async def admin_history(request: Request):
        admin, state, token = _load_admin(request)
        if admin is None:
            return ui.redirect(request, "admin_login", state=state, token=token)
        try:
            summary = dashboard.summary()
            bookings = ledger.list_all()
        except PersistenceError:
            logger.exception("Error loading booking history")
            return _failure_page(request, state, token, "Failed to load booking history.")
        return ui.render(
            request,
            "admin/history.html",
            state=state,
            token=token,
            dashboard=summary,
            title="Booking History",
            bookings=bookings,
        )

    @router.get("/users", response_class=HTMLResponse, name="admin_users")
    async def admin_users(request: Request):
        admin, state, token = _load_admin(request)
        if admin is None:
            return ui.redirect(request, "admin_login", state=state, token=token)
        try:
            summary = dashboard.summary()
            users = database.list_users()
        except PersistenceError:
            logger.exception("Error loading users")
            return _failure_page(request, state, token, "Failed to load users.")
        return ui.render(
            request,
            "admin/users.html",
            state=state,
            token=token,
            dashboard=summary,
            title="Users",
            users=users,
        )

    @router.get("/settings", response_class=HTMLResponse, name="admin_settings")
    async def admin_settings(request: Request):
        admin, state, token = _load_admin(request)
        if admin is None:
            return ui.redirect(request, "admin_login", state=state, token=token)
        try:
            summary = dashboard.summary()
        except PersistenceError:
            logger.exception("Error loading settings")
            return _failure_page(request, state, token, "Failed to load settings.")
        return ui.render(
            request,
            "admin/settings.html",
            state=state,
            token=token,
            dashboard=summary,
            title="Settings",
            settings=settings,
            session_hours=int(settings.session_ttl.total_seconds() // 3600),
        )

    @router.post("/accept/{booking_id}", name="admin_accept_booking")
    async def accept_booking(request: Request, booking_id: int):
        return _apply_decision(
            request,
            booking_id,
            ledger.accept,
            success="Booking accepted successfully!",
            failure="Error accepting booking.",
        )

    @router.post("/decline/{booking_id}", name="admin_decline_booking")
    async def decline_booking(request: Request, booking_id: int):
        return _apply_decision(
            request,
            booking_id,
            ledger.decline,
            success="Booking declined successfully!",
            failure="Error declining booking.",
        )

    @router.post("/bookings/delete/{booking_id}", name="admin_delete_booking")
    async def delete_booking(request: Request, booking_id: int):
        return _apply_decision(
            request,
            booking_id,
            ledger.cancel,
            success="Booking deleted successfully!",
            failure="Error deleting booking.",
        )

    app.include_router(router)


__all__ = ["register_admin_routes"]
