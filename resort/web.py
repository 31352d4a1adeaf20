"""Web interface for the resort: public pages and the guest account area."""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from fastapi import APIRouter, FastAPI, Form, Request, status
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates

from .database import Database
from .errors import (
    AuthenticationError,
    DuplicateEmailError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from .ledger import BookingLedger
from .models import DashboardSummary, MAX_GUESTS, MIN_GUESTS, RoomType, User
from .notifications import NotificationOutbox
from .sessions import SessionManager, SessionState, UserScope, require_user_scope

logger = logging.getLogger("resort.web")

SESSION_COOKIE_NAME = "resort_session"
TEMPLATE_DIR = Path(__file__).resolve().parent / "templates"
STATIC_DIR = Path(__file__).resolve().parent / "static"

PASSWORD_MIN_LENGTH = 8
NOTIFICATION_PAGE_SIZE = 20
GENERIC_FAILURE = "Something went wrong. Please try again later."


def _format_datetime(value: Optional[datetime]) -> str:
    if value is None:
        return ""
    return value.astimezone(timezone.utc).strftime("%d %b %Y • %H:%M %Z")


def _format_date(value: Optional[date]) -> str:
    if value is None:
        return ""
    return value.strftime("%d %b %Y")


def _format_currency(value: int) -> str:
    return f"₱{value:,}"


def _template_environment() -> Jinja2Templates:
    templates = Jinja2Templates(directory=str(TEMPLATE_DIR))
    templates.env.globals["format_datetime"] = _format_datetime
    templates.env.globals["format_date"] = _format_date
    templates.env.globals["format_currency"] = _format_currency
    templates.env.globals["room_types"] = list(RoomType)
    return templates


class WebContext:
    """Rendering, cookie and session helpers shared by the HTML routes."""

    def __init__(
        self,
        session_manager: SessionManager,
        *,
        secure_cookies: bool,
        templates: Optional[Jinja2Templates] = None,
    ) -> None:
        self.session_manager = session_manager
        self.secure_cookies = secure_cookies
        self.templates = templates or _template_environment()

    def load_session(self, request: Request) -> Tuple[Optional[SessionState], Optional[str]]:
        token = request.cookies.get(SESSION_COOKIE_NAME)
        if not token:
            return None, None
        return self.session_manager.resolve(token), token

    def load_user(
        self,
        request: Request,
        database: Database,
    ) -> Tuple[Optional[User], Optional[SessionState], Optional[str]]:
        """Resolve the signed-in guest, tearing the session down if the account is gone."""

        state, token = self.load_session(request)
        scope = require_user_scope(state)
        if scope is None:
            return None, state, token
        user = database.get_user(scope.id)
        if user is None:
            logger.warning("Session referenced missing user %s; signing out", scope.id)
            self.session_manager.end_session(token)
            return None, None, token
        return user, state, token

    def issue_cookie(self, response, token: str) -> None:
        response.set_cookie(
            SESSION_COOKIE_NAME,
            token,
            max_age=self.session_manager.cookie_max_age,
            secure=self.secure_cookies,
            httponly=True,
            samesite="lax",
            path="/",
        )

    def clear_cookie(self, response, token: Optional[str]) -> None:
        if token:
            self.session_manager.destroy(token)
        response.delete_cookie(SESSION_COOKIE_NAME, path="/")

    def flash(self, state: Optional[SessionState], message: str, *, category: str = "info") -> None:
        if state is not None:
            state.messages.append({"message": message, "category": category})

    def consume_flash(self, state: Optional[SessionState]) -> List[Dict[str, str]]:
        if state is None:
            return []
        messages = list(state.messages)
        state.messages.clear()
        return messages

    def render(
        self,
        request: Request,
        template: str,
        *,
        state: Optional[SessionState] = None,
        token: Optional[str] = None,
        status_code: int = status.HTTP_200_OK,
        dashboard: Optional[DashboardSummary] = None,
        **extra,
    ) -> HTMLResponse:
        context = {
            "user_scope": state.user if state else None,
            "admin_scope": state.admin if state else None,
            "logged_in": bool(state and state.user),
            "is_admin": bool(state and state.admin),
            "dashboard": dashboard or DashboardSummary(),
            "messages": self.consume_flash(state),
            "now": datetime.now,
        }
        context.update(extra)
        response = self.templates.TemplateResponse(request, template, context, status_code=status_code)
        self._refresh_cookie(response, state, token)
        return response

    def redirect(
        self,
        request: Request,
        route_name: str,
        *,
        state: Optional[SessionState] = None,
        token: Optional[str] = None,
    ) -> RedirectResponse:
        response = RedirectResponse(request.url_for(route_name), status_code=status.HTTP_303_SEE_OTHER)
        self._refresh_cookie(response, state, token)
        return response

    def _refresh_cookie(self, response, state: Optional[SessionState], token: Optional[str]) -> None:
        if token and state is not None:
            self.issue_cookie(response, token)
        elif token:
            self.clear_cookie(response, token)


_STATIC_PAGES = (
    ("/", "home", "index.html", "Home"),
    ("/accommodation", "accommodation", "accommodation.html", "Accommodation"),
    ("/gallery", "gallery", "gallery.html", "Gallery"),
    ("/rules", "rules", "rules.html", "Resort Rules"),
    ("/contact", "contact", "contact.html", "Contact Us"),
)


def register_ui_routes(
    app: FastAPI,
    database: Database,
    ledger: BookingLedger,
    outbox: NotificationOutbox,
    *,
    ui: WebContext,
) -> None:
    """Expose the public site and the guest account pages on ``app``."""

    router = APIRouter(include_in_schema=False)

    def _static_page(template: str, title: str):
        async def page(request: Request):
            state, token = ui.load_session(request)
            return ui.render(request, template, state=state, token=token, title=title)

        return page

    for path, name, template, title in _STATIC_PAGES:
        router.add_api_route(
            path,
            _static_page(template, title),
            methods=["GET"],
            name=name,
            response_class=HTMLResponse,
        )

    def _render_booking_form(
        request: Request,
        state: Optional[SessionState],
        token: Optional[str],
        *,
        error: Optional[str] = None,
        form: Optional[Dict[str, str]] = None,
        status_code: int = status.HTTP_200_OK,
    ) -> HTMLResponse:
        return ui.render(
            request,
            "booking.html",
            state=state,
            token=token,
            status_code=status_code,
            title="Book Your Stay",
            error=error,
            form=form or {},
            min_date=date.today().isoformat(),
            min_guests=MIN_GUESTS,
            max_guests=MAX_GUESTS,
        )

    @router.get("/signup", response_class=HTMLResponse, name="signup")
    async def signup_form(request: Request):
        user, state, token = ui.load_user(request, database)
        if user is not None:
            return ui.redirect(request, "profile", state=state, token=token)
        return ui.render(request, "signup.html", state=state, token=token, title="Sign Up", error=None)

    @router.post("/signup", name="process_signup")
    async def process_signup(
        request: Request,
        fullname: str = Form(""),
        email: str = Form(""),
        password: str = Form(""),
    ):
        state, token = ui.load_session(request)
        try:
            user = database.create_user(fullname, email, password)
        except DuplicateEmailError as exc:
            return ui.render(
                request,
                "signup.html",
                state=state,
                token=token,
                status_code=status.HTTP_400_BAD_REQUEST,
                title="Sign Up",
                error=str(exc),
                fullname=fullname,
                email=email,
            )
        except ValidationError as exc:
            return ui.render(
                request,
                "signup.html",
                state=state,
                token=token,
                status_code=status.HTTP_400_BAD_REQUEST,
                title="Sign Up",
                error=" ".join(exc.messages),
                fullname=fullname,
                email=email,
            )
        except PersistenceError:
            logger.exception("Signup failed for %s", email)
            return ui.render(
                request,
                "signup.html",
                state=state,
                token=token,
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                title="Sign Up",
                error=GENERIC_FAILURE,
            )

        logger.info("New user registered: %s", user.id)
        return ui.render(
            request,
            "login.html",
            state=state,
            token=token,
            title="Login",
            success="Account created successfully! You can now login.",
            error=None,
        )

    @router.get("/login", response_class=HTMLResponse, name="login")
    async def login_form(request: Request):
        user, state, token = ui.load_user(request, database)
        if user is not None:
            return ui.redirect(request, "profile", state=state, token=token)
        return ui.render(request, "login.html", state=state, token=token, title="Login", error=None)

    @router.post("/login", name="process_login")
    async def process_login(
        request: Request,
        username: str = Form(""),
        password: str = Form(""),
    ):
        state, token = ui.load_session(request)
        if not username.strip() or not password:
            return ui.render(
                request,
                "login.html",
                state=state,
                token=token,
                status_code=status.HTTP_400_BAD_REQUEST,
                title="Login",
                error="Please provide both your email or username and your password.",
                username=username,
            )

        try:
            user = database.authenticate_user(username, password)
        except AuthenticationError:
            logger.warning("Failed login attempt for %s", username)
            return ui.render(
                request,
                "login.html",
                state=state,
                token=token,
                status_code=status.HTTP_400_BAD_REQUEST,
                title="Login",
                error="Invalid email, username or password.",
                username=username,
            )
        except PersistenceError:
            logger.exception("Login failed for %s", username)
            return ui.render(
                request,
                "login.html",
                state=state,
                token=token,
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                title="Login",
                error=GENERIC_FAILURE,
            )

        new_token = ui.session_manager.start_user_session(user, token=token if state else None)
        logger.info("User %s signed in", user.id)
        response = RedirectResponse(request.url_for("profile"), status_code=status.HTTP_303_SEE_OTHER)
        ui.issue_cookie(response, new_token)
        return response

    @router.get("/logout", name="logout")
    async def logout(request: Request):
        token = request.cookies.get(SESSION_COOKIE_NAME)
        ui.session_manager.end_session(token)
        response = RedirectResponse(request.url_for("home"), status_code=status.HTTP_303_SEE_OTHER)
        ui.clear_cookie(response, token)
        return response

    @router.get("/booking", response_class=HTMLResponse, name="booking")
    async def booking_form(request: Request):
        user, state, token = ui.load_user(request, database)
        if user is None:
            return ui.redirect(request, "login", state=state, token=token)
        return _render_booking_form(request, state, token)

    @router.post("/booking/submit", name="submit_booking")
    async def submit_booking(
        request: Request,
        room: str = Form(""),
        checkin: str = Form(""),
        checkout: str = Form(""),
        guests: str = Form(""),
        contact: str = Form(""),
        special_requests: str = Form(""),
    ):
        user, state, token = ui.load_user(request, database)
        if user is None:
            return ui.redirect(request, "login", state=state, token=token)

        form = {
            "room": room,
            "checkin": checkin,
            "checkout": checkout,
            "guests": guests,
            "contact": contact,
            "special_requests": special_requests,
        }
        if not all(value.strip() for value in (room, checkin, checkout, guests)):
            return _render_booking_form(
                request,
                state,
                token,
                error="Please fill out all fields before submitting.",
                form=form,
                status_code=status.HTTP_400_BAD_REQUEST,
            )

        try:
            checkin_date = date.fromisoformat(checkin.strip())
            checkout_date = date.fromisoformat(checkout.strip())
            guest_count = int(guests.strip())
        except ValueError:
            return _render_booking_form(
                request,
                state,
                token,
                error="Please enter valid dates and a whole number of guests.",
                form=form,
                status_code=status.HTTP_400_BAD_REQUEST,
            )

        try:
            ledger.submit(
                user.id,
                room,
                checkin_date,
                checkout_date,
                guest_count,
                contact=contact,
                special_requests=special_requests,
            )
        except ValidationError as exc:
            return _render_booking_form(
                request,
                state,
                token,
                error=" ".join(exc.messages),
                form=form,
                status_code=status.HTTP_400_BAD_REQUEST,
            )
        except NotFoundError:
            ui.session_manager.end_session(token)
            return ui.redirect(request, "login", token=token)
        except PersistenceError:
            logger.exception("Error saving booking for user %s", user.id)
            return _render_booking_form(
                request,
                state,
                token,
                error=GENERIC_FAILURE,
                form=form,
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            )

        ui.flash(state, "Your booking has been successfully submitted!", category="success")
        return ui.redirect(request, "profile", state=state, token=token)

    @router.get("/profile", response_class=HTMLResponse, name="profile")
    async def profile(request: Request):
        user, state, token = ui.load_user(request, database)
        if user is None:
            return ui.redirect(request, "login", state=state, token=token)

        try:
            bookings = ledger.list_for_user(user.id)
            notifications = outbox.list_for_user(user.id, limit=NOTIFICATION_PAGE_SIZE)
        except PersistenceError:
            logger.exception("Error loading profile for user %s", user.id)
            return _failure_page(request, state, token, "Failed to load your profile.")
        return ui.render(
            request,
            "profile.html",
            state=state,
            token=token,
            title="My Profile",
            user=user,
            greeting=f"Welcome back, {user.fullname or 'Guest'}!",
            bookings=bookings,
            notifications=notifications,
            password_min_length=PASSWORD_MIN_LENGTH,
        )

    @router.post("/profile", name="update_profile")
    async def update_profile(
        request: Request,
        fullname: str = Form(""),
        phone: str = Form(""),
        profile_image: str = Form(""),
    ):
        user, state, token = ui.load_user(request, database)
        if user is None or state is None:
            return ui.redirect(request, "login", state=state, token=token)

        try:
            updated = database.update_user_profile(
                user.id,
                fullname=fullname,
                phone=phone,
                profile_image=profile_image,
            )
        except NotFoundError:
            ui.session_manager.end_session(token)
            return ui.redirect(request, "login", token=token)
        except PersistenceError:
            logger.exception("Error updating profile for user %s", user.id)
            ui.flash(state, "Failed to update profile. Please try again later.", category="error")
            return ui.redirect(request, "profile", state=state, token=token)

        state.user = UserScope.from_user(updated)
        ui.flash(state, "Profile updated.", category="success")
        return ui.redirect(request, "profile", state=state, token=token)

    @router.post("/profile/password", name="change_password")
    async def change_password(
        request: Request,
        current_password: str = Form(""),
        new_password: str = Form(""),
        confirm_password: str = Form(""),
    ):
        user, state, token = ui.load_user(request, database)
        if user is None:
            return ui.redirect(request, "login", state=state, token=token)

        errors: List[str] = []
        if len(new_password) < PASSWORD_MIN_LENGTH:
            errors.append(f"New password must be at least {PASSWORD_MIN_LENGTH} characters long.")
        if new_password != confirm_password:
            errors.append("New password and confirmation do not match.")

        try:
            if not database.verify_user_password(user.id, current_password):
                errors.append("Current password is incorrect.")
            if not errors:
                database.set_user_password(user.id, new_password)
        except PersistenceError:
            logger.exception("Error changing password for user %s", user.id)
            ui.flash(state, "Failed to update password. Please try again later.", category="error")
            return ui.redirect(request, "profile", state=state, token=token)

        if errors:
            for message in errors:
                ui.flash(state, message, category="error")
            return ui.redirect(request, "profile", state=state, token=token)

        logger.info("User %s changed their password", user.id)
        ui.flash(state, "Password updated successfully.", category="success")
        return ui.redirect(request, "profile", state=state, token=token)

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

    async def not_found(request: Request, exc):
        state, token = ui.load_session(request)
        return ui.render(
            request,
            "404.html",
            state=state,
            token=token,
            status_code=status.HTTP_404_NOT_FOUND,
            title="Page Not Found",
        )

    async def store_failure(request: Request, exc: PersistenceError):
        # Last resort for store errors raised outside a route's own handling.
        logger.error("Unhandled store failure on %s: %s", request.url.path, exc)
        state, token = ui.load_session(request)
        return _failure_page(request, state, token, GENERIC_FAILURE)

    app.include_router(router)
    app.add_exception_handler(status.HTTP_404_NOT_FOUND, not_found)
    app.add_exception_handler(PersistenceError, store_failure)


__all__ = ["SESSION_COOKIE_NAME", "STATIC_DIR", "WebContext", "register_ui_routes"]
