"""In-memory session handling with independent guest and operator scopes."""

from __future__ import annotations

import secrets
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from .models import User


DEFAULT_SESSION_TTL = timedelta(days=1)


@dataclass(frozen=True)
class UserScope:
    """The slice of a :class:`User` kept in the session."""

    id: int
    fullname: str
    email: str
    username: str

    @classmethod
    def from_user(cls, user: User) -> "UserScope":
        return cls(id=user.id, fullname=user.fullname, email=user.email, username=user.display_username)


@dataclass(frozen=True)
class AdminScope:
    username: str


@dataclass
class SessionState:
    user: Optional[UserScope] = None
    admin: Optional[AdminScope] = None
    messages: List[Dict[str, str]] = field(default_factory=list)


@dataclass
class _SessionRecord:
    state: SessionState
    expires_at: datetime


def require_user_scope(state: Optional[SessionState]) -> Optional[UserScope]:
    """Return the guest scope, or ``None`` when the caller must sign in first."""

    if state is None:
        return None
    return state.user


def require_admin_scope(state: Optional[SessionState]) -> Optional[AdminScope]:
    if state is None:
        return None
    return state.admin


class SessionManager:
    """Generate, validate, and revoke browser sessions."""

    def __init__(self, *, ttl: timedelta = DEFAULT_SESSION_TTL) -> None:
        self._ttl = ttl
        self._sessions: Dict[str, _SessionRecord] = {}
        self._lock = threading.Lock()

    @property
    def ttl(self) -> timedelta:
        return self._ttl

    @property
    def cookie_max_age(self) -> int:
        return int(self._ttl.total_seconds())

    def create(self, state: Optional[SessionState] = None) -> str:
        token = secrets.token_urlsafe(32)
        record = _SessionRecord(state=state or SessionState(), expires_at=self._now() + self._ttl)
        with self._lock:
            self._sessions[token] = record
        return token

    def resolve(self, token: Optional[str]) -> Optional[SessionState]:
        if not token:
            return None
        now = self._now()
        with self._lock:
            record = self._sessions.get(token)
            if record is None:
                return None
            if record.expires_at <= now:
                self._sessions.pop(token, None)
                return None
            record.expires_at = now + self._ttl
            return record.state

    def start_user_session(self, user: User, *, token: Optional[str] = None) -> str:
        """Issue a fresh token holding ``user``; an admin scope on ``token`` carries over."""

        previous = self._take(token)
        state = SessionState(user=UserScope.from_user(user), admin=previous.admin if previous else None)
        return self.create(state)

    def start_admin_session(self, username: str, *, token: Optional[str] = None) -> str:
        previous = self._take(token)
        state = SessionState(user=previous.user if previous else None, admin=AdminScope(username=username))
        return self.create(state)

    def end_session(self, token: Optional[str]) -> None:
        """Destroy the whole session, both scopes included."""

        if token:
            self.destroy(token)

    def destroy(self, token: str) -> None:
        with self._lock:
            self._sessions.pop(token, None)

    def _take(self, token: Optional[str]) -> Optional[SessionState]:
        state = self.resolve(token)
        if token:
            self.destroy(token)
        return state

    def _now(self) -> datetime:
        return datetime.now(timezone.utc)


__all__ = [
    "AdminScope",
    "DEFAULT_SESSION_TTL",
    "SessionManager",
    "SessionState",
    "UserScope",
    "require_admin_scope",
    "require_user_scope",
]
