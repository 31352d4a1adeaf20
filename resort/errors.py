"""Exceptions raised by the reservation core."""

from __future__ import annotations

from typing import Iterable, List


class ResortError(Exception):
    """Base class for every error raised by the reservation core."""


class ValidationError(ResortError, ValueError):
    """Raised when submitted data violates a booking or account rule."""

    def __init__(self, messages: Iterable[str] | str) -> None:
        if isinstance(messages, str):
            messages = [messages]
        self.messages: List[str] = list(messages)
        super().__init__(" ".join(self.messages))


class InvalidTransition(ValidationError):
    """Raised when a booking is moved out of a terminal status."""


class NotFoundError(ResortError, LookupError):
    """Raised when a referenced user or booking does not exist."""


class DuplicateEmailError(ResortError, ValueError):
    def __init__(self, email: str) -> None:
        self.email = email
        super().__init__("Email already registered. Please login instead.")


class AuthenticationError(ResortError):
    """Credential check failed. Subclasses say why; callers should not."""


class UserNotFoundError(AuthenticationError):
    pass


class BadPasswordError(AuthenticationError):
    pass


class StaleBookingError(ResortError):
    """A conditional booking write found the row in a different status."""


class PersistenceError(ResortError):
    """The backing store could not complete an operation."""


__all__ = [
    "AuthenticationError",
    "BadPasswordError",
    "DuplicateEmailError",
    "InvalidTransition",
    "NotFoundError",
    "PersistenceError",
    "ResortError",
    "StaleBookingError",
    "UserNotFoundError",
    "ValidationError",
]
