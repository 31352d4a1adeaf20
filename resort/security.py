"""Password hashing and the operator credential check."""
from __future__ import annotations

import logging
import secrets
from typing import Optional

from passlib.context import CryptContext


logger = logging.getLogger("resort.security")

BCRYPT_ROUNDS = 12

_pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=BCRYPT_ROUNDS)


def hash_password(password: str) -> str:
    if not password:
        raise ValueError("Password must not be empty")
    return _pwd_context.hash(password)


def verify_password(password: str, hashed: Optional[str]) -> bool:
    if not hashed:
        return False
    try:
        return _pwd_context.verify(password, hashed)
    except ValueError:
        return False


def dummy_verify() -> None:
    """Spend the time of one bcrypt verification without a stored hash."""

    _pwd_context.dummy_verify()


class AdminGate:
    """Single operator credential check, kept apart from guest accounts."""

    def __init__(self, username: str, password_hash: Optional[str]) -> None:
        self._username = username.strip()
        self._password_hash = password_hash.strip() if password_hash else None
        if not self._password_hash:
            logger.warning(
                "No administrator password hash configured; admin sign-in is disabled."
                " Generate one with `python main.py hash-password`."
            )

    @property
    def username(self) -> str:
        return self._username

    @property
    def enabled(self) -> bool:
        return bool(self._username and self._password_hash)

    def check(self, username: str, password: str) -> bool:
        if not self.enabled:
            return False
        username_ok = secrets.compare_digest(username.strip().encode("utf-8"), self._username.encode("utf-8"))
        # Verified even when the username already mismatched.
        password_ok = verify_password(password, self._password_hash)
        return username_ok and password_ok


__all__ = ["AdminGate", "BCRYPT_ROUNDS", "dummy_verify", "hash_password", "verify_password"]
