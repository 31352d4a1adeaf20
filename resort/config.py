"""Configuration management for the resort reservation service."""
from __future__ import annotations

import dataclasses
import os
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Dict, Mapping, Optional

import yaml

from .database import resolve_database_path
from .sessions import DEFAULT_SESSION_TTL


DEFAULT_ADMIN_USERNAME = "resortadmin"


def env_flag(value: Optional[str], default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class ResortSettings:
    """Runtime settings for the web application."""

    database_path: Path
    admin_username: str = DEFAULT_ADMIN_USERNAME
    admin_password_hash: Optional[str] = None
    secure_cookies: bool = True
    session_ttl: timedelta = DEFAULT_SESSION_TTL

    @staticmethod
    def from_dict(data: Mapping[str, object], base_path: Path | None = None) -> "ResortSettings":
        """Create :class:`ResortSettings` from the parsed YAML document."""

        database = data.get("database") or {}
        admin = data.get("admin") or {}
        session = data.get("session") or {}
        if not isinstance(database, dict) or not isinstance(admin, dict) or not isinstance(session, dict):
            raise ValueError("The 'database', 'admin' and 'session' sections must be mappings")

        raw_db_path = database.get("path")
        if raw_db_path:
            candidate = Path(str(raw_db_path)).expanduser()
            if not candidate.is_absolute() and base_path is not None:
                candidate = base_path / candidate
            database_path = candidate.resolve(strict=False)
        else:
            database_path = resolve_database_path(None)

        ttl_hours = session.get("ttl_hours")
        return ResortSettings(
            database_path=database_path,
            admin_username=str(admin.get("username") or DEFAULT_ADMIN_USERNAME),
            admin_password_hash=str(admin["password_hash"]) if admin.get("password_hash") else None,
            secure_cookies=_parse_flag(session.get("secure"), True),
            session_ttl=_parse_ttl_hours(ttl_hours) if ttl_hours is not None else DEFAULT_SESSION_TTL,
        )


def _parse_flag(value: object, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, str):
        return env_flag(value, default)
    return bool(value)


def _parse_ttl_hours(value: object) -> timedelta:
    try:
        hours = float(str(value))
    except ValueError as exc:
        raise ValueError(f"Session lifetime must be a number of hours, got {value!r}") from exc
    if hours <= 0:
        raise ValueError("Session lifetime must be positive")
    return timedelta(hours=hours)


def resolve_config_path(env_value: Optional[str]) -> Path:
    """Resolve the path to the configuration file."""
    if env_value:
        candidate = Path(env_value).expanduser().resolve(strict=False)
    else:
        candidate = (Path(__file__).resolve().parent.parent / "config" / "resort.yaml").resolve(strict=False)
    return candidate


def load_settings(
    config_path: Optional[Path] = None,
    *,
    environ: Optional[Mapping[str, str]] = None,
) -> ResortSettings:
    """Load settings from the YAML file (when present) and apply environment overrides."""

    env: Mapping[str, str] = os.environ if environ is None else environ
    path = config_path or resolve_config_path(env.get("RESORT_CONFIG"))

    raw: Dict[str, object] = {}
    if path.exists():
        with path.open("r", encoding="utf-8") as handle:
            loaded = yaml.safe_load(handle) or {}
        if not isinstance(loaded, dict):
            raise ValueError(f"Configuration file {path} must contain a mapping")
        raw = loaded

    settings = ResortSettings.from_dict(raw, base_path=path.parent)

    overrides: Dict[str, object] = {}
    if env.get("RESORT_DB_PATH"):
        overrides["database_path"] = resolve_database_path(env["RESORT_DB_PATH"])
    if env.get("RESORT_ADMIN_USERNAME"):
        overrides["admin_username"] = env["RESORT_ADMIN_USERNAME"].strip()
    if env.get("RESORT_ADMIN_PASSWORD_HASH"):
        overrides["admin_password_hash"] = env["RESORT_ADMIN_PASSWORD_HASH"].strip()
    if env.get("RESORT_SESSION_SECURE") is not None:
        overrides["secure_cookies"] = env_flag(env.get("RESORT_SESSION_SECURE"), True)
    if env.get("RESORT_SESSION_TTL_HOURS"):
        overrides["session_ttl"] = _parse_ttl_hours(env["RESORT_SESSION_TTL_HOURS"])

    if not overrides:
        return settings
    return dataclasses.replace(settings, **overrides)


__all__ = ["ResortSettings", "env_flag", "load_settings", "resolve_config_path"]
