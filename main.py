"""Command-line interface for the resort reservation service."""

from __future__ import annotations
import argparse
import logging
import os
import sys
from getpass import getpass
from pathlib import Path
from typing import Sequence


def _running_in_virtualenv() -> bool:
    """Return ``True`` when the current interpreter is executing inside a venv."""

    base_prefix = getattr(sys, "base_prefix", sys.prefix)
    return sys.prefix != base_prefix


def _bootstrap_virtualenv() -> None:
    """Re-exec the script using the bundled virtualenv interpreter when available."""

    if _running_in_virtualenv():
        return

    root = Path(__file__).resolve().parent
    venv_dir = root / ".venv"
    if not venv_dir.is_dir():
        return

    candidates = (
        venv_dir / "bin" / "python",
        venv_dir / "bin" / "python3",
        venv_dir / "Scripts" / "python.exe",
        venv_dir / "Scripts" / "python",
    )

    script = str(Path(__file__).resolve())
    for candidate in candidates:
        if candidate.exists():
            os.execv(str(candidate), [str(candidate), script, *sys.argv[1:]])


if __name__ == "__main__":
    _bootstrap_virtualenv()

from resort.config import ResortSettings, load_settings
from resort.database import Database
from resort.errors import DuplicateEmailError, ValidationError
from resort.security import hash_password

logger = logging.getLogger("resort.main")

PASSWORD_MIN_LENGTH = 8
_KNOWN_COMMANDS = {"serve", "init-db", "create-user", "list-users", "hash-password"}


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    config_help = "Path to the YAML configuration file (default: RESORT_CONFIG or config/resort.yaml)"
    parser = argparse.ArgumentParser(description="Resort reservation utilities")
    parser.add_argument("--config", default=None, help=config_help)

    # Accepted after the subcommand too; SUPPRESS keeps the top-level value otherwise.
    config_parent = argparse.ArgumentParser(add_help=False)
    config_parent.add_argument("--config", default=argparse.SUPPRESS, help=config_help)

    subparsers = parser.add_subparsers(dest="command")

    parser.set_defaults(command="serve")

    subparsers.add_parser("init-db", parents=[config_parent], help="Create the database tables")

    serve_parser = subparsers.add_parser("serve", parents=[config_parent], help="Start the web application")
    serve_parser.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    serve_parser.add_argument("--port", type=int, default=8000, help="Port to listen on (default: 8000)")

    create_parser = subparsers.add_parser("create-user", parents=[config_parent], help="Register a guest account")
    create_parser.add_argument("fullname", help="Full name shown on bookings")
    create_parser.add_argument("email", help="Unique email address used to sign in")
    create_parser.add_argument("--username", default=None, help="Optional username accepted at login")
    create_parser.add_argument("--phone", default=None, help="Optional contact number")

    subparsers.add_parser("list-users", parents=[config_parent], help="List registered guest accounts")

    subparsers.add_parser(
        "hash-password",
        parents=[config_parent],
        help="Print a bcrypt hash for RESORT_ADMIN_PASSWORD_HASH",
    )

    args_list = list(argv) if argv is not None else sys.argv[1:]

    # Global options may precede the subcommand.
    leading = []
    if args_list[:1] == ["--config"] and len(args_list) >= 2:
        leading, args_list = args_list[:2], args_list[2:]

    if not args_list:
        args_list = ["serve"]
    else:
        first = args_list[0]
        if first in ("-h", "--help"):
            return parser.parse_args([*leading, *args_list])
        if first not in _KNOWN_COMMANDS:
            if any(flag in args_list for flag in ("-h", "--help")):
                return parser.parse_args([*leading, *args_list])
            args_list = ["serve", *args_list]

    return parser.parse_args([*leading, *args_list])


def _load_settings(config: str | None) -> ResortSettings:
    path = Path(config).expanduser() if config else None
    return load_settings(path)


def _initialise_database(settings: ResortSettings) -> Database:
    database = Database(settings.database_path)
    database.initialize()
    logger.info("Database initialised at %s", settings.database_path)
    return database


def _serve(*, settings: ResortSettings, database: Database, host: str, port: int) -> None:
    from resort.service import create_app
    import uvicorn

    logger.info("Starting resort site on http://%s:%s", host, port)
    app = create_app(settings=settings, database=database)
    uvicorn.run(app, host=host, port=port, log_level="info")


def _list_users(database: Database) -> None:
    users = database.list_users()
    if not users:
        print("No users are currently registered.")
        return

    print(f"{len(users)} user(s) found:")
    print(f"{'ID':>4}  {'Name':<24}  {'Email':<32}  Created")
    print("-" * 80)
    for user in users:
        created = user.created_at.strftime("%Y-%m-%d %H:%M:%S %Z")
        print(f"{user.id:>4}  {user.fullname:<24}  {user.email:<32}  {created}")


def _prompt_for_password(prompt: str = "Password") -> str | None:
    for _ in range(3):
        password = getpass(f"{prompt} (min {PASSWORD_MIN_LENGTH} characters): ")
        if len(password) < PASSWORD_MIN_LENGTH:
            print("Password is too short. Please try again.")
            continue
        confirmation = getpass("Confirm password: ")
        if password != confirmation:
            print("Passwords do not match. Please try again.")
            continue
        return password
    return None


def _create_user(
    database: Database,
    fullname: str,
    email: str,
    *,
    username: str | None = None,
    phone: str | None = None,
) -> int:
    password = _prompt_for_password()
    if password is None:
        print("Aborted creating user.")
        return 1

    try:
        user = database.create_user(fullname, email, password, username=username, phone=phone)
    except (DuplicateEmailError, ValidationError) as exc:
        print(f"Failed to create user: {exc}")
        return 1

    print(f"Created user #{user.id}: {user.fullname} <{user.email}>")
    return 0


def _hash_password() -> int:
    password = _prompt_for_password("Admin password")
    if password is None:
        print("Aborted.")
        return 1
    print(hash_password(password))
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for CLI usage."""

    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")

    args = _parse_args(argv)

    if args.command == "hash-password":
        return _hash_password()

    settings = _load_settings(args.config)
    database = _initialise_database(settings)

    if args.command == "serve":
        _serve(settings=settings, database=database, host=args.host, port=args.port)
    elif args.command == "create-user":
        return _create_user(
            database,
            args.fullname,
            args.email,
            username=args.username,
            phone=args.phone,
        )
    elif args.command == "list-users":
        _list_users(database)
    elif args.command == "init-db":
        print("Database initialisation complete.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
