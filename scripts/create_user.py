import argparse
import getpass
import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from resort.database import Database, resolve_database_path
from resort.errors import DuplicateEmailError, ValidationError


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create a resort guest account")
    parser.add_argument("fullname", help="Full name for the guest")
    parser.add_argument("email", help="Unique email address for login")
    parser.add_argument("--username", default=None, help="Optional username accepted at login")
    parser.add_argument(
        "--db",
        dest="db_path",
        default=None,
        help="Path to the SQLite database (defaults to RESORT_DB_PATH or data/resort.sqlite3)",
    )
    return parser.parse_args()


def prompt_for_password() -> str:
    for _ in range(3):
        password = getpass.getpass("Password: ")
        confirm = getpass.getpass("Confirm password: ")
        if password != confirm:
            print("Passwords do not match. Try again.", file=sys.stderr)
            continue
        if len(password) < 8:
            print("Password must be at least 8 characters long.", file=sys.stderr)
            continue
        return password
    raise SystemExit("Failed to set password after three attempts.")


def main() -> int:
    args = parse_args()
    password = prompt_for_password()

    db_env = args.db_path or os.getenv("RESORT_DB_PATH")
    db_path = resolve_database_path(db_env)

    database = Database(db_path)
    database.initialize()

    try:
        user = database.create_user(args.fullname, args.email, password, username=args.username)
    except (DuplicateEmailError, ValidationError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    print(f"Created user #{user.id}: {user.fullname} <{user.email}>")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
