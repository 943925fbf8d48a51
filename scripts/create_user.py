import argparse
import getpass
import os
import sys
from pathlib import Path

import anyio

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from authservice.database import AccountStore, Database, resolve_database_path
from authservice.errors import AuthError
from authservice.passwords import CredentialHasher
from authservice.services import register_account

MIN_PASSWORD_LENGTH = 6


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create an account for the authentication service")
    parser.add_argument("name", help="Display name for the user")
    parser.add_argument("email", help="Unique email address for login")
    parser.add_argument("--role", required=True, help="Role recorded on the account")
    parser.add_argument("--branch", required=True, help="Branch recorded on the account")
    parser.add_argument(
        "--admin",
        action="store_true",
        help="Mark the new account as an administrator",
    )
    parser.add_argument(
        "--db",
        dest="db_path",
        default=None,
        help="Path to the SQLite database (defaults to AUTH_DB_PATH or data/auth.sqlite3)",
    )
    return parser.parse_args()


def prompt_for_password() -> str:
    for _ in range(3):
        password = getpass.getpass("Password: ")
        confirm = getpass.getpass("Confirm password: ")
        if password != confirm:
            print("Passwords do not match. Try again.", file=sys.stderr)
            continue
        if len(password) < MIN_PASSWORD_LENGTH:
            print(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long.", file=sys.stderr)
            continue
        return password
    raise SystemExit("Failed to set password after three attempts.")


async def create_account(
    store: AccountStore,
    *,
    name: str,
    email: str,
    password: str,
    role: str,
    branch: str,
    admin: bool,
):
    return await register_account(
        store,
        CredentialHasher(),
        name=name,
        email=email,
        password=password,
        role=role,
        branch=branch,
        is_admin=admin,
    )


def main() -> int:
    args = parse_args()
    password = prompt_for_password()

    db_env = args.db_path or os.getenv("AUTH_DB_PATH")
    db_path = resolve_database_path(db_env)

    database = Database(db_path)
    database.initialize()
    store = AccountStore(database)

    try:
        account = anyio.run(
            lambda: create_account(
                store,
                name=args.name.strip(),
                email=args.email.strip().lower(),
                password=password,
                role=args.role.strip(),
                branch=args.branch.strip(),
                admin=args.admin,
            )
        )
    except AuthError as exc:
        print(f"Error: {exc.message}", file=sys.stderr)
        return 1

    suffix = " (admin)" if account.is_admin else ""
    print(f"Created user #{account.id}: {account.name} <{account.email}>{suffix}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
