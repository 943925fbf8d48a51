"""Command-line interface for the account authentication service."""

from __future__ import annotations
import argparse
import logging
import os
import sys
from typing import Sequence

from authservice.database import Database, resolve_database_path

logger = logging.getLogger("authservice.main")


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Account authentication service utilities")
    subparsers = parser.add_subparsers(dest="command")

    parser.set_defaults(command="serve")

    subparsers.add_parser("init-db", help="Initialise the account database")
    subparsers.add_parser("list-users", help="List registered accounts")

    serve_parser = subparsers.add_parser("serve", help="Start the HTTP authentication service")
    serve_parser.add_argument("--host", default="0.0.0.0", help="Bind address for the API")
    serve_parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port for the HTTP API (default: 8000)",
    )
    serve_parser.add_argument(
        "--ssl-certfile",
        default=None,
        help="Path to the TLS certificate chain in PEM format",
    )
    serve_parser.add_argument(
        "--ssl-keyfile",
        default=None,
        help="Path to the TLS private key in PEM format",
    )

    args_list = list(argv) if argv is not None else sys.argv[1:]
    known_commands = {"serve", "init-db", "list-users"}

    if not args_list:
        args_list = ["serve"]
    else:
        first = args_list[0]
        if first in ("-h", "--help"):
            return parser.parse_args(args_list)
        if first not in known_commands:
            if any(flag in args_list for flag in ("-h", "--help")):
                return parser.parse_args(args_list)
            args_list = ["serve", *args_list]

    return parser.parse_args(args_list)


def _initialise_database() -> Database:
    db_path = resolve_database_path(os.getenv("AUTH_DB_PATH"))
    database = Database(db_path)
    database.initialize()
    logger.info("Database initialised at %s", db_path)
    return database


def _list_users(database: Database) -> None:
    accounts = database.list_accounts()
    if not accounts:
        print("No users are currently registered.")
        return

    print(f"{len(accounts)} user(s) found:")
    print(f"{'ID':>4}  {'Name':<24}  {'Email':<32}  {'Role':<12}  Admin")
    print("-" * 84)
    for account in accounts:
        admin = "yes" if account.is_admin else "no"
        print(f"{account.id:>4}  {account.name:<24}  {account.email:<32}  {account.role:<12}  {admin}")


def _serve(
    *,
    host: str,
    port: int,
    ssl_certfile: str | None,
    ssl_keyfile: str | None,
) -> None:
    from authservice.application import create_application
    import uvicorn

    if bool(ssl_certfile) ^ bool(ssl_keyfile):
        raise SystemExit("Both --ssl-certfile and --ssl-keyfile must be provided together.")

    try:
        app = create_application()
    except ValueError as exc:
        raise SystemExit(f"Invalid configuration: {exc}") from exc

    protocol = "https" if ssl_certfile and ssl_keyfile else "http"
    logger.info("Starting authentication API on %s://%s:%s", protocol, host, port)

    uvicorn.run(
        app,
        host=host,
        port=port,
        log_level="info",
        ssl_certfile=ssl_certfile,
        ssl_keyfile=ssl_keyfile,
    )


def main(argv: Sequence[str] | None = None) -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")
    args = _parse_args(argv)

    if args.command == "init-db":
        _initialise_database()
        return 0

    if args.command == "list-users":
        _list_users(_initialise_database())
        return 0

    _serve(
        host=args.host,
        port=args.port,
        ssl_certfile=args.ssl_certfile,
        ssl_keyfile=args.ssl_keyfile,
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
