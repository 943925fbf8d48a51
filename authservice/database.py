"""SQLite-backed persistence for accounts."""
from __future__ import annotations

import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

import anyio

from .errors import AccountNotFoundError, DuplicateAccountError, StoreUnavailableError
from .models import Account, PendingOtp


def _ensure_directory(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def resolve_database_path(env_value: Optional[str]) -> Path:
    """Resolve the on-disk path for the account database."""

    if env_value:
        return Path(env_value).expanduser().resolve(strict=False)
    base_dir = Path(__file__).resolve().parent.parent / "data"
    return (base_dir / "auth.sqlite3").resolve(strict=False)


def normalize_email(email: str) -> str:
    return email.strip().lower()


def _current_timestamp() -> datetime:
    return datetime.now(timezone.utc)


def _serialize_datetime(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.isoformat()


def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value)


class Database:
    """Simple wrapper around SQLite for persisting accounts.

    Every method opens a short-lived connection, so each call is atomic for
    the single account row it touches. Email addresses are lower-cased before
    they are stored or looked up.
    """

    def __init__(self, path: Path) -> None:
        _ensure_directory(path)
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    def initialize(self) -> None:
        """Create the required tables if they do not already exist."""

        with self._connect() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS accounts (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL,
                    email TEXT NOT NULL UNIQUE,
                    role TEXT NOT NULL,
                    branch TEXT NOT NULL,
                    password_hash TEXT NOT NULL,
                    is_admin INTEGER NOT NULL DEFAULT 0,
                    otp_code TEXT,
                    otp_issued_at TEXT,
                    created_at TEXT NOT NULL
                );
                """
            )

            columns = {
                row["name"]
                for row in conn.execute("PRAGMA table_info(accounts)").fetchall()
            }
            if "otp_code" not in columns:
                conn.execute("ALTER TABLE accounts ADD COLUMN otp_code TEXT")
            if "otp_issued_at" not in columns:
                conn.execute("ALTER TABLE accounts ADD COLUMN otp_issued_at TEXT")

    # ------------------------------------------------------------------
    # Account management
    # ------------------------------------------------------------------
    def get_account(self, account_id: int) -> Optional[Account]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM accounts WHERE id = ?", (account_id,)).fetchone()
        if row is None:
            return None
        return self._row_to_account(row)

    def get_account_by_email(self, email: str) -> Optional[Account]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM accounts WHERE email = ?",
                (normalize_email(email),),
            ).fetchone()
        if row is None:
            return None
        return self._row_to_account(row)

    def list_accounts(self) -> List[Account]:
        with self._connect() as conn:
            rows = conn.execute("SELECT * FROM accounts ORDER BY id").fetchall()
        return [self._row_to_account(row) for row in rows]

    def save_account(self, account: Account) -> Account:
        """Insert ``account`` when it has no id yet, otherwise update it in place."""

        if account.id is None:
            return self._insert_account(account)
        return self._update_account(account)

    def set_pending_otp(self, account_id: int, otp: Optional[PendingOtp]) -> Account:
        """Replace only the pending OTP columns of an account."""

        with self._connect() as conn:
            cursor = conn.execute(
                "UPDATE accounts SET otp_code = ?, otp_issued_at = ? WHERE id = ?",
                (
                    otp.code if otp else None,
                    _serialize_datetime(otp.issued_at) if otp else None,
                    account_id,
                ),
            )
            if cursor.rowcount == 0:
                raise AccountNotFoundError()

        refreshed = self.get_account(account_id)
        if refreshed is None:
            raise AccountNotFoundError()
        return refreshed

    def consume_pending_otp(self, account_id: int, otp: PendingOtp, password_hash: str) -> bool:
        """Swap in ``password_hash`` and clear ``otp`` if it is still the pending code.

        Returns ``False`` when the code was consumed or superseded in the
        meantime, in which case nothing is written.
        """

        with self._connect() as conn:
            cursor = conn.execute(
                """
                UPDATE accounts
                   SET password_hash = ?, otp_code = NULL, otp_issued_at = NULL
                 WHERE id = ? AND otp_code = ? AND otp_issued_at = ?
                """,
                (password_hash, account_id, otp.code, _serialize_datetime(otp.issued_at)),
            )
            return cursor.rowcount == 1

    def _insert_account(self, account: Account) -> Account:
        created_at = account.created_at or _current_timestamp()
        normalized_email = normalize_email(account.email)
        otp = account.pending_otp

        with self._connect() as conn:
            try:
                cursor = conn.execute(
                    """
                    INSERT INTO accounts (
                        name,
                        email,
                        role,
                        branch,
                        password_hash,
                        is_admin,
                        otp_code,
                        otp_issued_at,
                        created_at
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        account.name,
                        normalized_email,
                        account.role,
                        account.branch,
                        account.password_hash,
                        int(bool(account.is_admin)),
                        otp.code if otp else None,
                        _serialize_datetime(otp.issued_at) if otp else None,
                        _serialize_datetime(created_at),
                    ),
                )
            except sqlite3.IntegrityError as exc:
                raise DuplicateAccountError() from exc

            account_id = cursor.lastrowid

        stored = self.get_account(account_id)
        if stored is None:
            raise RuntimeError("Failed to load account after creation")
        return stored

    def _update_account(self, account: Account) -> Account:
        otp = account.pending_otp
        with self._connect() as conn:
            try:
                cursor = conn.execute(
                    """
                    UPDATE accounts
                       SET name = ?, email = ?, role = ?, branch = ?, password_hash = ?,
                           is_admin = ?, otp_code = ?, otp_issued_at = ?
                     WHERE id = ?
                    """,
                    (
                        account.name,
                        normalize_email(account.email),
                        account.role,
                        account.branch,
                        account.password_hash,
                        int(bool(account.is_admin)),
                        otp.code if otp else None,
                        _serialize_datetime(otp.issued_at) if otp else None,
                        account.id,
                    ),
                )
            except sqlite3.IntegrityError as exc:
                raise DuplicateAccountError() from exc
            if cursor.rowcount == 0:
                raise AccountNotFoundError()

        refreshed = self.get_account(int(account.id))  # type: ignore[arg-type]
        if refreshed is None:
            raise AccountNotFoundError()
        return refreshed

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _row_to_account(self, row: sqlite3.Row) -> Account:
        otp: Optional[PendingOtp] = None
        if row["otp_code"] and row["otp_issued_at"]:
            otp = PendingOtp(
                code=str(row["otp_code"]),
                issued_at=_parse_datetime(str(row["otp_issued_at"])),  # type: ignore[arg-type]
            )
        return Account(
            id=int(row["id"]),
            name=str(row["name"]),
            email=str(row["email"]),
            role=str(row["role"]),
            branch=str(row["branch"]),
            password_hash=str(row["password_hash"]),
            is_admin=bool(row["is_admin"]),
            pending_otp=otp,
            created_at=_parse_datetime(str(row["created_at"])),
        )


class AccountStore:
    """Asynchronous facade over :class:`Database` used by the services.

    Queries run on worker threads so the event loop is never blocked, and
    driver failures surface as :class:`StoreUnavailableError`.
    """

    def __init__(self, database: Database) -> None:
        self._database = database

    @property
    def database(self) -> Database:
        return self._database

    async def find_by_email(self, email: str) -> Optional[Account]:
        return await self._run(self._database.get_account_by_email, email)

    async def find_by_id(self, account_id: int) -> Optional[Account]:
        return await self._run(self._database.get_account, account_id)

    async def save(self, account: Account) -> Account:
        return await self._run(self._database.save_account, account)

    async def list_accounts(self) -> List[Account]:
        return await self._run(self._database.list_accounts)

    async def set_pending_otp(self, account_id: int, otp: Optional[PendingOtp]) -> Account:
        return await self._run(self._database.set_pending_otp, account_id, otp)

    async def consume_pending_otp(self, account_id: int, otp: PendingOtp, password_hash: str) -> bool:
        return await self._run(self._database.consume_pending_otp, account_id, otp, password_hash)

    async def _run(self, func, *args):
        try:
            return await anyio.to_thread.run_sync(func, *args)
        except sqlite3.Error as exc:
            raise StoreUnavailableError() from exc


__all__ = ["AccountStore", "Database", "normalize_email", "resolve_database_path"]
