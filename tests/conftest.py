from __future__ import annotations

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import List, Tuple

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from authservice.database import AccountStore, Database
from authservice.mail import MailDispatchError
from authservice.passwords import CredentialHasher
from authservice.tokens import TokenIssuer

TEST_SECRET = "tests-signing-secret-0123456789abcdef"
START = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Deterministic clock that only moves when a test advances it."""

    def __init__(self, start: datetime = START) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


class RecordingMailer:
    def __init__(self) -> None:
        self.sent: List[Tuple[str, str, str]] = []
        self.fail = False

    async def send(self, to_address: str, subject: str, body: str) -> None:
        if self.fail:
            raise MailDispatchError("relay refused the message")
        self.sent.append((to_address, subject, body))

    @property
    def last_code(self) -> str:
        _, _, body = self.sent[-1]
        return body.rsplit(" ", 1)[-1]


@pytest.fixture()
def database(tmp_path: Path) -> Database:
    db = Database(tmp_path / "auth.sqlite3")
    db.initialize()
    return db


@pytest.fixture()
def store(database: Database) -> AccountStore:
    return AccountStore(database)


@pytest.fixture()
def hasher() -> CredentialHasher:
    # Minimum bcrypt cost keeps the suite fast; the default cost is asserted separately.
    return CredentialHasher(rounds=4)


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def tokens(clock: FakeClock) -> TokenIssuer:
    return TokenIssuer(TEST_SECRET, clock=clock)


@pytest.fixture()
def mailer() -> RecordingMailer:
    return RecordingMailer()
