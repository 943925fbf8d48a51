"""Domain models for registered accounts and pending password resets."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class PendingOtp:
    """A one-time passcode awaiting use for a password reset."""

    code: str
    issued_at: datetime

    def is_expired(self, now: datetime, ttl: timedelta) -> bool:
        return now - self.issued_at > ttl


@dataclass(frozen=True)
class Account:
    """Represents a user account stored in the account database.

    ``id`` is ``None`` until the store assigns one on insert.
    """

    name: str
    email: str
    role: str
    branch: str
    password_hash: str
    is_admin: bool = False
    pending_otp: Optional[PendingOtp] = None
    id: Optional[int] = None
    created_at: Optional[datetime] = None

    def with_pending_otp(self, otp: Optional[PendingOtp]) -> "Account":
        return replace(self, pending_otp=otp)

    def with_password_hash(self, password_hash: str) -> "Account":
        return replace(self, password_hash=password_hash)

    def to_public_dict(self) -> Dict[str, Any]:
        """Return the account fields that may be shown to callers."""

        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "branch": self.branch,
            "is_admin": self.is_admin,
            "created_at": self.created_at,
        }


__all__ = ["Account", "Clock", "PendingOtp", "utcnow"]
