"""Password recovery through emailed one-time passcodes.

Each account is either idle or holds exactly one pending OTP. Requesting a
reset stores a fresh code (replacing any earlier one) and mails it to the
account's address. Resetting consumes the stored code: it must match, must
not be older than the TTL, and is cleared once the new password is saved.
"""

from __future__ import annotations

import hmac
import logging
import secrets
from datetime import timedelta
from typing import Optional

from .database import AccountStore
from .errors import (
    AccountNotFoundError,
    DispatchFailedError,
    ExpiredOtpError,
    InvalidOtpError,
    NoPendingResetError,
)
from .mail import MailDispatchError, MailDispatcher
from .models import Clock, PendingOtp, utcnow
from .passwords import CredentialHasher

logger = logging.getLogger("authservice.recovery")

OTP_TTL = timedelta(minutes=10)
OTP_LENGTH = 6
RESET_SUBJECT = "Reset Password OTP"


def generate_otp(length: int = OTP_LENGTH) -> str:
    """Return a uniformly random numeric code without a leading zero."""

    lower = 10 ** (length - 1)
    return str(lower + secrets.randbelow(9 * lower))


class RecoveryService:
    def __init__(
        self,
        store: AccountStore,
        hasher: CredentialHasher,
        mailer: MailDispatcher,
        *,
        otp_ttl: timedelta = OTP_TTL,
        otp_length: int = OTP_LENGTH,
        clock: Optional[Clock] = None,
    ) -> None:
        if otp_length < 1:
            raise ValueError("OTP length must be positive")
        self._store = store
        self._hasher = hasher
        self._mailer = mailer
        self._otp_ttl = otp_ttl
        self._otp_length = otp_length
        self._clock = clock or utcnow

    async def request_reset(self, email: str) -> PendingOtp:
        account = await self._store.find_by_email(email)
        if account is None:
            raise AccountNotFoundError()

        otp = PendingOtp(code=generate_otp(self._otp_length), issued_at=self._clock())
        account = await self._store.set_pending_otp(account.id, otp)
        logger.info("Issued password reset code for account %s", account.id)

        try:
            await self._mailer.send(account.email, RESET_SUBJECT, f"Your OTP is: {otp.code}")
        except MailDispatchError as exc:
            # The stored code stays valid until superseded or expired.
            logger.error("Could not deliver reset code for account %s: %s", account.id, exc)
            raise DispatchFailedError() from exc

        return otp

    async def reset_password(self, email: str, code: str, new_password: str) -> None:
        account = await self._store.find_by_email(email)
        if account is None:
            raise AccountNotFoundError()

        pending = account.pending_otp
        if pending is None:
            raise NoPendingResetError()

        if not hmac.compare_digest(str(code).strip().encode("utf-8"), pending.code.encode("utf-8")):
            logger.warning("Invalid reset code submitted for account %s", account.id)
            raise InvalidOtpError()

        if pending.is_expired(self._clock(), self._otp_ttl):
            logger.info("Expired reset code submitted for account %s", account.id)
            raise ExpiredOtpError()

        password_hash = self._hasher.hash(new_password)
        if not await self._store.consume_pending_otp(account.id, pending, password_hash):
            # Another reset consumed or replaced the code after it was read.
            current = await self._store.find_by_id(account.id)
            if current is None:
                raise AccountNotFoundError()
            if current.pending_otp is None:
                raise NoPendingResetError()
            raise InvalidOtpError()
        logger.info("Password reset completed for account %s", account.id)


__all__ = ["OTP_LENGTH", "OTP_TTL", "RESET_SUBJECT", "RecoveryService", "generate_otp"]
