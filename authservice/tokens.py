"""Signed session tokens for authenticated requests."""
from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, Dict, Optional

import jwt

from .errors import ExpiredTokenError, InvalidTokenError
from .models import Clock, utcnow

logger = logging.getLogger("authservice.tokens")

DEFAULT_ALGORITHM = "HS256"
SIGN_IN_TTL = timedelta(days=5)


class TokenIssuer:
    """Create and validate HMAC-signed JWTs that identify an account.

    The payload carries ``{"user": {"id": <account id>}}`` plus ``iat`` and,
    when a TTL is requested, ``exp``. The signing secret is fixed for the
    lifetime of the issuer.

    Expiry is evaluated against the injected clock rather than the library's
    own wall-clock read so that boundary behaviour is deterministic.
    """

    def __init__(
        self,
        secret: str,
        *,
        algorithm: str = DEFAULT_ALGORITHM,
        clock: Optional[Clock] = None,
    ) -> None:
        if not secret:
            raise ValueError("A token signing secret must be provided")
        self._secret = secret
        self._algorithm = algorithm
        self._clock = clock or utcnow

    def issue(self, account_id: int, ttl: Optional[timedelta] = None) -> str:
        now = self._clock()
        payload: Dict[str, Any] = {
            "user": {"id": account_id},
            "iat": int(now.timestamp()),
        }
        if ttl is not None:
            payload["exp"] = int((now + ttl).timestamp())
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def verify(self, token: str) -> int:
        """Return the account id carried by ``token``.

        Raises :class:`InvalidTokenError` for anything that fails signature or
        shape checks, and :class:`ExpiredTokenError` once ``exp`` has passed.
        """

        if not token:
            raise InvalidTokenError()
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                options={"verify_exp": False, "verify_iat": False, "verify_nbf": False},
            )
        except jwt.InvalidTokenError as exc:
            logger.debug("Rejected session token: %s", type(exc).__name__)
            raise InvalidTokenError() from exc

        account_id = self._extract_account_id(payload)

        expires = payload.get("exp")
        if expires is not None:
            if not isinstance(expires, (int, float)):
                raise InvalidTokenError()
            if self._clock().timestamp() >= expires:
                raise ExpiredTokenError()

        return account_id

    @staticmethod
    def _extract_account_id(payload: Dict[str, Any]) -> int:
        user = payload.get("user")
        if not isinstance(user, dict):
            raise InvalidTokenError()
        account_id = user.get("id")
        if isinstance(account_id, bool) or not isinstance(account_id, int):
            raise InvalidTokenError()
        return account_id


__all__ = ["DEFAULT_ALGORITHM", "SIGN_IN_TTL", "TokenIssuer"]
