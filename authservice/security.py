"""Session guard for routes that require a signed-in account."""

from typing import Optional

from fastapi import Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .errors import InvalidTokenError
from .tokens import TokenIssuer

TOKEN_HEADER = "x-auth-token"


class TokenAuth:
    """Resolve the bearer token on a request to the owning account id.

    Tokens are read from ``Authorization: Bearer <token>`` or, for older
    clients, the ``x-auth-token`` header. The resolved id is also attached to
    ``request.state.account_id``.
    """

    def __init__(self, tokens: TokenIssuer):
        self._tokens = tokens
        self._bearer = HTTPBearer(auto_error=False)

    async def __call__(self, request: Request) -> int:
        credentials: HTTPAuthorizationCredentials | None = await self._bearer(request)  # type: ignore[assignment]
        token: Optional[str] = None
        if credentials is not None and credentials.scheme.lower() == "bearer":
            token = credentials.credentials
        if not token:
            token = request.headers.get(TOKEN_HEADER)
        if not token:
            raise InvalidTokenError("No token, authorization denied")

        account_id = self._tokens.verify(token.strip())
        request.state.account_id = account_id
        return account_id


__all__ = ["TOKEN_HEADER", "TokenAuth"]
