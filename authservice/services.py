"""Account enrollment and sign-in."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta

from .database import AccountStore
from .errors import AccountNotFoundError, DuplicateAccountError, InvalidCredentialsError
from .models import Account
from .passwords import CredentialHasher
from .tokens import SIGN_IN_TTL, TokenIssuer

logger = logging.getLogger("authservice.services")


@dataclass(frozen=True)
class EnrollmentResult:
    account: Account
    token: str


async def register_account(
    store: AccountStore,
    hasher: CredentialHasher,
    *,
    name: str,
    email: str,
    password: str,
    role: str,
    branch: str,
    is_admin: bool = False,
) -> Account:
    """Store a new account in a single write.

    Raises :class:`DuplicateAccountError` when the email is already taken.
    """

    existing = await store.find_by_email(email)
    if existing is not None:
        logger.info("Rejected enrollment for %s: account already exists", email)
        raise DuplicateAccountError()

    account = Account(
        name=name,
        email=email,
        role=role,
        branch=branch,
        password_hash=hasher.hash(password),
        is_admin=is_admin,
    )
    # A concurrent insert of the same email is reported by the store.
    stored = await store.save(account)
    logger.info("Enrolled account %s", stored.id)
    return stored


class EnrollmentService:
    """Create new accounts, rejecting emails that are already registered."""

    def __init__(self, store: AccountStore, hasher: CredentialHasher, tokens: TokenIssuer) -> None:
        self._store = store
        self._hasher = hasher
        self._tokens = tokens

    async def enroll(
        self,
        name: str,
        email: str,
        password: str,
        role: str,
        branch: str,
    ) -> EnrollmentResult:
        stored = await register_account(
            self._store,
            self._hasher,
            name=name,
            email=email,
            password=password,
            role=role,
            branch=branch,
        )
        token = self._tokens.issue(int(stored.id))  # type: ignore[arg-type]
        return EnrollmentResult(account=stored, token=token)


class VerificationService:
    """Authenticate existing accounts and resolve session owners."""

    def __init__(
        self,
        store: AccountStore,
        hasher: CredentialHasher,
        tokens: TokenIssuer,
        *,
        session_ttl: timedelta = SIGN_IN_TTL,
    ) -> None:
        self._store = store
        self._hasher = hasher
        self._tokens = tokens
        self._session_ttl = session_ttl

    async def verify(self, email: str, password: str) -> str:
        """Return a session token for valid credentials."""

        account = await self._store.find_by_email(email)
        if account is None:
            raise AccountNotFoundError("Email does not exist")

        if not self._hasher.verify(password, account.password_hash):
            logger.warning("Failed sign-in attempt for account %s", account.id)
            raise InvalidCredentialsError()

        logger.info("Account %s signed in", account.id)
        return self._tokens.issue(int(account.id), ttl=self._session_ttl)  # type: ignore[arg-type]

    async def current_account(self, account_id: int) -> Account:
        account = await self._store.find_by_id(account_id)
        if account is None:
            raise AccountNotFoundError()
        return account


__all__ = ["EnrollmentResult", "EnrollmentService", "VerificationService", "register_account"]
