"""One-way password hashing backed by bcrypt."""
from __future__ import annotations

from passlib.context import CryptContext

BCRYPT_ROUNDS = 12


class CredentialHasher:
    """Hash and verify account passwords.

    Every hash carries its own random salt, so hashing the same password twice
    yields different strings that both verify.
    """

    def __init__(self, *, rounds: int = BCRYPT_ROUNDS) -> None:
        self._context = CryptContext(
            schemes=["bcrypt"],
            deprecated="auto",
            bcrypt__ident="2b",
            bcrypt__rounds=rounds,
        )

    def hash(self, plaintext: str) -> str:
        if not plaintext:
            raise ValueError("Password must not be empty")
        return self._context.hash(plaintext)

    def verify(self, plaintext: str, hashed: str) -> bool:
        if not plaintext or not hashed:
            return False
        try:
            return self._context.verify(plaintext, hashed)
        except (ValueError, TypeError):
            # Unknown or malformed hash formats never match.
            return False


_default_hasher = CredentialHasher()


def hash_password(password: str) -> str:
    return _default_hasher.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    return _default_hasher.verify(password, hashed)


__all__ = ["BCRYPT_ROUNDS", "CredentialHasher", "hash_password", "verify_password"]
