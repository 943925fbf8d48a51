"""Error kinds raised by the authentication and recovery services."""
from __future__ import annotations

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    VALIDATION_FAILED = "ValidationFailed"
    DUPLICATE_ACCOUNT = "DuplicateAccount"
    NOT_FOUND = "NotFound"
    INVALID_CREDENTIALS = "InvalidCredentials"
    INVALID_TOKEN = "InvalidToken"
    EXPIRED_TOKEN = "ExpiredToken"
    NO_PENDING_RESET = "NoPendingReset"
    INVALID_OTP = "InvalidOtp"
    EXPIRED_OTP = "ExpiredOtp"
    DISPATCH_FAILED = "DispatchFailed"
    STORE_UNAVAILABLE = "StoreUnavailable"


class AuthError(Exception):
    """Base class for failures the HTTP layer renders to callers.

    Each subclass fixes a :class:`ErrorKind`, a stable message and the status
    code the route layer responds with. Messages never include passwords,
    tokens or OTP codes.
    """

    kind: ErrorKind = ErrorKind.VALIDATION_FAILED
    status_code: int = 400
    default_message: str = "Request could not be processed"

    def __init__(self, message: Optional[str] = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationFailedError(AuthError):
    kind = ErrorKind.VALIDATION_FAILED
    status_code = 422
    default_message = "Request validation failed"


class DuplicateAccountError(AuthError):
    kind = ErrorKind.DUPLICATE_ACCOUNT
    status_code = 400
    default_message = "User already exists"


class AccountNotFoundError(AuthError):
    kind = ErrorKind.NOT_FOUND
    status_code = 404
    default_message = "User not found"


class InvalidCredentialsError(AuthError):
    kind = ErrorKind.INVALID_CREDENTIALS
    status_code = 400
    default_message = "Invalid Credentials"


class InvalidTokenError(AuthError):
    kind = ErrorKind.INVALID_TOKEN
    status_code = 401
    default_message = "Token is not valid"


class ExpiredTokenError(AuthError):
    kind = ErrorKind.EXPIRED_TOKEN
    status_code = 401
    default_message = "Token has expired"


class NoPendingResetError(AuthError):
    kind = ErrorKind.NO_PENDING_RESET
    status_code = 400
    default_message = "No password reset is pending for this account"


class InvalidOtpError(AuthError):
    kind = ErrorKind.INVALID_OTP
    status_code = 400
    default_message = "Invalid OTP"


class ExpiredOtpError(AuthError):
    kind = ErrorKind.EXPIRED_OTP
    status_code = 400
    default_message = "OTP has expired"


class DispatchFailedError(AuthError):
    kind = ErrorKind.DISPATCH_FAILED
    status_code = 502
    default_message = "Email sending failed"


class StoreUnavailableError(AuthError):
    kind = ErrorKind.STORE_UNAVAILABLE
    status_code = 503
    default_message = "Account storage is unavailable"


__all__ = [
    "AccountNotFoundError",
    "AuthError",
    "DispatchFailedError",
    "DuplicateAccountError",
    "ErrorKind",
    "ExpiredOtpError",
    "ExpiredTokenError",
    "InvalidCredentialsError",
    "InvalidOtpError",
    "InvalidTokenError",
    "NoPendingResetError",
    "StoreUnavailableError",
    "ValidationFailedError",
]
