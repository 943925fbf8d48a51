"""FastAPI application exposing account sign-up, sign-in and password recovery."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Dict, Optional, Union

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, EmailStr, Field, field_validator

from .errors import AuthError, ValidationFailedError
from .models import Account
from .recovery import RecoveryService
from .security import TokenAuth
from .services import EnrollmentService, VerificationService
from .tokens import TokenIssuer

logger = logging.getLogger("authservice.api")

MIN_PASSWORD_LENGTH = 6


def _require_text(value: str, field: str) -> str:
    stripped = value.strip()
    if not stripped:
        raise ValueError(f"{field} is required")
    return stripped


class SignupRequest(BaseModel):
    name: str = Field(..., max_length=200)
    email: EmailStr
    password: str = Field(..., min_length=MIN_PASSWORD_LENGTH, max_length=72)
    role: str = Field(..., max_length=100)
    branch: str = Field(..., max_length=100)

    @field_validator("name")
    @classmethod
    def _normalize_name(cls, value: str) -> str:
        return _require_text(value, "Name")

    @field_validator("role")
    @classmethod
    def _normalize_role(cls, value: str) -> str:
        return _require_text(value, "Role")

    @field_validator("branch")
    @classmethod
    def _normalize_branch(cls, value: str) -> str:
        return _require_text(value, "Branch")


class SigninRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=72)


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    email: EmailStr
    otp: str = Field(..., min_length=1, max_length=12)
    new_password: str = Field(..., min_length=MIN_PASSWORD_LENGTH, max_length=72)

    @field_validator("otp", mode="before")
    @classmethod
    def _normalize_otp(cls, value: Union[str, int]) -> str:
        if isinstance(value, bool) or not isinstance(value, (str, int)):
            raise ValueError("otp must be a string or integer")
        return str(value).strip()


class AccountResponse(BaseModel):
    id: int
    name: str
    email: str
    role: str
    branch: str
    is_admin: bool
    created_at: Optional[datetime] = None


class TokenResponse(BaseModel):
    token: str


class SignupResponse(TokenResponse):
    user: AccountResponse


class MessageResponse(BaseModel):
    message: str


def _account_to_response(account: Account) -> AccountResponse:
    return AccountResponse(**account.to_public_dict())


def build_router(
    *,
    enrollment: EnrollmentService,
    verification: VerificationService,
    recovery: RecoveryService,
    tokens: TokenIssuer,
) -> APIRouter:
    router = APIRouter()
    current_account_id = TokenAuth(tokens)

    @router.post("/signup", response_model=SignupResponse)
    async def signup(request: SignupRequest) -> SignupResponse:
        result = await enrollment.enroll(
            name=request.name,
            email=str(request.email),
            password=request.password,
            role=request.role,
            branch=request.branch,
        )
        return SignupResponse(token=result.token, user=_account_to_response(result.account))

    @router.post("/signin", response_model=TokenResponse)
    async def signin(request: SigninRequest) -> TokenResponse:
        token = await verification.verify(str(request.email), request.password)
        return TokenResponse(token=token)

    @router.get("/me", response_model=AccountResponse)
    async def me(account_id: int = Depends(current_account_id)) -> AccountResponse:
        account = await verification.current_account(account_id)
        return _account_to_response(account)

    @router.post("/forgot-password", response_model=MessageResponse)
    async def forgot_password(request: ForgotPasswordRequest) -> MessageResponse:
        await recovery.request_reset(str(request.email))
        return MessageResponse(message="OTP sent to your email")

    @router.post("/reset-password", response_model=MessageResponse)
    async def reset_password(request: ResetPasswordRequest) -> MessageResponse:
        await recovery.reset_password(str(request.email), request.otp, request.new_password)
        return MessageResponse(message="Password reset successful")

    return router


async def _handle_auth_error(request: Request, exc: AuthError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.kind.value)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "code": exc.kind.value},
    )


async def _handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    failure = ValidationFailedError()
    return JSONResponse(
        status_code=failure.status_code,
        content={
            "detail": failure.message,
            "code": failure.kind.value,
            "errors": jsonable_encoder(exc.errors()),
        },
    )


def create_app(
    *,
    enrollment: EnrollmentService,
    verification: VerificationService,
    recovery: RecoveryService,
    tokens: TokenIssuer,
) -> FastAPI:
    """Instantiate the FastAPI application for account authentication."""

    app = FastAPI(
        title="Account Authentication Service",
        version="0.1.0",
        description="Sign-up, sign-in and email-based password recovery.",
    )

    @app.get("/healthz")
    async def healthcheck() -> Dict[str, str]:
        return {"status": "ok"}

    app.add_exception_handler(AuthError, _handle_auth_error)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _handle_validation_error)  # type: ignore[arg-type]
    app.include_router(
        build_router(
            enrollment=enrollment,
            verification=verification,
            recovery=recovery,
            tokens=tokens,
        ),
        prefix="/api/auth",
        tags=["auth"],
    )

    app.state.enrollment = enrollment
    app.state.verification = verification
    app.state.recovery = recovery
    app.state.tokens = tokens
    return app


__all__ = ["create_app", "build_router", "MIN_PASSWORD_LENGTH"]
