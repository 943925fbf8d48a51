"""Application factory that wires configuration, storage and services together."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Mapping, Optional

from fastapi import FastAPI

from .api import create_app
from .config import MailSettings, Settings, load_settings
from .database import AccountStore, Database
from .mail import MailDispatchError, MailDispatcher, SMTPMailDispatcher
from .models import Clock
from .passwords import CredentialHasher
from .recovery import RecoveryService
from .services import EnrollmentService, VerificationService
from .tokens import TokenIssuer

logger = logging.getLogger("authservice.application")


class UnconfiguredMailDispatcher:
    """Stand-in used when no SMTP relay is configured; every send fails."""

    async def send(self, to_address: str, subject: str, body: str) -> None:
        raise MailDispatchError("No SMTP relay is configured")


@dataclass(frozen=True)
class ServiceContainer:
    store: AccountStore
    hasher: CredentialHasher
    tokens: TokenIssuer
    enrollment: EnrollmentService
    verification: VerificationService
    recovery: RecoveryService


def build_mail_dispatcher(settings: MailSettings) -> MailDispatcher:
    if not settings.configured:
        logger.warning(
            "No SMTP relay configured; password reset emails cannot be delivered."
            " Set AUTH_SMTP_HOST and AUTH_MAIL_SENDER."
        )
        return UnconfiguredMailDispatcher()
    return SMTPMailDispatcher(
        host=settings.host or "",
        port=settings.port,
        username=settings.username,
        password=settings.password,
        sender=settings.sender or "",
        use_starttls=settings.starttls,
    )


def build_services(
    settings: Settings,
    *,
    database: Optional[Database] = None,
    mailer: Optional[MailDispatcher] = None,
    hasher: Optional[CredentialHasher] = None,
    clock: Optional[Clock] = None,
) -> ServiceContainer:
    db = database or Database(settings.database_path)
    db.initialize()

    store = AccountStore(db)
    password_hasher = hasher or CredentialHasher()
    tokens = TokenIssuer(settings.jwt_secret, clock=clock)
    dispatcher = mailer or build_mail_dispatcher(settings.mail)

    return ServiceContainer(
        store=store,
        hasher=password_hasher,
        tokens=tokens,
        enrollment=EnrollmentService(store, password_hasher, tokens),
        verification=VerificationService(
            store, password_hasher, tokens, session_ttl=settings.session_ttl
        ),
        recovery=RecoveryService(
            store, password_hasher, dispatcher, otp_ttl=settings.otp_ttl, clock=clock
        ),
    )


def create_application(
    *,
    settings: Optional[Settings] = None,
    environ: Optional[Mapping[str, str]] = None,
    database: Optional[Database] = None,
    mailer: Optional[MailDispatcher] = None,
    hasher: Optional[CredentialHasher] = None,
    clock: Optional[Clock] = None,
) -> FastAPI:
    """Create the ASGI application from settings or the process environment."""

    resolved = settings or load_settings(environ)
    services = build_services(
        resolved, database=database, mailer=mailer, hasher=hasher, clock=clock
    )
    logger.info("Account database ready at %s", services.store.database.path)

    app = create_app(
        enrollment=services.enrollment,
        verification=services.verification,
        recovery=services.recovery,
        tokens=services.tokens,
    )
    app.state.services = services
    return app


__all__ = [
    "ServiceContainer",
    "UnconfiguredMailDispatcher",
    "build_mail_dispatcher",
    "build_services",
    "create_application",
]
