"""Outbound mail delivery used by the password recovery flow."""
from __future__ import annotations

import logging
import smtplib
import ssl
from email.message import EmailMessage
from typing import Optional, Protocol

import anyio

logger = logging.getLogger("authservice.mail")


class MailDispatchError(RuntimeError):
    """Raised when a message could not be handed to the mail transport."""


class MailDispatcher(Protocol):
    async def send(self, to_address: str, subject: str, body: str) -> None:
        """Deliver a plain-text message or raise :class:`MailDispatchError`."""


class SMTPMailDispatcher:
    """Deliver plain-text messages through an SMTP relay.

    ``smtplib`` blocks, so each delivery runs on an anyio worker thread.
    Failures are reported to the caller and never retried here.
    """

    def __init__(
        self,
        *,
        host: str,
        sender: str,
        port: int = 587,
        username: Optional[str] = None,
        password: Optional[str] = None,
        use_starttls: bool = True,
        timeout: float = 10.0,
    ) -> None:
        if not host:
            raise ValueError("An SMTP host must be configured")
        if not sender:
            raise ValueError("A sender address must be configured")
        self._host = host
        self._port = port
        self._sender = sender
        self._username = username
        self._password = password
        self._use_starttls = use_starttls
        self._timeout = timeout

    def build_message(self, to_address: str, subject: str, body: str) -> EmailMessage:
        message = EmailMessage()
        message["From"] = self._sender
        message["To"] = to_address
        message["Subject"] = subject
        message.set_content(body)
        return message

    async def send(self, to_address: str, subject: str, body: str) -> None:
        message = self.build_message(to_address, subject, body)
        await anyio.to_thread.run_sync(self._deliver, message)
        logger.info("Delivered '%s' message to %s", subject, to_address)

    def _deliver(self, message: EmailMessage) -> None:
        try:
            with smtplib.SMTP(self._host, self._port, timeout=self._timeout) as client:
                if self._use_starttls:
                    client.starttls(context=ssl.create_default_context())
                if self._username and self._password:
                    client.login(self._username, self._password)
                client.send_message(message)
        except (smtplib.SMTPException, OSError) as exc:
            raise MailDispatchError(f"SMTP delivery via {self._host}:{self._port} failed") from exc


__all__ = ["MailDispatchError", "MailDispatcher", "SMTPMailDispatcher"]
