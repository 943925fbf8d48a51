from __future__ import annotations

import smtplib
from typing import List

import anyio
import pytest

from authservice import mail
from authservice.mail import MailDispatchError, SMTPMailDispatcher


class FakeSMTP:
    instances: List["FakeSMTP"] = []
    refuse = False

    def __init__(self, host: str, port: int, timeout: float) -> None:
        self.host = host
        self.port = port
        self.timeout = timeout
        self.started_tls = False
        self.login_args = None
        self.messages = []
        FakeSMTP.instances.append(self)

    def __enter__(self) -> "FakeSMTP":
        return self

    def __exit__(self, *exc_info) -> None:
        return None

    def starttls(self, context=None) -> None:
        self.started_tls = True

    def login(self, username: str, password: str) -> None:
        self.login_args = (username, password)

    def send_message(self, message) -> None:
        if FakeSMTP.refuse:
            raise smtplib.SMTPRecipientsRefused({message["To"]: (550, b"no such user")})
        self.messages.append(message)


@pytest.fixture(autouse=True)
def fake_smtp(monkeypatch):
    FakeSMTP.instances = []
    FakeSMTP.refuse = False
    monkeypatch.setattr(mail.smtplib, "SMTP", FakeSMTP)
    return FakeSMTP


def _dispatcher(**overrides) -> SMTPMailDispatcher:
    options = {
        "host": "smtp.example.com",
        "port": 2525,
        "sender": "noreply@example.com",
        "username": "mailer",
        "password": "mail-password",
    }
    options.update(overrides)
    return SMTPMailDispatcher(**options)


def test_send_delivers_plain_text_message() -> None:
    anyio.run(_dispatcher().send, "a@x.com", "Reset Password OTP", "Your OTP is: 123456")

    (client,) = FakeSMTP.instances
    assert (client.host, client.port) == ("smtp.example.com", 2525)
    assert client.started_tls
    assert client.login_args == ("mailer", "mail-password")

    (message,) = client.messages
    assert message["From"] == "noreply@example.com"
    assert message["To"] == "a@x.com"
    assert message["Subject"] == "Reset Password OTP"
    assert message.get_content().strip() == "Your OTP is: 123456"


def test_login_and_tls_are_optional() -> None:
    dispatcher = _dispatcher(username=None, password=None, use_starttls=False)
    anyio.run(dispatcher.send, "a@x.com", "subject", "body")

    (client,) = FakeSMTP.instances
    assert not client.started_tls
    assert client.login_args is None


def test_transport_errors_are_reported() -> None:
    FakeSMTP.refuse = True
    with pytest.raises(MailDispatchError):
        anyio.run(_dispatcher().send, "a@x.com", "subject", "body")


def test_host_and_sender_are_required() -> None:
    with pytest.raises(ValueError):
        SMTPMailDispatcher(host="", sender="noreply@example.com")
    with pytest.raises(ValueError):
        SMTPMailDispatcher(host="smtp.example.com", sender="")
