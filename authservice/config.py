"""Configuration management for the authentication service."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from .database import resolve_database_path

_ENV_KEYS = {
    "jwt_secret": "AUTH_JWT_SECRET",
    "database_path": "AUTH_DB_PATH",
    "smtp_host": "AUTH_SMTP_HOST",
    "smtp_port": "AUTH_SMTP_PORT",
    "smtp_username": "AUTH_SMTP_USERNAME",
    "smtp_password": "AUTH_SMTP_PASSWORD",
    "smtp_starttls": "AUTH_SMTP_STARTTLS",
    "mail_sender": "AUTH_MAIL_SENDER",
    "session_ttl_days": "AUTH_SESSION_TTL_DAYS",
    "otp_ttl_minutes": "AUTH_OTP_TTL_MINUTES",
}


@dataclass(frozen=True)
class MailSettings:
    """Credentials for the SMTP relay that delivers reset codes."""

    host: Optional[str] = None
    port: int = 587
    username: Optional[str] = None
    password: Optional[str] = field(default=None, repr=False)
    sender: Optional[str] = None
    starttls: bool = True

    @property
    def configured(self) -> bool:
        return bool(self.host and self.sender)


@dataclass(frozen=True)
class Settings:
    jwt_secret: str
    database_path: Path
    mail: MailSettings
    session_ttl: timedelta = timedelta(days=5)
    otp_ttl: timedelta = timedelta(minutes=10)

    def __repr__(self) -> str:
        return (
            f"Settings(database_path={str(self.database_path)!r}, "
            f"mail_host={self.mail.host!r}, session_ttl={self.session_ttl}, otp_ttl={self.otp_ttl})"
        )


def _env_flag(value: Optional[object], default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


def _optional_str(value: Optional[object]) -> Optional[str]:
    if value is None:
        return None
    stripped = str(value).strip()
    return stripped or None


def resolve_config_path(env_value: Optional[str]) -> Path:
    """Resolve the path to the optional YAML configuration file."""
    if env_value:
        candidate = Path(env_value).expanduser().resolve(strict=False)
    else:
        candidate = (Path(__file__).resolve().parent.parent / "config" / "auth.yaml").resolve(strict=False)
    return candidate


def load_config_file(config_path: Path) -> Dict[str, Any]:
    """Read settings from a YAML file; a missing file yields no overrides."""
    if not config_path.exists():
        return {}
    with config_path.open("r", encoding="utf-8") as handle:
        raw = yaml.safe_load(handle) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"Configuration file {config_path} must contain a mapping")
    unknown = set(raw) - set(_ENV_KEYS)
    if unknown:
        raise ValueError(f"Unknown configuration keys: {', '.join(sorted(unknown))}")
    return raw


def load_settings(
    environ: Optional[Mapping[str, str]] = None,
    *,
    config_path: Optional[Path] = None,
) -> Settings:
    """Build :class:`Settings` from the environment, falling back to the YAML file.

    Environment variables take precedence over file values.
    """

    env = os.environ if environ is None else environ
    path = config_path or resolve_config_path(env.get("AUTH_CONFIG_PATH"))
    values: Dict[str, Any] = dict(load_config_file(path))
    for key, env_name in _ENV_KEYS.items():
        if env.get(env_name) is not None:
            values[key] = env[env_name]

    secret = _optional_str(values.get("jwt_secret"))
    if not secret:
        raise ValueError("AUTH_JWT_SECRET must be set to sign session tokens")

    try:
        smtp_port = int(values.get("smtp_port", 587))
        session_days = float(values.get("session_ttl_days", 5))
        otp_minutes = float(values.get("otp_ttl_minutes", 10))
    except (TypeError, ValueError) as exc:
        raise ValueError("Numeric configuration values are malformed") from exc

    if session_days <= 0 or otp_minutes <= 0:
        raise ValueError("Token and OTP lifetimes must be positive")

    mail = MailSettings(
        host=_optional_str(values.get("smtp_host")),
        port=smtp_port,
        username=_optional_str(values.get("smtp_username")),
        password=_optional_str(values.get("smtp_password")),
        sender=_optional_str(values.get("mail_sender")),
        starttls=_env_flag(values.get("smtp_starttls"), True),
    )

    return Settings(
        jwt_secret=secret,
        database_path=resolve_database_path(_optional_str(values.get("database_path"))),
        mail=mail,
        session_ttl=timedelta(days=session_days),
        otp_ttl=timedelta(minutes=otp_minutes),
    )


__all__ = ["MailSettings", "Settings", "load_config_file", "load_settings", "resolve_config_path"]
