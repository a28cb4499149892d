"""Server configuration — reads settings from environment variables.

All settings have sensible defaults for local development.  In production
the values are typically overridden via env vars or a ``.env`` file.
"""

import os
from dataclasses import dataclass, field

from checkrun_workflow.constants import PACKAGING_ZIP, REPORT_TIMEZONE
from checkrun_workflow.notify import (
    RecipientPolicy,
    RecipientStrategy,
    SmtpConfig,
)

_TRUE_VALUES = ("1", "true", "yes", "on")


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in _TRUE_VALUES


def _env_strategy(name: str) -> RecipientStrategy:
    raw = os.getenv(name, RecipientStrategy.SETTINGS.value).strip().lower()
    try:
        return RecipientStrategy(raw)
    except ValueError:
        raise ValueError(
            f"{name} must be 'fixed' or 'settings', got {raw!r}"
        ) from None


@dataclass(frozen=True)
class ServerSettings:
    """Immutable server configuration read from environment at startup."""

    # Network
    host: str = "0.0.0.0"
    port: int = 8080

    # CORS — comma-separated origins, or "*" for wide-open dev mode
    cors_origins: list[str] = field(default_factory=lambda: ["*"])

    # Logging
    log_level: str = "INFO"

    # Admin API key — shared secret for admin endpoints (None = disabled)
    admin_api_key: str | None = None

    # Outgoing mail
    smtp: SmtpConfig = field(default_factory=SmtpConfig)

    # Recipient strategy per trigger; fixed addresses only apply to
    # triggers configured as "fixed"
    recipients: RecipientPolicy = field(default_factory=RecipientPolicy)

    # Report output: "zip" or "raw", and the timezone for narrative times
    report_packaging: str = PACKAGING_ZIP
    report_timezone: str = REPORT_TIMEZONE


def load_smtp_config() -> SmtpConfig:
    """Build the SMTP transport configuration from ``SMTP_*`` variables."""
    use_ssl = _env_flag("SMTP_SSL", False)
    return SmtpConfig(
        host=os.getenv("SMTP_HOST") or None,
        port=int(os.getenv("SMTP_PORT", "465" if use_ssl else "587")),
        username=os.getenv("SMTP_USER") or None,
        password=os.getenv("SMTP_PASS") or None,
        sender=os.getenv("SMTP_FROM") or os.getenv("SMTP_USER") or None,
        starttls=_env_flag("SMTP_STARTTLS", not use_ssl),
        use_ssl=use_ssl,
        timeout=float(os.getenv("SMTP_TIMEOUT", "30")),
    )


def load_recipient_policy() -> RecipientPolicy:
    """Build recipient strategies from ``REJECTION_*`` and ``REPORT_*`` variables."""
    return RecipientPolicy(
        rejection_strategy=_env_strategy("REJECTION_RECIPIENT"),
        rejection_address=os.getenv("REJECTION_ALERT_EMAIL") or None,
        report_strategy=_env_strategy("REPORT_RECIPIENT"),
        report_address=os.getenv("REPORT_EMAIL") or None,
    )


def load_settings() -> ServerSettings:
    """Build settings from ``SERVER_*`` and related environment variables."""
    raw_origins = os.getenv("SERVER_CORS_ORIGINS", "*")
    origins = [o.strip() for o in raw_origins.split(",") if o.strip()]

    return ServerSettings(
        host=os.getenv("SERVER_HOST", "0.0.0.0"),
        port=int(os.getenv("SERVER_PORT", "8080")),
        cors_origins=origins,
        log_level=os.getenv("SERVER_LOG_LEVEL", "INFO").upper(),
        admin_api_key=os.getenv("ADMIN_API_KEY") or None,
        smtp=load_smtp_config(),
        recipients=load_recipient_policy(),
        report_packaging=os.getenv("REPORT_PACKAGING", PACKAGING_ZIP).strip().lower(),
        report_timezone=os.getenv("REPORT_TIMEZONE", REPORT_TIMEZONE),
    )
