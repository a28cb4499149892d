"""Mail transport — the seam between the dispatcher and an SMTP server.

``MailTransport`` is the contract; ``SmtpTransport`` is the production
implementation.  smtplib is blocking, so the send runs in a worker thread
to keep the event loop free.  Timeouts are the transport's business, not
the caller's.
"""

from __future__ import annotations

import asyncio
import logging
import smtplib
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from email.message import EmailMessage

from checkrun_workflow.errors import TransportError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Attachment:
    """A file attached to an outgoing message."""

    filename: str
    data: bytes
    media_type: str = "application/octet-stream"


@dataclass(frozen=True)
class MailMessage:
    """Transport-independent outgoing message."""

    to: str
    subject: str
    text: str
    html: str | None = None
    attachments: tuple[Attachment, ...] = field(default_factory=tuple)


class MailTransport(ABC):
    """Interface every mail transport implements."""

    @abstractmethod
    async def send(self, message: MailMessage) -> None:
        """Deliver ``message`` or raise ``TransportError``."""
        ...


@dataclass(frozen=True)
class SmtpConfig:
    """SMTP connection parameters, normally read from ``SMTP_*`` env vars."""

    host: str | None = None
    port: int = 587
    username: str | None = None
    password: str | None = None
    sender: str | None = None
    # STARTTLS upgrade on a plain connection (port 587)
    starttls: bool = True
    # Implicit TLS from the first byte (port 465); wins over starttls
    use_ssl: bool = False
    timeout: float = 30.0


class SmtpTransport(MailTransport):
    """Send mail through an SMTP relay with smtplib."""

    def __init__(self, config: SmtpConfig) -> None:
        self._config = config

    def build_message(self, message: MailMessage) -> EmailMessage:
        """Convert a ``MailMessage`` into a MIME ``EmailMessage``."""
        email = EmailMessage()
        email["From"] = self._config.sender or self._config.username or ""
        email["To"] = message.to
        email["Subject"] = message.subject
        email.set_content(message.text)
        if message.html:
            email.add_alternative(message.html, subtype="html")
        for attachment in message.attachments:
            maintype, _, subtype = attachment.media_type.partition("/")
            email.add_attachment(
                attachment.data,
                maintype=maintype,
                subtype=subtype or "octet-stream",
                filename=attachment.filename,
            )
        return email

    def _send_sync(self, email: EmailMessage) -> None:
        cfg = self._config
        if cfg.use_ssl:
            with smtplib.SMTP_SSL(cfg.host, cfg.port, timeout=cfg.timeout) as server:
                if cfg.username and cfg.password:
                    server.login(cfg.username, cfg.password)
                server.send_message(email)
        else:
            with smtplib.SMTP(cfg.host, cfg.port, timeout=cfg.timeout) as server:
                if cfg.starttls:
                    server.starttls()
                if cfg.username and cfg.password:
                    server.login(cfg.username, cfg.password)
                server.send_message(email)

    async def send(self, message: MailMessage) -> None:
        if not self._config.host:
            raise TransportError("Mail transport is not configured (SMTP_HOST unset)")

        email = self.build_message(message)
        try:
            await asyncio.to_thread(self._send_sync, email)
        except (smtplib.SMTPException, OSError) as exc:
            # SMTPAuthenticationError, refused connections and timeouts all land here
            raise TransportError(
                f"Failed to send mail to {message.to}: {exc}"
            ) from exc

        logger.info("Mail sent to %s: %s", message.to, message.subject)
