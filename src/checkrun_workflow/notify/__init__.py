"""Notification dispatch: mail transport, message templates, recipient policy."""

from checkrun_workflow.notify.dispatcher import (
    NotificationDispatcher,
    RecipientPolicy,
    RecipientStrategy,
)
from checkrun_workflow.notify.messages import MessageRenderer
from checkrun_workflow.notify.transport import (
    Attachment,
    MailMessage,
    MailTransport,
    SmtpConfig,
    SmtpTransport,
)

__all__ = [
    "Attachment",
    "MailMessage",
    "MailTransport",
    "MessageRenderer",
    "NotificationDispatcher",
    "RecipientPolicy",
    "RecipientStrategy",
    "SmtpConfig",
    "SmtpTransport",
]
