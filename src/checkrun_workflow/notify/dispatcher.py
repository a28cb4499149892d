"""NotificationDispatcher — rejection alerts and run-completion reports.

Two triggers, each with its own recipient strategy:

  - **rejection alert**: one email per rejected instruction, sent right
    after the response is recorded
  - **run report**: one email per completed run, with the compiled report
    attached

A strategy is either ``fixed`` (an address from deployment configuration)
or ``settings`` (the address an admin stored in the ``settings`` row).
Which one applies is configuration, not code.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from checkrun_db.repository import SettingsRepository

from checkrun_workflow.errors import TransportError
from checkrun_workflow.models.report import ReportArtifact
from checkrun_workflow.notify.messages import MessageRenderer
from checkrun_workflow.notify.transport import Attachment, MailMessage, MailTransport

logger = logging.getLogger(__name__)


class RecipientStrategy(str, enum.Enum):
    """Where a trigger's recipient address comes from."""

    FIXED = "fixed"
    SETTINGS = "settings"


@dataclass(frozen=True)
class RecipientPolicy:
    """Recipient resolution for both triggers."""

    rejection_strategy: RecipientStrategy = RecipientStrategy.SETTINGS
    rejection_address: str | None = None
    report_strategy: RecipientStrategy = RecipientStrategy.SETTINGS
    report_address: str | None = None


class NotificationDispatcher:
    """Resolve recipients, render messages and hand them to the transport.

    Args:
        transport: the :class:`MailTransport` to deliver through
        policy: recipient strategies; defaults to settings-sourced for both
        renderer: optional :class:`MessageRenderer` override
    """

    def __init__(
        self,
        transport: MailTransport,
        policy: RecipientPolicy | None = None,
        renderer: MessageRenderer | None = None,
    ) -> None:
        self._transport = transport
        self._policy = policy or RecipientPolicy()
        self._renderer = renderer or MessageRenderer()
        self._settings = SettingsRepository()

    # ------------------------------------------------------------------
    # Triggers
    # ------------------------------------------------------------------

    async def send_rejection_alert(
        self,
        db: AsyncSession,
        *,
        test_run_id: str,
        tester_name: str,
        instruction_title: str,
        test_number: int,
        remark: str,
    ) -> str:
        """Email the rejection recipient; returns the address used."""
        recipient = await self._resolve(
            db,
            self._policy.rejection_strategy,
            self._policy.rejection_address,
            "rejection_email",
        )
        subject, text, html = self._renderer.render(
            "rejection_alert",
            test_run_id=test_run_id,
            tester_name=tester_name,
            instruction_title=instruction_title,
            test_number=test_number,
            remark=remark,
        )
        await self._transport.send(
            MailMessage(to=recipient, subject=subject, text=text, html=html)
        )
        logger.info(
            "Rejection alert for run %s test %d sent to %s",
            test_run_id, test_number, recipient,
        )
        return recipient

    async def send_report(
        self,
        db: AsyncSession,
        *,
        tester_name: str,
        artifact: ReportArtifact,
    ) -> str:
        """Email the compiled report; returns the address used."""
        recipient = await self._resolve(
            db,
            self._policy.report_strategy,
            self._policy.report_address,
            "report_email",
        )
        subject, text, html = self._renderer.render(
            "report",
            tester_name=tester_name,
            filename=artifact.filename,
            passed=artifact.content.passed,
            failed=artifact.content.failed,
        )
        await self._transport.send(
            MailMessage(
                to=recipient,
                subject=subject,
                text=text,
                html=html,
                attachments=(
                    Attachment(
                        filename=artifact.filename,
                        data=artifact.data,
                        media_type=artifact.media_type,
                    ),
                ),
            )
        )
        logger.info("Report %s sent to %s", artifact.filename, recipient)
        return recipient

    # ------------------------------------------------------------------
    # Recipient resolution
    # ------------------------------------------------------------------

    async def _resolve(
        self,
        db: AsyncSession,
        strategy: RecipientStrategy,
        fixed_address: str | None,
        settings_field: str,
    ) -> str:
        if strategy == RecipientStrategy.FIXED:
            address = fixed_address
        else:
            try:
                row = await self._settings.get(db)
            except SQLAlchemyError as exc:
                raise TransportError(
                    f"Could not read notification settings: {exc}"
                ) from exc
            address = getattr(row, settings_field, None) if row is not None else None

        if not address:
            raise TransportError(
                f"No recipient configured for {settings_field} "
                f"(strategy={strategy.value})"
            )
        return address
