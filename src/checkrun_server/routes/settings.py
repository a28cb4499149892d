"""Notification settings endpoints — the two mutable destination addresses.

Which address a trigger actually uses depends on its recipient strategy
(``REJECTION_RECIPIENT`` / ``REPORT_RECIPIENT``); these endpoints only
manage the values the ``settings`` strategy reads.
"""

import logging
import re

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from checkrun_db.repository import SettingsRepository
from checkrun_workflow.errors import ValidationError

from checkrun_server.dependencies import get_db, require_admin

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/settings", tags=["settings"])

_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


# ------------------------------------------------------------------
# Request / response models
# ------------------------------------------------------------------

class NotificationSettingsBody(BaseModel):
    """Body of GET and PUT /settings."""
    report_email: str | None = None
    rejection_email: str | None = None


def _require_email(value: str | None, field: str) -> str:
    address = (value or "").strip()
    if not address:
        raise ValidationError(f"'{field}' is required")
    if not _EMAIL_PATTERN.match(address):
        raise ValidationError(f"'{field}' is not a valid email address")
    return address


# ------------------------------------------------------------------
# Endpoints
# ------------------------------------------------------------------

_repo = SettingsRepository()


@router.get("")
async def get_settings(
    db: AsyncSession = Depends(get_db),
    _admin: str = Depends(require_admin),
) -> NotificationSettingsBody:
    """Return the stored notification addresses (nulls when never saved)."""
    row = await _repo.get(db)
    if row is None:
        return NotificationSettingsBody()
    return NotificationSettingsBody(
        report_email=row.report_email, rejection_email=row.rejection_email,
    )


@router.put("")
async def update_settings(
    body: NotificationSettingsBody,
    db: AsyncSession = Depends(get_db),
    _admin: str = Depends(require_admin),
) -> NotificationSettingsBody:
    """Store both notification addresses."""
    report_email = _require_email(body.report_email, "report_email")
    rejection_email = _require_email(body.rejection_email, "rejection_email")
    row = await _repo.save(
        db, report_email=report_email, rejection_email=rejection_email,
    )
    logger.info("Notification settings updated")
    return NotificationSettingsBody(
        report_email=row.report_email, rejection_email=row.rejection_email,
    )
