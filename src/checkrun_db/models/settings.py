"""NotificationSettings ORM model — the mutable single-row settings store."""

from datetime import datetime, timezone

from sqlalchemy import Integer, Text
from sqlalchemy.dialects.postgresql import TIMESTAMP
from sqlalchemy.orm import Mapped, mapped_column

from checkrun_db.models.base import Base


class NotificationSettings(Base):
    """Destination addresses editable by the administrator at runtime."""

    __tablename__ = "settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    # Receives the compiled run report
    report_email: Mapped[str | None] = mapped_column(Text, nullable=True)
    # Receives an alert for every rejected instruction
    rejection_email: Mapped[str | None] = mapped_column(Text, nullable=True)

    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    def __repr__(self) -> str:
        return (
            f"<NotificationSettings(report={self.report_email!r}, "
            f"rejection={self.rejection_email!r})>"
        )
