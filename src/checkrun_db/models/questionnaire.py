"""QuestionnaireItem ORM model — closing questions shown after the last instruction."""

from datetime import datetime, timezone

from sqlalchemy import Boolean, CheckConstraint, Integer, Text, UniqueConstraint, true
from sqlalchemy.dialects.postgresql import TIMESTAMP
from sqlalchemy.orm import Mapped, mapped_column

from checkrun_db.models.base import Base


class QuestionnaireItem(Base):
    """A single closing question.

    The whole set is normally replaced at once by the admin, so items carry
    no ``updated_at``.
    """

    __tablename__ = "questionnaires"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    order_index: Mapped[int] = mapped_column(Integer, nullable=False)
    required: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=true(),
    )

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        UniqueConstraint(
            "order_index",
            name="uq_questionnaire_order",
            deferrable=True,
            initially="DEFERRED",
        ),
        CheckConstraint("order_index >= 1", name="ck_questionnaire_order_positive"),
    )

    def __repr__(self) -> str:
        return (
            f"<QuestionnaireItem(id={self.id}, order={self.order_index}, "
            f"required={self.required})>"
        )
