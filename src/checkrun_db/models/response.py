"""Response ORM models — immutable answer rows keyed by an opaque run id.

There is no run table: a test run is reconstructed by filtering both tables
on ``test_run_id``.
"""

from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import TIMESTAMP
from sqlalchemy.orm import Mapped, mapped_column

from checkrun_db.models.base import Base


class TestResponse(Base):
    """One approve/reject decision for one instruction within a run."""

    __tablename__ = "test_responses"
    # Not a pytest test class despite the name
    __test__ = False

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    instruction_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("instructions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    test_run_id: Mapped[str] = mapped_column(Text, nullable=False)
    tester_name: Mapped[str] = mapped_column(Text, nullable=False)
    approved: Mapped[bool] = mapped_column(Boolean, nullable=False)
    remark: Mapped[str | None] = mapped_column(Text, nullable=True)
    # 1-based position of the instruction in the run's snapshot
    test_number: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        # test_number never repeats within a run
        UniqueConstraint("test_run_id", "test_number", name="uq_run_test_number"),
        CheckConstraint("test_number >= 1", name="ck_test_number_positive"),
        # Rejections must carry a remark
        CheckConstraint(
            "approved OR (remark IS NOT NULL AND length(trim(remark)) > 0)",
            name="ck_rejection_has_remark",
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<TestResponse(run={self.test_run_id!r}, n={self.test_number}, "
            f"approved={self.approved})>"
        )


class QuestionnaireResponse(Base):
    """One closing-questionnaire answer within a run.

    The question title and position are copied onto the row when the answer
    is recorded, so a run's report survives later questionnaire edits.
    ``questionnaire_id`` is cleared when the admin replaces the item set.
    """

    __tablename__ = "questionnaire_responses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    test_run_id: Mapped[str] = mapped_column(Text, nullable=False)
    questionnaire_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("questionnaires.id", ondelete="SET NULL"),
        nullable=True,
    )
    question_title: Mapped[str] = mapped_column(Text, nullable=False)
    question_order: Mapped[int] = mapped_column(Integer, nullable=False)
    tester_name: Mapped[str] = mapped_column(Text, nullable=False)
    answer: Mapped[str] = mapped_column(Text, nullable=False, default="")

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        UniqueConstraint(
            "test_run_id", "questionnaire_id", name="uq_run_questionnaire",
        ),
        Index("ix_questionnaire_responses_run", "test_run_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<QuestionnaireResponse(run={self.test_run_id!r}, "
            f"question={self.questionnaire_id})>"
        )
