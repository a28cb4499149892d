"""Instruction ORM model — one row per manual test step in the catalog.

``order_index`` is the 1-based presentation/traversal rank.  The catalog
keeps it a dense permutation of 1..N; the unique constraint is deferred to
commit so a bulk renumbering never trips over its own intermediate states.
"""

from datetime import datetime, timezone

from sqlalchemy import CheckConstraint, Integer, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import TIMESTAMP
from sqlalchemy.orm import Mapped, mapped_column

from checkrun_db.models.base import Base
from checkrun_db.models.enums import Device


class Instruction(Base):
    """A single manual test instruction."""

    __tablename__ = "instructions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    title: Mapped[str] = mapped_column(Text, nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    # Stored as the lowercase string value ("desktop" / "mobile")
    device: Mapped[Device] = mapped_column(String(16), nullable=False)
    video_url: Mapped[str | None] = mapped_column(Text, nullable=True)

    order_index: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        UniqueConstraint(
            "order_index",
            name="uq_instruction_order",
            deferrable=True,
            initially="DEFERRED",
        ),
        CheckConstraint("order_index >= 1", name="ck_instruction_order_positive"),
        CheckConstraint(
            "device IN ('desktop', 'mobile')",
            name="ck_instruction_device",
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<Instruction(id={self.id}, order={self.order_index}, "
            f"title={self.title!r})>"
        )
