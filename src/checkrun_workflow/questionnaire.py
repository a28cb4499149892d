"""QuestionnaireStore — the closing questions shown after the last instruction.

The admin saves the whole set at once; the store replaces every item inside
one savepoint and numbers the new items 1..N.  Single items can also be
deleted, which removes their answers and closes the index gap.
"""

from __future__ import annotations

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from checkrun_db.repository import QuestionnaireRepository, ResponseRepository

from checkrun_workflow.errors import NotFoundError, StorageError, ValidationError
from checkrun_workflow.models.questionnaire import (
    QuestionnaireItemInput,
    QuestionnaireItemView,
)
from checkrun_workflow.ordering import changed_positions, dense_order

logger = logging.getLogger(__name__)


class QuestionnaireStore:
    """Read, replace and prune the questionnaire item set."""

    def __init__(self) -> None:
        self._repo = QuestionnaireRepository()
        self._responses = ResponseRepository()

    async def list(self, db: AsyncSession) -> list[QuestionnaireItemView]:
        """Return all items ordered by ``order_index``."""
        rows = await self._repo.list_ordered(db)
        return [QuestionnaireItemView.model_validate(r) for r in rows]

    async def replace(
        self, db: AsyncSession, items: list[QuestionnaireItemInput]
    ) -> list[QuestionnaireItemView]:
        """Replace the entire item set atomically.

        Item ids change on every save.  Answers already recorded keep their
        stored question text, so earlier reports can still be rebuilt.
        """
        cleaned: list[tuple[str, bool]] = []
        for position, item in enumerate(items, start=1):
            title = (item.title or "").strip()
            if not title:
                raise ValidationError(f"Question {position} has no title")
            cleaned.append((title, item.required))

        try:
            async with db.begin_nested():
                await self._repo.replace_all(db, cleaned)
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to replace questionnaire: {exc}") from exc

        logger.info("Questionnaire replaced with %d items", len(cleaned))
        return await self.list(db)

    async def delete(
        self, db: AsyncSession, item_id: int
    ) -> list[QuestionnaireItemView]:
        """Delete one item and its answers, then renumber the rest."""
        try:
            async with db.begin_nested():
                rows = await self._repo.list_ordered(db, for_update=True)
                target = next((r for r in rows if r.id == item_id), None)
                if target is None:
                    raise NotFoundError("Questionnaire item", item_id)

                await self._responses.delete_for_questionnaire(db, item_id)
                await self._repo.delete(db, target)

                survivors = [r for r in rows if r.id != item_id]
                current = {r.id: r.order_index for r in survivors}
                assignment = dense_order([r.id for r in survivors])
                await self._repo.apply_order(
                    db, changed_positions(current, assignment),
                )
        except SQLAlchemyError as exc:
            raise StorageError(
                f"Failed to delete questionnaire item {item_id}: {exc}"
            ) from exc

        logger.info("Questionnaire item %d deleted", item_id)
        return await self.list(db)
