"""InstructionCatalog — the ordered list of manual test instructions.

The catalog owns the dense-ordering invariant: after every create, update,
delete and reorder the ``order_index`` values are exactly {1..N}.

Multi-row rewrites (delete, reorder) run inside a savepoint with the catalog
rows locked, so either every index write lands or none does.  Index
assignments are computed by the pure helpers in ``checkrun_workflow.ordering``
and written by a single bulk UPDATE.

Like the rest of the SDK, every method accepts an ``AsyncSession`` and only
flushes; the caller (typically the FastAPI ``get_db`` dependency) commits.
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from checkrun_db.repository import InstructionRepository, ResponseRepository

from checkrun_workflow.constants import DEVICES
from checkrun_workflow.errors import NotFoundError, StorageError, ValidationError
from checkrun_workflow.models.instruction import InstructionView
from checkrun_workflow.ordering import (
    changed_positions,
    dense_order,
    validate_permutation,
)

logger = logging.getLogger(__name__)

# Columns an admin edit may touch.  order_index is deliberately absent.
_EDITABLE_FIELDS = ("title", "content", "device", "video_url")


def _require_text(value: Any, field: str) -> str:
    """Return ``value`` stripped, or raise when it is missing or blank."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"'{field}' is required")
    return value.strip()


def _require_device(value: Any) -> str:
    device = _require_text(value, "device").lower()
    if device not in DEVICES:
        raise ValidationError(
            f"'device' must be one of {', '.join(DEVICES)}, got {value!r}"
        )
    return device


def _optional_text(value: Any) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError("'video_url' must be a string")
    return value.strip() or None


class InstructionCatalog:
    """Create, edit, delete and reorder instructions."""

    def __init__(self) -> None:
        self._repo = InstructionRepository()
        self._responses = ResponseRepository()

    # ==================================================================
    # Read
    # ==================================================================

    async def list(self, db: AsyncSession) -> list[InstructionView]:
        """Return all instructions ordered by ``order_index``."""
        rows = await self._repo.list_ordered(db)
        return [InstructionView.model_validate(r) for r in rows]

    async def get(self, db: AsyncSession, instruction_id: int) -> InstructionView:
        """Return one instruction, raising ``NotFoundError`` when absent."""
        row = await self._repo.get(db, instruction_id)
        if row is None:
            raise NotFoundError("Instruction", instruction_id)
        return InstructionView.model_validate(row)

    async def ids(self, db: AsyncSession) -> list[int]:
        """Return the instruction ids in presentation order."""
        rows = await self._repo.list_ordered(db)
        return [r.id for r in rows]

    # ==================================================================
    # Write
    # ==================================================================

    async def create(
        self,
        db: AsyncSession,
        *,
        title: Any,
        content: Any,
        device: Any,
        video_url: Any = None,
    ) -> InstructionView:
        """Append a new instruction at ``max(order_index) + 1``."""
        clean_title = _require_text(title, "title")
        clean_content = _require_text(content, "content")
        clean_device = _require_device(device)
        clean_video = _optional_text(video_url)

        try:
            next_index = await self._repo.max_order_index(db) + 1
            row = await self._repo.create(
                db,
                title=clean_title,
                content=clean_content,
                device=clean_device,
                video_url=clean_video,
                order_index=next_index,
            )
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to create instruction: {exc}") from exc

        logger.info("Instruction %d created at position %d", row.id, next_index)
        return InstructionView.model_validate(row)

    async def update(
        self, db: AsyncSession, instruction_id: int, fields: dict[str, Any]
    ) -> InstructionView:
        """Edit title/content/device/video_url.  Never alters ``order_index``."""
        unknown = sorted(set(fields) - set(_EDITABLE_FIELDS))
        if unknown:
            raise ValidationError(f"Fields cannot be edited: {unknown}")
        if not fields:
            raise ValidationError("No fields to update")

        changes: dict[str, Any] = {}
        for name, value in fields.items():
            if name == "device":
                changes[name] = _require_device(value)
            elif name == "video_url":
                changes[name] = _optional_text(value)
            else:
                changes[name] = _require_text(value, name)

        row = await self._repo.get(db, instruction_id)
        if row is None:
            raise NotFoundError("Instruction", instruction_id)

        try:
            row = await self._repo.update_fields(db, row, changes)
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to update instruction: {exc}") from exc

        logger.info(
            "Instruction %d updated (%s)", instruction_id, ", ".join(sorted(changes)),
        )
        return InstructionView.model_validate(row)

    async def delete(
        self, db: AsyncSession, instruction_id: int
    ) -> list[InstructionView]:
        """Delete an instruction, its responses, and close the index gap.

        Returns the remaining catalog in its new order.
        """
        try:
            async with db.begin_nested():
                rows = await self._repo.list_ordered(db, for_update=True)
                target = next((r for r in rows if r.id == instruction_id), None)
                if target is None:
                    raise NotFoundError("Instruction", instruction_id)

                removed = await self._responses.delete_for_instruction(
                    db, instruction_id,
                )
                await self._repo.delete(db, target)

                survivors = [r for r in rows if r.id != instruction_id]
                current = {r.id: r.order_index for r in survivors}
                assignment = dense_order([r.id for r in survivors])
                await self._repo.apply_order(
                    db, changed_positions(current, assignment),
                )
        except SQLAlchemyError as exc:
            raise StorageError(
                f"Failed to delete instruction {instruction_id}: {exc}"
            ) from exc

        logger.info(
            "Instruction %d deleted (%d responses removed, %d remain)",
            instruction_id, removed, len(survivors),
        )
        return await self.list(db)

    async def reorder(
        self, db: AsyncSession, ordered_ids: list[int]
    ) -> list[InstructionView]:
        """Apply a full ordering: ``order_index`` becomes the 1-based position.

        ``ordered_ids`` must be a permutation of every existing id.
        Applying the same ordering twice is a no-op the second time.
        """
        try:
            async with db.begin_nested():
                rows = await self._repo.list_ordered(db, for_update=True)
                validate_permutation(ordered_ids, [r.id for r in rows])

                current = {r.id: r.order_index for r in rows}
                assignment = dense_order(ordered_ids)
                changed = changed_positions(current, assignment)
                await self._repo.apply_order(db, changed)
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to reorder instructions: {exc}") from exc

        logger.info("Catalog reordered (%d positions changed)", len(changed))
        return await self.list(db)
