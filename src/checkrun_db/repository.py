"""Async repositories for the catalog, questionnaire, responses and settings.

All public methods accept an ``AsyncSession`` so the caller controls
transaction boundaries (useful for composing multiple writes in one atomic
unit, e.g. delete + cascade + renumber).

The repositories deliberately avoid business-logic validation — that belongs
in ``checkrun_workflow``.  They *do* rely on structural invariants enforced by
DB constraints (unique order_index, unique test_number per run, remark on
rejection).
"""

from datetime import datetime, timezone

from sqlalchemy import case, delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from checkrun_db.models.instruction import Instruction
from checkrun_db.models.questionnaire import QuestionnaireItem
from checkrun_db.models.response import QuestionnaireResponse, TestResponse
from checkrun_db.models.settings import NotificationSettings


class InstructionRepository:
    """Async read/write operations on the ``instructions`` table."""

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    async def list_ordered(
        self, db: AsyncSession, *, for_update: bool = False
    ) -> list[Instruction]:
        """Return every instruction by ``order_index`` ascending.

        With ``for_update`` the rows are locked until the transaction ends,
        which serializes concurrent delete/reorder calls.
        """
        stmt = select(Instruction).order_by(Instruction.order_index, Instruction.id)
        if for_update:
            stmt = stmt.with_for_update()
        result = await db.execute(stmt)
        return list(result.scalars().all())

    async def get(self, db: AsyncSession, instruction_id: int) -> Instruction | None:
        """Fetch an instruction by primary key."""
        return await db.get(Instruction, instruction_id)

    async def max_order_index(self, db: AsyncSession) -> int:
        """Return the highest ``order_index`` in use, or 0 when empty."""
        result = await db.execute(select(func.max(Instruction.order_index)))
        return result.scalar_one_or_none() or 0

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    async def create(
        self,
        db: AsyncSession,
        *,
        title: str,
        content: str,
        device: str,
        video_url: str | None,
        order_index: int,
    ) -> Instruction:
        """Insert a new instruction row and return it.

        The caller must ``await db.commit()`` to persist.
        """
        row = Instruction(
            title=title,
            content=content,
            device=device,
            video_url=video_url,
            order_index=order_index,
        )
        db.add(row)
        await db.flush()  # Populate id and timestamps
        return row

    async def update_fields(
        self, db: AsyncSession, row: Instruction, fields: dict
    ) -> Instruction:
        """Apply a dict of column values to ``row``."""
        for name, value in fields.items():
            setattr(row, name, value)
        row.updated_at = datetime.now(timezone.utc)
        await db.flush()
        return row

    async def delete(self, db: AsyncSession, row: Instruction) -> None:
        """Delete a single instruction row."""
        await db.delete(row)
        await db.flush()

    async def apply_order(self, db: AsyncSession, assignment: dict[int, int]) -> None:
        """Write ``{instruction_id: order_index}`` in one UPDATE statement.

        The unique constraint on ``order_index`` is deferred, so the
        statement may pass through duplicate values row by row.
        """
        if not assignment:
            return
        stmt = (
            update(Instruction)
            .where(Instruction.id.in_(list(assignment)))
            .values(
                order_index=case(assignment, value=Instruction.id),
                updated_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session="fetch")
        )
        await db.execute(stmt)
        await db.flush()


class QuestionnaireRepository:
    """Async read/write operations on the ``questionnaires`` table."""

    async def list_ordered(
        self, db: AsyncSession, *, for_update: bool = False
    ) -> list[QuestionnaireItem]:
        """Return every questionnaire item by ``order_index`` ascending."""
        stmt = select(QuestionnaireItem).order_by(
            QuestionnaireItem.order_index, QuestionnaireItem.id,
        )
        if for_update:
            stmt = stmt.with_for_update()
        result = await db.execute(stmt)
        return list(result.scalars().all())

    async def get(self, db: AsyncSession, item_id: int) -> QuestionnaireItem | None:
        """Fetch a questionnaire item by primary key."""
        return await db.get(QuestionnaireItem, item_id)

    async def replace_all(
        self, db: AsyncSession, items: list[tuple[str, bool]]
    ) -> list[QuestionnaireItem]:
        """Delete every item and insert ``items`` as ``(title, required)``.

        Indices are assigned 1..N in the given order.  Answers recorded
        against the old items stay; their ``questionnaire_id`` is cleared
        (ON DELETE SET NULL).
        """
        await db.execute(delete(QuestionnaireItem))
        rows = [
            QuestionnaireItem(title=title, required=required, order_index=position)
            for position, (title, required) in enumerate(items, start=1)
        ]
        db.add_all(rows)
        await db.flush()
        return rows

    async def delete(self, db: AsyncSession, row: QuestionnaireItem) -> None:
        """Delete a single questionnaire item."""
        await db.delete(row)
        await db.flush()

    async def apply_order(self, db: AsyncSession, assignment: dict[int, int]) -> None:
        """Write ``{item_id: order_index}`` in one UPDATE statement."""
        if not assignment:
            return
        stmt = (
            update(QuestionnaireItem)
            .where(QuestionnaireItem.id.in_(list(assignment)))
            .values(order_index=case(assignment, value=QuestionnaireItem.id))
            .execution_options(synchronize_session="fetch")
        )
        await db.execute(stmt)
        await db.flush()


class ResponseRepository:
    """Async operations on ``test_responses`` and ``questionnaire_responses``.

    Response rows are immutable: there are inserts and cascade deletes, but
    no updates.
    """

    # ------------------------------------------------------------------
    # Test responses
    # ------------------------------------------------------------------

    async def create_test_response(
        self,
        db: AsyncSession,
        *,
        instruction_id: int,
        test_run_id: str,
        tester_name: str,
        approved: bool,
        remark: str | None,
        test_number: int,
    ) -> TestResponse:
        """Insert one test response row and return it."""
        row = TestResponse(
            instruction_id=instruction_id,
            test_run_id=test_run_id,
            tester_name=tester_name,
            approved=approved,
            remark=remark,
            test_number=test_number,
        )
        db.add(row)
        await db.flush()
        return row

    async def last_test_number(self, db: AsyncSession, test_run_id: str) -> int:
        """Return the highest ``test_number`` recorded for a run, or 0."""
        stmt = select(func.max(TestResponse.test_number)).where(
            TestResponse.test_run_id == test_run_id,
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none() or 0

    async def first_test_response(
        self, db: AsyncSession, test_run_id: str
    ) -> TestResponse | None:
        """Return the run's earliest test response (``test_number`` 1)."""
        stmt = (
            select(TestResponse)
            .where(TestResponse.test_run_id == test_run_id)
            .order_by(TestResponse.test_number)
            .limit(1)
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    async def list_run_results(
        self, db: AsyncSession, test_run_id: str
    ) -> list[tuple[TestResponse, Instruction]]:
        """Return the run's responses joined with their instruction.

        Ordered by ``test_number`` so the list matches presentation order at
        the time the run started.
        """
        stmt = (
            select(TestResponse, Instruction)
            .join(Instruction, TestResponse.instruction_id == Instruction.id)
            .where(TestResponse.test_run_id == test_run_id)
            .order_by(TestResponse.test_number)
        )
        result = await db.execute(stmt)
        return [(resp, instr) for resp, instr in result.all()]

    async def delete_for_instruction(self, db: AsyncSession, instruction_id: int) -> int:
        """Delete all test responses referencing an instruction."""
        result = await db.execute(
            delete(TestResponse).where(TestResponse.instruction_id == instruction_id)
        )
        return result.rowcount or 0

    # ------------------------------------------------------------------
    # Questionnaire responses
    # ------------------------------------------------------------------

    async def has_answers(self, db: AsyncSession, test_run_id: str) -> bool:
        """Return True when any questionnaire answer exists for the run."""
        stmt = (
            select(QuestionnaireResponse.id)
            .where(QuestionnaireResponse.test_run_id == test_run_id)
            .limit(1)
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def create_answers(
        self,
        db: AsyncSession,
        *,
        test_run_id: str,
        tester_name: str,
        answers: list[tuple[QuestionnaireItem, str]],
    ) -> list[QuestionnaireResponse]:
        """Insert one row per ``(item, answer)`` pair.

        The item's title and position are stored on the row.
        """
        rows = [
            QuestionnaireResponse(
                test_run_id=test_run_id,
                questionnaire_id=item.id,
                question_title=item.title,
                question_order=item.order_index,
                tester_name=tester_name,
                answer=answer,
            )
            for item, answer in answers
        ]
        db.add_all(rows)
        await db.flush()
        return rows

    async def list_run_answers(
        self, db: AsyncSession, test_run_id: str
    ) -> list[QuestionnaireResponse]:
        """Return the run's answers in the order the questions were shown.

        Reads the stored question title and position, so answers outlive
        later questionnaire replacements.
        """
        stmt = (
            select(QuestionnaireResponse)
            .where(QuestionnaireResponse.test_run_id == test_run_id)
            .order_by(QuestionnaireResponse.question_order, QuestionnaireResponse.id)
        )
        result = await db.execute(stmt)
        return list(result.scalars().all())

    async def delete_for_questionnaire(
        self, db: AsyncSession, questionnaire_id: int
    ) -> int:
        """Delete all answers referencing a questionnaire item."""
        result = await db.execute(
            delete(QuestionnaireResponse).where(
                QuestionnaireResponse.questionnaire_id == questionnaire_id,
            )
        )
        return result.rowcount or 0


class SettingsRepository:
    """Read/write the single ``settings`` row."""

    async def get(self, db: AsyncSession) -> NotificationSettings | None:
        """Return the settings row, or None when never saved."""
        stmt = select(NotificationSettings).order_by(NotificationSettings.id).limit(1)
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    async def save(
        self,
        db: AsyncSession,
        *,
        report_email: str,
        rejection_email: str,
    ) -> NotificationSettings:
        """Create or update the settings row."""
        row = await self.get(db)
        if row is None:
            row = NotificationSettings()
            db.add(row)
        row.report_email = report_email
        row.rejection_email = rejection_email
        row.updated_at = datetime.now(timezone.utc)
        await db.flush()
        return row
