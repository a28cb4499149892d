"""ResponseRecorder — persists per-instruction decisions and questionnaire answers.

Both kinds of rows are immutable once written.  The recorder enforces the
run-level invariants before touching the database:

  - a rejection carries a non-blank remark
  - ``test_number`` continues the run's sequence exactly (1, 2, 3, ...)
  - every required questionnaire item is answered, and a run's answers are
    recorded only once
"""

from __future__ import annotations

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from checkrun_db.repository import QuestionnaireRepository, ResponseRepository

from checkrun_workflow.errors import StorageError, ValidationError
from checkrun_workflow.models.questionnaire import RecordedAnswer
from checkrun_workflow.models.run import RecordedResponse

logger = logging.getLogger(__name__)


def _require(value: str | None, field: str) -> str:
    if value is None or not value.strip():
        raise ValidationError(f"'{field}' is required")
    return value.strip()


class ResponseRecorder:
    """Write-side of test runs, keyed by the opaque ``test_run_id``."""

    def __init__(self) -> None:
        self._repo = ResponseRepository()
        self._questions = QuestionnaireRepository()

    async def record_test_response(
        self,
        db: AsyncSession,
        *,
        instruction_id: int,
        test_run_id: str,
        tester_name: str,
        approved: bool,
        remark: str | None,
        test_number: int,
    ) -> RecordedResponse:
        """Persist one approve/reject decision.

        Raises ``ValidationError`` for a rejection without a remark or a
        ``test_number`` that does not directly follow the run's last one.
        """
        run_id = _require(test_run_id, "test_run_id")
        tester = _require(tester_name, "tester_name")
        clean_remark = remark.strip() if remark and remark.strip() else None
        if not approved and clean_remark is None:
            raise ValidationError("A remark is required when rejecting a test")
        if test_number < 1:
            raise ValidationError(f"test_number must be >= 1, got {test_number}")

        try:
            expected = await self._repo.last_test_number(db, run_id) + 1
            if test_number != expected:
                raise ValidationError(
                    f"Out-of-sequence test_number for run {run_id}: "
                    f"expected {expected}, got {test_number}"
                )
            row = await self._repo.create_test_response(
                db,
                instruction_id=instruction_id,
                test_run_id=run_id,
                tester_name=tester,
                approved=approved,
                remark=clean_remark,
                test_number=test_number,
            )
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to record test response: {exc}") from exc

        logger.info(
            "Run %s: test %d %s by %s",
            run_id, test_number, "approved" if approved else "rejected", tester,
        )
        return RecordedResponse.model_validate(row)

    async def record_answers(
        self,
        db: AsyncSession,
        *,
        test_run_id: str,
        tester_name: str,
        answers: dict[int, str | None],
    ) -> list[RecordedAnswer]:
        """Persist the run's questionnaire answers in one go.

        Validation happens before any insert: unknown question ids and blank
        required answers raise ``ValidationError`` and nothing is written.
        Blank answers to optional questions are skipped.
        """
        run_id = _require(test_run_id, "test_run_id")
        tester = _require(tester_name, "tester_name")

        try:
            items = await self._questions.list_ordered(db)
            known = {item.id for item in items}
            unknown = sorted(set(answers) - known)
            if unknown:
                raise ValidationError(f"Unknown questionnaire ids: {unknown}")

            missing = [
                item.title
                for item in items
                if item.required and not (answers.get(item.id) or "").strip()
            ]
            if missing:
                raise ValidationError(
                    f"Required questions left unanswered: {missing}"
                )

            if await self._repo.has_answers(db, run_id):
                raise ValidationError(
                    f"Questionnaire already submitted for run {run_id}"
                )

            pairs = [
                (item, answers[item.id].strip())
                for item in items
                if (answers.get(item.id) or "").strip()
            ]
            rows = await self._repo.create_answers(
                db, test_run_id=run_id, tester_name=tester, answers=pairs,
            )
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to record questionnaire: {exc}") from exc

        logger.info("Run %s: %d questionnaire answers recorded", run_id, len(rows))
        return [RecordedAnswer.model_validate(r) for r in rows]
