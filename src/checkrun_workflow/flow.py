"""TestRunFlow — the state machine that walks a tester through a run.

Stateless flow pattern: the run cursor (:class:`TestRunState`) is passed in
by the caller and a new one is returned inside a :class:`RunStep`.  Nothing
about an in-flight run lives on the server; persisted responses are the
only durable trace of it.

The flow accepts an ``AsyncSession`` from the caller so that the caller
(typically a FastAPI endpoint) controls transaction boundaries.

Transitions:
    start                 not_started | completed  → in_progress(0)
    respond               in_progress(i)           → in_progress(i+1)
                                                   | awaiting_questionnaire
    submit_questionnaire  awaiting_questionnaire   → completed
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from checkrun_db.repository import ResponseRepository

from checkrun_workflow.catalog import InstructionCatalog
from checkrun_workflow.errors import (
    NotFoundError,
    RenderError,
    ReportIOError,
    StorageError,
    TransportError,
    ValidationError,
)
from checkrun_workflow.models.report import ReportArtifact
from checkrun_workflow.models.run import (
    ResponseReceipt,
    RunPhase,
    RunStep,
    TestRunState,
)
from checkrun_workflow.notify.dispatcher import NotificationDispatcher
from checkrun_workflow.questionnaire import QuestionnaireStore
from checkrun_workflow.recorder import ResponseRecorder
from checkrun_workflow.report.compiler import ReportCompiler

logger = logging.getLogger(__name__)

# Failures after which the questionnaire answers stay recorded and the
# tester may retry the report from the same state.
_REPORT_FAILURES = (RenderError, ReportIOError, TransportError)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _expect_phase(state: TestRunState, phase: RunPhase, action: str) -> None:
    if state.phase != phase:
        raise ValidationError(
            f"Cannot {action} while run is {state.phase.value}"
        )


class TestRunFlow:
    """Drives runs through catalog, recorder, compiler and dispatcher.

    Args:
        catalog: the :class:`InstructionCatalog` the run snapshots at start
        questionnaire: the :class:`QuestionnaireStore` shown after the last
            instruction
        recorder: persists responses and answers
        compiler: builds the report artifact at completion
        dispatcher: sends rejection alerts and the report
    """

    __test__ = False

    def __init__(
        self,
        catalog: InstructionCatalog,
        questionnaire: QuestionnaireStore,
        recorder: ResponseRecorder,
        compiler: ReportCompiler,
        dispatcher: NotificationDispatcher,
    ) -> None:
        self._catalog = catalog
        self._questionnaire = questionnaire
        self._recorder = recorder
        self._compiler = compiler
        self._dispatcher = dispatcher
        self._responses = ResponseRepository()

    # ==================================================================
    # State machine
    # ==================================================================

    async def start(
        self,
        db: AsyncSession,
        *,
        tester_name: str,
        current: TestRunState | None = None,
    ) -> RunStep:
        """Begin a new run over a snapshot of the current catalog.

        Raises ``ValidationError`` for a blank tester name, when ``current``
        is still active, or when the catalog is empty.
        """
        tester = (tester_name or "").strip()
        if not tester:
            raise ValidationError("'tester_name' is required")
        if current is not None and current.is_active:
            raise ValidationError(
                f"Run {current.run_id} is still {current.phase.value}"
            )

        ids = await self._catalog.ids(db)
        if not ids:
            raise ValidationError("Cannot start a run: no instructions defined")

        state = TestRunState(
            phase=RunPhase.IN_PROGRESS,
            run_id=uuid.uuid4().hex,
            tester_name=tester,
            started_at=_now(),
            current_index=0,
            instruction_ids=ids,
        )
        logger.info(
            "Run %s started by %s (%d instructions)", state.run_id, tester, len(ids),
        )
        return RunStep(
            state=state, instruction=await self._catalog.get(db, ids[0]),
        )

    async def respond(
        self,
        db: AsyncSession,
        state: TestRunState,
        *,
        approved: bool,
        remark: str | None = None,
    ) -> RunStep:
        """Record the decision for the current instruction and advance."""
        _expect_phase(state, RunPhase.IN_PROGRESS, "respond")
        if not 0 <= state.current_index < state.total:
            raise ValidationError(
                f"Run {state.run_id} has no instruction at index {state.current_index}"
            )

        receipt = await self.record_response(
            db,
            instruction_id=state.instruction_ids[state.current_index],
            test_run_id=state.run_id,
            tester_name=state.tester_name,
            approved=approved,
            remark=remark,
            test_number=state.test_number,
        )

        next_index = state.current_index + 1
        if next_index < state.total:
            new_state = state.model_copy(update={"current_index": next_index})
            return RunStep(
                state=new_state,
                instruction=await self._catalog.get(
                    db, state.instruction_ids[next_index],
                ),
                alert_error=receipt.alert_error,
            )

        new_state = state.model_copy(update={
            "phase": RunPhase.AWAITING_QUESTIONNAIRE,
            "current_index": next_index,
        })
        logger.info("Run %s: all %d instructions answered", state.run_id, state.total)
        return RunStep(
            state=new_state,
            questionnaire=await self._questionnaire.list(db),
            alert_error=receipt.alert_error,
        )

    async def submit_questionnaire(
        self,
        db: AsyncSession,
        state: TestRunState,
        answers: dict[int, str | None],
    ) -> RunStep:
        """Record the closing answers, then compile and send the report.

        Validation failures raise and leave nothing persisted.  A report
        failure is returned in ``report_error`` with the run still awaiting
        the questionnaire but marked ``answers_recorded``; submitting again
        only retries the report.
        """
        _expect_phase(state, RunPhase.AWAITING_QUESTIONNAIRE, "submit questionnaire")

        if not state.answers_recorded:
            await self._recorder.record_answers(
                db,
                test_run_id=state.run_id,
                tester_name=state.tester_name,
                answers=answers,
            )
            state = state.model_copy(update={"answers_recorded": True})

        ended_at = _now()
        try:
            artifact = await self.generate_report(
                db,
                test_run_id=state.run_id,
                tester_name=state.tester_name,
                started_at=state.started_at or ended_at,
                ended_at=ended_at,
            )
        except _REPORT_FAILURES as exc:
            logger.warning("Run %s: report not delivered: %s", state.run_id, exc)
            return RunStep(
                state=state,
                questionnaire=await self._questionnaire.list(db),
                report_error=str(exc),
            )

        done = state.model_copy(update={
            "phase": RunPhase.COMPLETED,
            "completed_at": ended_at,
        })
        logger.info("Run %s completed", state.run_id)
        return RunStep(state=done, report_filename=artifact.filename)

    # ==================================================================
    # Single-shot operations (also exposed over HTTP)
    # ==================================================================

    async def record_response(
        self,
        db: AsyncSession,
        *,
        instruction_id: int,
        test_run_id: str,
        tester_name: str,
        approved: bool,
        remark: str | None,
        test_number: int,
    ) -> ResponseReceipt:
        """Persist one decision; a rejection then alerts the rejection recipient.

        Alert failures are logged and returned on the receipt, never raised.
        """
        instruction = await self._catalog.get(db, instruction_id)
        response = await self._recorder.record_test_response(
            db,
            instruction_id=instruction_id,
            test_run_id=test_run_id,
            tester_name=tester_name,
            approved=approved,
            remark=remark,
            test_number=test_number,
        )
        if approved:
            return ResponseReceipt(response=response)

        try:
            await self._dispatcher.send_rejection_alert(
                db,
                test_run_id=response.test_run_id,
                tester_name=response.tester_name,
                instruction_title=instruction.title,
                test_number=response.test_number,
                remark=response.remark or "",
            )
        except TransportError as exc:
            logger.warning(
                "Run %s: rejection alert for test %d failed: %s",
                response.test_run_id, response.test_number, exc,
            )
            return ResponseReceipt(response=response, alert_error=str(exc))
        return ResponseReceipt(response=response, alert_sent=True)

    async def generate_report(
        self,
        db: AsyncSession,
        *,
        test_run_id: str,
        tester_name: str,
        started_at: datetime,
        ended_at: datetime | None = None,
    ) -> ReportArtifact:
        """Compile the run's report and send it to the report recipient."""
        artifact = await self._compiler.compile(
            db,
            test_run_id=test_run_id,
            tester_name=tester_name,
            started_at=started_at,
            ended_at=ended_at,
        )
        await self._dispatcher.send_report(
            db, tester_name=artifact.content.tester_name, artifact=artifact,
        )
        return artifact

    async def resend_report(
        self,
        db: AsyncSession,
        *,
        test_run_id: str,
        deliver: bool = True,
    ) -> ReportArtifact:
        """Rebuild a run's report from persisted rows alone.

        Tester name and start time come from the run's first response; the
        end time is now.  With ``deliver=False`` the artifact is only
        compiled.
        """
        try:
            first = await self._responses.first_test_response(db, test_run_id)
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to load run {test_run_id}: {exc}") from exc
        if first is None:
            raise NotFoundError("Test run", test_run_id)

        kwargs = dict(
            test_run_id=test_run_id,
            tester_name=first.tester_name,
            started_at=first.created_at,
            ended_at=_now(),
        )
        if deliver:
            return await self.generate_report(db, **kwargs)
        return await self._compiler.compile(db, **kwargs)
