"""TestRunFlow tests with mocked DB layer and a recording mail transport.

Covers the full state machine (start → respond → questionnaire →
completed), the rejection-alert side channel, and report delivery
failures that must never undo recorded responses.
"""

import io
import zipfile
from datetime import datetime, timedelta, timezone

import pytest

from checkrun_workflow.errors import (
    NotFoundError,
    RenderError,
    TransportError,
    ValidationError,
)
from checkrun_workflow.models.questionnaire import QuestionnaireItemInput
from checkrun_workflow.models.run import RunPhase, TestRunState

from fakes import FailingTransport, RecordingTransport, build_workflow


@pytest.fixture
def two_instructions(store):
    return [store.add_instruction("Login"), store.add_instruction("Checkout")]


@pytest.fixture
def closing_questions(store):
    return (
        store.add_question("How was the overall experience?"),
        store.add_question("Anything else?", required=False),
    )


async def _walk_to_questionnaire(flow, db, tester="Alice"):
    step = await flow.start(db, tester_name=tester)
    while step.state.phase == RunPhase.IN_PROGRESS:
        step = await flow.respond(db, step.state, approved=True)
    return step


# =====================================================================
# start
# =====================================================================


class TestStart:
    @pytest.mark.asyncio
    async def test_start_snapshots_catalog(self, wf, mock_db, two_instructions):
        step = await wf.flow.start(mock_db, tester_name=" Alice ")
        state = step.state
        assert state.phase == RunPhase.IN_PROGRESS
        assert state.tester_name == "Alice"
        assert state.current_index == 0
        assert state.instruction_ids == [i.id for i in two_instructions]
        assert len(state.run_id) == 32, "run id should be a uuid4 hex"
        assert step.instruction.title == "Login"

    @pytest.mark.asyncio
    async def test_each_start_gets_a_fresh_run_id(self, wf, mock_db, two_instructions):
        first = await wf.flow.start(mock_db, tester_name="Alice")
        second = await wf.flow.start(mock_db, tester_name="Bob")
        assert first.state.run_id != second.state.run_id

    @pytest.mark.asyncio
    async def test_blank_tester_name(self, wf, mock_db, two_instructions):
        with pytest.raises(ValidationError, match="tester_name"):
            await wf.flow.start(mock_db, tester_name="  ")

    @pytest.mark.asyncio
    async def test_empty_catalog(self, wf, mock_db):
        with pytest.raises(ValidationError, match="no instructions"):
            await wf.flow.start(mock_db, tester_name="Alice")

    @pytest.mark.asyncio
    async def test_refuses_to_replace_active_run(self, wf, mock_db, two_instructions):
        step = await wf.flow.start(mock_db, tester_name="Alice")
        with pytest.raises(ValidationError, match="still in_progress"):
            await wf.flow.start(mock_db, tester_name="Alice", current=step.state)

    @pytest.mark.asyncio
    async def test_completed_run_may_be_followed_by_new_one(
        self, wf, mock_db, two_instructions,
    ):
        done = TestRunState(phase=RunPhase.COMPLETED, run_id="old")
        step = await wf.flow.start(mock_db, tester_name="Alice", current=done)
        assert step.state.run_id != "old"


# =====================================================================
# respond
# =====================================================================


class TestRespond:
    @pytest.mark.asyncio
    async def test_scenario_approve_then_reject(
        self, wf, mock_db, store, transport, two_instructions, closing_questions,
    ):
        """Alice, 2 instructions: approve → in_progress(1); reject → questionnaire."""
        step = await wf.flow.start(mock_db, tester_name="Alice")

        step = await wf.flow.respond(mock_db, step.state, approved=True)
        assert step.state.phase == RunPhase.IN_PROGRESS
        assert step.state.current_index == 1
        assert step.instruction.title == "Checkout"
        assert transport.sent == [], "Approvals send no alert"

        step = await wf.flow.respond(
            mock_db, step.state, approved=False, remark="layout broken",
        )
        assert step.state.phase == RunPhase.AWAITING_QUESTIONNAIRE
        assert [q.title for q in step.questionnaire] == [
            "How was the overall experience?", "Anything else?",
        ]
        assert step.alert_error is None

        rows = store.run_responses(step.state.run_id)
        assert [(r.test_number, r.approved, r.remark) for r in rows] == [
            (1, True, None),
            (2, False, "layout broken"),
        ]

        assert transport.subjects() == ["Test Rejected for Alice"]
        alert = transport.sent[0]
        assert alert.to == "qa-lead@example.com"
        assert "layout broken" in alert.text
        assert "Checkout" in alert.text

    @pytest.mark.asyncio
    async def test_rejection_without_remark_keeps_state(
        self, wf, mock_db, store, two_instructions,
    ):
        step = await wf.flow.start(mock_db, tester_name="Alice")
        with pytest.raises(ValidationError):
            await wf.flow.respond(mock_db, step.state, approved=False, remark="")
        assert store.test_responses == {}

    @pytest.mark.asyncio
    async def test_alert_failure_does_not_block(self, store, mock_db, two_instructions):
        transport = FailingTransport()
        wf = build_workflow(store, transport)
        step = await wf.flow.start(mock_db, tester_name="Alice")

        step = await wf.flow.respond(
            mock_db, step.state, approved=False, remark="button missing",
        )

        assert step.state.current_index == 1, "Run must still advance"
        assert "Connection refused" in step.alert_error
        assert len(store.run_responses(step.state.run_id)) == 1
        assert transport.attempts == 1

    @pytest.mark.asyncio
    async def test_respond_outside_in_progress(self, wf, mock_db, two_instructions):
        step = await _walk_to_questionnaire(wf.flow, mock_db)
        with pytest.raises(ValidationError, match="Cannot respond"):
            await wf.flow.respond(mock_db, step.state, approved=True)

    @pytest.mark.asyncio
    async def test_instruction_deleted_mid_run(self, wf, mock_db, two_instructions):
        step = await wf.flow.start(mock_db, tester_name="Alice")
        await wf.catalog.delete(mock_db, two_instructions[0].id)
        with pytest.raises(NotFoundError):
            await wf.flow.respond(mock_db, step.state, approved=True)

    @pytest.mark.asyncio
    async def test_test_numbers_are_gap_free(self, wf, mock_db, store):
        for n in range(5):
            store.add_instruction(f"T{n}")
        step = await wf.flow.start(mock_db, tester_name="Alice")
        for n in range(5):
            step = await wf.flow.respond(
                mock_db, step.state,
                approved=n % 2 == 0, remark=None if n % 2 == 0 else f"issue {n}",
            )
        numbers = [r.test_number for r in store.run_responses(step.state.run_id)]
        assert numbers == [1, 2, 3, 4, 5]

    @pytest.mark.asyncio
    async def test_run_size_fixed_at_start(self, wf, mock_db, store, two_instructions):
        step = await wf.flow.start(mock_db, tester_name="Alice")
        store.add_instruction("Added mid-run")
        step = await wf.flow.respond(mock_db, step.state, approved=True)
        step = await wf.flow.respond(mock_db, step.state, approved=True)
        assert step.state.phase == RunPhase.AWAITING_QUESTIONNAIRE
        assert step.state.total == 2


# =====================================================================
# submit_questionnaire
# =====================================================================


class TestSubmitQuestionnaire:
    @pytest.mark.asyncio
    async def test_completes_and_sends_report(
        self, wf, mock_db, store, transport, two_instructions, closing_questions,
    ):
        step = await _walk_to_questionnaire(wf.flow, mock_db)
        required, _ = closing_questions

        step = await wf.flow.submit_questionnaire(
            mock_db, step.state, {required.id: "Smooth overall"},
        )

        assert step.state.phase == RunPhase.COMPLETED
        assert step.state.completed_at is not None
        assert step.report_filename == "Alice_test_report.zip"
        assert step.report_error is None

        report = transport.sent[-1]
        assert report.subject == "Test Report: Alice"
        assert report.to == "reports@example.com"
        attachment = report.attachments[0]
        with zipfile.ZipFile(io.BytesIO(attachment.data)) as zf:
            assert zf.namelist() == ["Alice_test_report.pdf"]

    @pytest.mark.asyncio
    async def test_required_item_left_blank(
        self, wf, mock_db, store, transport, two_instructions, closing_questions,
    ):
        """Blank required answer → ValidationError, nothing stored, same phase."""
        step = await _walk_to_questionnaire(wf.flow, mock_db)
        _, optional = closing_questions

        with pytest.raises(ValidationError):
            await wf.flow.submit_questionnaire(
                mock_db, step.state, {optional.id: "only the optional one"},
            )

        assert store.answers == {}
        assert step.state.phase == RunPhase.AWAITING_QUESTIONNAIRE
        assert transport.sent == []

    @pytest.mark.asyncio
    async def test_report_failure_keeps_answers_and_allows_retry(
        self, store, mock_db, two_instructions, closing_questions,
    ):
        failing = FailingTransport("auth rejected")
        wf = build_workflow(store, failing)
        step = await _walk_to_questionnaire(wf.flow, mock_db)
        required, _ = closing_questions

        step = await wf.flow.submit_questionnaire(
            mock_db, step.state, {required.id: "Fine"},
        )
        assert step.state.phase == RunPhase.AWAITING_QUESTIONNAIRE
        assert step.state.answers_recorded is True
        assert "auth rejected" in step.report_error
        assert len(store.run_answers(step.state.run_id)) == 1
        assert len(store.run_responses(step.state.run_id)) == 2

        # Relay is back: same state is submitted again
        retry_wf = build_workflow(store, RecordingTransport())
        retry = await retry_wf.flow.submit_questionnaire(
            mock_db, step.state, {required.id: "Fine"},
        )
        assert retry.state.phase == RunPhase.COMPLETED
        assert len(store.run_answers(step.state.run_id)) == 1, (
            "Answers must not be recorded twice"
        )

    @pytest.mark.asyncio
    async def test_missing_report_recipient_is_reported(
        self, wf, mock_db, store, two_instructions,
    ):
        store.settings.report_email = None
        step = await _walk_to_questionnaire(wf.flow, mock_db)
        step = await wf.flow.submit_questionnaire(mock_db, step.state, {})
        assert step.state.phase == RunPhase.AWAITING_QUESTIONNAIRE
        assert "No recipient configured for report_email" in step.report_error

    @pytest.mark.asyncio
    async def test_submit_outside_questionnaire_phase(
        self, wf, mock_db, two_instructions,
    ):
        step = await wf.flow.start(mock_db, tester_name="Alice")
        with pytest.raises(ValidationError, match="Cannot submit questionnaire"):
            await wf.flow.submit_questionnaire(mock_db, step.state, {})


# =====================================================================
# Single-shot operations
# =====================================================================


class TestRecordResponse:
    @pytest.mark.asyncio
    async def test_receipt_reports_alert(self, wf, mock_db, transport, two_instructions):
        receipt = await wf.flow.record_response(
            mock_db,
            instruction_id=two_instructions[0].id,
            test_run_id="run-x",
            tester_name="Bob",
            approved=False,
            remark="typo in header",
            test_number=1,
        )
        assert receipt.alert_sent is True
        assert receipt.response.remark == "typo in header"
        assert transport.subjects() == ["Test Rejected for Bob"]

    @pytest.mark.asyncio
    async def test_unknown_instruction(self, wf, mock_db, store):
        with pytest.raises(NotFoundError):
            await wf.flow.record_response(
                mock_db, instruction_id=77, test_run_id="run-x", tester_name="Bob",
                approved=True, remark=None, test_number=1,
            )
        assert store.test_responses == {}


class TestGenerateReport:
    @pytest.mark.asyncio
    async def test_run_without_responses(self, wf, mock_db, transport):
        with pytest.raises(RenderError, match="No responses"):
            await wf.flow.generate_report(
                mock_db,
                test_run_id="empty-run",
                tester_name="Alice",
                started_at=datetime.now(timezone.utc),
            )
        assert transport.sent == []

    @pytest.mark.asyncio
    async def test_dispatch_failure_raises(self, store, mock_db, two_instructions):
        store.add_test_response(two_instructions[0].id, "run-a", "Alice", True, None, 1)
        wf = build_workflow(store, FailingTransport())
        with pytest.raises(TransportError):
            await wf.flow.generate_report(
                mock_db, test_run_id="run-a", tester_name="Alice",
                started_at=datetime.now(timezone.utc) - timedelta(minutes=5),
            )
        assert len(store.test_responses) == 1, "Responses are never retracted"


class TestResendReport:
    @pytest.mark.asyncio
    async def test_derives_tester_from_first_response(
        self, wf, mock_db, store, transport, two_instructions,
    ):
        started = datetime.now(timezone.utc) - timedelta(minutes=42)
        store.add_test_response(
            two_instructions[0].id, "run-a", "Carol", True, None, 1, created_at=started,
        )
        store.add_test_response(
            two_instructions[1].id, "run-a", "Carol", False, "slow", 2,
        )

        artifact = await wf.flow.resend_report(mock_db, test_run_id="run-a")

        assert artifact.content.tester_name == "Carol"
        assert "42 minutes" in artifact.content.narrative
        assert transport.subjects() == ["Test Report: Carol"]

    @pytest.mark.asyncio
    async def test_compile_only(self, wf, mock_db, store, transport, two_instructions):
        store.add_test_response(two_instructions[0].id, "run-a", "Carol", True, None, 1)
        artifact = await wf.flow.resend_report(
            mock_db, test_run_id="run-a", deliver=False,
        )
        assert artifact.filename == "Carol_test_report.zip"
        assert transport.sent == []

    @pytest.mark.asyncio
    async def test_unknown_run(self, wf, mock_db):
        with pytest.raises(NotFoundError, match="Test run not found"):
            await wf.flow.resend_report(mock_db, test_run_id="nope")

    @pytest.mark.asyncio
    async def test_answers_survive_questionnaire_replacement(
        self, wf, mock_db, store, transport, two_instructions, closing_questions,
    ):
        overall, extra = closing_questions
        step = await _walk_to_questionnaire(wf.flow, mock_db)
        step = await wf.flow.submit_questionnaire(
            mock_db, step.state, {overall.id: "Mostly smooth", extra.id: "Dark mode"},
        )
        assert step.state.phase == RunPhase.COMPLETED
        run_id = step.state.run_id

        # Admin saves a new questionnaire, reusing one of the old titles
        await wf.questionnaire.replace(mock_db, [
            QuestionnaireItemInput(title="How was the overall experience?"),
        ])

        artifact = await wf.flow.resend_report(
            mock_db, test_run_id=run_id, deliver=False,
        )
        assert [(a.question, a.answer) for a in artifact.content.answers] == [
            ("How was the overall experience?", "Mostly smooth"),
            ("Anything else?", "Dark mode"),
        ]
