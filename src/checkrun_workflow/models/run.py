"""Test-run models — the client-held state machine and its step results.

``TestRunState`` is an immutable value object.  Every ``TestRunFlow``
operation takes one and returns a new one inside a ``RunStep``; the caller
persists it between calls (the server keeps no run state in memory).

Phases::

    not_started ──► in_progress(0) ──► ... ──► in_progress(N-1)
                                                   │
                                                   ▼
                            completed ◄── awaiting_questionnaire
"""

import enum
from datetime import datetime

from pydantic import BaseModel, ConfigDict

from checkrun_workflow.models.instruction import InstructionView
from checkrun_workflow.models.questionnaire import QuestionnaireItemView


class RunPhase(str, enum.Enum):
    """Lifecycle phase of a test run."""

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    AWAITING_QUESTIONNAIRE = "awaiting_questionnaire"
    COMPLETED = "completed"


class TestRunState(BaseModel):
    """Progression cursor for one tester's pass through the catalog.

    ``instruction_ids`` is the catalog snapshot taken at start; its length is
    the run size N and never changes for the rest of the run.
    """

    __test__ = False
    model_config = ConfigDict(frozen=True)

    phase: RunPhase = RunPhase.NOT_STARTED
    run_id: str | None = None
    tester_name: str | None = None
    started_at: datetime | None = None
    # 0-based index into instruction_ids while in_progress
    current_index: int = 0
    instruction_ids: list[int] = []
    # Set once questionnaire answers are persisted, so a retry after a
    # failed report dispatch does not record them twice
    answers_recorded: bool = False
    completed_at: datetime | None = None

    @property
    def total(self) -> int:
        return len(self.instruction_ids)

    @property
    def is_active(self) -> bool:
        return self.phase in (RunPhase.IN_PROGRESS, RunPhase.AWAITING_QUESTIONNAIRE)

    @property
    def test_number(self) -> int:
        """1-based number the next response will be recorded under."""
        return self.current_index + 1


class RunStep(BaseModel):
    """Result of a state-machine transition.

    Carries the new state plus what the tester UI needs next: the current
    instruction while in progress, or the questionnaire once the last
    instruction is answered.  Delivery problems are reported here instead
    of being raised, because they never roll back recorded answers.
    """

    state: TestRunState
    instruction: InstructionView | None = None
    questionnaire: list[QuestionnaireItemView] | None = None
    alert_error: str | None = None
    report_error: str | None = None
    report_filename: str | None = None


class RecordedResponse(BaseModel):
    """A persisted test response."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    instruction_id: int
    test_run_id: str
    tester_name: str
    approved: bool
    remark: str | None = None
    test_number: int
    created_at: datetime


class ResponseReceipt(BaseModel):
    """Outcome of recording a response: the row and whether any alert went out."""

    response: RecordedResponse
    alert_sent: bool = False
    alert_error: str | None = None
