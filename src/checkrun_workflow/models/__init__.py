"""Pydantic models exchanged between the workflow SDK and its callers."""

from checkrun_workflow.models.instruction import InstructionView
from checkrun_workflow.models.questionnaire import (
    QuestionnaireItemInput,
    QuestionnaireItemView,
    RecordedAnswer,
)
from checkrun_workflow.models.report import (
    AnswerLine,
    ReportArtifact,
    ReportContent,
    ResultLine,
)
from checkrun_workflow.models.run import (
    RecordedResponse,
    ResponseReceipt,
    RunPhase,
    RunStep,
    TestRunState,
)

__all__ = [
    "AnswerLine",
    "InstructionView",
    "QuestionnaireItemInput",
    "QuestionnaireItemView",
    "RecordedAnswer",
    "RecordedResponse",
    "ReportArtifact",
    "ReportContent",
    "ResponseReceipt",
    "ResultLine",
    "RunPhase",
    "RunStep",
    "TestRunState",
]
