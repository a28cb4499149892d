"""checkrun_workflow — sequential manual test-run SDK.

Public API:
    InstructionCatalog     — ordered instruction list with dense order_index
    QuestionnaireStore     — closing questionnaire, replaced as a whole
    ResponseRecorder       — persists test responses and questionnaire answers
    TestRunFlow            — state machine threading a TestRunState
    ReportCompiler         — run responses → PDF → zip | raw artifact
    NotificationDispatcher — rejection alerts and report emails

Run models:
    TestRunState — client-held progression cursor
    RunStep      — result of a state-machine transition
    RunPhase     — lifecycle phase enum
"""

from checkrun_workflow.catalog import InstructionCatalog
from checkrun_workflow.errors import (
    NotFoundError,
    RenderError,
    ReportIOError,
    StorageError,
    TransportError,
    ValidationError,
    WorkflowError,
)
from checkrun_workflow.flow import TestRunFlow
from checkrun_workflow.models.run import RunPhase, RunStep, TestRunState
from checkrun_workflow.notify import (
    NotificationDispatcher,
    RecipientPolicy,
    RecipientStrategy,
    SmtpConfig,
    SmtpTransport,
)
from checkrun_workflow.questionnaire import QuestionnaireStore
from checkrun_workflow.recorder import ResponseRecorder
from checkrun_workflow.report import ReportCompiler

__all__ = [
    # Components
    "InstructionCatalog",
    "QuestionnaireStore",
    "ResponseRecorder",
    "TestRunFlow",
    "ReportCompiler",
    "NotificationDispatcher",
    "RecipientPolicy",
    "RecipientStrategy",
    "SmtpConfig",
    "SmtpTransport",
    # Run models
    "RunPhase",
    "RunStep",
    "TestRunState",
    # Errors
    "WorkflowError",
    "ValidationError",
    "NotFoundError",
    "RenderError",
    "ReportIOError",
    "TransportError",
    "StorageError",
]
