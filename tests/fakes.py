"""In-memory stand-ins for the checkrun_db layer and the mail transport.

Mock strategy:
  - Mock*Row dataclasses carry the same attributes as the ORM models but
    no SQLAlchemy dependency.  The workflow reads attributes directly and
    validates them into pydantic views with ``from_attributes``.
  - Mock*Repository classes implement every async method the workflow
    calls, against one shared ``MemoryStore``, with the same side effects
    as the real repositories (including ON DELETE CASCADE).
  - ``FakeDB`` stands in for AsyncSession.  ``begin_nested()`` snapshots
    the store and restores it when the block raises, so savepoint
    atomicity can be asserted without PostgreSQL.
  - Any repository method can be told to fail with ``fail_on(name)``,
    which raises a SQLAlchemyError the way a broken connection would.
"""

import copy
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock

from sqlalchemy.exc import OperationalError

from checkrun_workflow.catalog import InstructionCatalog
from checkrun_workflow.errors import TransportError
from checkrun_workflow.flow import TestRunFlow
from checkrun_workflow.notify.dispatcher import NotificationDispatcher, RecipientPolicy
from checkrun_workflow.notify.transport import MailMessage, MailTransport
from checkrun_workflow.questionnaire import QuestionnaireStore
from checkrun_workflow.recorder import ResponseRecorder
from checkrun_workflow.report.compiler import ReportCompiler


def _now() -> datetime:
    return datetime.now(timezone.utc)


# =====================================================================
# Rows
# =====================================================================


@dataclass
class MockInstructionRow:
    id: int
    title: str
    content: str
    device: str
    order_index: int
    video_url: str | None = None
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)


@dataclass
class MockQuestionRow:
    id: int
    title: str
    order_index: int
    required: bool = True
    created_at: datetime = field(default_factory=_now)


@dataclass
class MockTestResponseRow:
    id: int
    instruction_id: int
    test_run_id: str
    tester_name: str
    approved: bool
    remark: str | None
    test_number: int
    created_at: datetime = field(default_factory=_now)


@dataclass
class MockAnswerRow:
    id: int
    test_run_id: str
    questionnaire_id: int | None
    question_title: str
    question_order: int
    tester_name: str
    answer: str
    created_at: datetime = field(default_factory=_now)


@dataclass
class MockSettingsRow:
    report_email: str | None = None
    rejection_email: str | None = None
    updated_at: datetime = field(default_factory=_now)


# =====================================================================
# Store and session
# =====================================================================


class MemoryStore:
    """All tables, keyed by primary key, plus an id sequence."""

    def __init__(self):
        self.instructions: dict[int, MockInstructionRow] = {}
        self.questions: dict[int, MockQuestionRow] = {}
        self.test_responses: dict[int, MockTestResponseRow] = {}
        self.answers: dict[int, MockAnswerRow] = {}
        self.settings: MockSettingsRow | None = None
        self._seq = 0

    def next_id(self) -> int:
        self._seq += 1
        return self._seq

    def snapshot(self) -> dict:
        return copy.deepcopy(self.__dict__)

    def restore(self, snapshot: dict) -> None:
        self.__dict__.clear()
        self.__dict__.update(snapshot)

    # --- seeding helpers ---

    def add_instruction(self, title, *, content=None, device="desktop"):
        order = max((r.order_index for r in self.instructions.values()), default=0) + 1
        row = MockInstructionRow(
            id=self.next_id(),
            title=title,
            content=content or f"Steps for {title}",
            device=device,
            order_index=order,
        )
        self.instructions[row.id] = row
        return row

    def add_question(self, title, *, required=True):
        order = max((r.order_index for r in self.questions.values()), default=0) + 1
        row = MockQuestionRow(
            id=self.next_id(), title=title, order_index=order, required=required,
        )
        self.questions[row.id] = row
        return row

    def add_test_response(self, instruction_id, run_id, tester, approved,
                          remark, test_number, created_at=None):
        row = MockTestResponseRow(
            id=self.next_id(),
            instruction_id=instruction_id,
            test_run_id=run_id,
            tester_name=tester,
            approved=approved,
            remark=remark,
            test_number=test_number,
            created_at=created_at or _now(),
        )
        self.test_responses[row.id] = row
        return row

    def add_answer(self, run_id, question_id, tester, answer):
        question = self.questions[question_id]
        row = MockAnswerRow(
            id=self.next_id(),
            test_run_id=run_id,
            questionnaire_id=question_id,
            question_title=question.title,
            question_order=question.order_index,
            tester_name=tester,
            answer=answer,
        )
        self.answers[row.id] = row
        return row

    # --- inspection helpers ---

    def instruction_order(self) -> list[tuple[str, int]]:
        rows = sorted(self.instructions.values(), key=lambda r: r.order_index)
        return [(r.title, r.order_index) for r in rows]

    def run_responses(self, run_id) -> list[MockTestResponseRow]:
        return sorted(
            (r for r in self.test_responses.values() if r.test_run_id == run_id),
            key=lambda r: r.test_number,
        )

    def run_answers(self, run_id) -> list[MockAnswerRow]:
        return [r for r in self.answers.values() if r.test_run_id == run_id]


class FakeDB:
    """AsyncSession stand-in whose savepoints roll the MemoryStore back."""

    def __init__(self, store: MemoryStore):
        self._store = store
        self.flush = AsyncMock()
        self.commit = AsyncMock()
        self.rollback = AsyncMock()
        self.savepoints_rolled_back = 0

    @asynccontextmanager
    async def begin_nested(self):
        snapshot = self._store.snapshot()
        try:
            yield self
        except BaseException:
            self._store.restore(snapshot)
            self.savepoints_rolled_back += 1
            raise


# =====================================================================
# Repositories
# =====================================================================


class _FailureMixin:
    """Let a test make one named method raise a SQLAlchemyError."""

    def __init__(self, store: MemoryStore):
        self._store = store
        self._failing: set[str] = set()

    def fail_on(self, name: str) -> None:
        self._failing.add(name)

    def _check(self, name: str) -> None:
        if name in self._failing:
            raise OperationalError(name, {}, Exception("connection lost"))


class MockInstructionRepository(_FailureMixin):
    async def list_ordered(self, db, *, for_update=False):
        self._check("list_ordered")
        return sorted(
            self._store.instructions.values(), key=lambda r: (r.order_index, r.id),
        )

    async def get(self, db, instruction_id):
        return self._store.instructions.get(instruction_id)

    async def max_order_index(self, db):
        return max((r.order_index for r in self._store.instructions.values()), default=0)

    async def create(self, db, *, title, content, device, video_url, order_index):
        self._check("create")
        row = MockInstructionRow(
            id=self._store.next_id(),
            title=title,
            content=content,
            device=device,
            video_url=video_url,
            order_index=order_index,
        )
        self._store.instructions[row.id] = row
        return row

    async def update_fields(self, db, row, fields):
        self._check("update_fields")
        for name, value in fields.items():
            setattr(row, name, value)
        row.updated_at = _now()
        return row

    async def delete(self, db, row):
        self._check("delete")
        self._store.instructions.pop(row.id, None)
        # ON DELETE CASCADE
        for rid in [r.id for r in self._store.test_responses.values()
                    if r.instruction_id == row.id]:
            del self._store.test_responses[rid]

    async def apply_order(self, db, assignment):
        self._check("apply_order")
        for row_id, index in assignment.items():
            self._store.instructions[row_id].order_index = index


class MockQuestionnaireRepository(_FailureMixin):
    async def list_ordered(self, db, *, for_update=False):
        return sorted(
            self._store.questions.values(), key=lambda r: (r.order_index, r.id),
        )

    async def get(self, db, item_id):
        return self._store.questions.get(item_id)

    async def replace_all(self, db, items):
        self._check("replace_all")
        self._store.questions.clear()
        # ON DELETE SET NULL
        for answer in self._store.answers.values():
            answer.questionnaire_id = None
        rows = []
        for position, (title, required) in enumerate(items, start=1):
            row = MockQuestionRow(
                id=self._store.next_id(),
                title=title,
                order_index=position,
                required=required,
            )
            self._store.questions[row.id] = row
            rows.append(row)
        return rows

    async def delete(self, db, row):
        self._check("delete")
        self._store.questions.pop(row.id, None)

    async def apply_order(self, db, assignment):
        self._check("apply_order")
        for row_id, index in assignment.items():
            self._store.questions[row_id].order_index = index


class MockResponseRepository(_FailureMixin):
    async def create_test_response(self, db, *, instruction_id, test_run_id,
                                   tester_name, approved, remark, test_number):
        self._check("create_test_response")
        return self._store.add_test_response(
            instruction_id, test_run_id, tester_name, approved, remark, test_number,
        )

    async def last_test_number(self, db, test_run_id):
        return max(
            (r.test_number for r in self._store.run_responses(test_run_id)),
            default=0,
        )

    async def first_test_response(self, db, test_run_id):
        rows = self._store.run_responses(test_run_id)
        return rows[0] if rows else None

    async def list_run_results(self, db, test_run_id):
        self._check("list_run_results")
        return [
            (r, self._store.instructions[r.instruction_id])
            for r in self._store.run_responses(test_run_id)
            if r.instruction_id in self._store.instructions
        ]

    async def delete_for_instruction(self, db, instruction_id):
        self._check("delete_for_instruction")
        doomed = [r.id for r in self._store.test_responses.values()
                  if r.instruction_id == instruction_id]
        for rid in doomed:
            del self._store.test_responses[rid]
        return len(doomed)

    async def has_answers(self, db, test_run_id):
        return bool(self._store.run_answers(test_run_id))

    async def create_answers(self, db, *, test_run_id, tester_name, answers):
        self._check("create_answers")
        return [
            self._store.add_answer(test_run_id, item.id, tester_name, answer)
            for item, answer in answers
        ]

    async def list_run_answers(self, db, test_run_id):
        return sorted(
            self._store.run_answers(test_run_id),
            key=lambda a: (a.question_order, a.id),
        )

    async def delete_for_questionnaire(self, db, questionnaire_id):
        self._check("delete_for_questionnaire")
        doomed = [a.id for a in self._store.answers.values()
                  if a.questionnaire_id == questionnaire_id]
        for aid in doomed:
            del self._store.answers[aid]
        return len(doomed)


class MockSettingsRepository(_FailureMixin):
    async def get(self, db):
        self._check("get")
        return self._store.settings

    async def save(self, db, *, report_email, rejection_email):
        if self._store.settings is None:
            self._store.settings = MockSettingsRow()
        self._store.settings.report_email = report_email
        self._store.settings.rejection_email = rejection_email
        self._store.settings.updated_at = _now()
        return self._store.settings


# =====================================================================
# Mail transports
# =====================================================================


class RecordingTransport(MailTransport):
    """Keeps every message instead of sending it."""

    def __init__(self):
        self.sent: list[MailMessage] = []

    async def send(self, message):
        self.sent.append(message)

    def subjects(self) -> list[str]:
        return [m.subject for m in self.sent]


class FailingTransport(MailTransport):
    """Refuses every message the way an unreachable relay would."""

    def __init__(self, reason="Connection refused"):
        self.reason = reason
        self.attempts = 0

    async def send(self, message):
        self.attempts += 1
        raise TransportError(f"SMTP delivery failed: {self.reason}")


# =====================================================================
# Wiring
# =====================================================================


def build_workflow(store, transport, *, policy=None, packaging="zip"):
    """Wire every workflow component against mock repositories.

    Returns a namespace with the components and their repositories so
    tests can inject failures.
    """
    repos = SimpleNamespace(
        instructions=MockInstructionRepository(store),
        questions=MockQuestionnaireRepository(store),
        responses=MockResponseRepository(store),
        settings=MockSettingsRepository(store),
    )

    catalog = InstructionCatalog()
    catalog._repo = repos.instructions
    catalog._responses = repos.responses

    questionnaire = QuestionnaireStore()
    questionnaire._repo = repos.questions
    questionnaire._responses = repos.responses

    recorder = ResponseRecorder()
    recorder._repo = repos.responses
    recorder._questions = repos.questions

    compiler = ReportCompiler(packaging=packaging, tz_name="Europe/Berlin")
    compiler._repo = repos.responses

    dispatcher = NotificationDispatcher(transport, policy=policy or RecipientPolicy())
    dispatcher._settings = repos.settings

    flow = TestRunFlow(catalog, questionnaire, recorder, compiler, dispatcher)
    flow._responses = repos.responses

    return SimpleNamespace(
        repos=repos,
        catalog=catalog,
        questionnaire=questionnaire,
        recorder=recorder,
        compiler=compiler,
        dispatcher=dispatcher,
        flow=flow,
    )
