"""Report models — the structured content of a compiled run report.

``ReportContent`` is format-independent; the PDF renderer lays it out and
``as_text()`` gives a plain rendition for logs, email previews and tests.
"""

from pydantic import BaseModel


class ResultLine(BaseModel):
    """One instruction outcome within the run."""

    test_number: int
    title: str
    content: str = ""
    device: str = ""
    approved: bool
    remark: str | None = None

    @property
    def mark(self) -> str:
        return "✓" if self.approved else "✗"


class AnswerLine(BaseModel):
    """One questionnaire answer within the run."""

    question: str
    answer: str


class ReportContent(BaseModel):
    """Everything printed in a run report."""

    title: str
    tester_name: str
    test_run_id: str
    report_date: str
    narrative: str
    answers: list[AnswerLine] = []
    results: list[ResultLine] = []

    @property
    def passed(self) -> int:
        return sum(1 for r in self.results if r.approved)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if not r.approved)

    def as_text(self) -> str:
        lines = [self.title, "", self.narrative, ""]
        lines.append(f"Test Run ID: {self.test_run_id}")
        lines.append(f"Date: {self.report_date}")
        lines.append("")
        lines.append("The remarks of our test:")
        for a in self.answers:
            lines.append(f"{a.question}: {a.answer}")
        lines.append("")
        lines.append("Test Results:")
        for r in self.results:
            lines.append(f"{r.mark} {r.test_number}: {r.title}")
            if not r.approved and r.remark:
                lines.append(f"   Remark: {r.remark}")
        return "\n".join(lines)


class ReportArtifact(BaseModel):
    """A packaged report ready to attach to an email or download."""

    filename: str
    media_type: str
    data: bytes
    content: ReportContent
