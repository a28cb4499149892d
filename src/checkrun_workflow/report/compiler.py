"""ReportCompiler — turns a run's persisted responses into a distributable file.

Pipeline::

    test_responses ⨝ instructions ──┐
                                    ├─► ReportContent ─► PDF ─► zip | raw
    questionnaire_responses ────────┘

The content model is built by the pure :func:`build_content` so the text of
a report can be checked without rendering a PDF.

Packaging is an explicit option: ``zip`` (the PDF inside a deflated archive)
or ``raw`` (the PDF itself).
"""

from __future__ import annotations

import logging
import re
import zipfile
from datetime import datetime, timezone
from io import BytesIO
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from checkrun_db.repository import ResponseRepository

from checkrun_workflow.constants import (
    PACKAGING_MODES,
    PACKAGING_ZIP,
    REPORT_FILE_SUFFIX,
    REPORT_TIMEZONE,
)
from checkrun_workflow.errors import (
    RenderError,
    ReportIOError,
    StorageError,
    ValidationError,
)
from checkrun_workflow.models.report import (
    AnswerLine,
    ReportArtifact,
    ReportContent,
    ResultLine,
)
from checkrun_workflow.report.formatting import (
    as_utc,
    format_clock,
    format_duration,
    format_long_date,
    format_short_date,
)
from checkrun_workflow.report.pdf import render_pdf

logger = logging.getLogger(__name__)

_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def report_basename(tester_name: str) -> str:
    """File-system safe ``<tester>_test_report`` stem."""
    safe = _UNSAFE_FILENAME_CHARS.sub("_", tester_name.strip()).strip("._")
    return f"{safe or 'tester'}{REPORT_FILE_SUFFIX}"


def build_content(
    *,
    test_run_id: str,
    tester_name: str,
    started_at: datetime,
    ended_at: datetime,
    results: list[ResultLine],
    answers: list[AnswerLine],
    tz_name: str = REPORT_TIMEZONE,
) -> ReportContent:
    """Assemble the narrative and result lists of a report."""
    narrative = (
        f"Today, {format_long_date(ended_at, tz_name)}, I completed testing. "
        f"I started the test at {format_clock(started_at, tz_name)} and finished "
        f"at {format_clock(ended_at, tz_name)}. "
        f"Total testing took {format_duration(started_at, ended_at)}."
    )
    return ReportContent(
        title=f"Test Report for {tester_name}",
        tester_name=tester_name,
        test_run_id=test_run_id,
        report_date=format_short_date(ended_at, tz_name),
        narrative=narrative,
        answers=answers,
        results=sorted(results, key=lambda r: r.test_number),
    )


def package_report(pdf: bytes, basename: str, packaging: str) -> tuple[str, str, bytes]:
    """Wrap the PDF per ``packaging``; returns ``(filename, media_type, data)``."""
    if packaging != PACKAGING_ZIP:
        return f"{basename}.pdf", "application/pdf", pdf

    buffer = BytesIO()
    try:
        with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED, compresslevel=9) as zf:
            zf.writestr(f"{basename}.pdf", pdf)
    except (OSError, zipfile.LargeZipFile) as exc:
        raise ReportIOError(f"Failed to compress report: {exc}") from exc
    return f"{basename}.zip", "application/zip", buffer.getvalue()


class ReportCompiler:
    """Compile a run report from the database.

    Args:
        packaging: ``"zip"`` or ``"raw"``
        tz_name: IANA timezone for the clock times in the narrative
    """

    def __init__(
        self,
        packaging: str = PACKAGING_ZIP,
        tz_name: str = REPORT_TIMEZONE,
    ) -> None:
        if packaging not in PACKAGING_MODES:
            raise ValueError(
                f"Unknown report packaging {packaging!r}; "
                f"expected one of {PACKAGING_MODES}"
            )
        try:
            ZoneInfo(tz_name)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown report timezone {tz_name!r}") from exc
        self.packaging = packaging
        self.tz_name = tz_name
        self._repo = ResponseRepository()

    async def compile(
        self,
        db: AsyncSession,
        *,
        test_run_id: str,
        tester_name: str,
        started_at: datetime,
        ended_at: datetime | None = None,
    ) -> ReportArtifact:
        """Fetch, render and package the report for one run.

        Raises ``RenderError`` when the run has no recorded test responses
        (an empty report is never a valid run completion).
        """
        if not tester_name or not tester_name.strip():
            raise ValidationError("'tester_name' is required")
        ended_at = ended_at or datetime.now(timezone.utc)
        if as_utc(ended_at) < as_utc(started_at):
            raise ValidationError("Report end time is before its start time")

        try:
            joined_results = await self._repo.list_run_results(db, test_run_id)
            stored_answers = await self._repo.list_run_answers(db, test_run_id)
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to load run {test_run_id}: {exc}") from exc

        if not joined_results:
            raise RenderError(f"No responses recorded for run {test_run_id}")

        results = [
            ResultLine(
                test_number=resp.test_number,
                title=instr.title,
                content=instr.content,
                device=getattr(instr.device, "value", instr.device),
                approved=resp.approved,
                remark=resp.remark,
            )
            for resp, instr in joined_results
        ]
        answers = [
            AnswerLine(question=resp.question_title, answer=resp.answer)
            for resp in stored_answers
        ]
        content = build_content(
            test_run_id=test_run_id,
            tester_name=tester_name.strip(),
            started_at=started_at,
            ended_at=ended_at,
            results=results,
            answers=answers,
            tz_name=self.tz_name,
        )

        try:
            pdf = render_pdf(content)
        except Exception as exc:
            # reportlab raises a mix of LayoutError, ValueError and friends
            raise RenderError(f"Failed to render report PDF: {exc}") from exc

        filename, media_type, data = package_report(
            pdf, report_basename(content.tester_name), self.packaging,
        )
        logger.info(
            "Compiled report %s for run %s (%d results, %d answers, %d bytes)",
            filename, test_run_id, len(results), len(answers), len(data),
        )
        return ReportArtifact(
            filename=filename, media_type=media_type, data=data, content=content,
        )
