"""Lay out a ``ReportContent`` as an A4 PDF with reportlab platypus."""

from io import BytesIO
from xml.sax.saxutils import escape

from reportlab.lib.colors import HexColor
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer

from checkrun_workflow.models.report import ReportContent

PASS_COLOR = "#27ae60"
FAIL_COLOR = "#e74c3c"

# ZapfDingbats glyphs: "4" is a heavy check mark, "8" a heavy ballot X
_PASS_GLYPH = "4"
_FAIL_GLYPH = "8"


def make_styles() -> dict[str, ParagraphStyle]:
    base = getSampleStyleSheet()
    return {
        "title": ParagraphStyle(
            "ReportTitle", parent=base["Title"], fontSize=16, alignment=TA_CENTER,
        ),
        "body": ParagraphStyle(
            "ReportBody", parent=base["Normal"], fontSize=12, leading=16,
        ),
        "heading": ParagraphStyle(
            "ReportHeading", parent=base["Normal"], fontSize=12, leading=16,
            spaceBefore=12, spaceAfter=6,
        ),
        "result": ParagraphStyle(
            "ReportResult", parent=base["Normal"], fontSize=12, leading=16,
        ),
        "remark": ParagraphStyle(
            "ReportRemark", parent=base["Normal"], fontSize=11, leading=14,
            leftIndent=20, textColor=HexColor("#555555"),
        ),
    }


def _result_line(test_number: int, title: str, device: str, approved: bool) -> str:
    color = PASS_COLOR if approved else FAIL_COLOR
    glyph = _PASS_GLYPH if approved else _FAIL_GLYPH
    device_note = f' <font size="9" color="#888888">({escape(device)})</font>' if device else ""
    return (
        f'<font name="ZapfDingbats" color="{color}">{glyph}</font>'
        f"&nbsp;&nbsp;{test_number}: {escape(title)}{device_note}"
    )


def render_pdf(content: ReportContent) -> bytes:
    """Render the report and return the PDF bytes."""
    styles = make_styles()
    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        leftMargin=inch,
        rightMargin=inch,
        topMargin=inch,
        bottomMargin=inch,
        title=content.title,
        author=content.tester_name,
    )

    story = [
        Paragraph(escape(content.title), styles["title"]),
        Spacer(1, 12),
        Paragraph(escape(content.narrative), styles["body"]),
        Spacer(1, 24),
        Paragraph(f"Test Run ID: {escape(content.test_run_id)}", styles["body"]),
        Paragraph(f"Date: {escape(content.report_date)}", styles["body"]),
        Paragraph("The remarks of our test:", styles["heading"]),
    ]

    for answer in content.answers:
        story.append(Paragraph(
            f"<b>{escape(answer.question)}</b>: {escape(answer.answer)}",
            styles["body"],
        ))
        story.append(Spacer(1, 4))

    story.append(Spacer(1, 12))
    story.append(Paragraph("<u>Test Results:</u>", styles["heading"]))

    for result in content.results:
        story.append(Paragraph(
            _result_line(result.test_number, result.title, result.device, result.approved),
            styles["result"],
        ))
        if not result.approved and result.remark:
            story.append(Paragraph(
                f"Remark: {escape(result.remark)}", styles["remark"],
            ))
        story.append(Spacer(1, 4))

    story.append(Spacer(1, 12))
    story.append(Paragraph(
        f"Passed: {content.passed} &nbsp; Failed: {content.failed}",
        styles["body"],
    ))

    doc.build(story)
    return buffer.getvalue()
