"""Report compilation: content model assembly, PDF layout and packaging."""

from checkrun_workflow.report.compiler import (
    ReportCompiler,
    build_content,
    package_report,
    report_basename,
)
from checkrun_workflow.report.formatting import format_duration
from checkrun_workflow.report.pdf import render_pdf

__all__ = [
    "ReportCompiler",
    "build_content",
    "format_duration",
    "package_report",
    "render_pdf",
    "report_basename",
]
