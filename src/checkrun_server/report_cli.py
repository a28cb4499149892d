"""Report re-send CLI — ``checkrun-report``.

Rebuilds a run's report from its persisted responses and mails it to the
report recipient, or writes it to a file with ``--output``.  Intended for
re-triggering a report whose dispatch failed during the run, from cron or
by hand.

Examples::

    # Compile and mail the report for one run
    uv run checkrun-report 3f2b9c0e1d4a4e6f8a7b6c5d4e3f2a1b

    # Compile only and save the artifact locally
    uv run checkrun-report 3f2b9c0e1d4a4e6f8a7b6c5d4e3f2a1b --output /tmp/report.zip

    # Save the bare PDF instead of the zip
    uv run checkrun-report 3f2b9c0e1d4a4e6f8a7b6c5d4e3f2a1b --packaging raw --output /tmp/
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from checkrun_workflow.constants import PACKAGING_MODES
from checkrun_workflow.errors import WorkflowError

logger = logging.getLogger(__name__)


async def run_report(
    test_run_id: str,
    *,
    output: str | None = None,
    packaging: str | None = None,
) -> str:
    """Compile (and unless ``output`` is given, send) one run's report.

    Creates its own database session and commits nothing; returns the
    artifact filename, or the path written with ``output``.
    """
    # Lazy imports to avoid loading DB machinery at module import time
    from checkrun_db.engine import dispose_engine, get_session_factory
    from checkrun_workflow.catalog import InstructionCatalog
    from checkrun_workflow.flow import TestRunFlow
    from checkrun_workflow.notify import NotificationDispatcher, SmtpTransport
    from checkrun_workflow.questionnaire import QuestionnaireStore
    from checkrun_workflow.recorder import ResponseRecorder
    from checkrun_workflow.report import ReportCompiler

    from checkrun_server.config import load_settings

    settings = load_settings()
    flow = TestRunFlow(
        catalog=InstructionCatalog(),
        questionnaire=QuestionnaireStore(),
        recorder=ResponseRecorder(),
        compiler=ReportCompiler(
            packaging=packaging or settings.report_packaging,
            tz_name=settings.report_timezone,
        ),
        dispatcher=NotificationDispatcher(
            SmtpTransport(settings.smtp), policy=settings.recipients,
        ),
    )
    factory = get_session_factory()

    try:
        async with factory() as db:
            artifact = await flow.resend_report(
                db, test_run_id=test_run_id, deliver=output is None,
            )
    finally:
        await dispose_engine()

    if output is None:
        logger.info("Report for run %s sent as %s", test_run_id, artifact.filename)
        return artifact.filename

    target = Path(output)
    if target.is_dir():
        target = target / artifact.filename
    target.write_bytes(artifact.data)
    logger.info("Report for run %s written to %s", test_run_id, target)
    return str(target)


def cli() -> None:
    """Console-script entry point: ``checkrun-report``.

    Parses command-line arguments and runs the async report function.
    Exits with status 1 when the report cannot be built or sent.
    """
    parser = argparse.ArgumentParser(
        prog="checkrun-report",
        description="Rebuild and send the report for a test run.",
    )
    parser.add_argument("test_run_id", help="Run identifier to report on")
    parser.add_argument(
        "--output",
        default=None,
        help="Write the artifact to this file or directory instead of mailing it",
    )
    parser.add_argument(
        "--packaging",
        default=None,
        choices=list(PACKAGING_MODES),
        help="Override $REPORT_PACKAGING (default: zip)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (default: INFO)",
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    try:
        result = asyncio.run(
            run_report(args.test_run_id, output=args.output, packaging=args.packaging)
        )
    except WorkflowError as exc:
        logger.error("Report for run %s failed: %s", args.test_run_id, exc)
        sys.exit(1)

    print(result)
    sys.exit(0)
