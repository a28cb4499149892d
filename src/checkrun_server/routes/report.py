"""Report endpoints — compile and dispatch a run's report.

``/report/generate`` is what the tester UI calls at the end of a run.
``/report/{test_run_id}/resend`` lets an admin re-trigger a report whose
dispatch failed, using only the persisted responses.
"""

from datetime import datetime

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from checkrun_workflow.flow import TestRunFlow
from checkrun_workflow.models.report import ReportArtifact

from checkrun_server.dependencies import get_db, get_flow, require_admin

router = APIRouter(tags=["report"])


# ------------------------------------------------------------------
# Request / response models
# ------------------------------------------------------------------

class GenerateReportRequest(BaseModel):
    """Body for POST /report/generate."""
    test_run_id: str
    tester_name: str
    started_at: datetime
    ended_at: datetime | None = None


class ReportSummary(BaseModel):
    """What was sent.  The artifact bytes travel by email only."""
    test_run_id: str
    filename: str
    media_type: str
    size_bytes: int
    passed: int
    failed: int

    @classmethod
    def from_artifact(cls, artifact: ReportArtifact) -> "ReportSummary":
        return cls(
            test_run_id=artifact.content.test_run_id,
            filename=artifact.filename,
            media_type=artifact.media_type,
            size_bytes=len(artifact.data),
            passed=artifact.content.passed,
            failed=artifact.content.failed,
        )


# ------------------------------------------------------------------
# Endpoints
# ------------------------------------------------------------------

@router.post("/report/generate")
async def generate_report(
    body: GenerateReportRequest,
    db: AsyncSession = Depends(get_db),
    flow: TestRunFlow = Depends(get_flow),
) -> ReportSummary:
    """Compile the run's report and email it to the report recipient.

    422 when the run has no recorded responses, 502 when mail delivery
    fails.  Recorded responses are never affected by either.
    """
    artifact = await flow.generate_report(
        db,
        test_run_id=body.test_run_id,
        tester_name=body.tester_name,
        started_at=body.started_at,
        ended_at=body.ended_at,
    )
    return ReportSummary.from_artifact(artifact)


@router.post("/report/{test_run_id}/resend")
async def resend_report(
    test_run_id: str,
    db: AsyncSession = Depends(get_db),
    flow: TestRunFlow = Depends(get_flow),
    _admin: str = Depends(require_admin),
) -> ReportSummary:
    """Rebuild and resend a run's report from its persisted responses."""
    artifact = await flow.resend_report(db, test_run_id=test_run_id)
    return ReportSummary.from_artifact(artifact)
