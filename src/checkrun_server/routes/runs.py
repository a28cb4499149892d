"""Run state-machine endpoints — start, respond, submit questionnaire.

The server keeps no run state: each request carries the client's current
``TestRunState`` and each response returns the next one inside a
``RunStep``.  Clients persist the state between calls (e.g. in local
storage) so a reload resumes where the tester left off.
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from checkrun_workflow.flow import TestRunFlow
from checkrun_workflow.models.run import RunStep, TestRunState

from checkrun_server.dependencies import get_db, get_flow

router = APIRouter(prefix="/runs", tags=["runs"])


# ------------------------------------------------------------------
# Request models
# ------------------------------------------------------------------

class StartRunRequest(BaseModel):
    """Body for POST /runs/start.

    ``current`` is the client's previous state, if any; starting over an
    active run is refused.
    """
    tester_name: str
    current: TestRunState | None = None


class RespondRequest(BaseModel):
    """Body for POST /runs/respond."""
    state: TestRunState
    approved: bool
    remark: str | None = None


class SubmitQuestionnaireRequest(BaseModel):
    """Body for POST /runs/questionnaire."""
    state: TestRunState
    answers: dict[int, str | None]


# ------------------------------------------------------------------
# Endpoints
# ------------------------------------------------------------------

@router.post("/start", status_code=201)
async def start_run(
    body: StartRunRequest,
    db: AsyncSession = Depends(get_db),
    flow: TestRunFlow = Depends(get_flow),
) -> RunStep:
    """Start a run and return the first instruction."""
    return await flow.start(db, tester_name=body.tester_name, current=body.current)


@router.post("/respond")
async def respond(
    body: RespondRequest,
    db: AsyncSession = Depends(get_db),
    flow: TestRunFlow = Depends(get_flow),
) -> RunStep:
    """Answer the current instruction and advance the run."""
    return await flow.respond(
        db, body.state, approved=body.approved, remark=body.remark,
    )


@router.post("/questionnaire")
async def submit_questionnaire(
    body: SubmitQuestionnaireRequest,
    db: AsyncSession = Depends(get_db),
    flow: TestRunFlow = Depends(get_flow),
) -> RunStep:
    """Submit the closing answers; completes the run once the report is sent.

    When the report cannot be delivered the step carries ``report_error``
    and the returned state can be submitted again to retry.
    """
    return await flow.submit_questionnaire(db, body.state, body.answers)
