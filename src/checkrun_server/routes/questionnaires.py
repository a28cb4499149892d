"""Questionnaire endpoints — list, replace, delete items, submit answers."""

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from checkrun_workflow.models.questionnaire import (
    QuestionnaireItemInput,
    QuestionnaireItemView,
    RecordedAnswer,
)
from checkrun_workflow.questionnaire import QuestionnaireStore
from checkrun_workflow.recorder import ResponseRecorder

from checkrun_server.dependencies import (
    get_db,
    get_questionnaire,
    get_recorder,
    require_admin,
)

router = APIRouter(tags=["questionnaire"])


# ------------------------------------------------------------------
# Request models
# ------------------------------------------------------------------

class ReplaceQuestionnaireRequest(BaseModel):
    """Body for POST /questionnaire: the complete new item set, in order."""
    items: list[QuestionnaireItemInput]


class SubmitAnswersRequest(BaseModel):
    """Body for POST /questionnaire/submit.

    ``answers`` maps questionnaire item id to the answer text.
    """
    test_run_id: str
    tester_name: str
    answers: dict[int, str | None]


# ------------------------------------------------------------------
# Endpoints
# ------------------------------------------------------------------

@router.get("/questionnaires")
async def list_questionnaire(
    db: AsyncSession = Depends(get_db),
    store: QuestionnaireStore = Depends(get_questionnaire),
) -> list[QuestionnaireItemView]:
    """Return the questionnaire items in order."""
    return await store.list(db)


@router.post("/questionnaire")
async def replace_questionnaire(
    body: ReplaceQuestionnaireRequest,
    db: AsyncSession = Depends(get_db),
    store: QuestionnaireStore = Depends(get_questionnaire),
    _admin: str = Depends(require_admin),
) -> list[QuestionnaireItemView]:
    """Replace the whole questionnaire.  Existing item ids are discarded."""
    return await store.replace(db, body.items)


@router.delete("/questionnaire/{item_id}")
async def delete_questionnaire_item(
    item_id: int,
    db: AsyncSession = Depends(get_db),
    store: QuestionnaireStore = Depends(get_questionnaire),
    _admin: str = Depends(require_admin),
) -> list[QuestionnaireItemView]:
    """Delete one item and its answers; returns the renumbered set."""
    return await store.delete(db, item_id)


@router.post("/questionnaire/submit", status_code=201)
async def submit_answers(
    body: SubmitAnswersRequest,
    db: AsyncSession = Depends(get_db),
    recorder: ResponseRecorder = Depends(get_recorder),
) -> list[RecordedAnswer]:
    """Record a run's questionnaire answers.

    Fails with 400 when a required item is blank, an id is unknown, or the
    run already has answers.
    """
    return await recorder.record_answers(
        db,
        test_run_id=body.test_run_id,
        tester_name=body.tester_name,
        answers=body.answers,
    )
