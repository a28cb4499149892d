"""Questionnaire models — closing questions and their answers."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class QuestionnaireItemView(BaseModel):
    """A closing question as shown to the tester."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    order_index: int
    required: bool = True


class QuestionnaireItemInput(BaseModel):
    """One entry of the admin's full questionnaire replacement."""

    title: str
    required: bool = True


class RecordedAnswer(BaseModel):
    """A persisted questionnaire answer."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    test_run_id: str
    questionnaire_id: int | None
    question_title: str
    tester_name: str
    answer: str
    created_at: datetime
