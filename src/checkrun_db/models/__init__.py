"""ORM models for checkrun_db."""

from checkrun_db.models.base import Base
from checkrun_db.models.enums import Device
from checkrun_db.models.instruction import Instruction
from checkrun_db.models.questionnaire import QuestionnaireItem
from checkrun_db.models.response import QuestionnaireResponse, TestResponse
from checkrun_db.models.settings import NotificationSettings

__all__ = [
    "Base",
    "Device",
    "Instruction",
    "NotificationSettings",
    "QuestionnaireItem",
    "QuestionnaireResponse",
    "TestResponse",
]
