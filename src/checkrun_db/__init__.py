"""checkrun_db — PostgreSQL persistence layer for manual test runs.

This package provides the ORM models, async engine factory, and repositories
for the instruction catalog, the closing questionnaire, recorded responses,
and notification settings.  It is consumed by ``checkrun_workflow`` and the
FastAPI server.
"""

from checkrun_db.engine import get_engine, get_session_factory
from checkrun_db.models import (
    Device,
    Instruction,
    NotificationSettings,
    QuestionnaireItem,
    QuestionnaireResponse,
    TestResponse,
)
from checkrun_db.repository import (
    InstructionRepository,
    QuestionnaireRepository,
    ResponseRepository,
    SettingsRepository,
)

__all__ = [
    "Device",
    "Instruction",
    "NotificationSettings",
    "QuestionnaireItem",
    "QuestionnaireResponse",
    "TestResponse",
    "get_engine",
    "get_session_factory",
    "InstructionRepository",
    "QuestionnaireRepository",
    "ResponseRepository",
    "SettingsRepository",
]
