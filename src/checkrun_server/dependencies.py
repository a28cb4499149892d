"""FastAPI dependency injection — provides DB sessions, workflow components and admin auth.

Each request that touches the database gets a fresh ``AsyncSession`` via
``get_db()``.  The session is committed on success and rolled back on error,
matching the SDK convention where catalog/recorder/repository call
``flush()`` but never ``commit()``.
"""

import hmac
from typing import AsyncGenerator

from fastapi import Header, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from checkrun_db.engine import get_session_factory
from checkrun_workflow.catalog import InstructionCatalog
from checkrun_workflow.flow import TestRunFlow
from checkrun_workflow.questionnaire import QuestionnaireStore
from checkrun_workflow.recorder import ResponseRecorder


# ------------------------------------------------------------------
# Database session — transaction boundary lives here
# ------------------------------------------------------------------

async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async DB session; commit on success, rollback on error.

    The SDK's methods call ``flush()`` but never ``commit()``, so this
    dependency is the single place where transactions are finalised.
    """
    factory = get_session_factory()
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


# ------------------------------------------------------------------
# Workflow components — stashed on app.state during lifespan
# ------------------------------------------------------------------

def get_catalog(request: Request) -> InstructionCatalog:
    """Return the InstructionCatalog singleton from ``app.state``."""
    return request.app.state.catalog


def get_questionnaire(request: Request) -> QuestionnaireStore:
    """Return the QuestionnaireStore singleton from ``app.state``."""
    return request.app.state.questionnaire


def get_recorder(request: Request) -> ResponseRecorder:
    """Return the ResponseRecorder singleton from ``app.state``."""
    return request.app.state.recorder


def get_flow(request: Request) -> TestRunFlow:
    """Return the TestRunFlow singleton from ``app.state``."""
    return request.app.state.flow


# ------------------------------------------------------------------
# Admin auth — X-Admin-Key checked against ADMIN_API_KEY
# ------------------------------------------------------------------

async def require_admin(
    request: Request,
    x_admin_key: str | None = Header(None, alias="X-Admin-Key"),
) -> str:
    """Validate the ``X-Admin-Key`` header against the configured key.

    Raises 401 if the header is missing, 403 if admin access is disabled
    (no ``ADMIN_API_KEY``) or the key does not match.
    """
    if not x_admin_key:
        raise HTTPException(status_code=401, detail="X-Admin-Key header is required")

    expected: str | None = request.app.state.settings.admin_api_key
    if not expected:
        raise HTTPException(
            status_code=403,
            detail="Admin endpoints are disabled (ADMIN_API_KEY not configured)",
        )
    # Constant-time comparison to prevent timing side-channels.
    if not hmac.compare_digest(x_admin_key.encode(), expected.encode()):
        raise HTTPException(status_code=403, detail="Invalid admin key")
    return x_admin_key
