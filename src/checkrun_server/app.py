"""Application factory and CLI entry point.

``create_app()`` builds the FastAPI application with:
  - Lifespan handler that wires the workflow components once
  - CORS middleware
  - Global exception handlers (WorkflowError subclasses → 400/404/422/5xx)
  - All API routes mounted under ``/api``
  - A ``/health`` endpoint for readiness probes

The ``cli()`` function is the ``checkrun-server`` console-script entry point.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from checkrun_db.engine import dispose_engine, get_engine
from checkrun_workflow.catalog import InstructionCatalog
from checkrun_workflow.errors import WorkflowError
from checkrun_workflow.flow import TestRunFlow
from checkrun_workflow.notify import NotificationDispatcher, SmtpTransport
from checkrun_workflow.questionnaire import QuestionnaireStore
from checkrun_workflow.recorder import ResponseRecorder
from checkrun_workflow.report import ReportCompiler

from checkrun_server.config import ServerSettings, load_settings
from checkrun_server.errors import generic_error_handler, workflow_error_handler
from checkrun_server.routes import register_routes

logger = logging.getLogger(__name__)


def wire_workflow(app: FastAPI, settings: ServerSettings) -> TestRunFlow:
    """Build the workflow components and stash them on ``app.state``."""
    app.state.catalog = InstructionCatalog()
    app.state.questionnaire = QuestionnaireStore()
    app.state.recorder = ResponseRecorder()
    app.state.flow = TestRunFlow(
        catalog=app.state.catalog,
        questionnaire=app.state.questionnaire,
        recorder=app.state.recorder,
        compiler=ReportCompiler(
            packaging=settings.report_packaging,
            tz_name=settings.report_timezone,
        ),
        dispatcher=NotificationDispatcher(
            SmtpTransport(settings.smtp), policy=settings.recipients,
        ),
    )
    return app.state.flow


# ------------------------------------------------------------------
# Lifespan — runs once at startup/shutdown
# ------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Initialise shared resources at startup, tear down on shutdown.

    Startup:
      1. Build the ``TestRunFlow`` and its components from settings
      2. Stash them on ``app.state`` for dependency injection

    Shutdown:
      1. Dispose the database engine's connection pool
    """
    settings: ServerSettings = app.state.settings

    wire_workflow(app, settings)
    logger.info(
        "Workflow ready (report packaging=%s, timezone=%s, smtp=%s)",
        settings.report_packaging,
        settings.report_timezone,
        settings.smtp.host or "unconfigured",
    )

    yield

    # --- Shutdown ---
    await dispose_engine()
    logger.info("Database engine disposed")


# ------------------------------------------------------------------
# Factory
# ------------------------------------------------------------------

def create_app(settings: ServerSettings | None = None) -> FastAPI:
    """Build and return the configured FastAPI application."""
    if settings is None:
        settings = load_settings()

    # --- Configure logging ---
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    app = FastAPI(
        title="Checkrun API Server",
        description="REST API for sequential manual test runs and their reports",
        version="0.1.0",
        lifespan=lifespan,
    )

    # Store settings so the lifespan handler and auth dependency can read them
    app.state.settings = settings

    # --- CORS ---
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # --- Exception handlers ---
    app.add_exception_handler(WorkflowError, workflow_error_handler)
    app.add_exception_handler(Exception, generic_error_handler)

    # --- Health check (outside /api prefix) ---
    @app.get("/health")
    async def health():
        """Readiness probe — verifies DB connectivity."""
        try:
            async with get_engine().connect() as conn:
                await conn.execute(text("SELECT 1"))
        except Exception as exc:
            logger.error("Health check failed: %s", exc)
            return JSONResponse(
                status_code=503, content={"status": "error", "detail": str(exc)},
            )
        return {"status": "ok"}

    # --- Mount all API routes ---
    register_routes(app)

    return app


# ------------------------------------------------------------------
# Module-level ASGI export (for uvicorn checkrun_server.app:app)
# ------------------------------------------------------------------
app = create_app()


# ------------------------------------------------------------------
# CLI entry point
# ------------------------------------------------------------------

def cli() -> None:
    """Console-script entry point: ``checkrun-server``."""
    import uvicorn

    settings = load_settings()
    uvicorn.run(
        "checkrun_server.app:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        reload=False,
    )
