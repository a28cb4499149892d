"""Route registration — mounts all routers under ``/api``."""

from fastapi import FastAPI

from checkrun_server.routes.instructions import router as instructions_router
from checkrun_server.routes.questionnaires import router as questionnaires_router
from checkrun_server.routes.report import router as report_router
from checkrun_server.routes.runs import router as runs_router
from checkrun_server.routes.settings import router as settings_router

API_PREFIX = "/api"


def register_routes(app: FastAPI) -> None:
    """Include all sub-routers under the API prefix."""
    app.include_router(instructions_router, prefix=API_PREFIX)
    app.include_router(questionnaires_router, prefix=API_PREFIX)
    app.include_router(runs_router, prefix=API_PREFIX)
    app.include_router(report_router, prefix=API_PREFIX)
    app.include_router(settings_router, prefix=API_PREFIX)
