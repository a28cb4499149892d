"""Global exception handlers — map workflow exceptions to HTTP status codes.

The SDK raises one exception class per failure kind (see
``checkrun_workflow.errors``).  Rather than catching these in every route,
global handlers pick the status code from the class.

Client-caused errors (400/404/422) return their message, which describes
the caller's own input.  Server-side failures return a generic message and
keep the detail in the log.
"""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse

from checkrun_workflow.errors import (
    NotFoundError,
    RenderError,
    ReportIOError,
    StorageError,
    TransportError,
    ValidationError,
)

logger = logging.getLogger(__name__)

# --- Exception class → (status, client message or None to echo) ---
# Checked in order; first isinstance match wins.
_STATUS_MAP: list[tuple[type[Exception], int, str | None]] = [
    (ValidationError, 400, None),
    (NotFoundError, 404, None),
    (RenderError, 422, None),
    (ReportIOError, 500, "Report could not be written"),
    (TransportError, 502, "Mail delivery failed"),
    (StorageError, 503, "Storage unavailable"),
]


async def workflow_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Map a ``WorkflowError`` subclass to its HTTP status."""
    for exc_type, status, safe_message in _STATUS_MAP:
        if isinstance(exc, exc_type):
            break
    else:
        return await generic_error_handler(request, exc)

    if safe_message is None:
        logger.warning("%s [%d] at %s: %s", type(exc).__name__, status, request.url, exc)
        return JSONResponse(status_code=status, content={"detail": str(exc)})

    logger.error("%s [%d] at %s: %s", type(exc).__name__, status, request.url, exc)
    return JSONResponse(status_code=status, content={"detail": safe_message})


async def generic_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unhandled exceptions — log full traceback, return 500."""
    logger.exception("Unhandled exception at %s", request.url, exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
    )
