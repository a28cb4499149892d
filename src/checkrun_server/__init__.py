"""checkrun_server — FastAPI REST API for sequential manual test runs.

Exposes the instruction catalog, the closing questionnaire, response
recording, the run state machine and report dispatch as a stateless HTTP
API.  Admin endpoints require the ``X-Admin-Key`` header.
"""
