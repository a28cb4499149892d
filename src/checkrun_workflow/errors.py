"""Error taxonomy raised by the workflow SDK.

Every error derives from ``WorkflowError`` so callers can catch the whole
family.  The HTTP layer maps each class to a status code in
``checkrun_server.errors``.
"""


class WorkflowError(Exception):
    """Base class for all workflow errors."""


class ValidationError(WorkflowError, ValueError):
    """Bad or missing input (blank remark on rejection, non-permutation reorder, ...)."""


class NotFoundError(WorkflowError, LookupError):
    """An id does not refer to an existing row."""

    def __init__(self, kind: str, key: object) -> None:
        super().__init__(f"{kind} not found: {key}")
        self.kind = kind
        self.key = key


class RenderError(WorkflowError):
    """A report could not be rendered (e.g. the run has no responses)."""


class ReportIOError(WorkflowError, OSError):
    """Writing or compressing the report artifact failed."""


class TransportError(WorkflowError):
    """Mail dispatch failed: transport unreachable, auth refused, or no recipient."""


class StorageError(WorkflowError):
    """The backing store failed, including a rolled-back multi-row update."""
