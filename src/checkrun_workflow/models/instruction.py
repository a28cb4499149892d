"""Instruction models — public view of catalog rows for API callers.

Decoupled from the ORM model in ``checkrun_db`` so API consumers never see
database internals.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class InstructionView(BaseModel):
    """One catalog entry as presented to admins and testers."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    content: str
    device: str
    video_url: str | None = None
    order_index: int
    created_at: datetime
    updated_at: datetime
