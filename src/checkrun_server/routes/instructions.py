"""Instruction catalog endpoints — list, create, edit, delete, reorder, respond.

Reading the catalog and recording a response are open to testers; every
catalog mutation requires the ``X-Admin-Key`` header.  Each mutation
returns only after the dense ``order_index`` invariant holds again.
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from checkrun_workflow.catalog import InstructionCatalog
from checkrun_workflow.flow import TestRunFlow
from checkrun_workflow.models.instruction import InstructionView
from checkrun_workflow.models.run import ResponseReceipt

from checkrun_server.dependencies import get_catalog, get_db, get_flow, require_admin

router = APIRouter(tags=["instructions"])


# ------------------------------------------------------------------
# Request models
# ------------------------------------------------------------------

# Fields are optional at the HTTP layer so that missing values surface as
# the catalog's ValidationError (400) rather than FastAPI's 422.

class CreateInstructionRequest(BaseModel):
    """Body for POST /instructions."""
    title: str | None = None
    content: str | None = None
    device: str | None = None
    video_url: str | None = None


class UpdateInstructionRequest(BaseModel):
    """Body for PUT /instructions/{id}.  Only the fields sent are changed."""
    title: str | None = None
    content: str | None = None
    device: str | None = None
    video_url: str | None = None


class ReorderRequest(BaseModel):
    """Body for POST /instructions/reorder: every id, in the desired order."""
    ordered_ids: list[int]


class RecordResponseRequest(BaseModel):
    """Body for POST /instructions/{id}/response."""
    test_run_id: str
    tester_name: str
    approved: bool
    remark: str | None = None
    test_number: int


# ------------------------------------------------------------------
# Endpoints
# ------------------------------------------------------------------

@router.get("/instructions")
async def list_instructions(
    db: AsyncSession = Depends(get_db),
    catalog: InstructionCatalog = Depends(get_catalog),
) -> list[InstructionView]:
    """Return the catalog ordered by ``order_index``."""
    return await catalog.list(db)


@router.post("/instructions", status_code=201)
async def create_instruction(
    body: CreateInstructionRequest,
    db: AsyncSession = Depends(get_db),
    catalog: InstructionCatalog = Depends(get_catalog),
    _admin: str = Depends(require_admin),
) -> InstructionView:
    """Append an instruction at the end of the catalog."""
    return await catalog.create(
        db,
        title=body.title,
        content=body.content,
        device=body.device,
        video_url=body.video_url,
    )


@router.put("/instructions/{instruction_id}")
async def update_instruction(
    instruction_id: int,
    body: UpdateInstructionRequest,
    db: AsyncSession = Depends(get_db),
    catalog: InstructionCatalog = Depends(get_catalog),
    _admin: str = Depends(require_admin),
) -> InstructionView:
    """Edit an instruction in place; its position is unchanged."""
    return await catalog.update(
        db, instruction_id, body.model_dump(exclude_unset=True),
    )


@router.delete("/instructions/{instruction_id}")
async def delete_instruction(
    instruction_id: int,
    db: AsyncSession = Depends(get_db),
    catalog: InstructionCatalog = Depends(get_catalog),
    _admin: str = Depends(require_admin),
) -> list[InstructionView]:
    """Delete an instruction and its responses; returns the renumbered catalog."""
    return await catalog.delete(db, instruction_id)


@router.post("/instructions/reorder")
async def reorder_instructions(
    body: ReorderRequest,
    db: AsyncSession = Depends(get_db),
    catalog: InstructionCatalog = Depends(get_catalog),
    _admin: str = Depends(require_admin),
) -> list[InstructionView]:
    """Apply a full ordering of instruction ids."""
    return await catalog.reorder(db, body.ordered_ids)


@router.post("/instructions/{instruction_id}/response", status_code=201)
async def record_response(
    instruction_id: int,
    body: RecordResponseRequest,
    db: AsyncSession = Depends(get_db),
    flow: TestRunFlow = Depends(get_flow),
) -> ResponseReceipt:
    """Record a tester's decision on one instruction.

    A rejection also emails the rejection recipient; a failed alert is
    reported in ``alert_error`` and the response stays recorded.
    """
    return await flow.record_response(
        db,
        instruction_id=instruction_id,
        test_run_id=body.test_run_id,
        tester_name=body.tester_name,
        approved=body.approved,
        remark=body.remark,
        test_number=body.test_number,
    )
