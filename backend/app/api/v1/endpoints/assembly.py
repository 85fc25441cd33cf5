"""
Assembly and TCO API Endpoints

The assembly board (queued / in progress / completed this week), the
start and complete actions at the assembly station, and the TCO board
with its approval action.
"""
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.v1.deps import get_current_user, get_optional_user
from app.db.session import get_db
from app.logging_config import get_logger
from app.models.user import User
from app.schemas.assembly import (
    AssemblyActionResponse,
    AssemblyBoardResponse,
    AssemblyComplete,
    AssemblyEntryResponse,
    AssemblyStart,
    TcoBoardResponse,
    TcoEntryResponse,
    WorkOrderHeader,
)
from app.schemas.job import JobResponse
from app.schemas.work_order import WorkOrderAssemblyResponse, WorkOrderResponse
from app.services.assembly_service import (
    AssemblyActionResult,
    approve_tco,
    complete_assembly,
    start_assembly,
)
from app.services.readiness import (
    AssemblyEntry,
    classify_assemblies,
    classify_tco,
    load_board_work_orders,
)

router = APIRouter()
tco_router = APIRouter()
logger = get_logger(__name__)


def _entry_response(entry: AssemblyEntry) -> AssemblyEntryResponse:
    woa = entry.assembly
    return AssemblyEntryResponse(
        id=entry.id,
        work_order=WorkOrderHeader.model_validate(entry.work_order),
        assembly_part_number=woa.assembly.part_number if woa is not None and woa.assembly else None,
        quantity=entry.quantity,
        status=entry.status,
        station_number=woa.station_number if woa else None,
        assembler_number=woa.assembler_number if woa else None,
        assembly_started_at=woa.assembly_started_at if woa else None,
        assembly_completed_at=woa.assembly_completed_at if woa else None,
        is_virtual=entry.is_virtual,
        missing_assembly=entry.missing_assembly,
        jobs=[JobResponse.model_validate(job) for job in entry.jobs],
    )


def _action_response(result: AssemblyActionResult) -> AssemblyActionResponse:
    return AssemblyActionResponse(
        assembly=WorkOrderAssemblyResponse.model_validate(result.assembly),
        jobs_moved=[job.job_number for job in result.jobs_moved],
        created=result.created,
        warnings=result.warnings,
    )


# ============================================================================
# Assembly
# ============================================================================

@router.get("/board", response_model=AssemblyBoardResponse)
async def get_assembly_board(db: Session = Depends(get_db)):
    board = classify_assemblies(load_board_work_orders(db))
    return AssemblyBoardResponse(
        in_progress=[_entry_response(e) for e in board.in_progress],
        queued=[_entry_response(e) for e in board.queued],
        completed_this_week=[_entry_response(e) for e in board.completed_this_week],
    )


@router.post("/start", response_model=AssemblyActionResponse)
async def start_assembly_endpoint(
    request: AssemblyStart,
    db: Session = Depends(get_db),
    user: Optional[User] = Depends(get_optional_user),
):
    result = start_assembly(
        db,
        work_order_id=request.work_order_id,
        assembly_id=request.assembly_id,
        station_number=request.station_number,
        assembler_number=request.assembler_number,
        notes=request.notes,
        user_id=user.id if user else None,
    )
    db.commit()
    db.refresh(result.assembly)
    return _action_response(result)


@router.post("/{assembly_id}/complete", response_model=AssemblyActionResponse)
async def complete_assembly_endpoint(
    assembly_id: int,
    request: AssemblyComplete,
    db: Session = Depends(get_db),
    user: Optional[User] = Depends(get_optional_user),
):
    result = complete_assembly(
        db,
        assembly_id,
        good_quantity=request.good_quantity,
        bad_quantity=request.bad_quantity,
        completed_at=request.completed_at,
        notes=request.notes,
        user_id=user.id if user else None,
    )
    db.commit()
    db.refresh(result.assembly)
    return _action_response(result)


# ============================================================================
# TCO
# ============================================================================

@tco_router.get("/board", response_model=TcoBoardResponse)
async def get_tco_board(db: Session = Depends(get_db)):
    board = classify_tco(load_board_work_orders(db))
    return TcoBoardResponse(
        pending=[
            TcoEntryResponse(
                work_order=WorkOrderHeader.model_validate(entry.work_order),
                active_job_count=entry.active_job_count,
                tco_job_count=entry.tco_job_count,
                all_pending_tco=entry.all_pending_tco,
                is_finished_good=entry.is_finished_good,
            )
            for entry in board.pending
        ],
        completed_this_week=[WorkOrderHeader.model_validate(wo) for wo in board.completed_this_week],
    )


@tco_router.post("/{work_order_id}/approve", response_model=WorkOrderResponse)
async def approve_tco_endpoint(
    work_order_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    wo = approve_tco(db, work_order_id, current_user)
    db.commit()
    db.refresh(wo)
    return wo
