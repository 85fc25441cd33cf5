"""
BOM Import API Endpoints

Drives a BomImportSession: post OCR text, correct rows during review,
then save. Sessions live in process memory until discarded.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.v1.deps import get_current_user
from app.db.session import get_db
from app.logging_config import get_logger
from app.models.user import User
from app.schemas.bom_import import (
    AssemblyRowUpdate,
    BomImportResponse,
    BomTextUpload,
    ComponentRowUpdate,
    ParsedPartResponse,
    SaveReportResponse,
)
from app.schemas.common import MessageResponse
from app.services.bom_import import BomImportSession, import_sessions

router = APIRouter()
logger = get_logger(__name__)


def _response(session: BomImportSession) -> BomImportResponse:
    bom = session.bom
    return BomImportResponse(
        id=session.id,
        stage=session.stage.value,
        error=session.error,
        cost=bom.cost if bom else None,
        assembly=ParsedPartResponse.model_validate(bom.assembly) if bom else None,
        components=[ParsedPartResponse.model_validate(c) for c in bom.components] if bom else [],
        report=SaveReportResponse.model_validate(session.report) if session.report else None,
    )


@router.post("/", response_model=BomImportResponse, status_code=201)
async def start_import(
    request: BomTextUpload,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Parse the text and open the review stage."""
    session = import_sessions.create()
    try:
        session.process(db, request.text)
    except Exception:
        import_sessions.discard(session.id)
        raise
    return _response(session)


@router.get("/{session_id}", response_model=BomImportResponse)
async def get_import(session_id: str):
    return _response(import_sessions.get(session_id))


@router.patch("/{session_id}/assembly", response_model=BomImportResponse)
async def update_assembly_row(
    session_id: str,
    request: AssemblyRowUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    session = import_sessions.get(session_id)
    session.update_assembly(part_number=request.part_number, description=request.description)
    session.recheck(db)
    return _response(session)


@router.patch("/{session_id}/components/{index}", response_model=BomImportResponse)
async def update_component_row(
    session_id: str,
    index: int,
    request: ComponentRowUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    session = import_sessions.get(session_id)
    changes = request.model_dump(exclude_unset=True)
    if changes.get("part_type") is not None:
        changes["part_type"] = changes["part_type"].value
    session.update_component(index, **changes)
    session.recheck(db)
    return _response(session)


@router.delete("/{session_id}/components/{index}", response_model=BomImportResponse)
async def remove_component_row(
    session_id: str,
    index: int,
    current_user: User = Depends(get_current_user),
):
    session = import_sessions.get(session_id)
    session.remove_component(index)
    return _response(session)


@router.post("/{session_id}/save", response_model=BomImportResponse)
async def save_import(
    session_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    session = import_sessions.get(session_id)
    session.save(db)
    db.commit()
    logger.info(f"BOM import {session.id} saved by user {current_user.id}")
    return _response(session)


@router.delete("/{session_id}", response_model=MessageResponse)
async def discard_import(session_id: str, current_user: User = Depends(get_current_user)):
    import_sessions.get(session_id)
    import_sessions.discard(session_id)
    return MessageResponse(message="Import discarded")
