"""
Maintenance API Endpoints

Planned and unplanned maintenance orders. Unplanned maintenance that
overlaps scheduled work comes back with state "conflicts" and writes
nothing; the client repeats the request with a resolution.
"""
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.v1.deps import get_current_user
from app.core.status_config import JOB_MACHINE_ACTIVE_STATUSES
from app.db.session import get_db
from app.logging_config import get_logger
from app.models.job import Job
from app.models.user import User
from app.schemas.job import JobResponse
from app.schemas.maintenance import (
    MaintenanceClose,
    MaintenanceExtend,
    MaintenanceOrderCreate,
    MaintenanceOutcomeResponse,
)
from app.services.maintenance_scheduler import (
    close_maintenance,
    create_maintenance_order,
    extend_maintenance,
)

router = APIRouter()
logger = get_logger(__name__)


@router.get("/active", response_model=List[JobResponse])
async def list_active_maintenance(db: Session = Depends(get_db)):
    """Open maintenance jobs, soonest first."""
    return (
        db.query(Job)
        .filter(Job.is_maintenance.is_(True))
        .filter(Job.status.in_([s.value for s in JOB_MACHINE_ACTIVE_STATUSES]))
        .order_by(Job.scheduled_start, Job.id)
        .all()
    )


@router.post("/", response_model=MaintenanceOutcomeResponse)
async def create_maintenance(
    request: MaintenanceOrderCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    outcome = create_maintenance_order(
        db,
        machine_id=request.machine_id,
        maintenance_type=request.maintenance_type.value,
        start=request.start,
        duration_hours=request.duration_hours,
        description=request.description,
        resolution=request.resolution,
        user_id=current_user.id,
    )
    if outcome.created:
        db.commit()
        db.refresh(outcome.work_order)
        db.refresh(outcome.job)
        for job in outcome.conflicts:
            db.refresh(job)
    return MaintenanceOutcomeResponse.model_validate(outcome)


@router.post("/{job_id}/extend", response_model=JobResponse)
async def extend_maintenance_endpoint(
    job_id: int,
    request: MaintenanceExtend,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    job = extend_maintenance(db, job_id, request.minutes)
    db.commit()
    db.refresh(job)
    return job


@router.post("/{job_id}/close", response_model=JobResponse)
async def close_maintenance_endpoint(
    job_id: int,
    request: MaintenanceClose,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Cancel (reason required) or complete a maintenance job."""
    job = close_maintenance(db, job_id, request.mode, reason=request.reason, end_time=request.end_time)
    db.commit()
    db.refresh(job)
    return job
