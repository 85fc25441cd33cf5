"""
Jobs API Endpoints

Compliance review, scheduling, kiosk execution and secondary operations
for individual jobs. Each action is one transaction.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.v1.deps import get_current_user, get_optional_user
from app.core.status_config import JobStatus, get_allowed_job_transitions
from app.db.session import get_db
from app.exceptions import ValidationError
from app.logging_config import get_logger
from app.models.job import Job
from app.models.user import User
from app.schemas.job import (
    JobCancel,
    JobComplete,
    JobDocumentResponse,
    JobEdit,
    JobIncomplete,
    JobResponse,
    JobSchedule,
    ScheduleResponse,
    SecondaryComplete,
    SecondaryStart,
)
from app.services import job_lifecycle
from app.services.lifecycle_helpers import get_job
from app.services.maintenance_scheduler import ConflictResolution

router = APIRouter()
logger = get_logger(__name__)


def _commit(db: Session, job: Job) -> Job:
    db.commit()
    db.refresh(job)
    return job


# ============================================================================
# Queries
# ============================================================================

@router.get("/", response_model=List[JobResponse])
async def list_jobs(
    status: Optional[List[JobStatus]] = Query(None),
    machine_id: Optional[int] = None,
    work_order_id: Optional[int] = None,
    include_maintenance: bool = True,
    db: Session = Depends(get_db),
):
    query = db.query(Job)
    if status:
        query = query.filter(Job.status.in_([s.value for s in status]))
    if machine_id is not None:
        query = query.filter(Job.assigned_machine_id == machine_id)
    if work_order_id is not None:
        query = query.filter(Job.work_order_id == work_order_id)
    if not include_maintenance:
        query = query.filter(Job.is_maintenance.is_(False))
    return query.order_by(Job.scheduled_start.is_(None), Job.scheduled_start, Job.id).all()


@router.get("/{job_id}", response_model=JobResponse)
async def get_job_endpoint(job_id: int, db: Session = Depends(get_db)):
    return get_job(db, job_id)


@router.get("/{job_id}/transitions")
async def get_job_transitions(job_id: int, db: Session = Depends(get_db)):
    job = get_job(db, job_id)
    return {
        "job_id": job.id,
        "current_status": job.status,
        "allowed_transitions": get_allowed_job_transitions(job.status, job.is_maintenance),
    }


# ============================================================================
# Compliance
# ============================================================================

@router.post("/{job_id}/approve-compliance", response_model=JobResponse)
async def approve_compliance(
    job_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    job = job_lifecycle.approve_job_compliance(db, job_id, current_user)
    return _commit(db, job)


@router.post("/documents/{document_id}/approve", response_model=JobDocumentResponse)
async def approve_document(
    document_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    doc = job_lifecycle.approve_job_document(db, document_id, current_user)
    db.commit()
    db.refresh(doc)
    return doc


# ============================================================================
# Edit / cancel
# ============================================================================

@router.patch("/{job_id}", response_model=JobResponse)
async def edit_job(
    job_id: int,
    request: JobEdit,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    job = job_lifecycle.edit_job(
        db,
        job_id,
        quantity=request.quantity,
        priority=request.priority.value if request.priority else None,
        notes=request.notes,
    )
    return _commit(db, job)


@router.post("/{job_id}/cancel", response_model=JobResponse)
async def cancel_job(
    job_id: int,
    request: Optional[JobCancel] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    job = job_lifecycle.cancel_job(db, job_id, reason=request.reason if request else None)
    return _commit(db, job)


# ============================================================================
# Scheduling
# ============================================================================

@router.post("/{job_id}/schedule", response_model=ScheduleResponse)
async def schedule_job(
    job_id: int,
    request: JobSchedule,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Put a job on a machine slot.

    An overlapping slot is rejected with 409 SCHEDULE_CONFLICT unless a
    resolution (return_to_queue or move_next) is supplied.
    """
    resolution = None
    if request.resolution:
        try:
            resolution = ConflictResolution(request.resolution)
        except ValueError:
            raise ValidationError(
                "Resolution must be return_to_queue or move_next",
                field="resolution",
                value=request.resolution,
            )

    result = job_lifecycle.schedule_job(
        db,
        job_id,
        request.machine_id,
        request.scheduled_start,
        estimated_minutes=request.estimated_minutes,
        resolution=resolution,
        user_id=current_user.id,
    )
    db.commit()
    for job in [result.job] + result.displaced:
        db.refresh(job)
    return ScheduleResponse(
        job=JobResponse.model_validate(result.job),
        displaced=[JobResponse.model_validate(j) for j in result.displaced],
    )


@router.post("/{job_id}/unschedule", response_model=JobResponse)
async def unschedule_job(
    job_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return _commit(db, job_lifecycle.unschedule_job(db, job_id))


# ============================================================================
# Kiosk
# ============================================================================

@router.post("/{job_id}/start-setup", response_model=JobResponse)
async def start_setup(job_id: int, db: Session = Depends(get_db), user: Optional[User] = Depends(get_optional_user)):
    return _commit(db, job_lifecycle.start_setup(db, job_id))


@router.post("/{job_id}/start-production", response_model=JobResponse)
async def start_production(job_id: int, db: Session = Depends(get_db), user: Optional[User] = Depends(get_optional_user)):
    return _commit(db, job_lifecycle.start_production(db, job_id))


@router.post("/{job_id}/complete", response_model=JobResponse)
async def complete_job(
    job_id: int,
    request: JobComplete,
    db: Session = Depends(get_db),
    user: Optional[User] = Depends(get_optional_user),
):
    job = job_lifecycle.complete_manufacturing(
        db,
        job_id,
        good_pieces=request.good_pieces,
        bad_pieces=request.bad_pieces,
        actual_end=request.actual_end,
    )
    return _commit(db, job)


@router.post("/{job_id}/incomplete", response_model=JobResponse)
async def mark_incomplete(
    job_id: int,
    request: JobIncomplete,
    db: Session = Depends(get_db),
    user: Optional[User] = Depends(get_optional_user),
):
    job = job_lifecycle.mark_incomplete(
        db,
        job_id,
        good_pieces=request.good_pieces,
        bad_pieces=request.bad_pieces,
        reason=request.reason,
        actual_end=request.actual_end,
    )
    return _commit(db, job)


@router.post("/{job_id}/requeue", response_model=JobResponse)
async def requeue_job(
    job_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return _commit(db, job_lifecycle.requeue_incomplete(db, job_id))


# ============================================================================
# Secondary operations and post-manufacturing
# ============================================================================

@router.post("/{job_id}/route", response_model=JobResponse)
async def route_job(job_id: int, db: Session = Depends(get_db), user: Optional[User] = Depends(get_optional_user)):
    """Send a machined job on to passivation, paint or post-manufacturing."""
    return _commit(db, job_lifecycle.route_after_manufacturing(db, job_id))


@router.post("/{job_id}/secondary/{operation}/start", response_model=JobResponse)
async def start_secondary(
    job_id: int,
    operation: str,
    request: Optional[SecondaryStart] = None,
    db: Session = Depends(get_db),
    user: Optional[User] = Depends(get_optional_user),
):
    operator_id = request.operator_id if request and request.operator_id else (user.id if user else None)
    return _commit(db, job_lifecycle.start_secondary(db, job_id, operation, operator_id=operator_id))


@router.post("/{job_id}/secondary/{operation}/complete", response_model=JobResponse)
async def complete_secondary(
    job_id: int,
    operation: str,
    request: Optional[SecondaryComplete] = None,
    db: Session = Depends(get_db),
    user: Optional[User] = Depends(get_optional_user),
):
    notes = request.notes if request else None
    return _commit(db, job_lifecycle.complete_secondary(db, job_id, operation, notes=notes))


@router.post("/{job_id}/release", response_model=JobResponse)
async def release_job(
    job_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Release a post-manufactured job to assembly (or straight to TCO)."""
    return _commit(db, job_lifecycle.release_to_assembly(db, job_id))
