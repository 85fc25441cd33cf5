"""
Machines API Endpoints

Machine list with effective status, plus kiosk downtime logging.
"""
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session, selectinload

from app.api.v1.deps import get_optional_user
from app.db.session import get_db
from app.logging_config import get_logger
from app.models.job import Job
from app.models.machine import Machine
from app.models.user import User
from app.schemas.machine import (
    DowntimeClose,
    DowntimeCreate,
    DowntimeLogResponse,
    MachineResponse,
    MachineStatusResponse,
)
from app.services.dashboard import effective_machine_status, is_active_unplanned_maintenance
from app.services.downtime import clear_machine_down, close_downtime, log_downtime
from app.services.lifecycle_helpers import get_machine

router = APIRouter()
logger = get_logger(__name__)


def _status_response(machine: Machine, now: datetime) -> MachineStatusResponse:
    maintenance = [job for job in machine.jobs if is_active_unplanned_maintenance(job, now)]
    open_logs = machine.open_downtime_logs
    is_down, reason = effective_machine_status(machine, open_logs, maintenance)
    return MachineStatusResponse(
        **MachineResponse.model_validate(machine).model_dump(),
        is_down=is_down,
        effective_reason=reason,
        open_downtime=[DowntimeLogResponse.model_validate(log) for log in open_logs],
    )


@router.get("/", response_model=List[MachineStatusResponse])
async def list_machines(include_inactive: bool = False, db: Session = Depends(get_db)):
    query = db.query(Machine).options(
        selectinload(Machine.downtime_logs),
        selectinload(Machine.jobs).selectinload(Job.work_order),
    )
    if not include_inactive:
        query = query.filter(Machine.is_active.is_(True))
    now = datetime.now()
    return [_status_response(m, now) for m in query.order_by(Machine.display_order, Machine.name).all()]


@router.get("/{machine_id}", response_model=MachineStatusResponse)
async def get_machine_endpoint(machine_id: int, db: Session = Depends(get_db)):
    return _status_response(get_machine(db, machine_id), datetime.now())


@router.post("/{machine_id}/downtime", response_model=DowntimeLogResponse, status_code=201)
async def log_machine_downtime(
    machine_id: int,
    request: DowntimeCreate,
    db: Session = Depends(get_db),
    user: Optional[User] = Depends(get_optional_user),
):
    result = log_downtime(
        db,
        machine_id,
        reason=request.reason,
        notes=request.notes,
        start_time=request.start_time,
        end_time=request.end_time,
        job_id=request.job_id,
        flag_machine_down=request.flag_machine_down,
        send_job_to_scheduling=request.send_job_to_scheduling,
        user_id=user.id if user else None,
    )
    db.commit()
    db.refresh(result.log)
    return result.log


@router.post("/downtime/{log_id}/close", response_model=DowntimeLogResponse)
async def close_machine_downtime(
    log_id: int,
    request: Optional[DowntimeClose] = None,
    db: Session = Depends(get_db),
    user: Optional[User] = Depends(get_optional_user),
):
    log = close_downtime(db, log_id, end_time=request.end_time if request else None)
    db.commit()
    db.refresh(log)
    return log


@router.post("/{machine_id}/clear-down", response_model=MachineStatusResponse)
async def clear_down(
    machine_id: int,
    db: Session = Depends(get_db),
    user: Optional[User] = Depends(get_optional_user),
):
    """Close all open downtime on the machine and mark it available."""
    clear_machine_down(db, machine_id)
    db.commit()
    machine = get_machine(db, machine_id)
    db.refresh(machine)
    return _status_response(machine, datetime.now())
