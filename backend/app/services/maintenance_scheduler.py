"""
Maintenance order creation and scheduling-conflict ("crash") resolution.

Creating an unplanned maintenance order is two-phase:

1. The maintenance window [start, end) is computed on the shift calendar
   and checked against every job occupying the machine. If any overlap,
   nothing is written and the caller gets the conflict set back.
2. The caller repeats the request with a resolution policy, which is
   applied to every conflicting job before the order is created:

   - return_to_queue: job goes back to ``ready`` with no machine or slot
   - move_next: jobs are re-stacked back to back from the end of the
     window, in fetch order, each keeping its original duration

Planned maintenance never checks for conflicts. Unplanned maintenance
takes the machine ``down``. An existing maintenance window is never a
conflict to resolve: overlapping one raises ScheduleConflictError
whatever the resolution.
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import List, Optional

from sqlalchemy.orm import Session

from app.core.settings import settings
from app.core.status_config import (
    JobStatus,
    MachineStatus,
    MaintenanceType,
    OrderType,
    Priority,
    WorkOrderStatus,
    JOB_MACHINE_ACTIVE_STATUSES,
)
from app.exceptions import InvalidStateError, ScheduleConflictError, ValidationError
from app.logging_config import get_logger
from app.models.job import Job
from app.models.machine import Machine
from app.models.work_order import WorkOrder
from app.services.lifecycle_helpers import (
    clear_schedule,
    flush_or_fail,
    get_job,
    get_machine,
    set_machine_status,
    transition_job,
    transition_work_order,
)
from app.services.sequence import next_job_number, next_maintenance_order_number
from app.services.shift_calendar import compute_end

logger = get_logger(__name__)

RESCHEDULED_NOTE = " [Rescheduled due to unplanned maintenance]"


class ConflictResolution(str, Enum):
    RETURN_TO_QUEUE = "return_to_queue"
    MOVE_NEXT = "move_next"


class CloseMode(str, Enum):
    CANCEL = "cancel"
    COMPLETE = "complete"


@dataclass
class MaintenanceOutcome:
    """
    Result of a maintenance order request.

    state is "created" (work_order and job set) or "conflicts" (nothing
    written, conflicts lists the jobs that need a resolution policy).
    """
    state: str
    window_start: datetime
    window_end: datetime
    conflicts: List[Job] = field(default_factory=list)
    resolution: Optional[ConflictResolution] = None
    work_order: Optional[WorkOrder] = None
    job: Optional[Job] = None

    @property
    def created(self) -> bool:
        return self.state == "created"


def overlaps(job_start: datetime, job_end: datetime, start: datetime, end: datetime) -> bool:
    """Strict interval intersection of [job_start, job_end) and [start, end)."""
    return job_start < end and job_end > start


def find_overlapping_jobs(
    db: Session,
    machine_id: int,
    start: datetime,
    end: datetime,
    exclude_job_id: Optional[int] = None,
) -> List[Job]:
    """Jobs occupying ``machine_id`` whose slot intersects [start, end), in id order."""
    query = (
        db.query(Job)
        .filter(Job.assigned_machine_id == machine_id)
        .filter(Job.status.in_([s.value for s in JOB_MACHINE_ACTIVE_STATUSES]))
        .order_by(Job.id)
    )
    if exclude_job_id is not None:
        query = query.filter(Job.id != exclude_job_id)

    return [
        job for job in query.all()
        if job.scheduled_start is not None
        and job.scheduled_end is not None
        and overlaps(job.scheduled_start, job.scheduled_end, start, end)
    ]


def refuse_maintenance_overlap(machine_id: int, jobs: List[Job]) -> None:
    """Maintenance windows are never displaced by another booking."""
    blocking = [job.job_number for job in jobs if job.is_maintenance]
    if blocking:
        raise ScheduleConflictError(
            machine_id,
            [job.job_number for job in jobs],
            details={"maintenance_jobs": blocking},
        )


def job_duration(job: Job) -> timedelta:
    """Current slot length, else the estimate, else the configured default."""
    if job.scheduled_start is not None and job.scheduled_end is not None:
        return job.scheduled_end - job.scheduled_start
    return timedelta(minutes=job.estimated_minutes or settings.DEFAULT_JOB_MINUTES)


def return_jobs_to_queue(jobs: List[Job], description: str) -> None:
    for job in jobs:
        transition_job(job, JobStatus.READY)
        clear_schedule(job)
        job.append_note(f" [Unscheduled due to unplanned maintenance: {description}]")
        logger.info(f"Job {job.job_number} returned to queue for maintenance")


def move_jobs_after(jobs: List[Job], window_end: datetime) -> None:
    """Chain jobs back to back from ``window_end`` in the order given."""
    cursor = window_end
    for job in jobs:
        duration = job_duration(job)
        job.scheduled_start = cursor
        job.scheduled_end = cursor + duration
        cursor = job.scheduled_end
        job.append_note(RESCHEDULED_NOTE)
        logger.info(
            f"Job {job.job_number} moved to {job.scheduled_start:%Y-%m-%d %H:%M}"
            f"-{job.scheduled_end:%H:%M} after maintenance"
        )


def _validate_request(machine_id, maintenance_type, start, duration_hours, description) -> MaintenanceType:
    if not machine_id:
        raise ValidationError("Please select a machine", field="machine_id")
    try:
        mtype = MaintenanceType(maintenance_type)
    except ValueError:
        raise ValidationError(
            "Maintenance type must be planned or unplanned",
            field="maintenance_type",
            value=maintenance_type,
        )
    if start is None:
        raise ValidationError("Please choose a start date and time", field="start")
    if duration_hours is None or duration_hours <= 0:
        raise ValidationError("Duration must be greater than zero", field="duration_hours", value=duration_hours)
    if not description or not description.strip():
        raise ValidationError("Please describe the maintenance", field="description")
    return mtype


def create_maintenance_order(
    db: Session,
    *,
    machine_id: int,
    maintenance_type: str,
    start: datetime,
    duration_hours: float,
    description: str,
    resolution: Optional[ConflictResolution] = None,
    user_id: Optional[int] = None,
    now: Optional[datetime] = None,
) -> MaintenanceOutcome:
    """
    Create a maintenance work order and its single job.

    Returns a "conflicts" outcome without writing anything when unplanned
    maintenance overlaps scheduled work and no resolution was given.
    """
    mtype = _validate_request(machine_id, maintenance_type, start, duration_hours, description)
    description = description.strip()
    now = now or datetime.now()
    machine = get_machine(db, machine_id)

    window_end = compute_end(start, duration_hours)
    outcome = MaintenanceOutcome(state="created", window_start=start, window_end=window_end)

    if mtype == MaintenanceType.UNPLANNED:
        conflicts = find_overlapping_jobs(db, machine.id, start, window_end)
        refuse_maintenance_overlap(machine.id, conflicts)
        if conflicts and resolution is None:
            logger.info(
                f"Unplanned maintenance on {machine.code} halted: "
                f"{len(conflicts)} conflicting job(s)"
            )
            outcome.state = "conflicts"
            outcome.conflicts = conflicts
            return outcome

        if conflicts:
            resolution = ConflictResolution(resolution)
            if resolution == ConflictResolution.RETURN_TO_QUEUE:
                return_jobs_to_queue(conflicts, description)
            else:
                move_jobs_after(conflicts, window_end)
            outcome.conflicts = conflicts
            outcome.resolution = resolution

    wo = WorkOrder(
        wo_number=next_maintenance_order_number(db, now),
        order_type=OrderType.MAINTENANCE.value,
        maintenance_type=mtype.value,
        machine_id=machine.id,
        priority=Priority.NORMAL.value,
        status=WorkOrderStatus.IN_PROGRESS.value,
        notes=description,
        created_by=user_id,
    )
    db.add(wo)
    db.flush()

    job = Job(
        job_number=next_job_number(db),
        work_order_id=wo.id,
        component_id=None,
        quantity=1,
        priority=Priority.NORMAL.value,
        status=JobStatus.ASSIGNED.value,
        is_maintenance=True,
        maintenance_description=description,
        assigned_machine_id=machine.id,
        scheduled_start=start,
        scheduled_end=window_end,
        estimated_minutes=round(duration_hours * 60),
        scheduled_by=user_id,
        scheduled_at=now,
    )
    db.add(job)

    if mtype == MaintenanceType.UNPLANNED:
        set_machine_status(machine, MachineStatus.DOWN, f"Unplanned maintenance: {description}", now)

    flush_or_fail(db, "Maintenance order", wo.wo_number)

    logger.info(
        f"Created {mtype.value} maintenance {wo.wo_number} / {job.job_number} on {machine.code} "
        f"{start:%Y-%m-%d %H:%M} -> {window_end:%Y-%m-%d %H:%M}"
    )
    outcome.work_order = wo
    outcome.job = job
    return outcome


def extend_maintenance(db: Session, job_id: int, minutes: int) -> Job:
    """Push back the end of a running maintenance window."""
    if minutes is None or minutes <= 0:
        raise ValidationError("Extension must be a positive number of minutes", field="minutes", value=minutes)
    job = get_job(db, job_id)
    if not job.is_maintenance or job.status not in JOB_MACHINE_ACTIVE_STATUSES:
        raise InvalidStateError(f"Job {job.job_number} is not an open maintenance job", current_state=job.status)

    base = job.scheduled_end or job.scheduled_start
    if base is None:
        raise InvalidStateError(f"Maintenance job {job.job_number} has no scheduled window")
    job.scheduled_end = base + timedelta(minutes=minutes)
    job.estimated_minutes = (job.estimated_minutes or 0) + minutes
    flush_or_fail(db, "Job", job.id)
    logger.info(f"Maintenance job {job.job_number} extended by {minutes} min to {job.scheduled_end:%H:%M}")
    return job


def close_maintenance(
    db: Session,
    job_id: int,
    mode: CloseMode,
    *,
    reason: Optional[str] = None,
    end_time: Optional[datetime] = None,
    now: Optional[datetime] = None,
) -> Job:
    """
    Cancel a maintenance job, or complete it (possibly early).

    Cancel closes the order; complete completes it. Either way an unplanned
    order hands its machine back as available.
    """
    now = now or datetime.now()
    mode = CloseMode(mode)
    job = get_job(db, job_id)
    if not job.is_maintenance:
        raise InvalidStateError(f"Job {job.job_number} is not a maintenance job", current_state=job.status)
    if job.status not in JOB_MACHINE_ACTIVE_STATUSES:
        raise InvalidStateError(
            f"Maintenance job {job.job_number} is already {job.status}",
            current_state=job.status,
            allowed_states=sorted(s.value for s in JOB_MACHINE_ACTIVE_STATUSES),
        )

    wo = job.work_order
    machine_id = wo.machine_id or job.assigned_machine_id

    if mode == CloseMode.CANCEL:
        if not reason or not reason.strip():
            raise ValidationError("Please give a reason for cancelling", field="reason")
        transition_job(job, JobStatus.CANCELLED)
        clear_schedule(job)
        job.append_note(f" [Cancelled: {reason.strip()}]")
        transition_work_order(wo, WorkOrderStatus.CLOSED)
    else:
        end_time = end_time or now
        if job.scheduled_start is not None and end_time < job.scheduled_start:
            raise ValidationError("End time cannot be before the maintenance start", field="end_time")
        transition_job(job, JobStatus.COMPLETE)
        job.actual_end = end_time
        job.scheduled_end = end_time
        transition_work_order(wo, WorkOrderStatus.COMPLETE)

    if wo.maintenance_type == MaintenanceType.UNPLANNED and machine_id is not None:
        machine = db.get(Machine, machine_id)
        if machine is not None:
            set_machine_status(machine, MachineStatus.AVAILABLE, None, now)

    flush_or_fail(db, "Job", job.id)
    logger.info(f"Maintenance {wo.wo_number} {mode.value}: job {job.job_number} -> {job.status}")
    return job
