"""
Machine downtime logging from the kiosk.

An open log (no end_time) means the machine is down right now; the
dashboard reads it ahead of the stored machine status.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from app.core.status_config import JobStatus, MachineStatus, JOB_MACHINE_ACTIVE_STATUSES
from app.exceptions import InvalidStateError, NotFoundError, ValidationError
from app.logging_config import get_logger
from app.models.job import Job
from app.models.machine import Machine, MachineDowntimeLog
from app.services.lifecycle_helpers import (
    clear_schedule,
    flush_or_fail,
    get_job,
    get_machine,
    set_machine_status,
    transition_job,
)

logger = get_logger(__name__)


def _describe(reason: str, notes: Optional[str]) -> str:
    return f"{reason}: {notes}" if notes else reason


@dataclass
class DowntimeResult:
    log: MachineDowntimeLog
    machine: Machine
    job: Optional[Job] = None


def log_downtime(
    db: Session,
    machine_id: int,
    *,
    reason: str,
    notes: Optional[str] = None,
    start_time: Optional[datetime] = None,
    end_time: Optional[datetime] = None,
    job_id: Optional[int] = None,
    flag_machine_down: bool = False,
    send_job_to_scheduling: bool = False,
    user_id: Optional[int] = None,
    now: Optional[datetime] = None,
) -> DowntimeResult:
    """
    Record downtime against a machine.

    ``flag_machine_down`` takes the machine down with the reason as its
    status reason. ``send_job_to_scheduling`` pulls the running job off the
    machine as incomplete.
    """
    now = now or datetime.now()
    if not reason or not reason.strip():
        raise ValidationError("Please select a downtime reason", field="reason")
    reason = reason.strip()
    notes = notes.strip() if notes else None
    start_time = start_time or now
    if end_time is not None and end_time <= start_time:
        raise ValidationError("End time must be after start time", field="end_time")

    machine = get_machine(db, machine_id)
    job = None
    if job_id is not None:
        job = get_job(db, job_id)
        if job.assigned_machine_id != machine.id:
            raise ValidationError(
                f"Job {job.job_number} is not on machine {machine.code}",
                field="job_id",
                value=job_id,
            )

    log = MachineDowntimeLog(
        machine_id=machine.id,
        job_id=job.id if job else None,
        start_time=start_time,
        end_time=end_time,
        reason=reason,
        notes=notes,
        logged_by=user_id,
    )
    db.add(log)

    if flag_machine_down:
        set_machine_status(machine, MachineStatus.DOWN, _describe(reason, notes), now)

    if send_job_to_scheduling:
        if job is None:
            raise ValidationError("No job selected to send back to scheduling", field="job_id")
        if job.status not in JOB_MACHINE_ACTIVE_STATUSES or job.is_maintenance:
            raise InvalidStateError(
                f"Job {job.job_number} is not running on the machine",
                current_state=job.status,
            )
        if job.status == JobStatus.ASSIGNED:
            transition_job(job, JobStatus.READY)
        else:
            transition_job(job, JobStatus.INCOMPLETE)
            job.incomplete_reason = _describe(reason, notes)
            job.incomplete_at = now
        clear_schedule(job)

    flush_or_fail(db, "Machine", machine.id)
    logger.info(f"Downtime logged on {machine.code}: {reason} (down={flag_machine_down})")
    return DowntimeResult(log=log, machine=machine, job=job)


def close_downtime(
    db: Session, log_id: int, end_time: Optional[datetime] = None, now: Optional[datetime] = None
) -> MachineDowntimeLog:
    """End an open downtime log; a down machine comes back once its last open log closes."""
    now = now or datetime.now()
    log = db.get(MachineDowntimeLog, log_id)
    if not log:
        raise NotFoundError("Downtime log", log_id)
    if not log.is_open:
        raise InvalidStateError(f"Downtime log {log.id} is already closed")

    end_time = end_time or now
    if end_time <= log.start_time:
        raise ValidationError("End time must be after start time", field="end_time")
    log.end_time = end_time

    machine = log.machine
    still_open = [other for other in machine.open_downtime_logs if other.id != log.id]
    if machine.status == MachineStatus.DOWN and not still_open:
        set_machine_status(machine, MachineStatus.AVAILABLE, None, now)

    flush_or_fail(db, "Downtime log", log.id)
    logger.info(f"Downtime log {log.id} on {machine.code} closed")
    return log


def clear_machine_down(db: Session, machine_id: int, now: Optional[datetime] = None) -> List[MachineDowntimeLog]:
    """Close every open log on the machine and mark it available."""
    now = now or datetime.now()
    machine = get_machine(db, machine_id)
    closed = []
    for log in machine.open_downtime_logs:
        log.end_time = max(now, log.start_time)
        closed.append(log)
    set_machine_status(machine, MachineStatus.AVAILABLE, None, now)
    flush_or_fail(db, "Machine", machine.id)
    logger.info(f"{machine.code} cleared, {len(closed)} downtime log(s) closed")
    return closed
