"""
Assembly station and TCO closeout.

These are the cascading actions: one user action moves a Work Order
Assembly (or Work Order) and, with it, every job of the work order sitting
at the matching stage.

Start assembly      WOA → in_progress; WO jobs ready_for_assembly → in_assembly
Complete assembly   WOA → complete;    WO jobs ready_for_assembly/in_assembly → pending_tco
Approve TCO         WO → complete;     jobs pending_tco → complete; open WOAs → complete

The work order itself only completes at TCO approval.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from app.core.status_config import AssemblyStatus, JobStatus, WorkOrderStatus
from app.exceptions import BusinessRuleError, InvalidStateError, ValidationError
from app.logging_config import get_logger
from app.models.job import Job
from app.models.user import User
from app.models.work_order import WorkOrder, WorkOrderAssembly
from app.services.lifecycle_helpers import (
    flush_or_fail,
    get_assembly,
    get_work_order,
    require_compliance_role,
    transition_assembly,
    transition_job,
    transition_work_order,
)

logger = get_logger(__name__)

NOTES_DELIMITER = "\n---\n"

# Job statuses a WOA's jobs may be in when the WOA is completed
ASSEMBLY_COMPLETION_JOB_STATUSES = frozenset({
    JobStatus.READY_FOR_ASSEMBLY,
    JobStatus.IN_ASSEMBLY,
    JobStatus.PENDING_TCO,
    JobStatus.COMPLETE,
})


@dataclass
class AssemblyActionResult:
    assembly: WorkOrderAssembly
    jobs_moved: List[Job] = field(default_factory=list)
    created: bool = False
    warnings: List[str] = field(default_factory=list)


def _advance_jobs(work_order: WorkOrder, from_statuses, to_status: JobStatus) -> List[Job]:
    values = {getattr(s, "value", s) for s in from_statuses}
    moved = []
    for job in work_order.jobs:
        if job.status in values:
            transition_job(job, to_status)
            moved.append(job)
    return moved


def start_assembly(
    db: Session,
    *,
    work_order_id: int,
    assembly_id: Optional[int] = None,
    station_number: Optional[str] = None,
    assembler_number: Optional[str] = None,
    notes: Optional[str] = None,
    user_id: Optional[int] = None,
    now: Optional[datetime] = None,
) -> AssemblyActionResult:
    """
    Start a queued assembly.

    With no ``assembly_id`` the queue entry is virtual (the work order has
    no assembly rows): a WOA is created directly in progress and the work
    order's unlinked jobs are attached to it.
    """
    now = now or datetime.now()
    wo = get_work_order(db, work_order_id)
    if wo.is_maintenance:
        raise InvalidStateError(f"{wo.wo_number} is a maintenance order")

    created = False
    if assembly_id is None:
        if wo.assemblies:
            raise ValidationError(
                f"{wo.wo_number} has assembly rows; pick one to start",
                field="assembly_id",
            )
        woa = WorkOrderAssembly(
            work_order_id=wo.id,
            assembly_id=None,
            quantity=len(wo.jobs) or 1,
            status=AssemblyStatus.IN_PROGRESS.value,
        )
        wo.assemblies.append(woa)
        db.flush()
        for job in wo.jobs:
            if job.work_order_assembly_id is None and not job.is_maintenance:
                job.work_order_assembly = woa
        created = True
        logger.info(f"Created assembly row {woa.id} for {wo.wo_number} from virtual queue entry")
    else:
        woa = get_assembly(db, assembly_id)
        if woa.work_order_id != wo.id:
            raise ValidationError(
                f"Assembly {woa.id} does not belong to {wo.wo_number}",
                field="assembly_id",
                value=assembly_id,
            )
        transition_assembly(woa, AssemblyStatus.IN_PROGRESS)

    woa.station_number = station_number
    woa.assembler_number = assembler_number
    woa.assembly_started_at = now
    woa.assembly_started_by = user_id
    woa.assembly_notes = notes or None
    flush_or_fail(db, "Assembly", woa.id)

    moved = _advance_jobs(wo, [JobStatus.READY_FOR_ASSEMBLY], JobStatus.IN_ASSEMBLY)
    if wo.status == WorkOrderStatus.PENDING:
        transition_work_order(wo, WorkOrderStatus.IN_PROGRESS)
    flush_or_fail(db, "Job", wo.wo_number)

    logger.info(f"Assembly {woa.id} of {wo.wo_number} started at station {station_number}, {len(moved)} job(s) in assembly")
    return AssemblyActionResult(assembly=woa, jobs_moved=moved, created=created)


def complete_assembly(
    db: Session,
    assembly_id: int,
    *,
    good_quantity: int,
    bad_quantity: int = 0,
    completed_at: Optional[datetime] = None,
    notes: Optional[str] = None,
    user_id: Optional[int] = None,
) -> AssemblyActionResult:
    """Finish an assembly and move the work order's assembly-stage jobs to TCO."""
    if good_quantity < 0 or bad_quantity < 0:
        raise ValidationError("Quantities cannot be negative")

    woa = get_assembly(db, assembly_id)
    if woa.effective_status != AssemblyStatus.IN_PROGRESS:
        raise InvalidStateError(
            f"Assembly {woa.id} is not in progress",
            current_state=woa.effective_status,
            allowed_states=[AssemblyStatus.IN_PROGRESS.value],
        )

    unfinished = [
        job.job_number for job in woa.jobs
        if job.status != JobStatus.CANCELLED and job.status not in {s.value for s in ASSEMBLY_COMPLETION_JOB_STATUSES}
    ]
    if unfinished:
        raise BusinessRuleError(
            f"Jobs still in manufacturing: {', '.join(unfinished)}",
            rule="assembly_jobs_manufactured",
            details={"jobs": unfinished},
        )

    warnings = []
    if good_quantity + bad_quantity != woa.quantity:
        warnings.append(
            f"Good ({good_quantity}) + bad ({bad_quantity}) does not match assembly quantity ({woa.quantity})"
        )
        logger.warning(f"Assembly {woa.id}: {warnings[-1]}")

    transition_assembly(woa, AssemblyStatus.COMPLETE)
    woa.assembly_completed_at = completed_at or datetime.now()
    woa.assembly_completed_by = user_id
    woa.good_quantity = good_quantity
    woa.bad_quantity = bad_quantity
    if notes:
        completion = f"Completion: {notes}"
        woa.assembly_notes = (
            f"{woa.assembly_notes}{NOTES_DELIMITER}{completion}" if woa.assembly_notes else completion
        )
    flush_or_fail(db, "Assembly", woa.id)

    wo = woa.work_order
    moved = _advance_jobs(
        wo, [JobStatus.READY_FOR_ASSEMBLY, JobStatus.IN_ASSEMBLY], JobStatus.PENDING_TCO
    )
    flush_or_fail(db, "Job", wo.wo_number)

    logger.info(f"Assembly {woa.id} of {wo.wo_number} complete, {len(moved)} job(s) to TCO")
    return AssemblyActionResult(assembly=woa, jobs_moved=moved, warnings=warnings)


def approve_tco(db: Session, work_order_id: int, user: User, now: Optional[datetime] = None) -> WorkOrder:
    """
    Close out a work order.

    Every active job must be pending_tco; they all complete, as do the
    order and any assembly row still open.
    """
    require_compliance_role(user, "approve TCO")
    wo = get_work_order(db, work_order_id)
    if wo.is_maintenance:
        raise InvalidStateError(f"{wo.wo_number} is a maintenance order")

    active = wo.active_jobs
    if not active:
        raise BusinessRuleError(f"{wo.wo_number} has no active jobs", rule="tco_requires_jobs")
    waiting = [job.job_number for job in active if job.status != JobStatus.PENDING_TCO]
    if waiting:
        raise BusinessRuleError(
            f"All active jobs must be pending TCO; not ready: {', '.join(waiting)}",
            rule="tco_all_jobs_pending",
            details={"jobs": waiting},
        )

    now = now or datetime.now()
    for job in active:
        transition_job(job, JobStatus.COMPLETE)
        if job.actual_end is None:
            job.actual_end = now

    for woa in wo.assemblies:
        if woa.effective_status != AssemblyStatus.COMPLETE:
            woa.status = AssemblyStatus.COMPLETE.value
            if woa.assembly_completed_at is None:
                woa.assembly_completed_at = now
                woa.assembly_completed_by = user.id

    transition_work_order(wo, WorkOrderStatus.COMPLETE)
    flush_or_fail(db, "Work order", wo.wo_number)

    logger.info(f"TCO approved for {wo.wo_number} by user {user.id}: {len(active)} job(s) complete")
    return wo
