"""
Job lifecycle service.

Moves a single job through its pipeline:

    pending_compliance → ready → assigned → in_setup → in_progress
        → manufacturing_complete → [passivation] → [paint]
        → pending_post_manufacturing → ready_for_assembly ...

plus the escapes: edit (back to pending_compliance), cancel, and the
incomplete → ready requeue. Assembly and TCO cascades that touch many jobs
at once live in app.services.assembly_service.

All functions flush but never commit; the endpoint owns the transaction.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy.orm import Session

from app.core.settings import settings
from app.core.status_config import (
    DocumentStatus,
    JobStatus,
    PartType,
    RequiredAt,
    JOB_TERMINAL_STATUSES,
)
from app.exceptions import (
    BusinessRuleError,
    InvalidStateError,
    NotFoundError,
    ScheduleConflictError,
    ValidationError,
)
from app.logging_config import get_logger
from app.models.document import JobDocument, PartDocumentRequirement
from app.models.job import Job
from app.models.part import PartMachineDuration
from app.models.user import User
from app.services.lifecycle_helpers import (
    clear_schedule,
    flush_or_fail,
    get_job,
    get_machine,
    require_compliance_role,
    transition_job,
)
from app.services.maintenance_scheduler import (
    ConflictResolution,
    find_overlapping_jobs,
    move_jobs_after,
    refuse_maintenance_overlap,
)

logger = get_logger(__name__)

SCHEDULE_SLOT_MINUTES = 15


# =============================================================================
# Compliance review
# =============================================================================

def missing_compliance_documents(db: Session, job: Job) -> List[str]:
    """
    Names of required compliance-stage documents not yet approved for ``job``.

    A job without a component part has nothing to check.
    """
    if job.component_id is None:
        return []

    requirements = (
        db.query(PartDocumentRequirement)
        .filter(PartDocumentRequirement.part_id == job.component_id)
        .filter(PartDocumentRequirement.is_required.is_(True))
        .all()
    )
    approved_types = {
        doc.document_type_id for doc in job.documents
        if doc.status == DocumentStatus.APPROVED
    }

    missing = []
    for req in requirements:
        if req.required_at not in (None, RequiredAt.COMPLIANCE_REVIEW.value):
            continue
        if req.document_type_id not in approved_types:
            missing.append(req.document_type.name if req.document_type else str(req.document_type_id))
    return missing


def approve_job_compliance(db: Session, job_id: int, user: User) -> Job:
    """Release a job from compliance review into the scheduling queue."""
    require_compliance_role(user, "approve compliance")
    job = get_job(db, job_id)

    if job.status != JobStatus.PENDING_COMPLIANCE:
        raise InvalidStateError(
            f"Job {job.job_number} is not awaiting compliance review",
            current_state=job.status,
            allowed_states=[JobStatus.PENDING_COMPLIANCE.value],
        )

    missing = missing_compliance_documents(db, job)
    if missing:
        raise BusinessRuleError(
            f"Job {job.job_number} is missing approved documents: {', '.join(missing)}",
            rule="compliance_documents_required",
            details={"missing_documents": missing},
        )

    transition_job(job, JobStatus.READY)
    flush_or_fail(db, "Job", job.id)
    logger.info(f"Job {job.job_number} approved for production by user {user.id}")
    return job


def approve_job_document(db: Session, document_id: int, user: User, now: Optional[datetime] = None) -> JobDocument:
    require_compliance_role(user, "approve document")
    doc = db.get(JobDocument, document_id)
    if not doc:
        raise NotFoundError("Job document", document_id)

    doc.status = DocumentStatus.APPROVED.value
    doc.approved_by = user.id
    doc.approved_at = now or datetime.now()
    flush_or_fail(db, "Job document", doc.id)
    return doc


# =============================================================================
# Edit / cancel
# =============================================================================

def edit_job(
    db: Session,
    job_id: int,
    *,
    quantity: Optional[int] = None,
    priority: Optional[str] = None,
    notes: Optional[str] = None,
) -> Job:
    """
    Change a job's quantity, priority or notes.

    Any edit voids the compliance sign-off: the job returns to
    pending_compliance whatever its status was, and loses its machine slot.
    """
    job = get_job(db, job_id)
    if job.status in JOB_TERMINAL_STATUSES:
        raise InvalidStateError(f"Job {job.job_number} is {job.status} and cannot be edited", current_state=job.status)
    if job.is_maintenance:
        raise InvalidStateError(f"Job {job.job_number} is a maintenance job", current_state=job.status)
    if quantity is not None and quantity < 1:
        raise ValidationError("Quantity must be at least 1", field="quantity", value=quantity)

    if quantity is not None:
        job.quantity = quantity
    if priority is not None:
        job.priority = priority
    if notes is not None:
        job.notes = notes

    previous = job.status
    job.status = JobStatus.PENDING_COMPLIANCE.value
    clear_schedule(job)
    flush_or_fail(db, "Job", job.id)

    logger.info(f"Job {job.job_number} edited, reset {previous} -> pending_compliance")
    return job


def cancel_job(db: Session, job_id: int, reason: Optional[str] = None) -> Job:
    job = get_job(db, job_id)
    if job.status == JobStatus.CANCELLED:
        return job

    transition_job(job, JobStatus.CANCELLED)
    clear_schedule(job)
    if reason:
        job.append_note(f" [Cancelled: {reason}]")
    flush_or_fail(db, "Job", job.id)

    logger.info(f"Job {job.job_number} cancelled")
    return job


# =============================================================================
# Scheduling
# =============================================================================

def scaled_duration_minutes(estimated_minutes: int, base_quantity: Optional[int], quantity: int) -> int:
    """Scale a per-batch estimate to ``quantity`` pieces, never below the minimum slot."""
    if base_quantity and base_quantity > 0 and quantity > 0:
        return max(settings.MIN_SCHEDULED_MINUTES, round(quantity / base_quantity * estimated_minutes))
    return estimated_minutes


def estimate_job_minutes(db: Session, job: Job, machine_id: int) -> int:
    """Run time for ``job`` on ``machine_id`` from part/machine data, else the job estimate."""
    if job.component_id is not None:
        record = (
            db.query(PartMachineDuration)
            .filter(PartMachineDuration.part_id == job.component_id)
            .filter(PartMachineDuration.machine_id == machine_id)
            .first()
        )
        if record and record.estimated_minutes:
            return scaled_duration_minutes(record.estimated_minutes, record.base_quantity, job.quantity)
    return job.estimated_minutes or settings.DEFAULT_JOB_MINUTES


def validate_start_time(start: datetime) -> None:
    shift_end = settings.SHIFT_END_HOUR
    if start.hour < settings.SHIFT_START_HOUR or start.hour > shift_end or (
        start.hour == shift_end and start.minute > 0
    ):
        raise ValidationError(
            f"Start time must be between {settings.SHIFT_START_HOUR}:00 and {shift_end}:00",
            field="scheduled_start",
            value=start.isoformat(),
        )
    if start.minute % SCHEDULE_SLOT_MINUTES != 0 or start.second or start.microsecond:
        raise ValidationError(
            f"Start time must be in {SCHEDULE_SLOT_MINUTES}-minute increments",
            field="scheduled_start",
            value=start.isoformat(),
        )


@dataclass
class ScheduleResult:
    job: Job
    displaced: List[Job]


def schedule_job(
    db: Session,
    job_id: int,
    machine_id: int,
    start: datetime,
    *,
    estimated_minutes: Optional[int] = None,
    resolution: Optional[ConflictResolution] = None,
    user_id: Optional[int] = None,
    now: Optional[datetime] = None,
) -> ScheduleResult:
    """
    Put a job on a machine slot.

    Overlapping work on the machine is refused unless a resolution is given,
    in which case the overlapping jobs are returned to the queue or moved to
    follow the new slot.
    """
    now = now or datetime.now()
    job = get_job(db, job_id)
    if job.is_maintenance:
        raise InvalidStateError("Maintenance jobs are scheduled through maintenance orders", current_state=job.status)
    machine = get_machine(db, machine_id)
    if not machine.is_active:
        raise InvalidStateError(f"Machine {machine.code} is inactive")
    validate_start_time(start)

    minutes = estimated_minutes if estimated_minutes is not None else estimate_job_minutes(db, job, machine.id)
    if minutes <= 0:
        raise ValidationError("Duration must be greater than 0", field="estimated_minutes", value=minutes)
    end = start + timedelta(minutes=minutes)

    displaced = find_overlapping_jobs(db, machine.id, start, end, exclude_job_id=job.id)
    refuse_maintenance_overlap(machine.id, displaced)
    if displaced and resolution is None:
        raise ScheduleConflictError(machine.id, [j.job_number for j in displaced])

    if job.status != JobStatus.ASSIGNED:
        transition_job(job, JobStatus.ASSIGNED)

    if displaced:
        if ConflictResolution(resolution) == ConflictResolution.RETURN_TO_QUEUE:
            for other in displaced:
                transition_job(other, JobStatus.READY)
                clear_schedule(other)
        else:
            move_jobs_after(displaced, end)

    job.assigned_machine_id = machine.id
    job.scheduled_start = start
    job.scheduled_end = end
    job.estimated_minutes = minutes
    job.scheduled_by = user_id
    job.scheduled_at = now
    flush_or_fail(db, "Job", job.id)

    logger.info(f"Job {job.job_number} scheduled on {machine.code} {start:%Y-%m-%d %H:%M} ({minutes} min)")
    return ScheduleResult(job=job, displaced=displaced)


def unschedule_job(db: Session, job_id: int) -> Job:
    job = get_job(db, job_id)
    if job.is_maintenance:
        raise InvalidStateError("Maintenance jobs are closed, not unscheduled", current_state=job.status)
    transition_job(job, JobStatus.READY)
    clear_schedule(job)
    flush_or_fail(db, "Job", job.id)
    logger.info(f"Job {job.job_number} returned to queue")
    return job


# =============================================================================
# Machine execution (kiosk)
# =============================================================================

def start_setup(db: Session, job_id: int, now: Optional[datetime] = None) -> Job:
    """Begin setup; maintenance jobs have no setup and go straight to in_progress."""
    now = now or datetime.now()
    job = get_job(db, job_id)
    if job.is_maintenance:
        transition_job(job, JobStatus.IN_PROGRESS)
        job.setup_start = now
        job.production_start = now
    else:
        transition_job(job, JobStatus.IN_SETUP)
        job.setup_start = now
    flush_or_fail(db, "Job", job.id)
    return job


def start_production(db: Session, job_id: int, now: Optional[datetime] = None) -> Job:
    job = get_job(db, job_id)
    if job.status != JobStatus.IN_SETUP:
        raise InvalidStateError(
            f"Job {job.job_number} must be in setup to start production",
            current_state=job.status,
            allowed_states=[JobStatus.IN_SETUP.value],
        )
    transition_job(job, JobStatus.IN_PROGRESS)
    job.production_start = now or datetime.now()
    flush_or_fail(db, "Job", job.id)
    return job


def _check_pieces(good_pieces: int, bad_pieces: int) -> None:
    if good_pieces < 0 or bad_pieces < 0:
        raise ValidationError("Piece counts cannot be negative")


def complete_manufacturing(
    db: Session,
    job_id: int,
    *,
    good_pieces: int,
    bad_pieces: int = 0,
    actual_end: Optional[datetime] = None,
) -> Job:
    job = get_job(db, job_id)
    _check_pieces(good_pieces, bad_pieces)
    if good_pieces + bad_pieces == 0:
        raise ValidationError("Please enter at least one good or bad piece")
    if job.status != JobStatus.IN_PROGRESS:
        raise InvalidStateError(
            f"Job {job.job_number} is not running",
            current_state=job.status,
            allowed_states=[JobStatus.IN_PROGRESS.value],
        )

    actual_end = actual_end or datetime.now()
    transition_job(job, JobStatus.MANUFACTURING_COMPLETE)
    job.good_pieces = good_pieces
    job.bad_pieces = bad_pieces
    job.actual_end = actual_end

    job.time_per_unit = None
    if job.production_start is not None:
        total_minutes = (actual_end - job.production_start).total_seconds() / 60
        if total_minutes > 0:
            job.time_per_unit = round(total_minutes / (good_pieces + bad_pieces), 2)

    flush_or_fail(db, "Job", job.id)
    logger.info(f"Job {job.job_number} manufacturing complete: {good_pieces} good / {bad_pieces} bad")
    return job


def mark_incomplete(
    db: Session,
    job_id: int,
    *,
    good_pieces: int = 0,
    bad_pieces: int = 0,
    reason: Optional[str] = None,
    actual_end: Optional[datetime] = None,
    now: Optional[datetime] = None,
) -> Job:
    """Stop a partial run and send the job back to scheduling without a machine."""
    now = now or datetime.now()
    job = get_job(db, job_id)
    _check_pieces(good_pieces, bad_pieces)

    remaining = max(0, job.quantity - good_pieces)
    transition_job(job, JobStatus.INCOMPLETE)
    job.good_pieces = good_pieces
    job.bad_pieces = bad_pieces
    job.actual_end = actual_end or now
    job.incomplete_at = now
    job.incomplete_reason = reason or f"{remaining} pieces remaining"
    job.append_note(f" [Incomplete - {remaining} of {job.quantity} pieces remaining]")
    clear_schedule(job)
    flush_or_fail(db, "Job", job.id)

    logger.info(f"Job {job.job_number} incomplete, {remaining} pieces remaining")
    return job


def requeue_incomplete(db: Session, job_id: int) -> Job:
    job = get_job(db, job_id)
    if job.status != JobStatus.INCOMPLETE:
        raise InvalidStateError(
            f"Job {job.job_number} is not incomplete",
            current_state=job.status,
            allowed_states=[JobStatus.INCOMPLETE.value],
        )
    transition_job(job, JobStatus.READY)
    flush_or_fail(db, "Job", job.id)
    return job


# =============================================================================
# Secondary operations and post-manufacturing
# =============================================================================

@dataclass(frozen=True)
class SecondaryOperation:
    name: str
    pending_status: JobStatus
    in_progress_status: JobStatus
    start_field: str
    end_field: str
    operator_field: str
    notes_field: str


SECONDARY_OPERATIONS = {
    "passivation": SecondaryOperation(
        name="passivation",
        pending_status=JobStatus.PENDING_PASSIVATION,
        in_progress_status=JobStatus.IN_PASSIVATION,
        start_field="passivation_start",
        end_field="passivation_end",
        operator_field="passivation_operator_id",
        notes_field="passivation_notes",
    ),
    "paint": SecondaryOperation(
        name="paint",
        pending_status=JobStatus.PENDING_PAINT,
        in_progress_status=JobStatus.IN_PAINT,
        start_field="paint_start",
        end_field="paint_end",
        operator_field="paint_operator_id",
        notes_field="paint_notes",
    ),
}


def _secondary_operation(name: str) -> SecondaryOperation:
    try:
        return SECONDARY_OPERATIONS[name]
    except KeyError:
        raise ValidationError(f"Unknown secondary operation '{name}'", field="operation", value=name)


def route_after_manufacturing(db: Session, job_id: int) -> Job:
    """Send a finished machining job to passivation, paint or post-manufacturing."""
    job = get_job(db, job_id)
    part = job.component
    if part is not None and part.requires_passivation:
        next_status = JobStatus.PENDING_PASSIVATION
    elif part is not None and part.requires_paint:
        next_status = JobStatus.PENDING_PAINT
    else:
        next_status = JobStatus.PENDING_POST_MANUFACTURING
    transition_job(job, next_status)
    flush_or_fail(db, "Job", job.id)
    return job


def start_secondary(
    db: Session, job_id: int, operation: str, operator_id: Optional[int] = None, now: Optional[datetime] = None
) -> Job:
    op = _secondary_operation(operation)
    job = get_job(db, job_id)
    if job.status != op.pending_status:
        raise InvalidStateError(
            f"Job {job.job_number} is not waiting for {op.name}",
            current_state=job.status,
            allowed_states=[op.pending_status.value],
        )
    transition_job(job, op.in_progress_status)
    setattr(job, op.start_field, now or datetime.now())
    setattr(job, op.operator_field, operator_id)
    flush_or_fail(db, "Job", job.id)
    return job


def complete_secondary(
    db: Session, job_id: int, operation: str, notes: Optional[str] = None, now: Optional[datetime] = None
) -> Job:
    """Finish a secondary operation; passivated parts that also need paint go to paint next."""
    op = _secondary_operation(operation)
    job = get_job(db, job_id)
    if job.status != op.in_progress_status:
        raise InvalidStateError(
            f"Job {job.job_number} is not in {op.name}",
            current_state=job.status,
            allowed_states=[op.in_progress_status.value],
        )

    next_status = JobStatus.PENDING_POST_MANUFACTURING
    if op.name == "passivation" and job.component is not None and job.component.requires_paint:
        next_status = JobStatus.PENDING_PAINT

    transition_job(job, next_status)
    setattr(job, op.end_field, now or datetime.now())
    setattr(job, op.notes_field, notes or None)
    flush_or_fail(db, "Job", job.id)
    return job


def release_to_assembly(db: Session, job_id: int) -> Job:
    """
    Hand a job on after post-manufacturing.

    Jobs belonging to an assembly wait for assembly; finished goods and jobs
    with no assembly go straight to TCO.
    """
    job = get_job(db, job_id)
    woa = job.work_order_assembly
    needs_assembly = (
        woa is not None
        and (woa.assembly is None or woa.assembly.part_type != PartType.FINISHED_GOOD)
    )
    next_status = JobStatus.READY_FOR_ASSEMBLY if needs_assembly else JobStatus.PENDING_TCO
    transition_job(job, next_status)
    flush_or_fail(db, "Job", job.id)
    logger.info(f"Job {job.job_number} released to {next_status.value}")
    return job
