"""
Lifecycle Helpers - lookups, guarded status changes and checked flushes

Every service that changes a Job, Work Order Assembly or Work Order status
goes through the transition_* helpers here so the rules in
app.core.status_config are enforced in one place, and flushes writes with
flush_or_fail() so a write that silently touched no row is reported.
"""
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from app.core.settings import settings
from app.core.status_config import (
    StatusTransitionError,
    validate_assembly_transition,
    validate_job_transition,
    validate_work_order_transition,
)
from app.exceptions import InvalidStateError, NotFoundError, PermissionDeniedError, StoreWriteError
from app.logging_config import get_logger
from app.models.job import Job
from app.models.machine import Machine
from app.models.user import User
from app.models.work_order import WorkOrder, WorkOrderAssembly

logger = get_logger(__name__)


# =============================================================================
# Lookups
# =============================================================================

def get_job(db: Session, job_id: int) -> Job:
    job = db.get(Job, job_id)
    if not job:
        raise NotFoundError("Job", job_id)
    return job


def get_work_order(db: Session, work_order_id: int) -> WorkOrder:
    wo = db.get(WorkOrder, work_order_id)
    if not wo:
        raise NotFoundError("Work order", work_order_id)
    return wo


def get_assembly(db: Session, assembly_id: int) -> WorkOrderAssembly:
    woa = db.get(WorkOrderAssembly, assembly_id)
    if not woa:
        raise NotFoundError("Work order assembly", assembly_id)
    return woa


def get_machine(db: Session, machine_id: int) -> Machine:
    machine = db.get(Machine, machine_id)
    if not machine:
        raise NotFoundError("Machine", machine_id)
    return machine


# =============================================================================
# Status transitions
# =============================================================================

def _value(status) -> str:
    return getattr(status, "value", status)


def transition_job(job: Job, new_status) -> None:
    """Set job.status, raising InvalidStateError if the pipeline forbids it."""
    new_status = _value(new_status)
    try:
        validate_job_transition(job.status, new_status, is_maintenance=job.is_maintenance)
    except StatusTransitionError as e:
        raise InvalidStateError(
            f"Job {job.job_number}: {e}",
            current_state=job.status,
            allowed_states=e.allowed,
        )
    job.status = new_status


def transition_assembly(woa: WorkOrderAssembly, new_status) -> None:
    new_status = _value(new_status)
    try:
        validate_assembly_transition(woa.status, new_status)
    except StatusTransitionError as e:
        raise InvalidStateError(str(e), current_state=woa.effective_status, allowed_states=e.allowed)
    woa.status = new_status


def transition_work_order(wo: WorkOrder, new_status) -> None:
    new_status = _value(new_status)
    try:
        validate_work_order_transition(wo.status, new_status)
    except StatusTransitionError as e:
        raise InvalidStateError(
            f"Work order {wo.wo_number}: {e}",
            current_state=wo.status,
            allowed_states=e.allowed,
        )
    wo.status = new_status


def clear_schedule(job: Job) -> None:
    """Take a job off its machine slot."""
    job.assigned_machine_id = None
    job.scheduled_start = None
    job.scheduled_end = None
    job.scheduled_by = None
    job.scheduled_at = None


def set_machine_status(machine: Machine, status, reason: Optional[str], now: datetime) -> None:
    machine.status = _value(status)
    machine.status_reason = reason
    machine.status_updated_at = now


# =============================================================================
# Permissions
# =============================================================================

def can_approve_compliance(user: Optional[User]) -> bool:
    if user is None or not user.is_active:
        return False
    return user.role in settings.COMPLIANCE_ROLES or bool(user.can_approve_compliance)


def require_compliance_role(user: Optional[User], action: str) -> None:
    if not can_approve_compliance(user):
        raise PermissionDeniedError(
            "Only compliance reviewers and admins can perform this action",
            action=action,
        )


# =============================================================================
# Writes
# =============================================================================

def flush_or_fail(db: Session, resource: str, resource_id=None) -> None:
    """
    Flush pending writes; an UPDATE that matched no row becomes StoreWriteError.

    Row-level permission rules can block an update without raising, leaving
    the caller believing it succeeded.
    """
    try:
        db.flush()
    except StaleDataError as e:
        logger.error(f"{resource} {resource_id}: update affected no rows ({e})")
        raise StoreWriteError(resource, resource_id)
