"""
Work order creation and editing.

A work order is created with one assembly row (WOA) per selected assembly
or finished good, and one job per candidate from the BOM composer. Jobs of
a finished good are not linked to its row (there is no assembly step). All
jobs start in pending_compliance. Job numbers for the whole order are
reserved in one read.
"""
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from app.core.status_config import (
    AssemblyStatus,
    JobStatus,
    OrderType,
    WorkOrderStatus,
    JOB_QUANTITY_EDITABLE_STATUSES,
)
from app.exceptions import InvalidStateError, NotFoundError, ValidationError
from app.logging_config import get_logger
from app.models.job import Job
from app.models.part import Part
from app.models.work_order import WorkOrder, WorkOrderAssembly
from app.schemas.work_order import AssemblyLineCreate, WorkOrderCreate, WorkOrderUpdate
from app.services.bom_composer import AssemblySelection, select_assembly
from app.services.lifecycle_helpers import clear_schedule, flush_or_fail, get_work_order
from app.services.sequence import next_work_order_number, reserve_job_numbers

logger = get_logger(__name__)


def _build_selection(db: Session, line: AssemblyLineCreate) -> AssemblySelection:
    part = db.get(Part, line.assembly_id)
    if not part or not part.is_active:
        raise NotFoundError("Part", line.assembly_id)

    selection = select_assembly(part, line.quantity)
    if line.jobs is not None:
        wanted = {job_line.component_id: job_line for job_line in line.jobs}
        for candidate in list(selection.jobs):
            if candidate.component_id not in wanted:
                selection.remove_job(candidate.component_id)
        for component_id, job_line in wanted.items():
            if job_line.quantity is not None:
                selection.override_job_quantity(component_id, job_line.quantity)
            elif selection.find_job(component_id) is None:
                raise ValidationError(
                    f"Component {component_id} is not part of {part.part_number}",
                    field="component_id",
                    value=component_id,
                )
    return selection


def _add_assembly(
    wo: WorkOrder,
    selection: AssemblySelection,
    job_numbers: List[str],
    priority: str,
) -> Tuple[WorkOrderAssembly, List[Job]]:
    woa = WorkOrderAssembly(
        assembly_id=selection.part.id,
        quantity=selection.quantity,
        status=AssemblyStatus.PENDING.value,
    )
    wo.assemblies.append(woa)

    jobs = []
    for candidate in selection.jobs:
        job = Job(
            job_number=job_numbers.pop(0),
            component_id=candidate.component_id,
            quantity=candidate.quantity,
            priority=priority,
            status=JobStatus.PENDING_COMPLIANCE.value,
        )
        wo.jobs.append(job)
        if not selection.is_finished_good:
            woa.jobs.append(job)
        jobs.append(job)
    return woa, jobs


def create_work_order(
    db: Session,
    data: WorkOrderCreate,
    user_id: Optional[int] = None,
    now: Optional[datetime] = None,
) -> WorkOrder:
    order_type = OrderType(data.order_type)
    if order_type == OrderType.MAINTENANCE:
        raise ValidationError(
            "Maintenance orders are created through the maintenance scheduler",
            field="order_type",
            value=order_type.value,
        )

    selections = [_build_selection(db, line) for line in data.assemblies]
    job_count = sum(len(s.jobs) for s in selections)
    if job_count == 0:
        raise ValidationError("Please add at least one job", field="assemblies")

    customer, po_number = data.customer, data.po_number
    if order_type == OrderType.MAKE_TO_STOCK:
        customer, po_number = None, None

    priority = getattr(data.priority, "value", data.priority)
    wo = WorkOrder(
        wo_number=next_work_order_number(db, now),
        order_type=order_type.value,
        customer=customer,
        po_number=po_number,
        priority=priority,
        due_date=data.due_date,
        status=WorkOrderStatus.PENDING.value,
        notes=data.notes,
        created_by=user_id,
    )
    db.add(wo)

    job_numbers = reserve_job_numbers(db, job_count)
    for selection in selections:
        _add_assembly(wo, selection, job_numbers, priority)

    flush_or_fail(db, "Work order", wo.wo_number)
    logger.info(
        f"Created {wo.wo_number} ({order_type.value}) with {len(selections)} assembly row(s) "
        f"and {job_count} job(s)"
    )
    return wo


def edit_work_order(db: Session, work_order_id: int, data: WorkOrderUpdate) -> WorkOrder:
    """
    Apply header, quantity and new-assembly edits to a work order.

    A job quantity change is only accepted while the job is in compliance
    review or the ready queue, and sends it back to compliance review.
    """
    wo = get_work_order(db, work_order_id)
    if wo.is_maintenance:
        raise InvalidStateError(f"{wo.wo_number} is a maintenance order")
    if wo.status in (WorkOrderStatus.COMPLETE, WorkOrderStatus.CLOSED):
        raise InvalidStateError(f"{wo.wo_number} is {wo.status}", current_state=wo.status)

    fields = data.model_dump(exclude_unset=True, include={"customer", "po_number", "priority", "due_date", "notes"})
    for name, value in fields.items():
        setattr(wo, name, getattr(value, "value", value))
    if wo.order_type == OrderType.MAKE_TO_STOCK:
        wo.customer, wo.po_number = None, None

    assemblies = {woa.id: woa for woa in wo.assemblies}
    for change in data.assembly_quantities:
        woa = assemblies.get(change.assembly_id)
        if woa is None:
            raise NotFoundError("Work order assembly", change.assembly_id)
        woa.quantity = change.quantity

    jobs = {job.id: job for job in wo.jobs}
    for change in data.job_quantities:
        job = jobs.get(change.job_id)
        if job is None:
            raise NotFoundError("Job", change.job_id)
        if job.quantity == change.quantity:
            continue
        if job.status not in JOB_QUANTITY_EDITABLE_STATUSES:
            raise InvalidStateError(
                f"Job {job.job_number} is {job.status}; quantity can only change before scheduling",
                current_state=job.status,
                allowed_states=sorted(s.value for s in JOB_QUANTITY_EDITABLE_STATUSES),
            )
        job.quantity = change.quantity
        job.status = JobStatus.PENDING_COMPLIANCE.value
        clear_schedule(job)

    if data.new_assemblies:
        selections = [_build_selection(db, line) for line in data.new_assemblies]
        job_numbers = reserve_job_numbers(db, sum(len(s.jobs) for s in selections))
        for selection in selections:
            _add_assembly(wo, selection, job_numbers, wo.priority)

    flush_or_fail(db, "Work order", wo.wo_number)
    logger.info(f"Edited {wo.wo_number}")
    return wo
