"""
Assembly readiness and board classification.

Pure functions over loaded WorkOrder / WorkOrderAssembly / Job objects;
the only query lives in load_board_work_orders().

An assembly is ready when every job linked to it has reached assembly
(ready_for_assembly, in_assembly or complete) and at least one of them is
still waiting on or in assembly. Ready assemblies are bucketed by their own
status, so sibling assemblies of one work order land in different buckets.
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Iterable, List, Optional, Sequence, Union

from sqlalchemy import or_
from sqlalchemy.orm import Session, selectinload

from app.core.status_config import (
    AssemblyStatus,
    JobStatus,
    OrderType,
    PartType,
    WorkOrderStatus,
    JOB_ASSEMBLY_READY_STATUSES,
    JOB_ASSEMBLY_WORK_STATUSES,
)
from app.models.job import Job
from app.models.work_order import WorkOrder, WorkOrderAssembly


@dataclass
class AssemblyEntry:
    """One row of the assembly board; virtual rows stand in for a missing WOA"""
    id: Union[int, str]
    work_order: WorkOrder
    assembly: Optional[WorkOrderAssembly]
    quantity: int
    status: str
    jobs: List[Job] = field(default_factory=list)
    is_virtual: bool = False
    missing_assembly: bool = False

    @property
    def completed_at(self) -> Optional[datetime]:
        return self.assembly.assembly_completed_at if self.assembly else None


@dataclass
class AssemblyBoard:
    in_progress: List[AssemblyEntry] = field(default_factory=list)
    queued: List[AssemblyEntry] = field(default_factory=list)
    completed_this_week: List[AssemblyEntry] = field(default_factory=list)


@dataclass
class TcoEntry:
    work_order: WorkOrder
    active_job_count: int
    tco_job_count: int
    all_pending_tco: bool
    is_finished_good: bool


@dataclass
class TcoBoard:
    pending: List[TcoEntry] = field(default_factory=list)
    completed_this_week: List[WorkOrder] = field(default_factory=list)


def start_of_week(now: datetime) -> datetime:
    """Most recent Sunday 00:00 (today, if today is Sunday)."""
    days_since_sunday = (now.weekday() + 1) % 7
    sunday = now - timedelta(days=days_since_sunday)
    return sunday.replace(hour=0, minute=0, second=0, microsecond=0)


def is_assembly_ready(jobs: Sequence[Job]) -> bool:
    if not jobs:
        return False
    all_jobs_ready = all(job.status in JOB_ASSEMBLY_READY_STATUSES for job in jobs)
    has_assembly_work = any(job.status in JOB_ASSEMBLY_WORK_STATUSES for job in jobs)
    return all_jobs_ready and has_assembly_work


def _bucket(board: AssemblyBoard, entry: AssemblyEntry, week_start: datetime) -> None:
    if entry.status == AssemblyStatus.IN_PROGRESS:
        board.in_progress.append(entry)
    elif entry.status == AssemblyStatus.COMPLETE:
        # Completed before this week: drops off the board
        if entry.completed_at is not None and entry.completed_at >= week_start:
            board.completed_this_week.append(entry)
    else:
        board.queued.append(entry)


def classify_assemblies(work_orders: Iterable[WorkOrder], now: Optional[datetime] = None) -> AssemblyBoard:
    """
    Split ready assemblies into in-progress, queued and completed-this-week.

    A work order with no assembly rows at all is judged on all of its jobs
    and, when ready, shows up as a virtual queue entry flagged
    ``missing_assembly`` so the gap can be backfilled.
    """
    now = now or datetime.now()
    week_start = start_of_week(now)
    board = AssemblyBoard()

    for wo in work_orders:
        if wo.order_type == OrderType.MAINTENANCE:
            continue

        if not wo.assemblies:
            if is_assembly_ready(wo.jobs):
                board.queued.append(AssemblyEntry(
                    id=f"wo-{wo.id}",
                    work_order=wo,
                    assembly=None,
                    quantity=len(wo.jobs) or 1,
                    status=AssemblyStatus.PENDING.value,
                    jobs=list(wo.jobs),
                    is_virtual=True,
                    missing_assembly=True,
                ))
            continue

        for woa in wo.assemblies:
            if woa.assembly is not None and woa.assembly.part_type == PartType.FINISHED_GOOD:
                continue

            woa_jobs = [job for job in wo.jobs if job.work_order_assembly_id == woa.id]
            if not is_assembly_ready(woa_jobs):
                continue

            _bucket(board, AssemblyEntry(
                id=woa.id,
                work_order=wo,
                assembly=woa,
                quantity=woa.quantity,
                status=woa.effective_status,
                jobs=woa_jobs,
            ), week_start)

    board.completed_this_week.sort(key=lambda e: e.completed_at, reverse=True)
    return board


def classify_tco(work_orders: Iterable[WorkOrder], now: Optional[datetime] = None) -> TcoBoard:
    """
    Work orders waiting on TCO sign-off, and those signed off this week.

    Only entries with ``all_pending_tco`` are actionable; the rest are shown
    so reviewers can see what is still outstanding.
    """
    now = now or datetime.now()
    week_start = start_of_week(now)
    board = TcoBoard()

    for wo in work_orders:
        if wo.order_type == OrderType.MAINTENANCE:
            continue

        if wo.status == WorkOrderStatus.COMPLETE:
            if wo.updated_at is not None and wo.updated_at >= week_start:
                board.completed_this_week.append(wo)
            continue

        active = wo.active_jobs
        tco_jobs = [job for job in active if job.status == JobStatus.PENDING_TCO]
        if not tco_jobs:
            continue

        board.pending.append(TcoEntry(
            work_order=wo,
            active_job_count=len(active),
            tco_job_count=len(tco_jobs),
            all_pending_tco=len(tco_jobs) == len(active),
            is_finished_good=any(woa.is_finished_good for woa in wo.assemblies),
        ))

    board.completed_this_week.sort(key=lambda wo: wo.updated_at, reverse=True)
    return board


def load_board_work_orders(db: Session, now: Optional[datetime] = None) -> List[WorkOrder]:
    """Non-maintenance work orders still open, or touched since the start of the week."""
    now = now or datetime.now()
    return (
        db.query(WorkOrder)
        .options(
            selectinload(WorkOrder.assemblies).selectinload(WorkOrderAssembly.assembly),
            selectinload(WorkOrder.jobs),
        )
        .filter(WorkOrder.order_type != OrderType.MAINTENANCE.value)
        .filter(WorkOrder.status != WorkOrderStatus.CLOSED.value)
        .filter(or_(
            WorkOrder.status != WorkOrderStatus.COMPLETE.value,
            WorkOrder.updated_at >= start_of_week(now),
        ))
        .order_by(WorkOrder.id)
        .all()
    )
