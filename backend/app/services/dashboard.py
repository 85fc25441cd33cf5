"""
Dashboard aggregation.

The dashboard shows machines with their effective status (stored status
overridden by open downtime and running unplanned maintenance) alongside
the job queues. Builds are cached per view and dropped whenever the change
feed reports a write to one of the view's tables.
"""
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy.orm import Session, selectinload

from app.core.status_config import (
    JobStatus,
    MachineStatus,
    MaintenanceType,
    JOB_MACHINE_ACTIVE_STATUSES,
    JOB_TERMINAL_STATUSES,
)
from app.logging_config import get_logger
from app.models.job import Job
from app.models.machine import Machine, MachineDowntimeLog
from app.services.change_feed import ANY, ChangeFeed, change_feed

logger = get_logger(__name__)


# =============================================================================
# Effective machine status
# =============================================================================

def is_active_unplanned_maintenance(job: Job, now: datetime) -> bool:
    """An unplanned maintenance job whose window covers ``now``."""
    if not job.is_maintenance or job.status not in JOB_MACHINE_ACTIVE_STATUSES:
        return False
    wo = job.work_order
    if wo is None or wo.maintenance_type != MaintenanceType.UNPLANNED:
        return False
    if job.scheduled_start is None or job.scheduled_start > now:
        return False
    return job.scheduled_end is None or job.scheduled_end >= now


def effective_machine_status(
    machine: Machine,
    open_logs: Sequence[MachineDowntimeLog],
    active_maintenance_jobs: Sequence[Job],
) -> Tuple[bool, Optional[str]]:
    """
    (is_down, reason) for a machine.

    Reason priority: the open downtime log, then running unplanned
    maintenance, then the stored status reason.

    >>> m = Machine(code="M1", status="available")
    >>> effective_machine_status(m, [], [])
    (False, None)
    """
    if open_logs:
        log = open_logs[0]
        reason = f"Ongoing: {log.reason}"
        if log.notes:
            reason += f" - {log.notes}"
        return True, reason

    if active_maintenance_jobs:
        job = active_maintenance_jobs[0]
        description = job.maintenance_description or (job.work_order.notes if job.work_order else None)
        return True, f"Unplanned Maintenance: {description or 'In progress'}"

    return machine.status == MachineStatus.DOWN, machine.status_reason


# =============================================================================
# Dashboard build
# =============================================================================

@dataclass
class MachineView:
    machine: Machine
    is_down: bool
    reason: Optional[str]
    current_job: Optional[Job] = None
    queued_jobs: List[Job] = field(default_factory=list)


@dataclass
class LocationGroup:
    name: str
    machines: List[MachineView] = field(default_factory=list)


@dataclass
class Dashboard:
    generated_at: datetime
    locations: List[LocationGroup]
    pending_compliance: List[Job]
    unassigned: List[Job]
    incomplete: List[Job]
    active_jobs: List[Job]

    @property
    def machines_down(self) -> int:
        return sum(1 for group in self.locations for view in group.machines if view.is_down)


DASHBOARD_TABLES = ("jobs", "machines", "machine_downtime_logs", "work_orders")

UNASSIGNED_LOCATION = "Unassigned"


def _machine_view(machine: Machine, jobs: Iterable[Job], now: datetime) -> MachineView:
    machine_jobs = sorted(
        (j for j in jobs if j.assigned_machine_id == machine.id),
        key=lambda j: j.scheduled_start or datetime.max,
    )
    maintenance = [j for j in machine_jobs if is_active_unplanned_maintenance(j, now)]
    is_down, reason = effective_machine_status(machine, machine.open_downtime_logs, maintenance)

    running = [j for j in machine_jobs if j.status in (JobStatus.IN_SETUP, JobStatus.IN_PROGRESS)]
    return MachineView(
        machine=machine,
        is_down=is_down,
        reason=reason,
        current_job=running[0] if running else None,
        queued_jobs=[j for j in machine_jobs if j.status == JobStatus.ASSIGNED],
    )


def build_dashboard(db: Session, now: Optional[datetime] = None) -> Dashboard:
    now = now or datetime.now()

    jobs = (
        db.query(Job)
        .options(selectinload(Job.work_order), selectinload(Job.component))
        .filter(Job.status.notin_([s.value for s in JOB_TERMINAL_STATUSES]))
        .order_by(Job.id)
        .all()
    )
    machines = (
        db.query(Machine)
        .options(selectinload(Machine.location), selectinload(Machine.downtime_logs))
        .filter(Machine.is_active.is_(True))
        .order_by(Machine.display_order, Machine.name)
        .all()
    )

    groups: Dict[str, LocationGroup] = {}
    for machine in machines:
        name = machine.location.name if machine.location else UNASSIGNED_LOCATION
        groups.setdefault(name, LocationGroup(name=name)).machines.append(_machine_view(machine, jobs, now))

    return Dashboard(
        generated_at=now,
        locations=list(groups.values()),
        pending_compliance=[j for j in jobs if j.status == JobStatus.PENDING_COMPLIANCE],
        unassigned=[j for j in jobs if j.status == JobStatus.READY and j.assigned_machine_id is None],
        incomplete=[j for j in jobs if j.status == JobStatus.INCOMPLETE],
        active_jobs=jobs,
    )


# =============================================================================
# View cache
# =============================================================================

class ViewCache:
    """
    Memoizes a view builder until one of its tables changes.

    Invalidation is at-least-once: any committed write to a watched table
    drops the cached value and the next read rebuilds it.
    """

    def __init__(
        self,
        name: str,
        tables: Sequence[str],
        feed: ChangeFeed = change_feed,
        max_age_seconds: Optional[float] = None,
    ):
        self.name = name
        self.tables = tuple(tables)
        self.max_age_seconds = max_age_seconds
        self._value = None
        self._valid = False
        self._built_at = 0.0
        self._generation = 0
        self._lock = threading.Lock()
        self._unsubscribers = [feed.subscribe(table, ANY, self._on_change) for table in self.tables]

    def _on_change(self, table: str, event_name: str) -> None:
        logger.debug(f"View {self.name} invalidated by {event_name} on {table}")
        self.invalidate()

    def invalidate(self) -> None:
        with self._lock:
            self._generation += 1
            self._valid = False
            self._value = None

    def _expired(self) -> bool:
        return self.max_age_seconds is not None and time.monotonic() - self._built_at > self.max_age_seconds

    @property
    def is_valid(self) -> bool:
        return self._valid and not self._expired()

    def get(self, build: Callable[[], object]):
        with self._lock:
            if self._valid and not self._expired():
                return self._value
            generation = self._generation
        value = build()
        with self._lock:
            # a change landed mid-build; serve it but do not keep it
            if generation == self._generation:
                self._value = value
                self._valid = True
                self._built_at = time.monotonic()
        return value

    def close(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []
