"""Status Configuration and Transition Rules

This module defines valid status values and allowed transitions for
Jobs, Work Order Assemblies and Work Orders, plus the closed value sets
for order type, part type, priority and machine status. Every status
change in the services goes through the validate_* helpers below.
"""
from enum import Enum
from typing import Dict, FrozenSet, List, Set


# =============================================================================
# Classification enums
# =============================================================================

class OrderType(str, Enum):
    """What a work order is for"""
    MAKE_TO_ORDER = "make_to_order"
    MAKE_TO_STOCK = "make_to_stock"
    MAINTENANCE = "maintenance"


class MaintenanceType(str, Enum):
    """Only set when order_type is maintenance"""
    PLANNED = "planned"
    UNPLANNED = "unplanned"


class Priority(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    NORMAL = "normal"
    LOW = "low"


class PartType(str, Enum):
    """Part master classification"""
    ASSEMBLY = "assembly"
    FINISHED_GOOD = "finished_good"
    MANUFACTURED = "manufactured"
    PURCHASED = "purchased"


class MachineStatus(str, Enum):
    """Stored machine status (see dashboard.effective_machine_status for the derived view)"""
    AVAILABLE = "available"
    IN_USE = "in_use"
    MAINTENANCE = "maintenance"
    DOWN = "down"
    OFFLINE = "offline"


class UserRole(str, Enum):
    ADMIN = "admin"
    COMPLIANCE = "compliance"
    SCHEDULER = "scheduler"
    OPERATOR = "operator"
    VIEWER = "viewer"


class DocumentStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"


class RequiredAt(str, Enum):
    """Workflow stage at which a part document must be approved"""
    COMPLIANCE_REVIEW = "compliance_review"
    MANUFACTURING_COMPLETE = "manufacturing_complete"
    TCO = "tco"


# =============================================================================
# Job Status
# =============================================================================

class JobStatus(str, Enum):
    """Valid status values for Jobs, in pipeline order"""
    PENDING_COMPLIANCE = "pending_compliance"
    READY = "ready"
    ASSIGNED = "assigned"
    IN_SETUP = "in_setup"
    IN_PROGRESS = "in_progress"
    MANUFACTURING_COMPLETE = "manufacturing_complete"
    PENDING_PASSIVATION = "pending_passivation"
    IN_PASSIVATION = "in_passivation"
    PENDING_PAINT = "pending_paint"
    IN_PAINT = "in_paint"
    PENDING_POST_MANUFACTURING = "pending_post_manufacturing"
    READY_FOR_ASSEMBLY = "ready_for_assembly"
    IN_ASSEMBLY = "in_assembly"
    PENDING_TCO = "pending_tco"
    COMPLETE = "complete"
    INCOMPLETE = "incomplete"  # Partial run, waiting to be requeued
    CANCELLED = "cancelled"


JOB_TERMINAL_STATUSES: FrozenSet[str] = frozenset({
    JobStatus.COMPLETE,
    JobStatus.CANCELLED,
})

# Jobs occupying a machine
JOB_MACHINE_ACTIVE_STATUSES: FrozenSet[str] = frozenset({
    JobStatus.ASSIGNED,
    JobStatus.IN_SETUP,
    JobStatus.IN_PROGRESS,
})

# Statuses that count toward an assembly being ready
JOB_ASSEMBLY_READY_STATUSES: FrozenSet[str] = frozenset({
    JobStatus.READY_FOR_ASSEMBLY,
    JobStatus.IN_ASSEMBLY,
    JobStatus.COMPLETE,
})

JOB_ASSEMBLY_WORK_STATUSES: FrozenSet[str] = frozenset({
    JobStatus.READY_FOR_ASSEMBLY,
    JobStatus.IN_ASSEMBLY,
})

# Work order header edits may still change job quantities in these statuses
JOB_QUANTITY_EDITABLE_STATUSES: FrozenSet[str] = frozenset({
    JobStatus.PENDING_COMPLIANCE,
    JobStatus.READY,
})


JOB_TRANSITIONS: Dict[str, Set[str]] = {
    JobStatus.PENDING_COMPLIANCE: {
        JobStatus.READY,
        JobStatus.CANCELLED,
    },
    JobStatus.READY: {
        JobStatus.ASSIGNED,
        JobStatus.CANCELLED,
    },
    JobStatus.ASSIGNED: {
        JobStatus.IN_SETUP,
        JobStatus.READY,  # Unscheduled
        JobStatus.CANCELLED,
    },
    JobStatus.IN_SETUP: {
        JobStatus.IN_PROGRESS,
        JobStatus.INCOMPLETE,
        JobStatus.READY,  # Unscheduled or displaced by maintenance
        JobStatus.CANCELLED,
    },
    JobStatus.IN_PROGRESS: {
        JobStatus.MANUFACTURING_COMPLETE,
        JobStatus.INCOMPLETE,
        JobStatus.READY,  # Displaced by maintenance
        JobStatus.CANCELLED,
    },
    JobStatus.INCOMPLETE: {
        JobStatus.READY,
        JobStatus.ASSIGNED,  # Rescheduled straight from the incomplete list
        JobStatus.CANCELLED,
    },
    JobStatus.MANUFACTURING_COMPLETE: {
        JobStatus.PENDING_PASSIVATION,
        JobStatus.PENDING_PAINT,
        JobStatus.PENDING_POST_MANUFACTURING,
        JobStatus.CANCELLED,
    },
    JobStatus.PENDING_PASSIVATION: {
        JobStatus.IN_PASSIVATION,
        JobStatus.CANCELLED,
    },
    JobStatus.IN_PASSIVATION: {
        JobStatus.PENDING_PAINT,
        JobStatus.PENDING_POST_MANUFACTURING,
        JobStatus.CANCELLED,
    },
    JobStatus.PENDING_PAINT: {
        JobStatus.IN_PAINT,
        JobStatus.CANCELLED,
    },
    JobStatus.IN_PAINT: {
        JobStatus.PENDING_POST_MANUFACTURING,
        JobStatus.CANCELLED,
    },
    JobStatus.PENDING_POST_MANUFACTURING: {
        JobStatus.READY_FOR_ASSEMBLY,
        JobStatus.PENDING_TCO,  # No assembly step (finished goods)
        JobStatus.CANCELLED,
    },
    JobStatus.READY_FOR_ASSEMBLY: {
        JobStatus.IN_ASSEMBLY,
        JobStatus.PENDING_TCO,
        JobStatus.CANCELLED,
    },
    JobStatus.IN_ASSEMBLY: {
        JobStatus.PENDING_TCO,
        JobStatus.CANCELLED,
    },
    JobStatus.PENDING_TCO: {
        JobStatus.COMPLETE,
        JobStatus.CANCELLED,
    },
    JobStatus.COMPLETE: set(),  # Terminal
    JobStatus.CANCELLED: set(),  # Terminal
}

# Maintenance jobs skip the manufacturing pipeline entirely
MAINTENANCE_JOB_TRANSITIONS: Dict[str, Set[str]] = {
    JobStatus.ASSIGNED: {
        JobStatus.IN_PROGRESS,
        JobStatus.COMPLETE,
        JobStatus.CANCELLED,
    },
    JobStatus.IN_SETUP: {
        JobStatus.IN_PROGRESS,
        JobStatus.COMPLETE,
        JobStatus.CANCELLED,
    },
    JobStatus.IN_PROGRESS: {
        JobStatus.COMPLETE,
        JobStatus.CANCELLED,
    },
    JobStatus.COMPLETE: set(),
    JobStatus.CANCELLED: set(),
}


def get_allowed_job_transitions(current_status: str, is_maintenance: bool = False) -> List[str]:
    """Get list of allowed next statuses for a job"""
    table = MAINTENANCE_JOB_TRANSITIONS if is_maintenance else JOB_TRANSITIONS
    return sorted(str(s.value if isinstance(s, Enum) else s) for s in table.get(current_status, set()))


def is_valid_job_transition(current_status: str, new_status: str, is_maintenance: bool = False) -> bool:
    """Check if a job status transition is valid"""
    if current_status == new_status:
        return True
    table = MAINTENANCE_JOB_TRANSITIONS if is_maintenance else JOB_TRANSITIONS
    return new_status in table.get(current_status, set())


def is_terminal_job_status(status: str) -> bool:
    return status in JOB_TERMINAL_STATUSES


# =============================================================================
# Work Order Assembly Status
# =============================================================================

class AssemblyStatus(str, Enum):
    """Valid status values for Work Order Assemblies (NULL reads as pending)"""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETE = "complete"


ASSEMBLY_TRANSITIONS: Dict[str, Set[str]] = {
    AssemblyStatus.PENDING: {
        AssemblyStatus.IN_PROGRESS,
        AssemblyStatus.COMPLETE,  # Closed out by TCO approval
    },
    AssemblyStatus.IN_PROGRESS: {
        AssemblyStatus.COMPLETE,
    },
    AssemblyStatus.COMPLETE: set(),  # Terminal
}


def get_allowed_assembly_transitions(current_status: str) -> List[str]:
    return sorted(s.value for s in ASSEMBLY_TRANSITIONS.get(current_status or AssemblyStatus.PENDING, set()))


def is_valid_assembly_transition(current_status: str, new_status: str) -> bool:
    """Check if a work order assembly status transition is valid"""
    current_status = current_status or AssemblyStatus.PENDING
    if current_status == new_status:
        return True
    return new_status in ASSEMBLY_TRANSITIONS.get(current_status, set())


# =============================================================================
# Work Order Status
# =============================================================================

class WorkOrderStatus(str, Enum):
    """Valid status values for Work Orders"""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETE = "complete"
    CLOSED = "closed"  # Cancelled maintenance order


WORK_ORDER_TRANSITIONS: Dict[str, Set[str]] = {
    WorkOrderStatus.PENDING: {
        WorkOrderStatus.IN_PROGRESS,
        WorkOrderStatus.COMPLETE,
    },
    WorkOrderStatus.IN_PROGRESS: {
        WorkOrderStatus.COMPLETE,
        WorkOrderStatus.CLOSED,
    },
    WorkOrderStatus.COMPLETE: set(),  # Terminal
    WorkOrderStatus.CLOSED: set(),  # Terminal
}


def get_allowed_work_order_transitions(current_status: str) -> List[str]:
    return sorted(s.value for s in WORK_ORDER_TRANSITIONS.get(current_status, set()))


def is_valid_work_order_transition(current_status: str, new_status: str) -> bool:
    """Check if a work order status transition is valid"""
    if current_status == new_status:
        return True
    return new_status in WORK_ORDER_TRANSITIONS.get(current_status, set())


# =============================================================================
# Validation Helpers
# =============================================================================

class StatusTransitionError(Exception):
    """Raised when an invalid status transition is attempted"""
    def __init__(self, entity: str, current: str, requested: str, allowed: List[str]):
        self.entity = entity
        self.current = current
        self.requested = requested
        self.allowed = allowed
        super().__init__(
            f"Invalid {entity} status transition: '{current}' -> '{requested}'. "
            f"Allowed: {allowed if allowed else 'none (terminal state)'}"
        )


def validate_job_transition(current: str, new: str, is_maintenance: bool = False) -> None:
    """Validate and raise error if transition is invalid"""
    if not is_valid_job_transition(current, new, is_maintenance):
        raise StatusTransitionError(
            "maintenance job" if is_maintenance else "job",
            current,
            new,
            get_allowed_job_transitions(current, is_maintenance),
        )


def validate_assembly_transition(current: str, new: str) -> None:
    """Validate and raise error if transition is invalid"""
    if not is_valid_assembly_transition(current, new):
        raise StatusTransitionError(
            "work order assembly",
            current or AssemblyStatus.PENDING.value,
            new,
            get_allowed_assembly_transitions(current),
        )


def validate_work_order_transition(current: str, new: str) -> None:
    """Validate and raise error if transition is invalid"""
    if not is_valid_work_order_transition(current, new):
        raise StatusTransitionError(
            "work order",
            current,
            new,
            get_allowed_work_order_transitions(current),
        )
