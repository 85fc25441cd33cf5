"""
Test data factories for the shop floor.

Provides functions to create test entities with sensible defaults.

Usage:
    from tests.factories import create_test_job, create_test_machine, create_test_work_order

    def test_something(db_session):
        machine = create_test_machine(db_session, code="LATHE-1")
        job = create_test_job(db_session, create_test_work_order(db_session), status="ready")
"""
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy.orm import Session


# =============================================================================
# SEQUENCE MANAGEMENT
# =============================================================================

_sequences: Dict[str, int] = {}


def reset_sequences():
    """Reset all sequences. Call between tests for predictable IDs."""
    global _sequences
    _sequences = {}


def _next(name: str) -> int:
    """Get next sequence number for a given entity type."""
    _sequences[name] = _sequences.get(name, 0) + 1
    return _sequences[name]


# =============================================================================
# USERS
# =============================================================================

def create_test_user(
    db: Session,
    email: Optional[str] = None,
    role: str = "admin",
    **overrides
) -> "User":
    """
    Create or get a test user (get-or-create on email).

    Args:
        db: Database session
        email: User email (auto-generated if not provided)
        role: admin, compliance, scheduler, operator or viewer
        **overrides: Additional field overrides
    """
    from app.models.user import User

    seq = _next("user")
    target_email = email or f"testuser{seq}@example.com"

    existing = db.query(User).filter_by(email=target_email).first()
    if existing:
        return existing

    user = User(
        email=target_email,
        full_name=overrides.pop("full_name", f"Test User {seq}"),
        role=role,
        can_approve_compliance=overrides.pop("can_approve_compliance", False),
        is_active=overrides.pop("is_active", True),
        **overrides
    )
    db.add(user)
    db.flush()
    return user


# =============================================================================
# MACHINES
# =============================================================================

def create_test_location(db: Session, name: Optional[str] = None, **overrides) -> "Location":
    from app.models.machine import Location

    seq = _next("location")
    location = Location(
        name=name or f"Bay {seq}",
        code=overrides.pop("code", f"BAY-{seq}"),
        **overrides
    )
    db.add(location)
    db.flush()
    return location


def create_test_machine(
    db: Session,
    code: Optional[str] = None,
    location=None,
    status: str = "available",
    **overrides
) -> "Machine":
    """Create an active machine, optionally placed in a location."""
    from app.models.machine import Machine

    seq = _next("machine")
    machine = Machine(
        code=code or f"M-{seq:02d}",
        name=overrides.pop("name", f"Machine {seq}"),
        location_id=location.id if location else None,
        display_order=overrides.pop("display_order", seq),
        is_active=overrides.pop("is_active", True),
        status=status,
        **overrides
    )
    db.add(machine)
    db.flush()
    return machine


def create_test_downtime(
    db: Session,
    machine,
    reason: str = "Tool change",
    start_time: Optional[datetime] = None,
    end_time: Optional[datetime] = None,
    **overrides
) -> "MachineDowntimeLog":
    from app.models.machine import MachineDowntimeLog

    log = MachineDowntimeLog(
        machine_id=machine.id,
        reason=reason,
        start_time=start_time or datetime(2024, 6, 3, 8, 0),
        end_time=end_time,
        **overrides
    )
    db.add(log)
    db.flush()
    return log


# =============================================================================
# PARTS
# =============================================================================

def create_test_part(
    db: Session,
    part_number: Optional[str] = None,
    part_type: str = "manufactured",
    **overrides
) -> "Part":
    from app.models.part import Part

    seq = _next("part")
    part = Part(
        part_number=part_number or f"PN-{seq:04d}",
        description=overrides.pop("description", f"Test part {seq}"),
        part_type=part_type,
        requires_passivation=overrides.pop("requires_passivation", False),
        requires_paint=overrides.pop("requires_paint", False),
        is_active=overrides.pop("is_active", True),
        **overrides
    )
    db.add(part)
    db.flush()
    return part


def create_test_assembly(
    db: Session,
    part_number: Optional[str] = None,
    components: Optional[List] = None,
    **overrides
) -> "Part":
    """
    Create an assembly part with BOM lines.

    Args:
        components: Parts (quantity 1) or (part, quantity) tuples, in BOM order
    """
    from app.models.part import AssemblyBOM

    assembly = create_test_part(db, part_number=part_number, part_type="assembly", **overrides)
    for sort_order, entry in enumerate(components or []):
        component, quantity = entry if isinstance(entry, tuple) else (entry, 1)
        db.add(AssemblyBOM(
            assembly_id=assembly.id,
            component_id=component.id,
            quantity=quantity,
            sort_order=sort_order,
        ))
    db.flush()
    db.refresh(assembly)
    return assembly


def create_test_duration(
    db: Session,
    part,
    machine,
    estimated_minutes: int = 60,
    base_quantity: int = 1,
) -> "PartMachineDuration":
    from app.models.part import PartMachineDuration

    duration = PartMachineDuration(
        part_id=part.id,
        machine_id=machine.id,
        estimated_minutes=estimated_minutes,
        base_quantity=base_quantity,
    )
    db.add(duration)
    db.flush()
    return duration


def create_test_document_requirement(
    db: Session,
    part,
    name: str = "Material Cert",
    required_at: Optional[str] = "compliance_review",
) -> "PartDocumentRequirement":
    from app.models.document import DocumentType, PartDocumentRequirement

    doc_type = db.query(DocumentType).filter_by(name=name).first()
    if doc_type is None:
        doc_type = DocumentType(name=name)
        db.add(doc_type)
        db.flush()

    requirement = PartDocumentRequirement(
        part_id=part.id,
        document_type_id=doc_type.id,
        is_required=True,
        required_at=required_at,
    )
    db.add(requirement)
    db.flush()
    return requirement


# =============================================================================
# WORK ORDERS AND JOBS
# =============================================================================

def create_test_work_order(
    db: Session,
    order_type: str = "make_to_order",
    status: str = "pending",
    **overrides
) -> "WorkOrder":
    from app.models.work_order import WorkOrder

    seq = _next("work_order")
    prefix = "MO" if order_type == "maintenance" else "WO"
    wo = WorkOrder(
        wo_number=overrides.pop("wo_number", f"{prefix}-2406-{seq:04d}"),
        order_type=order_type,
        customer=overrides.pop("customer", "ACME" if order_type == "make_to_order" else None),
        priority=overrides.pop("priority", "normal"),
        status=status,
        **overrides
    )
    db.add(wo)
    db.flush()
    return wo


def create_test_woa(
    db: Session,
    work_order,
    assembly=None,
    quantity: int = 1,
    status: Optional[str] = "pending",
    **overrides
) -> "WorkOrderAssembly":
    from app.models.work_order import WorkOrderAssembly

    woa = WorkOrderAssembly(
        work_order_id=work_order.id,
        assembly_id=assembly.id if assembly else None,
        quantity=quantity,
        status=status,
        **overrides
    )
    db.add(woa)
    db.flush()
    return woa


def create_test_job(
    db: Session,
    work_order,
    status: str = "pending_compliance",
    component=None,
    woa=None,
    machine=None,
    **overrides
) -> "Job":
    """
    Create a job on ``work_order``.

    Passing ``machine`` assigns it; scheduled_start / scheduled_end go in
    through ``overrides``.
    """
    from app.models.job import Job

    seq = _next("job")
    job = Job(
        job_number=overrides.pop("job_number", f"J-{seq:06d}"),
        work_order_id=work_order.id,
        work_order_assembly_id=woa.id if woa else None,
        component_id=component.id if component else None,
        quantity=overrides.pop("quantity", 10),
        priority=overrides.pop("priority", "normal"),
        status=status,
        assigned_machine_id=machine.id if machine else None,
        **overrides
    )
    db.add(job)
    db.flush()
    return job
