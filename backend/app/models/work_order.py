"""
Work Order and Work Order Assembly models

A work order owns zero or more assembly line items (WOAs) and, through
them or directly, its jobs. WOAs of the same work order progress
independently: one can be in assembly while a sibling is still queued.

Lifecycle:
    WorkOrder:  pending → in_progress → complete   (complete only via TCO approval)
    WOA:        pending → in_progress → complete
"""
from datetime import datetime
from sqlalchemy import Column, Integer, String, Text, DateTime, Date, ForeignKey
from sqlalchemy.orm import relationship

from app.core.status_config import AssemblyStatus, JobStatus, OrderType, PartType
from app.db.base import Base


class WorkOrder(Base):
    """
    Customer, stock or maintenance work order.

    order_type: make_to_order, make_to_stock, maintenance
    maintenance_type: planned, unplanned (maintenance orders only)
    """
    __tablename__ = "work_orders"

    id = Column(Integer, primary_key=True, index=True)
    wo_number = Column(String(20), unique=True, nullable=False, index=True)  # WO-2405-0001 / MO-2405-0001

    order_type = Column(String(20), nullable=False, default="make_to_order", index=True)
    maintenance_type = Column(String(20), nullable=True)
    machine_id = Column(Integer, ForeignKey("machines.id"), nullable=True, index=True)

    customer = Column(String(200), nullable=True)
    po_number = Column(String(100), nullable=True)
    priority = Column(String(20), nullable=False, default="normal")
    due_date = Column(Date, nullable=True)

    status = Column(String(20), nullable=False, default="pending", index=True)
    notes = Column(Text, nullable=True)

    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    machine = relationship("Machine")
    assemblies = relationship(
        "WorkOrderAssembly",
        back_populates="work_order",
        order_by="WorkOrderAssembly.id",
        cascade="all, delete-orphan",
    )
    jobs = relationship(
        "Job",
        back_populates="work_order",
        order_by="Job.id",
        cascade="all, delete-orphan",
    )

    def __repr__(self):
        return f"<WorkOrder {self.wo_number}: {self.status}>"

    @property
    def is_maintenance(self) -> bool:
        return self.order_type == OrderType.MAINTENANCE

    @property
    def active_jobs(self):
        """Jobs that still count toward completion (everything not cancelled)"""
        return [j for j in self.jobs if j.status != JobStatus.CANCELLED]


class WorkOrderAssembly(Base):
    """
    One assembly line item of a work order.

    status NULL is read as pending.
    """
    __tablename__ = "work_order_assemblies"

    id = Column(Integer, primary_key=True, index=True)
    work_order_id = Column(Integer, ForeignKey("work_orders.id", ondelete="CASCADE"), nullable=False, index=True)
    assembly_id = Column(Integer, ForeignKey("parts.id"), nullable=True, index=True)
    quantity = Column(Integer, nullable=False, default=1)

    status = Column(String(20), nullable=True, default="pending", index=True)

    # Assembly station execution
    station_number = Column(String(20), nullable=True)
    assembler_number = Column(String(50), nullable=True)
    assembly_started_at = Column(DateTime, nullable=True)
    assembly_started_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    assembly_completed_at = Column(DateTime, nullable=True)
    assembly_completed_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    good_quantity = Column(Integer, nullable=True)
    bad_quantity = Column(Integer, nullable=True)
    assembly_notes = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    work_order = relationship("WorkOrder", back_populates="assemblies")
    assembly = relationship("Part")
    jobs = relationship("Job", back_populates="work_order_assembly", order_by="Job.id")

    def __repr__(self):
        return f"<WorkOrderAssembly {self.id} wo={self.work_order_id}: {self.status or 'pending'}>"

    @property
    def effective_status(self) -> str:
        return self.status or AssemblyStatus.PENDING.value

    @property
    def is_finished_good(self) -> bool:
        return self.assembly is not None and self.assembly.part_type == PartType.FINISHED_GOOD
