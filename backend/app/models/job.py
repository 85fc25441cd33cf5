"""
Job model

A job is the unit of machine scheduling: one component part, one
quantity, at most one machine slot. Status follows the pipeline in
app.core.status_config.JOB_TRANSITIONS.
"""
from datetime import datetime
from sqlalchemy import Column, Integer, String, Text, DateTime, Boolean, Float, ForeignKey
from sqlalchemy.orm import relationship

from app.db.base import Base


class Job(Base):
    __tablename__ = "jobs"

    id = Column(Integer, primary_key=True, index=True)
    job_number = Column(String(20), unique=True, nullable=False, index=True)  # J-000001, global sequence

    work_order_id = Column(Integer, ForeignKey("work_orders.id", ondelete="CASCADE"), nullable=False, index=True)
    work_order_assembly_id = Column(
        Integer, ForeignKey("work_order_assemblies.id"), nullable=True, index=True
    )  # NULL for finished goods and maintenance
    component_id = Column(Integer, ForeignKey("parts.id"), nullable=True, index=True)  # NULL for maintenance

    quantity = Column(Integer, nullable=False, default=1)
    priority = Column(String(20), nullable=False, default="normal")
    status = Column(String(30), nullable=False, default="pending_compliance", index=True)

    # Scheduling
    assigned_machine_id = Column(Integer, ForeignKey("machines.id"), nullable=True, index=True)
    scheduled_start = Column(DateTime, nullable=True, index=True)
    scheduled_end = Column(DateTime, nullable=True)
    estimated_minutes = Column(Integer, nullable=True)
    scheduled_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    scheduled_at = Column(DateTime, nullable=True)

    # Execution
    setup_start = Column(DateTime, nullable=True)
    production_start = Column(DateTime, nullable=True)
    actual_end = Column(DateTime, nullable=True)
    good_pieces = Column(Integer, nullable=True)
    bad_pieces = Column(Integer, nullable=True)
    time_per_unit = Column(Float, nullable=True)  # minutes per piece
    incomplete_reason = Column(Text, nullable=True)
    incomplete_at = Column(DateTime, nullable=True)

    # Secondary operations
    passivation_start = Column(DateTime, nullable=True)
    passivation_end = Column(DateTime, nullable=True)
    passivation_operator_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    passivation_notes = Column(Text, nullable=True)
    paint_start = Column(DateTime, nullable=True)
    paint_end = Column(DateTime, nullable=True)
    paint_operator_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    paint_notes = Column(Text, nullable=True)

    # Maintenance
    is_maintenance = Column(Boolean, nullable=False, default=False)
    maintenance_description = Column(Text, nullable=True)

    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    work_order = relationship("WorkOrder", back_populates="jobs")
    work_order_assembly = relationship("WorkOrderAssembly", back_populates="jobs")
    component = relationship("Part")
    machine = relationship("Machine", back_populates="jobs", foreign_keys=[assigned_machine_id])
    documents = relationship("JobDocument", back_populates="job", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Job {self.job_number}: {self.status}>"

    @property
    def is_scheduled(self) -> bool:
        return self.scheduled_start is not None and self.scheduled_end is not None

    @property
    def scheduled_minutes(self):
        """Length of the current schedule slot, or None if unscheduled"""
        if not self.is_scheduled:
            return None
        return (self.scheduled_end - self.scheduled_start).total_seconds() / 60

    def append_note(self, text: str) -> None:
        self.notes = f"{self.notes or ''}{text}"
