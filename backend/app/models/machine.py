"""
Machine, Location and Downtime Log models

A machine's stored ``status`` is only one of three "is it down" signals;
open downtime logs and active unplanned maintenance jobs are the others
(see app.services.dashboard.effective_machine_status).
"""
from datetime import datetime
from sqlalchemy import Column, Integer, String, Text, DateTime, Boolean, ForeignKey
from sqlalchemy.orm import relationship

from app.db.base import Base


class Location(Base):
    """Shop floor area machines are grouped by"""
    __tablename__ = "locations"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    code = Column(String(20), unique=True, nullable=True)

    machines = relationship("Machine", back_populates="location")

    def __repr__(self):
        return f"<Location {self.code}: {self.name}>"


class Machine(Base):
    """
    A schedulable machine.

    Status values: available, in_use, maintenance, down, offline
    """
    __tablename__ = "machines"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    code = Column(String(50), unique=True, nullable=False, index=True)
    location_id = Column(Integer, ForeignKey("locations.id"), nullable=True, index=True)
    display_order = Column(Integer, default=0, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    status = Column(String(20), default="available", nullable=False, index=True)
    status_reason = Column(Text, nullable=True)
    status_updated_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    location = relationship("Location", back_populates="machines")
    jobs = relationship("Job", back_populates="machine", foreign_keys="Job.assigned_machine_id")
    downtime_logs = relationship(
        "MachineDowntimeLog", back_populates="machine", order_by="MachineDowntimeLog.start_time"
    )

    def __repr__(self):
        return f"<Machine {self.code}: {self.status}>"

    @property
    def open_downtime_logs(self):
        return [log for log in self.downtime_logs if log.end_time is None]


class MachineDowntimeLog(Base):
    """
    Operator-logged machine downtime.

    A log with no end_time is ongoing and marks the machine as effectively down.
    """
    __tablename__ = "machine_downtime_logs"

    id = Column(Integer, primary_key=True, index=True)
    machine_id = Column(Integer, ForeignKey("machines.id", ondelete="CASCADE"), nullable=False, index=True)
    job_id = Column(Integer, ForeignKey("jobs.id"), nullable=True)

    start_time = Column(DateTime, nullable=False, index=True)
    end_time = Column(DateTime, nullable=True, index=True)  # NULL while ongoing

    reason = Column(String(200), nullable=False)
    notes = Column(Text, nullable=True)
    logged_by = Column(Integer, ForeignKey("users.id"), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    machine = relationship("Machine", back_populates="downtime_logs")
    job = relationship("Job")

    def __repr__(self):
        state = "open" if self.end_time is None else "closed"
        return f"<MachineDowntimeLog machine={self.machine_id} {state}: {self.reason}>"

    @property
    def is_open(self) -> bool:
        return self.end_time is None
