"""
Part master, Assembly BOM and per-machine duration models
"""
from datetime import datetime
from sqlalchemy import Column, Integer, String, Text, DateTime, Boolean, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from app.db.base import Base


class Part(Base):
    """
    Part master record.

    part_type: assembly, finished_good, manufactured, purchased
    """
    __tablename__ = "parts"

    id = Column(Integer, primary_key=True, index=True)
    part_number = Column(String(100), unique=True, nullable=False, index=True)
    description = Column(Text, nullable=True)
    part_type = Column(String(20), default="manufactured", nullable=False, index=True)

    # Secondary operations
    requires_passivation = Column(Boolean, default=False, nullable=False)
    requires_paint = Column(Boolean, default=False, nullable=False)

    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    bom_lines = relationship(
        "AssemblyBOM",
        back_populates="assembly",
        foreign_keys="AssemblyBOM.assembly_id",
        order_by="AssemblyBOM.sort_order",
        cascade="all, delete-orphan",
    )
    machine_durations = relationship(
        "PartMachineDuration", back_populates="part", cascade="all, delete-orphan"
    )
    document_requirements = relationship(
        "PartDocumentRequirement", back_populates="part", cascade="all, delete-orphan"
    )

    def __repr__(self):
        return f"<Part {self.part_number} ({self.part_type})>"


class AssemblyBOM(Base):
    """One ordered component edge of an assembly's bill of materials"""
    __tablename__ = "assembly_bom"
    __table_args__ = (
        UniqueConstraint("assembly_id", "component_id", name="uq_assembly_bom_component"),
    )

    id = Column(Integer, primary_key=True, index=True)
    assembly_id = Column(Integer, ForeignKey("parts.id", ondelete="CASCADE"), nullable=False, index=True)
    component_id = Column(Integer, ForeignKey("parts.id"), nullable=False, index=True)
    quantity = Column(Integer, default=1, nullable=False)
    sort_order = Column(Integer, default=0, nullable=False)

    assembly = relationship("Part", back_populates="bom_lines", foreign_keys=[assembly_id])
    component = relationship("Part", foreign_keys=[component_id])

    def __repr__(self):
        return f"<AssemblyBOM {self.assembly_id} -> {self.component_id} x{self.quantity}>"


class PartMachineDuration(Base):
    """
    Estimated run time of a part on a machine, for a base batch size.

    Scheduling scales estimated_minutes linearly by job quantity / base_quantity.
    """
    __tablename__ = "part_machine_durations"
    __table_args__ = (
        UniqueConstraint("part_id", "machine_id", name="uq_part_machine_duration"),
    )

    id = Column(Integer, primary_key=True, index=True)
    part_id = Column(Integer, ForeignKey("parts.id", ondelete="CASCADE"), nullable=False, index=True)
    machine_id = Column(Integer, ForeignKey("machines.id", ondelete="CASCADE"), nullable=False, index=True)
    estimated_minutes = Column(Integer, nullable=False)
    base_quantity = Column(Integer, default=1, nullable=False)
    preference_order = Column(Integer, default=1, nullable=False)

    part = relationship("Part", back_populates="machine_durations")
    machine = relationship("Machine")
