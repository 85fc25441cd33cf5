"""
Compliance document models

Parts declare which document types they require and at which stage;
jobs carry the uploaded documents and their approval state.
"""
from datetime import datetime
from sqlalchemy import Column, Integer, String, Text, DateTime, Boolean, ForeignKey
from sqlalchemy.orm import relationship

from app.db.base import Base


class DocumentType(Base):
    __tablename__ = "document_types"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), unique=True, nullable=False)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    def __repr__(self):
        return f"<DocumentType {self.name}>"


class PartDocumentRequirement(Base):
    """
    A document a part needs before it may move past a workflow stage.

    required_at: compliance_review (NULL is treated the same), manufacturing_complete, tco
    """
    __tablename__ = "part_document_requirements"

    id = Column(Integer, primary_key=True, index=True)
    part_id = Column(Integer, ForeignKey("parts.id", ondelete="CASCADE"), nullable=False, index=True)
    document_type_id = Column(Integer, ForeignKey("document_types.id"), nullable=False)
    is_required = Column(Boolean, default=True, nullable=False)
    required_at = Column(String(30), nullable=True)

    part = relationship("Part", back_populates="document_requirements")
    document_type = relationship("DocumentType")


class JobDocument(Base):
    __tablename__ = "job_documents"

    id = Column(Integer, primary_key=True, index=True)
    job_id = Column(Integer, ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False, index=True)
    document_type_id = Column(Integer, ForeignKey("document_types.id"), nullable=False)
    file_name = Column(String(255), nullable=True)
    status = Column(String(20), default="pending", nullable=False)  # pending, approved

    approved_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    approved_at = Column(DateTime, nullable=True)
    uploaded_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    job = relationship("Job", back_populates="documents")
    document_type = relationship("DocumentType")

    def __repr__(self):
        return f"<JobDocument job={self.job_id} type={self.document_type_id} {self.status}>"
