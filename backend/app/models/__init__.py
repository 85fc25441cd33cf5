"""Database models"""
from app.models.user import User
from app.models.machine import Location, Machine, MachineDowntimeLog
from app.models.part import Part, AssemblyBOM, PartMachineDuration
from app.models.document import DocumentType, PartDocumentRequirement, JobDocument
from app.models.work_order import WorkOrder, WorkOrderAssembly
from app.models.job import Job

__all__ = [
    # Users
    "User",
    # Machines
    "Location",
    "Machine",
    "MachineDowntimeLog",
    # Parts & BOM
    "Part",
    "AssemblyBOM",
    "PartMachineDuration",
    # Compliance documents
    "DocumentType",
    "PartDocumentRequirement",
    "JobDocument",
    # Orders
    "WorkOrder",
    "WorkOrderAssembly",
    "Job",
]
