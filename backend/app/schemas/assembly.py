"""
Assembly board and TCO Pydantic Schemas
"""
from datetime import date, datetime
from typing import List, Optional, Union

from pydantic import BaseModel, Field

from app.schemas.job import JobResponse
from app.schemas.work_order import WorkOrderAssemblyResponse


class AssemblyStart(BaseModel):
    """Start an assembly; omit assembly_id for a virtual queue entry"""
    work_order_id: int
    assembly_id: Optional[int] = None
    station_number: Optional[str] = Field(None, max_length=20)
    assembler_number: Optional[str] = Field(None, max_length=50)
    notes: Optional[str] = None


class AssemblyComplete(BaseModel):
    good_quantity: int = Field(..., ge=0)
    bad_quantity: int = Field(0, ge=0)
    completed_at: Optional[datetime] = None
    notes: Optional[str] = None


class AssemblyActionResponse(BaseModel):
    assembly: WorkOrderAssemblyResponse
    jobs_moved: List[str] = Field(default_factory=list, description="Job numbers whose status changed")
    created: bool = False
    warnings: List[str] = Field(default_factory=list)


class WorkOrderHeader(BaseModel):
    id: int
    wo_number: str
    customer: Optional[str] = None
    po_number: Optional[str] = None
    priority: str
    due_date: Optional[date] = None
    status: str

    class Config:
        from_attributes = True


class AssemblyEntryResponse(BaseModel):
    id: Union[int, str]
    work_order: WorkOrderHeader
    assembly_part_number: Optional[str] = None
    quantity: int
    status: str
    station_number: Optional[str] = None
    assembler_number: Optional[str] = None
    assembly_started_at: Optional[datetime] = None
    assembly_completed_at: Optional[datetime] = None
    is_virtual: bool = False
    missing_assembly: bool = False
    jobs: List[JobResponse] = []


class AssemblyBoardResponse(BaseModel):
    in_progress: List[AssemblyEntryResponse]
    queued: List[AssemblyEntryResponse]
    completed_this_week: List[AssemblyEntryResponse]


class TcoEntryResponse(BaseModel):
    work_order: WorkOrderHeader
    active_job_count: int
    tco_job_count: int
    all_pending_tco: bool
    is_finished_good: bool


class TcoBoardResponse(BaseModel):
    pending: List[TcoEntryResponse]
    completed_this_week: List[WorkOrderHeader]
