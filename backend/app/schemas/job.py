"""
Job Pydantic Schemas

Request bodies for the job lifecycle actions (compliance, scheduling,
kiosk execution, secondary operations) and the job response.
"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from app.core.status_config import Priority


# ============================================================================
# Requests
# ============================================================================

class JobEdit(BaseModel):
    """Quantity / priority edit; any edit sends the job back to compliance review"""
    quantity: Optional[int] = Field(None, ge=1)
    priority: Optional[Priority] = None
    notes: Optional[str] = None


class JobCancel(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class JobSchedule(BaseModel):
    machine_id: int
    scheduled_start: datetime
    estimated_minutes: Optional[int] = Field(None, gt=0, description="Override the part/machine estimate")
    resolution: Optional[str] = Field(
        None, description="return_to_queue or move_next, required when the slot overlaps other jobs"
    )


class JobComplete(BaseModel):
    good_pieces: int = Field(..., ge=0)
    bad_pieces: int = Field(0, ge=0)
    actual_end: Optional[datetime] = None


class JobIncomplete(BaseModel):
    good_pieces: int = Field(0, ge=0)
    bad_pieces: int = Field(0, ge=0)
    reason: Optional[str] = Field(None, max_length=500)
    actual_end: Optional[datetime] = None


class SecondaryStart(BaseModel):
    operator_id: Optional[int] = None


class SecondaryComplete(BaseModel):
    notes: Optional[str] = None


# ============================================================================
# Responses
# ============================================================================

class JobDocumentResponse(BaseModel):
    id: int
    job_id: int
    document_type_id: int
    file_name: Optional[str] = None
    status: str
    approved_by: Optional[int] = None
    approved_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class JobResponse(BaseModel):
    id: int
    job_number: str
    work_order_id: int
    work_order_assembly_id: Optional[int] = None
    component_id: Optional[int] = None
    quantity: int
    priority: str
    status: str

    assigned_machine_id: Optional[int] = None
    scheduled_start: Optional[datetime] = None
    scheduled_end: Optional[datetime] = None
    estimated_minutes: Optional[int] = None

    setup_start: Optional[datetime] = None
    production_start: Optional[datetime] = None
    actual_end: Optional[datetime] = None
    good_pieces: Optional[int] = None
    bad_pieces: Optional[int] = None
    time_per_unit: Optional[float] = None
    incomplete_reason: Optional[str] = None

    is_maintenance: bool = False
    maintenance_description: Optional[str] = None
    notes: Optional[str] = None

    class Config:
        from_attributes = True


class ScheduleResponse(BaseModel):
    job: JobResponse
    displaced: List[JobResponse] = []
