"""
Maintenance Pydantic Schemas

Schemas for maintenance order creation (with conflict resolution),
extension and close-out.
"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from app.core.status_config import MaintenanceType
from app.schemas.job import JobResponse
from app.schemas.work_order import WorkOrderResponse
from app.services.maintenance_scheduler import CloseMode, ConflictResolution


class MaintenanceOrderCreate(BaseModel):
    """
    Request a maintenance window on a machine.

    Repeat the request with a resolution when the first attempt comes back
    with conflicts.
    """
    machine_id: int
    maintenance_type: MaintenanceType
    start: datetime = Field(..., description="Window start, plant-local time")
    duration_hours: float = Field(..., gt=0, description="Shift hours; rolls over nights and weekends")
    description: str = Field(..., min_length=1)
    resolution: Optional[ConflictResolution] = None


class MaintenanceExtend(BaseModel):
    minutes: int = Field(..., gt=0)


class MaintenanceClose(BaseModel):
    mode: CloseMode
    reason: Optional[str] = Field(None, description="Required when cancelling")
    end_time: Optional[datetime] = Field(None, description="Completion time; defaults to now")


class ConflictingJob(BaseModel):
    id: int
    job_number: str
    status: str
    scheduled_start: Optional[datetime] = None
    scheduled_end: Optional[datetime] = None

    class Config:
        from_attributes = True


class MaintenanceOutcomeResponse(BaseModel):
    state: str = Field(..., description="created or conflicts")
    window_start: datetime
    window_end: datetime
    conflicts: List[ConflictingJob] = []
    resolution: Optional[ConflictResolution] = None
    work_order: Optional[WorkOrderResponse] = None
    job: Optional[JobResponse] = None

    class Config:
        from_attributes = True
