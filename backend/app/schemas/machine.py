"""
Machine and downtime Pydantic Schemas
"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class DowntimeCreate(BaseModel):
    reason: str = Field(..., min_length=1, max_length=200)
    notes: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    job_id: Optional[int] = None
    flag_machine_down: bool = False
    send_job_to_scheduling: bool = False


class DowntimeClose(BaseModel):
    end_time: Optional[datetime] = None


class DowntimeLogResponse(BaseModel):
    id: int
    machine_id: int
    job_id: Optional[int] = None
    start_time: datetime
    end_time: Optional[datetime] = None
    reason: str
    notes: Optional[str] = None
    logged_by: Optional[int] = None

    class Config:
        from_attributes = True


class MachineResponse(BaseModel):
    id: int
    name: str
    code: str
    location_id: Optional[int] = None
    display_order: int
    is_active: bool
    status: str
    status_reason: Optional[str] = None
    status_updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class MachineStatusResponse(MachineResponse):
    """Machine with its effective (derived) status"""
    is_down: bool
    effective_reason: Optional[str] = None
    open_downtime: List[DowntimeLogResponse] = []
