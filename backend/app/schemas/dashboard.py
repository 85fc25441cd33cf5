"""
Dashboard Pydantic Schemas
"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel

from app.schemas.job import JobResponse


class MachineCard(BaseModel):
    id: int
    name: str
    code: str
    status: str
    is_down: bool
    reason: Optional[str] = None
    current_job: Optional[JobResponse] = None
    queued_jobs: List[JobResponse] = []


class LocationSection(BaseModel):
    name: str
    machines: List[MachineCard]


class DashboardResponse(BaseModel):
    generated_at: datetime
    machines_down: int
    locations: List[LocationSection]
    pending_compliance: List[JobResponse]
    unassigned: List[JobResponse]
    incomplete: List[JobResponse]
    active_job_count: int
