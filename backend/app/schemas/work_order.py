"""
Work Order Pydantic Schemas
"""
from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from app.core.status_config import OrderType, Priority


# ============================================================================
# Create / Edit
# ============================================================================

class JobLineCreate(BaseModel):
    """One component job within an assembly selection"""
    component_id: int
    quantity: Optional[int] = Field(None, ge=1, description="Override; defaults to the assembly quantity")


class AssemblyLineCreate(BaseModel):
    """An assembly or finished good picked for the work order"""
    assembly_id: int
    quantity: int = Field(1, ge=1)
    jobs: Optional[List[JobLineCreate]] = Field(
        None, description="Jobs to create; omit to create one per schedulable BOM component"
    )


class WorkOrderCreate(BaseModel):
    order_type: OrderType = OrderType.MAKE_TO_ORDER
    customer: Optional[str] = Field(None, max_length=200)
    po_number: Optional[str] = Field(None, max_length=100)
    priority: Priority = Priority.NORMAL
    due_date: Optional[date] = None
    notes: Optional[str] = None
    assemblies: List[AssemblyLineCreate] = Field(default_factory=list)


class AssemblyQuantityUpdate(BaseModel):
    assembly_id: int = Field(..., description="Work order assembly row id")
    quantity: int = Field(..., ge=1)


class JobQuantityUpdate(BaseModel):
    job_id: int
    quantity: int = Field(..., ge=1)


class WorkOrderUpdate(BaseModel):
    """Edit a work order; only supplied fields change"""
    customer: Optional[str] = Field(None, max_length=200)
    po_number: Optional[str] = Field(None, max_length=100)
    priority: Optional[Priority] = None
    due_date: Optional[date] = None
    notes: Optional[str] = None
    assembly_quantities: List[AssemblyQuantityUpdate] = Field(default_factory=list)
    job_quantities: List[JobQuantityUpdate] = Field(default_factory=list)
    new_assemblies: List[AssemblyLineCreate] = Field(default_factory=list)


# ============================================================================
# Responses
# ============================================================================

class JobSummary(BaseModel):
    id: int
    job_number: str
    component_id: Optional[int] = None
    work_order_assembly_id: Optional[int] = None
    quantity: int
    priority: str
    status: str
    assigned_machine_id: Optional[int] = None
    scheduled_start: Optional[datetime] = None
    scheduled_end: Optional[datetime] = None
    is_maintenance: bool = False

    class Config:
        from_attributes = True


class WorkOrderAssemblyResponse(BaseModel):
    id: int
    assembly_id: Optional[int] = None
    quantity: int
    status: Optional[str] = None
    station_number: Optional[str] = None
    assembler_number: Optional[str] = None
    assembly_started_at: Optional[datetime] = None
    assembly_completed_at: Optional[datetime] = None
    good_quantity: Optional[int] = None
    bad_quantity: Optional[int] = None
    assembly_notes: Optional[str] = None

    class Config:
        from_attributes = True


class WorkOrderResponse(BaseModel):
    id: int
    wo_number: str
    order_type: str
    maintenance_type: Optional[str] = None
    machine_id: Optional[int] = None
    customer: Optional[str] = None
    po_number: Optional[str] = None
    priority: str
    due_date: Optional[date] = None
    status: str
    notes: Optional[str] = None
    created_at: datetime
    assemblies: List[WorkOrderAssemblyResponse] = []
    jobs: List[JobSummary] = []

    class Config:
        from_attributes = True


class WorkOrderListResponse(BaseModel):
    items: List[WorkOrderResponse]
    total: int
