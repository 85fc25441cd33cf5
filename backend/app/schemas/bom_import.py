"""
BOM import Pydantic Schemas
"""
from typing import List, Optional

from pydantic import BaseModel, Field

from app.core.status_config import PartType


class BomTextUpload(BaseModel):
    text: str = Field(..., description="OCR output of one bill of materials")


class AssemblyRowUpdate(BaseModel):
    part_number: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None


class ComponentRowUpdate(BaseModel):
    part_number: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    quantity: Optional[int] = Field(None, ge=1)
    part_type: Optional[PartType] = None
    requires_passivation: Optional[bool] = None


class ParsedPartResponse(BaseModel):
    part_number: str
    description: str
    quantity: int
    unit: str
    part_type: str
    requires_passivation: bool
    is_duplicate: bool
    existing_id: Optional[int] = None
    existing_description: Optional[str] = None

    class Config:
        from_attributes = True


class SaveReportResponse(BaseModel):
    created: List[str]
    linked: List[str]
    errors: List[str]

    class Config:
        from_attributes = True


class BomImportResponse(BaseModel):
    id: str
    stage: str
    error: Optional[str] = None
    cost: Optional[str] = None
    assembly: Optional[ParsedPartResponse] = None
    components: List[ParsedPartResponse] = []
    report: Optional[SaveReportResponse] = None
