"""
Common API Response Schemas

Pagination and message models shared by every router.
"""
from typing import Generic, List, TypeVar

from pydantic import BaseModel, Field


class PaginationParams(BaseModel):
    offset: int = Field(default=0, ge=0)
    limit: int = Field(default=50, ge=1, le=500)


class PaginationMeta(BaseModel):
    total: int
    offset: int
    limit: int
    returned: int


T = TypeVar("T")


class ListResponse(BaseModel, Generic[T]):
    items: List[T]
    pagination: PaginationMeta


class MessageResponse(BaseModel):
    message: str
