"""Department schemas"""

from typing import List
from pydantic import BaseModel, Field


class DepartmentResponse(BaseModel):
    """Department response schema"""
    id: str
    name: str
    capacity: int = Field(..., description="Seat limit, 0 means unlimited")
    filled_count: int = Field(..., description="Seats currently held")
    is_full: bool
    version: int

    class Config:
        from_attributes = True


class DepartmentListResponse(BaseModel):
    """List of departments response"""
    departments: List[DepartmentResponse]
    total: int = Field(..., description="Total number of departments")


class DepartmentSelection(BaseModel):
    """Department selection schema used by members and admins"""
    department_ids: List[str] = Field(..., description="Department ids to hold")


class DepartmentUpsert(BaseModel):
    """Department create/update schema (superadmin only)"""
    name: str = Field(..., min_length=1, max_length=255, description="Department name")
    capacity: int = Field(default=0, ge=0, description="Seat limit, 0 means unlimited")
