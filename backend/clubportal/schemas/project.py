"""Project schemas"""

from typing import List, Optional
from pydantic import BaseModel, Field
from datetime import datetime
from uuid import UUID


class ProjectCreate(BaseModel):
    """Project creation schema"""
    name: str = Field(..., min_length=1, max_length=255, description="Project name")
    description: Optional[str] = Field(None, description="Project description")
    department_id: Optional[str] = Field(None, description="Department the project belongs to")


class ProjectResponse(BaseModel):
    """Project response schema"""
    id: UUID
    name: str
    description: Optional[str]
    department_id: Optional[str]
    members: List[str] = Field(default_factory=list, description="Member user ids")
    version: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ProjectMember(BaseModel):
    """Member profile shown on the project page"""
    id: str
    name: str
    email: str
    total_points: int

    class Config:
        from_attributes = True


class ProjectDetailResponse(ProjectResponse):
    """Detailed project response with member profiles"""
    member_profiles: List[ProjectMember] = Field(default_factory=list)
    member_count: int = Field(default=0, description="Number of members")
    is_full: bool = Field(default=False, description="Project reached its member limit")


class ProjectListResponse(BaseModel):
    """List of projects response"""
    projects: List[ProjectResponse]
    total: int = Field(..., description="Total number of projects")


class ReviewCreate(BaseModel):
    """Review creation schema"""
    comment: str = Field(..., min_length=1, max_length=5000, description="Review text")


class ReviewResponse(BaseModel):
    """Review response schema"""
    id: UUID
    project_id: UUID
    user_id: str
    user_name: str
    comment: str
    created_at: datetime

    class Config:
        from_attributes = True
