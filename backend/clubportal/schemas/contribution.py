"""Contribution schemas"""

from typing import List, Optional
from pydantic import BaseModel, Field
from datetime import datetime
from uuid import UUID

from clubportal.models.contribution import ContributionStatus


class ImagePayload(BaseModel):
    """Inline image sent as a base64 data URL"""
    filename: str = Field(..., min_length=1, max_length=255, description="Original file name")
    data_url: str = Field(..., alias="dataUrl", description="data:<mime>;base64,<payload>")

    class Config:
        populate_by_name = True


class ContributionCreate(BaseModel):
    """Contribution submission schema"""
    text: str = Field(..., max_length=10000, description="What was done")
    project_id: Optional[UUID] = Field(None, description="Project, or None for general work")
    image: Optional[ImagePayload] = Field(None, description="Optional evidence image")


class ContributionApprove(BaseModel):
    """Contribution approval schema"""
    points: int = Field(..., ge=0, description="Points to award")


class ContributionResponse(BaseModel):
    """Contribution response schema"""
    id: UUID
    user_id: str
    project_id: Optional[UUID]
    text: str
    image_url: Optional[str]
    status: ContributionStatus
    points_awarded: int
    verified_by: Optional[str]
    verified_at: Optional[datetime]
    version: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class StatusCounts(BaseModel):
    """Contribution counts per status"""
    pending: int = 0
    verified: int = 0
    rejected: int = 0
    total: int = 0


class ContributionListResponse(BaseModel):
    """List of contributions with per-status counts"""
    contributions: List[ContributionResponse]
    counts: StatusCounts
