"""Join request schemas"""

from typing import List, Optional
from pydantic import BaseModel, Field
from datetime import datetime
from uuid import UUID

from clubportal.models.join_request import JoinRequestStatus


class JoinRequestResponse(BaseModel):
    """Join request response schema"""
    id: UUID
    user_id: str
    project_id: UUID
    status: JoinRequestStatus
    requested_at: datetime
    decided_by: Optional[str]
    decided_at: Optional[datetime]

    class Config:
        from_attributes = True


class JoinRequestListResponse(BaseModel):
    """List of join requests response"""
    requests: List[JoinRequestResponse]
    total: int = Field(..., description="Total number of requests")


class WithdrawResponse(BaseModel):
    """Result of withdrawing pending requests"""
    project_id: UUID
    withdrawn: int = Field(..., description="Number of pending requests removed")
