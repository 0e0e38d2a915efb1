"""Leaderboard and scoring schemas"""

from typing import List, Optional
from pydantic import BaseModel, Field


class LeaderboardEntry(BaseModel):
    """One ranked participant"""
    rank: int = Field(..., description="1-based position")
    user_id: str
    name: str
    total_points: int
    departments: List[str] = Field(default_factory=list)


class LeaderboardResponse(BaseModel):
    """Leaderboard response schema"""
    entries: List[LeaderboardEntry]
    total: int = Field(..., description="Number of ranked participants returned")


class UserSummary(BaseModel):
    """Per-user scoring summary"""
    user_id: str
    name: str
    total_points: int
    contribution_count: int
    pending_count: int
    verified_count: int
    rejected_count: int
    verified_points: int = Field(..., description="Sum of points on verified contributions")
    rank: Optional[int] = Field(None, description="Leaderboard rank, None for admins")
