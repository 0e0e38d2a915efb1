"""User administration, summaries and leaderboard endpoints"""

from typing import List, Optional
from fastapi import APIRouter, Depends, Query, status

from clubportal.api.dependencies import (
    get_current_user,
    get_directory_service,
    get_membership_ledger,
    get_scoring_service,
    require_admin,
    require_superadmin,
)
from clubportal.exceptions import Forbidden
from clubportal.models import User
from clubportal.schemas.auth import RoleUpdate, UserInfo, UserResponse
from clubportal.schemas.department import DepartmentSelection
from clubportal.schemas.leaderboard import LeaderboardResponse, UserSummary
from clubportal.services.directory_service import DirectoryService
from clubportal.services.membership_ledger import MembershipLedger
from clubportal.services.scoring_service import ScoringService

router = APIRouter(prefix="/api/v1", tags=["Users"])


@router.get("/leaderboard", response_model=LeaderboardResponse)
async def get_leaderboard(
    limit: int = Query(100, ge=1, le=1000, description="Maximum number of entries"),
    current_user: User = Depends(get_current_user),
    scoring: ScoringService = Depends(get_scoring_service),
):
    """Participants ranked by points; admins are never listed"""
    entries = await scoring.get_leaderboard(limit=limit)
    return LeaderboardResponse(entries=entries, total=len(entries))


@router.get("/users", response_model=List[UserResponse])
async def list_users(
    role: Optional[str] = Query(None, description="Filter by role"),
    current_user: User = Depends(require_admin),
    directory: DirectoryService = Depends(get_directory_service),
):
    """List users (admin only)"""
    return await directory.list_users(role=role)


@router.get("/users/{user_id}/summary", response_model=UserSummary)
async def get_user_summary(
    user_id: str,
    current_user: User = Depends(get_current_user),
    scoring: ScoringService = Depends(get_scoring_service),
):
    """Points, contribution counts and rank (self or admin)"""
    if user_id != current_user.id and not current_user.is_admin:
        raise Forbidden("You can only view your own summary")
    return await scoring.get_user_summary(user_id)


@router.put("/users/{user_id}/departments", response_model=UserInfo)
async def reassign_departments(
    user_id: str,
    selection: DepartmentSelection,
    current_user: User = Depends(require_admin),
    ledger: MembershipLedger = Depends(get_membership_ledger),
):
    """Replace a user's departments, ignoring lock-in (admin only)"""
    return await ledger.admin_reassign_departments(
        current_user.id, user_id, selection.department_ids
    )


@router.delete("/users/{user_id}/departments", response_model=UserInfo, status_code=status.HTTP_200_OK)
async def reset_departments(
    user_id: str,
    current_user: User = Depends(require_admin),
    ledger: MembershipLedger = Depends(get_membership_ledger),
):
    """Release all of a user's departments so they can select again (admin only)"""
    return await ledger.reset_departments(current_user.id, user_id)


@router.patch("/users/{user_id}/role", response_model=UserInfo)
async def set_role(
    user_id: str,
    body: RoleUpdate,
    current_user: User = Depends(require_superadmin),
    directory: DirectoryService = Depends(get_directory_service),
):
    """Change a user's role (superadmin only)"""
    return await directory.set_role(current_user.id, user_id, body.role)
