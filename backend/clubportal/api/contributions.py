"""Contribution endpoints"""

from typing import List, Optional
from uuid import UUID
from fastapi import APIRouter, Depends, Query, status

from clubportal.api.dependencies import (
    get_contribution_workflow,
    get_current_user,
    require_admin,
)
from clubportal.models import ContributionStatus, User
from clubportal.schemas.contribution import (
    ContributionApprove,
    ContributionCreate,
    ContributionListResponse,
    ContributionResponse,
    StatusCounts,
)
from clubportal.services.contribution_service import ContributionWorkflow

router = APIRouter(prefix="/api/v1/contributions", tags=["Contributions"])


@router.post("", response_model=ContributionResponse, status_code=status.HTTP_201_CREATED)
async def submit_contribution(
    body: ContributionCreate,
    current_user: User = Depends(get_current_user),
    workflow: ContributionWorkflow = Depends(get_contribution_workflow),
):
    """
    Submit work for review

    An attached image is resized to at most 1024px and re-encoded as JPEG
    before it is stored. The response is only sent once the record is
    committed.
    """
    return await workflow.submit(
        current_user.id, body.text, project_id=body.project_id, image=body.image
    )


@router.get("", response_model=ContributionListResponse)
async def list_my_contributions(
    contribution_status: Optional[ContributionStatus] = Query(
        None, alias="status", description="Filter by status"
    ),
    project_id: Optional[UUID] = Query(None, description="Filter by project"),
    current_user: User = Depends(get_current_user),
    workflow: ContributionWorkflow = Depends(get_contribution_workflow),
):
    """The caller's contributions, newest first, with counts per status"""
    contributions, counts = await workflow.list_contributions(
        current_user.id, status=contribution_status, project_id=project_id
    )
    return ContributionListResponse(
        contributions=[ContributionResponse.model_validate(c) for c in contributions],
        counts=StatusCounts(**counts),
    )


@router.get("/pending", response_model=List[ContributionResponse])
async def list_pending(
    limit: int = Query(100, ge=1, le=500),
    current_user: User = Depends(require_admin),
    workflow: ContributionWorkflow = Depends(get_contribution_workflow),
):
    """Review queue (admin only)"""
    return await workflow.list_pending(limit=limit)


@router.post("/{contribution_id}/approve", response_model=ContributionResponse)
async def approve_contribution(
    contribution_id: UUID,
    body: ContributionApprove,
    current_user: User = Depends(require_admin),
    workflow: ContributionWorkflow = Depends(get_contribution_workflow),
):
    """Verify a pending contribution and award points (admin only)"""
    return await workflow.approve(current_user.id, contribution_id, body.points)


@router.post("/{contribution_id}/reject", response_model=ContributionResponse)
async def reject_contribution(
    contribution_id: UUID,
    current_user: User = Depends(require_admin),
    workflow: ContributionWorkflow = Depends(get_contribution_workflow),
):
    """Reject a pending contribution (admin only)"""
    return await workflow.reject(current_user.id, contribution_id)
