"""Project, team membership, review and join-request endpoints"""

from typing import List, Optional
from uuid import UUID
from fastapi import APIRouter, Depends, Query, status

from clubportal.api.dependencies import (
    get_current_user,
    get_directory_service,
    get_join_request_broker,
    get_membership_ledger,
    get_review_service,
    require_admin,
)
from clubportal.config import settings
from clubportal.models import JoinRequestStatus, User
from clubportal.schemas.join_request import (
    JoinRequestListResponse,
    JoinRequestResponse,
    WithdrawResponse,
)
from clubportal.schemas.project import (
    ProjectCreate,
    ProjectDetailResponse,
    ProjectListResponse,
    ProjectMember,
    ProjectResponse,
    ReviewCreate,
    ReviewResponse,
)
from clubportal.services.directory_service import DirectoryService
from clubportal.services.join_request_service import JoinRequestBroker
from clubportal.services.membership_ledger import MembershipLedger
from clubportal.services.review_service import ReviewService

router = APIRouter(prefix="/api/v1/projects", tags=["Projects"])
join_requests_router = APIRouter(prefix="/api/v1/join-requests", tags=["Join Requests"])


# Projects

@router.get("", response_model=ProjectListResponse)
async def list_projects(
    department_id: Optional[str] = Query(None, description="Filter by department"),
    current_user: User = Depends(get_current_user),
    directory: DirectoryService = Depends(get_directory_service),
):
    """List projects"""
    projects = await directory.list_projects(department_id=department_id)
    return ProjectListResponse(
        projects=[ProjectResponse.model_validate(p) for p in projects],
        total=len(projects),
    )


@router.post("", response_model=ProjectResponse, status_code=status.HTTP_201_CREATED)
async def create_project(
    body: ProjectCreate,
    current_user: User = Depends(require_admin),
    directory: DirectoryService = Depends(get_directory_service),
):
    """Create a project (admin only)"""
    return await directory.create_project(
        current_user.id, body.name, body.description, body.department_id
    )


@router.get("/{project_id}", response_model=ProjectDetailResponse)
async def get_project(
    project_id: UUID,
    current_user: User = Depends(get_current_user),
    directory: DirectoryService = Depends(get_directory_service),
):
    """Project details with member profiles"""
    project, members = await directory.get_project(project_id)
    response = ProjectDetailResponse.model_validate(project)
    response.member_profiles = [ProjectMember.model_validate(m) for m in members]
    response.member_count = len(project.members or [])
    response.is_full = response.member_count >= settings.project_max_members
    return response


@router.post("/{project_id}/join", response_model=ProjectResponse)
async def join_project(
    project_id: UUID,
    current_user: User = Depends(get_current_user),
    ledger: MembershipLedger = Depends(get_membership_ledger),
):
    """Join a project team"""
    return await ledger.join_project(current_user.id, project_id)


@router.post("/{project_id}/leave", response_model=ProjectResponse)
async def leave_project(
    project_id: UUID,
    current_user: User = Depends(get_current_user),
    ledger: MembershipLedger = Depends(get_membership_ledger),
):
    """Leave a project team"""
    return await ledger.leave_project(current_user.id, project_id)


# Reviews

@router.get("/{project_id}/reviews", response_model=List[ReviewResponse])
async def list_reviews(
    project_id: UUID,
    current_user: User = Depends(get_current_user),
    reviews: ReviewService = Depends(get_review_service),
):
    """Reviews for a project, newest first"""
    return await reviews.list_reviews(project_id)


@router.post(
    "/{project_id}/reviews",
    response_model=ReviewResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_review(
    project_id: UUID,
    body: ReviewCreate,
    current_user: User = Depends(get_current_user),
    reviews: ReviewService = Depends(get_review_service),
):
    """Write a review (project members only)"""
    return await reviews.add_review(current_user.id, project_id, body.comment)


# Join requests

@router.post(
    "/{project_id}/join-requests",
    response_model=JoinRequestResponse,
    status_code=status.HTTP_201_CREATED,
)
async def request_to_join(
    project_id: UUID,
    current_user: User = Depends(get_current_user),
    broker: JoinRequestBroker = Depends(get_join_request_broker),
):
    """Ask to join a project"""
    return await broker.request_to_join(current_user.id, project_id)


@router.delete("/{project_id}/join-requests", response_model=WithdrawResponse)
async def withdraw_request(
    project_id: UUID,
    current_user: User = Depends(get_current_user),
    broker: JoinRequestBroker = Depends(get_join_request_broker),
):
    """Withdraw the caller's pending request"""
    withdrawn = await broker.withdraw_request(current_user.id, project_id)
    return WithdrawResponse(project_id=project_id, withdrawn=withdrawn)


@join_requests_router.get("", response_model=JoinRequestListResponse)
async def list_join_requests(
    project_id: Optional[UUID] = Query(None, description="Filter by project"),
    request_status: Optional[JoinRequestStatus] = Query(
        JoinRequestStatus.PENDING, alias="status", description="Filter by status"
    ),
    current_user: User = Depends(require_admin),
    broker: JoinRequestBroker = Depends(get_join_request_broker),
):
    """List join requests (admin only)"""
    requests = await broker.list_requests(project_id=project_id, status=request_status)
    return JoinRequestListResponse(
        requests=[JoinRequestResponse.model_validate(r) for r in requests],
        total=len(requests),
    )


@join_requests_router.post("/{request_id}/approve", response_model=JoinRequestResponse)
async def approve_join_request(
    request_id: UUID,
    current_user: User = Depends(require_admin),
    broker: JoinRequestBroker = Depends(get_join_request_broker),
):
    """Approve a request and add the user to the project (admin only)"""
    return await broker.approve(current_user.id, request_id)


@join_requests_router.post("/{request_id}/reject", response_model=JoinRequestResponse)
async def reject_join_request(
    request_id: UUID,
    current_user: User = Depends(require_admin),
    broker: JoinRequestBroker = Depends(get_join_request_broker),
):
    """Reject a request (admin only)"""
    return await broker.reject(current_user.id, request_id)
