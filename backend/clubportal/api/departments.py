"""Department endpoints"""

from fastapi import APIRouter, Depends, status

from clubportal.api.dependencies import (
    get_current_user,
    get_directory_service,
    get_membership_ledger,
    require_superadmin,
)
from clubportal.models import User
from clubportal.schemas.auth import UserInfo
from clubportal.schemas.department import (
    DepartmentListResponse,
    DepartmentResponse,
    DepartmentSelection,
    DepartmentUpsert,
)
from clubportal.services.directory_service import DirectoryService
from clubportal.services.membership_ledger import MembershipLedger

router = APIRouter(prefix="/api/v1/departments", tags=["Departments"])


@router.get("", response_model=DepartmentListResponse)
async def list_departments(
    current_user: User = Depends(get_current_user),
    directory: DirectoryService = Depends(get_directory_service),
):
    """List departments with their seat counts"""
    departments = await directory.list_departments()
    return DepartmentListResponse(
        departments=[DepartmentResponse.model_validate(d) for d in departments],
        total=len(departments),
    )


@router.post("/select", response_model=UserInfo, status_code=status.HTTP_200_OK)
async def select_departments(
    selection: DepartmentSelection,
    current_user: User = Depends(get_current_user),
    ledger: MembershipLedger = Depends(get_membership_ledger),
):
    """
    Confirm the caller's departments

    Allowed once. Every selected department must have a free seat, or
    nothing is changed.
    """
    return await ledger.select_departments(current_user.id, selection.department_ids)


@router.put("/{department_id}", response_model=DepartmentResponse)
async def upsert_department(
    department_id: str,
    body: DepartmentUpsert,
    current_user: User = Depends(require_superadmin),
    directory: DirectoryService = Depends(get_directory_service),
):
    """Create a department or change its name and capacity (superadmin only)"""
    return await directory.upsert_department(
        current_user.id, department_id, body.name, body.capacity
    )
