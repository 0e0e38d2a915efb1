"""API schemas package"""

from .auth import (
    GoogleSignInRequest,
    LoginRequest,
    UserInfo,
    UserResponse,
    TokenResponse,
    RefreshTokenResponse,
    RoleUpdate,
)
from .department import (
    DepartmentResponse,
    DepartmentListResponse,
    DepartmentSelection,
    DepartmentUpsert,
)
from .project import (
    ProjectCreate,
    ProjectResponse,
    ProjectDetailResponse,
    ProjectListResponse,
    ProjectMember,
    ReviewCreate,
    ReviewResponse,
)
from .contribution import (
    ImagePayload,
    ContributionCreate,
    ContributionApprove,
    ContributionResponse,
    ContributionListResponse,
    StatusCounts,
)
from .join_request import JoinRequestResponse, JoinRequestListResponse, WithdrawResponse
from .leaderboard import LeaderboardEntry, LeaderboardResponse, UserSummary
from .upload import UploadRequest, UploadResponse, UploadError

__all__ = [
    "GoogleSignInRequest",
    "LoginRequest",
    "UserInfo",
    "UserResponse",
    "TokenResponse",
    "RefreshTokenResponse",
    "RoleUpdate",
    "DepartmentResponse",
    "DepartmentListResponse",
    "DepartmentSelection",
    "DepartmentUpsert",
    "ProjectCreate",
    "ProjectResponse",
    "ProjectDetailResponse",
    "ProjectListResponse",
    "ProjectMember",
    "ReviewCreate",
    "ReviewResponse",
    "ImagePayload",
    "ContributionCreate",
    "ContributionApprove",
    "ContributionResponse",
    "ContributionListResponse",
    "StatusCounts",
    "JoinRequestResponse",
    "JoinRequestListResponse",
    "WithdrawResponse",
    "LeaderboardEntry",
    "LeaderboardResponse",
    "UserSummary",
    "UploadRequest",
    "UploadResponse",
    "UploadError",
]
