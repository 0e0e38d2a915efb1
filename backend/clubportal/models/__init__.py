"""Database models package"""

from clubportal.models.base import BaseModel, VersionedModel
from clubportal.models.user import User, UserRole, ADMIN_ROLES
from clubportal.models.department import Department
from clubportal.models.project import Project
from clubportal.models.contribution import Contribution, ContributionStatus
from clubportal.models.join_request import JoinRequest, JoinRequestStatus
from clubportal.models.review import Review

# Export all models
__all__ = [
    "BaseModel",
    "VersionedModel",
    "User",
    "UserRole",
    "ADMIN_ROLES",
    "Department",
    "Project",
    "Contribution",
    "ContributionStatus",
    "JoinRequest",
    "JoinRequestStatus",
    "Review",
]
