"""Join request model"""

import enum
from sqlalchemy import Column, String, ForeignKey, DateTime, Enum, Uuid
from clubportal.models.base import VersionedModel


class JoinRequestStatus(str, enum.Enum):
    """Join request lifecycle"""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


def pending_key_for(user_id: str, project_id) -> str:
    return f"{user_id}:{project_id}"


class JoinRequest(VersionedModel):
    """
    Request to join a project outside direct self-service joining.

    ``pending_key`` is set only while the request is pending. Its unique
    constraint allows a single pending request per (user, project) pair.
    Decisions are versioned so two admins cannot both decide one request.
    """

    __tablename__ = "join_requests"

    user_id = Column(
        String(128), ForeignKey("users.id"), nullable=False, index=True
    )
    project_id = Column(
        Uuid(as_uuid=True), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True
    )
    status = Column(
        Enum(
            JoinRequestStatus,
            name="join_request_status",
            values_callable=lambda statuses: [s.value for s in statuses],
        ),
        nullable=False,
        default=JoinRequestStatus.PENDING,
    )
    pending_key = Column(String(255), nullable=True, unique=True)
    decided_by = Column(String(128), nullable=True)
    decided_at = Column(DateTime, nullable=True)

    @property
    def requested_at(self):
        return self.created_at

    def __repr__(self):
        return f"<JoinRequest(id={self.id}, user_id={self.user_id}, status={self.status})>"
