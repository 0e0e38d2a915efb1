"""Contribution model"""

import enum
from sqlalchemy import Column, String, Text, Integer, ForeignKey, DateTime, Enum, Uuid
from clubportal.models.base import VersionedModel


class ContributionStatus(str, enum.Enum):
    """Review status; verified and rejected are terminal"""
    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"


class Contribution(VersionedModel):
    """
    Work record submitted by a member and reviewed by an admin.
    Leaves ``pending`` at most once.
    """

    __tablename__ = "contributions"

    user_id = Column(
        String(128), ForeignKey("users.id"), nullable=False, index=True
    )
    project_id = Column(
        Uuid(as_uuid=True), ForeignKey("projects.id", ondelete="SET NULL"), nullable=True, index=True
    )
    text = Column(Text, nullable=False)
    image_url = Column(Text, nullable=True)
    image_key = Column(String(500), nullable=True)
    status = Column(
        Enum(
            ContributionStatus,
            name="contribution_status",
            values_callable=lambda statuses: [s.value for s in statuses],
        ),
        nullable=False,
        default=ContributionStatus.PENDING,
        index=True,
    )
    points_awarded = Column(Integer, nullable=False, default=0)
    verified_by = Column(String(128), nullable=True)
    verified_at = Column(DateTime, nullable=True)

    def __repr__(self):
        return f"<Contribution(id={self.id}, status={self.status})>"
