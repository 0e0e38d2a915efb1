"""Project model"""

from sqlalchemy import Column, String, Text, ForeignKey, JSON
from sqlalchemy.dialects.postgresql import JSONB
from clubportal.models.base import VersionedModel


class Project(VersionedModel):
    """
    Project team of at most four members, optionally scoped to a department.
    ``members`` mirrors ``User.project_id``.
    """

    __tablename__ = "projects"

    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    department_id = Column(
        String(64), ForeignKey("departments.id", ondelete="SET NULL"), nullable=True, index=True
    )
    members = Column(
        JSON().with_variant(JSONB(), "postgresql"), nullable=False, default=list
    )

    def __repr__(self):
        return f"<Project(id={self.id}, name={self.name}, members={len(self.members or [])})>"
