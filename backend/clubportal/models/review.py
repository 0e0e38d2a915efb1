"""Review model"""

from sqlalchemy import Column, String, Text, ForeignKey, Uuid
from clubportal.models.base import BaseModel


class Review(BaseModel):
    """Append-only project review written by a project member"""

    __tablename__ = "reviews"

    project_id = Column(
        Uuid(as_uuid=True), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id = Column(
        String(128), ForeignKey("users.id"), nullable=False, index=True
    )
    user_name = Column(String(255), nullable=False, default="Anonymous")
    comment = Column(Text, nullable=False)

    def __repr__(self):
        return f"<Review(id={self.id}, project_id={self.project_id})>"
