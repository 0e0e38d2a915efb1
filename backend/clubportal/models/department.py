"""Department model"""

from sqlalchemy import Column, String, Integer
from clubportal.models.base import VersionedModel


class Department(VersionedModel):
    """
    Capacity-limited club department.

    ``filled_count`` is a denormalized counter of users holding this
    department. It is incremented and decremented inside membership
    transactions only and never recomputed from a scan.
    """

    __tablename__ = "departments"

    id = Column(String(64), primary_key=True, nullable=False)  # slug, e.g. "technical"
    name = Column(String(255), nullable=False)
    capacity = Column(Integer, nullable=False, default=0)  # 0 = unlimited
    filled_count = Column(Integer, nullable=False, default=0)

    @property
    def is_full(self) -> bool:
        return self.capacity > 0 and self.filled_count >= self.capacity

    def __repr__(self):
        return f"<Department(id={self.id}, filled={self.filled_count}/{self.capacity})>"
