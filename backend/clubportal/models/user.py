"""User model"""

import enum
from sqlalchemy import Column, String, Integer, ForeignKey, JSON, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from clubportal.models.base import VersionedModel


class UserRole(str, enum.Enum):
    """Portal roles"""
    MEMBER = "member"
    ADMIN = "admin"
    SUPERADMIN = "superadmin"


ADMIN_ROLES = (UserRole.ADMIN.value, UserRole.SUPERADMIN.value)


class User(VersionedModel):
    """
    Portal user, keyed by the identity provider's uid.

    ``departments`` and ``project_id`` are only ever changed by the
    membership ledger, ``total_points`` only by contribution approval.
    The ``version`` column makes concurrent writers conflict instead of
    overwriting each other.
    """

    __tablename__ = "users"

    id = Column(String(128), primary_key=True, nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=False, default="")
    role = Column(
        String(50), default=UserRole.MEMBER.value, nullable=False, index=True
    )  # member, admin, superadmin
    departments = Column(
        JSON().with_variant(JSONB(), "postgresql"), nullable=False, default=list
    )
    total_points = Column(Integer, nullable=False, default=0)
    project_id = Column(
        Uuid(as_uuid=True), ForeignKey("projects.id", ondelete="SET NULL"), nullable=True, index=True
    )
    password_hash = Column(String(255), nullable=True)  # admin password login only

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES

    def __repr__(self):
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"
