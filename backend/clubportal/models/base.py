"""Base models with common fields for all database models"""

import uuid
from datetime import datetime
from sqlalchemy import Column, DateTime, Integer, Uuid
from sqlalchemy.orm import declared_attr
from clubportal.database import Base


class BaseModel(Base):
    """Abstract base model with a UUID key and timestamps"""

    __abstract__ = True

    id = Column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        nullable=False,
    )
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )

    def __repr__(self):
        return f"<{self.__class__.__name__}(id={self.id})>"


class VersionedModel(BaseModel):
    """
    Abstract base for rows written under optimistic concurrency.

    Every UPDATE is issued as ``... WHERE id = :id AND version = :read``
    and bumps ``version``. A row changed by someone else since it was read
    makes the flush raise ``StaleDataError``, which the transaction runner
    treats as a conflict and retries.
    """

    __abstract__ = True

    version = Column(Integer, nullable=False, default=1)

    @declared_attr
    def __mapper_args__(cls):
        return {"version_id_col": cls.version}
