import uuid
from datetime import datetime, timezone
from sqlalchemy import Column, DateTime, Boolean, String
from guardforce.models.base import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_uuid() -> str:
    return str(uuid.uuid4())


class BaseModel(Base):
    """Base model with common fields"""
    __abstract__ = True

    id = Column(String(36), primary_key=True, default=generate_uuid)
    org_id = Column(String(36), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), onupdate=utcnow)
    is_deleted = Column(Boolean, default=False)
    created_by = Column(String(36), nullable=True)
    updated_by = Column(String(36), nullable=True)
