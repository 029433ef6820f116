from sqlalchemy import Column, String, Text, DateTime, JSON, Enum as SQLEnum
from guardforce.db.base import BaseModel, utcnow
from guardforce.models.shared.enums import ApprovalRequestType, ApprovalStatus, ApprovalPriority

class ApprovalRequest(BaseModel):
    __tablename__ = 'approval_requests'

    request_type = Column(SQLEnum(ApprovalRequestType), nullable=False, index=True)
    entity_type = Column(String(50), nullable=False)
    entity_id = Column(String(36), nullable=True)
    entity_data = Column(JSON, nullable=False)  # Snapshot applied on approval
    title = Column(String(255), nullable=False)
    description = Column(Text)
    reason = Column(Text)
    priority = Column(SQLEnum(ApprovalPriority), nullable=False, default=ApprovalPriority.NORMAL)
    status = Column(SQLEnum(ApprovalStatus), nullable=False, default=ApprovalStatus.PENDING, index=True)

    requested_by = Column(String(36), nullable=False)
    requested_by_name = Column(String(150))
    requested_by_role = Column(String(50))
    requested_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    approved_by = Column(String(36))
    approved_by_name = Column(String(150))
    decided_at = Column(DateTime(timezone=True))
    rejection_reason = Column(Text)

    cancelled_by = Column(String(36))
    cancelled_at = Column(DateTime(timezone=True))

    reference_id = Column(String(36))  # Record written on approval
