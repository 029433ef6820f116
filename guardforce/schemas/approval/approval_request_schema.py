from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Any, Dict, Generic, Optional, TypeVar
from datetime import datetime

from guardforce.models.shared.enums import ApprovalRequestType, ApprovalStatus, ApprovalPriority

T = TypeVar("T")


class ApprovalRequestCreate(BaseModel):
    request_type: ApprovalRequestType
    entity_id: Optional[str] = None
    entity_data: Dict[str, Any] = Field(default_factory=dict)
    title: str
    description: Optional[str] = None
    reason: Optional[str] = None
    priority: ApprovalPriority = ApprovalPriority.NORMAL

    @field_validator('title')
    @classmethod
    def validate_title(cls, v):
        if not v or not v.strip():
            raise ValueError('Title is required')
        return v.strip()


class ApprovalRejectRequest(BaseModel):
    rejection_reason: str


class ApprovalRequestFilters(BaseModel):
    status: Optional[ApprovalStatus] = None
    request_type: Optional[ApprovalRequestType] = None
    search: Optional[str] = None


class ApprovalRequestResponse(BaseModel):
    id: str
    org_id: str
    request_type: ApprovalRequestType
    entity_type: str
    entity_id: Optional[str] = None
    entity_data: Dict[str, Any]
    title: str
    description: Optional[str] = None
    reason: Optional[str] = None
    priority: ApprovalPriority
    status: ApprovalStatus
    requested_by: str
    requested_by_name: Optional[str] = None
    requested_by_role: Optional[str] = None
    requested_at: datetime
    approved_by: Optional[str] = None
    approved_by_name: Optional[str] = None
    decided_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    cancelled_by: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    reference_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class PendingCountResponse(BaseModel):
    pending: int


class GuardedWriteResponse(BaseModel, Generic[T]):
    """Either the written record (applied) or the approval request it was routed to"""
    applied: bool
    message: str
    record: Optional[T] = None
    approval_request: Optional[ApprovalRequestResponse] = None
