from pydantic import BaseModel, ConfigDict, EmailStr, field_validator
from typing import List, Optional
from datetime import datetime

from guardforce.models.shared.enums import ClientType, ClientStatus, BranchStatus


# region ========== Branches ==========

class BranchData(BaseModel):
    branch_name: str
    branch_code: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    contact_person: Optional[str] = None
    contact_phone: Optional[str] = None
    required_guards: int = 1

    @field_validator('branch_name')
    @classmethod
    def validate_branch_name(cls, v):
        if not v or not v.strip():
            raise ValueError('Branch name is required')
        return v.strip()

    @field_validator('required_guards')
    @classmethod
    def validate_required_guards(cls, v):
        if v < 0:
            raise ValueError('Required guards cannot be negative')
        return v


class BranchCreate(BranchData):
    client_id: str


class BranchUpdate(BaseModel):
    branch_name: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    contact_person: Optional[str] = None
    contact_phone: Optional[str] = None
    required_guards: Optional[int] = None
    status: Optional[BranchStatus] = None


class BranchResponse(BaseModel):
    id: str
    org_id: str
    client_id: str
    branch_code: str
    branch_name: str
    address: Optional[str] = None
    city: Optional[str] = None
    contact_person: Optional[str] = None
    contact_phone: Optional[str] = None
    required_guards: int
    current_guards: int
    status: BranchStatus
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

# endregion

# region ========== Clients ==========

class ClientBase(BaseModel):
    client_name: str
    client_type: ClientType = ClientType.CORPORATE
    contact_person: Optional[str] = None
    contact_email: Optional[EmailStr] = None
    contact_phone: Optional[str] = None
    billing_address: Optional[str] = None
    city: Optional[str] = None
    ntn_number: Optional[str] = None
    notes: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class ClientCreate(ClientBase):
    status: ClientStatus = ClientStatus.ACTIVE
    branch_data: Optional[BranchData] = None

    @field_validator('client_name')
    @classmethod
    def validate_client_name(cls, v):
        if not v or len(v.strip()) < 2:
            raise ValueError('Client name must be at least 2 characters')
        return v.strip()


class ClientUpdate(BaseModel):
    client_name: Optional[str] = None
    client_type: Optional[ClientType] = None
    contact_person: Optional[str] = None
    contact_email: Optional[EmailStr] = None
    contact_phone: Optional[str] = None
    billing_address: Optional[str] = None
    city: Optional[str] = None
    ntn_number: Optional[str] = None
    status: Optional[ClientStatus] = None
    notes: Optional[str] = None


class ClientResponse(ClientBase):
    id: str
    org_id: str
    client_code: str
    contact_email: Optional[str] = None
    status: ClientStatus
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ClientDetailResponse(ClientResponse):
    branches: List[BranchResponse] = []

# endregion
