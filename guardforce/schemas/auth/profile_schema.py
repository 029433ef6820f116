from pydantic import BaseModel, ConfigDict, EmailStr, field_validator
from typing import List, Optional
from datetime import datetime

from guardforce.models.shared.enums import UserRole, Module


class AuthContext(BaseModel):
    """Caller identity resolved for a single request"""
    user_id: str
    role: UserRole
    org_id: str
    full_name: Optional[str] = None

    model_config = ConfigDict(frozen=True)


class ProfileResponse(BaseModel):
    id: str
    org_id: str
    full_name: str
    email: str
    role: UserRole
    regional_office_id: Optional[str] = None
    phone: Optional[str] = None
    is_active: bool
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class PermissionsResponse(BaseModel):
    role: UserRole
    modules: List[Module]
    permissions: List[str]
    default_route: str


class CurrentUserResponse(BaseModel):
    profile: ProfileResponse
    access: PermissionsResponse


class ProfileCreate(BaseModel):
    """Profile for a user already registered with the identity provider"""
    id: Optional[str] = None
    full_name: str
    email: EmailStr
    role: UserRole
    phone: Optional[str] = None
    regional_office_id: Optional[str] = None

    @field_validator('full_name')
    @classmethod
    def validate_full_name(cls, v):
        v = v.strip()
        if not v:
            raise ValueError('Full name is required')
        return v


class ProfileUpdate(BaseModel):
    full_name: Optional[str] = None
    role: Optional[UserRole] = None
    phone: Optional[str] = None
    regional_office_id: Optional[str] = None
    is_active: Optional[bool] = None


class ProfileStatusUpdate(BaseModel):
    is_active: bool
