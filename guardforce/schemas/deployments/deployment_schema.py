from pydantic import BaseModel, ConfigDict, field_validator, model_validator
from typing import Dict, List, Optional
from datetime import date, datetime
from decimal import Decimal

from guardforce.models.shared.enums import ShiftType, DeploymentStatus


class DeploymentCreate(BaseModel):
    guard_id: str
    client_id: str
    branch_id: str
    deployment_date: date
    end_date: Optional[date] = None
    shift_type: ShiftType = ShiftType.DAY
    guard_rate: Optional[Decimal] = None
    client_rate: Optional[Decimal] = None
    notes: Optional[str] = None

    @model_validator(mode='after')
    def validate_dates(self):
        if self.end_date and self.end_date < self.deployment_date:
            raise ValueError('End date cannot be before deployment date')
        return self


class DeploymentUpdate(BaseModel):
    deployment_date: Optional[date] = None
    end_date: Optional[date] = None
    shift_type: Optional[ShiftType] = None
    guard_rate: Optional[Decimal] = None
    client_rate: Optional[Decimal] = None
    notes: Optional[str] = None


class DeploymentRevoke(BaseModel):
    end_reason: str
    end_date: Optional[date] = None

    @field_validator('end_reason')
    @classmethod
    def validate_reason(cls, v):
        if not v or not v.strip():
            raise ValueError('Revocation reason is required')
        return v.strip()


class GuardSwap(BaseModel):
    deployment_id: str
    new_guard_id: str
    swap_date: Optional[date] = None
    reason: str


class DeploymentResponse(BaseModel):
    id: str
    org_id: str
    guard_id: str
    client_id: str
    branch_id: str
    deployment_date: date
    end_date: Optional[date] = None
    shift_type: ShiftType
    status: DeploymentStatus
    guard_rate: Optional[Decimal] = None
    client_rate: Optional[Decimal] = None
    deployed_at: Optional[datetime] = None
    deployed_by: Optional[str] = None
    ended_at: Optional[datetime] = None
    end_reason: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class SwapResponse(BaseModel):
    revoked: DeploymentResponse
    created: DeploymentResponse


class MatrixBranch(BaseModel):
    branch_id: str
    branch_code: str
    branch_name: str
    client_id: str
    client_name: str
    required_guards: int
    active_guards: int


class MatrixGuardRow(BaseModel):
    guard_id: str
    guard_code: str
    guard_name: str
    status: str
    # branch_id -> deployment_id for the guard's active deployments
    deployments: Dict[str, str]


class DeploymentMatrixResponse(BaseModel):
    branches: List[MatrixBranch]
    guards: List[MatrixGuardRow]


class DeploymentStatsResponse(BaseModel):
    total: int
    by_status: Dict[str, int]
    by_shift: Dict[str, int]
    understaffed_branches: int
