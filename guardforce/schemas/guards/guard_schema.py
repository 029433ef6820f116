import re
from pydantic import BaseModel, ConfigDict, EmailStr, field_validator
from typing import Any, Dict, Optional
from datetime import date, datetime
from decimal import Decimal

from guardforce.models.shared.enums import GuardStatus, Gender

CNIC_PATTERN = re.compile(r'^\d{5}-?\d{7}-?\d$')


def normalize_cnic(value: str) -> str:
    digits = re.sub(r'\D', '', value or '')
    if not CNIC_PATTERN.match(value.strip()) or len(digits) != 13:
        raise ValueError('CNIC must be 13 digits (e.g. 35202-1234567-1)')
    return f"{digits[:5]}-{digits[5:12]}-{digits[12]}"


class GuardBase(BaseModel):
    first_name: str
    last_name: str
    father_name: Optional[str] = None
    cnic: str
    date_of_birth: Optional[date] = None
    gender: Gender = Gender.MALE
    phone: str
    email: Optional[EmailStr] = None
    permanent_address: Optional[str] = None
    current_address: Optional[str] = None
    designation: Optional[str] = "Security Guard"
    basic_salary: Optional[Decimal] = None
    allowances: Optional[Dict[str, Any]] = None
    employment_start_date: Optional[date] = None

    model_config = ConfigDict(from_attributes=True)


class GuardCreate(GuardBase):
    @field_validator('first_name', 'last_name')
    @classmethod
    def validate_names(cls, v):
        if not v or len(v.strip()) < 2:
            raise ValueError('Name must be at least 2 characters')
        return v.strip().title()

    @field_validator('cnic')
    @classmethod
    def validate_cnic(cls, v):
        return normalize_cnic(v)

    @field_validator('phone')
    @classmethod
    def validate_phone(cls, v):
        if not v or len(re.sub(r'\D', '', v)) < 10:
            raise ValueError('Phone number must have at least 10 digits')
        return v.strip()

    @field_validator('date_of_birth')
    @classmethod
    def validate_date_of_birth(cls, v):
        if v and v >= date.today():
            raise ValueError('Date of birth must be in the past')
        return v

    @field_validator('basic_salary')
    @classmethod
    def validate_salary(cls, v):
        if v is not None and v < 0:
            raise ValueError('Basic salary cannot be negative')
        return v


class GuardUpdate(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    father_name: Optional[str] = None
    cnic: Optional[str] = None
    date_of_birth: Optional[date] = None
    gender: Optional[Gender] = None
    phone: Optional[str] = None
    email: Optional[EmailStr] = None
    permanent_address: Optional[str] = None
    current_address: Optional[str] = None
    designation: Optional[str] = None
    employment_start_date: Optional[date] = None

    @field_validator('cnic')
    @classmethod
    def validate_cnic(cls, v):
        return normalize_cnic(v) if v is not None else v


class GuardStatusUpdate(BaseModel):
    status: GuardStatus
    reason: Optional[str] = None


class GuardTermination(BaseModel):
    termination_reason: str
    employment_end_date: Optional[date] = None

    @field_validator('termination_reason')
    @classmethod
    def validate_reason(cls, v):
        if not v or not v.strip():
            raise ValueError('Termination reason is required')
        return v.strip()


class SalaryAdjustment(BaseModel):
    basic_salary: Decimal
    allowances: Optional[Dict[str, Any]] = None

    @field_validator('basic_salary')
    @classmethod
    def validate_salary(cls, v):
        if v <= 0:
            raise ValueError('Basic salary must be greater than zero')
        return v


class GuardResponse(GuardBase):
    id: str
    org_id: str
    guard_code: str
    email: Optional[str] = None
    status: GuardStatus
    employment_end_date: Optional[date] = None
    termination_reason: Optional[str] = None
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
