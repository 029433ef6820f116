from pydantic import BaseModel, ConfigDict, field_validator, model_validator
from typing import Dict, List, Optional
from datetime import date, datetime
from decimal import Decimal

from guardforce.models.shared.enums import AttendanceStatus
from guardforce.utils.date_time_serializer import as_utc

MAX_LEAVE_DAYS = 31


class AttendanceCreate(BaseModel):
    guard_id: str
    attendance_date: date
    status: AttendanceStatus = AttendanceStatus.PRESENT
    branch_id: Optional[str] = None
    deployment_id: Optional[str] = None
    check_in_time: Optional[datetime] = None
    check_out_time: Optional[datetime] = None
    remarks: Optional[str] = None

    @model_validator(mode='after')
    def validate_times(self):
        if self.check_in_time and self.check_out_time and as_utc(self.check_out_time) <= as_utc(self.check_in_time):
            raise ValueError('Check-out time must be after check-in time')
        return self


class BulkAttendanceEntry(BaseModel):
    guard_id: str
    status: AttendanceStatus
    branch_id: Optional[str] = None
    deployment_id: Optional[str] = None
    check_in_time: Optional[datetime] = None
    remarks: Optional[str] = None


class BulkAttendanceCreate(BaseModel):
    attendance_date: date
    records: List[BulkAttendanceEntry]

    @field_validator('records')
    @classmethod
    def validate_records(cls, v):
        if not v:
            raise ValueError('At least one attendance record is required')
        guard_ids = [r.guard_id for r in v]
        if len(guard_ids) != len(set(guard_ids)):
            raise ValueError('Each guard can only appear once per date')
        return v


class AttendanceUpdate(BaseModel):
    status: Optional[AttendanceStatus] = None
    check_in_time: Optional[datetime] = None
    check_out_time: Optional[datetime] = None
    remarks: Optional[str] = None


class AttendanceVerify(BaseModel):
    remarks: Optional[str] = None


class LeaveRequestCreate(BaseModel):
    guard_id: str
    from_date: date
    to_date: date
    branch_id: Optional[str] = None
    remarks: Optional[str] = None

    @model_validator(mode='after')
    def validate_range(self):
        if self.to_date < self.from_date:
            raise ValueError('Leave end date cannot be before start date')
        if (self.to_date - self.from_date).days + 1 > MAX_LEAVE_DAYS:
            raise ValueError(f'Leave cannot exceed {MAX_LEAVE_DAYS} days in one request')
        return self


class AttendanceResponse(BaseModel):
    id: str
    org_id: str
    guard_id: str
    deployment_id: Optional[str] = None
    branch_id: Optional[str] = None
    attendance_date: date
    status: AttendanceStatus
    check_in_time: Optional[datetime] = None
    check_out_time: Optional[datetime] = None
    work_hours: Optional[Decimal] = None
    overtime_hours: Optional[Decimal] = None
    verified: bool
    verified_by: Optional[str] = None
    verified_at: Optional[datetime] = None
    remarks: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class BulkAttendanceResult(BaseModel):
    created: int
    updated: int
    message: str


class AttendanceStatsResponse(BaseModel):
    total_records: int
    by_status: Dict[str, int]
    total_work_hours: float
    total_overtime_hours: float
    attendance_rate: float


class BranchAttendanceSummary(BaseModel):
    branch_id: str
    total: int
    by_status: Dict[str, int]
