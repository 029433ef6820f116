from pydantic import BaseModel, ConfigDict, field_validator, model_validator
from typing import Dict, List, Optional
from datetime import date, datetime
from decimal import Decimal

from guardforce.models.shared.enums import PayrollCycleStatus, PayrollPaymentStatus

MAX_CYCLE_DAYS = 62


class PayrollCycleCreate(BaseModel):
    cycle_name: str
    start_date: date
    end_date: date
    payment_date: Optional[date] = None

    @field_validator('cycle_name')
    @classmethod
    def validate_cycle_name(cls, v):
        v = v.strip()
        if not v:
            raise ValueError('Cycle name is required')
        return v

    @model_validator(mode='after')
    def validate_period(self):
        if self.end_date < self.start_date:
            raise ValueError('End date cannot be before start date')
        if (self.end_date - self.start_date).days + 1 > MAX_CYCLE_DAYS:
            raise ValueError(f'A payroll cycle cannot span more than {MAX_CYCLE_DAYS} days')
        if self.payment_date and self.payment_date < self.end_date:
            raise ValueError('Payment date cannot be before the end of the cycle')
        return self


class PayrollCalculate(BaseModel):
    """Limit the run to these guards; all payable guards when omitted"""
    guard_ids: Optional[List[str]] = None


class PayrollItemResponse(BaseModel):
    id: str
    guard_id: str
    basic_salary: Decimal
    allowances: Decimal
    overtime_amount: Decimal
    gross_salary: Decimal
    deductions: Optional[Dict[str, Decimal]] = None
    loan_deduction: Decimal
    advance_deduction: Decimal
    total_deductions: Decimal
    net_salary: Decimal
    days_worked: int
    days_absent: int
    overtime_hours: Decimal
    payment_method: Optional[str] = None
    payment_status: PayrollPaymentStatus
    paid_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class PayrollCycleSummaryResponse(BaseModel):
    id: str
    org_id: str
    cycle_name: str
    start_date: date
    end_date: date
    payment_date: Optional[date] = None
    status: PayrollCycleStatus
    total_employees: int
    total_gross: Decimal
    total_deductions: Decimal
    total_net: Decimal
    calculated_at: Optional[datetime] = None
    calculated_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    approved_by: Optional[str] = None
    paid_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class PayrollCycleResponse(PayrollCycleSummaryResponse):
    items: List[PayrollItemResponse] = []
