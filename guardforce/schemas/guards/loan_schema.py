from pydantic import BaseModel, ConfigDict, field_validator
from typing import Optional
from datetime import datetime
from decimal import Decimal

from guardforce.models.shared.enums import LoanType, LoanStatus


class LoanCreate(BaseModel):
    guard_id: str
    loan_type: LoanType = LoanType.ADVANCE
    amount: Decimal
    installment_count: int = 1
    reason: Optional[str] = None

    @field_validator('amount')
    @classmethod
    def validate_amount(cls, v):
        if v <= 0:
            raise ValueError('Loan amount must be greater than zero')
        return v

    @field_validator('installment_count')
    @classmethod
    def validate_installments(cls, v):
        if v < 1:
            raise ValueError('Installment count must be at least 1')
        return v


class LoanRepayment(BaseModel):
    amount: Decimal

    @field_validator('amount')
    @classmethod
    def validate_amount(cls, v):
        if v <= 0:
            raise ValueError('Repayment amount must be greater than zero')
        return v


class LoanResponse(BaseModel):
    id: str
    org_id: str
    guard_id: str
    loan_type: LoanType
    amount: Decimal
    remaining_amount: Decimal
    installment_count: Optional[int] = None
    installment_amount: Optional[Decimal] = None
    status: LoanStatus
    reason: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
