from pydantic import BaseModel, ConfigDict, field_validator
from typing import Optional
from datetime import date, datetime
from decimal import Decimal

from guardforce.models.shared.enums import ExpenseCategory, ExpenseStatus


class ExpenseCreate(BaseModel):
    category: ExpenseCategory = ExpenseCategory.OTHER
    amount: Decimal
    expense_date: date
    branch_id: Optional[str] = None
    description: str
    receipt_reference: Optional[str] = None

    @field_validator('amount')
    @classmethod
    def validate_amount(cls, v):
        if v <= 0:
            raise ValueError('Expense amount must be greater than zero')
        return v

    @field_validator('description')
    @classmethod
    def validate_description(cls, v):
        if not v or not v.strip():
            raise ValueError('Description is required')
        return v.strip()


class ExpenseResponse(BaseModel):
    id: str
    org_id: str
    category: ExpenseCategory
    amount: Decimal
    expense_date: date
    branch_id: Optional[str] = None
    description: str
    receipt_reference: Optional[str] = None
    status: ExpenseStatus
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
