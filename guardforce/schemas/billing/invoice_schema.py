from pydantic import BaseModel, ConfigDict, field_validator, model_validator
from typing import Dict, List, Optional
from datetime import date, datetime
from decimal import Decimal

from guardforce.models.shared.enums import InvoiceStatus


class InvoiceItemCreate(BaseModel):
    description: str
    quantity: Decimal = Decimal("1")
    unit_price: Decimal
    deployment_id: Optional[str] = None
    branch_id: Optional[str] = None

    @field_validator('quantity')
    @classmethod
    def validate_quantity(cls, v):
        if v <= 0:
            raise ValueError('Quantity must be greater than zero')
        return v

    @field_validator('unit_price')
    @classmethod
    def validate_unit_price(cls, v):
        if v < 0:
            raise ValueError('Unit price cannot be negative')
        return v


class InvoiceCreate(BaseModel):
    client_id: str
    invoice_date: date
    due_date: Optional[date] = None
    billing_period_start: Optional[date] = None
    billing_period_end: Optional[date] = None
    tax_amount: Decimal = Decimal("0")
    discount_amount: Decimal = Decimal("0")
    notes: Optional[str] = None
    items: List[InvoiceItemCreate]

    @field_validator('items')
    @classmethod
    def validate_items(cls, v):
        if not v:
            raise ValueError('Invoice must have at least one item')
        return v

    @model_validator(mode='after')
    def validate_dates(self):
        if self.due_date and self.due_date < self.invoice_date:
            raise ValueError('Due date cannot be before invoice date')
        return self


class InvoiceUpdate(BaseModel):
    due_date: Optional[date] = None
    status: Optional[InvoiceStatus] = None
    notes: Optional[str] = None


class PaymentCreate(BaseModel):
    amount: Decimal

    @field_validator('amount')
    @classmethod
    def validate_amount(cls, v):
        if v <= 0:
            raise ValueError('Payment amount must be greater than zero')
        return v


class InvoiceItemResponse(BaseModel):
    id: str
    description: str
    quantity: Decimal
    unit_price: Decimal
    amount: Decimal
    deployment_id: Optional[str] = None
    branch_id: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class InvoiceResponse(BaseModel):
    id: str
    org_id: str
    invoice_number: str
    client_id: str
    invoice_date: date
    due_date: date
    billing_period_start: Optional[date] = None
    billing_period_end: Optional[date] = None
    subtotal: Decimal
    tax_amount: Decimal
    discount_amount: Decimal
    total_amount: Decimal
    paid_amount: Decimal
    balance: Decimal
    status: InvoiceStatus
    notes: Optional[str] = None
    items: List[InvoiceItemResponse] = []
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class InvoiceSummaryResponse(BaseModel):
    """List view without items"""
    id: str
    invoice_number: str
    client_id: str
    invoice_date: date
    due_date: date
    total_amount: Decimal
    paid_amount: Decimal
    balance: Decimal
    status: InvoiceStatus

    model_config = ConfigDict(from_attributes=True)


class BillingStatsResponse(BaseModel):
    total_invoices: int
    total_billed: Decimal
    total_collected: Decimal
    outstanding_amount: Decimal
    overdue_amount: Decimal
    overdue_count: int
    by_status: Dict[str, int]
