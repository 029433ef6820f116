from sqlalchemy import Column, String, Text, Date, Numeric, ForeignKey, UniqueConstraint, Enum as SQLEnum
from sqlalchemy.orm import relationship
from guardforce.db.base import BaseModel
from guardforce.models.shared.enums import InvoiceStatus

class Invoice(BaseModel):
    __tablename__ = 'invoices'
    __table_args__ = (
        UniqueConstraint('org_id', 'invoice_number', name='uq_invoices_org_number'),
    )

    invoice_number = Column(String(20), nullable=False, index=True)
    client_id = Column(String(36), ForeignKey('clients.id'), nullable=False, index=True)
    invoice_date = Column(Date, nullable=False)
    due_date = Column(Date, nullable=False)
    billing_period_start = Column(Date)
    billing_period_end = Column(Date)
    subtotal = Column(Numeric(14, 2), nullable=False, default=0)
    tax_amount = Column(Numeric(14, 2), nullable=False, default=0)
    discount_amount = Column(Numeric(14, 2), nullable=False, default=0)
    total_amount = Column(Numeric(14, 2), nullable=False, default=0)
    paid_amount = Column(Numeric(14, 2), nullable=False, default=0)
    balance = Column(Numeric(14, 2), nullable=False, default=0)
    status = Column(SQLEnum(InvoiceStatus), nullable=False, default=InvoiceStatus.DRAFT, index=True)
    notes = Column(Text)

    items = relationship("InvoiceItem", back_populates="invoice", cascade="all, delete-orphan")


class InvoiceItem(BaseModel):
    __tablename__ = 'invoice_items'

    invoice_id = Column(String(36), ForeignKey('invoices.id'), nullable=False, index=True)
    description = Column(String(255), nullable=False)
    quantity = Column(Numeric(10, 2), nullable=False, default=1)
    unit_price = Column(Numeric(14, 2), nullable=False)
    amount = Column(Numeric(14, 2), nullable=False)
    deployment_id = Column(String(36), ForeignKey('deployments.id'), nullable=True)
    branch_id = Column(String(36), ForeignKey('client_branches.id'), nullable=True)

    invoice = relationship("Invoice", back_populates="items")
