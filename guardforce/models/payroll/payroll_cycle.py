from sqlalchemy import Column, String, Integer, Date, DateTime, Numeric, ForeignKey, JSON, UniqueConstraint, Enum as SQLEnum
from sqlalchemy.orm import relationship
from guardforce.db.base import BaseModel
from guardforce.models.shared.enums import PayrollCycleStatus, PayrollPaymentStatus

class PayrollCycle(BaseModel):
    __tablename__ = 'payroll_cycles'

    cycle_name = Column(String(100), nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    payment_date = Column(Date)
    status = Column(SQLEnum(PayrollCycleStatus), nullable=False, default=PayrollCycleStatus.DRAFT, index=True)
    total_employees = Column(Integer, nullable=False, default=0)
    total_gross = Column(Numeric(14, 2), nullable=False, default=0)
    total_deductions = Column(Numeric(14, 2), nullable=False, default=0)
    total_net = Column(Numeric(14, 2), nullable=False, default=0)
    calculated_at = Column(DateTime(timezone=True))
    calculated_by = Column(String(36))
    approved_at = Column(DateTime(timezone=True))
    approved_by = Column(String(36))
    paid_at = Column(DateTime(timezone=True))

    items = relationship("PayrollItem", back_populates="cycle", cascade="all, delete-orphan")


class PayrollItem(BaseModel):
    __tablename__ = 'payroll_items'
    __table_args__ = (
        UniqueConstraint('cycle_id', 'guard_id', name='uq_payroll_items_cycle_guard'),
    )

    cycle_id = Column(String(36), ForeignKey('payroll_cycles.id'), nullable=False, index=True)
    guard_id = Column(String(36), ForeignKey('guards.id'), nullable=False, index=True)

    # Earnings
    basic_salary = Column(Numeric(12, 2), nullable=False, default=0)
    allowances = Column(Numeric(12, 2), nullable=False, default=0)
    overtime_amount = Column(Numeric(12, 2), nullable=False, default=0)
    gross_salary = Column(Numeric(12, 2), nullable=False, default=0)

    # Deductions; `deductions` maps loan id -> installment taken this cycle
    deductions = Column(JSON)
    loan_deduction = Column(Numeric(12, 2), nullable=False, default=0)
    advance_deduction = Column(Numeric(12, 2), nullable=False, default=0)
    total_deductions = Column(Numeric(12, 2), nullable=False, default=0)
    net_salary = Column(Numeric(12, 2), nullable=False, default=0)

    # Attendance
    days_worked = Column(Integer, nullable=False, default=0)
    days_absent = Column(Integer, nullable=False, default=0)
    overtime_hours = Column(Numeric(8, 2), nullable=False, default=0)

    payment_method = Column(String(50), default="bank_transfer")
    payment_status = Column(SQLEnum(PayrollPaymentStatus), nullable=False, default=PayrollPaymentStatus.PENDING)
    paid_at = Column(DateTime(timezone=True))

    cycle = relationship("PayrollCycle", back_populates="items")
    guard = relationship("Guard")
