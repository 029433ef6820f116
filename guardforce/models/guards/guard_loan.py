from sqlalchemy import Column, String, Text, Integer, Numeric, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import relationship
from guardforce.db.base import BaseModel
from guardforce.models.shared.enums import LoanType, LoanStatus

class GuardLoan(BaseModel):
    __tablename__ = 'guard_loans'

    guard_id = Column(String(36), ForeignKey('guards.id'), nullable=False, index=True)
    loan_type = Column(SQLEnum(LoanType), nullable=False, default=LoanType.ADVANCE)
    amount = Column(Numeric(12, 2), nullable=False)
    remaining_amount = Column(Numeric(12, 2), nullable=False)
    installment_count = Column(Integer, default=1)
    installment_amount = Column(Numeric(12, 2))
    status = Column(SQLEnum(LoanStatus), nullable=False, default=LoanStatus.APPROVED)
    reason = Column(Text)

    guard = relationship("Guard", back_populates="loans")
