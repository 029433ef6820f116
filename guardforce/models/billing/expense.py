from sqlalchemy import Column, String, Text, Date, Numeric, ForeignKey, Enum as SQLEnum
from guardforce.db.base import BaseModel
from guardforce.models.shared.enums import ExpenseCategory, ExpenseStatus

class Expense(BaseModel):
    __tablename__ = 'expenses'

    category = Column(SQLEnum(ExpenseCategory), nullable=False, default=ExpenseCategory.OTHER)
    amount = Column(Numeric(12, 2), nullable=False)
    expense_date = Column(Date, nullable=False)
    branch_id = Column(String(36), ForeignKey('client_branches.id'), nullable=True)
    description = Column(Text, nullable=False)
    receipt_reference = Column(String(100))
    status = Column(SQLEnum(ExpenseStatus), nullable=False, default=ExpenseStatus.RECORDED)
