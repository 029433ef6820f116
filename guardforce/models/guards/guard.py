from sqlalchemy import Column, String, Text, Date, Numeric, Boolean, JSON, UniqueConstraint, Enum as SQLEnum
from sqlalchemy.orm import relationship
from guardforce.db.base import BaseModel
from guardforce.models.shared.enums import GuardStatus, Gender

class Guard(BaseModel):
    __tablename__ = 'guards'
    __table_args__ = (
        UniqueConstraint('org_id', 'guard_code', name='uq_guards_org_code'),
    )

    guard_code = Column(String(20), nullable=False, index=True)
    first_name = Column(String(50), nullable=False)
    last_name = Column(String(50), nullable=False)
    father_name = Column(String(100))
    cnic = Column(String(15), nullable=False, index=True)
    date_of_birth = Column(Date)
    gender = Column(SQLEnum(Gender), default=Gender.MALE)
    phone = Column(String(20), nullable=False)
    email = Column(String(150))
    permanent_address = Column(Text)
    current_address = Column(Text)
    designation = Column(String(100))
    status = Column(SQLEnum(GuardStatus), nullable=False, default=GuardStatus.APPLICANT, index=True)
    basic_salary = Column(Numeric(12, 2))
    allowances = Column(JSON)
    employment_start_date = Column(Date)
    employment_end_date = Column(Date)
    termination_reason = Column(Text)
    is_active = Column(Boolean, default=True)

    deployments = relationship("Deployment", back_populates="guard")
    loans = relationship("GuardLoan", back_populates="guard")
