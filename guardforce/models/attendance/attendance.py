from sqlalchemy import Column, String, Text, Date, DateTime, Numeric, Boolean, ForeignKey, UniqueConstraint, Enum as SQLEnum
from guardforce.db.base import BaseModel
from guardforce.models.shared.enums import AttendanceStatus

class AttendanceRecord(BaseModel):
    __tablename__ = 'attendance_records'
    __table_args__ = (
        UniqueConstraint('guard_id', 'attendance_date', name='uq_attendance_guard_date'),
    )

    guard_id = Column(String(36), ForeignKey('guards.id'), nullable=False, index=True)
    deployment_id = Column(String(36), ForeignKey('deployments.id'), nullable=True)
    branch_id = Column(String(36), ForeignKey('client_branches.id'), nullable=True, index=True)
    attendance_date = Column(Date, nullable=False, index=True)
    status = Column(SQLEnum(AttendanceStatus), nullable=False, default=AttendanceStatus.PRESENT)
    check_in_time = Column(DateTime(timezone=True))
    check_out_time = Column(DateTime(timezone=True))
    work_hours = Column(Numeric(5, 2))
    overtime_hours = Column(Numeric(5, 2), default=0)
    verified = Column(Boolean, default=False)
    verified_by = Column(String(36))
    verified_at = Column(DateTime(timezone=True))
    remarks = Column(Text)
