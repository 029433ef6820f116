from sqlalchemy import Column, String, Text, Date, DateTime, Numeric, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import relationship
from guardforce.db.base import BaseModel
from guardforce.models.shared.enums import ShiftType, DeploymentStatus

class Deployment(BaseModel):
    __tablename__ = 'deployments'

    guard_id = Column(String(36), ForeignKey('guards.id'), nullable=False, index=True)
    client_id = Column(String(36), ForeignKey('clients.id'), nullable=False, index=True)
    branch_id = Column(String(36), ForeignKey('client_branches.id'), nullable=False, index=True)
    deployment_date = Column(Date, nullable=False)
    end_date = Column(Date)
    shift_type = Column(SQLEnum(ShiftType), nullable=False, default=ShiftType.DAY)
    status = Column(SQLEnum(DeploymentStatus), nullable=False, default=DeploymentStatus.PLANNED, index=True)
    guard_rate = Column(Numeric(12, 2))
    client_rate = Column(Numeric(12, 2))
    deployed_at = Column(DateTime(timezone=True))
    deployed_by = Column(String(36))
    ended_at = Column(DateTime(timezone=True))
    end_reason = Column(Text)
    notes = Column(Text)

    guard = relationship("Guard", back_populates="deployments")
    branch = relationship("ClientBranch", back_populates="deployments")
