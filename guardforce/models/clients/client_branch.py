from sqlalchemy import Column, String, Text, Integer, ForeignKey, UniqueConstraint, Enum as SQLEnum
from sqlalchemy.orm import relationship
from guardforce.db.base import BaseModel
from guardforce.models.shared.enums import BranchStatus

class ClientBranch(BaseModel):
    __tablename__ = 'client_branches'
    __table_args__ = (
        UniqueConstraint('org_id', 'branch_code', name='uq_client_branches_org_code'),
    )

    client_id = Column(String(36), ForeignKey('clients.id'), nullable=False, index=True)
    branch_code = Column(String(30), nullable=False)
    branch_name = Column(String(200), nullable=False)
    address = Column(Text)
    city = Column(String(100))
    contact_person = Column(String(100))
    contact_phone = Column(String(20))
    required_guards = Column(Integer, nullable=False, default=1)
    current_guards = Column(Integer, nullable=False, default=0)
    status = Column(SQLEnum(BranchStatus), nullable=False, default=BranchStatus.ACTIVE)

    client = relationship("Client", back_populates="branches")
    deployments = relationship("Deployment", back_populates="branch")
