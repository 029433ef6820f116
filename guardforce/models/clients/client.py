from sqlalchemy import Column, String, Text, Boolean, UniqueConstraint, Enum as SQLEnum
from sqlalchemy.orm import relationship
from guardforce.db.base import BaseModel
from guardforce.models.shared.enums import ClientType, ClientStatus

class Client(BaseModel):
    __tablename__ = 'clients'
    __table_args__ = (
        UniqueConstraint('org_id', 'client_code', name='uq_clients_org_code'),
    )

    client_code = Column(String(20), nullable=False, index=True)
    client_name = Column(String(200), nullable=False)
    client_type = Column(SQLEnum(ClientType), nullable=False, default=ClientType.CORPORATE)
    contact_person = Column(String(100))
    contact_email = Column(String(150))
    contact_phone = Column(String(20))
    billing_address = Column(Text)
    city = Column(String(100))
    ntn_number = Column(String(30))
    status = Column(SQLEnum(ClientStatus), nullable=False, default=ClientStatus.ACTIVE, index=True)
    notes = Column(Text)
    is_active = Column(Boolean, default=True)

    branches = relationship("ClientBranch", back_populates="client", order_by="ClientBranch.branch_code")
