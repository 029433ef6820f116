from sqlalchemy import Column, String, Boolean, Enum as SQLEnum
from guardforce.db.base import BaseModel
from guardforce.models.shared.enums import UserRole

class Profile(BaseModel):
    """Back-office user. `id` is the identity provider's user id."""
    __tablename__ = 'profiles'

    full_name = Column(String(150), nullable=False)
    email = Column(String(150), nullable=False, index=True)
    role = Column(SQLEnum(UserRole), nullable=False, default=UserRole.AUDITOR_READONLY)
    regional_office_id = Column(String(36), nullable=True)
    phone = Column(String(20))
    is_active = Column(Boolean, default=True)
