from sqlalchemy import Column, String, Boolean, Enum as SQLEnum
from sqlalchemy.orm import relationship
from orderhub.db.base import BaseModel
from orderhub.models.shared.enums import UserRole, UserStatus

class User(BaseModel):
    """Directory entry for customers, drivers and restaurant staff"""
    __tablename__ = 'users'

    name = Column(String(150), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    phone = Column(String(30))
    role = Column(SQLEnum(UserRole), nullable=False, default=UserRole.CUSTOMER)
    status = Column(SQLEnum(UserStatus), nullable=False, default=UserStatus.ACTIVE)

    # Driver availability flags
    is_online = Column(Boolean, default=False, nullable=False)
    is_available = Column(Boolean, default=False, nullable=False)

    # Relationships
    addresses = relationship("Address", back_populates="user")
    vehicle_info = relationship("VehicleInfo", back_populates="user", uselist=False)

    @property
    def is_active(self) -> bool:
        return self.status == UserStatus.ACTIVE and not self.is_deleted
