from sqlalchemy import Column, Integer, String, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import relationship
from orderhub.db.base import BaseModel
from orderhub.models.shared.enums import VehicleType

class VehicleInfo(BaseModel):
    __tablename__ = 'vehicle_info'

    user_id = Column(Integer, ForeignKey('users.id'), unique=True, nullable=False)
    vehicle_make = Column(String(50), nullable=False)
    vehicle_model = Column(String(50), nullable=False)
    vehicle_year = Column(String(4), nullable=False)
    license_plate = Column(String(20), unique=True, nullable=False)
    license_number = Column(String(50))
    color = Column(String(30))
    vehicle_type = Column(SQLEnum(VehicleType, values_callable=lambda e: [m.value for m in e]))

    # Relationships
    user = relationship("User", back_populates="vehicle_info")
