from sqlalchemy import Column, Integer, String, Numeric, ForeignKey, Boolean
from sqlalchemy.orm import relationship
from orderhub.db.base import BaseModel

class Restaurant(BaseModel):
    __tablename__ = 'restaurants'

    name = Column(String(150), nullable=False)
    owner_id = Column(Integer, ForeignKey('users.id'), nullable=True)
    address = Column(String(255))
    latitude = Column(Numeric(10, 8))
    longitude = Column(Numeric(11, 8))
    is_active = Column(Boolean, default=True)

    # Relationships
    menu_items = relationship("MenuItem", back_populates="restaurant")
