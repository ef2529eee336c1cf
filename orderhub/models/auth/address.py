from sqlalchemy import Column, Integer, String, Numeric, ForeignKey
from sqlalchemy.orm import relationship
from orderhub.db.base import BaseModel

class Address(BaseModel):
    __tablename__ = 'addresses'

    user_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)
    label = Column(String(50))
    line = Column(String(255), nullable=False)
    city = Column(String(100))
    latitude = Column(Numeric(10, 8))
    longitude = Column(Numeric(11, 8))

    # Relationships
    user = relationship("User", back_populates="addresses")
