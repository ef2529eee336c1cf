from sqlalchemy import Column, Integer, String, Numeric, ForeignKey, Boolean
from sqlalchemy.orm import relationship
from orderhub.db.base import BaseModel

class MenuItem(BaseModel):
    __tablename__ = 'menu_items'

    restaurant_id = Column(Integer, ForeignKey('restaurants.id'), nullable=False, index=True)
    name = Column(String(150), nullable=False)
    price = Column(Numeric(12, 2), nullable=False)
    is_available = Column(Boolean, default=True)

    # Relationships
    restaurant = relationship("Restaurant", back_populates="menu_items")
