from sqlalchemy import Column, String, Text
from orderhub.db.base import BaseModel

class OrderStatus(BaseModel):
    """Status catalog entry. Reference data, seeded once."""
    __tablename__ = 'order_statuses'

    name = Column(String(50), unique=True, nullable=False)
    description = Column(Text)
    color = Column(String(7))
