from sqlalchemy import Column, Integer, DateTime, Text, ForeignKey
from sqlalchemy.orm import relationship
from orderhub.db.base import BaseModel

class OrderStatusHistory(BaseModel):
    """Append-only ledger of order status transitions"""
    __tablename__ = 'order_status_history'

    order_id = Column(Integer, ForeignKey('orders.id'), nullable=False, index=True)
    from_status_id = Column(Integer, ForeignKey('order_statuses.id'), nullable=True)
    status_id = Column(Integer, ForeignKey('order_statuses.id'), nullable=False)
    notes = Column(Text)
    actor_id = Column(Integer, nullable=True)
    timestamp = Column(DateTime(timezone=True), nullable=False)

    # Relationships
    order = relationship("Order", back_populates="status_history")
