from sqlalchemy import Column, Integer, Text, Numeric, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from orderhub.db.base import BaseModel

class OrderItem(BaseModel):
    """Line item with a price snapshot taken when the order was placed"""
    __tablename__ = 'order_items'
    __table_args__ = (
        CheckConstraint('quantity >= 1', name='ck_order_items_quantity_positive'),
    )

    order_id = Column(Integer, ForeignKey('orders.id'), nullable=False, index=True)
    menu_item_id = Column(Integer, ForeignKey('menu_items.id'), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    unit_price = Column(Numeric(12, 2), nullable=False)
    total_price = Column(Numeric(12, 2), nullable=False)
    comment = Column(Text)

    # Relationships
    order = relationship("Order", back_populates="items")
    menu_item = relationship("MenuItem")
