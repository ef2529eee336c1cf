from sqlalchemy import Column, Integer, String, DateTime, Text, Numeric, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import relationship
from orderhub.db.base import BaseModel
from orderhub.models.shared.enums import OrderType, OrderPaymentStatus

class Order(BaseModel):
    __tablename__ = 'orders'

    order_number = Column(String(50), unique=True, nullable=False, index=True)
    restaurant_id = Column(Integer, ForeignKey('restaurants.id'), nullable=False, index=True)
    customer_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)
    table_id = Column(Integer, nullable=True)
    delivery_address_id = Column(Integer, ForeignKey('addresses.id'), nullable=True)
    driver_id = Column(Integer, ForeignKey('users.id'), nullable=True, index=True)
    order_type = Column(SQLEnum(OrderType), nullable=False)
    status_id = Column(Integer, ForeignKey('order_statuses.id'), nullable=False)

    # Money
    subtotal = Column(Numeric(12, 2), nullable=False, default=0)
    discount = Column(Numeric(12, 2), nullable=False, default=0)
    delivery_fee = Column(Numeric(12, 2), nullable=False, default=0)
    tax_amount = Column(Numeric(12, 2), nullable=False, default=0)
    final_total = Column(Numeric(12, 2), nullable=False, default=0)

    payment_status = Column(SQLEnum(OrderPaymentStatus), nullable=False, default=OrderPaymentStatus.UNPAID)
    paid_at = Column(DateTime(timezone=True))

    scheduled_time = Column(DateTime(timezone=True))
    actual_delivery_time = Column(DateTime(timezone=True))
    completed_at = Column(DateTime(timezone=True))
    deleted_at = Column(DateTime(timezone=True))
    comment = Column(Text)

    # Relationships
    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan")
    status = relationship("OrderStatus")
    restaurant = relationship("Restaurant")
    customer = relationship("User", foreign_keys=[customer_id])
    driver = relationship("User", foreign_keys=[driver_id])
    delivery_address = relationship("Address")
    status_history = relationship("OrderStatusHistory", back_populates="order", order_by="OrderStatusHistory.id")
