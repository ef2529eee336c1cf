from sqlalchemy import Column, Integer, DateTime, Numeric, ForeignKey, Enum as SQLEnum, Index
from sqlalchemy.orm import relationship
from orderhub.db.base import BaseModel
from orderhub.models.shared.enums import TrackingStatus

class DeliveryTracking(BaseModel):
    """One location/status snapshot of an order's delivery. Rows are never updated."""
    __tablename__ = 'delivery_tracking'
    __table_args__ = (
        Index('ix_delivery_tracking_driver_timestamp', 'driver_id', 'timestamp'),
        Index('ix_delivery_tracking_order_timestamp', 'order_id', 'timestamp'),
    )

    order_id = Column(Integer, ForeignKey('orders.id'), nullable=False)
    driver_id = Column(Integer, ForeignKey('users.id'), nullable=False)
    latitude = Column(Numeric(10, 8), nullable=False)
    longitude = Column(Numeric(11, 8), nullable=False)
    speed = Column(Numeric(6, 2))
    heading = Column(Numeric(5, 2))
    distance_to_destination = Column(Numeric(10, 3))  # km
    eta_minutes = Column(Integer)
    status = Column(SQLEnum(TrackingStatus, values_callable=lambda e: [m.value for m in e]), nullable=False)
    timestamp = Column(DateTime(timezone=True), nullable=False)

    # Relationships
    order = relationship("Order")
    driver = relationship("User")
