from sqlalchemy import (
    Column, Integer, String, DateTime, Text, Numeric, ForeignKey, JSON,
    CheckConstraint, Enum as SQLEnum,
)
from sqlalchemy.orm import relationship
from orderhub.db.base import BaseModel
from orderhub.models.shared.enums import PaymentStatus, PaymentMethod, PaymentGatewayName


def _values(enum_cls):
    return [m.value for m in enum_cls]


class Payment(BaseModel):
    __tablename__ = 'payments'
    __table_args__ = (
        # Exactly one payable target
        CheckConstraint(
            "(CASE WHEN order_id IS NULL THEN 0 ELSE 1 END)"
            " + (CASE WHEN reservation_id IS NULL THEN 0 ELSE 1 END)"
            " + (CASE WHEN room_booking_id IS NULL THEN 0 ELSE 1 END) = 1",
            name='ck_payments_single_payable',
        ),
    )

    payment_number = Column(String(50), unique=True, nullable=False)
    payment_reference = Column(String(100), unique=True, nullable=False, index=True)
    user_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)
    email = Column(String(255), nullable=False)

    order_id = Column(Integer, ForeignKey('orders.id'), nullable=True, index=True)
    reservation_id = Column(Integer, ForeignKey('reservations.id'), nullable=True)
    room_booking_id = Column(Integer, ForeignKey('room_bookings.id'), nullable=True)

    amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="NGN")
    payment_method = Column(SQLEnum(PaymentMethod, values_callable=_values), nullable=True)
    gateway = Column(SQLEnum(PaymentGatewayName, values_callable=_values), nullable=False, default=PaymentGatewayName.PAYSTACK)
    status = Column(SQLEnum(PaymentStatus, values_callable=_values), nullable=False, default=PaymentStatus.PENDING)

    access_code = Column(String(100))
    authorization_url = Column(String(500))
    callback_url = Column(String(500))
    transaction_id = Column(String(100))
    channel = Column(String(50))
    gateway_response = Column(Text)
    failure_reason = Column(Text)
    refund_reason = Column(Text)
    refunded_amount = Column(Numeric(12, 2))
    payment_metadata = Column("metadata", JSON)

    processed_at = Column(DateTime(timezone=True))
    paid_at = Column(DateTime(timezone=True))
    failed_at = Column(DateTime(timezone=True))
    refunded_at = Column(DateTime(timezone=True))

    # Relationships
    invoice = relationship("Invoice", back_populates="payment", uselist=False)
    order = relationship("Order")
    reservation = relationship("Reservation")
    room_booking = relationship("RoomBooking")
