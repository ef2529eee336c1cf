from sqlalchemy import Column, Integer, Numeric, ForeignKey, DateTime, Enum as SQLEnum
from orderhub.db.base import BaseModel
from orderhub.models.shared.enums import BookingStatus

class Reservation(BaseModel):
    __tablename__ = 'reservations'

    user_id = Column(Integer, ForeignKey('users.id'), nullable=False)
    restaurant_id = Column(Integer, ForeignKey('restaurants.id'), nullable=False)
    reserved_for = Column(DateTime(timezone=True))
    party_size = Column(Integer, default=1)
    deposit_amount = Column(Numeric(12, 2), nullable=False, default=0)
    status = Column(SQLEnum(BookingStatus), nullable=False, default=BookingStatus.PENDING)
