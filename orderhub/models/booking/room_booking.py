from sqlalchemy import Column, Integer, Numeric, ForeignKey, Date, Enum as SQLEnum
from orderhub.db.base import BaseModel
from orderhub.models.shared.enums import BookingStatus

class RoomBooking(BaseModel):
    __tablename__ = 'room_bookings'

    user_id = Column(Integer, ForeignKey('users.id'), nullable=False)
    room_id = Column(Integer, nullable=True)
    check_in = Column(Date)
    check_out = Column(Date)
    total_amount = Column(Numeric(12, 2), nullable=False, default=0)
    status = Column(SQLEnum(BookingStatus), nullable=False, default=BookingStatus.PENDING)
