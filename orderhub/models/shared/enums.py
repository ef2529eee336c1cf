from sqlalchemy.orm import declarative_base
from enum import Enum

Base = declarative_base()

# Enums
class UserRole(str, Enum):
    ADMIN = "ADMIN"
    CUSTOMER = "CUSTOMER"
    DRIVER = "DRIVER"
    RESTAURANT_OWNER = "RESTAURANT_OWNER"
    RESTAURANT_STAFF = "RESTAURANT_STAFF"

class UserStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"

class OrderType(str, Enum):
    DINE_IN = "DINE_IN"
    TAKEAWAY = "TAKEAWAY"
    DELIVERY = "DELIVERY"

class OrderPaymentStatus(str, Enum):
    UNPAID = "UNPAID"
    PAID = "PAID"
    REFUNDED = "REFUNDED"

class OrderStatusName(str, Enum):
    """Names of the seeded status catalog rows"""
    PENDING = "Pending"
    PREPARING = "Preparing"
    READY = "Ready"
    OUT_FOR_DELIVERY = "Out for Delivery"
    DELIVERED = "Delivered"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"

class BookingStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"

class TrackingStatus(str, Enum):
    ASSIGNED = "assigned"
    PICKED_UP = "picked_up"
    ON_THE_WAY = "on_the_way"
    NEARBY = "nearby"
    ARRIVED = "arrived"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    UNKNOWN = "unknown"

class VehicleType(str, Enum):
    CAR = "car"
    MOTORCYCLE = "motorcycle"
    BICYCLE = "bicycle"
    SCOOTER = "scooter"
    VAN = "van"

class PaymentStatus(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"

class PaymentMethod(str, Enum):
    CARD = "card"
    BANK = "bank"
    USSD = "ussd"
    MOBILE_MONEY = "mobile_money"
    BANK_TRANSFER = "bank_transfer"

class PaymentGatewayName(str, Enum):
    PAYSTACK = "paystack"

class PaymentType(str, Enum):
    ORDER = "order"
    RESERVATION = "reservation"
    ROOM_BOOKING = "room_booking"
