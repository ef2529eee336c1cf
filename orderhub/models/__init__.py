from orderhub.models.auth.user import User
from orderhub.models.auth.address import Address
from orderhub.models.restaurant.restaurant import Restaurant
from orderhub.models.restaurant.menu_item import MenuItem
from orderhub.models.booking.reservation import Reservation
from orderhub.models.booking.room_booking import RoomBooking
from orderhub.models.order.order_status import OrderStatus
from orderhub.models.order.order import Order
from orderhub.models.order.order_item import OrderItem
from orderhub.models.order.order_status_history import OrderStatusHistory
from orderhub.models.delivery.delivery_tracking import DeliveryTracking
from orderhub.models.delivery.vehicle_info import VehicleInfo
from orderhub.models.payment.payment import Payment
from orderhub.models.payment.invoice import Invoice
