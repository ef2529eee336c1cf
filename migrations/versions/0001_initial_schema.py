"""initial_schema

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-16 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '0001_initial_schema'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


user_role = postgresql.ENUM('ADMIN', 'CUSTOMER', 'DRIVER', 'RESTAURANT_OWNER', 'RESTAURANT_STAFF', name='userrole', create_type=False)
user_status = postgresql.ENUM('ACTIVE', 'INACTIVE', name='userstatus', create_type=False)
order_type = postgresql.ENUM('DINE_IN', 'TAKEAWAY', 'DELIVERY', name='ordertype', create_type=False)
order_payment_status = postgresql.ENUM('UNPAID', 'PAID', 'REFUNDED', name='orderpaymentstatus', create_type=False)
booking_status = postgresql.ENUM('PENDING', 'CONFIRMED', 'CANCELLED', name='bookingstatus', create_type=False)
tracking_status = postgresql.ENUM(
    'assigned', 'picked_up', 'on_the_way', 'nearby', 'arrived', 'delivered', 'cancelled', 'unknown',
    name='trackingstatus', create_type=False,
)
vehicle_type = postgresql.ENUM('car', 'motorcycle', 'bicycle', 'scooter', 'van', name='vehicletype', create_type=False)
payment_status = postgresql.ENUM('pending', 'success', 'failed', 'cancelled', 'refunded', name='paymentstatus', create_type=False)
payment_method = postgresql.ENUM('card', 'bank', 'ussd', 'mobile_money', 'bank_transfer', name='paymentmethod', create_type=False)
payment_gateway = postgresql.ENUM('paystack', name='paymentgatewayname', create_type=False)


ENUM_TYPES = (
    user_role, user_status, order_type, order_payment_status, booking_status,
    tracking_status, vehicle_type, payment_status, payment_method, payment_gateway,
)


def _base_columns():
    return [
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('is_deleted', sa.Boolean(), nullable=True),
        sa.Column('created_by', sa.Integer(), nullable=True),
        sa.Column('updated_by', sa.Integer(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    ]


def upgrade():
    # Enum types are shared between tables, create them once up front
    bind = op.get_bind()
    for enum_type in ENUM_TYPES:
        enum_type.create(bind, checkfirst=True)

    op.create_table(
        'users',
        *_base_columns(),
        sa.Column('name', sa.String(length=150), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=30), nullable=True),
        sa.Column('role', user_role, nullable=False),
        sa.Column('status', user_status, nullable=False),
        sa.Column('is_online', sa.Boolean(), nullable=False),
        sa.Column('is_available', sa.Boolean(), nullable=False),
    )
    op.create_index('ix_users_id', 'users', ['id'])
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'addresses',
        *_base_columns(),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('label', sa.String(length=50), nullable=True),
        sa.Column('line', sa.String(length=255), nullable=False),
        sa.Column('city', sa.String(length=100), nullable=True),
        sa.Column('latitude', sa.Numeric(10, 8), nullable=True),
        sa.Column('longitude', sa.Numeric(11, 8), nullable=True),
    )
    op.create_index('ix_addresses_id', 'addresses', ['id'])
    op.create_index('ix_addresses_user_id', 'addresses', ['user_id'])

    op.create_table(
        'restaurants',
        *_base_columns(),
        sa.Column('name', sa.String(length=150), nullable=False),
        sa.Column('owner_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('address', sa.String(length=255), nullable=True),
        sa.Column('latitude', sa.Numeric(10, 8), nullable=True),
        sa.Column('longitude', sa.Numeric(11, 8), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=True),
    )
    op.create_index('ix_restaurants_id', 'restaurants', ['id'])

    op.create_table(
        'menu_items',
        *_base_columns(),
        sa.Column('restaurant_id', sa.Integer(), sa.ForeignKey('restaurants.id'), nullable=False),
        sa.Column('name', sa.String(length=150), nullable=False),
        sa.Column('price', sa.Numeric(12, 2), nullable=False),
        sa.Column('is_available', sa.Boolean(), nullable=True),
    )
    op.create_index('ix_menu_items_id', 'menu_items', ['id'])
    op.create_index('ix_menu_items_restaurant_id', 'menu_items', ['restaurant_id'])

    op.create_table(
        'reservations',
        *_base_columns(),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('restaurant_id', sa.Integer(), sa.ForeignKey('restaurants.id'), nullable=False),
        sa.Column('reserved_for', sa.DateTime(timezone=True), nullable=True),
        sa.Column('party_size', sa.Integer(), nullable=True),
        sa.Column('deposit_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('status', booking_status, nullable=False),
    )
    op.create_index('ix_reservations_id', 'reservations', ['id'])

    op.create_table(
        'room_bookings',
        *_base_columns(),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('room_id', sa.Integer(), nullable=True),
        sa.Column('check_in', sa.Date(), nullable=True),
        sa.Column('check_out', sa.Date(), nullable=True),
        sa.Column('total_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('status', booking_status, nullable=False),
    )
    op.create_index('ix_room_bookings_id', 'room_bookings', ['id'])

    op.create_table(
        'order_statuses',
        *_base_columns(),
        sa.Column('name', sa.String(length=50), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('color', sa.String(length=7), nullable=True),
        sa.UniqueConstraint('name'),
    )
    op.create_index('ix_order_statuses_id', 'order_statuses', ['id'])

    op.create_table(
        'orders',
        *_base_columns(),
        sa.Column('order_number', sa.String(length=50), nullable=False),
        sa.Column('restaurant_id', sa.Integer(), sa.ForeignKey('restaurants.id'), nullable=False),
        sa.Column('customer_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('table_id', sa.Integer(), nullable=True),
        sa.Column('delivery_address_id', sa.Integer(), sa.ForeignKey('addresses.id'), nullable=True),
        sa.Column('driver_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('order_type', order_type, nullable=False),
        sa.Column('status_id', sa.Integer(), sa.ForeignKey('order_statuses.id'), nullable=False),
        sa.Column('subtotal', sa.Numeric(12, 2), nullable=False),
        sa.Column('discount', sa.Numeric(12, 2), nullable=False),
        sa.Column('delivery_fee', sa.Numeric(12, 2), nullable=False),
        sa.Column('tax_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('final_total', sa.Numeric(12, 2), nullable=False),
        sa.Column('payment_status', order_payment_status, nullable=False),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('scheduled_time', sa.DateTime(timezone=True), nullable=True),
        sa.Column('actual_delivery_time', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('comment', sa.Text(), nullable=True),
    )
    op.create_index('ix_orders_id', 'orders', ['id'])
    op.create_index('ix_orders_order_number', 'orders', ['order_number'], unique=True)
    op.create_index('ix_orders_restaurant_id', 'orders', ['restaurant_id'])
    op.create_index('ix_orders_customer_id', 'orders', ['customer_id'])
    op.create_index('ix_orders_driver_id', 'orders', ['driver_id'])

    op.create_table(
        'order_items',
        *_base_columns(),
        sa.Column('order_id', sa.Integer(), sa.ForeignKey('orders.id'), nullable=False),
        sa.Column('menu_item_id', sa.Integer(), sa.ForeignKey('menu_items.id'), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price', sa.Numeric(12, 2), nullable=False),
        sa.Column('total_price', sa.Numeric(12, 2), nullable=False),
        sa.Column('comment', sa.Text(), nullable=True),
        sa.CheckConstraint('quantity >= 1', name='ck_order_items_quantity_positive', create_type=False),
    )
    op.create_index('ix_order_items_id', 'order_items', ['id'])
    op.create_index('ix_order_items_order_id', 'order_items', ['order_id'])

    op.create_table(
        'order_status_history',
        *_base_columns(),
        sa.Column('order_id', sa.Integer(), sa.ForeignKey('orders.id'), nullable=False),
        sa.Column('from_status_id', sa.Integer(), sa.ForeignKey('order_statuses.id'), nullable=True),
        sa.Column('status_id', sa.Integer(), sa.ForeignKey('order_statuses.id'), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('actor_id', sa.Integer(), nullable=True),
        sa.Column('timestamp', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_order_status_history_id', 'order_status_history', ['id'])
    op.create_index('ix_order_status_history_order_id', 'order_status_history', ['order_id'])

    op.create_table(
        'delivery_tracking',
        *_base_columns(),
        sa.Column('order_id', sa.Integer(), sa.ForeignKey('orders.id'), nullable=False),
        sa.Column('driver_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('latitude', sa.Numeric(10, 8), nullable=False),
        sa.Column('longitude', sa.Numeric(11, 8), nullable=False),
        sa.Column('speed', sa.Numeric(6, 2), nullable=True),
        sa.Column('heading', sa.Numeric(5, 2), nullable=True),
        sa.Column('distance_to_destination', sa.Numeric(10, 3), nullable=True),
        sa.Column('eta_minutes', sa.Integer(), nullable=True),
        sa.Column('status', tracking_status, nullable=False),
        sa.Column('timestamp', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_delivery_tracking_id', 'delivery_tracking', ['id'])
    op.create_index('ix_delivery_tracking_driver_timestamp', 'delivery_tracking', ['driver_id', 'timestamp'])
    op.create_index('ix_delivery_tracking_order_timestamp', 'delivery_tracking', ['order_id', 'timestamp'])

    op.create_table(
        'vehicle_info',
        *_base_columns(),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('vehicle_make', sa.String(length=50), nullable=False),
        sa.Column('vehicle_model', sa.String(length=50), nullable=False),
        sa.Column('vehicle_year', sa.String(length=4), nullable=False),
        sa.Column('license_plate', sa.String(length=20), nullable=False),
        sa.Column('license_number', sa.String(length=50), nullable=True),
        sa.Column('color', sa.String(length=30), nullable=True),
        sa.Column('vehicle_type', vehicle_type, nullable=True),
        sa.UniqueConstraint('user_id'),
        sa.UniqueConstraint('license_plate'),
    )
    op.create_index('ix_vehicle_info_id', 'vehicle_info', ['id'])

    op.create_table(
        'payments',
        *_base_columns(),
        sa.Column('payment_number', sa.String(length=50), nullable=False),
        sa.Column('payment_reference', sa.String(length=100), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('order_id', sa.Integer(), sa.ForeignKey('orders.id'), nullable=True),
        sa.Column('reservation_id', sa.Integer(), sa.ForeignKey('reservations.id'), nullable=True),
        sa.Column('room_booking_id', sa.Integer(), sa.ForeignKey('room_bookings.id'), nullable=True),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('payment_method', payment_method, nullable=True),
        sa.Column('gateway', payment_gateway, nullable=False),
        sa.Column('status', payment_status, nullable=False),
        sa.Column('access_code', sa.String(length=100), nullable=True),
        sa.Column('authorization_url', sa.String(length=500), nullable=True),
        sa.Column('callback_url', sa.String(length=500), nullable=True),
        sa.Column('transaction_id', sa.String(length=100), nullable=True),
        sa.Column('channel', sa.String(length=50), nullable=True),
        sa.Column('gateway_response', sa.Text(), nullable=True),
        sa.Column('failure_reason', sa.Text(), nullable=True),
        sa.Column('refund_reason', sa.Text(), nullable=True),
        sa.Column('refunded_amount', sa.Numeric(12, 2), nullable=True),
        sa.Column('metadata', sa.JSON(), nullable=True),
        sa.Column('processed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('failed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('refunded_at', sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint('payment_number'),
        sa.CheckConstraint(
            "(CASE WHEN order_id IS NULL THEN 0 ELSE 1 END)"
            " + (CASE WHEN reservation_id IS NULL THEN 0 ELSE 1 END)"
            " + (CASE WHEN room_booking_id IS NULL THEN 0 ELSE 1 END) = 1",
            name='ck_payments_single_payable',
        ),
    )
    op.create_index('ix_payments_id', 'payments', ['id'])
    op.create_index('ix_payments_payment_reference', 'payments', ['payment_reference'], unique=True)
    op.create_index('ix_payments_user_id', 'payments', ['user_id'])
    op.create_index('ix_payments_order_id', 'payments', ['order_id'])

    op.create_table(
        'invoices',
        *_base_columns(),
        sa.Column('payment_id', sa.Integer(), sa.ForeignKey('payments.id'), nullable=False),
        sa.Column('invoice_number', sa.String(length=50), nullable=False),
        sa.Column('pdf_url', sa.String(length=500), nullable=True),
        sa.Column('issued_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('sent_at', sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint('payment_id'),
        sa.UniqueConstraint('invoice_number'),
    )
    op.create_index('ix_invoices_id', 'invoices', ['id'])


def downgrade():
    for table in (
        'invoices', 'payments', 'vehicle_info', 'delivery_tracking', 'order_status_history',
        'order_items', 'orders', 'order_statuses', 'room_bookings', 'reservations',
        'menu_items', 'restaurants', 'addresses', 'users',
    ):
        op.drop_table(table)

    bind = op.get_bind()
    for enum_type in reversed(ENUM_TYPES):
        enum_type.drop(bind, checkfirst=True)
