"""
Order status catalog seed data (async, idempotent)
"""
import logging
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from orderhub.models.order.order_status import OrderStatus
from orderhub.models.shared.enums import OrderStatusName

logger = logging.getLogger(__name__)

ORDER_STATUS_SEED = [
    {"name": OrderStatusName.PENDING.value, "description": "Order has been placed and is awaiting confirmation", "color": "#FFA500"},
    {"name": OrderStatusName.PREPARING.value, "description": "Kitchen is preparing the order", "color": "#FFD700"},
    {"name": OrderStatusName.READY.value, "description": "Order is ready for pickup or dispatch", "color": "#32CD32"},
    {"name": OrderStatusName.OUT_FOR_DELIVERY.value, "description": "Driver is on the way to the customer", "color": "#1E90FF"},
    {"name": OrderStatusName.DELIVERED.value, "description": "Order has been delivered to the customer", "color": "#228B22"},
    {"name": OrderStatusName.COMPLETED.value, "description": "Order is complete", "color": "#006400"},
    {"name": OrderStatusName.CANCELLED.value, "description": "Order has been cancelled", "color": "#DC143C"},
]


async def get_or_create_status(session: AsyncSession, data: dict) -> OrderStatus:
    result = await session.execute(select(OrderStatus).where(OrderStatus.name == data["name"]))
    obj = result.scalar_one_or_none()
    if obj:
        return obj
    obj = OrderStatus(**data)
    session.add(obj)
    await session.flush()
    return obj


async def seed_order_statuses(session: AsyncSession):
    """Insert missing catalog rows; existing rows are left untouched"""
    try:
        for data in ORDER_STATUS_SEED:
            await get_or_create_status(session, data)
        await session.commit()
        logger.info("Order status catalog seeded")
    except Exception as e:
        logger.error(f"Error seeding order status catalog: {str(e)}")
        await session.rollback()
        raise
