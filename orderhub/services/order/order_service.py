# orderhub/services/order/order_service.py
import logging
import random
import string
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from fastapi import HTTPException, status
from sqlalchemy import select, and_, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from orderhub.core.exceptions import NotFoundError, ValidationError, InvalidStateError
from orderhub.models.auth.address import Address
from orderhub.models.order.order import Order
from orderhub.models.order.order_item import OrderItem
from orderhub.models.order.order_status_history import OrderStatusHistory
from orderhub.models.restaurant.menu_item import MenuItem
from orderhub.models.restaurant.restaurant import Restaurant
from orderhub.models.shared.enums import OrderStatusName, OrderType
from orderhub.schemas.order.order_schema import OrderCreate, OrderUpdate, OrderItemCreate
from orderhub.services.order.order_state_machine import EDITABLE_STATUSES
from orderhub.services.order.status_catalog import StatusCatalog

logger = logging.getLogger(__name__)

TWO_PLACES = Decimal("0.01")


def calculate_final_total(subtotal: Decimal, discount: Decimal, delivery_fee: Decimal, tax_amount: Decimal) -> Decimal:
    """final = subtotal - discount + delivery fee + tax, rejected when negative"""
    final_total = (Decimal(subtotal) - Decimal(discount) + Decimal(delivery_fee) + Decimal(tax_amount)).quantize(TWO_PLACES)
    if final_total < 0:
        raise ValidationError(f"Order total cannot be negative (computed {final_total})")
    return final_total


class OrderService:
    def __init__(self, session: AsyncSession, catalog: StatusCatalog):
        self.session = session
        self.catalog = catalog

    def generate_order_number(self) -> str:
        """Generate unique order number"""
        timestamp = datetime.now().strftime("%Y%m%d")
        random_suffix = ''.join(random.choices(string.ascii_uppercase + string.digits, k=6))
        return f"ORD-{timestamp}-{random_suffix}"

    async def create_order(self, order_data: OrderCreate, customer_id: int, actor_id: Optional[int] = None) -> Order:
        """Create an order with item price snapshots and an initial history row"""
        try:
            await self._validate_restaurant(order_data.restaurant_id)
            await self._validate_order_type_requirements(order_data, customer_id)

            line_items, subtotal = await self._price_items(order_data.restaurant_id, order_data.items)
            final_total = calculate_final_total(
                subtotal, order_data.discount, order_data.delivery_fee, order_data.tax_amount
            )

            order_number = self.generate_order_number()
            while await self._order_number_exists(order_number):
                order_number = self.generate_order_number()

            pending = self.catalog.by_name(OrderStatusName.PENDING)
            order = Order(
                order_number=order_number,
                restaurant_id=order_data.restaurant_id,
                customer_id=customer_id,
                table_id=order_data.table_id,
                delivery_address_id=order_data.delivery_address_id,
                order_type=order_data.order_type,
                status_id=pending.id,
                subtotal=subtotal,
                discount=order_data.discount,
                delivery_fee=order_data.delivery_fee,
                tax_amount=order_data.tax_amount,
                final_total=final_total,
                comment=order_data.comment,
                scheduled_time=order_data.scheduled_time,
                created_by=actor_id or customer_id,
            )
            self.session.add(order)
            await self.session.flush()

            for item in line_items:
                item.order_id = order.id
                self.session.add(item)

            self.session.add(OrderStatusHistory(
                order_id=order.id,
                from_status_id=None,
                status_id=pending.id,
                notes="Order created",
                actor_id=actor_id or customer_id,
                timestamp=datetime.now(timezone.utc),
            ))

            await self.session.commit()
            logger.info(f"Order created successfully: {order.order_number} (total {final_total})")
            return await self.get_order(order.id)

        except HTTPException:
            await self.session.rollback()
            raise
        except Exception as e:
            await self.session.rollback()
            logger.error(f"Error creating order: {str(e)}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Failed to create order"
            )

    async def get_order(self, order_id: int) -> Order:
        result = await self.session.execute(
            select(Order)
            .options(selectinload(Order.items))
            .where(Order.id == order_id, Order.is_deleted == False)
            .execution_options(populate_existing=True)
        )
        order = result.scalar_one_or_none()
        if not order:
            raise NotFoundError(f"Order {order_id} not found")
        return order

    async def get_order_by_number(self, order_number: str) -> Order:
        result = await self.session.execute(
            select(Order)
            .options(selectinload(Order.items))
            .where(Order.order_number == order_number, Order.is_deleted == False)
        )
        order = result.scalar_one_or_none()
        if not order:
            raise NotFoundError(f"Order {order_number} not found")
        return order

    async def get_orders(
        self,
        skip: int = 0,
        limit: int = 100,
        restaurant_id: Optional[int] = None,
        customer_id: Optional[int] = None,
        driver_id: Optional[int] = None,
        status_id: Optional[int] = None,
        order_type: Optional[OrderType] = None,
    ) -> Dict[str, Any]:
        """Get list of orders with filters"""
        conditions = [Order.is_deleted == False]
        if restaurant_id:
            conditions.append(Order.restaurant_id == restaurant_id)
        if customer_id:
            conditions.append(Order.customer_id == customer_id)
        if driver_id:
            conditions.append(Order.driver_id == driver_id)
        if status_id:
            conditions.append(Order.status_id == status_id)
        if order_type:
            conditions.append(Order.order_type == order_type)

        result = await self.session.execute(
            select(Order)
            .options(selectinload(Order.items))
            .where(and_(*conditions))
            .order_by(Order.created_at.desc(), Order.id.desc())
            .offset(skip)
            .limit(limit)
        )
        total_count = await self.session.execute(
            select(func.count(Order.id)).where(and_(*conditions))
        )
        return {
            "data": list(result.scalars().all()),
            "total": total_count.scalar() or 0,
            "skip": skip,
            "limit": limit,
        }

    async def update_order(self, order_id: int, order_data: OrderUpdate, actor_id: Optional[int] = None) -> Order:
        """Change items or fees; only allowed while the order is Pending"""
        try:
            order = await self._lock_editable_order(order_id)
            update_data = order_data.model_dump(exclude_unset=True, exclude={"items"})

            for field, value in update_data.items():
                if field in ("discount", "delivery_fee", "tax_amount") and value is None:
                    continue
                setattr(order, field, value)

            if order_data.items is not None:
                line_items, subtotal = await self._price_items(order.restaurant_id, order_data.items)
                existing = await self.session.execute(select(OrderItem).where(OrderItem.order_id == order.id))
                for item in existing.scalars().all():
                    await self.session.delete(item)
                for item in line_items:
                    item.order_id = order.id
                    self.session.add(item)
                order.subtotal = subtotal

            order.final_total = calculate_final_total(
                order.subtotal, order.discount, order.delivery_fee, order.tax_amount
            )
            order.updated_by = actor_id

            await self.session.commit()
            logger.info(f"Order {order.order_number} updated")
            return await self.get_order(order.id)

        except HTTPException:
            await self.session.rollback()
            raise
        except Exception as e:
            await self.session.rollback()
            logger.error(f"Error updating order {order_id}: {str(e)}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Failed to update order"
            )

    async def delete_order(self, order_id: int, actor_id: Optional[int] = None) -> bool:
        """Soft delete; only allowed while the order is Pending"""
        try:
            order = await self._lock_editable_order(order_id)
            order.is_deleted = True
            order.deleted_at = datetime.now(timezone.utc)
            order.updated_by = actor_id
            await self.session.commit()
            logger.info(f"Order {order.order_number} deleted")
            return True

        except HTTPException:
            await self.session.rollback()
            raise
        except Exception as e:
            await self.session.rollback()
            logger.error(f"Error deleting order {order_id}: {str(e)}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Failed to delete order"
            )

    async def _lock_editable_order(self, order_id: int) -> Order:
        result = await self.session.execute(
            select(Order)
            .where(Order.id == order_id, Order.is_deleted == False)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        order = result.scalar_one_or_none()
        if not order:
            raise NotFoundError(f"Order {order_id} not found")
        current = self.catalog.name_of(order.status_id)
        if OrderStatusName(current) not in EDITABLE_STATUSES:
            raise InvalidStateError(
                f"Order {order.order_number} can only be changed while Pending (current: {current})",
                current=current,
            )
        return order

    async def _price_items(self, restaurant_id: int, items: List[OrderItemCreate]) -> Tuple[List[OrderItem], Decimal]:
        """Snapshot current menu prices into order item rows"""
        menu_ids = {item.menu_item_id for item in items}
        result = await self.session.execute(
            select(MenuItem).where(MenuItem.id.in_(menu_ids), MenuItem.is_deleted == False)
        )
        menu_items = {menu_item.id: menu_item for menu_item in result.scalars().all()}

        line_items = []
        subtotal = Decimal("0")
        for item in items:
            menu_item = menu_items.get(item.menu_item_id)
            if menu_item is None:
                raise NotFoundError(f"Menu item {item.menu_item_id} not found")
            if menu_item.restaurant_id != restaurant_id:
                raise ValidationError(f"Menu item {menu_item.name} does not belong to restaurant {restaurant_id}")
            if not menu_item.is_available:
                raise ValidationError(f"Menu item {menu_item.name} is not available")

            unit_price = Decimal(menu_item.price).quantize(TWO_PLACES)
            total_price = (unit_price * item.quantity).quantize(TWO_PLACES)
            subtotal += total_price
            line_items.append(OrderItem(
                menu_item_id=menu_item.id,
                quantity=item.quantity,
                unit_price=unit_price,
                total_price=total_price,
                comment=item.comment,
            ))
        return line_items, subtotal.quantize(TWO_PLACES)

    async def _validate_restaurant(self, restaurant_id: int) -> Restaurant:
        restaurant = await self.session.get(Restaurant, restaurant_id)
        if not restaurant or restaurant.is_deleted:
            raise NotFoundError(f"Restaurant {restaurant_id} not found")
        return restaurant

    async def _validate_order_type_requirements(self, order_data: OrderCreate, customer_id: int):
        if order_data.order_type == OrderType.DINE_IN and not order_data.table_id:
            raise ValidationError("Table ID is required for dine-in orders")
        if order_data.order_type == OrderType.DELIVERY:
            if not order_data.delivery_address_id:
                raise ValidationError("Delivery address is required for delivery orders")
            address = await self.session.get(Address, order_data.delivery_address_id)
            if not address or address.is_deleted:
                raise NotFoundError(f"Address {order_data.delivery_address_id} not found")
            if address.user_id != customer_id:
                raise ValidationError("Delivery address does not belong to the customer")

    async def _order_number_exists(self, order_number: str) -> bool:
        result = await self.session.execute(
            select(func.count(Order.id)).where(Order.order_number == order_number)
        )
        return (result.scalar() or 0) > 0
