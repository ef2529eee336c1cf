# orderhub/services/order/order_state_machine.py
import logging
from datetime import datetime, timezone
from typing import Dict, FrozenSet, List, Optional

from fastapi import HTTPException, status
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from orderhub.core.exceptions import NotFoundError, InvalidTransitionError
from orderhub.models.auth.address import Address
from orderhub.models.delivery.delivery_tracking import DeliveryTracking
from orderhub.models.order.order import Order
from orderhub.models.order.order_status_history import OrderStatusHistory
from orderhub.models.restaurant.restaurant import Restaurant
from orderhub.models.shared.enums import OrderStatusName, OrderType, TrackingStatus
from orderhub.services.delivery.driver_directory import DriverDirectory
from orderhub.services.delivery.driver_notifier import DriverNotifier
from orderhub.services.delivery.tracking_service import DeliveryTracker
from orderhub.services.order.status_catalog import StatusCatalog, StatusEntry
from orderhub.utils.geo import compute_delivery_metrics

logger = logging.getLogger(__name__)

S = OrderStatusName

ALLOWED_TRANSITIONS: Dict[OrderStatusName, FrozenSet[OrderStatusName]] = {
    S.PENDING: frozenset({S.PREPARING, S.CANCELLED}),
    S.PREPARING: frozenset({S.READY, S.CANCELLED}),
    S.READY: frozenset({S.OUT_FOR_DELIVERY, S.COMPLETED, S.CANCELLED}),
    S.OUT_FOR_DELIVERY: frozenset({S.DELIVERED, S.CANCELLED}),
    S.DELIVERED: frozenset({S.COMPLETED}),
    S.COMPLETED: frozenset(),  # Terminal state
    S.CANCELLED: frozenset(),  # Terminal state
}

TERMINAL_STATUSES = frozenset(name for name, nxt in ALLOWED_TRANSITIONS.items() if not nxt)

# Order content (items, fees) may only change in these statuses
EDITABLE_STATUSES = frozenset({S.PENDING})


def is_allowed_transition(current: OrderStatusName, target: OrderStatusName) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


class OrderStateMachine:
    """Validates and applies order status transitions.

    The guard is evaluated against a row locked inside the same transaction as
    the write. Side effects run after commit and never undo the transition.
    """

    def __init__(
        self,
        session: AsyncSession,
        catalog: StatusCatalog,
        notifier: Optional[DriverNotifier] = None,
    ):
        self.session = session
        self.catalog = catalog
        self.notifier = notifier
        self.drivers = DriverDirectory(session)
        self._side_effects = {
            S.READY: self._notify_drivers,
            S.OUT_FOR_DELIVERY: self._start_delivery_tracking,
            S.DELIVERED: self._record_delivery,
            S.COMPLETED: self._finalize_order,
            S.CANCELLED: self._release_driver,
        }

    async def transition(
        self,
        order_id: int,
        target_status_id: int,
        notes: Optional[str] = None,
        actor_id: Optional[int] = None,
    ) -> Order:
        """Move an order to ``target_status_id`` and run the status side effect"""
        try:
            order = await self.apply_transition(order_id, target_status_id, notes, actor_id)
            target = self.catalog.get(target_status_id)
            await self.session.commit()
            logger.info(f"Order {order.order_number} moved to '{target.name}'")
        except HTTPException:
            await self.session.rollback()
            raise
        except Exception as e:
            await self.session.rollback()
            logger.error(f"Error transitioning order {order_id}: {str(e)}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Failed to update order status"
            )

        await self.run_side_effect(order_id, target)
        return await self._get_order(order_id)

    async def apply_transition(
        self,
        order_id: int,
        target_status_id: int,
        notes: Optional[str] = None,
        actor_id: Optional[int] = None,
    ) -> Order:
        """Guard and write one transition without committing.

        Callers own the transaction; :meth:`transition` commits it, the
        delivery coordinator folds several steps into one.
        """
        order = await self.lock_order(order_id)
        target = self.catalog.get(target_status_id)
        current = self.catalog.get(order.status_id)
        self._ensure_allowed(order, current, target)

        order.status_id = target.id
        self.session.add(OrderStatusHistory(
            order_id=order.id,
            from_status_id=current.id,
            status_id=target.id,
            notes=notes or f"Status changed from {current.name} to {target.name}",
            actor_id=actor_id,
            created_by=actor_id,
            timestamp=datetime.now(timezone.utc),
        ))
        await self.session.flush()
        return order

    async def lock_order(self, order_id: int) -> Order:
        result = await self.session.execute(
            select(Order)
            .where(Order.id == order_id, Order.is_deleted == False)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        order = result.scalar_one_or_none()
        if not order:
            raise NotFoundError(f"Order {order_id} not found")
        return order

    def allowed_next(self, status_id: int) -> List[StatusEntry]:
        current = S(self.catalog.name_of(status_id))
        return [self.catalog.by_name(name) for name in S if name in ALLOWED_TRANSITIONS[current]]

    async def get_allowed_next(self, order_id: int) -> List[StatusEntry]:
        order = await self._get_order(order_id)
        return self.allowed_next(order.status_id)

    async def get_status_history(self, order_id: int) -> List[OrderStatusHistory]:
        await self._get_order(order_id)
        result = await self.session.execute(
            select(OrderStatusHistory)
            .where(OrderStatusHistory.order_id == order_id)
            .order_by(OrderStatusHistory.timestamp.desc(), OrderStatusHistory.id.desc())
        )
        return list(result.scalars().all())

    def _ensure_allowed(self, order: Order, current: StatusEntry, target: StatusEntry):
        current_name = S(current.name)
        target_name = S(target.name)
        if not is_allowed_transition(current_name, target_name):
            raise InvalidTransitionError(current.name, target.name)
        if target_name == S.OUT_FOR_DELIVERY and order.order_type != OrderType.DELIVERY:
            raise InvalidTransitionError(
                current.name, target.name,
                detail=f"Only delivery orders can move to '{target.name}'",
            )

    async def run_side_effect(self, order_id: int, target: StatusEntry):
        """Best-effort hook for the new status. Failures are logged, not raised."""
        handler = self._side_effects.get(S(target.name))
        if handler is None:
            return
        try:
            await handler(order_id)
            await self.session.commit()
        except Exception as e:
            await self.session.rollback()
            logger.error(
                f"Side effect for status '{target.name}' failed on order {order_id}: {str(e)}"
            )

    # === Side effects ===

    async def _notify_drivers(self, order_id: int):
        order = await self._get_order(order_id)
        if order.order_type != OrderType.DELIVERY or order.driver_id:
            return
        if self.notifier is None:
            logger.debug(f"No driver notifier configured, skipping order {order.order_number}")
            return
        drivers = await self.drivers.get_available_drivers()
        await self.notifier.notify_order_ready(order, [driver.id for driver in drivers])

    async def _start_delivery_tracking(self, order_id: int):
        order = await self._get_order(order_id)
        if not order.driver_id:
            logger.info(f"Order {order.order_number} is out for delivery without a driver")
            return

        existing = await self.session.execute(
            select(func.count(DeliveryTracking.id)).where(DeliveryTracking.order_id == order_id)
        )
        if existing.scalar():
            return

        restaurant = await self.session.get(Restaurant, order.restaurant_id)
        if restaurant is None or restaurant.latitude is None or restaurant.longitude is None:
            logger.warning(f"Restaurant for order {order.order_number} has no coordinates, tracking not started")
            return
        address = await self.session.get(Address, order.delivery_address_id) if order.delivery_address_id else None
        metrics = compute_delivery_metrics(
            restaurant.latitude, restaurant.longitude,
            address.latitude if address else None, address.longitude if address else None,
        )
        self.session.add(DeliveryTracking(
            order_id=order.id,
            driver_id=order.driver_id,
            latitude=restaurant.latitude,
            longitude=restaurant.longitude,
            distance_to_destination=metrics.distance_km,
            eta_minutes=metrics.eta_minutes,
            status=TrackingStatus.ASSIGNED,
            timestamp=datetime.now(timezone.utc),
        ))
        await self.session.flush()

    async def _record_delivery(self, order_id: int):
        order = await self._get_order(order_id)
        order.actual_delivery_time = datetime.now(timezone.utc)
        await DeliveryTracker(self.session).close_delivery(order.id, TrackingStatus.DELIVERED)
        if order.driver_id:
            await self.drivers.set_availability(order.driver_id, True)
        await self.session.flush()

    async def _finalize_order(self, order_id: int):
        order = await self._get_order(order_id)
        order.completed_at = datetime.now(timezone.utc)
        await self.session.flush()

    async def _release_driver(self, order_id: int):
        order = await self._get_order(order_id)
        if order.driver_id:
            await DeliveryTracker(self.session).close_delivery(order.id, TrackingStatus.CANCELLED)
            await self.drivers.set_availability(order.driver_id, True)
            await self.session.flush()

    async def _get_order(self, order_id: int) -> Order:
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
