# orderhub/services/delivery/assignment_service.py
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from orderhub.core.config import settings
from orderhub.core.exceptions import InvalidStateError, DriverUnavailableError, ValidationError
from orderhub.models.auth.address import Address
from orderhub.models.auth.user import User
from orderhub.models.delivery.delivery_tracking import DeliveryTracking
from orderhub.models.restaurant.restaurant import Restaurant
from orderhub.models.shared.enums import OrderStatusName, OrderType, TrackingStatus, UserRole, UserStatus
from orderhub.services.delivery.driver_directory import DriverDirectory
from orderhub.services.order.order_state_machine import OrderStateMachine
from orderhub.utils.geo import compute_delivery_metrics, distance_between

logger = logging.getLogger(__name__)

ASSIGNABLE_STATUSES = (OrderStatusName.PREPARING, OrderStatusName.READY)


@dataclass
class AssignmentResult:
    order_id: int
    driver_id: int
    tracking: DeliveryTracking
    distance_km: Optional[float]
    eta_minutes: Optional[int]


@dataclass
class DriverCandidate:
    driver: User
    distance_km: Optional[float]


class DeliveryAssignmentCoordinator:
    """Attaches a driver to a delivery order and dispatches it"""

    def __init__(self, session: AsyncSession, state_machine: OrderStateMachine):
        self.session = session
        self.state_machine = state_machine
        self.catalog = state_machine.catalog
        self.drivers = DriverDirectory(session)

    async def assign(
        self,
        order_id: int,
        driver_id: int,
        pickup_latitude: Optional[float] = None,
        pickup_longitude: Optional[float] = None,
        actor_id: Optional[int] = None,
    ) -> AssignmentResult:
        """Assign ``driver_id`` to the order and move it to Out for Delivery.

        Everything happens in one transaction: if any check fails the order
        keeps no driver and its status is unchanged.
        """
        try:
            order = await self.state_machine.lock_order(order_id)
            current = self.catalog.name_of(order.status_id)

            if order.order_type != OrderType.DELIVERY:
                raise InvalidStateError("Can only assign a driver to delivery orders", current=current)
            if OrderStatusName(current) not in ASSIGNABLE_STATUSES:
                raise InvalidStateError(
                    f"Can only assign a driver to orders that are Preparing or Ready (current: {current})",
                    current=current,
                )
            if order.driver_id:
                raise InvalidStateError(
                    f"Order {order.order_number} already has driver {order.driver_id}; return it to Ready before reassigning",
                    current=current,
                )

            driver = await self._lock_user(driver_id)
            self._validate_driver(driver, driver_id)

            pickup_lat, pickup_lon = await self._resolve_pickup(order.restaurant_id, pickup_latitude, pickup_longitude)
            address = await self.session.get(Address, order.delivery_address_id) if order.delivery_address_id else None
            metrics = compute_delivery_metrics(
                pickup_lat, pickup_lon,
                address.latitude if address else None, address.longitude if address else None,
            )

            order.driver_id = driver.id
            order.updated_by = actor_id
            driver.is_available = False

            tracking = DeliveryTracking(
                order_id=order.id,
                driver_id=driver.id,
                latitude=pickup_lat,
                longitude=pickup_lon,
                distance_to_destination=metrics.distance_km,
                eta_minutes=metrics.eta_minutes,
                status=TrackingStatus.ASSIGNED,
                timestamp=datetime.now(timezone.utc),
            )
            self.session.add(tracking)
            await self.session.flush()

            # Walk the allowed path: Preparing -> Ready -> Out for Delivery
            steps = []
            if OrderStatusName(current) == OrderStatusName.PREPARING:
                steps.append(self.catalog.by_name(OrderStatusName.READY))
            steps.append(self.catalog.by_name(OrderStatusName.OUT_FOR_DELIVERY))
            for step in steps:
                await self.state_machine.apply_transition(
                    order.id, step.id, notes=f"Driver {driver.id} assigned", actor_id=actor_id
                )

            await self.session.commit()
            logger.info(
                f"Driver {driver.id} assigned to order {order.order_number} "
                f"(distance={metrics.distance_km} km, eta={metrics.eta_minutes} min)"
            )

        except HTTPException:
            await self.session.rollback()
            raise
        except Exception as e:
            await self.session.rollback()
            logger.error(f"Error assigning driver {driver_id} to order {order_id}: {str(e)}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Failed to assign driver"
            )

        # Ready side effect is skipped because a driver is now set
        await self.state_machine.run_side_effect(order_id, self.catalog.by_name(OrderStatusName.OUT_FOR_DELIVERY))
        await self.session.refresh(tracking)

        return AssignmentResult(
            order_id=order_id,
            driver_id=driver_id,
            tracking=tracking,
            distance_km=metrics.distance_km,
            eta_minutes=metrics.eta_minutes,
        )

    async def find_available_drivers(
        self,
        center_latitude: Optional[float] = None,
        center_longitude: Optional[float] = None,
        radius_km: Optional[float] = None,
    ) -> List[DriverCandidate]:
        """Online, available, active drivers near a point.

        A driver's position is their latest tracking ping. Drivers with a known
        position outside ``radius_km`` are dropped; drivers never seen are kept
        as candidates with an unknown distance and sorted last.
        """
        drivers = await self.drivers.get_available_drivers()
        if center_latitude is None or center_longitude is None:
            return [DriverCandidate(driver=driver, distance_km=None) for driver in drivers]

        radius = radius_km if radius_km is not None else settings.DRIVER_SEARCH_RADIUS_KM
        positions = await self.drivers.get_last_positions([driver.id for driver in drivers])

        candidates = []
        for driver in drivers:
            position = positions.get(driver.id)
            distance = distance_between(center_latitude, center_longitude, *position) if position else None
            if distance is not None and distance > radius:
                continue
            candidates.append(DriverCandidate(
                driver=driver,
                distance_km=round(distance, 3) if distance is not None else None,
            ))

        candidates.sort(key=lambda c: (c.distance_km is None, c.distance_km or 0.0, c.driver.id))
        return candidates

    def _validate_driver(self, driver: Optional[User], driver_id: int):
        if driver is None or driver.is_deleted:
            raise DriverUnavailableError(f"Driver {driver_id} not found")
        if driver.role != UserRole.DRIVER:
            raise DriverUnavailableError(f"User {driver_id} is not a driver")
        if driver.status != UserStatus.ACTIVE:
            raise DriverUnavailableError(f"Driver {driver_id} is not active")
        if not driver.is_online:
            raise DriverUnavailableError(f"Driver {driver_id} is offline")
        if not driver.is_available:
            raise DriverUnavailableError(f"Driver {driver_id} is not available")

    async def _lock_user(self, user_id: int) -> Optional[User]:
        result = await self.session.execute(
            select(User)
            .where(User.id == user_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _resolve_pickup(self, restaurant_id: int, latitude: Optional[float], longitude: Optional[float]):
        if latitude is not None and longitude is not None:
            return latitude, longitude
        restaurant = await self.session.get(Restaurant, restaurant_id)
        if restaurant is None or restaurant.latitude is None or restaurant.longitude is None:
            raise ValidationError("Pickup coordinates are required when the restaurant has no location")
        return restaurant.latitude, restaurant.longitude
