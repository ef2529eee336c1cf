# orderhub/services/delivery/tracking_service.py
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from fastapi import HTTPException, status
from sqlalchemy import select, and_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from orderhub.core.config import settings
from orderhub.core.exceptions import NotFoundError, NoActiveDeliveryError, ValidationError
from orderhub.models.auth.address import Address
from orderhub.models.auth.user import User
from orderhub.models.delivery.delivery_tracking import DeliveryTracking
from orderhub.models.order.order import Order
from orderhub.models.restaurant.restaurant import Restaurant
from orderhub.models.shared.enums import TrackingStatus, UserRole
from orderhub.utils.geo import compute_delivery_metrics, estimate_route, DeliveryMetrics

logger = logging.getLogger(__name__)

IN_PROGRESS_STATUSES = (
    TrackingStatus.ASSIGNED,
    TrackingStatus.PICKED_UP,
    TrackingStatus.ON_THE_WAY,
    TrackingStatus.NEARBY,
)
ACTIVE_DRIVER_LOOKBACK = timedelta(hours=24)

# Rows that end an order's time series; no ping may attach after them
CLOSING_STATUSES = (TrackingStatus.DELIVERED, TrackingStatus.CANCELLED)


class DeliveryTracker:
    """Append-only delivery time series: location pings and live views"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def ingest_location(
        self,
        driver_id: int,
        latitude: float,
        longitude: float,
        speed: Optional[float] = None,
        heading: Optional[float] = None,
    ) -> DeliveryTracking:
        """Record a driver ping against the driver's active delivery"""
        try:
            active = await self.get_active_delivery_for_driver(driver_id)
            if active is None:
                raise NoActiveDeliveryError(f"No active delivery found for driver {driver_id}")

            metrics = await self._metrics_to_destination(active.order_id, latitude, longitude)
            tracking = DeliveryTracking(
                order_id=active.order_id,
                driver_id=driver_id,
                latitude=latitude,
                longitude=longitude,
                speed=speed,
                heading=heading,
                distance_to_destination=metrics.distance_km,
                eta_minutes=metrics.eta_minutes,
                status=TrackingStatus(metrics.status_hint),
                timestamp=datetime.now(timezone.utc),
                created_by=driver_id,
            )
            self.session.add(tracking)
            await self.session.commit()

            logger.debug(
                f"Driver {driver_id} ping for order {active.order_id}: "
                f"{metrics.status_hint}, {metrics.distance_km} km"
            )
            return tracking

        except HTTPException:
            await self.session.rollback()
            raise
        except Exception as e:
            await self.session.rollback()
            logger.error(f"Error ingesting location for driver {driver_id}: {str(e)}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Failed to record driver location"
            )

    async def record_tracking(
        self,
        order_id: int,
        driver_id: int,
        latitude: float,
        longitude: float,
        tracking_status: Optional[TrackingStatus] = None,
        speed: Optional[float] = None,
        heading: Optional[float] = None,
        actor_id: Optional[int] = None,
    ) -> DeliveryTracking:
        """Append an explicit snapshot, e.g. a driver confirming pickup"""
        try:
            order = await self._get_order(order_id)
            if order.driver_id != driver_id:
                raise ValidationError(f"Driver {driver_id} is not assigned to order {order.order_number}")

            metrics = await self._metrics_to_destination(order.id, latitude, longitude)
            tracking = DeliveryTracking(
                order_id=order.id,
                driver_id=driver_id,
                latitude=latitude,
                longitude=longitude,
                speed=speed,
                heading=heading,
                distance_to_destination=metrics.distance_km,
                eta_minutes=metrics.eta_minutes,
                status=tracking_status or TrackingStatus(metrics.status_hint),
                timestamp=datetime.now(timezone.utc),
                created_by=actor_id,
            )
            self.session.add(tracking)
            await self.session.commit()
            return tracking

        except HTTPException:
            await self.session.rollback()
            raise
        except Exception as e:
            await self.session.rollback()
            logger.error(f"Error recording tracking for order {order_id}: {str(e)}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Failed to record delivery tracking"
            )

    async def get_active_delivery_for_driver(self, driver_id: int) -> Optional[DeliveryTracking]:
        """Most recent row for the driver inside the active-delivery window, unless it closed the delivery"""
        cutoff = datetime.now(timezone.utc) - timedelta(minutes=settings.ACTIVE_DELIVERY_WINDOW_MINUTES)
        result = await self.session.execute(
            select(DeliveryTracking)
            .where(
                DeliveryTracking.driver_id == driver_id,
                DeliveryTracking.timestamp >= cutoff,
            )
            .order_by(DeliveryTracking.timestamp.desc(), DeliveryTracking.id.desc())
            .limit(1)
        )
        latest = result.scalar_one_or_none()
        if latest is not None and latest.status in CLOSING_STATUSES:
            return None
        return latest

    async def get_latest_tracking(self, order_id: int) -> Optional[DeliveryTracking]:
        result = await self.session.execute(
            select(DeliveryTracking)
            .where(DeliveryTracking.order_id == order_id)
            .order_by(DeliveryTracking.timestamp.desc(), DeliveryTracking.id.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def get_live_tracking(self, order_id: int) -> Dict[str, Any]:
        order = await self._get_order(order_id)
        latest = await self.get_latest_tracking(order_id)
        if latest is None:
            raise NotFoundError(f"No delivery tracking found for order {order_id}")

        driver_result = await self.session.execute(
            select(User).options(selectinload(User.vehicle_info)).where(User.id == latest.driver_id)
        )
        driver = driver_result.scalar_one_or_none()

        restaurant = await self.session.get(Restaurant, order.restaurant_id)
        address = await self.session.get(Address, order.delivery_address_id) if order.delivery_address_id else None
        route = estimate_route(
            restaurant.latitude if restaurant else None, restaurant.longitude if restaurant else None,
            address.latitude if address else None, address.longitude if address else None,
        )

        return {
            "order_id": order.id,
            "order_number": order.order_number,
            "current_location": {
                "latitude": float(latest.latitude),
                "longitude": float(latest.longitude),
            },
            "driver": self._driver_display(driver),
            "status": latest.status.value if latest.status else TrackingStatus.ON_THE_WAY.value,
            "eta_minutes": latest.eta_minutes or 0,
            "distance_remaining_km": float(latest.distance_to_destination or 0),
            "last_update": latest.timestamp,
            "route": {
                "distance_km": route.distance_km,
                "duration_minutes": route.duration_minutes,
            } if route else None,
        }

    async def get_tracking_history(self, order_id: int) -> List[DeliveryTracking]:
        await self._get_order(order_id)
        result = await self.session.execute(
            select(DeliveryTracking)
            .where(DeliveryTracking.order_id == order_id)
            .order_by(DeliveryTracking.timestamp.desc(), DeliveryTracking.id.desc())
        )
        return list(result.scalars().all())

    async def get_active_deliveries_for_driver(self, driver_id: int) -> List[DeliveryTracking]:
        """Latest in-progress row per order the driver touched in the last 24 hours"""
        cutoff = datetime.now(timezone.utc) - ACTIVE_DRIVER_LOOKBACK
        result = await self.session.execute(
            select(DeliveryTracking)
            .where(and_(
                DeliveryTracking.driver_id == driver_id,
                DeliveryTracking.timestamp >= cutoff,
            ))
            .order_by(DeliveryTracking.timestamp.desc(), DeliveryTracking.id.desc())
        )
        latest_per_order: Dict[int, DeliveryTracking] = {}
        for row in result.scalars().all():
            latest_per_order.setdefault(row.order_id, row)
        return [row for row in latest_per_order.values() if row.status in IN_PROGRESS_STATUSES]

    async def close_delivery(self, order_id: int, tracking_status: TrackingStatus) -> Optional[DeliveryTracking]:
        """Append the final row of an order's series at the last known position.

        Does not commit; the caller owns the transaction. Orders that were never
        tracked have nothing to close.
        """
        last = await self.get_latest_tracking(order_id)
        if last is None or last.status in CLOSING_STATUSES:
            return None
        delivered = tracking_status == TrackingStatus.DELIVERED
        closing = DeliveryTracking(
            order_id=order_id,
            driver_id=last.driver_id,
            latitude=last.latitude,
            longitude=last.longitude,
            distance_to_destination=0 if delivered else last.distance_to_destination,
            eta_minutes=0 if delivered else None,
            status=tracking_status,
            timestamp=datetime.now(timezone.utc),
        )
        self.session.add(closing)
        await self.session.flush()
        logger.info(f"Delivery tracking for order {order_id} closed as {tracking_status.value}")
        return closing

    async def estimate_delivery(self, order_id: int, latitude: float, longitude: float) -> Dict[str, Any]:
        """Distance and ETA from a point to the order's destination; nothing is stored"""
        order = await self._get_order(order_id)
        metrics = await self._metrics_to_destination(order.id, latitude, longitude)
        return {
            "order_id": order.id,
            "distance_km": metrics.distance_km,
            "eta_minutes": metrics.eta_minutes,
            "status": metrics.status_hint,
        }

    async def _metrics_to_destination(self, order_id: int, latitude: float, longitude: float) -> DeliveryMetrics:
        order = await self.session.get(Order, order_id)
        address = None
        if order is not None and order.delivery_address_id:
            address = await self.session.get(Address, order.delivery_address_id)
        if address is None:
            return compute_delivery_metrics(latitude, longitude, None, None)
        return compute_delivery_metrics(latitude, longitude, address.latitude, address.longitude)

    def _driver_display(self, driver: Optional[User]) -> Dict[str, str]:
        if driver is None or driver.role != UserRole.DRIVER:
            return {"name": "Unknown Driver", "vehicle": "Vehicle not specified", "phone": "N/A"}
        vehicle = "Vehicle not specified"
        if driver.vehicle_info:
            described = f"{driver.vehicle_info.vehicle_make or ''} {driver.vehicle_info.vehicle_model or ''}".strip()
            vehicle = described or vehicle
        return {
            "name": driver.name or "Unknown Driver",
            "vehicle": vehicle,
            "phone": driver.phone or "N/A",
        }

    async def _get_order(self, order_id: int) -> Order:
        order = await self.session.get(Order, order_id)
        if not order or order.is_deleted:
            raise NotFoundError(f"Order {order_id} not found")
        return order
