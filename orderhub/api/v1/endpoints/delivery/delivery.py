import logging
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.ext.asyncio import AsyncSession

from orderhub.core.database import get_async_session
from orderhub.api.dependencies import get_status_catalog, get_driver_notifier, require_action
from orderhub.auth.policy import AccessPolicy
from orderhub.models.shared.enums import UserRole
from orderhub.schemas.delivery.delivery_schema import (
    DeliveryAssignmentRequest, DeliveryAssignmentResponse, AvailableDriverResponse,
    DriverLocationUpdate, DeliveryTrackingResponse, LiveTrackingResponse,
    DeliveryEstimateResponse, ActiveDeliveriesResponse, VehicleInfoResponse,
)
from orderhub.services.delivery.assignment_service import DeliveryAssignmentCoordinator
from orderhub.services.delivery.driver_notifier import DriverNotifier
from orderhub.services.delivery.tracking_service import DeliveryTracker
from orderhub.services.order.order_state_machine import OrderStateMachine
from orderhub.services.order.status_catalog import StatusCatalog

router = APIRouter()
logger = logging.getLogger(__name__)

@router.post("/assign", response_model=DeliveryAssignmentResponse)
async def assign_driver(
    assignment: DeliveryAssignmentRequest,
    session: AsyncSession = Depends(get_async_session),
    catalog: StatusCatalog = Depends(get_status_catalog),
    notifier: DriverNotifier = Depends(get_driver_notifier),
    current_user = Depends(require_action("delivery:assign"))
):
    """Assign a driver to a delivery order and dispatch it"""
    try:
        coordinator = DeliveryAssignmentCoordinator(session, OrderStateMachine(session, catalog, notifier))
        result = await coordinator.assign(
            assignment.order_id,
            assignment.driver_id,
            assignment.pickup_latitude,
            assignment.pickup_longitude,
            actor_id=current_user.id,
        )
        return {
            "order_id": result.order_id,
            "driver_id": result.driver_id,
            "tracking": DeliveryTrackingResponse.model_validate(result.tracking),
            "distance_km": result.distance_km,
            "eta_minutes": result.eta_minutes,
        }
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error assigning driver: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to assign driver"
        )

@router.get("/drivers/available", response_model=List[AvailableDriverResponse])
async def get_available_drivers(
    latitude: Optional[float] = Query(None, ge=-90, le=90),
    longitude: Optional[float] = Query(None, ge=-180, le=180),
    radius_km: Optional[float] = Query(None, gt=0),
    session: AsyncSession = Depends(get_async_session),
    catalog: StatusCatalog = Depends(get_status_catalog),
    current_user = Depends(require_action("delivery:drivers"))
):
    """Online, available drivers, nearest first when a point is given"""
    try:
        coordinator = DeliveryAssignmentCoordinator(session, OrderStateMachine(session, catalog))
        candidates = await coordinator.find_available_drivers(latitude, longitude, radius_km)
        return [
            {
                "id": candidate.driver.id,
                "name": candidate.driver.name,
                "phone": candidate.driver.phone,
                "distance_km": candidate.distance_km,
                "vehicle": (
                    VehicleInfoResponse.model_validate(candidate.driver.vehicle_info)
                    if candidate.driver.vehicle_info else None
                ),
            }
            for candidate in candidates
        ]
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error getting available drivers: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to retrieve available drivers"
        )

@router.post("/location", response_model=DeliveryTrackingResponse, status_code=status.HTTP_201_CREATED)
async def update_driver_location(
    location: DriverLocationUpdate,
    session: AsyncSession = Depends(get_async_session),
    current_user = Depends(require_action("delivery:location"))
):
    """Record the calling driver's GPS ping against their active delivery"""
    try:
        tracker = DeliveryTracker(session)
        return await tracker.ingest_location(
            current_user.id,
            location.latitude,
            location.longitude,
            speed=location.speed,
            heading=location.heading,
        )
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error updating location for driver {current_user.id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update driver location"
        )

@router.get("/orders/{order_id}/live", response_model=LiveTrackingResponse)
async def get_live_tracking(
    order_id: int,
    session: AsyncSession = Depends(get_async_session),
    current_user = Depends(require_action("delivery:track"))
):
    """Latest position, driver and route for an order"""
    try:
        return await DeliveryTracker(session).get_live_tracking(order_id)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error getting live tracking for order {order_id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to retrieve live tracking"
        )

@router.get("/orders/{order_id}/history", response_model=List[DeliveryTrackingResponse])
async def get_tracking_history(
    order_id: int,
    session: AsyncSession = Depends(get_async_session),
    current_user = Depends(require_action("delivery:track"))
):
    """All tracking rows for an order, newest first"""
    try:
        return await DeliveryTracker(session).get_tracking_history(order_id)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error getting tracking history for order {order_id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to retrieve tracking history"
        )

@router.get("/orders/{order_id}/estimate", response_model=DeliveryEstimateResponse)
async def estimate_delivery(
    order_id: int,
    latitude: float = Query(..., ge=-90, le=90),
    longitude: float = Query(..., ge=-180, le=180),
    session: AsyncSession = Depends(get_async_session),
    current_user = Depends(require_action("delivery:track"))
):
    """Distance and ETA from a point to the order's destination"""
    try:
        return await DeliveryTracker(session).estimate_delivery(order_id, latitude, longitude)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error estimating delivery for order {order_id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to estimate delivery"
        )

@router.get("/drivers/{driver_id}/active", response_model=ActiveDeliveriesResponse)
async def get_active_deliveries(
    driver_id: int,
    session: AsyncSession = Depends(get_async_session),
    current_user = Depends(require_action("delivery:active"))
):
    """Deliveries the driver is currently working on"""
    try:
        AccessPolicy(current_user).require_self_or(driver_id, UserRole.RESTAURANT_OWNER, UserRole.RESTAURANT_STAFF)
        deliveries = await DeliveryTracker(session).get_active_deliveries_for_driver(driver_id)
        return {"driver_id": driver_id, "deliveries": deliveries}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error getting active deliveries for driver {driver_id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to retrieve active deliveries"
        )

@router.get("/notifications", response_model=List[dict])
async def get_driver_notifications(
    limit: int = Query(20, ge=1, le=50),
    notifier: DriverNotifier = Depends(get_driver_notifier),
    current_user = Depends(require_action("delivery:location"))
):
    """Newest "order ready" offers queued for the calling driver"""
    try:
        return await notifier.get_notifications(current_user.id, limit)
    except Exception as e:
        logger.error(f"Error reading notifications for driver {current_user.id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to retrieve notifications"
        )
