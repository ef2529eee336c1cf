import logging
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from orderhub.core.database import get_async_session
from orderhub.api.dependencies import require_action
from orderhub.models.shared.enums import UserRole
from orderhub.schemas.delivery.delivery_schema import VehicleInfoCreate, VehicleInfoUpdate, VehicleInfoResponse
from orderhub.services.delivery.vehicle_service import VehicleService

router = APIRouter()
logger = logging.getLogger(__name__)

@router.post("/", response_model=VehicleInfoResponse, status_code=status.HTTP_201_CREATED)
async def create_vehicle_info(
    vehicle_data: VehicleInfoCreate,
    session: AsyncSession = Depends(get_async_session),
    current_user = Depends(require_action("vehicle:manage"))
):
    """Register a vehicle; admins may register one for another driver"""
    try:
        user_id = current_user.id
        if current_user.role == UserRole.ADMIN and vehicle_data.user_id:
            user_id = vehicle_data.user_id
        return await VehicleService(session).create_vehicle_info(user_id, vehicle_data)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error creating vehicle info: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create vehicle info"
        )

@router.get("/me", response_model=VehicleInfoResponse)
async def get_my_vehicle_info(
    session: AsyncSession = Depends(get_async_session),
    current_user = Depends(require_action("vehicle:manage"))
):
    """Get the calling driver's vehicle"""
    try:
        return await VehicleService(session).get_vehicle_info(current_user.id)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error getting vehicle info: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to retrieve vehicle info"
        )

@router.put("/me", response_model=VehicleInfoResponse)
async def update_my_vehicle_info(
    vehicle_data: VehicleInfoUpdate,
    session: AsyncSession = Depends(get_async_session),
    current_user = Depends(require_action("vehicle:manage"))
):
    """Update the calling driver's vehicle"""
    try:
        return await VehicleService(session).update_vehicle_info(current_user.id, vehicle_data)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error updating vehicle info: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update vehicle info"
        )

@router.delete("/me", status_code=status.HTTP_204_NO_CONTENT)
async def delete_my_vehicle_info(
    session: AsyncSession = Depends(get_async_session),
    current_user = Depends(require_action("vehicle:manage"))
):
    """Remove the calling driver's vehicle"""
    try:
        await VehicleService(session).delete_vehicle_info(current_user.id)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error deleting vehicle info: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to delete vehicle info"
        )
