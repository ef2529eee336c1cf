# orderhub/services/delivery/vehicle_service.py
import logging

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from orderhub.core.exceptions import NotFoundError, ConflictError, ValidationError
from orderhub.models.auth.user import User
from orderhub.models.delivery.vehicle_info import VehicleInfo
from orderhub.models.shared.enums import UserRole
from orderhub.schemas.delivery.delivery_schema import VehicleInfoCreate, VehicleInfoUpdate

logger = logging.getLogger(__name__)


class VehicleService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create_vehicle_info(self, user_id: int, vehicle_data: VehicleInfoCreate) -> VehicleInfo:
        """Register the one vehicle a driver may have"""
        try:
            await self._validate_driver(user_id)

            if await self._get_by_user(user_id):
                raise ConflictError("Vehicle info already exists for this user")
            await self._ensure_plate_available(vehicle_data.license_plate)

            vehicle = VehicleInfo(
                **vehicle_data.model_dump(exclude={"user_id"}),
                user_id=user_id,
                created_by=user_id,
            )
            self.session.add(vehicle)
            await self.session.commit()

            logger.info(f"Vehicle {vehicle.license_plate} registered for driver {user_id}")
            return vehicle

        except HTTPException:
            await self.session.rollback()
            raise
        except IntegrityError as e:
            # Concurrent insert won the unique constraint
            await self.session.rollback()
            logger.warning(f"Vehicle info conflict for user {user_id}: {str(e)}")
            raise ConflictError("Vehicle info or license plate already exists")
        except Exception as e:
            await self.session.rollback()
            logger.error(f"Error creating vehicle info: {str(e)}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Failed to create vehicle info"
            )

    async def get_vehicle_info(self, user_id: int) -> VehicleInfo:
        vehicle = await self._get_by_user(user_id)
        if not vehicle:
            raise NotFoundError(f"Vehicle info not found for user {user_id}")
        return vehicle

    async def update_vehicle_info(self, user_id: int, vehicle_data: VehicleInfoUpdate) -> VehicleInfo:
        try:
            vehicle = await self.get_vehicle_info(user_id)
            update_data = vehicle_data.model_dump(exclude_unset=True)

            new_plate = update_data.get("license_plate")
            if new_plate and new_plate != vehicle.license_plate:
                await self._ensure_plate_available(new_plate)

            for field, value in update_data.items():
                setattr(vehicle, field, value)
            vehicle.updated_by = user_id

            await self.session.commit()
            await self.session.refresh(vehicle)
            logger.info(f"Vehicle info updated for driver {user_id}")
            return vehicle

        except HTTPException:
            await self.session.rollback()
            raise
        except IntegrityError as e:
            await self.session.rollback()
            logger.warning(f"License plate conflict for user {user_id}: {str(e)}")
            raise ConflictError("License plate already exists")
        except Exception as e:
            await self.session.rollback()
            logger.error(f"Error updating vehicle info: {str(e)}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Failed to update vehicle info"
            )

    async def delete_vehicle_info(self, user_id: int) -> bool:
        try:
            vehicle = await self.get_vehicle_info(user_id)
            await self.session.delete(vehicle)
            await self.session.commit()
            logger.info(f"Vehicle info removed for driver {user_id}")
            return True

        except HTTPException:
            await self.session.rollback()
            raise
        except Exception as e:
            await self.session.rollback()
            logger.error(f"Error deleting vehicle info: {str(e)}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Failed to delete vehicle info"
            )

    async def _get_by_user(self, user_id: int):
        result = await self.session.execute(select(VehicleInfo).where(VehicleInfo.user_id == user_id))
        return result.scalar_one_or_none()

    async def _ensure_plate_available(self, license_plate: str):
        result = await self.session.execute(
            select(VehicleInfo.id).where(VehicleInfo.license_plate == license_plate)
        )
        if result.scalar_one_or_none() is not None:
            raise ConflictError("License plate already exists")

    async def _validate_driver(self, user_id: int) -> User:
        user = await self.session.get(User, user_id)
        if not user or user.is_deleted:
            raise NotFoundError(f"User {user_id} not found")
        if user.role != UserRole.DRIVER:
            raise ValidationError("Vehicle info can only be registered for drivers")
        return user
