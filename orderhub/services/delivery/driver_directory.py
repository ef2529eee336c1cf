# orderhub/services/delivery/driver_directory.py
from typing import Dict, List, Optional, Tuple
from decimal import Decimal

from sqlalchemy import select, and_, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from orderhub.models.auth.user import User
from orderhub.models.delivery.delivery_tracking import DeliveryTracking
from orderhub.models.shared.enums import UserRole, UserStatus


class DriverDirectory:
    """Driver lookups shared by the state machine and the delivery services"""

    def __init__(self, session: AsyncSession):
        self.session = session

    @staticmethod
    def available_conditions():
        return [
            User.role == UserRole.DRIVER,
            User.is_online == True,
            User.is_available == True,
            User.status == UserStatus.ACTIVE,
            User.is_deleted == False,
        ]

    async def get_available_drivers(self) -> List[User]:
        result = await self.session.execute(
            select(User)
            .options(selectinload(User.vehicle_info))
            .where(and_(*self.available_conditions()))
            .order_by(User.id)
        )
        return list(result.scalars().all())

    async def get_driver(self, driver_id: int) -> Optional[User]:
        result = await self.session.execute(
            select(User)
            .options(selectinload(User.vehicle_info))
            .where(User.id == driver_id, User.role == UserRole.DRIVER)
        )
        return result.scalar_one_or_none()

    async def get_last_positions(self, driver_ids: List[int]) -> Dict[int, Tuple[Decimal, Decimal]]:
        """Latest tracked (lat, lon) per driver, from the tracking time series"""
        if not driver_ids:
            return {}
        ranked = (
            select(
                DeliveryTracking.driver_id,
                DeliveryTracking.latitude,
                DeliveryTracking.longitude,
                func.row_number().over(
                    partition_by=DeliveryTracking.driver_id,
                    order_by=(DeliveryTracking.timestamp.desc(), DeliveryTracking.id.desc()),
                ).label("rn"),
            )
            .where(DeliveryTracking.driver_id.in_(driver_ids))
            .subquery()
        )
        result = await self.session.execute(
            select(ranked.c.driver_id, ranked.c.latitude, ranked.c.longitude).where(ranked.c.rn == 1)
        )
        return {row.driver_id: (row.latitude, row.longitude) for row in result.all()}

    async def set_availability(self, driver_id: int, is_available: bool):
        driver = await self.get_driver(driver_id)
        if driver is not None:
            driver.is_available = is_available
            await self.session.flush()
