import logging
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.ext.asyncio import AsyncSession

from orderhub.core.database import get_async_session
from orderhub.api.dependencies import get_current_user, get_status_catalog, get_driver_notifier, require_action
from orderhub.auth.policy import AccessPolicy
from orderhub.models.shared.enums import OrderType, UserRole
from orderhub.schemas.common.pagination import PaginatedResponse
from orderhub.schemas.order.order_schema import (
    OrderCreate, OrderUpdate, OrderResponse, OrderStatusUpdate,
    OrderStatusResponse, OrderStatusHistoryResponse,
)
from orderhub.services.delivery.driver_notifier import DriverNotifier
from orderhub.services.order.order_service import OrderService
from orderhub.services.order.order_state_machine import OrderStateMachine
from orderhub.services.order.status_catalog import StatusCatalog

router = APIRouter()
logger = logging.getLogger(__name__)

def _check_order_access(current_user, order):
    """Customers see their own orders, drivers the ones assigned to them"""
    if order.driver_id is not None and order.driver_id == current_user.id:
        return
    AccessPolicy(current_user).require_self_or(
        order.customer_id, UserRole.RESTAURANT_OWNER, UserRole.RESTAURANT_STAFF
    )

@router.post("/", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
async def create_order(
    order_data: OrderCreate,
    session: AsyncSession = Depends(get_async_session),
    catalog: StatusCatalog = Depends(get_status_catalog),
    current_user = Depends(require_action("order:create"))
):
    """Create a new order"""
    try:
        policy = AccessPolicy(current_user)
        customer_id = order_data.customer_id if policy.is_staff and order_data.customer_id else current_user.id
        order_service = OrderService(session, catalog)
        order = await order_service.create_order(order_data, customer_id, current_user.id)
        return order
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error creating order: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create order"
        )

@router.get("/", response_model=PaginatedResponse[OrderResponse])
async def get_orders(
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    restaurant_id: Optional[int] = Query(None),
    customer_id: Optional[int] = Query(None),
    driver_id: Optional[int] = Query(None),
    status_id: Optional[int] = Query(None),
    order_type: Optional[OrderType] = Query(None),
    session: AsyncSession = Depends(get_async_session),
    catalog: StatusCatalog = Depends(get_status_catalog),
    current_user = Depends(require_action("order:list"))
):
    """Get list of orders with optional filters"""
    try:
        order_service = OrderService(session, catalog)
        return await order_service.get_orders(
            skip=skip,
            limit=limit,
            restaurant_id=restaurant_id,
            customer_id=customer_id,
            driver_id=driver_id,
            status_id=status_id,
            order_type=order_type,
        )
    except Exception as e:
        logger.error(f"Error getting orders: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to retrieve orders"
        )

@router.get("/statuses", response_model=List[OrderStatusResponse])
async def get_order_statuses(
    catalog: StatusCatalog = Depends(get_status_catalog),
    current_user = Depends(get_current_user)
):
    """Get the order status catalog"""
    return catalog.entries()

@router.get("/number/{order_number}", response_model=OrderResponse)
async def get_order_by_number(
    order_number: str,
    session: AsyncSession = Depends(get_async_session),
    catalog: StatusCatalog = Depends(get_status_catalog),
    current_user = Depends(require_action("order:read"))
):
    """Get order by order number"""
    try:
        order = await OrderService(session, catalog).get_order_by_number(order_number)
        _check_order_access(current_user, order)
        return order
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error getting order {order_number}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to retrieve order"
        )

@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: int,
    session: AsyncSession = Depends(get_async_session),
    catalog: StatusCatalog = Depends(get_status_catalog),
    current_user = Depends(require_action("order:read"))
):
    """Get order by ID"""
    try:
        order = await OrderService(session, catalog).get_order(order_id)
        _check_order_access(current_user, order)
        return order
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error getting order {order_id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to retrieve order"
        )

@router.put("/{order_id}", response_model=OrderResponse)
async def update_order(
    order_id: int,
    order_data: OrderUpdate,
    session: AsyncSession = Depends(get_async_session),
    catalog: StatusCatalog = Depends(get_status_catalog),
    current_user = Depends(require_action("order:update"))
):
    """Update order items or fees while it is Pending"""
    try:
        order_service = OrderService(session, catalog)
        _check_order_access(current_user, await order_service.get_order(order_id))
        return await order_service.update_order(order_id, order_data, current_user.id)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error updating order {order_id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update order"
        )

@router.delete("/{order_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_order(
    order_id: int,
    session: AsyncSession = Depends(get_async_session),
    catalog: StatusCatalog = Depends(get_status_catalog),
    current_user = Depends(require_action("order:delete"))
):
    """Delete order (soft delete) while it is Pending"""
    try:
        order_service = OrderService(session, catalog)
        _check_order_access(current_user, await order_service.get_order(order_id))
        await order_service.delete_order(order_id, current_user.id)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error deleting order {order_id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to delete order"
        )

@router.post("/{order_id}/status", response_model=OrderResponse)
async def update_order_status(
    order_id: int,
    status_data: OrderStatusUpdate,
    session: AsyncSession = Depends(get_async_session),
    catalog: StatusCatalog = Depends(get_status_catalog),
    notifier: DriverNotifier = Depends(get_driver_notifier),
    current_user = Depends(require_action("order:transition"))
):
    """Move the order to a new status"""
    try:
        state_machine = OrderStateMachine(session, catalog, notifier)
        return await state_machine.transition(
            order_id, status_data.status_id, status_data.notes, current_user.id
        )
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error updating status of order {order_id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update order status"
        )

@router.get("/{order_id}/next-statuses", response_model=List[OrderStatusResponse])
async def get_allowed_next_statuses(
    order_id: int,
    session: AsyncSession = Depends(get_async_session),
    catalog: StatusCatalog = Depends(get_status_catalog),
    current_user = Depends(require_action("order:transition"))
):
    """Statuses the order may move to next"""
    return await OrderStateMachine(session, catalog).get_allowed_next(order_id)

@router.get("/{order_id}/history", response_model=List[OrderStatusHistoryResponse])
async def get_order_history(
    order_id: int,
    session: AsyncSession = Depends(get_async_session),
    catalog: StatusCatalog = Depends(get_status_catalog),
    current_user = Depends(require_action("order:read"))
):
    """Status history, newest first"""
    try:
        order = await OrderService(session, catalog).get_order(order_id)
        _check_order_access(current_user, order)
        return await OrderStateMachine(session, catalog).get_status_history(order_id)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error getting history of order {order_id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to retrieve order history"
        )
