from fastapi import APIRouter
from orderhub.api.v1.endpoints.orders import orders
from orderhub.api.v1.endpoints.delivery import delivery, vehicles
from orderhub.api.v1.endpoints.payments import payments

api_router = APIRouter()

# Order routes
api_router.include_router(orders.router, prefix="/orders", tags=["Orders"])

# Delivery routes
api_router.include_router(delivery.router, prefix="/delivery", tags=["Delivery"])
api_router.include_router(vehicles.router, prefix="/delivery/vehicles", tags=["Delivery"])

# Payment routes
api_router.include_router(payments.router, prefix="/payments", tags=["Payments"])
